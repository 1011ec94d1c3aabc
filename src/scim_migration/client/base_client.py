"""Shared async HTTP plumbing for the token service and the SCIM service.

Both services are called with POST only. Every exchange is logged, error
statuses are raised as the tool's exceptions, and transport failures are
raised as NetworkError. Nothing is retried here: a failed call fails the
batch that made it.
"""

import time
from typing import Any
from urllib.parse import urljoin

import httpx

from scim_migration.client.exceptions import (
    APIError,
    AuthenticationError,
    AuthorizationError,
    NetworkError,
    RateLimitError,
    ServerError,
)
from scim_migration.utils.logging import (
    get_logger,
    log_api_request,
    sanitize_payload,
    should_log_payloads,
    truncate_payload,
)

logger = get_logger(__name__)

# Status -> (exception, message); 5xx and anything unlisted are handled below
_STATUS_ERRORS: dict[int, tuple[type[APIError], str]] = {
    401: (AuthenticationError, "Authentication failed"),
    403: (AuthorizationError, "Authorization failed"),
    429: (RateLimitError, "Rate limit exceeded"),
}

# Body keys that hold the reason in SCIM and OAuth2 error responses
_DETAIL_KEYS = ("detail", "error_description", "error", "message")


def error_detail(response: httpx.Response, limit: int = 500) -> str:
    """Pull a readable reason out of an error response body."""
    try:
        body = response.json()
    except ValueError:
        return response.text[:limit]

    if not isinstance(body, dict):
        return str(body)[:limit]
    return next((str(body[key]) for key in _DETAIL_KEYS if body.get(key)), "")


def raise_for_status(response: httpx.Response) -> None:
    """Raise the APIError subclass matching a status of 400 or above."""
    status = response.status_code
    if status < 400:
        return

    if status in _STATUS_ERRORS:
        error_class, message = _STATUS_ERRORS[status]
    elif status >= 500:
        error_class, message = ServerError, "Server error"
    else:
        error_class, message = APIError, "Request rejected"

    raise error_class(message, status_code=status, detail=error_detail(response) or None)


class BaseAPIClient:
    """One pooled httpx.AsyncClient per remote service, shared by all workers."""

    def __init__(
        self,
        base_url: str,
        verify_ssl: bool = True,
        timeout: int = 30,
        max_connections: int = 50,
        max_keepalive_connections: int = 20,
        headers: dict[str, str] | None = None,
        log_payloads: bool = False,
        max_payload_size: int = 10000,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Args:
            base_url: Service root; endpoints are resolved against it
            verify_ssl: Whether to verify TLS certificates
            timeout: Read/write timeout in seconds (connect is capped at 10)
            max_connections: Connection pool size
            max_keepalive_connections: Idle connections kept open
            headers: Sent with every request, after ``Accept: application/json``
            log_payloads: Log redacted bodies at DEBUG level
            max_payload_size: Characters of a body logged before truncation
            transport: Optional httpx transport (used by tests)
        """
        self.base_url = base_url.rstrip("/")
        self.log_payloads = log_payloads
        self.max_payload_size = max_payload_size

        self.client = httpx.AsyncClient(
            headers={"Accept": "application/json", **(headers or {})},
            timeout=httpx.Timeout(timeout, connect=10.0),
            limits=httpx.Limits(
                max_connections=max_connections,
                max_keepalive_connections=max_keepalive_connections,
            ),
            verify=verify_ssl,
            transport=transport,
        )
        logger.info("client_initialized", base_url=self.base_url, pool_size=max_connections)

    def url_for(self, endpoint: str) -> str:
        return urljoin(f"{self.base_url}/", endpoint.lstrip("/"))

    def _log_payload(self, event: str, url: str, payload: Any, **extra: Any) -> None:
        logger.debug(
            event,
            url=url,
            payload=truncate_payload(sanitize_payload(payload), self.max_payload_size),
            **extra,
        )

    def _log_response_body(self, url: str, response: httpx.Response) -> None:
        try:
            body: Any = response.json()
        except ValueError:
            body = response.text
        self._log_payload("api_response_payload", url, body, status_code=response.status_code)

    async def post(
        self,
        endpoint: str,
        *,
        content: bytes | None = None,
        data: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """POST a pre-encoded body or a form to ``endpoint``.

        Returns:
            The response, for any status below 400

        Raises:
            NetworkError: If the request or the response body read fails
            APIError: Or a subclass, for a status of 400 or above
        """
        url = self.url_for(endpoint)
        payload_logging = should_log_payloads(self.log_payloads)

        if payload_logging and data is not None:
            self._log_payload("api_request_payload", url, data)

        started = time.monotonic()
        try:
            response = await self.client.post(url, content=content, data=data, headers=headers)
        except httpx.TimeoutException as e:
            logger.error("timeout_error", url=url, error=str(e))
            raise NetworkError(f"Request timeout: {e}") from e
        except httpx.HTTPError as e:
            # Connection failures and unreadable bodies (e.g. broken Content-Encoding)
            logger.error("network_error", url=url, error_type=type(e).__name__, error=str(e))
            raise NetworkError(f"Network error: {e}") from e

        log_api_request(
            logger,
            method="POST",
            url=url,
            status_code=response.status_code,
            duration_ms=(time.monotonic() - started) * 1000,
        )
        if payload_logging and response.content:
            self._log_response_body(url, response)

        raise_for_status(response)
        return response

    async def close(self) -> None:
        await self.client.aclose()
        logger.info("client_closed", base_url=self.base_url)

    async def __aenter__(self) -> "BaseAPIClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()
