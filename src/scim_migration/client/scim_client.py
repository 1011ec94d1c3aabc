"""Client for the SCIM identity service bulk endpoint."""

import httpx

from scim_migration.client.base_client import BaseAPIClient
from scim_migration.client.exceptions import APIError
from scim_migration.config import PerformanceConfig, SCIMConfig
from scim_migration.migration.codec import (
    decode_bulk_response,
    encode_bulk_body,
    encode_bulk_request,
)
from scim_migration.migration.models import Batch, BulkResponse
from scim_migration.utils.logging import get_logger, should_log_payloads

logger = get_logger(__name__)

BULK_ENDPOINT = "/scim/v2/Bulk"
SUCCESS_STATUSES = (httpx.codes.OK, httpx.codes.CREATED)


class SCIMClient(BaseAPIClient):
    """Sends credential batches to the SCIM bulk endpoint.

    The bearer token is passed per call, every other header is fixed for the
    lifetime of the client.
    """

    def __init__(
        self,
        config: SCIMConfig,
        client_id: str,
        performance: PerformanceConfig | None = None,
        log_payloads: bool = False,
        max_payload_size: int = 10000,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize SCIM client.

        Args:
            config: SCIM service configuration
            client_id: Value of the X-CLIENT-ID header
            performance: Connection pool settings
            log_payloads: Enable redacted payload logging at DEBUG level
            max_payload_size: Maximum payload size (chars) to log
            transport: Optional httpx transport (used by tests)
        """
        performance = performance or PerformanceConfig()
        self.global_entity_id = config.global_entity_id
        self.client_id = client_id

        super().__init__(
            base_url=config.url,
            verify_ssl=config.verify_ssl,
            timeout=config.timeout,
            max_connections=performance.max_connections,
            max_keepalive_connections=performance.max_keepalive_connections,
            headers={
                "X-Global-Entity-ID": self.global_entity_id,
                "X-CLIENT-ID": self.client_id,
                "Content-Type": "application/json",
            },
            log_payloads=log_payloads,
            max_payload_size=max_payload_size,
            transport=transport,
        )

    async def migrate_users(self, access_token: str, batch: Batch) -> BulkResponse:
        """Send one batch as a SCIM bulk request.

        Args:
            access_token: Bearer token for this call
            batch: Credentials to create

        Returns:
            Parsed bulk response

        Raises:
            EncodeError: If the batch cannot be encoded
            APIError: If the service answers with anything but 200 or 201
            NetworkError: If the request does not complete
            DecodeError: If the response body cannot be parsed
        """
        request = encode_bulk_request(batch, self.global_entity_id)
        body = encode_bulk_body(request)

        if should_log_payloads(self.log_payloads):
            self._log_payload(
                "bulk_request_payload",
                self.url_for(BULK_ENDPOINT),
                request.model_dump(by_alias=True, exclude_none=True),
                bulk_id=batch.bulk_id,
            )

        response = await self.post(
            BULK_ENDPOINT,
            content=body,
            headers={"Authorization": f"Bearer {access_token}"},
        )

        if response.status_code not in SUCCESS_STATUSES:
            raise APIError(
                message=f"Bulk request not successful, got {response.status_code}",
                status_code=response.status_code,
            )

        result = decode_bulk_response(response.content)
        logger.debug(
            "bulk_response_received",
            bulk_id=batch.bulk_id,
            operations=len(result.operations),
        )
        return result
