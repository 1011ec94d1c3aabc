"""Exceptions raised by SCIM Bridge.

Errors split into two groups. Fatal errors (configuration, credential
source, signing key) abort a run before any batch is dispatched. Per-batch
errors (token, encode, transport, decode) fail only the batch they occurred
in. ``exit_code`` is the CLI exit status used when an error reaches the
command line.
"""


class ScimMigrationError(Exception):
    """Base exception for all SCIM Bridge errors."""

    exit_code = 1


# --- Fatal, raised before dispatch ---


class ConfigurationError(ScimMigrationError):
    """Configuration file, environment variable, or signing key is unusable."""

    exit_code = 2


class SourceError(ScimMigrationError):
    """The credential CSV is missing, unreadable, or has a malformed row."""

    exit_code = 2


class VaultError(ScimMigrationError):
    """Reading the signing key from Vault failed."""


class VaultAuthenticationError(VaultError):
    """AppRole login to Vault was rejected."""


# --- Per batch ---


class TokenAcquisitionError(ScimMigrationError):
    """The token service did not issue an access token."""

    exit_code = 3


class EncodeError(ScimMigrationError):
    """A batch cannot be serialized into a bulk request."""


class DecodeError(ScimMigrationError):
    """A bulk response body cannot be parsed."""


class NetworkError(ScimMigrationError):
    """The request did not complete: timeout, connection or body read failure."""


class APIError(ScimMigrationError):
    """The service answered with a status the caller does not accept."""

    exit_code = 4

    def __init__(self, message: str, status_code: int | None = None, detail: str | None = None):
        self.message = message
        self.status_code = status_code
        self.detail = detail
        super().__init__(self._render())

    def _render(self) -> str:
        text = f"[{self.status_code}] {self.message}" if self.status_code else self.message
        return f"{text}: {self.detail}" if self.detail else text


class AuthenticationError(APIError):
    """401 from the service; the bearer token was missing or rejected."""

    exit_code = 3


class AuthorizationError(APIError):
    """403 from the service; the client may not create these users."""


class RateLimitError(APIError):
    """429 from the service."""


class ServerError(APIError):
    """5xx from the service."""
