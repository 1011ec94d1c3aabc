"""Token service (STS) client.

Access tokens are obtained with the OAuth2 client credentials grant, the
client authenticating with a JWT assertion signed by its RSA private key
(RFC 7523). Each call to ``get_access_token`` asks the service for a fresh
token unless the caching provider is put in front of it.
"""

import asyncio
import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

import httpx
import jwt
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey

from scim_migration.client.base_client import BaseAPIClient
from scim_migration.client.exceptions import (
    ConfigurationError,
    ScimMigrationError,
    TokenAcquisitionError,
    VaultError,
)
from scim_migration.config import MigrationConfig, STSConfig
from scim_migration.utils.logging import get_logger

logger = get_logger(__name__)

CLIENT_ASSERTION_TYPE = "urn:ietf:params:oauth:client-assertion-type:jwt-bearer"


@dataclass(frozen=True)
class AccessToken:
    """Bearer token with its expiry as a unix timestamp."""

    value: str
    expires_at: float

    def is_fresh(self, margin: float = 0.0) -> bool:
        return time.time() < self.expires_at - margin


class TokenProvider(Protocol):
    """Anything that can hand out a bearer token."""

    async def get_access_token(self) -> str: ...


def load_private_key(pem: bytes | str) -> RSAPrivateKey:
    """Parse a PEM encoded RSA private key (PKCS#1 or PKCS#8).

    Raises:
        ConfigurationError: If the key cannot be parsed or is not RSA
    """
    if isinstance(pem, str):
        pem = pem.encode("utf-8")

    try:
        key = serialization.load_pem_private_key(pem, password=None)
    except (ValueError, TypeError) as e:
        raise ConfigurationError(f"Cannot parse private key: {e}") from e

    if not isinstance(key, RSAPrivateKey):
        raise ConfigurationError("STS signing key must be an RSA private key")
    return key


def load_signing_key(config: MigrationConfig) -> RSAPrivateKey:
    """Load the STS signing key from a file or from Vault.

    Raises:
        ConfigurationError: If the key cannot be read or parsed
    """
    sts = config.sts

    if sts.key_path:
        key_path = Path(sts.key_path)
        try:
            pem = key_path.read_bytes()
        except OSError as e:
            raise ConfigurationError(f"Cannot read private key {key_path}: {e}") from e
        logger.debug("signing_key_loaded", source="file", path=str(key_path))
        return load_private_key(pem)

    from scim_migration.client.vault_client import VaultClient

    try:
        vault = VaultClient(config.vault)
        try:
            pem = vault.read_field(sts.vault_key_path, sts.vault_key_field)
        finally:
            vault.close()
    except VaultError as e:
        raise ConfigurationError(f"Cannot load private key from Vault: {e}") from e

    logger.debug("signing_key_loaded", source="vault", path=sts.vault_key_path)
    return load_private_key(pem)


class STSClient(BaseAPIClient):
    """Client for the token issuance service."""

    def __init__(
        self,
        config: STSConfig,
        client_id: str,
        private_key: RSAPrivateKey,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize STS client.

        Args:
            config: Token service configuration
            client_id: Client identifier (JWT issuer and subject)
            private_key: Key used to sign client assertions
            transport: Optional httpx transport (used by tests)
        """
        self.config = config
        self.client_id = client_id
        self.key_id = config.key_id
        self._private_key = private_key

        super().__init__(
            base_url=config.url,
            timeout=config.timeout,
            max_connections=10,
            max_keepalive_connections=5,
            transport=transport,
        )

    def build_client_assertion(self, now: float | None = None) -> str:
        """Sign the JWT the client presents to the token endpoint."""
        issued_at = int(now if now is not None else time.time())
        claims = {
            "iss": self.client_id,
            "sub": self.client_id,
            "aud": self.config.url,
            "jti": uuid.uuid4().hex,
            "iat": issued_at,
            "exp": issued_at + self.config.token_lifetime,
        }
        return jwt.encode(
            claims,
            self._private_key,
            algorithm="RS256",
            headers={"kid": self.key_id},
        )

    async def fetch_token(self, scopes: list[str] | None = None) -> AccessToken:
        """Request a new access token.

        Args:
            scopes: Requested scopes; the migration requests none

        Raises:
            TokenAcquisitionError: If the service does not issue a token
        """
        form = {
            "grant_type": "client_credentials",
            "client_id": self.client_id,
            "client_assertion_type": CLIENT_ASSERTION_TYPE,
            "client_assertion": self.build_client_assertion(),
            "scope": " ".join(scopes or []),
        }

        try:
            response = await self.post(self.config.token_endpoint, data=form)
            payload = response.json()
        except ScimMigrationError as e:
            raise TokenAcquisitionError(f"Token request failed: {e}") from e
        except ValueError as e:
            raise TokenAcquisitionError(f"Token response is not JSON: {e}") from e

        token = payload.get("access_token") if isinstance(payload, dict) else None
        if not token:
            raise TokenAcquisitionError("Token response has no access_token")

        expires_in = payload.get("expires_in") or self.config.token_lifetime
        try:
            expires_at = time.time() + float(expires_in)
        except (TypeError, ValueError) as e:
            raise TokenAcquisitionError(f"Invalid expires_in: {expires_in!r}") from e

        logger.debug("access_token_issued", expires_in=expires_in)
        return AccessToken(value=token, expires_at=expires_at)

    async def get_access_token(self) -> str:
        """Return a freshly issued bearer token."""
        token = await self.fetch_token()
        return token.value


class CachingTokenProvider:
    """Shares one token between workers until it is about to expire.

    Refresh happens under a lock so concurrent workers trigger a single
    request to the token service.
    """

    def __init__(self, sts_client: STSClient, refresh_margin: float = 60.0):
        self.sts_client = sts_client
        self.refresh_margin = refresh_margin
        self._token: AccessToken | None = None
        self._lock = asyncio.Lock()

    async def get_access_token(self) -> str:
        async with self._lock:
            if self._token is None or not self._token.is_fresh(self.refresh_margin):
                logger.debug("access_token_refreshing")
                self._token = await self.sts_client.fetch_token()
            return self._token.value
