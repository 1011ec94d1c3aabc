"""Signing key retrieval from HashiCorp Vault.

The STS signing key can live in a KV v2 secret instead of a PEM file. The
client logs in with AppRole when it is built and reads the secret once,
before any batch is dispatched.
"""

from typing import Any

import hvac
from hvac.exceptions import VaultError as HvacVaultError

from scim_migration.client.exceptions import VaultAuthenticationError, VaultError
from scim_migration.config import VaultConfig
from scim_migration.utils.logging import get_logger

logger = get_logger(__name__)


class VaultClient:
    """AppRole-authenticated reader for KV v2 secrets."""

    def __init__(self, config: VaultConfig, client: hvac.Client | None = None):
        """
        Args:
            config: Vault address, namespace, mount point and AppRole credentials
            client: Pre-built hvac client (used by tests)

        Raises:
            VaultAuthenticationError: If the AppRole login is refused
        """
        self.config = config
        self.mount_point = config.mount_point
        self.client = client or hvac.Client(url=config.url, namespace=config.namespace)
        self._login()

    def _login(self) -> None:
        try:
            auth = self.client.auth.approle.login(
                role_id=self.config.role_id,
                secret_id=self.config.secret_id,
            )["auth"]
        except HvacVaultError as e:
            logger.error("vault_login_failed", url=self.config.url, error=str(e))
            raise VaultAuthenticationError(f"Vault AppRole login failed: {e}") from e

        self.client.token = auth["client_token"]
        logger.info(
            "vault_login_succeeded",
            url=self.config.url,
            namespace=self.config.namespace,
            lease_duration=auth.get("lease_duration"),
        )

    def read_secret(self, path: str) -> dict[str, Any]:
        """Return the data of the latest version of the secret at ``path``.

        Raises:
            VaultError: If the secret cannot be read
        """
        path = path.strip("/")
        try:
            response = self.client.secrets.kv.v2.read_secret_version(
                path=path,
                mount_point=self.mount_point,
                raise_on_deleted_version=True,
            )
        except HvacVaultError as e:
            logger.error("vault_read_failed", path=path, error=str(e))
            raise VaultError(f"Failed to read secret {path}: {e}") from e

        data = response.get("data", {}).get("data", {})
        # Field names only; values are key material
        logger.info("vault_secret_read", path=path, fields=sorted(data))
        return data

    def read_field(self, path: str, field: str) -> str:
        """Return one field of a secret, e.g. the PEM signing key.

        Raises:
            VaultError: If the secret or the field is missing
        """
        data = self.read_secret(path)
        if field not in data:
            raise VaultError(f"Secret {path.strip('/')} has no field '{field}'")
        return data[field]

    def close(self) -> None:
        self.client.adapter.close()
