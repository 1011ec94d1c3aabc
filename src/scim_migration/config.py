"""Configuration for SCIM Bridge, loaded from YAML into Pydantic models.

Sections: ``sts`` (token service and signing key), ``scim`` (target
service), ``vault`` (optional key storage), ``performance`` (workers and
HTTP pool) and ``logging``. ``${VAR}`` values are taken from the
environment; ``SCIM_BRIDGE_*`` variables override settings.
"""

import os
from pathlib import Path
from typing import Annotated, Any, Literal

import yaml
from pydantic import (
    AfterValidator,
    BaseModel,
    BeforeValidator,
    Field,
    ValidationError,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

from scim_migration.client.exceptions import ConfigurationError

DEFAULT_BATCH_SIZE = 100


def _normalize_url(v: str) -> str:
    if not v.startswith(("http://", "https://")):
        raise ValueError("URL must start with http:// or https://")
    return v.rstrip("/")


def _not_blank(v: str) -> str:
    if not v.strip():
        raise ValueError("must not be blank")
    return v


ServiceUrl = Annotated[str, AfterValidator(_normalize_url)]
NonBlank = Annotated[str, AfterValidator(_not_blank)]
LogLevel = Annotated[
    Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
    BeforeValidator(lambda v: v.upper() if isinstance(v, str) else v),
]


class STSConfig(BaseModel):
    """Token issuance service and the key that signs client assertions."""

    url: ServiceUrl = Field(..., description="Token service base URL (also the JWT audience)")
    key_id: NonBlank = Field(..., description="Key ID placed in the client assertion header")
    key_path: str | None = Field(default=None, description="Path to PEM RSA private key")
    vault_key_path: str | None = Field(
        default=None, description="Vault KV path holding the PEM private key"
    )
    vault_key_field: str = Field(default="private_key", description="Field name inside the secret")
    token_endpoint: str = Field(default="/oauth2/token", description="Token endpoint path")
    token_lifetime: int = Field(
        default=600, ge=30, le=3600, description="Client assertion lifetime in seconds"
    )
    timeout: int = Field(default=30, ge=1, le=300, description="Token request timeout in seconds")
    cache_tokens: bool = Field(
        default=False,
        description="Share one token across workers until it nears expiry",
    )
    refresh_margin: int = Field(
        default=60,
        ge=0,
        le=600,
        description="Seconds before expiry at which a cached token is renewed",
    )

    @model_validator(mode="after")
    def one_key_source(self) -> "STSConfig":
        if bool(self.key_path) == bool(self.vault_key_path):
            raise ValueError("Set exactly one of sts.key_path or sts.vault_key_path")
        return self


class SCIMConfig(BaseModel):
    """SCIM identity service receiving the bulk requests."""

    url: ServiceUrl = Field(..., description="SCIM service base URL")
    global_entity_id: NonBlank = Field(..., description="Entity the migrated users belong to")
    verify_ssl: bool = Field(default=True, description="Verify TLS certificates")
    timeout: int = Field(default=60, ge=1, le=1200, description="Bulk request timeout in seconds")


class VaultConfig(BaseModel):
    """HashiCorp Vault AppRole login, used when the signing key lives in KV v2."""

    url: ServiceUrl = Field(..., description="Vault server URL")
    role_id: str = Field(..., description="AppRole Role ID")
    secret_id: str = Field(..., description="AppRole Secret ID")
    namespace: str | None = Field(default=None, description="Vault namespace (optional)")
    mount_point: str = Field(default="secret", description="KV v2 mount point")


class PerformanceConfig(BaseModel):
    """Worker count, batch shape and HTTP pool sizing."""

    concurrency: int = Field(default=1, ge=1, le=64, description="Number of migration workers")
    batch_size: int = Field(
        default=DEFAULT_BATCH_SIZE, ge=1, le=1000, description="Credentials per bulk request"
    )
    batch_pause: float = Field(
        default=1.0,
        ge=0.0,
        le=60.0,
        description="Seconds each worker waits after finishing a batch",
    )
    max_connections: int = Field(default=50, ge=1, le=200, description="HTTP pool size")
    max_keepalive_connections: int = Field(
        default=20, ge=1, le=200, description="HTTP keep-alive connections"
    )


class LoggingConfig(BaseModel):
    """Diagnostic logging; batch result lines are not affected."""

    level: LogLevel = Field(default="WARNING", description="Console log level")
    format: Literal["json", "console"] = Field(
        default="json", description="Diagnostic log file format"
    )
    results_dir: str = Field(default="logs", description="Directory for per-run result logs")
    log_payloads: bool = Field(
        default=False,
        description="Log redacted request/response bodies at DEBUG level",
    )
    max_payload_size: int = Field(
        default=10000,
        ge=100,
        le=1000000,
        description="Characters of a logged body kept before truncation",
    )


class MigrationConfig(BaseSettings):
    """Root configuration for a credential migration run."""

    model_config = SettingsConfigDict(
        env_prefix="SCIM_BRIDGE_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    client_id: NonBlank = Field(..., description="Client ID sent to STS and SCIM")
    sts: STSConfig
    scim: SCIMConfig
    vault: VaultConfig | None = Field(default=None)
    performance: PerformanceConfig = Field(default_factory=PerformanceConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @model_validator(mode="after")
    def vault_section_for_vault_key(self) -> "MigrationConfig":
        if self.sts.vault_key_path and self.vault is None:
            raise ValueError("sts.vault_key_path requires a vault section")
        return self


def load_config_from_yaml(config_path: str | Path) -> MigrationConfig:
    """Read, expand and validate a YAML configuration file.

    Raises:
        ConfigurationError: If the file is missing, empty, not YAML, refers
            to an unset environment variable, or fails validation
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise ConfigurationError(f"Configuration file not found: {config_path}")

    try:
        raw = yaml.safe_load(config_path.read_text())
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e
    if not raw:
        raise ConfigurationError(f"Empty configuration file: {config_path}")

    try:
        return MigrationConfig(**_expand_env_vars(raw))
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration in {config_path}: {e}") from e


def _expand_env_vars(data: Any) -> Any:
    """Replace whole-string ``${NAME}`` values, at any depth, with the variable's value."""
    if isinstance(data, dict):
        return {key: _expand_env_vars(value) for key, value in data.items()}
    if isinstance(data, list):
        return [_expand_env_vars(item) for item in data]
    if not (isinstance(data, str) and data.startswith("${") and data.endswith("}")):
        return data

    name = data[2:-1]
    if name not in os.environ:
        raise ConfigurationError(
            f"Environment variable '{name}' not found. Set it in the environment or a .env file."
        )
    return os.environ[name]
