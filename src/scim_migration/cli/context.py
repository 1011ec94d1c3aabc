"""
CLI context for SCIM Bridge.

This module provides the context object that is passed to all CLI commands.
"""

from dataclasses import dataclass, field
from pathlib import Path

from scim_migration.client.exceptions import ConfigurationError
from scim_migration.config import MigrationConfig, load_config_from_yaml
from scim_migration.utils.logging import configure_logging, get_logger

logger = get_logger(__name__)

DEFAULT_LOG_FILE = "logs/scim-bridge.log"


@dataclass
class MigrationContext:
    """
    Context object for CLI commands.

    Holds the configuration shared across commands. It is passed via
    Click's context mechanism.

    Attributes:
        config_path: Path to configuration file
        log_level: Console level from --log-level; the config's level when None
        log_file: Diagnostic log file from --log-file
        config: Loaded migration configuration
    """

    config_path: Path | None = None
    log_level: str | None = None
    log_file: Path | None = None

    # Lazy-loaded attributes
    _config: MigrationConfig | None = field(default=None, init=False, repr=False)

    @property
    def effective_log_file(self) -> str:
        return str(self.log_file) if self.log_file else DEFAULT_LOG_FILE

    @property
    def config(self) -> MigrationConfig:
        """Get or load migration configuration."""
        if self._config is None:
            if self.config_path is None:
                raise ConfigurationError(
                    "Configuration file path not provided. "
                    "Use --config option or set SCIM_BRIDGE_CONFIG environment variable."
                )

            logger.debug("Loading configuration", config_path=str(self.config_path))
            self._config = load_config_from_yaml(self.config_path)
            logger.debug("Configuration loaded successfully")

        return self._config

    def apply_logging(self, config: MigrationConfig) -> None:
        """Reconfigure logging with the config's level and file format.

        A level given on the command line wins over ``logging.level``.
        """
        configure_logging(
            level=self.log_level or config.logging.level,
            log_format=config.logging.format,
            log_file=self.effective_log_file,
        )
