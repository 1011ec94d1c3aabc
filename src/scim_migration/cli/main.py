"""
``scim-bridge`` command group.

Global options select the configuration file and the diagnostic log; the
``config`` and ``migrate`` subcommands do the work.
"""

import sys
from pathlib import Path

import click
from dotenv import load_dotenv

from scim_migration import __version__
from scim_migration.cli.commands import config as config_commands
from scim_migration.cli.commands import migrate as migrate_commands
from scim_migration.cli.context import DEFAULT_LOG_FILE, MigrationContext
from scim_migration.utils.logging import configure_logging, get_logger

# ${VAR} references in the config may be satisfied from .env
load_dotenv()

logger = get_logger(__name__)


@click.group()
@click.version_option(version=__version__, prog_name="scim-bridge")
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Path to configuration file",
    envvar="SCIM_BRIDGE_CONFIG",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
    help="Console logging level (default: logging.level from config, else WARNING)",
    envvar="SCIM_BRIDGE_LOG_LEVEL",
)
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False, path_type=Path),
    help=f"Diagnostic log file (default: {DEFAULT_LOG_FILE})",
    envvar="SCIM_BRIDGE_LOG_FILE",
)
@click.pass_context
def cli(
    ctx: click.Context,
    config: Path | None,
    log_level: str | None,
    log_file: Path | None,
) -> None:
    """SCIM Bridge - Migrate user credentials into a SCIM identity service.

    Examples:

        # Validate configuration
        scim-bridge -c config.yaml config validate

        # Migrate credentials with 4 workers
        scim-bridge -c config.yaml migrate -f users.csv -n 4
    """
    ctx.obj = MigrationContext(
        config_path=config,
        log_level=log_level.upper() if log_level else None,
        log_file=log_file,
    )
    # Until a command loads the config, which may refine level and format
    configure_logging(level=log_level or "WARNING", log_file=ctx.obj.effective_log_file)

    logger.debug("cli_started", config=str(config) if config else None, log_level=log_level)


cli.add_command(config_commands.config)
cli.add_command(migrate_commands.migrate)


def main() -> int:
    """Console script entry point; returns the process exit status."""
    try:
        # Without standalone mode click returns the exit code of Exit
        rv = cli(standalone_mode=False)
        return rv if isinstance(rv, int) else 0
    except click.exceptions.Exit as e:
        return e.exit_code
    except click.ClickException as e:
        e.show()
        return e.exit_code
    except click.exceptions.Abort:
        click.echo("Aborted!", err=True)
        return 1
    except Exception as e:
        logger.error("Unexpected error", error=str(e), exc_info=True)
        click.echo(f"Error: {e}", err=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
