"""
Decorators shared by the CLI commands.

Commands receive the MigrationContext instead of the click context, get
their configuration loaded up front, and have tool errors turned into an
exit status.
"""

import functools
from collections.abc import Callable

import click

from scim_migration.cli.context import MigrationContext
from scim_migration.client.exceptions import (
    APIError,
    AuthenticationError,
    ConfigurationError,
    ScimMigrationError,
    SourceError,
    TokenAcquisitionError,
)
from scim_migration.utils.logging import get_logger

logger = get_logger(__name__)

_KEY_HINT = "Please verify the client ID, key ID and signing key."

# Heading and hint per error class, most specific first
_MESSAGES: list[tuple[type[ScimMigrationError], str, str | None]] = [
    (SourceError, "Source Error", "Each row needs: external id, email, password hash, salt."),
    (ConfigurationError, "Configuration Error", "Please check your configuration file."),
    (AuthenticationError, "Authentication Error", _KEY_HINT),
    (TokenAcquisitionError, "Authentication Error", _KEY_HINT),
    (APIError, "API Error", None),
    (ScimMigrationError, "Error", None),
]


def pass_context(f: Callable) -> Callable:
    """Call the command with the MigrationContext stored on click's context."""

    @click.pass_context
    @functools.wraps(f)
    def wrapper(click_ctx: click.Context, *args, **kwargs):
        return f(click_ctx.obj, *args, **kwargs)

    return wrapper


def handle_errors(f: Callable) -> Callable:
    """
    Turn errors raised before or around dispatch into an exit status.

    Tool errors exit with their ``exit_code``:
        2: Configuration or credential source error
        3: Token or authentication error
        4: Other API error
        1: Anything else

    Failed batches are not errors here; the migrate command reports them
    and exits 1 itself.
    """

    @functools.wraps(f)
    def wrapper(*args, **kwargs):
        try:
            return f(*args, **kwargs)
        except click.exceptions.Exit:
            raise
        except ScimMigrationError as e:
            logger.error("command_failed", error_type=type(e).__name__, error=str(e))
            heading, hint = next((h, t) for cls, h, t in _MESSAGES if isinstance(e, cls))
            click.echo(f"{heading}: {e}", err=True)
            if isinstance(e, APIError) and e.status_code:
                click.echo(f"\nResponse status: {e.status_code}", err=True)
            if hint:
                click.echo(f"\n{hint}", err=True)
            raise click.exceptions.Exit(e.exit_code) from e
        except Exception as e:
            logger.error("command_crashed", error=str(e), exc_info=True)
            click.echo(f"Unexpected Error: {e}", err=True)
            click.echo("\nCheck the diagnostic log for details.", err=True)
            raise click.exceptions.Exit(1) from e

    return wrapper


def requires_config(f: Callable) -> Callable:
    """Load the configuration before the command runs; exit 2 if it cannot be."""

    @functools.wraps(f)
    def wrapper(ctx: MigrationContext, *args, **kwargs):
        if ctx.config_path is None:
            click.echo(
                "Error: Configuration file required. "
                "Use --config option or set SCIM_BRIDGE_CONFIG.",
                err=True,
            )
            raise click.exceptions.Exit(2)

        try:
            config = ctx.config
        except (ConfigurationError, OSError) as e:
            click.echo(f"Error loading configuration: {e}", err=True)
            raise click.exceptions.Exit(2) from e

        ctx.apply_logging(config)
        return f(ctx, *args, **kwargs)

    return wrapper
