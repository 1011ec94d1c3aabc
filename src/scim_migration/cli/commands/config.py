"""
Configuration management commands.

This module provides commands for validating the migration configuration.
"""

import asyncio
import time

import click

from scim_migration.cli.context import MigrationContext
from scim_migration.cli.decorators import handle_errors, pass_context, requires_config
from scim_migration.cli.utils import echo_info, echo_success, format_duration, print_table
from scim_migration.client.sts_client import STSClient, load_signing_key
from scim_migration.config import MigrationConfig
from scim_migration.utils.logging import get_logger

logger = get_logger(__name__)


@click.group(name="config")
def config() -> None:
    """Configuration management commands."""
    pass


@config.command(name="validate")
@click.option(
    "--check-connectivity",
    is_flag=True,
    help="Request one access token from the token service",
)
@pass_context
@requires_config
@handle_errors
def validate(ctx: MigrationContext, check_connectivity: bool) -> None:
    """Validate migration configuration.

    Checks that required fields are present, URLs are well formed, and the
    STS signing key can be loaded. With --check-connectivity a token is
    requested from the token service.

    Examples:

        scim-bridge -c config.yaml config validate

        scim-bridge -c config.yaml config validate --check-connectivity
    """
    echo_info(f"Validating configuration: {ctx.config_path}")
    cfg = ctx.config

    click.echo()
    _display_config_summary(cfg)

    echo_info("Loading signing key...")
    private_key = load_signing_key(cfg)
    echo_success(f"Signing key loaded ({private_key.key_size} bit RSA)")

    if check_connectivity:
        echo_info("Requesting access token...")
        expires_in = asyncio.run(_check_token(cfg, private_key))
        echo_success(f"Token service issued a token valid for {format_duration(expires_in)}")

    click.echo()
    echo_success("Configuration is valid!")


async def _check_token(cfg: MigrationConfig, private_key) -> float:
    async with STSClient(cfg.sts, client_id=cfg.client_id, private_key=private_key) as sts:
        token = await sts.fetch_token()
    return max(token.expires_at - time.time(), 0.0)


def _display_config_summary(cfg: MigrationConfig) -> None:
    """Display configuration summary."""
    key_source = cfg.sts.key_path or f"vault:{cfg.sts.vault_key_path}#{cfg.sts.vault_key_field}"
    rows = [
        ["Client ID", cfg.client_id],
        ["STS URL", cfg.sts.url],
        ["STS Key ID", cfg.sts.key_id],
        ["Signing Key", key_source],
        ["Token Caching", "on" if cfg.sts.cache_tokens else "off"],
        ["SCIM URL", cfg.scim.url],
        ["Global Entity ID", cfg.scim.global_entity_id],
        ["Workers", cfg.performance.concurrency],
        ["Batch Size", cfg.performance.batch_size],
        ["Batch Pause (s)", cfg.performance.batch_pause],
        ["Results Dir", cfg.logging.results_dir],
    ]

    print_table(
        "Configuration Summary",
        ["Setting", "Value"],
        rows,
    )
