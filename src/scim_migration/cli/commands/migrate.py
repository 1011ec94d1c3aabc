"""
Migration execution command.

Reads credentials from a CSV file, splits them into batches and sends the
batches to the SCIM bulk endpoint with a pool of workers.
"""

import asyncio
from pathlib import Path

import click

from scim_migration.cli.context import MigrationContext
from scim_migration.cli.decorators import handle_errors, pass_context, requires_config
from scim_migration.cli.utils import (
    echo_error,
    echo_info,
    echo_success,
    echo_warning,
    format_count,
    format_duration,
    print_summary,
    print_table,
)
from scim_migration.client.sts_client import load_signing_key
from scim_migration.config import MigrationConfig
from scim_migration.migration.batcher import make_batches, make_run_prefix
from scim_migration.migration.coordinator import TerminationPolicy, run_migration
from scim_migration.migration.models import Batch
from scim_migration.migration.source import read_credentials
from scim_migration.reporting.sink import ResultSink, default_log_path
from scim_migration.utils.logging import get_logger

logger = get_logger(__name__)

# Rows shown by --dry-run before the plan is abbreviated
PLAN_PREVIEW_ROWS = 20


def _apply_overrides(
    config: MigrationConfig,
    concurrency: int | None,
    batch_size: int | None,
    batch_pause: float | None,
) -> MigrationConfig:
    """Return a copy of the config with command line overrides applied."""
    overrides = {
        key: value
        for key, value in (
            ("concurrency", concurrency),
            ("batch_size", batch_size),
            ("batch_pause", batch_pause),
        )
        if value is not None
    }
    if not overrides:
        return config

    performance = config.performance.model_copy(update=overrides)
    return config.model_copy(update={"performance": performance})


def _print_plan(batches: list[Batch]) -> None:
    rows = [[batch.bulk_id, len(batch)] for batch in batches[:PLAN_PREVIEW_ROWS]]
    if len(batches) > PLAN_PREVIEW_ROWS:
        rows.append([f"... {len(batches) - PLAN_PREVIEW_ROWS} more", ""])
    print_table("Batch Plan", ["Bulk ID", "Records"], rows)


@click.command(name="migrate")
@click.option(
    "--file",
    "-f",
    "file_path",
    type=click.Path(path_type=Path),
    required=True,
    help="CSV file with external id, email, password hash, salt",
)
@click.option(
    "--concurrency",
    "-n",
    type=click.IntRange(min=1, max=64),
    default=None,
    help="Number of workers (overrides performance.concurrency)",
)
@click.option(
    "--batch-size",
    type=click.IntRange(min=1, max=1000),
    default=None,
    help="Credentials per bulk request (overrides performance.batch_size)",
)
@click.option(
    "--batch-pause",
    type=click.FloatRange(min=0.0, max=60.0),
    default=None,
    help="Seconds each worker waits after a batch (overrides performance.batch_pause)",
)
@click.option(
    "--dry-run",
    "-d",
    is_flag=True,
    help="Build batches and check the signing key without sending anything",
)
@click.option(
    "--fail-fast",
    is_flag=True,
    help="Stop handing out batches after the first failed batch",
)
@click.option("--has-header", is_flag=True, help="Skip the first CSV row")
@click.option(
    "--results-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory for the per-run result log (overrides logging.results_dir)",
)
@pass_context
@requires_config
@handle_errors
def migrate(
    ctx: MigrationContext,
    file_path: Path,
    concurrency: int | None,
    batch_size: int | None,
    batch_pause: float | None,
    dry_run: bool,
    fail_fast: bool,
    has_header: bool,
    results_dir: Path | None,
) -> None:
    """Migrate credentials from a CSV file to the SCIM service.

    Examples:

        # Check what would be sent
        scim-bridge -c config.yaml migrate -f users.csv --dry-run

        # Migrate with 4 workers
        scim-bridge -c config.yaml migrate -f users.csv -n 4
    """
    config = _apply_overrides(ctx.config, concurrency, batch_size, batch_pause)
    performance = config.performance

    credentials = read_credentials(file_path, has_header=has_header)
    echo_info(f"Read {format_count(len(credentials))} credentials from {file_path}")

    batches = make_batches(credentials, capacity=performance.batch_size, prefix=make_run_prefix())
    logger.info(
        "batches_built",
        batches=len(batches),
        batch_size=performance.batch_size,
        records=len(credentials),
    )

    if dry_run:
        if config.sts.key_path:
            load_signing_key(config)
        else:
            echo_warning("Signing key is stored in Vault; not fetched during a dry run")
        _print_plan(batches)
        echo_success(
            f"Dry run: {len(batches)} batches of up to {performance.batch_size} records, "
            "nothing was sent"
        )
        return

    private_key = load_signing_key(config)

    if not batches:
        echo_warning("No credentials to migrate")
        return

    policy = TerminationPolicy.FAIL_FAST if fail_fast else TerminationPolicy.DRAIN
    log_path = default_log_path(results_dir or config.logging.results_dir)

    with ResultSink(log_path) as sink:
        summary = asyncio.run(
            run_migration(config, batches, sink, private_key=private_key, policy=policy)
        )

    click.echo()
    print_summary(summary)
    echo_info(f"Elapsed time {format_duration(summary.elapsed_seconds)}")
    echo_info(f"Result log: {log_path}")

    if summary.has_failures:
        if summary.failed_batch_ids:
            echo_error(f"Failed batches: {', '.join(summary.failed_batch_ids)}")
        if summary.skipped_batch_ids:
            echo_error(f"Skipped batches: {', '.join(summary.skipped_batch_ids)}")
        raise click.exceptions.Exit(1)

    echo_success("All batches sent")
