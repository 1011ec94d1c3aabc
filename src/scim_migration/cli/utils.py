"""
Console output helpers for CLI commands.

Messages go through click so they respect CliRunner and colour settings;
tables are rendered with rich.
"""

from typing import Any

import click
from rich.console import Console
from rich.table import Table

from scim_migration.migration.models import MigrationSummary

console = Console()


def _echo(symbol: str, message: str, color: str, err: bool = False) -> None:
    click.secho(f"{symbol} {message}", fg=color, err=err)


def echo_success(message: str) -> None:
    _echo("✓", message, "green")


def echo_error(message: str) -> None:
    _echo("✗", message, "red", err=True)


def echo_warning(message: str) -> None:
    _echo("⚠", message, "yellow")


def echo_info(message: str) -> None:
    _echo("ℹ", message, "blue")


def format_duration(seconds: float) -> str:
    """Format a duration as "12.3s", "4m 5s" or "1h 2m 3s"."""
    if seconds < 60:
        return f"{seconds:.1f}s"

    minutes, secs = divmod(int(seconds), 60)
    if minutes < 60:
        return f"{minutes}m {secs}s"

    hours, minutes = divmod(minutes, 60)
    return f"{hours}h {minutes}m {secs}s"


def format_count(count: int) -> str:
    """Format large numbers with thousands separator (e.g. "1,234,567")."""
    return f"{count:,}"


def print_table(title: str, columns: list[str], rows: list[list[Any]]) -> None:
    """Print a rich table; every cell is rendered with str()."""
    table = Table(title=title)
    for column in columns:
        table.add_column(column)
    for row in rows:
        table.add_row(*(str(cell) for cell in row))
    console.print(table)


def print_summary(summary: MigrationSummary, title: str = "Migration Summary") -> None:
    """Print the run summary: batch counts first, then one row per SCIM status."""
    table = Table(title=title)
    table.add_column("Metric")
    table.add_column("Value", justify="right")

    for key, value in summary.to_stats().items():
        # Non-zero failure counts and non-2xx statuses stand out
        failing = value and (
            key in ("failed_batches", "skipped_batches", "records_unknown")
            or (key.startswith("status_") and not key.removeprefix("status_").startswith("2"))
        )
        label = key.replace("_", " ").title()
        cell = format_count(value) if isinstance(value, int) else str(value)
        table.add_row(label, cell, style="red" if failing else None)

    console.print(table)
