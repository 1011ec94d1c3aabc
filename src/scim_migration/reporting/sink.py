"""Result sink for batch status lines.

Every status line goes to the console and to an append-only per-run log
file. Writes are serialized so lines from different workers never
interleave. Batch outcomes are collected here for the final summary.
"""

import threading
from datetime import datetime
from pathlib import Path
from typing import Any, TextIO

import click

from scim_migration.migration.models import BatchOutcome, MigrationSummary
from scim_migration.utils.logging import get_logger

logger = get_logger(__name__)


def default_log_path(results_dir: str | Path, started_at: datetime | None = None) -> Path:
    """Per-run log file named after the RFC 3339 start time."""
    started_at = started_at or datetime.now().astimezone()
    return Path(results_dir) / f"{started_at.isoformat(timespec='seconds')}.log"


class ResultSink:
    """Line-atomic console + log file writer shared by all workers."""

    def __init__(self, log_path: str | Path | None = None, echo: bool = True):
        """Initialize the sink.

        Args:
            log_path: Append-only log file; no file is written when None
            echo: Also print lines to stdout
        """
        self.log_path = Path(log_path) if log_path else None
        self.echo = echo
        self._lock = threading.Lock()
        self._outcomes: list[BatchOutcome] = []
        self._file: TextIO | None = None

        if self.log_path is not None:
            self.log_path.parent.mkdir(parents=True, exist_ok=True)
            self._file = open(self.log_path, "a", encoding="utf-8")
            logger.info("result_log_opened", path=str(self.log_path))

    def emit(self, line: str) -> None:
        """Write one status line to every destination."""
        stamped = f"{datetime.now():%Y/%m/%d %H:%M:%S} {line}"
        with self._lock:
            if self.echo:
                click.echo(line)
            if self._file is not None:
                self._file.write(stamped + "\n")
                self._file.flush()

    def record(self, outcome: BatchOutcome) -> None:
        with self._lock:
            self._outcomes.append(outcome)

    @property
    def outcomes(self) -> list[BatchOutcome]:
        with self._lock:
            return list(self._outcomes)

    def summary(self, elapsed_seconds: float = 0.0) -> MigrationSummary:
        return MigrationSummary.from_outcomes(self.outcomes, elapsed_seconds)

    def close(self) -> None:
        with self._lock:
            if self._file is not None:
                self._file.close()
                self._file = None

    def __enter__(self) -> "ResultSink":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
