"""Split credential records into fixed-size batches with run-unique IDs."""

from collections.abc import Sequence
from datetime import datetime

from scim_migration.config import DEFAULT_BATCH_SIZE
from scim_migration.migration.models import Batch, CredentialRecord


def make_run_prefix(now: datetime | None = None) -> str:
    """Build the run-scoped prefix for batch IDs from the start time."""
    d = now or datetime.now()
    return f"{d.year}-{d.month}-{d.day}-{d:%H%M%S}"


def make_batches(
    credentials: Sequence[CredentialRecord],
    capacity: int = DEFAULT_BATCH_SIZE,
    prefix: str | None = None,
) -> list[Batch]:
    """Partition credentials into batches of at most ``capacity`` records.

    Batches keep input order. Every batch but the last holds exactly
    ``capacity`` records; empty input yields no batches. IDs are
    ``<prefix>-<sequence>`` with the sequence starting at 0.

    Raises:
        ValueError: If capacity is not positive
    """
    if capacity <= 0:
        raise ValueError(f"Batch capacity must be positive, got {capacity}")

    if prefix is None:
        prefix = make_run_prefix()

    return [
        Batch(
            bulk_id=f"{prefix}-{sequence}",
            credentials=tuple(credentials[start : start + capacity]),
        )
        for sequence, start in enumerate(range(0, len(credentials), capacity))
    ]
