"""Credential source: read credential records from a CSV file.

Each row holds four columns in this order: external id, email, password
hash, salt. Password and salt may be empty.
"""

import csv
from collections.abc import Iterable
from pathlib import Path

from scim_migration.client.exceptions import SourceError
from scim_migration.migration.models import CredentialRecord
from scim_migration.utils.logging import get_logger

logger = get_logger(__name__)

CREDENTIAL_FIELDS = 4


def read_credentials(path: str | Path, has_header: bool = False) -> list[CredentialRecord]:
    """Read all credential records from a CSV file.

    Args:
        path: Path to the CSV file
        has_header: Skip the first row

    Returns:
        Credential records in file order

    Raises:
        SourceError: If the file cannot be read or a row is malformed
    """
    path = Path(path)
    if not path.is_file():
        raise SourceError(f"Credential file not found: {path}")

    try:
        with open(path, newline="", encoding="utf-8") as f:
            return parse_credentials(csv.reader(f), has_header=has_header, source=str(path))
    except (OSError, UnicodeDecodeError, csv.Error) as e:
        raise SourceError(f"Cannot read credential file {path}: {e}") from e


def parse_credentials(
    rows: Iterable[list[str]],
    has_header: bool = False,
    source: str = "<input>",
) -> list[CredentialRecord]:
    """Convert CSV rows into credential records."""
    credentials: list[CredentialRecord] = []

    for line_no, row in enumerate(rows, start=1):
        if has_header and line_no == 1:
            continue
        if not row or all(not cell.strip() for cell in row):
            continue
        if len(row) < CREDENTIAL_FIELDS:
            raise SourceError(
                f"{source}:{line_no}: expected {CREDENTIAL_FIELDS} fields, got {len(row)}"
            )

        external_id, email, password, salt = (cell.strip() for cell in row[:CREDENTIAL_FIELDS])
        credentials.append(
            CredentialRecord(external_id=external_id, email=email, password=password, salt=salt)
        )

    logger.info("credentials_read", source=source, count=len(credentials))
    return credentials
