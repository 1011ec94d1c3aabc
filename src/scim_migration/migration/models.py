"""Data models for the credential migration pipeline.

Plain dataclasses describe the records moving through the pipeline
(credentials, batches, outcomes). Pydantic models describe the SCIM bulk
wire format exchanged with the identity service.
"""

from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

BULK_REQUEST_SCHEMA = "urn:ietf:params:scim:api:messages:2.0:BulkRequest"
BULK_RESPONSE_SCHEMA = "urn:ietf:params:scim:api:messages:2.0:BulkResponse"
USER_SCHEMA = "urn:ietf:params:scim:schemas:core:2.0:User"

DEFAULT_LANGUAGE = "en-US"
CRYPT_ALGORITHM = "bcrypt"
USERS_PATH = "/Users"


@dataclass(frozen=True)
class CredentialRecord:
    """One user to migrate, as read from the credential source."""

    external_id: str
    email: str
    password: str = ""
    salt: str = ""

    @property
    def has_password(self) -> bool:
        return self.password != ""


@dataclass(frozen=True)
class Batch:
    """A bounded group of credentials sent in a single bulk request."""

    bulk_id: str
    credentials: tuple[CredentialRecord, ...]

    def __len__(self) -> int:
        return len(self.credentials)


class BatchState(Enum):
    """Final state of a batch after the worker is done with it."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"  # Per-record outcomes are unknown
    SKIPPED = "skipped"  # Never attempted (fail-fast stop)


# --- SCIM bulk wire format ---


class HashedPassword(BaseModel):
    """Password block for a user that already has a password hash."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    password: str
    crypt_algorithm: str = Field(default=CRYPT_ALGORITHM, alias="cryptAlgorithm")
    salt: str


class UserData(BaseModel):
    """SCIM user payload for a single bulk operation."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    schemas: list[str] = Field(default_factory=lambda: [USER_SCHEMA])
    external_id: str = Field(alias="externalId")
    email: str
    global_entity_id: str = Field(alias="globalEntityId")
    hashed_password: HashedPassword | None = Field(default=None, alias="hashedPassword")
    preferred_language: str = Field(default=DEFAULT_LANGUAGE, alias="preferredLanguage")


class BulkOperation(BaseModel):
    """One create instruction inside a bulk request."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    method: str = "POST"
    path: str = USERS_PATH
    bulk_id: str = Field(alias="bulkId")
    data: UserData


class BulkRequest(BaseModel):
    """SCIM bulk request envelope."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    schemas: list[str] = Field(default_factory=lambda: [BULK_REQUEST_SCHEMA])
    operations: list[BulkOperation] = Field(alias="Operations")


class BulkResponseOperation(BaseModel):
    """Outcome of one operation as reported by the identity service."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    method: str = ""
    bulk_id: str = Field(default="", validation_alias=AliasChoices("bulkId", "bulk_id"))
    path: str = ""
    location: str = ""
    status: str = ""

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, v: Any) -> str:
        """Accept "201", 201, or {"code": "201"}."""
        if isinstance(v, dict):
            v = v.get("code", "")
        if v is None:
            return ""
        return str(v)


class BulkResponse(BaseModel):
    """SCIM bulk response envelope."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    schemas: list[str] = Field(default_factory=list)
    operations: list[BulkResponseOperation] = Field(
        default_factory=list,
        validation_alias=AliasChoices("operations", "Operations"),
    )


# --- Outcomes ---


@dataclass
class BatchOutcome:
    """Result of processing one batch."""

    bulk_id: str
    record_count: int
    state: BatchState
    statuses: list[BulkResponseOperation] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def is_success(self) -> bool:
        return self.state is BatchState.SUCCEEDED


@dataclass
class MigrationSummary:
    """Aggregated view over every batch outcome of a run."""

    total_batches: int = 0
    total_records: int = 0
    succeeded_batches: int = 0
    failed_batch_ids: list[str] = field(default_factory=list)
    skipped_batch_ids: list[str] = field(default_factory=list)
    records_reported: int = 0
    records_unknown: int = 0
    status_counts: Counter = field(default_factory=Counter)
    elapsed_seconds: float = 0.0

    @property
    def has_failures(self) -> bool:
        return bool(self.failed_batch_ids or self.skipped_batch_ids)

    @classmethod
    def from_outcomes(
        cls, outcomes: list[BatchOutcome], elapsed_seconds: float = 0.0
    ) -> "MigrationSummary":
        summary = cls(elapsed_seconds=elapsed_seconds)
        for outcome in outcomes:
            summary.total_batches += 1
            summary.total_records += outcome.record_count
            if outcome.state is BatchState.SUCCEEDED:
                summary.succeeded_batches += 1
                summary.records_reported += len(outcome.statuses)
                summary.status_counts.update(op.status for op in outcome.statuses)
            elif outcome.state is BatchState.FAILED:
                summary.failed_batch_ids.append(outcome.bulk_id)
                summary.records_unknown += outcome.record_count
            else:
                summary.skipped_batch_ids.append(outcome.bulk_id)
                summary.records_unknown += outcome.record_count
        return summary

    def to_stats(self) -> dict[str, Any]:
        """Flatten into rows for the CLI statistics table."""
        stats: dict[str, Any] = {
            "total_batches": self.total_batches,
            "total_records": self.total_records,
            "succeeded_batches": self.succeeded_batches,
            "failed_batches": len(self.failed_batch_ids),
            "skipped_batches": len(self.skipped_batch_ids),
            "records_reported": self.records_reported,
            "records_unknown": self.records_unknown,
        }
        for status, count in sorted(self.status_counts.items()):
            stats[f"status_{status or 'empty'}"] = count
        return stats
