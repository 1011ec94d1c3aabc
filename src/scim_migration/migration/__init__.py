"""
Migration module for SCIM Bridge.

This module provides the credential source, batching, the bulk request
codec, and the worker pool that sends batches to the SCIM service.
"""

from scim_migration.migration.batcher import make_batches, make_run_prefix
from scim_migration.migration.codec import (
    decode_bulk_response,
    encode_bulk_body,
    encode_bulk_request,
)
from scim_migration.migration.models import (
    Batch,
    BatchOutcome,
    BatchState,
    BulkRequest,
    BulkResponse,
    CredentialRecord,
    MigrationSummary,
)
from scim_migration.migration.source import read_credentials

__all__ = [
    # Models
    "Batch",
    "BatchOutcome",
    "BatchState",
    "BulkRequest",
    "BulkResponse",
    "CredentialRecord",
    "MigrationSummary",
    # Pipeline
    "read_credentials",
    "make_batches",
    "make_run_prefix",
    "encode_bulk_request",
    "encode_bulk_body",
    "decode_bulk_response",
]
