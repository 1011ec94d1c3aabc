"""Bulk request codec.

Turns a batch of credentials into a SCIM bulk request and parses the bulk
response returned by the identity service.
"""

from pydantic import ValidationError

from scim_migration.client.exceptions import DecodeError, EncodeError
from scim_migration.migration.models import (
    Batch,
    BulkOperation,
    BulkRequest,
    BulkResponse,
    CredentialRecord,
    HashedPassword,
    UserData,
)


def encode_user(credential: CredentialRecord, global_entity_id: str) -> UserData:
    """Build the user payload; the password block only exists when a hash is present."""
    hashed_password = None
    if credential.has_password:
        hashed_password = HashedPassword(password=credential.password, salt=credential.salt)

    return UserData(
        external_id=credential.external_id,
        email=credential.email,
        global_entity_id=global_entity_id,
        hashed_password=hashed_password,
    )


def encode_bulk_request(batch: Batch, global_entity_id: str) -> BulkRequest:
    """Build a bulk request with one POST /Users operation per credential.

    Raises:
        EncodeError: If a credential cannot be represented on the wire
    """
    try:
        operations = [
            BulkOperation(bulk_id=batch.bulk_id, data=encode_user(cred, global_entity_id))
            for cred in batch.credentials
        ]
        return BulkRequest(operations=operations)
    except ValidationError as e:
        raise EncodeError(f"Cannot encode batch {batch.bulk_id}: {e}") from e


def encode_bulk_body(request: BulkRequest) -> bytes:
    """Serialize a bulk request to JSON bytes.

    Raises:
        EncodeError: If serialization fails
    """
    try:
        return request.model_dump_json(by_alias=True, exclude_none=True).encode("utf-8")
    except (ValueError, TypeError) as e:
        raise EncodeError(f"Cannot serialize bulk request: {e}") from e


def decode_bulk_response(body: bytes | str) -> BulkResponse:
    """Parse a bulk response body.

    Raises:
        DecodeError: If the body is not valid JSON or has the wrong shape
    """
    if not body:
        raise DecodeError("Empty bulk response body")

    try:
        return BulkResponse.model_validate_json(body)
    except ValidationError as e:
        raise DecodeError(f"Malformed bulk response: {e}") from e
