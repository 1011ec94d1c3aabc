"""Shared fixtures for SCIM Bridge tests."""

import asyncio
from pathlib import Path

import pytest
import yaml
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from scim_migration.client.exceptions import ServerError, TokenAcquisitionError
from scim_migration.migration.models import (
    Batch,
    BulkResponse,
    BulkResponseOperation,
    CredentialRecord,
)
from scim_migration.reporting.sink import ResultSink


def make_credentials(count: int, with_password: bool = True) -> list[CredentialRecord]:
    return [
        CredentialRecord(
            external_id=f"user-{i}",
            email=f"user{i}@example.com",
            password=f"$2y$12$hash{i}" if with_password else "",
            salt=f"salt{i}" if with_password else "",
        )
        for i in range(count)
    ]


def created_response(batch: Batch) -> BulkResponse:
    return BulkResponse(
        operations=[
            BulkResponseOperation(
                method="POST",
                bulk_id=batch.bulk_id,
                path="/Users",
                location=f"/Users/{cred.external_id}",
                status="201",
            )
            for cred in batch.credentials
        ]
    )


class StaticTokenProvider:
    """Token provider that counts calls and can be told to fail."""

    def __init__(self, token: str = "test-token", fail: bool = False):
        self.token = token
        self.fail = fail
        self.calls = 0

    async def get_access_token(self) -> str:
        self.calls += 1
        if self.fail:
            raise TokenAcquisitionError("token service unavailable")
        return self.token


class RecordingSender:
    """Bulk sender double that tracks concurrency and can fail chosen batches."""

    def __init__(self, fail_ids: set[str] | None = None, delay: float = 0.01):
        self.fail_ids = fail_ids or set()
        self.delay = delay
        self.in_flight = 0
        self.max_in_flight = 0
        self.sent: list[str] = []
        self.tokens: list[str] = []

    async def migrate_users(self, access_token: str, batch: Batch) -> BulkResponse:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
            self.sent.append(batch.bulk_id)
            self.tokens.append(access_token)
            if batch.bulk_id in self.fail_ids or not access_token:
                raise ServerError("Server error: boom", status_code=500)
            return created_response(batch)
        finally:
            self.in_flight -= 1


@pytest.fixture(scope="session")
def rsa_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture
def key_file(tmp_path: Path, rsa_key: rsa.RSAPrivateKey) -> Path:
    pem = rsa_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption(),
    )
    path = tmp_path / "sts.pem"
    path.write_bytes(pem)
    return path


@pytest.fixture
def config_data(key_file: Path) -> dict:
    return {
        "client_id": "migrator",
        "sts": {
            "url": "https://sts.example.com",
            "key_id": "key-1",
            "key_path": str(key_file),
        },
        "scim": {
            "url": "https://scim.example.com/",
            "global_entity_id": "FP_SG",
        },
        "performance": {"concurrency": 2, "batch_pause": 0},
    }


@pytest.fixture
def config_file(tmp_path: Path, config_data: dict) -> Path:
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump(config_data))
    return path


@pytest.fixture
def sink(tmp_path: Path):
    with ResultSink(tmp_path / "results" / "run.log", echo=False) as result_sink:
        yield result_sink
