"""Tests for the SCIM bulk client."""

import json

import httpx
import pytest

from scim_migration.client.exceptions import (
    APIError,
    AuthenticationError,
    DecodeError,
    NetworkError,
    ServerError,
)
from scim_migration.client.scim_client import BULK_ENDPOINT, SCIMClient
from scim_migration.config import SCIMConfig
from scim_migration.migration.models import Batch
from tests.conftest import make_credentials

SCIM_CONFIG = SCIMConfig(url="https://scim.example.com/", global_entity_id="FP_SG")


def _batch(count: int = 2) -> Batch:
    return Batch(bulk_id="run-0", credentials=tuple(make_credentials(count)))


def _bulk_response(request: httpx.Request, status: int = 200) -> httpx.Response:
    sent = json.loads(request.content)
    return httpx.Response(
        status,
        json={
            "schemas": ["urn:ietf:params:scim:api:messages:2.0:BulkResponse"],
            "Operations": [
                {
                    "method": "POST",
                    "bulkId": op["bulkId"],
                    "location": f"/Users/{op['data']['externalId']}",
                    "status": "201",
                }
                for op in sent["Operations"]
            ],
        },
    )


def _client(handler) -> SCIMClient:
    return SCIMClient(SCIM_CONFIG, client_id="migrator", transport=httpx.MockTransport(handler))


class TestMigrateUsers:
    """Sending batches to the bulk endpoint."""

    @pytest.mark.asyncio
    async def test_request_headers_and_url(self):
        seen: list[httpx.Request] = []

        def handler(request):
            seen.append(request)
            return _bulk_response(request)

        async with _client(handler) as client:
            await client.migrate_users("tok-123", _batch())

        request = seen[0]
        assert request.method == "POST"
        assert str(request.url) == f"https://scim.example.com{BULK_ENDPOINT}"
        assert request.headers["Authorization"] == "Bearer tok-123"
        assert request.headers["X-Global-Entity-ID"] == "FP_SG"
        assert request.headers["X-CLIENT-ID"] == "migrator"
        assert request.headers["Content-Type"] == "application/json"

    @pytest.mark.asyncio
    async def test_body_carries_one_operation_per_record(self):
        bodies = []

        def handler(request):
            bodies.append(json.loads(request.content))
            return _bulk_response(request)

        async with _client(handler) as client:
            await client.migrate_users("tok", _batch(3))

        operations = bodies[0]["Operations"]
        assert [op["data"]["externalId"] for op in operations] == ["user-0", "user-1", "user-2"]
        assert all(op["data"]["globalEntityId"] == "FP_SG" for op in operations)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [200, 201])
    async def test_success_statuses_return_response(self, status):
        async with _client(lambda r: _bulk_response(r, status)) as client:
            response = await client.migrate_users("tok", _batch(2))

        assert [op.status for op in response.operations] == ["201", "201"]
        assert response.operations[1].location == "/Users/user-1"

    @pytest.mark.asyncio
    async def test_other_2xx_is_an_error(self):
        async with _client(lambda r: httpx.Response(202, json={})) as client:
            with pytest.raises(APIError) as exc_info:
                await client.migrate_users("tok", _batch())

        assert exc_info.value.status_code == 202

    @pytest.mark.asyncio
    async def test_server_error(self):
        async with _client(lambda r: httpx.Response(500, json={"detail": "boom"})) as client:
            with pytest.raises(ServerError) as exc_info:
                await client.migrate_users("tok", _batch())

        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_unauthorized(self):
        async with _client(lambda r: httpx.Response(401, text="nope")) as client:
            with pytest.raises(AuthenticationError):
                await client.migrate_users("", _batch())

    @pytest.mark.asyncio
    async def test_malformed_body(self):
        async with _client(lambda r: httpx.Response(200, text="<html>")) as client:
            with pytest.raises(DecodeError):
                await client.migrate_users("tok", _batch())

    @pytest.mark.asyncio
    async def test_connection_failure(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        async with _client(handler) as client:
            with pytest.raises(NetworkError):
                await client.migrate_users("tok", _batch())

    @pytest.mark.asyncio
    async def test_undecodable_content_encoding(self):
        def handler(request):
            return httpx.Response(
                201, headers={"Content-Encoding": "gzip"}, stream=httpx.ByteStream(b"not gzip")
            )

        async with _client(handler) as client:
            with pytest.raises(NetworkError):
                await client.migrate_users("tok", _batch())

    @pytest.mark.asyncio
    async def test_error_detail_from_scim_body(self):
        body = {"schemas": ["urn:ietf:params:scim:api:messages:2.0:Error"], "detail": "bad entity"}

        async with _client(lambda r: httpx.Response(400, json=body)) as client:
            with pytest.raises(APIError) as exc_info:
                await client.migrate_users("tok", _batch())

        assert exc_info.value.detail == "bad entity"
        assert exc_info.value.exit_code == 4
