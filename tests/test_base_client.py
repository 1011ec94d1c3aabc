"""Tests for HTTP status mapping shared by the STS and SCIM clients."""

import httpx
import pytest

from scim_migration.client.base_client import error_detail, raise_for_status
from scim_migration.client.exceptions import (
    APIError,
    AuthenticationError,
    AuthorizationError,
    RateLimitError,
    ServerError,
)


class TestRaiseForStatus:
    @pytest.mark.parametrize(
        "status,error_class",
        [
            (401, AuthenticationError),
            (403, AuthorizationError),
            (429, RateLimitError),
            (500, ServerError),
            (503, ServerError),
            (400, APIError),
            (404, APIError),
        ],
    )
    def test_status_mapped_to_exception(self, status, error_class):
        with pytest.raises(error_class) as exc_info:
            raise_for_status(httpx.Response(status, text="nope"))

        assert type(exc_info.value) is error_class
        assert exc_info.value.status_code == status
        assert exc_info.value.detail == "nope"

    @pytest.mark.parametrize("status", [200, 201, 204, 302])
    def test_below_400_passes(self, status):
        raise_for_status(httpx.Response(status))


class TestErrorDetail:
    def test_oauth_error_description_preferred_over_error(self):
        response = httpx.Response(
            400, json={"error": "invalid_client", "error_description": "unknown kid"}
        )

        assert error_detail(response) == "unknown kid"

    def test_json_without_known_keys(self):
        assert error_detail(httpx.Response(400, json={"code": 7})) == ""

    def test_non_json_body_truncated(self):
        assert error_detail(httpx.Response(502, text="x" * 900), limit=100) == "x" * 100
