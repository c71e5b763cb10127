"""
Tests for the global exception handlers and error response format
"""

import json
from unittest.mock import MagicMock

import pytest

from app.exception_handlers import (
    GENERIC_SERVER_ERROR,
    create_error_response,
    grid_exception_handler,
    unhandled_exception_handler,
)
from app.exceptions import CodeExchangeError, DirectoryIntegrityError, DuplicateSlugError


@pytest.fixture
def request_mock():
    request = MagicMock()
    request.url.path = "/api/v1/auth/register-tenant"
    request.method = "POST"
    return request


def body_of(response) -> dict:
    return json.loads(response.body)["error"]


class TestCreateErrorResponse:
    def test_error_envelope(self):
        response = create_error_response(409, "Taken", error_code="CONFLICT", details={"field": "slug"}, path="/x")

        assert response.status_code == 409
        assert body_of(response) == {
            "status_code": 409,
            "message": "Taken",
            "type": "Conflict",
            "error_code": "CONFLICT",
            "details": {"field": "slug"},
            "path": "/x",
        }


class TestGridExceptionHandler:
    async def test_client_error_keeps_message(self, request_mock):
        response = await grid_exception_handler(request_mock, DuplicateSlugError("acme"))

        error = body_of(response)
        assert response.status_code == 409
        assert error["error_code"] == "CONFLICT_DUPLICATE_SLUG"
        assert error["details"]["value"] == "acme"

    async def test_storage_error_is_generic(self, request_mock):
        exc = DirectoryIntegrityError("duplicate key on pg_catalog", operation="integrity")

        response = await grid_exception_handler(request_mock, exc)

        error = body_of(response)
        assert response.status_code == 500
        assert error["message"] == GENERIC_SERVER_ERROR
        assert "details" not in error

    async def test_upstream_error_keeps_message(self, request_mock):
        response = await grid_exception_handler(request_mock, CodeExchangeError("google"))

        assert response.status_code == 502
        assert body_of(response)["error_code"] == "UPSTREAM_CODE_EXCHANGE_FAILED"


class TestUnhandledExceptionHandler:
    async def test_unhandled_is_generic(self, request_mock):
        response = await unhandled_exception_handler(request_mock, RuntimeError("boom"))

        assert response.status_code == 500
        assert body_of(response)["message"] == GENERIC_SERVER_ERROR
