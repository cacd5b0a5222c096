"""
Unit Tests for Exception Handlers.

Handlers are called directly with mock requests; the returned
JSONResponse body is decoded and checked against the error envelope.
"""

import json
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
from fastapi.exceptions import RequestValidationError
from starlette.requests import Request

from crm.backend.core.exception_handlers import (
    _get_request_id,
    application_error_handler,
    unhandled_exception_handler,
    validation_error_handler,
)
from crm.backend.core.exceptions import (
    AuthenticationError,
    BadRequestError,
    ConflictError,
    DatabaseError,
    NotFoundError,
)


@pytest.fixture
def mock_request():
    request = MagicMock(spec=Request)
    request.url.path = "/api/v1/contacts"
    request.method = "POST"
    request.headers = {"x-request-id": "req-123"}
    del request.state.request_id
    return request


def _body(response) -> dict:
    return json.loads(response.body.decode())


class TestGetRequestId:
    def test_prefers_request_state(self):
        request = MagicMock(spec=Request)
        request.state.request_id = "state-1"
        request.headers = {"x-request-id": "header-1"}
        assert _get_request_id(request) == "state-1"

    def test_falls_back_to_header(self, mock_request):
        assert _get_request_id(mock_request) == "req-123"


class TestApplicationErrorHandler:
    @pytest.mark.parametrize(
        ("exc", "status", "code"),
        [
            (NotFoundError("Client not found"), 404, "RES_NOT_FOUND"),
            (BadRequestError("Contact is not archived"), 400, "REQ_BAD_REQUEST"),
            (AuthenticationError(), 401, "AUTH_UNAUTHORIZED"),
            (ConflictError("A category with this name already exists"), 409, "RES_CONFLICT"),
            (DatabaseError("down"), 503, None),
        ],
    )
    async def test_maps_exception_to_status(self, mock_request, exc, status, code):
        response = await application_error_handler(mock_request, exc)

        assert response.status_code == status
        body = _body(response)
        assert body["success"] is False
        assert body["error"]["message"] == exc.message
        assert body["metadata"]["request_id"] == "req-123"
        if code:
            assert body["error"]["code"] == code

    async def test_unauthorized_sets_bearer_challenge(self, mock_request):
        response = await application_error_handler(mock_request, AuthenticationError())
        assert response.headers["WWW-Authenticate"] == "Bearer"


class TestValidationErrorHandler:
    async def test_returns_422_with_field_paths(self, mock_request):
        exc = RequestValidationError(
            [{"loc": ("body", "client_ids"), "msg": "List should have at least 1 item", "type": "too_short"}]
        )
        response = await validation_error_handler(mock_request, exc)

        assert response.status_code == 422
        body = _body(response)
        assert body["error"]["code"] == "VAL_REQUEST_INVALID"
        errors = body["error"]["details"]["validation_errors"]
        assert errors[0]["field"] == "body.client_ids"
        assert errors[0]["type"] == "too_short"


class TestUnhandledExceptionHandler:
    def _config(self, detailed: bool):
        return SimpleNamespace(features=SimpleNamespace(api_detailed_errors=detailed))

    async def test_hides_internals_by_default(self, mock_request):
        with patch("crm.backend.core.config.get_app_config", return_value=self._config(False)):
            response = await unhandled_exception_handler(mock_request, RuntimeError("secret detail"))

        assert response.status_code == 500
        body = _body(response)
        assert body["error"]["code"] == "SYS_INTERNAL_ERROR"
        assert body["error"]["details"] is None
        assert "secret detail" not in response.body.decode()

    async def test_includes_exception_when_detailed_errors_enabled(self, mock_request):
        with patch("crm.backend.core.config.get_app_config", return_value=self._config(True)):
            response = await unhandled_exception_handler(mock_request, RuntimeError("boom"))

        details = _body(response)["error"]["details"]
        assert details == {"exception_type": "RuntimeError", "error": "boom"}
