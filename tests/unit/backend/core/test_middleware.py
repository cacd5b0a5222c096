"""
Unit Tests for Request Context Middleware.

Covers request ID propagation, client IP resolution, timing headers
and structlog context handling.
"""

from unittest.mock import MagicMock, patch

import pytest
from starlette.requests import Request
from starlette.responses import Response

from crm.backend.core.middleware import RequestContextMiddleware, _client_ip


@pytest.fixture
def middleware():
    return RequestContextMiddleware(MagicMock())


@pytest.fixture
def mock_request():
    request = MagicMock(spec=Request)
    request.headers = {}
    request.method = "POST"
    request.url = MagicMock()
    request.url.path = "/api/v1/bulk/archive"
    request.client = MagicMock()
    request.client.host = "127.0.0.1"
    request.state = MagicMock()
    return request


@pytest.fixture(autouse=True)
def _quiet_request_logging():
    with patch("crm.backend.core.middleware._request_logging_enabled", return_value=False):
        yield


async def _ok(request):
    return Response(content="OK", status_code=200)


class TestClientIp:
    def test_prefers_first_forwarded_hop(self, mock_request):
        mock_request.headers = {"X-Forwarded-For": "203.0.113.7, 10.0.0.1"}
        assert _client_ip(mock_request) == "203.0.113.7"

    def test_falls_back_to_peer_address(self, mock_request):
        assert _client_ip(mock_request) == "127.0.0.1"

    def test_none_without_client(self, mock_request):
        mock_request.client = None
        assert _client_ip(mock_request) is None


class TestRequestId:
    async def test_generates_request_id_when_not_provided(self, middleware, mock_request):
        response = await middleware.dispatch(mock_request, _ok)

        request_id = response.headers["X-Request-ID"]
        assert len(request_id) == 36
        assert mock_request.state.request_id == request_id

    async def test_uses_provided_request_id(self, middleware, mock_request):
        mock_request.headers = {"X-Request-ID": "req-from-gateway"}

        response = await middleware.dispatch(mock_request, _ok)

        assert response.headers["X-Request-ID"] == "req-from-gateway"

    async def test_stores_client_ip_for_audit(self, middleware, mock_request):
        mock_request.headers = {"X-Forwarded-For": "198.51.100.2"}

        await middleware.dispatch(mock_request, _ok)

        assert mock_request.state.client_ip == "198.51.100.2"


class TestTiming:
    async def test_adds_response_time_header(self, middleware, mock_request):
        response = await middleware.dispatch(mock_request, _ok)
        assert response.headers["X-Response-Time"].endswith("ms")

    async def test_completion_logged_at_info_when_enabled(self, middleware, mock_request, mock_logger):
        with (
            patch("crm.backend.core.middleware._request_logging_enabled", return_value=True),
            patch("crm.backend.core.middleware.logger", mock_logger),
        ):
            await middleware.dispatch(mock_request, _ok)

        assert mock_logger.info.call_args.args[0] == "Request completed"


class TestStructlogContext:
    async def test_binds_request_context(self, middleware, mock_request):
        with patch("crm.backend.core.middleware.structlog.contextvars") as ctx:
            await middleware.dispatch(mock_request, _ok)

        bound = ctx.bind_contextvars.call_args.kwargs
        assert bound["method"] == "POST"
        assert bound["path"] == "/api/v1/bulk/archive"
        assert "request_id" in bound

    async def test_clears_context_and_reraises_on_exception(self, middleware, mock_request):
        async def failing(request):
            raise RuntimeError("handler failed")

        with patch("crm.backend.core.middleware.structlog.contextvars") as ctx:
            with pytest.raises(RuntimeError, match="handler failed"):
                await middleware.dispatch(mock_request, failing)

        assert ctx.clear_contextvars.call_count == 2
