"""
Unit tests for server exception handlers.

Tests cover the verbatim-body ``GatewayHTTPError`` handler and global
exception handling with various error types.
"""

import json
from unittest.mock import Mock, patch

import pytest
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from codemode_gateway.server.exception_handlers import GatewayHTTPError, setup_exception_handlers
from codemode_gateway.server.exception_handlers.global_handler import (
    gateway_http_error_handler,
    global_exception_handler,
)


@pytest.fixture
def mock_request():
    """Create a mock request object."""
    request = Mock(spec=Request)
    request.method = "POST"
    request.url.path = "/api/v1/codemode/proxy"
    request.query_params = {}
    request.client = Mock()
    request.client.host = "127.0.0.1"
    return request


class TestGatewayHTTPError:
    """Endpoint errors are rendered with their exact status and body."""

    def test_message_uses_error_field(self):
        assert str(GatewayHTTPError(400, {"error": "Missing tool name"})) == "Missing tool name"
        assert str(GatewayHTTPError(401, {})) == "401"

    @pytest.mark.asyncio
    async def test_handler_returns_body_verbatim(self, mock_request):
        content = {"error": "Tool 'x' not found", "errorCode": "TOOL_NOT_FOUND", "availableTools": []}
        response = await gateway_http_error_handler(mock_request, GatewayHTTPError(400, content))

        assert isinstance(response, JSONResponse)
        assert response.status_code == 400
        assert json.loads(response.body.decode()) == content


class TestGlobalExceptionHandler:
    """Test suite for global exception handler."""

    @pytest.mark.asyncio
    async def test_exception_handler_logs_error(self, mock_request):
        """Test that exception handler logs errors with request context."""
        exc = ValueError("Test error")

        with patch("codemode_gateway.server.exception_handlers.global_handler.logger") as mock_logger:
            await global_exception_handler(mock_request, exc)

            mock_logger.error.assert_called_once()
            call_args = mock_logger.error.call_args
            assert "Unhandled exception" in call_args[0][0]
            assert call_args[1]["exc_info"] is True
            extra = call_args[1]["extra"]
            assert extra["error_type"] == "ValueError"
            assert extra["method"] == "POST"
            assert extra["path"] == "/api/v1/codemode/proxy"
            assert extra["client"] == "127.0.0.1"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("exc", [RuntimeError("boom"), KeyError("k"), TypeError("t")])
    async def test_exception_handler_response(self, mock_request, exc):
        with patch("codemode_gateway.server.exception_handlers.global_handler.logger"):
            response = await global_exception_handler(mock_request, exc)

        assert response.status_code == 500
        body = json.loads(response.body.decode())
        assert body["detail"] == "Internal server error"
        assert body["error_type"] == type(exc).__name__
        assert isinstance(body["error_id"], int)

    @pytest.mark.asyncio
    async def test_exception_handler_handles_missing_client(self, mock_request):
        mock_request.client = None

        with patch("codemode_gateway.server.exception_handlers.global_handler.logger") as mock_logger:
            await global_exception_handler(mock_request, RuntimeError("x"))

        assert mock_logger.error.call_args[1]["extra"]["client"] == "unknown"


class TestSetupExceptionHandlers:
    """Test exception handler registration."""

    def test_setup_exception_handlers_registers_handlers(self):
        app = FastAPI()
        setup_exception_handlers(app)

        assert app.exception_handlers[GatewayHTTPError] is gateway_http_error_handler
        assert app.exception_handlers[Exception] is global_exception_handler
