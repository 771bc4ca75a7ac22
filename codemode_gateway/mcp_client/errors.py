from __future__ import annotations

from typing import Any, Dict, List, Optional


class McpClientError(Exception):
    pass


class ServerNotFoundError(McpClientError):
    def __init__(self, server_key: str, available: Optional[List[str]] = None) -> None:
        self.server_key = server_key
        self.available = list(available or [])
        suffix = f". Use one of: {', '.join(self.available)}" if self.available else ""
        super().__init__(f"Unknown server: '{server_key}'{suffix}")


class ToolNotFoundError(McpClientError):
    def __init__(self, server_key: str, tool_name: str, available: Optional[List[str]] = None) -> None:
        self.server_key = server_key
        self.tool_name = tool_name
        self.available = list(available or [])
        super().__init__(f"Tool '{tool_name}' not found on server '{server_key}'")


class ToolInvocationError(McpClientError):
    def __init__(
        self, server_key: str, tool_name: str, message: str, *, schema: Optional[Dict[str, Any]] = None
    ) -> None:
        self.server_key = server_key
        self.tool_name = tool_name
        self.reason = message
        self.schema = schema
        super().__init__(f"Tool invocation failed for '{tool_name}' on '{server_key}': {message}")


class ToolTimeoutError(McpClientError):
    def __init__(self, tool_name: str, timeout_ms: int) -> None:
        self.tool_name = tool_name
        self.timeout_ms = timeout_ms
        super().__init__(f"Tool '{tool_name}' timed out after {timeout_ms}ms")


class ToolArgumentError(McpClientError):
    """Arguments rejected by the structural schema check before a call is made."""

    def __init__(self, server_key: str, tool_name: str, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        self.server_key = server_key
        self.tool_name = tool_name
        self.details = dict(details or {})
        super().__init__(message)


class ConnectionEstablishError(McpClientError):
    def __init__(self, url: str, message: str) -> None:
        self.url = url
        super().__init__(f"Could not connect to MCP server '{url}': {message}")
