"""MCP client layer: connections, schema normalization and tool invocation."""

from .connection_manager import ConnectionCache, McpConnectionManager, ToolSet
from .errors import (
    ConnectionEstablishError,
    McpClientError,
    ServerNotFoundError,
    ToolArgumentError,
    ToolInvocationError,
    ToolNotFoundError,
    ToolTimeoutError,
)
from .invoker import ToolDefinition, ToolInvoker
from .metrics import ToolMetricsStore
from .sanitizer import sanitize_schema, sanitize_tool_parameters
from .schemas import ServerDescriptor, TransportType
from .wrapper import EnumRetryPolicy, InvocationWrapper, WrappedTool

__all__ = [
    "ConnectionCache",
    "ConnectionEstablishError",
    "EnumRetryPolicy",
    "InvocationWrapper",
    "McpClientError",
    "McpConnectionManager",
    "ServerDescriptor",
    "ServerNotFoundError",
    "ToolArgumentError",
    "ToolDefinition",
    "ToolInvocationError",
    "ToolInvoker",
    "ToolMetricsStore",
    "ToolNotFoundError",
    "ToolSet",
    "ToolTimeoutError",
    "TransportType",
    "WrappedTool",
    "sanitize_schema",
    "sanitize_tool_parameters",
]
