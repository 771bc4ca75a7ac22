"""MCP transports.

Wraps the ``mcp`` SDK's streamable HTTP and SSE clients behind one
``session(endpoint_url, headers=...)`` contract and provides ``McpConnection``,
which keeps a session open across requests.
"""

from .mcp import (
    AsyncMCPTransport,
    McpConnection,
    SseMCPTransport,
    StreamableHttpMCPTransport,
    connection_headers,
    transport_for,
)

__all__ = [
    "AsyncMCPTransport",
    "McpConnection",
    "SseMCPTransport",
    "StreamableHttpMCPTransport",
    "connection_headers",
    "transport_for",
]
