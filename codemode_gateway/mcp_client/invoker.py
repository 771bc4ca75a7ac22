"""Tool definitions and the single invocation capability.

Every tool, whatever transport it came from, is reached through one
``ToolInvoker.invoke(args)`` method. The adaptation from an MCP session to that
interface happens once, when the tool list is resolved.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Protocol, runtime_checkable

from .errors import ToolInvocationError
from .sanitizer import sanitize_schema
from .transport.mcp import McpConnection


def _error_text(result: Any) -> str:
    """First text block of an ``isError`` tool result."""
    for block in getattr(result, "content", None) or []:
        text = getattr(block, "text", None)
        if text:
            return text
    return "Tool reported an error"


@runtime_checkable
class ToolInvoker(Protocol):
    async def invoke(self, args: Dict[str, Any]) -> Any: ...


class SessionToolInvoker:
    """Calls one tool over a live ``McpConnection``."""

    def __init__(self, connection: McpConnection, tool_name: str) -> None:
        self._connection = connection
        self._tool_name = tool_name

    async def invoke(self, args: Dict[str, Any]) -> Any:
        res = await self._connection.session.call_tool(name=self._tool_name, arguments=args or {})
        if getattr(res, "isError", False):
            raise ToolInvocationError(self._connection.endpoint_url, self._tool_name, _error_text(res))
        return res.model_dump(by_alias=True, exclude_none=True) if hasattr(res, "model_dump") else res


@dataclass(frozen=True)
class ToolDefinition:
    """A discovered tool with its sanitized parameter schema."""

    name: str
    description: str
    parameters: Dict[str, Any]
    invoker: ToolInvoker
    server_url: Optional[str] = None
    raw_parameters: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mcp_tool(cls, tool: Any, invoker: ToolInvoker, *, server_url: Optional[str] = None) -> "ToolDefinition":
        raw = getattr(tool, "inputSchema", None)
        if raw is None and isinstance(tool, dict):
            raw = tool.get("inputSchema") or tool.get("parameters")
        name = tool.name if hasattr(tool, "name") else str(tool["name"])
        desc = getattr(tool, "description", None) if not isinstance(tool, dict) else tool.get("description")
        return cls(
            name=name,
            description=desc or "",
            parameters=sanitize_schema(raw),
            invoker=invoker,
            server_url=server_url,
            raw_parameters=dict(raw) if isinstance(raw, dict) else {},
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "description": self.description, "inputSchema": self.parameters}
