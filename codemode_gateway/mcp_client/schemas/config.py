from __future__ import annotations

from enum import Enum
from typing import Dict, List, Optional

from pydantic import ConfigDict, Field

from .base import BaseSchema


class TransportType(str, Enum):
    SSE = "sse"
    HTTP = "http"


class HeaderPair(BaseSchema):
    key: str = Field(
        ...,
        description="HTTP header name sent on every request to the MCP server.",
        min_length=1,
        max_length=256,
        examples=["Authorization", "X-Api-Key"],
    )
    value: str = Field(
        ...,
        description="HTTP header value.",
        max_length=4096,
        examples=["Bearer ghp_exampletoken"],
    )


class ServerDescriptor(BaseSchema):
    """Connection parameters for one MCP tool server, supplied per request."""

    model_config = ConfigDict(frozen=True)

    type: TransportType = Field(
        ...,
        description=(
            "Transport kind. 'sse' keeps a persistent event stream open; 'http' uses the"
            " streamable HTTP request/response transport."
        ),
        examples=[TransportType.HTTP],
    )
    url: str = Field(
        ...,
        description="Endpoint URL of the MCP server.",
        min_length=1,
        max_length=2048,
        examples=["https://entrez-mcp-server.example.dev/mcp", "http://localhost:8082/sse"],
    )
    headers: List[HeaderPair] = Field(
        default_factory=list,
        description="Auth or routing headers attached to the connection.",
    )
    timeout_ms: Optional[int] = Field(
        None,
        description="Per-tool invocation timeout override in milliseconds. Falls back to the global default.",
        ge=1,
        examples=[15000],
    )
    name: Optional[str] = Field(
        None,
        description="Optional human-readable server name used in logs and docs.",
        max_length=128,
        examples=["Entrez"],
    )

    def header_dict(self) -> Dict[str, str]:
        return {h.key: h.value for h in self.headers}

    def cache_key(self) -> str:
        """Deterministic signature of transport, URL, sorted headers and timeout."""
        pairs = "&".join(sorted(f"{h.key}={h.value}" for h in self.headers))
        timeout = self.timeout_ms if self.timeout_ms else "def"
        return f"{self.type.value}:{self.url}?{pairs}&to={timeout}"
