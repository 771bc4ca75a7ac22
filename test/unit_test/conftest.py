from __future__ import annotations

import asyncio
import inspect
from contextlib import asynccontextmanager
from types import SimpleNamespace
from typing import Any, Callable, Dict, List, Optional

import pytest
from mcp import types as mcp_types


def make_tool(name: str, schema: Optional[Dict[str, Any]] = None, description: str = "") -> mcp_types.Tool:
    return mcp_types.Tool(
        name=name,
        description=description or f"{name} tool",
        inputSchema=schema if schema is not None else {"type": "object", "properties": {}},
    )


def text_result(text: str, *, is_error: bool = False) -> mcp_types.CallToolResult:
    return mcp_types.CallToolResult(content=[mcp_types.TextContent(type="text", text=text)], isError=is_error)


def structured_result(data: Dict[str, Any], text: str = "") -> mcp_types.CallToolResult:
    return mcp_types.CallToolResult(
        content=[mcp_types.TextContent(type="text", text=text or "structured")],
        structuredContent=data,
        isError=False,
    )


class FakeMcpSession:
    """Stands in for an initialized ``mcp.ClientSession``."""

    def __init__(self, tools: List[mcp_types.Tool], responder: Optional[Callable[..., Any]] = None) -> None:
        self.tools = list(tools)
        self.responder = responder
        self.calls: List[tuple] = []
        self.list_calls = 0

    async def list_tools(self) -> mcp_types.ListToolsResult:
        self.list_calls += 1
        return mcp_types.ListToolsResult(tools=self.tools)

    async def call_tool(self, name: str, arguments: Optional[Dict[str, Any]] = None) -> Any:
        args = dict(arguments or {})
        self.calls.append((name, args))
        if self.responder is None:
            return text_result("ok")
        result = self.responder(name, args)
        if inspect.isawaitable(result):
            result = await result
        return result


class FakeMcpTransport:
    """Hands out fake sessions per URL and records opens, closes and headers."""

    def __init__(
        self,
        sessions: Dict[str, FakeMcpSession],
        *,
        failures: Optional[Dict[str, BaseException]] = None,
        delays: Optional[Dict[str, float]] = None,
    ) -> None:
        self.sessions = sessions
        self.failures = dict(failures or {})
        self.delays = dict(delays or {})
        self.opened: List[str] = []
        self.closed: List[str] = []
        self.headers: Dict[str, Dict[str, str]] = {}

    def session(self, endpoint_url: str, *, headers: Optional[Dict[str, str]] = None):
        @asynccontextmanager
        async def _cm():
            self.opened.append(endpoint_url)
            self.headers[endpoint_url] = dict(headers or {})
            delay = self.delays.get(endpoint_url)
            if delay:
                await asyncio.sleep(delay)
            failure = self.failures.get(endpoint_url)
            if failure is not None:
                raise failure
            try:
                yield self.sessions[endpoint_url]
            finally:
                self.closed.append(endpoint_url)

        return _cm()


@pytest.fixture
def fake_mcp() -> SimpleNamespace:
    """Fake MCP building blocks: sessions, a transport and result factories."""
    return SimpleNamespace(
        Session=FakeMcpSession,
        Transport=FakeMcpTransport,
        tool=make_tool,
        text=text_result,
        structured=structured_result,
    )
