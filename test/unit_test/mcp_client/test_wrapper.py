from __future__ import annotations

import asyncio
import json
from types import SimpleNamespace
from typing import Any, Dict, List

import pytest

from codemode_gateway.mcp_client.errors import ToolTimeoutError
from codemode_gateway.mcp_client.invoker import SessionToolInvoker, ToolDefinition, ToolInvoker
from codemode_gateway.mcp_client.metrics import ToolMetricsStore
from codemode_gateway.mcp_client.schemas.core import InvocationStatus
from codemode_gateway.mcp_client.wrapper import (
    DEFAULT_TOOL_TIMEOUT_MS,
    EnumRetryPolicy,
    InvocationWrapper,
    adapt_args,
    adapt_graphql_args,
    is_enum_violation,
    resolve_default_timeout_ms,
)

MODE_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "q": {"type": "string"},
        "mode": {"type": "string", "enum": ["fast", "full"]},
    },
}


class _ScriptedInvoker:
    def __init__(self, handler) -> None:
        self.handler = handler
        self.calls: List[Dict[str, Any]] = []

    async def invoke(self, args: Dict[str, Any]) -> Any:
        self.calls.append(dict(args))
        result = self.handler(args)
        if asyncio.iscoroutine(result):
            result = await result
        return result


def _definition(name: str, invoker: _ScriptedInvoker, schema: Dict[str, Any] = MODE_SCHEMA) -> ToolDefinition:
    return ToolDefinition(name=name, description="", parameters=schema, invoker=invoker)


def test_scripted_invoker_satisfies_protocol() -> None:
    assert isinstance(_ScriptedInvoker(lambda a: None), ToolInvoker)


@pytest.mark.parametrize(
    "raw,expected",
    [
        (None, DEFAULT_TOOL_TIMEOUT_MS),
        ("abc", DEFAULT_TOOL_TIMEOUT_MS),
        ("1000", DEFAULT_TOOL_TIMEOUT_MS),
        ("1001", 1001),
        ("45000", 45000),
    ],
)
def test_resolve_default_timeout_ms(raw, expected) -> None:
    assert resolve_default_timeout_ms(raw) == expected


def test_adapt_args_resolves_required_enum_and_drops_other_empty_strings() -> None:
    schema = dict(MODE_SCHEMA, required=["mode"])
    args = {"q": "", "mode": "", "limit": 5}
    assert adapt_args(args, schema) == {"mode": "fast", "limit": 5}
    assert args == {"q": "", "mode": "", "limit": 5}


def test_adapt_args_reads_const_members() -> None:
    schema = {
        "type": "object",
        "properties": {"kind": {"oneOf": [{"const": "gene"}, {"const": "protein"}]}},
        "required": ["kind"],
    }
    assert adapt_args({"kind": ""}, schema) == {"kind": "gene"}


def test_adapt_graphql_args_fills_variables_json() -> None:
    assert adapt_graphql_args({"query": "{ a }"})["variables_json"] == "{}"
    out = adapt_graphql_args({"query": "{ a }", "variables": {"id": 1}})
    assert json.loads(out["variables_json"]) == {"id": 1}
    out = adapt_graphql_args({"query": "{ a }", "variables_json": '{"id": 2}'})
    assert out["variables"] == {"id": 2}


def test_is_enum_violation() -> None:
    assert is_enum_violation("Input should be 'a' [type=enum]")
    assert is_enum_violation("invalid_enum_value at mode")
    assert not is_enum_violation("connection reset")


@pytest.mark.asyncio
async def test_invoke_success_records_metric() -> None:
    metrics = ToolMetricsStore()
    invoker = _ScriptedInvoker(lambda a: {"rows": [1, 2]})
    tool = InvocationWrapper(metrics).wrap(_definition("search", invoker))

    assert await tool.invoke({"q": "p53", "mode": ""}) == {"rows": [1, 2]}
    assert invoker.calls == [{"q": "p53"}]

    m = metrics.get("search")
    assert m is not None
    assert (m.count, m.success, m.error, m.timeout) == (1, 1, 0, 0)
    assert m.last_status is InvocationStatus.SUCCESS


@pytest.mark.asyncio
async def test_invoke_none_result_becomes_ok() -> None:
    tool = InvocationWrapper(ToolMetricsStore()).wrap(_definition("noop", _ScriptedInvoker(lambda a: None)))
    assert await tool.invoke() == {"ok": True}


@pytest.mark.asyncio
async def test_invoke_failure_returns_error_value() -> None:
    metrics = ToolMetricsStore()

    def boom(args):
        raise RuntimeError("backend unavailable")

    tool = InvocationWrapper(metrics).wrap(_definition("search", _ScriptedInvoker(boom)))

    assert await tool.invoke({"q": "x"}) == {"error": "backend unavailable"}
    m = metrics.get("search")
    assert (m.count, m.error) == (1, 1)
    assert m.last_error == "backend unavailable"


@pytest.mark.asyncio
async def test_invoke_timeout_raises_and_records_timeout() -> None:
    metrics = ToolMetricsStore()

    async def slow(args):
        await asyncio.sleep(1.0)
        return "late"

    tool = InvocationWrapper(metrics).wrap(_definition("slow", _ScriptedInvoker(slow)), timeout_ms=50)

    with pytest.raises(ToolTimeoutError) as exc_info:
        await tool.invoke({})
    assert exc_info.value.timeout_ms == 50
    m = metrics.get("slow")
    assert (m.count, m.timeout, m.success) == (1, 1, 0)
    assert m.last_status is InvocationStatus.TIMEOUT


@pytest.mark.asyncio
async def test_enum_violation_retries_once_with_first_value() -> None:
    metrics = ToolMetricsStore()

    def handler(args):
        if "mode" not in args:
            raise ValueError("mode: invalid_enum_value")
        return {"mode": args["mode"]}

    invoker = _ScriptedInvoker(handler)
    tool = InvocationWrapper(metrics).wrap(_definition("search", invoker))

    assert await tool.invoke({"q": "x", "mode": ""}) == {"mode": "fast"}
    assert invoker.calls == [{"q": "x"}, {"q": "x", "mode": "fast"}]
    m = metrics.get("search")
    assert (m.count, m.success, m.error) == (1, 1, 0)


@pytest.mark.asyncio
async def test_enum_substitution_disabled_by_policy() -> None:
    metrics = ToolMetricsStore()

    def handler(args):
        raise ValueError("mode: invalid_enum_value")

    invoker = _ScriptedInvoker(handler)
    tool = InvocationWrapper(metrics, enum_policy=EnumRetryPolicy.NONE).wrap(_definition("search", invoker))

    assert await tool.invoke({"q": "x", "mode": ""}) == {"error": "mode: invalid_enum_value"}
    assert invoker.calls == [{"q": "x"}, {"q": "x"}]
    m = metrics.get("search")
    assert (m.count, m.error) == (1, 1)


@pytest.mark.asyncio
async def test_enum_violation_without_empty_field_still_retries_once() -> None:
    metrics = ToolMetricsStore()

    def handler(args):
        raise ValueError("mode: invalid_enum_value, expected 'fast' | 'full'")

    invoker = _ScriptedInvoker(handler)
    tool = InvocationWrapper(metrics).wrap(_definition("search", invoker))

    result = await tool.invoke({"mode": "A"})
    assert result == {"error": "mode: invalid_enum_value, expected 'fast' | 'full'"}
    assert invoker.calls == [{"mode": "A"}, {"mode": "A"}]
    assert metrics.get("search").error == 1


@pytest.mark.asyncio
async def test_failed_retry_returns_second_error() -> None:
    calls = {"n": 0}

    def handler(args):
        calls["n"] += 1
        if calls["n"] == 1:
            raise ValueError("invalid enum")
        raise RuntimeError("still broken")

    tool = InvocationWrapper(ToolMetricsStore()).wrap(_definition("search", _ScriptedInvoker(handler)))
    assert await tool.invoke({"mode": ""}) == {"error": "still broken"}


@pytest.mark.asyncio
async def test_graphql_tools_get_variables_json() -> None:
    invoker = _ScriptedInvoker(lambda a: {"data": {}})
    schema = {"type": "object", "properties": {"query": {"type": "string"}}}
    tool = InvocationWrapper(ToolMetricsStore()).wrap(_definition("gdc_graphql_query", invoker, schema))

    await tool.invoke({"query": "{ cases { id } }", "variables": {"first": 1}})
    assert json.loads(invoker.calls[0]["variables_json"]) == {"first": 1}


def test_wrapper_uses_default_timeout_when_no_override() -> None:
    wrapper = InvocationWrapper(ToolMetricsStore(), default_timeout_ms=12000)
    invoker = _ScriptedInvoker(lambda a: None)
    assert wrapper.wrap(_definition("a", invoker)).timeout_ms == 12000
    assert wrapper.wrap(_definition("a", invoker), timeout_ms=500).timeout_ms == 500


@pytest.mark.asyncio
async def test_is_error_result_counts_as_failure_and_gets_enum_retry(fake_mcp) -> None:
    session = fake_mcp.Session(
        [fake_mcp.tool("search", MODE_SCHEMA)],
        lambda name, args: fake_mcp.text("mode: invalid_enum_value", is_error=True),
    )
    connection = SimpleNamespace(session=session, endpoint_url="http://mock/entrez/mcp")
    definition = ToolDefinition(
        name="search", description="", parameters=MODE_SCHEMA, invoker=SessionToolInvoker(connection, "search")
    )
    metrics = ToolMetricsStore()
    tool = InvocationWrapper(metrics).wrap(definition)

    result = await tool.invoke({"q": "x", "mode": ""})

    assert "mode: invalid_enum_value" in result["error"]
    assert session.calls == [("search", {"q": "x"}), ("search", {"q": "x", "mode": "fast"})]
    m = metrics.get("search")
    assert (m.count, m.success, m.error) == (1, 0, 1)


@pytest.mark.asyncio
async def test_successful_session_result_is_dumped(fake_mcp) -> None:
    session = fake_mcp.Session([fake_mcp.tool("search")], lambda name, args: fake_mcp.text("ok"))
    invoker = SessionToolInvoker(SimpleNamespace(session=session, endpoint_url="http://mock/x/mcp"), "search")

    result = await invoker.invoke({})
    assert result["content"][0]["text"] == "ok"
    assert result["isError"] is False
