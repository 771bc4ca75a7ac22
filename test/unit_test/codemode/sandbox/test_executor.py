from __future__ import annotations

import json
from collections import OrderedDict
from types import SimpleNamespace
from typing import Any, Callable, Dict, List

import httpx
import pytest

from codemode_gateway.codemode import ConsoleCapture, ProxyChannel, SandboxExecutor
from codemode_gateway.codemode.generator import generate_helpers_implementation
from codemode_gateway.codemode.registry import HelperServerEntry
from codemode_gateway.codemode.sandbox.models import ProxyCallError, ProxyUnreachableError, SandboxRequest
from codemode_gateway.mcp_client.schemas.config import ServerDescriptor, TransportType

PROXY_URL = "http://mock/api/v1/codemode/proxy"
MARKDOWN_TABLE = "| pmid | title |\n|------|-------|\n| 1 | p53 review |\n| 2 | BRCA1 study |"


def _proxy(handler: Callable[[Dict[str, Any]], httpx.Response], seen: List[httpx.Request]) -> httpx.MockTransport:
    def _handle(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return handler(json.loads(request.content))

    return httpx.MockTransport(_handle)


def _text_result(text: str) -> httpx.Response:
    return httpx.Response(200, json={"result": {"content": [{"type": "text", "text": text}]}})


def _executor(handler, seen: List[httpx.Request], token: str = "proxy-secret") -> SandboxExecutor:
    return SandboxExecutor(PROXY_URL, token=token, transport=_proxy(handler, seen))


def _request(code: str, **kwargs: Any) -> SandboxRequest:
    kwargs.setdefault("tool_registry", {"entrez": ["search_articles"]})
    return SandboxRequest(code=code, **kwargs)


@pytest.mark.asyncio
async def test_markdown_table_rows_reach_the_script() -> None:
    seen: List[httpx.Request] = []
    executor = _executor(lambda body: _text_result(MARKDOWN_TABLE), seen)

    result = await executor.run(
        _request('rows = await helpers.entrez.get_data("search_articles", {"term": "p53"})\nreturn len(rows)')
    )

    assert result.ok, result.error
    assert result.result == 2
    assert result.logs == []
    assert result.to_payload() == {"result": 2, "logs": []}

    assert len(seen) == 1
    assert seen[0].headers["x-codemode-token"] == "proxy-secret"
    assert json.loads(seen[0].content) == {"server": "entrez", "tool": "search_articles", "args": {"term": "p53"}}


@pytest.mark.asyncio
async def test_console_output_is_captured_in_order() -> None:
    executor = _executor(lambda body: _text_result("ok"), [])
    code = 'console.log("rows", {"n": 1})\nprint("plain")\nconsole.warn("careful")\nconsole.error("bad")\nreturn None'

    result = await executor.run(_request(code))

    assert result.ok
    assert result.result is None
    assert result.logs == ['rows {"n": 1}', "plain", "[warn] careful", "[error] bad"]


@pytest.mark.asyncio
async def test_allowed_modules_and_gather() -> None:
    executor = _executor(lambda body: _text_result(json.dumps({"term": body["args"]["term"]})), [])
    code = (
        "import asyncio\n"
        "import json\n"
        "from math import sqrt\n"
        "found = await asyncio.gather(\n"
        '    helpers.entrez.search_articles(term="a"),\n'
        '    helpers.entrez.search_articles(term="b"),\n'
        ")\n"
        'return {"terms": [f["term"] for f in found], "root": sqrt(16), "dumped": json.dumps([1])}'
    )

    result = await executor.run(_request(code))

    assert result.ok, result.error
    assert result.result == {"terms": ["a", "b"], "root": 4.0, "dumped": "[1]"}


@pytest.mark.asyncio
async def test_function_declaration_is_rejected_before_execution() -> None:
    seen: List[httpx.Request] = []
    executor = _executor(lambda body: _text_result("ok"), seen)

    result = await executor.run(_request("async def fetch():\n    return 1\nreturn await fetch()"))

    assert not result.ok
    assert result.error_code == "FUNCTION_DECLARATION_NOT_ALLOWED"
    assert "GOOD:" in result.error
    assert result.debug.details == {"line": 1}
    assert seen == []


@pytest.mark.asyncio
async def test_disallowed_import_fails_at_runtime() -> None:
    executor = _executor(lambda body: _text_result("ok"), [])

    result = await executor.run(_request("import os\nreturn os.getcwd()"))

    assert not result.ok
    assert "Import of 'os' is not allowed" in result.error
    assert result.debug.code == "ImportError"


@pytest.mark.asyncio
async def test_relative_import_fails() -> None:
    executor = _executor(lambda body: _text_result("ok"), [])
    result = await executor.run(_request("from . import runtime\nreturn 1"))
    assert "Relative imports are not allowed" in result.error


@pytest.mark.asyncio
async def test_unsafe_builtins_are_missing() -> None:
    executor = _executor(lambda body: _text_result("ok"), [])

    result = await executor.run(_request('return open("/etc/passwd").read()'))

    assert not result.ok
    assert result.error_code == "RUNTIME"
    assert 'Variable "open" was not found' in result.error


@pytest.mark.asyncio
async def test_proxy_error_status_surfaces_as_tool_error() -> None:
    def handler(body: Dict[str, Any]) -> httpx.Response:
        return httpx.Response(
            400, json={"error": "Tool 'search_articles' not found", "errorCode": "TOOL_NOT_FOUND", "availableTools": []}
        )

    executor = _executor(handler, [])

    result = await executor.run(_request("return await helpers.entrez.search_articles()"))

    assert not result.ok
    assert result.error_code == "TOOL"
    assert result.debug.code == "TOOL_NOT_FOUND"
    assert result.debug.details["server"] == "entrez"


@pytest.mark.asyncio
async def test_unreachable_proxy_is_a_network_error() -> None:
    def handler(body: Dict[str, Any]) -> httpx.Response:
        raise httpx.ConnectError("connection refused")

    executor = _executor(handler, [])

    result = await executor.run(_request('return await helpers.entrez.search_articles(term="x")'))

    assert not result.ok
    assert result.error_code == "NETWORK"
    assert result.debug.details["proxyUrl"] == PROXY_URL


@pytest.mark.asyncio
async def test_script_exception_reports_script_line() -> None:
    executor = _executor(lambda body: _text_result("ok"), [])

    result = await executor.run(_request('console.log("before")\nx = 1\nreturn x / 0'))

    assert not result.ok
    assert result.logs == ["before"]
    assert result.debug.code == "ZeroDivisionError"
    assert "at script (<codemode>:3)" in result.debug.stack
    payload = result.to_payload()
    assert "result" not in payload
    assert payload["errorCode"] == result.error_code


@pytest.mark.asyncio
async def test_result_is_made_json_safe() -> None:
    executor = _executor(lambda body: _text_result("ok"), [])
    result = await executor.run(_request('return {"pair": (1, 2), "nested": [{"a": None}]}'))
    assert result.result == {"pair": [1, 2], "nested": [{"a": None}]}


def _generated_helpers() -> str:
    descriptor = ServerDescriptor(type=TransportType.HTTP, url="http://mock/mcp/entrez")
    tools = {
        "search_articles": SimpleNamespace(
            description="Search PubMed.",
            parameters={"type": "object", "properties": {"retmax": {"type": "integer"}}},
        )
    }
    entries = OrderedDict(entrez=HelperServerEntry(key="entrez", descriptor=descriptor, tools=tools))
    return generate_helpers_implementation(entries, {"http": "entrez"})


@pytest.mark.asyncio
async def test_generated_helpers_implementation_is_used() -> None:
    seen: List[httpx.Request] = []
    executor = _executor(lambda body: _text_result(json.dumps(body["args"])), seen)

    result = await executor.run(
        _request(
            'schema = await helpers.entrez.get_tool_schema("search_articles")\n'
            'data = await helpers.http.search_articles(retmax="5")\n'
            'return {"params": list(schema["parameters"]["properties"]), "data": data}',
            helpers_implementation=_generated_helpers(),
            tool_registry={},
        )
    )

    assert result.ok, result.error
    assert result.result == {"params": ["retmax"], "data": {"retmax": 5}}
    assert json.loads(seen[0].content)["args"] == {"retmax": 5}


@pytest.mark.asyncio
async def test_helpers_without_entry_point_are_rejected() -> None:
    executor = _executor(lambda body: _text_result("ok"), [])
    result = await executor.run(_request("return 1", helpers_implementation="REGISTRY = {}\n"))
    assert result.error_code == "HELPERS_ENTRY_POINT_MISSING"


@pytest.mark.asyncio
async def test_helpers_with_forbidden_attribute_are_rejected() -> None:
    executor = _executor(lambda body: _text_result("ok"), [])
    source = "def build_helpers(call_tool):\n    return call_tool.__globals__\n"
    result = await executor.run(_request("return 1", helpers_implementation=source))
    assert result.error_code == "FORBIDDEN_ATTRIBUTE"


@pytest.mark.asyncio
async def test_runs_do_not_share_state() -> None:
    executor = _executor(lambda body: _text_result("ok"), [])
    first = await executor.run(_request("counter = 41\nreturn counter + 1"))
    second = await executor.run(_request("return counter"))
    assert first.result == 42
    assert second.error_code == "RUNTIME"


def test_console_capture_renders_values() -> None:
    console = ConsoleCapture()
    console.info("a", 1, [1, 2])
    console.debug("b")
    console.print("x", "y", sep="-")
    assert console.lines == ["a 1 [1, 2]", "b", "x-y"]


@pytest.mark.asyncio
async def test_proxy_channel_handles_non_json_and_errors() -> None:
    def handle(request: httpx.Request) -> httpx.Response:
        tool = json.loads(request.content)["tool"]
        if tool == "plain":
            return httpx.Response(200, json=[1, 2])
        if tool == "html":
            return httpx.Response(502, text="<html>bad gateway</html>")
        return httpx.Response(200, json={"result": {"ok": True}})

    async with ProxyChannel(PROXY_URL, transport=httpx.MockTransport(handle)) as channel:
        assert await channel.call_tool("entrez", "fine") == {"ok": True}
        assert await channel.call_tool("entrez", "plain") == [1, 2]
        with pytest.raises(ProxyCallError) as exc_info:
            await channel.call_tool("entrez", "html", {"q": 1})
    assert exc_info.value.status == 502
    assert exc_info.value.error == "<html>bad gateway</html>"
    assert exc_info.value.tool_args == {"q": 1}


@pytest.mark.asyncio
async def test_proxy_channel_refuses_other_hosts() -> None:
    channel = ProxyChannel(PROXY_URL, transport=httpx.MockTransport(lambda r: httpx.Response(200, json={})))
    channel.proxy_url = "http://mock.evil/steal"
    with pytest.raises(ProxyUnreachableError) as exc_info:
        await channel.call_tool("entrez", "search")
    assert "blocked" in exc_info.value.reason
    await channel.aclose()
