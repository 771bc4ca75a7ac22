from __future__ import annotations

from codemode_gateway.codemode.sandbox.models import (
    ProxyCallError,
    SandboxDebug,
    SandboxRequest,
    SandboxResult,
)


def test_request_accepts_camel_case_keys() -> None:
    req = SandboxRequest.model_validate(
        {"code": "return 1", "helpersImplementation": "", "toolRegistry": {"entrez": ["search"]}}
    )
    assert req.tool_registry == {"entrez": ["search"]}
    assert req.helpers_metadata == {}


def test_success_payload_has_result_and_logs_only() -> None:
    result = SandboxResult.success({"n": 1}, ["line"])
    assert result.ok
    assert result.to_payload() == {"result": {"n": 1}, "logs": ["line"]}


def test_failure_payload_uses_camel_case() -> None:
    result = SandboxResult.failure(
        "Bad script",
        "SYNTAX_ERROR",
        suggestions=["fix it"],
        debug=SandboxDebug(original_message="Bad script", code="SYNTAX_ERROR", details={"line": 2}),
    )
    assert not result.ok
    assert result.to_payload() == {
        "logs": [],
        "error": "Bad script",
        "errorCode": "SYNTAX_ERROR",
        "suggestions": ["fix it"],
        "debug": {"originalMessage": "Bad script", "code": "SYNTAX_ERROR", "details": {"line": 2}},
    }


def test_proxy_call_error_message() -> None:
    err = ProxyCallError("entrez", "search", 400, "Missing tool name", {"term": "p53"}, error_code="X")
    text = str(err)
    assert text.startswith("MCP tool call failed: entrez/search\nStatus: 400\nError: Missing tool name")
    assert '"term": "p53"' in text
    assert err.tool_args == {"term": "p53"}
    assert err.error_code == "X"
