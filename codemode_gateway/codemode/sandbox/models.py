from __future__ import annotations

import json
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


def _to_camel(s: str) -> str:
    parts = s.split("_")
    return parts[0] + "".join(p.capitalize() for p in parts[1:])


class SandboxState(str, Enum):
    VALIDATING = "validating"
    BUILDING = "building"
    RUNNING = "running"
    COMPLETED = "completed"


class SandboxError(Exception):
    pass


class SandboxPolicyError(SandboxError):
    """The script violates the code-mode rules and was not executed."""

    def __init__(self, code: str, message: str, suggestions: Optional[List[str]] = None, line: Optional[int] = None) -> None:
        self.code = code
        self.message = message
        self.suggestions = list(suggestions or [])
        self.line = line
        super().__init__(message)


class ProxyCallError(SandboxError):
    """The proxy answered a tool call with a non-success status."""

    def __init__(
        self,
        server: str,
        tool: str,
        status: int,
        error: str,
        args: Optional[Dict[str, Any]] = None,
        *,
        error_code: Optional[str] = None,
        body: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.server = server
        self.tool = tool
        self.status = status
        self.error = error
        self.tool_args = dict(args or {})
        self.error_code = error_code
        self.body = dict(body or {})
        super().__init__(
            f"MCP tool call failed: {server}/{tool}\nStatus: {status}\nError: {error}\n\n"
            f"Arguments: {json.dumps(self.tool_args, indent=2, default=str)}"
        )


class ProxyUnreachableError(SandboxError):
    def __init__(self, proxy_url: str, server: str, tool: str, reason: str) -> None:
        self.proxy_url = proxy_url
        self.server = server
        self.tool = tool
        self.reason = reason
        super().__init__(f"Failed to reach Code Mode proxy ({proxy_url}) while calling {server}/{tool}: {reason}")


class SandboxRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, alias_generator=_to_camel)

    code: str = Field(..., description="Script body executed inside the async entry point.", min_length=1)
    helpers_implementation: str = Field(
        "",
        description="Generated helper module source defining build_helpers(call_tool).",
    )
    tool_registry: Dict[str, List[str]] = Field(
        default_factory=dict,
        description="Tool names available per server key.",
    )
    helpers_metadata: Dict[str, Any] = Field(
        default_factory=dict,
        description="Server summaries: {servers: [{key, toolCount, toolNames}], totalTools}.",
    )


class SandboxDebug(BaseModel):
    model_config = ConfigDict(populate_by_name=True, alias_generator=_to_camel)

    original_message: str
    code: str
    details: Optional[Any] = None
    stack: Optional[str] = None


class SandboxResult(BaseModel):
    """Exactly one of the success shape ({result, logs}) or the failure shape."""

    model_config = ConfigDict(populate_by_name=True, alias_generator=_to_camel)

    result: Optional[Any] = None
    logs: List[str] = Field(default_factory=list)
    error: Optional[str] = None
    error_code: Optional[str] = None
    suggestions: Optional[List[str]] = None
    debug: Optional[SandboxDebug] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, result: Any, logs: List[str]) -> "SandboxResult":
        return cls(result=result, logs=logs)

    @classmethod
    def failure(
        cls,
        error: str,
        error_code: str,
        *,
        suggestions: Optional[List[str]] = None,
        logs: Optional[List[str]] = None,
        debug: Optional[SandboxDebug] = None,
    ) -> "SandboxResult":
        return cls(error=error, error_code=error_code, suggestions=list(suggestions or []), logs=list(logs or []), debug=debug)

    def to_payload(self) -> Dict[str, Any]:
        if self.ok:
            return {"result": self.result, "logs": list(self.logs)}
        return self.model_dump(by_alias=True, exclude={"result"}, exclude_none=True)
