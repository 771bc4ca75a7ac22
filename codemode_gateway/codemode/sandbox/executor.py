"""Run a validated script against the helper API.

Each run gets fresh namespaces, restricted builtins and an import allow-list.
The only outbound path is ``ProxyChannel.call_tool``, whose HTTP client sits
behind an ``EgressGuardTransport`` bound to the proxy host.
"""

from __future__ import annotations

import asyncio
import builtins
import importlib
import json
import logging
import traceback
import types
from typing import Any, Callable, Dict, List, Mapping, Optional

import httpx

from codemode_gateway.codemode import runtime

from ..generator import HELPERS_ENTRY_POINT
from .classifier import classify_error, format_error_for_user, truncate_stack
from .egress import EgressGuardTransport
from .models import (
    ProxyCallError,
    ProxyUnreachableError,
    SandboxDebug,
    SandboxPolicyError,
    SandboxRequest,
    SandboxResult,
    SandboxState,
)
from .policy import ENTRY_POINT, validate_module_source, validate_script

SCRIPT_FILENAME = "<codemode>"
HELPERS_FILENAME = "<helpers>"
TOKEN_HEADER = "x-codemode-token"

_CONSTANT_TYPES = (int, float, str, bool, tuple, frozenset, bytes)

_SAFE_BUILTINS = (
    "abs", "all", "any", "bool", "bytes", "callable", "chr", "dict", "divmod", "enumerate",
    "filter", "float", "frozenset", "hasattr", "hash", "int", "isinstance", "issubclass", "iter",
    "len", "list", "map", "max", "min", "next", "ord", "pow", "range", "repr", "reversed",
    "round", "set", "slice", "sorted", "str", "sum", "tuple", "zip",
    "ArithmeticError", "AttributeError", "Exception", "IndexError", "KeyError", "LookupError",
    "NotImplementedError", "RuntimeError", "StopAsyncIteration", "StopIteration", "TimeoutError",
    "TypeError", "ValueError", "ZeroDivisionError",
)

_SCRIPT_MODULE_NAMES = ("collections", "datetime", "functools", "itertools", "json", "math", "re", "statistics")


def module_view(module: types.ModuleType) -> types.SimpleNamespace:
    """Public callables and constants of ``module``; submodules are left out."""
    public: Dict[str, Any] = {}
    for name in dir(module):
        if name.startswith("_"):
            continue
        value = getattr(module, name)
        if isinstance(value, types.ModuleType):
            continue
        if callable(value) or isinstance(value, _CONSTANT_TYPES):
            public[name] = value
    return types.SimpleNamespace(**public)


async def _gather(*aws: Any) -> List[Any]:
    return list(await asyncio.gather(*aws))


SCRIPT_MODULES: Dict[str, Any] = {name: module_view(importlib.import_module(name)) for name in _SCRIPT_MODULE_NAMES}
SCRIPT_MODULES["asyncio"] = types.SimpleNamespace(gather=_gather, sleep=asyncio.sleep, wait_for=asyncio.wait_for)

HELPER_MODULES: Dict[str, Any] = {
    "json": SCRIPT_MODULES["json"],
    "codemode_gateway.codemode": types.SimpleNamespace(
        runtime=types.SimpleNamespace(HelperRegistry=runtime.HelperRegistry),
    ),
}


def _restricted_import(allowed: Mapping[str, Any]) -> Callable[..., Any]:
    def _import(name: str, globals: Any = None, locals: Any = None, fromlist: Any = (), level: int = 0) -> Any:
        if level:
            raise ImportError("Relative imports are not allowed in Code Mode")
        if name not in allowed:
            raise ImportError(f"Import of '{name}' is not allowed. Available modules: {', '.join(sorted(allowed))}")
        module = allowed[name]
        if fromlist and not all(n == "*" or hasattr(module, n) for n in fromlist):
            missing = [n for n in fromlist if n != "*" and not hasattr(module, n)]
            raise ImportError(f"cannot import {', '.join(missing)} from '{name}'")
        return module

    return _import


class ConsoleCapture:
    """Collects everything the script prints as an ordered list of lines."""

    def __init__(self) -> None:
        self.lines: List[str] = []

    @staticmethod
    def _render(value: Any) -> str:
        if isinstance(value, str):
            return value
        try:
            return json.dumps(value, default=str)
        except (TypeError, ValueError):
            return repr(value)

    def _emit(self, prefix: str, values: tuple) -> None:
        line = " ".join(self._render(v) for v in values)
        self.lines.append(f"{prefix}{line}" if prefix else line)

    def log(self, *values: Any) -> None:
        self._emit("", values)

    def info(self, *values: Any) -> None:
        self._emit("", values)

    def debug(self, *values: Any) -> None:
        self._emit("", values)

    def warn(self, *values: Any) -> None:
        self._emit("[warn] ", values)

    warning = warn

    def error(self, *values: Any) -> None:
        self._emit("[error] ", values)

    def print(self, *values: Any, sep: str = " ", end: str = "\n", **_: Any) -> None:
        self.lines.append(sep.join(self._render(v) for v in values))


class ProxyChannel:
    """The sandbox's single outbound call path: POST ``{server, tool, args}`` to the proxy."""

    def __init__(
        self,
        proxy_url: str,
        *,
        token: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.proxy_url = proxy_url
        self._headers = {TOKEN_HEADER: token} if token else {}
        self._client = httpx.AsyncClient(
            transport=EgressGuardTransport.for_url(proxy_url, inner=transport),
            timeout=timeout,
        )
        self._logger = logging.getLogger(__name__)

    async def __aenter__(self) -> "ProxyChannel":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def call_tool(self, server: str, tool: str, args: Optional[Dict[str, Any]] = None) -> Any:
        """Call ``server``/``tool`` through the proxy and return its ``result``.

        Raises:
            ProxyUnreachableError: The request did not produce an HTTP response.
            ProxyCallError: The proxy answered with a non-success status.
        """
        payload = {"server": server, "tool": tool, "args": dict(args or {})}
        try:
            resp = await self._client.post(self.proxy_url, json=payload, headers=self._headers)
        except httpx.HTTPError as exc:
            self._logger.warning("ProxyChannel.call_tool: %s/%s unreachable: %s", server, tool, exc)
            raise ProxyUnreachableError(self.proxy_url, server, tool, str(exc) or type(exc).__name__) from exc

        try:
            parsed = resp.json()
        except ValueError:
            parsed = {"error": resp.text}
        if not isinstance(parsed, dict):
            parsed = {"result": parsed}

        if not resp.is_success:
            self._logger.debug("ProxyChannel.call_tool: %s/%s -> HTTP %s", server, tool, resp.status_code)
            raise ProxyCallError(
                server,
                tool,
                resp.status_code,
                str(parsed.get("error") or resp.reason_phrase or "Unknown error"),
                payload["args"],
                error_code=parsed.get("errorCode"),
                body=parsed,
            )
        return parsed.get("result")

    async def aclose(self) -> None:
        await self._client.aclose()


def _json_safe(value: Any) -> Any:
    return json.loads(json.dumps(value, default=str))


def _format_stack(exc: BaseException) -> str:
    lines = [f"{type(exc).__name__}: {exc}"]
    for frame in reversed(traceback.extract_tb(exc.__traceback__)):
        lineno = frame.lineno
        if frame.filename == SCRIPT_FILENAME and lineno:
            lineno -= 1
        name = "script" if frame.name == ENTRY_POINT else frame.name
        lines.append(f"  at {name} ({frame.filename}:{lineno})")
    return "\n".join(lines)


def _error_details(exc: BaseException) -> Optional[Any]:
    if isinstance(exc, runtime.HelperToolError):
        return exc.to_dict()
    if isinstance(exc, ProxyCallError):
        return {"server": exc.server, "tool": exc.tool, "status": exc.status, "body": exc.body}
    if isinstance(exc, ProxyUnreachableError):
        return {"proxyUrl": exc.proxy_url, "server": exc.server, "tool": exc.tool, "reason": exc.reason}
    return None


class SandboxExecutor:
    """Validates, builds and runs one script per ``run`` call.

    Nothing survives between runs: namespaces, the console and the proxy client
    are created per request and discarded afterwards.
    """

    def __init__(
        self,
        proxy_url: str,
        *,
        token: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        request_timeout: float = 30.0,
    ) -> None:
        self.proxy_url = proxy_url
        self._token = token
        self._transport = transport
        self._request_timeout = request_timeout
        self._logger = logging.getLogger(__name__)

    @staticmethod
    def _namespace(allowed_modules: Mapping[str, Any], console: ConsoleCapture, name: str) -> Dict[str, Any]:
        safe = {n: getattr(builtins, n) for n in _SAFE_BUILTINS}
        safe["print"] = console.print
        safe["__import__"] = _restricted_import(allowed_modules)
        return {"__builtins__": safe, "__name__": name}

    def _build_helpers(self, request: SandboxRequest, channel: ProxyChannel, console: ConsoleCapture) -> Any:
        if not request.helpers_implementation.strip():
            servers = {key: {"tools": {name: {} for name in names}} for key, names in request.tool_registry.items()}
            return runtime.HelperRegistry(servers, channel.call_tool)

        tree = validate_module_source(request.helpers_implementation, HELPERS_FILENAME)
        namespace = self._namespace(HELPER_MODULES, console, "codemode_helpers")
        exec(compile(tree, HELPERS_FILENAME, "exec"), namespace)
        factory = namespace.get(HELPERS_ENTRY_POINT)
        if not callable(factory):
            raise SandboxPolicyError(
                "HELPERS_ENTRY_POINT_MISSING",
                f"Helper implementation does not define {HELPERS_ENTRY_POINT}(call_tool)",
                ["Regenerate the helper implementation with the prepare endpoint."],
            )
        return factory(channel.call_tool)

    def _policy_failure(self, exc: SandboxPolicyError, logs: List[str]) -> SandboxResult:
        return SandboxResult.failure(
            exc.message,
            exc.code,
            suggestions=exc.suggestions,
            logs=logs,
            debug=SandboxDebug(original_message=exc.message, code=exc.code, details={"line": exc.line}),
        )

    def _runtime_failure(self, exc: Exception, logs: List[str]) -> SandboxResult:
        classified = classify_error(exc)
        code = getattr(exc, "code", None)
        return SandboxResult.failure(
            format_error_for_user(classified),
            classified.error_code,
            suggestions=classified.suggestions,
            logs=logs,
            debug=SandboxDebug(
                original_message=classified.message,
                code=code if isinstance(code, str) else type(exc).__name__,
                details=_error_details(exc),
                stack=truncate_stack(_format_stack(exc)),
            ),
        )

    async def run(self, request: SandboxRequest) -> SandboxResult:
        """Execute ``request.code`` and return exactly one of the two result shapes."""
        console = ConsoleCapture()
        state = SandboxState.VALIDATING
        try:
            tree = validate_script(request.code)
        except SandboxPolicyError as exc:
            self._logger.info("SandboxExecutor.run: script rejected (%s)", exc.code)
            return self._policy_failure(exc, console.lines)

        async with ProxyChannel(
            self.proxy_url, token=self._token, timeout=self._request_timeout, transport=self._transport
        ) as channel:
            try:
                state = SandboxState.BUILDING
                helpers = self._build_helpers(request, channel, console)
                namespace = self._namespace(SCRIPT_MODULES, console, "codemode_script")
                exec(compile(tree, SCRIPT_FILENAME, "exec"), namespace)

                state = SandboxState.RUNNING
                value = await namespace[ENTRY_POINT](helpers, console)
                result = _json_safe(value)
            except SandboxPolicyError as exc:
                self._logger.info("SandboxExecutor.run: helper module rejected (%s)", exc.code)
                return self._policy_failure(exc, console.lines)
            except Exception as exc:
                self._logger.info("SandboxExecutor.run: failed while %s: %s", state.value, type(exc).__name__)
                return self._runtime_failure(exc, console.lines)

        self._logger.debug("SandboxExecutor.run: %s with %d log lines", SandboxState.COMPLETED.value, len(console.lines))
        return SandboxResult.success(result, console.lines)
