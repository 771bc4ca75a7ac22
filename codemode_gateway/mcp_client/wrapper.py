"""Invocation wrapper for discovered tools.

``InvocationWrapper.wrap`` turns a ``ToolDefinition`` into a ``WrappedTool``
whose ``invoke`` call:

1. adapts arguments against the schema (empty strings are resolved or dropped),
2. races the call against a deadline,
3. retries once on an invalid-enum rejection,
4. records the outcome in the shared ``ToolMetricsStore``.

Tool failures other than timeouts come back as ``{"error": message}`` values so
the caller (a script or a model) always receives something addressable.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
import time
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from .errors import ToolTimeoutError
from .invoker import ToolDefinition
from .metrics import ToolMetricsStore
from .schemas.core import InvocationStatus

DEFAULT_TOOL_TIMEOUT_MS = 30000
GRAPHQL_TOOL_SUFFIX = "_graphql_query"

_ENUM_VIOLATION = re.compile(r"invalid_enum_value|invalid enum|literal_error|type=enum", re.IGNORECASE)


class EnumRetryPolicy(str, Enum):
    """How empty enumerated fields are filled before the single enum retry.

    ``FIRST`` substitutes the first enumerated value. It is a heuristic: the
    first value is deterministic, not necessarily what the caller meant.
    ``NONE`` retries with the arguments unchanged.
    """

    FIRST = "first"
    NONE = "none"


def resolve_default_timeout_ms(raw: Optional[str]) -> int:
    """Parse a timeout override; values of 1000 ms or less fall back to the default."""
    try:
        n = int(raw) if raw is not None else None
    except (TypeError, ValueError):
        n = None
    return n if n is not None and n > 1000 else DEFAULT_TOOL_TIMEOUT_MS


def enum_values(prop: Any) -> Optional[List[Any]]:
    """Enumerated values of a property schema, from ``enum`` or ``const`` members."""
    if not isinstance(prop, dict):
        return None
    if isinstance(prop.get("enum"), list) and prop["enum"]:
        return list(prop["enum"])
    for key in ("oneOf", "anyOf"):
        members = prop.get(key)
        if isinstance(members, list):
            lits = [m["const"] for m in members if isinstance(m, dict) and "const" in m]
            if lits:
                return lits
    return None


def adapt_args(args: Optional[Dict[str, Any]], schema: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Resolve empty-string argument values against the parameter schema.

    Required enumerated fields get their first enumerated value; every other
    empty string is dropped. The input mapping is not modified.
    """
    if not isinstance(args, dict):
        return {} if args is None else args
    out = dict(args)
    properties = schema.get("properties") if isinstance(schema, dict) else None
    properties = properties if isinstance(properties, dict) else {}
    required = schema.get("required") if isinstance(schema, dict) else None
    required = set(required) if isinstance(required, list) else set()
    for key, value in args.items():
        if value != "":
            continue
        enums = enum_values(properties.get(key))
        if enums and key in required:
            out[key] = enums[0]
        else:
            del out[key]
    return out


def adapt_graphql_args(args: Dict[str, Any]) -> Dict[str, Any]:
    """GraphQL tools take their variables as a JSON string in ``variables_json``."""
    out = dict(args)
    if "variables" not in out and isinstance(out.get("variables_json"), str):
        try:
            parsed = json.loads(out["variables_json"])
        except json.JSONDecodeError:
            parsed = None
        if isinstance(parsed, dict):
            out["variables"] = parsed
    if "variables_json" not in out:
        variables = out.get("variables")
        out["variables_json"] = json.dumps(variables) if isinstance(variables, dict) else "{}"
    return out


def is_enum_violation(message: str) -> bool:
    return bool(_ENUM_VIOLATION.search(message or ""))


class WrappedTool:
    """A tool whose invocation is bounded, adapted, retried and measured."""

    def __init__(
        self,
        definition: ToolDefinition,
        *,
        timeout_ms: int,
        metrics: ToolMetricsStore,
        enum_policy: EnumRetryPolicy = EnumRetryPolicy.FIRST,
    ) -> None:
        self.definition = definition
        self.timeout_ms = timeout_ms
        self._metrics = metrics
        self._enum_policy = enum_policy
        self._logger = logging.getLogger(__name__)

    @property
    def name(self) -> str:
        return self.definition.name

    @property
    def description(self) -> str:
        return self.definition.description

    @property
    def parameters(self) -> Dict[str, Any]:
        return self.definition.parameters

    def prepare_args(self, args: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        prepared = adapt_args(args or {}, self.parameters)
        if self.name.endswith(GRAPHQL_TOOL_SUFFIX):
            prepared = adapt_graphql_args(prepared)
        return prepared

    def _enum_retry_args(self, original: Dict[str, Any], prepared: Dict[str, Any]) -> Dict[str, Any]:
        retry = dict(prepared)
        if self._enum_policy is EnumRetryPolicy.NONE:
            return retry
        properties = self.parameters.get("properties") or {}
        for key, value in original.items():
            if value != "":
                continue
            enums = enum_values(properties.get(key))
            if enums:
                retry[key] = enums[0]
        return retry

    async def _call_once(self, args: Dict[str, Any]) -> Any:
        try:
            return await asyncio.wait_for(self.definition.invoker.invoke(args), self.timeout_ms / 1000)
        except asyncio.TimeoutError as exc:
            raise ToolTimeoutError(self.name, self.timeout_ms) from exc

    async def invoke(self, args: Optional[Dict[str, Any]] = None) -> Any:
        original = dict(args or {})
        prepared = self.prepare_args(original)
        started = time.perf_counter()
        invoked_at = datetime.now(timezone.utc)
        status = InvocationStatus.SUCCESS
        error: Optional[str] = None
        try:
            try:
                result = await self._call_once(prepared)
            except ToolTimeoutError:
                raise
            except Exception as exc:
                message = str(exc) or type(exc).__name__
                if not is_enum_violation(message):
                    self._logger.debug("WrappedTool.invoke: %s failed: %s", self.name, message)
                    status, error = InvocationStatus.ERROR, message
                    return {"error": message}
                self._logger.debug("WrappedTool.invoke: %s enum violation, retrying once", self.name)
                try:
                    result = await self._call_once(self._enum_retry_args(original, prepared))
                except ToolTimeoutError:
                    raise
                except Exception as exc2:
                    message = str(exc2) or type(exc2).__name__
                    status, error = InvocationStatus.ERROR, message
                    return {"error": message}
            if result is None:
                result = {"ok": True}
            return result
        except ToolTimeoutError as exc:
            status, error = InvocationStatus.TIMEOUT, str(exc)
            self._logger.warning("WrappedTool.invoke: tool timeout %s after %sms", self.name, self.timeout_ms)
            raise
        finally:
            duration_ms = (time.perf_counter() - started) * 1000
            self._metrics.record(self.name, status, duration_ms, error=error, invoked_at=invoked_at)


class InvocationWrapper:
    """Builds ``WrappedTool`` objects that share one metrics store and policy."""

    def __init__(
        self,
        metrics: ToolMetricsStore,
        *,
        default_timeout_ms: int = DEFAULT_TOOL_TIMEOUT_MS,
        enum_policy: EnumRetryPolicy = EnumRetryPolicy.FIRST,
    ) -> None:
        self.metrics = metrics
        self.default_timeout_ms = default_timeout_ms
        self.enum_policy = enum_policy

    def wrap(self, definition: ToolDefinition, *, timeout_ms: Optional[int] = None) -> WrappedTool:
        return WrappedTool(
            definition,
            timeout_ms=timeout_ms or self.default_timeout_ms,
            metrics=self.metrics,
            enum_policy=self.enum_policy,
        )
