"""Helper API available to sandboxed scripts as ``helpers``.

The generated helper module builds a ``HelperRegistry`` from the embedded tool
registry and the sandbox's single outbound ``call_tool(server, tool, args)``
function. Scripts then use ``helpers.<server>.<tool>(...)`` or the generic
``invoke``/``get_data`` methods.
"""

from __future__ import annotations

import functools
import logging
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional

from codemode_gateway.enrichment.graphql import check_graphql_response
from codemode_gateway.enrichment.transform import transform_response

from .docs import search_tools_with_ranking
from .resolution import resolve_tool_name
from .sandbox.models import ProxyCallError

CallTool = Callable[[str, str, Dict[str, Any]], Awaitable[Any]]

STAGED_QUERY_TOOL = "data_manager"
STAGED_PREVIEW_SQL = "SELECT * FROM {table} LIMIT 100"
_NO_RETRY_STATUSES = {401, 403, 408, 504}

logger = logging.getLogger(__name__)


class HelperToolError(Exception):
    """A helper call failed after resolution, coercion and the single retry."""

    def __init__(
        self,
        code: str,
        message: str,
        *,
        details: Optional[Dict[str, Any]] = None,
        server: Optional[str] = None,
        tool: Optional[str] = None,
        args: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.details = dict(details or {})
        self.server = server
        self.tool = tool
        self.tool_args = dict(args or {})
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details, "server": self.server, "tool": self.tool}


def _coerce_value(value: Any, prop: Mapping[str, Any]) -> Any:
    typ = prop.get("type")
    if typ in ("number", "integer") and isinstance(value, str):
        text = value.strip()
        try:
            number = float(text)
        except ValueError:
            return value
        if typ == "integer" or (number.is_integer() and "." not in text and "e" not in text.lower()):
            return int(number)
        return number
    if typ == "boolean" and isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    if typ == "array" and value is not None and not isinstance(value, (list, tuple)):
        return [value]
    return value


def coerce_args(args: Optional[Mapping[str, Any]], schema: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Convert scalar strings to the schema's declared types and wrap scalars for arrays."""
    out = dict(args or {})
    properties = schema.get("properties") if isinstance(schema, Mapping) else None
    if not isinstance(properties, Mapping):
        return out
    for key, value in list(out.items()):
        prop = properties.get(key)
        if isinstance(prop, Mapping):
            out[key] = _coerce_value(value, prop)
    return out


def required_params(schema: Optional[Mapping[str, Any]]) -> List[str]:
    required = schema.get("required") if isinstance(schema, Mapping) else None
    return [r for r in required if isinstance(r, str)] if isinstance(required, list) else []


class ServerHelper:
    """Script-facing helper for one server.

    Known tool names resolve through the method table (``helpers.entrez.search``);
    any other name falls back to ``invoke`` with fuzzy name resolution.
    """

    def __init__(self, key: str, tools: Mapping[str, Mapping[str, Any]], call_tool: CallTool) -> None:
        self.key = key
        self._tools: Dict[str, Dict[str, Any]] = {name: dict(spec) for name, spec in tools.items()}
        self._call_tool = call_tool
        self._methods: Dict[str, Callable[..., Awaitable[Any]]] = {name: self._tool_method(name) for name in self._tools}

    def __repr__(self) -> str:
        return f"<helpers.{self.key}: {len(self._tools)} tools>"

    def _tool_method(self, name: str) -> Callable[..., Awaitable[Any]]:
        async def method(args: Optional[Dict[str, Any]] = None, **kwargs: Any) -> Any:
            merged = dict(args or {})
            merged.update(kwargs)
            return await self.get_data(name, merged)

        method.__name__ = name
        return method

    def tool(self, name: str) -> Callable[..., Awaitable[Any]]:
        method = self._methods.get(name)
        if method is not None:
            return method
        return functools.partial(self.invoke, name)

    def __getattr__(self, name: str) -> Callable[..., Awaitable[Any]]:
        if name.startswith("_"):
            raise AttributeError(name)
        return self.tool(name)

    def _schema(self, name: str) -> Dict[str, Any]:
        spec = self._tools.get(name) or {}
        schema = spec.get("parameters")
        return schema if isinstance(schema, dict) else {}

    async def list_tools(self) -> List[str]:
        return list(self._tools)

    async def search_tools(self, query: str) -> List[Dict[str, Any]]:
        return search_tools_with_ranking(query, self._tools)

    async def get_tool_schema(self, name: str) -> Dict[str, Any]:
        resolved = resolve_tool_name(name, self._tools, self.key)
        if resolved not in self._tools:
            raise HelperToolError(
                "TOOL_NOT_FOUND",
                f"Tool '{name}' not found on {self.key}. Available: {', '.join(list(self._tools)[:10])}",
                server=self.key,
                tool=name,
            )
        spec = self._tools[resolved]
        return {"name": resolved, "description": spec.get("description", ""), "parameters": self._schema(resolved)}

    def _failure(self, error: HelperToolError, throw_on_error: bool) -> Any:
        if throw_on_error:
            raise error
        return {"ok": False, "error": error.to_dict()}

    async def _call(self, tool: str, args: Dict[str, Any]) -> Dict[str, Any]:
        """One proxy round trip, normalized to ``{ok, data | error, raw}``."""
        try:
            raw = await self._call_tool(self.key, tool, args)
        except ProxyCallError as exc:
            return {
                "ok": False,
                "error": {"code": exc.error_code or "TOOL_ERROR", "message": str(exc), "details": exc.body},
                "status": exc.status,
            }
        transformed = transform_response(raw, tool)
        transformed["raw"] = raw
        return transformed

    async def invoke(
        self,
        name: str,
        args: Optional[Dict[str, Any]] = None,
        options: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Call a tool of this server.

        Args:
            name: Tool name; near misses are resolved to a unique close match.
            args: Tool arguments, coerced to the schema's declared types.
            options: ``throw_on_error`` (default ``True``) and ``return_format``
                (``"parsed"`` or ``"raw"``).

        Returns:
            The normalized tool data, the raw response for ``return_format="raw"``,
            or an ``{"ok": False, "error": ...}`` envelope when errors are not thrown.

        Raises:
            HelperToolError: On failure when ``throw_on_error`` is true.
        """
        opts = dict(options or {})
        throw_on_error = opts.get("throw_on_error", True) is not False
        tool = resolve_tool_name(name, self._tools, self.key)
        if tool != name:
            logger.debug("ServerHelper.invoke: resolved %s.%s -> %s", self.key, name, tool)
        schema = self._schema(tool)
        call_args = coerce_args(args, schema)

        missing = [p for p in required_params(schema) if call_args.get(p) is None]
        if missing:
            return self._failure(
                HelperToolError(
                    "MISSING_REQUIRED_PARAM",
                    f"Missing required parameter: {missing[0]}",
                    details={"missing": missing, "required": required_params(schema)},
                    server=self.key,
                    tool=tool,
                    args=call_args,
                ),
                throw_on_error,
            )

        outcome = await self._call(tool, call_args)
        if not outcome["ok"] and outcome.get("status") not in _NO_RETRY_STATUSES:
            required = set(required_params(schema))
            reduced = {k: v for k, v in call_args.items() if k in required}
            if reduced != call_args:
                logger.debug("ServerHelper.invoke: retrying %s.%s with required arguments only", self.key, tool)
                retry = await self._call(tool, reduced)
                if retry["ok"]:
                    outcome = retry

        if not outcome["ok"]:
            err = outcome.get("error")
            err = err if isinstance(err, dict) else {"message": str(err)}
            return self._failure(
                HelperToolError(
                    str(err.get("code") or "TOOL_ERROR"),
                    str(err.get("message") or "Tool execution failed"),
                    details=err.get("details") if isinstance(err.get("details"), dict) else {},
                    server=self.key,
                    tool=tool,
                    args=call_args,
                ),
                throw_on_error,
            )

        if opts.get("return_format") == "raw":
            return outcome.get("raw")
        data = outcome.get("data")
        if tool.endswith("_graphql_query"):
            check_graphql_response(data, tool_name=tool)
        return data

    async def get_data(self, name: str, args: Optional[Dict[str, Any]] = None) -> Any:
        """Like ``invoke``, but a staged dataset is queried and its first rows returned."""
        data = await self.invoke(name, args)
        if isinstance(data, dict) and data.get("dataAccessId") and data.get("table"):
            return await self.query_staged_data(data["dataAccessId"], STAGED_PREVIEW_SQL.format(table=data["table"]))
        return data

    async def query_staged_data(self, data_access_id: str, sql: str) -> List[Any]:
        data = await self.invoke(STAGED_QUERY_TOOL, {"operation": "query", "data_access_id": data_access_id, "sql": sql})
        if isinstance(data, list):
            return data
        if isinstance(data, dict):
            nested = data.get("data")
            nested_rows = nested.get("rows") if isinstance(nested, dict) else None
            for candidate in (data.get("rows"), data.get("results"), nested_rows, nested):
                if isinstance(candidate, list):
                    return candidate
        raise HelperToolError(
            "QUERY_FAILED",
            "Could not extract rows from query response",
            server=self.key,
            tool=STAGED_QUERY_TOOL,
            details={"dataAccessId": data_access_id},
        )


class HelperRegistry:
    """``helpers`` object: one ``ServerHelper`` per server key plus transport aliases."""

    def __init__(
        self,
        servers: Mapping[str, Mapping[str, Any]],
        call_tool: CallTool,
        *,
        aliases: Optional[Mapping[str, str]] = None,
    ) -> None:
        self._helpers: Dict[str, ServerHelper] = {
            key: ServerHelper(key, (spec or {}).get("tools") or {}, call_tool) for key, spec in servers.items()
        }
        self._aliases = {a: t for a, t in (aliases or {}).items() if t in self._helpers}

    def __repr__(self) -> str:
        return f"<helpers: {', '.join(self._helpers)}>"

    def list_servers(self) -> List[str]:
        return list(self._helpers)

    def server(self, key: str) -> ServerHelper:
        helper = self._helpers.get(key) or self._helpers.get(self._aliases.get(key, ""))
        if helper is None:
            raise HelperToolError(
                "SERVER_NOT_FOUND",
                f"Server '{key}' is not available. Available servers: {', '.join(self._helpers) or 'none'}",
                server=key,
            )
        return helper

    def __getattr__(self, name: str) -> ServerHelper:
        if name.startswith("_"):
            raise AttributeError(name)
        return self.server(name)
