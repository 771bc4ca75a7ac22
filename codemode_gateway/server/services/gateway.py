from __future__ import annotations

import asyncio
from collections import OrderedDict
from typing import Any, Callable, Dict, List, Optional, Sequence

import httpx

from codemode_gateway.codemode.docs import (
    estimate_doc_tokens,
    generate_compact_docs,
    generate_detailed_docs,
    generate_minimal_docs,
)
from codemode_gateway.codemode.generator import generate_helpers_implementation
from codemode_gateway.codemode.registry import (
    HelperServerEntry,
    build_alias_map,
    build_catalog,
    build_helpers_metadata,
    build_server_entries,
    build_tool_registry,
)
from codemode_gateway.codemode.sandbox.executor import SandboxExecutor
from codemode_gateway.codemode.sandbox.models import SandboxRequest, SandboxResult
from codemode_gateway.core.logging_config import get_logger
from codemode_gateway.enrichment.id_enrichment import IdEnricher, parse_id_patterns, parse_server_capabilities
from codemode_gateway.mcp_client.connection_manager import ConnectionCache, McpConnectionManager
from codemode_gateway.mcp_client.errors import (
    ServerNotFoundError,
    ToolArgumentError,
    ToolInvocationError,
    ToolNotFoundError,
    ToolTimeoutError,
)
from codemode_gateway.mcp_client.metrics import ToolMetricsStore
from codemode_gateway.mcp_client.schemas.config import TransportType
from codemode_gateway.mcp_client.transport.mcp import AsyncMCPTransport, transport_for
from codemode_gateway.mcp_client.validation import format_validation_error, generate_schema_summary, validate_args
from codemode_gateway.mcp_client.wrapper import InvocationWrapper, resolve_default_timeout_ms
from codemode_gateway.server.core.config import CodeModeConfig, MCPClientConfig, settings

logger = get_logger(__name__)

_DOC_RENDERERS: Dict[str, Callable[..., str]] = {
    "minimal": generate_minimal_docs,
    "compact": generate_compact_docs,
    "detailed": generate_detailed_docs,
}


class GatewayService:
    """
    Service layer shared by the code-mode endpoints.

    Owns the process-wide metrics store, the invocation wrapper, the connection
    manager (and with it the connection cache), the server catalog, the ID
    enricher and the sandbox executor.
    """

    def __init__(
        self,
        mcp_config: Optional[MCPClientConfig] = None,
        codemode_config: Optional[CodeModeConfig] = None,
        *,
        transport_factory: Callable[[TransportType], AsyncMCPTransport] = transport_for,
        sandbox_transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.mcp_config = mcp_config or settings.mcp_client
        self.config = codemode_config or settings.codemode

        self.metrics = ToolMetricsStore()
        self.wrapper = InvocationWrapper(
            self.metrics,
            default_timeout_ms=resolve_default_timeout_ms(self.mcp_config.tool_timeout_ms),
            enum_policy=self.config.enum_retry_policy,
        )
        self.connections = McpConnectionManager(
            self.wrapper,
            cache=ConnectionCache(
                ttl_seconds=self.mcp_config.client_ttl_seconds,
                sweep_seconds=self.mcp_config.cache_sweep_seconds,
            ),
            connect_timeouts=self.mcp_config.connect_timeouts,
            connect_budget_seconds=self.mcp_config.connect_budget_seconds,
            transport_factory=transport_factory,
        )
        self.catalog = build_catalog(self.config.servers)

        patterns = parse_id_patterns(self.config.id_patterns) if self.config.id_patterns is not None else None
        capabilities = (
            parse_server_capabilities(self.config.id_capabilities) if self.config.id_capabilities is not None else None
        )
        self.id_enricher = IdEnricher(patterns, capabilities, active_servers=list(self.catalog))

        self.sandbox = SandboxExecutor(
            self.config.proxy_url,
            token=self.config.proxy_token,
            transport=sandbox_transport,
        )

    @property
    def server_keys(self) -> List[str]:
        return list(self.catalog)

    def start(self) -> None:
        logger.info("GatewayService.start: %d catalog servers: %s", len(self.catalog), ", ".join(self.catalog))
        self.connections.start()

    async def stop(self) -> None:
        await self.connections.stop()
        logger.info("GatewayService.stop: connections closed")

    async def server_entries(self, keys: Optional[Sequence[str]] = None) -> "OrderedDict[str, HelperServerEntry]":
        """Resolve tools for catalog servers; unreachable servers are left out.

        Raises:
            ServerNotFoundError: A requested key is not in the catalog.
        """
        selected = list(keys) if keys else list(self.catalog)
        for key in selected:
            if key not in self.catalog:
                raise ServerNotFoundError(key, self.server_keys)
        tool_set = await self.connections.acquire([self.catalog[k] for k in selected])
        entries = build_server_entries(tool_set, OrderedDict((k, self.catalog[k]) for k in selected))
        for key in selected:
            if key not in entries:
                logger.warning("GatewayService.server_entries: %s unavailable, excluded", key)
        return entries

    async def list_tools(self, key: str) -> List[str]:
        entries = await self.server_entries([key])
        entry = entries.get(key)
        return list(entry.tools) if entry else []

    async def call_tool(self, key: str, tool_name: str, args: Optional[Dict[str, Any]] = None) -> Any:
        """Validate and invoke one tool of a catalog server; the result is ID-enriched.

        Raises:
            ServerNotFoundError: Unknown server key.
            ToolNotFoundError: The server does not expose ``tool_name``.
            ToolArgumentError: Arguments fail the schema check; ``details`` carries
                the validation errors, suggestions, schema summary and received args.
            ToolTimeoutError: The call exceeded its deadline.
            ToolInvocationError: The call raised.
        """
        received = dict(args or {})
        entries = await self.server_entries([key])
        tools = entries[key].tools if key in entries else {}
        wrapped = tools.get(tool_name)
        if wrapped is None:
            raise ToolNotFoundError(key, tool_name, list(tools))

        schema = wrapped.parameters
        validation = validate_args(wrapped.prepare_args(received), schema)
        if not validation.valid:
            raise ToolArgumentError(
                key,
                tool_name,
                format_validation_error(validation, tool_name, key),
                details={
                    "validation": {
                        "errors": [e.to_dict() for e in validation.errors],
                        "suggestions": list(validation.suggestions),
                    },
                    "schema": generate_schema_summary(schema),
                    "receivedArgs": received,
                },
            )

        try:
            result = await wrapped.invoke(received)
        except ToolTimeoutError:
            raise
        except Exception as exc:
            logger.warning("GatewayService.call_tool: %s/%s raised %s", key, tool_name, type(exc).__name__)
            raise ToolInvocationError(key, tool_name, str(exc) or type(exc).__name__, schema=schema) from exc
        return self.id_enricher.enrich_tool_result(result, tool_name)

    async def prepare(self, keys: Optional[Sequence[str]] = None, *, detail: str = "compact") -> Dict[str, Any]:
        """Docs, helper module source and registry views for the selected servers."""
        entries = await self.server_entries(keys)
        aliases = build_alias_map(entries)
        render = _DOC_RENDERERS.get(detail, generate_compact_docs)
        docs = render({key: entry.tools for key, entry in entries.items()})
        logger.debug("GatewayService.prepare: %d servers, ~%d doc tokens", len(entries), estimate_doc_tokens(docs))
        return {
            "docs": docs,
            "helpersImplementation": generate_helpers_implementation(entries, aliases),
            "toolRegistry": build_tool_registry(entries),
            "helpersMetadata": build_helpers_metadata(entries),
            "aliases": aliases,
        }

    async def run_sandbox(self, request: SandboxRequest) -> SandboxResult:
        """Run a script under the host time limit.

        Raises:
            asyncio.TimeoutError: The run exceeded ``sandbox_timeout_seconds``.
        """
        return await asyncio.wait_for(self.sandbox.run(request), self.config.sandbox_timeout_seconds)


_gateway: Optional[GatewayService] = None


def get_gateway() -> GatewayService:
    global _gateway
    if _gateway is None:
        _gateway = GatewayService()
    return _gateway
