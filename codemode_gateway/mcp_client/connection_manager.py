"""Connection manager for MCP tool servers.

``McpConnectionManager.acquire`` turns a list of ``ServerDescriptor`` objects
into a ``ToolSet``. Live connections are cached by descriptor signature and
reused while fresh; a background sweep closes connections idle past the TTL.

Failures are isolated per server: a server that cannot be reached within its
connect timeout is logged and left out of the result. All attempts race one
overall budget; attempts still pending when it expires are left running and,
if they finish, populate the cache for later requests only.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Set, Tuple

from .invoker import SessionToolInvoker, ToolDefinition
from .schemas.config import ServerDescriptor, TransportType
from .transport.mcp import AsyncMCPTransport, McpConnection, connection_headers, transport_for
from .wrapper import InvocationWrapper, WrappedTool

DEFAULT_TTL_SECONDS = 300.0
DEFAULT_SWEEP_SECONDS = 60.0
DEFAULT_CONNECT_BUDGET_SECONDS = 10.0
DEFAULT_CONNECT_TIMEOUTS: Dict[TransportType, float] = {
    TransportType.SSE: 8.0,
    TransportType.HTTP: 6.0,
}


@dataclass
class CachedConnection:
    key: str
    descriptor: ServerDescriptor
    connection: McpConnection
    tools: Dict[str, WrappedTool]
    last_used: float


@dataclass
class ServerTools:
    descriptor: ServerDescriptor
    tools: Dict[str, WrappedTool]


@dataclass
class AcquiredConnection:
    key: str
    url: str
    connection: McpConnection
    owned: bool


class ConnectionCache:
    """Signature-keyed cache of live connections with idle eviction."""

    def __init__(
        self,
        *,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        sweep_seconds: float = DEFAULT_SWEEP_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self.sweep_seconds = sweep_seconds
        self._clock = clock
        self._entries: Dict[str, CachedConnection] = {}
        self._sweep_task: Optional[asyncio.Task] = None
        self._logger = logging.getLogger(__name__)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def now(self) -> float:
        return self._clock()

    def is_fresh(self, entry: CachedConnection) -> bool:
        return entry.connection.is_open and (self.now() - entry.last_used) < self.ttl_seconds

    def get_fresh(self, key: str) -> Optional[CachedConnection]:
        """Return a fresh entry and touch it, or ``None``."""
        entry = self._entries.get(key)
        if entry is None or not self.is_fresh(entry):
            return None
        entry.last_used = self.now()
        return entry

    def put(self, entry: CachedConnection) -> None:
        self._entries[entry.key] = entry

    def pop(self, key: str) -> Optional[CachedConnection]:
        return self._entries.pop(key, None)

    def peek(self, key: str) -> Optional[CachedConnection]:
        return self._entries.get(key)

    async def sweep(self) -> int:
        """Close and evict every entry idle past the TTL (or already closed)."""
        stale = [key for key, entry in self._entries.items() if not self.is_fresh(entry)]
        for key in stale:
            entry = self._entries.pop(key)
            self._logger.info("ConnectionCache.sweep: evicting idle MCP client %s", entry.descriptor.url)
            try:
                await entry.connection.close()
            except Exception as exc:
                self._logger.warning("ConnectionCache.sweep: error closing %s: %s", entry.descriptor.url, exc)
        return len(stale)

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_seconds)
            await self.sweep()

    def start(self) -> None:
        if self._sweep_task is None or self._sweep_task.done():
            self._sweep_task = asyncio.create_task(self._sweep_loop(), name="mcp-connection-sweep")

    async def stop(self) -> None:
        """Stop the sweep and close every cached connection."""
        task, self._sweep_task = self._sweep_task, None
        if task is not None:
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
        entries = list(self._entries.values())
        self._entries.clear()
        for entry in entries:
            try:
                await entry.connection.close()
            except Exception as exc:
                self._logger.warning("ConnectionCache.stop: error closing %s: %s", entry.descriptor.url, exc)


@dataclass
class ToolSet:
    """Tools resolved for one request and the connections backing them."""

    tools: Dict[str, WrappedTool] = field(default_factory=dict)
    by_server: Dict[str, ServerTools] = field(default_factory=dict)
    connections: List[AcquiredConnection] = field(default_factory=list)
    _manager: Optional["McpConnectionManager"] = field(default=None, repr=False)
    _cleaned: bool = field(default=False, repr=False)
    _cancel_watcher: Optional[asyncio.Task] = field(default=None, repr=False)

    def add(self, entry: CachedConnection, *, owned: bool) -> None:
        self.by_server[entry.descriptor.url] = ServerTools(descriptor=entry.descriptor, tools=dict(entry.tools))
        self.tools.update(entry.tools)
        self.connections.append(
            AcquiredConnection(key=entry.key, url=entry.descriptor.url, connection=entry.connection, owned=owned)
        )

    async def cleanup(self) -> None:
        """Close connections created by this acquisition; reused ones are left alone."""
        if self._cleaned:
            return
        self._cleaned = True
        watcher, self._cancel_watcher = self._cancel_watcher, None
        if watcher is not None and watcher is not asyncio.current_task():
            watcher.cancel()
        owned = [c for c in self.connections if c.owned]
        if self._manager is not None:
            await self._manager.release(owned)
        else:
            for c in owned:
                await c.connection.close()


class McpConnectionManager:
    def __init__(
        self,
        wrapper: InvocationWrapper,
        *,
        cache: Optional[ConnectionCache] = None,
        connect_timeouts: Optional[Dict[TransportType, float]] = None,
        connect_budget_seconds: float = DEFAULT_CONNECT_BUDGET_SECONDS,
        transport_factory: Callable[[TransportType], AsyncMCPTransport] = transport_for,
    ) -> None:
        self.wrapper = wrapper
        self.cache = cache or ConnectionCache()
        self.connect_timeouts = dict(DEFAULT_CONNECT_TIMEOUTS)
        if connect_timeouts:
            self.connect_timeouts.update(connect_timeouts)
        self.connect_budget_seconds = connect_budget_seconds
        self._transport_factory = transport_factory
        self._pending: Set[asyncio.Task] = set()
        self._logger = logging.getLogger(__name__)

    def start(self) -> None:
        self.cache.start()

    async def stop(self) -> None:
        for task in list(self._pending):
            task.cancel()
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
        await self.cache.stop()

    async def _connect(self, descriptor: ServerDescriptor) -> CachedConnection:
        key = descriptor.cache_key()
        transport = self._transport_factory(descriptor.type)
        connection = McpConnection(transport, descriptor.url, headers=connection_headers(descriptor))
        timeout = self.connect_timeouts.get(descriptor.type, DEFAULT_CONNECT_TIMEOUTS[TransportType.HTTP])
        self._logger.debug("McpConnectionManager._connect: connecting %s (%s)", descriptor.url, descriptor.type.value)
        session = await connection.open(timeout)
        try:
            listed = await asyncio.wait_for(session.list_tools(), timeout)
            tools: Dict[str, WrappedTool] = {}
            for tool in getattr(listed, "tools", None) or []:
                definition = ToolDefinition.from_mcp_tool(
                    tool, SessionToolInvoker(connection, tool.name), server_url=descriptor.url
                )
                tools[definition.name] = self.wrapper.wrap(definition, timeout_ms=descriptor.timeout_ms)
        except BaseException:
            await connection.close()
            raise
        self._logger.info("McpConnectionManager._connect: %s exposes %d tools", descriptor.url, len(tools))
        return CachedConnection(
            key=key, descriptor=descriptor, connection=connection, tools=tools, last_used=self.cache.now()
        )

    async def _connect_and_store(self, descriptor: ServerDescriptor) -> Tuple[CachedConnection, bool]:
        """Connect, then insert into the cache unless another request already did.

        Returns:
            ``(entry, owned)``; ``owned`` is ``False`` when an existing entry was adopted.
        """
        entry = await self._connect(descriptor)
        existing = self.cache.get_fresh(entry.key)
        if existing is not None:
            self._logger.debug("McpConnectionManager._connect_and_store: adopting cached client for %s", descriptor.url)
            await entry.connection.close()
            return existing, False
        self.cache.put(entry)
        return entry, True

    async def acquire(
        self,
        descriptors: Sequence[ServerDescriptor],
        *,
        cancel: Optional[asyncio.Event] = None,
    ) -> ToolSet:
        """Resolve the tools of every reachable server.

        Args:
            descriptors: Servers to connect to. Duplicates (same cache key) are merged.
            cancel: Optional event; once set, connections created by this call are torn down.

        Returns:
            A ``ToolSet``; servers that failed to connect are absent from it.
        """
        tool_set = ToolSet(_manager=self)
        unique: Dict[str, ServerDescriptor] = {}
        for descriptor in descriptors:
            unique.setdefault(descriptor.cache_key(), descriptor)

        attempts: Dict[asyncio.Task, ServerDescriptor] = {}
        for key, descriptor in unique.items():
            cached = self.cache.get_fresh(key)
            if cached is not None:
                self._logger.debug("McpConnectionManager.acquire: reusing cached client for %s", descriptor.url)
                tool_set.add(cached, owned=False)
                continue
            stale = self.cache.pop(key)
            if stale is not None:
                await stale.connection.close()
            task = asyncio.create_task(self._connect_and_store(descriptor), name=f"mcp-connect:{descriptor.url}")
            attempts[task] = descriptor
            self._pending.add(task)
            task.add_done_callback(self._attempt_finished)

        if attempts:
            done, pending = await asyncio.wait(attempts.keys(), timeout=self.connect_budget_seconds)
            for task in pending:
                self._logger.warning(
                    "McpConnectionManager.acquire: connect budget exceeded for %s; continuing in background",
                    attempts[task].url,
                )
            for task in done:
                descriptor = attempts[task]
                exc = task.exception()
                if exc is not None:
                    self._logger.warning(
                        "McpConnectionManager.acquire: failed to connect %s (%s): %s",
                        descriptor.url,
                        descriptor.type.value,
                        str(exc) or type(exc).__name__,
                    )
                    continue
                entry, owned = task.result()
                tool_set.add(entry, owned=owned)

        if cancel is not None:
            if cancel.is_set():
                await tool_set.cleanup()
            elif any(c.owned for c in tool_set.connections):
                watcher = asyncio.create_task(self._cleanup_on_cancel(tool_set, cancel))
                tool_set._cancel_watcher = watcher
                self._pending.add(watcher)
                watcher.add_done_callback(self._pending.discard)
        return tool_set

    def _attempt_finished(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self._logger.debug("McpConnectionManager._attempt_finished: %s", exc)

    async def _cleanup_on_cancel(self, tool_set: ToolSet, cancel: asyncio.Event) -> None:
        await cancel.wait()
        self._logger.info("McpConnectionManager: request cancelled, closing newly created connections")
        await tool_set.cleanup()

    async def release(self, acquired: Sequence[AcquiredConnection]) -> None:
        """Evict and close the given connections."""
        for item in acquired:
            entry = self.cache.peek(item.key)
            if entry is not None and entry.connection is item.connection:
                self.cache.pop(item.key)
            try:
                await item.connection.close()
            except Exception as exc:
                self._logger.warning("McpConnectionManager.release: error closing %s: %s", item.url, exc)
