from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Optional, Protocol, runtime_checkable

from mcp import ClientSession
from mcp.client.sse import sse_client
from mcp.client.streamable_http import streamablehttp_client

from ..errors import ConnectionEstablishError
from ..schemas.config import ServerDescriptor, TransportType

DEFAULT_USER_AGENT = "codemode-gateway/0.1 (+mcp)"
STREAMING_ACCEPT = "application/json, text/event-stream"


@runtime_checkable
class AsyncMCPTransport(Protocol):
    """Protocol for creating MCP ClientSession connections asynchronously.

    Implementations return an async context manager via
    ``session(endpoint_url, headers=...)`` that yields an initialized
    ``ClientSession``.
    """

    def session(self, endpoint_url: str, *, headers: Optional[Dict[str, str]] = None):
        ...


class StreamableHttpMCPTransport:
    """MCP transport using the streamable HTTP client."""

    def session(self, endpoint_url: str, *, headers: Optional[Dict[str, str]] = None):
        @asynccontextmanager
        async def _cm() -> AsyncIterator[ClientSession]:
            async with streamablehttp_client(endpoint_url, headers=headers) as (read_stream, write_stream, _close_fn):
                async with ClientSession(read_stream, write_stream) as session:
                    await session.initialize()
                    yield session

        return _cm()


class SseMCPTransport:
    """MCP transport using the SSE client (MCP over SSE)."""

    def session(self, endpoint_url: str, *, headers: Optional[Dict[str, str]] = None):
        @asynccontextmanager
        async def _cm() -> AsyncIterator[ClientSession]:
            async with sse_client(endpoint_url, headers=headers) as (read_stream, write_stream):
                async with ClientSession(read_stream, write_stream) as session:
                    await session.initialize()
                    yield session

        return _cm()


def transport_for(kind: TransportType) -> AsyncMCPTransport:
    if kind is TransportType.SSE:
        return SseMCPTransport()
    return StreamableHttpMCPTransport()


def connection_headers(descriptor: ServerDescriptor) -> Dict[str, str]:
    """Headers sent on the connection: caller headers plus defaults."""
    headers = descriptor.header_dict()
    lowered = {k.lower() for k in headers}
    if "user-agent" not in lowered:
        headers["User-Agent"] = DEFAULT_USER_AGENT
    if descriptor.type is TransportType.HTTP and "accept" not in lowered:
        headers["Accept"] = STREAMING_ACCEPT
    return headers


class McpConnection:
    """A live MCP session kept open by a dedicated owner task.

    The MCP client context managers are built on anyio task groups, which must
    be entered and exited by the same task. Cached sessions outlive the request
    that opened them, so the session is entered inside a background task that
    waits for ``close()`` and then exits the context itself.
    """

    def __init__(
        self,
        transport: AsyncMCPTransport,
        endpoint_url: str,
        *,
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        self.endpoint_url = endpoint_url
        self._transport = transport
        self._headers = dict(headers or {})
        self._logger = logging.getLogger(__name__)
        self._session: Optional[ClientSession] = None
        self._ready: Optional[asyncio.Future] = None
        self._closing: Optional[asyncio.Event] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def is_open(self) -> bool:
        return self._session is not None and self._task is not None and not self._task.done()

    @property
    def session(self) -> ClientSession:
        if self._session is None:
            raise ConnectionEstablishError(self.endpoint_url, "session is not open")
        return self._session

    async def open(self, timeout: Optional[float] = None) -> ClientSession:
        """Start the owner task and wait until the session is initialized.

        Raises:
            asyncio.TimeoutError: If the handshake does not finish within ``timeout``.
            Exception: Whatever the transport raised while connecting.
        """
        if self._task is not None:
            raise RuntimeError(f"connection to {self.endpoint_url} was already opened")
        loop = asyncio.get_running_loop()
        self._ready = loop.create_future()
        self._closing = asyncio.Event()
        self._task = asyncio.create_task(self._run(), name=f"mcp-connection:{self.endpoint_url}")
        try:
            return await asyncio.wait_for(self._ready, timeout)
        except BaseException:
            await self.close()
            raise

    async def _run(self) -> None:
        assert self._ready is not None and self._closing is not None
        try:
            async with self._transport.session(self.endpoint_url, headers=self._headers) as session:
                self._session = session
                if not self._ready.done():
                    self._ready.set_result(session)
                await self._closing.wait()
        except Exception as exc:
            if not self._ready.done():
                self._ready.set_exception(exc)
            else:
                self._logger.warning("McpConnection._run: session for %s ended with error: %s", self.endpoint_url, exc)
        finally:
            self._session = None
            if not self._ready.done():
                self._ready.set_exception(ConnectionEstablishError(self.endpoint_url, "connection task stopped"))

    async def close(self) -> None:
        task = self._task
        if task is None or task.done():
            self._session = None
            return
        self._logger.debug("McpConnection.close: closing session for %s", self.endpoint_url)
        if self._ready is not None and self._ready.done() and not self._ready.cancelled():
            assert self._closing is not None
            self._closing.set()
        else:
            task.cancel()
        await asyncio.wait({task})
