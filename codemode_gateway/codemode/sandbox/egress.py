"""Network boundary for the sandbox: only the proxy host is reachable."""

from __future__ import annotations

import logging
from typing import Iterable, Optional
from urllib.parse import urlsplit

import httpx


class EgressDeniedError(httpx.TransportError):
    pass


class EgressGuardTransport(httpx.AsyncBaseTransport):
    """Wraps an httpx transport and refuses requests to any other host."""

    def __init__(self, allowed_hosts: Iterable[str], inner: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self.allowed_hosts = {h.lower() for h in allowed_hosts if h}
        self._inner = inner or httpx.AsyncHTTPTransport()
        self._logger = logging.getLogger(__name__)

    @classmethod
    def for_url(cls, url: str, inner: Optional[httpx.AsyncBaseTransport] = None) -> "EgressGuardTransport":
        return cls([urlsplit(url).hostname or ""], inner)

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        host = (request.url.host or "").lower()
        if host not in self.allowed_hosts:
            self._logger.warning("EgressGuardTransport: blocked request to %s", host)
            raise EgressDeniedError(f"Network access to '{host}' is blocked; only the Code Mode proxy is reachable", request=request)
        return await self._inner.handle_async_request(request)

    async def aclose(self) -> None:
        await self._inner.aclose()
