from __future__ import annotations

import httpx
import pytest

from codemode_gateway.codemode.sandbox.egress import EgressDeniedError, EgressGuardTransport


def _inner() -> httpx.MockTransport:
    return httpx.MockTransport(lambda request: httpx.Response(200, json={"host": request.url.host}))


@pytest.mark.asyncio
async def test_allowed_host_passes_through() -> None:
    guard = EgressGuardTransport.for_url("http://localhost:8000/api/v1/codemode/proxy", inner=_inner())
    async with httpx.AsyncClient(transport=guard) as client:
        resp = await client.get("http://localhost:8000/anything")
    assert resp.json() == {"host": "localhost"}


@pytest.mark.asyncio
async def test_other_hosts_are_blocked() -> None:
    guard = EgressGuardTransport(["localhost"], inner=_inner())
    async with httpx.AsyncClient(transport=guard) as client:
        with pytest.raises(EgressDeniedError, match="blocked"):
            await client.get("http://127.0.0.1/")


def test_host_matching_is_case_insensitive() -> None:
    guard = EgressGuardTransport(["LocalHost", ""], inner=_inner())
    assert guard.allowed_hosts == {"localhost"}


def test_denied_error_is_an_httpx_transport_error() -> None:
    assert issubclass(EgressDeniedError, httpx.TransportError)
