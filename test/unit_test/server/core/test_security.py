"""Unit tests for the shared-secret checks on the proxy and sandbox endpoints."""

from types import SimpleNamespace

import pytest

from codemode_gateway.server.core.security import token_matches, verify_client_token, verify_proxy_token
from codemode_gateway.server.exception_handlers import GatewayHTTPError


def _gateway(proxy_token=None, client_token=None):
    return SimpleNamespace(config=SimpleNamespace(proxy_token=proxy_token, client_token=client_token))


@pytest.mark.parametrize(
    "expected,provided,matches",
    [
        (None, None, True),
        ("", "anything", True),
        ("secret", None, False),
        ("secret", "secret", True),
        ("secret", "Secret", False),
        ("secret", "secret ", False),
    ],
)
def test_token_matches(expected, provided, matches):
    assert token_matches(expected, provided) is matches


@pytest.mark.asyncio
async def test_proxy_token_rejected():
    with pytest.raises(GatewayHTTPError) as exc_info:
        await verify_proxy_token(_gateway(proxy_token="p"), "wrong")
    assert exc_info.value.status_code == 401
    assert exc_info.value.content == {"error": "Unauthorized"}


@pytest.mark.asyncio
async def test_tokens_are_checked_per_endpoint():
    gateway = _gateway(proxy_token="p", client_token="c")

    await verify_proxy_token(gateway, "p")
    await verify_client_token(gateway, "c")
    with pytest.raises(GatewayHTTPError):
        await verify_client_token(gateway, "p")


@pytest.mark.asyncio
async def test_open_endpoints_without_configured_tokens():
    await verify_proxy_token(_gateway(), None)
    await verify_client_token(_gateway(), None)
