"""
Shared-secret authentication for the proxy and sandbox endpoints.

Each endpoint compares the ``x-codemode-token`` header with its configured
secret. When no secret is configured the endpoint is open (development mode).
"""

import secrets
from typing import Annotated, Optional

from fastapi import Depends, Header

from codemode_gateway.core.logging_config import get_logger
from codemode_gateway.server.exception_handlers.global_handler import GatewayHTTPError
from codemode_gateway.server.services.deps import GatewayDep

logger = get_logger(__name__)


def token_matches(expected: Optional[str], provided: Optional[str]) -> bool:
    if not expected:
        return True
    if provided is None:
        return False
    return secrets.compare_digest(expected.encode(), provided.encode())


def _reject(endpoint: str) -> GatewayHTTPError:
    logger.warning(f"Rejected {endpoint} request with missing or invalid token")
    return GatewayHTTPError(401, {"error": "Unauthorized"})


async def verify_proxy_token(
    gateway: GatewayDep,
    x_codemode_token: Annotated[Optional[str], Header()] = None,
) -> None:
    if not token_matches(gateway.config.proxy_token, x_codemode_token):
        raise _reject("proxy")


async def verify_client_token(
    gateway: GatewayDep,
    x_codemode_token: Annotated[Optional[str], Header()] = None,
) -> None:
    if not token_matches(gateway.config.client_token, x_codemode_token):
        raise _reject("sandbox")


ProxyAuth = Depends(verify_proxy_token)
ClientAuth = Depends(verify_client_token)
