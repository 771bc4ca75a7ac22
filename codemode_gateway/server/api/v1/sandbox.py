"""
Sandbox Execution Endpoint.

Runs one model-authored script against the helper API. The response body is
always one of the two sandbox result shapes; the status code tells them apart.
"""

import asyncio

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from codemode_gateway.codemode.sandbox.models import SandboxRequest, SandboxResult
from codemode_gateway.codemode.sandbox.policy import POLICY_ERROR_CODES
from codemode_gateway.core.logging_config import get_logger
from codemode_gateway.server.core.security import ClientAuth
from codemode_gateway.server.services.deps import GatewayDep

logger = get_logger(__name__)

router = APIRouter(dependencies=[ClientAuth])


def status_for(result: SandboxResult) -> int:
    if result.ok:
        return 200
    if result.error_code in POLICY_ERROR_CODES:
        return 400
    return 500


@router.post(
    "/sandbox",
    summary="Run Script",
    description="Validate and execute a script against the generated helper API.",
    response_description="{result, logs} on success; {error, errorCode, suggestions, logs, debug} on failure.",
)
async def run_script(request: SandboxRequest, gateway: GatewayDep):
    """
    Execute a script.

    Status codes: 200 on success, 400 when the script is rejected before it
    runs, 500 for runtime failures and 504 when the host time limit is exceeded.
    """
    try:
        result = await gateway.run_sandbox(request)
    except asyncio.TimeoutError:
        limit = gateway.config.sandbox_timeout_seconds
        logger.warning(f"Sandbox run exceeded the {limit}s execution limit")
        result = SandboxResult.failure(
            f"The script exceeded the {limit:g}s execution limit",
            "TIMEOUT",
            suggestions=[
                "Request fewer results per tool call",
                "Run independent tool calls concurrently with asyncio.gather",
            ],
        )
        return JSONResponse(status_code=504, content=result.to_payload())
    return JSONResponse(status_code=status_for(result), content=result.to_payload())
