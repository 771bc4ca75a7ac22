"""
Tool Metrics Endpoints.

Per-tool invocation counters and the recent invocation history, plus the
explicit operator reset.
"""

from fastapi import APIRouter

from codemode_gateway.core.logging_config import get_logger
from codemode_gateway.server.services.deps import GatewayDep

logger = get_logger(__name__)

router = APIRouter()


@router.get(
    "/tools",
    summary="Get Tool Metrics",
    description="Per-tool counts, latencies and the most recent invocations.",
)
async def get_tool_metrics(gateway: GatewayDep):
    return gateway.metrics.report().model_dump(mode="json", by_alias=True)


@router.delete(
    "/tools",
    summary="Reset Tool Metrics",
    description="Clear all counters and the invocation history.",
)
async def reset_tool_metrics(gateway: GatewayDep):
    gateway.metrics.reset()
    logger.info("Tool metrics reset by operator request")
    return {"status": "reset"}
