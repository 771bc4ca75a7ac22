"""
Code Mode Preparation Endpoint.

Connects the selected catalog servers and returns the prompt documentation,
the helper module source and the registry views a sandbox request needs.
"""

from fastapi import APIRouter

from codemode_gateway.mcp_client.errors import ServerNotFoundError
from codemode_gateway.server.exception_handlers.global_handler import GatewayHTTPError
from codemode_gateway.server.schemas import PrepareRequest, PrepareResponse
from codemode_gateway.server.services.deps import GatewayDep

router = APIRouter()


@router.post(
    "/prepare",
    response_model=PrepareResponse,
    response_model_by_alias=True,
    summary="Prepare Code Mode",
    description="Resolve tools for catalog servers and generate docs and the helper implementation.",
)
async def prepare(request: PrepareRequest, gateway: GatewayDep):
    try:
        prepared = await gateway.prepare(request.servers, detail=request.detail)
    except ServerNotFoundError as exc:
        raise GatewayHTTPError(400, {"error": f"Unknown server. Use one of: {', '.join(exc.available)}"})
    return PrepareResponse.model_validate(prepared)
