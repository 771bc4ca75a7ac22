"""
Tool Proxy Endpoints.

The sandbox reaches MCP tools only through these endpoints. A call names a
catalog server key, a tool and its arguments; arguments are checked against
the tool's schema before the call is made, and every failure is answered with
a JSON body the helper runtime and the classifier understand.
"""

from typing import Any, Dict

from fastapi import APIRouter, Query

from codemode_gateway.core.logging_config import get_logger
from codemode_gateway.mcp_client.errors import (
    ServerNotFoundError,
    ToolArgumentError,
    ToolInvocationError,
    ToolNotFoundError,
    ToolTimeoutError,
)
from codemode_gateway.mcp_client.validation import generate_schema_summary
from codemode_gateway.server.core.security import ProxyAuth
from codemode_gateway.server.exception_handlers.global_handler import GatewayHTTPError
from codemode_gateway.server.schemas import ProxyCallRequest, ProxyToolsResponse
from codemode_gateway.server.services.deps import GatewayDep

logger = get_logger(__name__)

router = APIRouter(dependencies=[ProxyAuth])


def _unknown_server(gateway: Any) -> GatewayHTTPError:
    return GatewayHTTPError(400, {"error": f"Unknown server. Use one of: {', '.join(gateway.server_keys)}"})


def _tool_not_found(exc: ToolNotFoundError) -> GatewayHTTPError:
    available = exc.available
    hint = f" (and {len(available) - 10} more)" if len(available) > 10 else ""
    return GatewayHTTPError(
        400,
        {
            "error": f"Tool '{exc.tool_name}' not found",
            "errorCode": "TOOL_NOT_FOUND",
            "availableTools": available[:20],
            "suggestion": f"Available tools in {exc.server_key}: {', '.join(available[:10])}{hint}",
        },
    )


def _execution_error(exc: ToolInvocationError) -> GatewayHTTPError:
    content: Dict[str, Any] = {"error": exc.reason, "errorCode": "EXECUTION_ERROR"}
    if exc.schema:
        content["hint"] = f"Expected parameters: {generate_schema_summary(exc.schema)}"
        content["tip"] = f"Use helpers.{exc.server_key}.get_tool_schema('{exc.tool_name}') for full schema"
    return GatewayHTTPError(500, content)


@router.get(
    "/proxy",
    response_model=ProxyToolsResponse,
    summary="List Server Tools",
    description="List the tool names exposed by one catalog server.",
)
async def list_server_tools(gateway: GatewayDep, server: str = Query("", description="Catalog server key.")):
    if server not in gateway.catalog:
        raise _unknown_server(gateway)
    return ProxyToolsResponse(server=server, tools=await gateway.list_tools(server))


@router.post(
    "/proxy",
    summary="Call Tool",
    description="Validate arguments and call one tool of a catalog server.",
    response_description="The tool result wrapped as {result}.",
)
async def call_tool(body: ProxyCallRequest, gateway: GatewayDep):
    """
    Forward one tool call.

    Returns ``{"result": ...}`` on success. Errors: 400 for an unknown server,
    a missing tool name, an unknown tool (``TOOL_NOT_FOUND``) or arguments that
    fail validation (``INVALID_ARGUMENTS``); 504 on timeout; 500 when the call
    raises (``EXECUTION_ERROR``).
    """
    if not body.server or body.server not in gateway.catalog:
        raise _unknown_server(gateway)
    if not body.tool:
        raise GatewayHTTPError(400, {"error": "Missing tool name"})

    try:
        result = await gateway.call_tool(body.server, body.tool, body.args)
    except ServerNotFoundError:
        raise _unknown_server(gateway)
    except ToolNotFoundError as exc:
        raise _tool_not_found(exc)
    except ToolArgumentError as exc:
        raise GatewayHTTPError(400, {"error": str(exc), "errorCode": "INVALID_ARGUMENTS", **exc.details})
    except ToolTimeoutError as exc:
        raise GatewayHTTPError(504, {"error": str(exc), "errorCode": "TIMEOUT"})
    except ToolInvocationError as exc:
        raise _execution_error(exc)

    logger.debug(f"Proxy call {body.server}/{body.tool} completed")
    return {"result": result}
