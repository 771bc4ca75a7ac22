"""
Service layer for the gateway server.

``GatewayService`` wires the MCP client layer, code-mode generation, the
sandbox and ID enrichment together; ``deps`` exposes it to FastAPI routes.
"""

from .gateway import GatewayService, get_gateway

__all__ = ["GatewayService", "get_gateway"]
