"""
Gateway Dependency.

Provides a singleton instance of the GatewayService for API endpoints.
"""

from typing import Annotated

from fastapi import Depends

from codemode_gateway.server.services.gateway import GatewayService, get_gateway

GatewayDep = Annotated[GatewayService, Depends(get_gateway)]
