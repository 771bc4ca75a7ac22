"""
Main Application Entry Point.

This module initializes the FastAPI application, configures middleware (CORS),
registers exception handlers and includes all API routers. It serves as the
root of the web server.
"""

from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from codemode_gateway import __version__
from codemode_gateway.core.logging_config import get_logger, setup_logging

from .api.v1 import codemode, health, metrics, proxy, sandbox
from .core import constant
from .core.config import settings
from .exception_handlers import setup_exception_handlers
from .services.gateway import get_gateway

# Initialize logging
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application lifespan events.

    Starts the gateway service (connection cache sweep) on startup and closes
    every pooled MCP connection on shutdown.
    """
    # Startup
    logger.info("Starting up codemode-gateway server...")
    gateway = get_gateway()
    for endpoint, secret in (("proxy", gateway.config.proxy_token), ("sandbox", gateway.config.client_token)):
        if not secret:
            logger.warning(f"No token configured for the {endpoint} endpoint; it accepts unauthenticated requests")
    gateway.start()

    yield

    # Shutdown
    logger.info("Shutting down codemode-gateway server...")
    await gateway.stop()


app = FastAPI(
    title=constant.PROJECT_NAME,
    description="""
    codemode-gateway Server API

    Connects MCP tool servers, generates a scriptable helper API from their tools,
    and runs model-authored scripts against it in a restricted sandbox whose only
    network path is the tool proxy.
    """,
    version=__version__,
    openapi_url=f"{constant.API_V1_STR}/openapi.json",
    docs_url=f"{constant.API_V1_STR}/docs",
    redoc_url=f"{constant.API_V1_STR}/redoc",
    lifespan=lifespan,
)

# Set all CORS enabled origins
cors = settings.cors
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors.origins,
    allow_credentials=cors.allow_credentials,
    allow_methods=cors.allow_methods,
    allow_headers=cors.allow_headers,
)

setup_exception_handlers(app)

app.include_router(health.router, tags=["health"])
app.include_router(proxy.router, prefix=f"{constant.API_V1_STR}/codemode", tags=["proxy"])
app.include_router(sandbox.router, prefix=f"{constant.API_V1_STR}/codemode", tags=["sandbox"])
app.include_router(codemode.router, prefix=f"{constant.API_V1_STR}/codemode", tags=["codemode"])
app.include_router(metrics.router, prefix=f"{constant.API_V1_STR}/metrics", tags=["metrics"])


def run() -> None:
    """Serve the app with uvicorn on the configured host and port."""
    uvicorn.run(app, host=settings.server_host, port=settings.server_port)
