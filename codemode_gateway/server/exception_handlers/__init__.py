"""
Exception handlers for the gateway server.

This package contains custom exception handlers for different error types
and a setup function to register them with the FastAPI application.
"""

from .global_handler import GatewayHTTPError, setup_exception_handlers

__all__ = ["GatewayHTTPError", "setup_exception_handlers"]
