"""
Core utilities for codemode-gateway.

This package provides shared functionality such as logging configuration.
"""

from codemode_gateway.core.logging_config import get_logger, setup_logging

__all__ = ["get_logger", "setup_logging"]
