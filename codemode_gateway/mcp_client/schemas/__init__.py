"""Pydantic models for server descriptors and tool metrics."""

from .config import HeaderPair, ServerDescriptor, TransportType
from .core import InvocationRecord, InvocationStatus, ToolMetricsReport, ToolMetricView

__all__ = [
    "HeaderPair",
    "InvocationRecord",
    "InvocationStatus",
    "ServerDescriptor",
    "ToolMetricView",
    "ToolMetricsReport",
    "TransportType",
]
