from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import Field

from .base import BaseSchema


class InvocationStatus(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    TIMEOUT = "timeout"


class ToolMetricView(BaseSchema):
    count: int = Field(0, description="Total number of invocations.", ge=0)
    success: int = Field(0, description="Invocations that returned a value, including retried successes.", ge=0)
    error: int = Field(0, description="Invocations that still failed after any retry.", ge=0)
    timeout: int = Field(0, description="Invocations that exceeded their deadline.", ge=0)
    total_ms: float = Field(0.0, description="Cumulative latency in milliseconds.", ge=0)
    last_ms: Optional[float] = Field(None, description="Latency of the most recent invocation.")
    last_status: Optional[InvocationStatus] = Field(None, description="Status of the most recent invocation.")
    last_error: Optional[str] = Field(None, description="Error message of the most recent failed invocation.")
    last_invoked_at: Optional[datetime] = Field(None, description="Wall-clock time of the most recent invocation.")
    avg_ms: float = Field(0.0, description="Mean latency in milliseconds.", ge=0)
    success_rate: float = Field(0.0, description="Fraction of invocations that succeeded (0..1).", ge=0, le=1)


class InvocationRecord(BaseSchema):
    tool_name: str = Field(..., description="Tool that was invoked.", min_length=1)
    status: InvocationStatus = Field(..., description="Outcome of the invocation.")
    duration_ms: float = Field(..., description="Wall time of the invocation in milliseconds.", ge=0)
    invoked_at: datetime = Field(..., description="When the invocation started.")
    error: Optional[str] = Field(None, description="Error message for failed invocations.")


class ToolMetricsReport(BaseSchema):
    tools: Dict[str, ToolMetricView] = Field(default_factory=dict, description="Per-tool counters keyed by tool name.")
    recent_invocations: List[InvocationRecord] = Field(
        default_factory=list,
        description="Most recent invocations, oldest first.",
    )
