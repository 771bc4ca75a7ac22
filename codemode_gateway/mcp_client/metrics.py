"""Per-tool invocation counters.

``ToolMetricsStore`` is constructed once by the host and handed to every
component that records tool calls. Counters accumulate monotonically until
``reset()`` is called explicitly.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Deque, Dict, Optional

from .schemas.core import InvocationRecord, InvocationStatus, ToolMetricsReport, ToolMetricView


@dataclass
class ToolMetric:
    count: int = 0
    success: int = 0
    error: int = 0
    timeout: int = 0
    total_ms: float = 0.0
    last_ms: Optional[float] = None
    last_status: Optional[InvocationStatus] = None
    last_error: Optional[str] = None
    last_invoked_at: Optional[datetime] = None


class ToolMetricsStore:
    def __init__(self, *, history_size: int = 200) -> None:
        self._metrics: Dict[str, ToolMetric] = {}
        self._history: Deque[InvocationRecord] = deque(maxlen=history_size)
        self._logger = logging.getLogger(__name__)

    def record(
        self,
        tool_name: str,
        status: InvocationStatus,
        duration_ms: float,
        *,
        error: Optional[str] = None,
        invoked_at: Optional[datetime] = None,
    ) -> None:
        when = invoked_at or datetime.now(timezone.utc)
        metric = self._metrics.setdefault(tool_name, ToolMetric())
        metric.count += 1
        if status is InvocationStatus.SUCCESS:
            metric.success += 1
        elif status is InvocationStatus.TIMEOUT:
            metric.timeout += 1
        else:
            metric.error += 1
        metric.total_ms += duration_ms
        metric.last_ms = duration_ms
        metric.last_status = status
        metric.last_invoked_at = when
        if error is not None:
            metric.last_error = error
        self._history.append(
            InvocationRecord(
                tool_name=tool_name,
                status=status,
                duration_ms=duration_ms,
                invoked_at=when,
                error=error,
            )
        )

    def get(self, tool_name: str) -> Optional[ToolMetric]:
        return self._metrics.get(tool_name)

    def snapshot(self) -> Dict[str, ToolMetricView]:
        views: Dict[str, ToolMetricView] = {}
        for name, m in self._metrics.items():
            views[name] = ToolMetricView(
                count=m.count,
                success=m.success,
                error=m.error,
                timeout=m.timeout,
                total_ms=m.total_ms,
                last_ms=m.last_ms,
                last_status=m.last_status,
                last_error=m.last_error,
                last_invoked_at=m.last_invoked_at,
                avg_ms=(m.total_ms / m.count) if m.count else 0.0,
                success_rate=(m.success / m.count) if m.count else 0.0,
            )
        return views

    def report(self) -> ToolMetricsReport:
        return ToolMetricsReport(tools=self.snapshot(), recent_invocations=list(self._history))

    def reset(self) -> None:
        self._logger.info("ToolMetricsStore.reset: clearing %d tool metrics", len(self._metrics))
        self._metrics.clear()
        self._history.clear()
