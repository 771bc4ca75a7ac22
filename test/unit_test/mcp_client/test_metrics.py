from __future__ import annotations

from codemode_gateway.mcp_client.metrics import ToolMetricsStore
from codemode_gateway.mcp_client.schemas.core import InvocationStatus


def test_record_accumulates_counters() -> None:
    store = ToolMetricsStore()
    store.record("search", InvocationStatus.SUCCESS, 10.0)
    store.record("search", InvocationStatus.ERROR, 30.0, error="boom")
    store.record("search", InvocationStatus.TIMEOUT, 50.0, error="timed out")

    m = store.get("search")
    assert m is not None
    assert (m.count, m.success, m.error, m.timeout) == (3, 1, 1, 1)
    assert m.total_ms == 90.0
    assert m.last_ms == 50.0
    assert m.last_status is InvocationStatus.TIMEOUT
    assert m.last_error == "timed out"


def test_last_error_survives_later_success() -> None:
    store = ToolMetricsStore()
    store.record("search", InvocationStatus.ERROR, 1.0, error="boom")
    store.record("search", InvocationStatus.SUCCESS, 1.0)
    assert store.get("search").last_error == "boom"


def test_snapshot_derives_average_and_success_rate() -> None:
    store = ToolMetricsStore()
    store.record("a", InvocationStatus.SUCCESS, 10.0)
    store.record("a", InvocationStatus.ERROR, 30.0, error="x")

    view = store.snapshot()["a"]
    assert view.avg_ms == 20.0
    assert view.success_rate == 0.5


def test_report_keeps_bounded_history() -> None:
    store = ToolMetricsStore(history_size=2)
    for name in ("a", "b", "c"):
        store.record(name, InvocationStatus.SUCCESS, 1.0)

    report = store.report()
    assert set(report.tools) == {"a", "b", "c"}
    assert [r.tool_name for r in report.recent_invocations] == ["b", "c"]

    payload = report.model_dump(mode="json", by_alias=True)
    assert payload["recentInvocations"][0]["toolName"] == "b"
    assert payload["tools"]["a"]["successRate"] == 1.0


def test_reset_clears_everything() -> None:
    store = ToolMetricsStore()
    store.record("a", InvocationStatus.SUCCESS, 1.0)
    store.reset()
    assert store.get("a") is None
    assert store.snapshot() == {}
    assert store.report().recent_invocations == []
