import pytest
from httpx import AsyncClient

# Mark all tests in this module as async
pytestmark = pytest.mark.asyncio

METRICS = "/api/v1/metrics/tools"
PROXY = "/api/v1/codemode/proxy"


async def test_metrics_are_empty_initially(client: AsyncClient):
    response = await client.get(METRICS)
    assert response.status_code == 200
    assert response.json() == {"tools": {}, "recentInvocations": []}


async def test_metrics_record_proxy_calls(client: AsyncClient):
    await client.post(PROXY, json={"server": "entrez", "tool": "summary", "args": {"id": "1"}})
    await client.post(PROXY, json={"server": "entrez", "tool": "broken"})
    await client.post(PROXY, json={"server": "slow", "tool": "wait"})

    body = (await client.get(METRICS)).json()
    summary = body["tools"]["summary"]
    assert summary["count"] == 1
    assert summary["success"] == 1
    assert summary["successRate"] == 1.0
    assert summary["lastStatus"] == "success"
    assert body["tools"]["broken"]["error"] == 1
    assert body["tools"]["broken"]["lastError"] == "upstream exploded"
    assert body["tools"]["wait"]["timeout"] == 1
    assert [r["toolName"] for r in body["recentInvocations"]] == ["summary", "broken", "wait"]
    assert [r["status"] for r in body["recentInvocations"]] == ["success", "error", "timeout"]


async def test_reset_clears_metrics(client: AsyncClient, gateway):
    await client.post(PROXY, json={"server": "entrez", "tool": "summary", "args": {"id": "1"}})
    response = await client.delete(METRICS)
    assert response.status_code == 200
    assert response.json() == {"status": "reset"}
    assert gateway.metrics.report().tools == {}
