import asyncio
import json
from types import SimpleNamespace
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from codemode_gateway.mcp_client.schemas.config import ServerDescriptor, TransportType
from codemode_gateway.server.core.config import CodeModeConfig, MCPClientConfig
from codemode_gateway.server.services.gateway import GatewayService, get_gateway

ENTREZ_URL = "http://mock/entrez/mcp"
DATACITE_URL = "http://mock/datacite/mcp"
SLOW_URL = "http://mock/slow/mcp"
PROXY_URL = "http://localhost/api/v1/codemode/proxy"

SEARCH_SCHEMA = {
    "type": "object",
    "properties": {
        "term": {"type": "string", "description": "Search query"},
        "retmax": {"type": "integer", "description": "Maximum number of results"},
    },
    "required": ["term"],
}
SUMMARY_SCHEMA = {"type": "object", "properties": {"id": {"type": "string"}}, "required": ["id"]}


@pytest.fixture
def mcp_servers(fake_mcp) -> SimpleNamespace:
    """Three fake MCP servers: entrez (search/summary/broken), datacite and a slow one."""

    def entrez(name, args):
        if name == "search":
            return fake_mcp.text(json.dumps({"pmids": ["12345678"], "count": 1}))
        if name == "summary":
            return fake_mcp.text(f"PMID: {args['id']} TP53 in cancer")
        raise RuntimeError("upstream exploded")

    def datacite(name, args):
        return fake_mcp.structured({"doi": args.get("doi"), "title": "A dataset"})

    async def slow(name, args):
        await asyncio.sleep(1)
        return fake_mcp.text("late")

    sessions = {
        ENTREZ_URL: fake_mcp.Session(
            [
                fake_mcp.tool("search", SEARCH_SCHEMA, "Search PubMed articles"),
                fake_mcp.tool("summary", SUMMARY_SCHEMA, "Summarize one article"),
                fake_mcp.tool("broken", {"type": "object", "properties": {}}, "Always fails"),
            ],
            entrez,
        ),
        DATACITE_URL: fake_mcp.Session(
            [fake_mcp.tool("get_work", {"type": "object", "properties": {"doi": {"type": "string"}}})],
            datacite,
        ),
        SLOW_URL: fake_mcp.Session([fake_mcp.tool("wait")], slow),
    }
    return SimpleNamespace(sessions=sessions, transport=fake_mcp.Transport(sessions))


@pytest.fixture
def codemode_config() -> CodeModeConfig:
    return CodeModeConfig(
        servers=[
            ServerDescriptor(type=TransportType.HTTP, url=ENTREZ_URL, name="entrez"),
            ServerDescriptor(type=TransportType.SSE, url=DATACITE_URL, name="datacite"),
            ServerDescriptor(type=TransportType.HTTP, url=SLOW_URL, name="slow", timeout_ms=50),
        ],
        proxy_url=PROXY_URL,
    )


@pytest_asyncio.fixture
async def gateway(mcp_servers, codemode_config) -> AsyncGenerator[GatewayService, None]:
    """A gateway over the fake servers whose sandbox calls back into the app."""
    from codemode_gateway.server.main import app

    service = GatewayService(
        MCPClientConfig(),
        codemode_config,
        transport_factory=lambda _transport_type: mcp_servers.transport,
        sandbox_transport=ASGITransport(app=app),
    )
    yield service
    await service.stop()


@pytest_asyncio.fixture(name="client")
async def client_fixture(gateway: GatewayService) -> AsyncGenerator[AsyncClient, None]:
    """Create an async HTTP client with the gateway dependency overridden."""
    from codemode_gateway.server.main import app

    app.dependency_overrides[get_gateway] = lambda: gateway

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://localhost") as client:
        yield client

    app.dependency_overrides.clear()
