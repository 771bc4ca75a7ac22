"""
Configuration Settings.

This module defines the application configuration using Pydantic's BaseSettings.
It automatically loads all configuration from environment variables and .env file
without explicit dotenv loading.

Complex values (the server catalog, ID patterns and server capabilities) are
given as JSON strings in the environment; pydantic-settings decodes them.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from codemode_gateway.mcp_client.schemas.config import ServerDescriptor, TransportType
from codemode_gateway.mcp_client.wrapper import EnumRetryPolicy


def _default_servers() -> List[ServerDescriptor]:
    return [
        ServerDescriptor(
            type=TransportType.HTTP,
            url="https://datacite-mcp-server.quentincody.workers.dev/mcp",
            name="datacite",
        ),
        ServerDescriptor(
            type=TransportType.HTTP,
            url="https://nci-gdc-mcp-server.quentincody.workers.dev/mcp",
            name="ncigdc",
        ),
        ServerDescriptor(
            type=TransportType.HTTP,
            url="https://entrez-mcp-server.quentincody.workers.dev/mcp",
            name="entrez",
        ),
    ]


# =====================================================================
# Grouped Configuration Models
# =====================================================================


class CORSConfig(BaseModel):
    """CORS configuration."""

    origins: List[str] = Field(default=["*"], alias="CORS_ORIGINS", description="Allowed CORS origins (use * for all)")
    allow_credentials: bool = Field(
        default=True, alias="CORS_ALLOW_CREDENTIALS", description="Allow credentials in CORS requests"
    )
    allow_methods: List[str] = Field(
        default=["*"], alias="CORS_ALLOW_METHODS", description="Allowed HTTP methods (use * for all)"
    )
    allow_headers: List[str] = Field(
        default=["*"], alias="CORS_ALLOW_HEADERS", description="Allowed HTTP headers (use * for all)"
    )

    model_config = {"populate_by_name": True}


class MCPClientConfig(BaseModel):
    """Connection pooling and invocation limits for MCP tool servers."""

    tool_timeout_ms: Optional[str] = Field(
        default=None,
        alias="MCP_TOOL_TIMEOUT_MS",
        description="Default per-tool timeout in milliseconds; values of 1000 or less use the built-in 30000",
    )
    client_ttl_seconds: float = Field(
        default=300.0, alias="MCP_CLIENT_TTL_SECONDS", description="Idle time before a cached connection is evicted"
    )
    cache_sweep_seconds: float = Field(
        default=60.0, alias="MCP_CACHE_SWEEP_SECONDS", description="Interval of the cache eviction sweep"
    )
    sse_connect_timeout_seconds: float = Field(
        default=8.0, alias="MCP_SSE_CONNECT_TIMEOUT_SECONDS", description="Connect timeout for SSE servers"
    )
    http_connect_timeout_seconds: float = Field(
        default=6.0, alias="MCP_HTTP_CONNECT_TIMEOUT_SECONDS", description="Connect timeout for streamable HTTP servers"
    )
    connect_budget_seconds: float = Field(
        default=10.0,
        alias="MCP_CONNECT_BUDGET_SECONDS",
        description="Overall time a request waits for its connection fan-out",
    )

    model_config = {"populate_by_name": True}

    @property
    def connect_timeouts(self) -> Dict[TransportType, float]:
        return {TransportType.SSE: self.sse_connect_timeout_seconds, TransportType.HTTP: self.http_connect_timeout_seconds}


class CodeModeConfig(BaseModel):
    """Proxy, sandbox and enrichment settings."""

    proxy_token: Optional[str] = Field(
        default=None, alias="CODEMODE_PROXY_TOKEN", description="Shared secret for the proxy endpoint (unset = open)"
    )
    client_token: Optional[str] = Field(
        default=None, alias="CODEMODE_CLIENT_TOKEN", description="Shared secret for the sandbox endpoint (unset = open)"
    )
    proxy_url: str = Field(
        default="http://127.0.0.1:8000/api/v1/codemode/proxy",
        alias="CODEMODE_PROXY_URL",
        description="Proxy endpoint the sandbox calls; its host is the only reachable destination",
    )
    sandbox_timeout_seconds: float = Field(
        default=60.0, alias="CODEMODE_SANDBOX_TIMEOUT_SECONDS", description="Host time limit for one sandbox run"
    )
    enum_retry_policy: EnumRetryPolicy = Field(
        default=EnumRetryPolicy.FIRST,
        alias="CODEMODE_ENUM_RETRY_POLICY",
        description="How empty enum fields are filled before the single retry (first or none)",
    )
    servers: List[ServerDescriptor] = Field(
        default_factory=_default_servers, alias="CODEMODE_SERVERS", description="Server catalog served by the proxy"
    )
    id_patterns: Optional[List[Dict[str, Any]]] = Field(
        default=None, alias="CODEMODE_ID_PATTERNS", description="Identifier patterns; built-in set when unset"
    )
    id_capabilities: Optional[Dict[str, Dict[str, Any]]] = Field(
        default=None,
        alias="CODEMODE_ID_CAPABILITIES",
        description="Identifier types each server accepts/produces; built-in map when unset",
    )

    model_config = {"populate_by_name": True}


# =====================================================================
# Main Settings Class
# =====================================================================


class Settings(BaseSettings):
    """
    Application settings model.

    All properties are automatically bound from environment variables and .env file.
    Pydantic's BaseSettings handles dotenv loading automatically via model_config.
    """

    # =====================================================================
    # Pydantic Configuration
    # =====================================================================
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=True,
    )

    # =====================================================================
    # Server Configuration
    # =====================================================================
    server_host: str = Field(
        default="0.0.0.0",
        description="Gateway server host address to bind to",
        alias="CODEMODE_SERVER_HOST",
    )
    server_port: int = Field(
        default=8000,
        description="Gateway server port number",
        alias="CODEMODE_SERVER_PORT",
    )

    # =====================================================================
    # Logging Configuration
    # =====================================================================
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
        alias="CODEMODE_LOG_LEVEL",
    )
    log_format: str = Field(default="detailed", description="simple, detailed or json", alias="LOG_FORMAT")
    log_file_dir: str = Field(default="logs", description="Directory for the log file", alias="LOG_FILE_DIR")
    enable_file_logging: bool = Field(default=False, description="Also log to a file", alias="ENABLE_FILE_LOGGING")

    # =====================================================================
    # CORS Configuration
    # =====================================================================
    cors_origins: List[str] = Field(default=["*"], alias="CORS_ORIGINS")
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")
    cors_allow_methods: List[str] = Field(default=["*"], alias="CORS_ALLOW_METHODS")
    cors_allow_headers: List[str] = Field(default=["*"], alias="CORS_ALLOW_HEADERS")

    # =====================================================================
    # MCP Client Configuration
    # =====================================================================
    mcp_tool_timeout_ms: Optional[str] = Field(default=None, alias="MCP_TOOL_TIMEOUT_MS")
    mcp_client_ttl_seconds: float = Field(default=300.0, alias="MCP_CLIENT_TTL_SECONDS")
    mcp_cache_sweep_seconds: float = Field(default=60.0, alias="MCP_CACHE_SWEEP_SECONDS")
    mcp_sse_connect_timeout_seconds: float = Field(default=8.0, alias="MCP_SSE_CONNECT_TIMEOUT_SECONDS")
    mcp_http_connect_timeout_seconds: float = Field(default=6.0, alias="MCP_HTTP_CONNECT_TIMEOUT_SECONDS")
    mcp_connect_budget_seconds: float = Field(default=10.0, alias="MCP_CONNECT_BUDGET_SECONDS")

    # =====================================================================
    # Code Mode Configuration
    # =====================================================================
    codemode_proxy_token: Optional[str] = Field(default=None, alias="CODEMODE_PROXY_TOKEN")
    codemode_client_token: Optional[str] = Field(default=None, alias="CODEMODE_CLIENT_TOKEN")
    codemode_proxy_url: str = Field(
        default="http://127.0.0.1:8000/api/v1/codemode/proxy", alias="CODEMODE_PROXY_URL"
    )
    codemode_sandbox_timeout_seconds: float = Field(default=60.0, alias="CODEMODE_SANDBOX_TIMEOUT_SECONDS")
    codemode_enum_retry_policy: EnumRetryPolicy = Field(
        default=EnumRetryPolicy.FIRST, alias="CODEMODE_ENUM_RETRY_POLICY"
    )
    codemode_servers: List[ServerDescriptor] = Field(default_factory=_default_servers, alias="CODEMODE_SERVERS")
    codemode_id_patterns: Optional[List[Dict[str, Any]]] = Field(default=None, alias="CODEMODE_ID_PATTERNS")
    codemode_id_capabilities: Optional[Dict[str, Dict[str, Any]]] = Field(
        default=None, alias="CODEMODE_ID_CAPABILITIES"
    )

    # =====================================================================
    # Computed Properties (Grouped Configurations)
    # =====================================================================

    @property
    def cors(self) -> CORSConfig:
        """Get CORS configuration from environment variables."""
        return CORSConfig.model_validate(self.model_dump(by_alias=True))

    @property
    def mcp_client(self) -> MCPClientConfig:
        """Get MCP client configuration from environment variables."""
        return MCPClientConfig.model_validate(self.model_dump(by_alias=True))

    @property
    def codemode(self) -> CodeModeConfig:
        """Get code mode configuration from environment variables."""
        return CodeModeConfig.model_validate(self.model_dump(by_alias=True))


settings = Settings()
