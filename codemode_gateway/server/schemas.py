"""
API Schemas.

This module contains Pydantic models used for API request bodies and response validation.
These schemas define the interface contract between the client, the sandbox and the server.
The sandbox request/result models live with the sandbox in
``codemode_gateway.codemode.sandbox.models``.
"""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class ProxyCallRequest(BaseModel):
    """
    Schema for one tool call forwarded by the sandbox.

    ``server`` and ``tool`` are optional at the schema level so that missing
    values produce the proxy's own error messages rather than a validation error.
    """

    server: Optional[str] = Field(
        default=None,
        description="Server key from the catalog.",
        examples=["entrez"],
    )
    tool: Optional[str] = Field(
        default=None,
        description="Name of the tool to call on that server.",
        examples=["entrez_query"],
    )
    args: Dict[str, Any] = Field(
        default_factory=dict,
        description="Tool arguments.",
        examples=[{"database": "pubmed", "term": "p53"}],
    )

    model_config = ConfigDict(
        json_schema_extra={"example": {"server": "entrez", "tool": "entrez_query", "args": {"term": "p53"}}}
    )


class ProxyToolsResponse(BaseModel):
    """Tool names exposed by one catalog server."""

    server: str = Field(..., description="Server key.", examples=["entrez"])
    tools: List[str] = Field(default_factory=list, description="Tool names.")


class PrepareRequest(BaseModel):
    """
    Schema for preparing a code-mode session.

    Selects catalog servers and the documentation detail level.
    """

    servers: Optional[List[str]] = Field(
        default=None,
        description="Catalog server keys to include. All catalog servers when omitted.",
        examples=[["entrez", "datacite"]],
    )
    detail: Literal["minimal", "compact", "detailed"] = Field(
        default="compact",
        description="Documentation detail level.",
    )


class PrepareResponse(BaseModel):
    """Everything a caller needs to prompt a model and run its script."""

    model_config = ConfigDict(populate_by_name=True)

    docs: str = Field(..., description="Helper documentation sized for a model prompt.")
    helpers_implementation: str = Field(
        ..., alias="helpersImplementation", description="Helper module source for the sandbox."
    )
    tool_registry: Dict[str, List[str]] = Field(..., alias="toolRegistry", description="Tool names per server key.")
    helpers_metadata: Dict[str, Any] = Field(..., alias="helpersMetadata", description="Server summaries.")
    aliases: Dict[str, str] = Field(default_factory=dict, description="Transport aliases to server keys.")
