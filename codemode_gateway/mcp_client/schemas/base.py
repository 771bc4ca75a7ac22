"""Pydantic base schema shared by the gateway's wire models.

Payloads exchanged with the chat layer and the sandbox use camelCase keys, so
every model derives a camelCase alias from its snake_case field name.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


def _to_camel(s: str) -> str:
    """Convert snake_case to camelCase for JSON aliasing."""
    parts = s.split("_")
    return parts[0] + "".join(p.capitalize() or "_" for p in parts[1:])


class BaseSchema(BaseModel):
    """Shared base for all Pydantic models in codemode_gateway.

    - Rejects unknown fields
    - Accepts both snake_case names and camelCase aliases on input
    """

    model_config = ConfigDict(
        populate_by_name=True,
        extra="forbid",
        alias_generator=_to_camel,
    )
