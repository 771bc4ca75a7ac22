"""Null-field diagnostics for GraphQL-shaped payloads."""

from __future__ import annotations

import logging
from typing import Any, Dict, List

logger = logging.getLogger(__name__)


def find_null_fields(data: Any, path: str = "") -> List[str]:
    """Dotted paths of every ``None`` value under ``data`` (list items as ``[i]``)."""
    found: List[str] = []
    if isinstance(data, dict):
        for key, value in data.items():
            child = f"{path}.{key}" if path else str(key)
            if value is None:
                found.append(child)
            else:
                found.extend(find_null_fields(value, child))
    elif isinstance(data, list):
        for i, value in enumerate(data):
            found.extend(find_null_fields(value, f"{path}[{i}]"))
    return found


def graphql_payload(value: Any) -> Any:
    """The ``data`` member of a GraphQL-shaped response, searched one level deep."""
    if not isinstance(value, dict):
        return None
    if "data" in value and ("errors" in value or isinstance(value.get("data"), dict)):
        return value["data"]
    for nested in value.values():
        if isinstance(nested, dict) and "data" in nested and isinstance(nested.get("data"), dict):
            return nested["data"]
    return None


def check_graphql_response(value: Any, *, tool_name: str = "") -> List[Dict[str, str]]:
    """Warning diagnostics for null result fields; never raises."""
    payload = graphql_payload(value)
    if payload is None:
        return []
    warnings: List[Dict[str, str]] = []
    for field_path in find_null_fields(payload):
        leaf = field_path.rsplit(".", 1)[-1]
        warnings.append(
            {
                "level": "warning",
                "field": field_path,
                "hint": f"Field '{leaf}' returned null; check the field name against the GraphQL schema"
                " (a misspelled or unsupported field resolves to null)",
            }
        )
    if warnings:
        logger.warning("check_graphql_response: %s returned %d null fields", tool_name or "graphql", len(warnings))
    return warnings
