from __future__ import annotations

from typing import Any, Dict, Iterator

import pytest

from codemode_gateway.mcp_client.sanitizer import PERMISSIVE_OBJECT, sanitize_schema, sanitize_tool_parameters


def _walk(node: Dict[str, Any]) -> Iterator[Dict[str, Any]]:
    yield node
    for prop in (node.get("properties") or {}).values():
        yield from _walk(prop)
    items = node.get("items")
    if isinstance(items, dict):
        yield from _walk(items)
    elif isinstance(items, list):
        for item in items:
            yield from _walk(item)
    additional = node.get("additionalProperties")
    if isinstance(additional, dict):
        yield from _walk(additional)
    for key in ("anyOf", "oneOf", "allOf"):
        for member in node.get(key) or []:
            yield from _walk(member)


MESSY = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "$defs": {"Thing": {"type": "object"}},
    "properties": {
        "name": {"description": "no type here"},
        "tags": {"type": "array"},
        "nested": {"properties": {"inner": {}}},
        "ref": {"$ref": "#/$defs/Thing"},
        "choice": {"anyOf": [{"type": "string"}, {"description": "untyped"}]},
        "bare": "string",
        "matrix": {"type": "array", "items": {"items": {}}},
        "extra": {"type": "object", "additionalProperties": {"description": "values"}},
    },
    "required": ["name", 3],
}


def test_every_node_has_a_type() -> None:
    out = sanitize_schema(MESSY)
    for node in _walk(out):
        assert node.get("type"), node


def test_meta_keys_are_removed() -> None:
    out = sanitize_schema(MESSY)
    assert "$schema" not in out
    assert "$defs" not in out
    assert "$ref" not in out["properties"]["ref"]


def test_shapes_are_inferred() -> None:
    out = sanitize_schema(MESSY)
    props = out["properties"]
    assert out["type"] == "object"
    assert props["name"]["type"] == "string"
    assert props["tags"]["items"] == {"type": "string"}
    assert props["nested"]["type"] == "object"
    assert props["nested"]["properties"]["inner"] == {"type": "string"}
    assert props["bare"] == {"type": "string"}
    assert props["matrix"]["items"]["type"] == "array"
    assert props["extra"]["additionalProperties"]["type"] == "string"
    assert out["required"] == ["name"]


def test_sanitize_is_idempotent() -> None:
    once = sanitize_schema(MESSY)
    assert sanitize_schema(once) == once


@pytest.mark.parametrize("raw", [None, "not a schema", 42, []])
def test_non_mapping_root_becomes_permissive_object(raw) -> None:
    assert sanitize_schema(raw) == PERMISSIVE_OBJECT


def test_input_is_not_mutated() -> None:
    raw = {"properties": {"a": {}}}
    sanitize_schema(raw)
    assert raw == {"properties": {"a": {}}}


def test_tool_parameters_in_every_published_shape() -> None:
    untyped = {"properties": {"q": {}}}

    via_input = sanitize_tool_parameters({"name": "search", "inputSchema": untyped})
    assert via_input["inputSchema"]["type"] == "object"
    assert via_input["inputSchema"]["properties"]["q"]["type"] == "string"

    via_params = sanitize_tool_parameters({"name": "search", "parameters": untyped})
    assert via_params["parameters"]["type"] == "object"
    assert "inputSchema" not in via_params

    wrapped = sanitize_tool_parameters({"name": "search", "parameters": {"jsonSchema": untyped, "strict": True}})
    assert wrapped["parameters"]["strict"] is True
    assert wrapped["parameters"]["jsonSchema"]["properties"]["q"]["type"] == "string"

    assert sanitize_tool_parameters({"name": "ping"})["inputSchema"] == PERMISSIVE_OBJECT
