"""JSON-schema sanitizer for MCP tool parameters.

Tool servers publish parameter schemas of uneven quality: missing ``type``
fields, bare property values, arrays without ``items`` and ``$ref`` trees that
point into stripped ``$defs``. Model providers reject such schemas, so every
schema is rewritten here until each node carries an explicit type.

The rewrite is idempotent: sanitizing an already sanitized schema returns an
equal value.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

_META_KEYS = frozenset({"$schema", "$id", "$defs", "$ref", "$comment", "definitions"})
_COMPOSITION_KEYS = ("anyOf", "oneOf", "allOf")

PERMISSIVE_OBJECT: Dict[str, Any] = {"type": "object", "additionalProperties": True}
STRING_NODE: Dict[str, Any] = {"type": "string"}


def _has_type(node: Dict[str, Any]) -> bool:
    typ = node.get("type")
    if isinstance(typ, str):
        return bool(typ)
    if isinstance(typ, list):
        return bool(typ)
    return False


def _infer_type(node: Dict[str, Any], default: str) -> str:
    if isinstance(node.get("properties"), dict):
        return "object"
    if "items" in node:
        return "array"
    if any(k in node for k in _COMPOSITION_KEYS):
        return "object"
    return default


def _type_set(node: Dict[str, Any]) -> List[str]:
    typ = node.get("type")
    if isinstance(typ, str):
        return [typ]
    if isinstance(typ, list):
        return [t for t in typ if isinstance(t, str)]
    return []


def _sanitize_node(node: Any, *, default_type: str) -> Dict[str, Any]:
    if not isinstance(node, dict):
        return dict(PERMISSIVE_OBJECT) if default_type == "object" else dict(STRING_NODE)

    out: Dict[str, Any] = {k: v for k, v in node.items() if k not in _META_KEYS}
    if not _has_type(out):
        out["type"] = _infer_type(out, default_type)

    for key in _COMPOSITION_KEYS:
        members = out.get(key)
        if isinstance(members, list):
            out[key] = [_sanitize_node(m, default_type="string") for m in members]
        elif key in out:
            del out[key]

    types = _type_set(out)

    if "object" in types:
        props = out.get("properties")
        sanitized_props: Dict[str, Any] = {}
        if isinstance(props, dict):
            for name, prop in props.items():
                if not isinstance(prop, dict):
                    sanitized_props[str(name)] = dict(STRING_NODE)
                else:
                    sanitized_props[str(name)] = _sanitize_node(prop, default_type="string")
        out["properties"] = sanitized_props
        required = out.get("required")
        if isinstance(required, list):
            out["required"] = [r for r in required if isinstance(r, str)]
        elif "required" in out:
            del out["required"]
        additional = out.get("additionalProperties")
        if isinstance(additional, dict):
            out["additionalProperties"] = _sanitize_node(additional, default_type="string")
        elif not isinstance(additional, bool):
            out["additionalProperties"] = True

    if "array" in types:
        items = out.get("items")
        if isinstance(items, dict):
            out["items"] = _sanitize_node(items, default_type="string")
        elif isinstance(items, list) and items:
            out["items"] = [_sanitize_node(i, default_type="string") for i in items]
        else:
            out["items"] = dict(STRING_NODE)

    return out


def sanitize_schema(schema: Any) -> Dict[str, Any]:
    """Return a copy of ``schema`` in which every node has an explicit type.

    Args:
        schema: Raw parameter schema as published by the tool server. Any
            value is accepted; non-mapping values become a permissive object.

    Returns:
        The sanitized schema. The root is always a mapping.
    """
    return _sanitize_node(schema, default_type="object")


def extract_tool_schema(tool: Any) -> Optional[Dict[str, Any]]:
    """Locate the parameter schema in the common tool-definition shapes."""
    if not isinstance(tool, dict):
        return None
    params = tool.get("parameters")
    if isinstance(params, dict):
        json_schema = params.get("jsonSchema")
        if isinstance(json_schema, dict):
            return json_schema
        return params
    input_schema = tool.get("inputSchema")
    if isinstance(input_schema, dict):
        return input_schema
    return None


def sanitize_tool_parameters(tool: Dict[str, Any]) -> Dict[str, Any]:
    """Sanitize the parameter schema of a raw tool definition in whichever
    shape it was published (``inputSchema``, ``parameters`` or
    ``parameters.jsonSchema``)."""
    out = dict(tool)
    params = out.get("parameters")
    if isinstance(params, dict) and isinstance(params.get("jsonSchema"), dict):
        out["parameters"] = {**params, "jsonSchema": sanitize_schema(params["jsonSchema"])}
    elif isinstance(params, dict):
        out["parameters"] = sanitize_schema(params)
    if "inputSchema" in out or "parameters" not in out:
        out["inputSchema"] = sanitize_schema(out.get("inputSchema"))
    return out


def iter_schema_nodes(schema: Dict[str, Any]):
    """Yield every schema node (root first) reachable through properties,
    items, additionalProperties and composition keywords."""
    stack: List[Any] = [schema]
    while stack:
        node = stack.pop()
        if not isinstance(node, dict):
            continue
        yield node
        props = node.get("properties")
        if isinstance(props, dict):
            stack.extend(props.values())
        items = node.get("items")
        if isinstance(items, dict):
            stack.append(items)
        elif isinstance(items, list):
            stack.extend(items)
        additional = node.get("additionalProperties")
        if isinstance(additional, dict):
            stack.append(additional)
        for key in _COMPOSITION_KEYS:
            members = node.get(key)
            if isinstance(members, list):
                stack.extend(members)
