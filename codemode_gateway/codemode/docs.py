"""Prompt documentation for the generated helper API.

Three levels are produced from the same server entries: ``generate_minimal_docs``
(a short quick reference), ``generate_compact_docs`` (tool names grouped by
category, the default prompt size) and ``generate_detailed_docs`` (parameters
for the first tools of each server).
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

_SECTION_HEADERS = ("Returns:", "Examples:", "Common patterns:", "Related tools:", "Output structure:")
_NEXT_SECTION = re.compile(r"\n\n|" + "|".join(re.escape(h) for h in _SECTION_HEADERS))

_CATEGORY_RULES = (
    ("search", ("search", "query")),
    ("fetch", ("fetch", "get", "retrieve")),
    ("list", ("list", "browse")),
    ("parse", ("parse", "validate")),
    ("link", ("link", "map", "convert")),
    ("data", ("stage", "data")),
    ("graphql", ("graphql",)),
)


@dataclass
class ParsedDescription:
    summary: str = ""
    returns: Optional[str] = None
    examples: List[str] = field(default_factory=list)
    patterns: List[str] = field(default_factory=list)
    related_tools: List[str] = field(default_factory=list)
    output_structure: Optional[str] = None


@dataclass(frozen=True)
class ParameterInfo:
    name: str
    type: str
    required: bool
    description: Optional[str] = None


def _tool_description(tool: Any) -> str:
    if isinstance(tool, Mapping):
        return str(tool.get("description") or "")
    return str(getattr(tool, "description", "") or "")


def _tool_schema(tool: Any) -> Dict[str, Any]:
    if isinstance(tool, Mapping):
        schema = tool.get("parameters") or tool.get("inputSchema") or {}
    else:
        schema = getattr(tool, "parameters", None) or {}
    if isinstance(schema, Mapping) and isinstance(schema.get("jsonSchema"), Mapping):
        schema = schema["jsonSchema"]
    return dict(schema) if isinstance(schema, Mapping) else {}


def categorize_tool(tool_name: str) -> str:
    name = tool_name.lower()
    for category, needles in _CATEGORY_RULES:
        if any(n in name for n in needles):
            return category
    return name.split("_")[0] or "other"


def _single_line_section(text: str, header: str) -> Optional[str]:
    match = re.search(re.escape(header) + r"\s*([^\n]+)", text, re.IGNORECASE)
    return match.group(1).strip() if match else None


def _list_section(text: str, header: str) -> List[str]:
    idx = text.find(header)
    if idx == -1:
        return []
    after = text[idx + len(header) :]
    nxt = _NEXT_SECTION.search(after)
    body = after[: nxt.start()] if nxt else after
    items = []
    for line in body.split("\n"):
        line = line.strip()
        if not line or re.match(r"^[A-Z][a-z]+:", line):
            continue
        cleaned = re.sub(r"^[•\-*\d.]+\s*", "", line).strip()
        if cleaned:
            items.append(cleaned)
    return items


def parse_tool_description(description: str) -> ParsedDescription:
    """Split a tool description into its conventional sections."""
    if not description:
        return ParsedDescription()
    related: List[str] = []
    related_text = _single_line_section(description, "Related tools:")
    if related_text:
        related = [m for m in re.findall(r"[a-z_][a-z0-9_]*", related_text, re.IGNORECASE) if "_" in m]
    return ParsedDescription(
        summary=description.split("\n", 1)[0].strip(),
        returns=_single_line_section(description, "Returns:"),
        examples=_list_section(description, "Examples:"),
        patterns=_list_section(description, "Common patterns:"),
        related_tools=related,
        output_structure=_single_line_section(description, "Output structure:"),
    )


def extract_parameter_info(schema: Any) -> List[ParameterInfo]:
    if not isinstance(schema, Mapping):
        return []
    properties = schema.get("properties") if isinstance(schema.get("properties"), Mapping) else {}
    required = schema.get("required") if isinstance(schema.get("required"), list) else []
    params: List[ParameterInfo] = []
    for name, prop in properties.items():
        prop = prop if isinstance(prop, Mapping) else {}
        typ = prop.get("type", "any")
        if isinstance(prop.get("enum"), list):
            values = prop["enum"]
            typ = "|".join(f"'{v}'" for v in values[:3]) + ("|..." if len(values) > 3 else "")
        elif typ == "array":
            items = prop.get("items") if isinstance(prop.get("items"), Mapping) else {}
            typ = f"{items.get('type', 'any')}[]"
        params.append(ParameterInfo(name=name, type=str(typ), required=name in required, description=prop.get("description")))
    return params


def _categories(tools: Mapping[str, Any]) -> List[tuple]:
    grouped: Dict[str, List[str]] = {}
    for name in tools:
        grouped.setdefault(categorize_tool(name), []).append(name)
    return sorted(((cat, sorted(names)) for cat, names in grouped.items()), key=lambda item: -len(item[1]))


def generate_minimal_docs(server_tools: Mapping[str, Mapping[str, Any]]) -> str:
    lines = [
        "## Code Mode API",
        "",
        "Write the body of an async Python function. `helpers` and `console` are in scope; `return` the answer.",
        "",
        "### Quick Reference",
        "",
    ]
    for key, tools in sorted(server_tools.items(), key=lambda kv: -len(kv[1])):
        top = [name for _, names in _categories(tools) for name in names][:5]
        more = f" +{len(tools) - 5} more" if len(tools) > 5 else ""
        lines.append(f"- **helpers.{key}** ({len(tools)} tools): {', '.join(top)}{more}")
    lines += [
        "",
        "### Usage",
        "```python",
        "data = await helpers.server.tool_name(arg=value)",
        'data = await helpers.server.get_data("tool_name", {"arg": value})',
        "tools = await helpers.server.list_tools()",
        'schema = await helpers.server.get_tool_schema("tool_name")',
        "```",
        "",
    ]
    return "\n".join(lines)


def generate_compact_docs(server_tools: Mapping[str, Mapping[str, Any]]) -> str:
    """Prompt-sized documentation: tool names grouped by category per server."""
    lines = [
        "## Available Helper APIs",
        "",
        "Each helper exposes async methods for its MCP tools. Use `get_data()` for parsed responses.",
        "",
    ]
    for key, tools in sorted(server_tools.items(), key=lambda kv: -len(kv[1])):
        lines.append(f"### helpers.{key}")
        lines.append("")
        categories = _categories(tools)
        for category, names in categories[:3]:
            more = f", +{len(names) - 8}" if len(names) > 8 else ""
            lines.append(f"- **{category}**: {', '.join(names[:8])}{more}")
        if len(categories) > 3:
            lines.append(f"- ...and {len(categories) - 3} more categories")
        lines.append("")
    lines += [
        "### Common Methods",
        "```python",
        "await helpers.server.get_data(tool_name, args)     # parsed response",
        "await helpers.server.invoke(tool_name, args)       # normalized response",
        "await helpers.server.list_tools()                  # all tool names",
        "await helpers.server.search_tools(query)           # ranked matches",
        "await helpers.server.get_tool_schema(tool_name)    # parameters",
        "```",
        "",
        "Rules: no `def`/`class` at top level, no type annotations, finish with `return`.",
    ]
    return "\n".join(lines)


def generate_detailed_docs(server_tools: Mapping[str, Mapping[str, Any]], *, max_tools: int = 10) -> str:
    lines = ["# Available Helper APIs", ""]
    for key, tools in server_tools.items():
        lines += [f"## helpers.{key}", "", f"Access to {key} tools.", ""]
        lines += [f"### `helpers.{key}.invoke(tool_name, args)`", ""]
        for name, tool in list(tools.items())[:max_tools]:
            lines.append(f"**`{name}`** - {parse_tool_description(_tool_description(tool)).summary or 'No description available'}")
            params = extract_parameter_info(_tool_schema(tool))
            required = [p for p in params if p.required]
            optional = [p for p in params if not p.required]
            if required:
                lines.append("  - Required: " + ", ".join(f"{p.name} ({p.type})" for p in required))
            if optional and len(optional) <= 3:
                lines.append("  - Optional: " + ", ".join(f"{p.name} ({p.type})" for p in optional))
            lines.append("")
        if len(tools) > max_tools:
            lines += [f"...and {len(tools) - max_tools} more tools. Use `list_tools()` to see all.", ""]
    return "\n".join(lines)


def search_tools_with_ranking(query: str, tools: Mapping[str, Any], *, limit: Optional[int] = None) -> List[Dict[str, Any]]:
    """Rank tools against ``query``.

    Weights: exact name 10, name contains 5, description contains 3, returns
    section 2, examples 1. Tools scoring zero are omitted.
    """
    q = (query or "").strip().lower()
    if not q:
        return []
    ranked = []
    for name, tool in tools.items():
        description = _tool_description(tool)
        parsed = parse_tool_description(description)
        score = 0
        if name.lower() == q:
            score += 10
        if q in name.lower():
            score += 5
        if q in description.lower():
            score += 3
        if parsed.returns and q in parsed.returns.lower():
            score += 2
        if any(q in ex.lower() for ex in parsed.examples):
            score += 1
        if score:
            ranked.append({"name": name, "description": parsed.summary, "score": score})
    ranked.sort(key=lambda item: (-item["score"], item["name"]))
    return ranked[:limit] if limit else ranked


def estimate_doc_tokens(doc: str) -> int:
    return len(doc) // 4
