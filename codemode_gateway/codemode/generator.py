"""Generate the helper module source that the sandbox executes.

The module embeds the tool registry (names, descriptions, sanitized
parameter schemas) as JSON and exposes ``build_helpers(call_tool)``, which
returns a ``HelperRegistry`` bound to the sandbox's outbound function.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Mapping

from .registry import HelperServerEntry

HELPERS_ENTRY_POINT = "build_helpers"

_TEMPLATE = '''"""Generated code-mode helpers ({server_count} servers, {tool_count} tools)."""

import json

from codemode_gateway.codemode import runtime

REGISTRY = json.loads({payload})


def {entry_point}(call_tool):
    return runtime.HelperRegistry(REGISTRY["servers"], call_tool, aliases=REGISTRY["aliases"])
'''


def build_registry_payload(entries: Mapping[str, HelperServerEntry], aliases: Mapping[str, str]) -> Dict[str, Any]:
    servers: Dict[str, Any] = {}
    for key, entry in entries.items():
        servers[key] = {
            "url": entry.descriptor.url,
            "type": entry.descriptor.type.value,
            "tools": {
                name: {"description": tool.description, "parameters": tool.parameters}
                for name, tool in entry.tools.items()
            },
        }
    return {"servers": servers, "aliases": dict(aliases)}


def generate_helpers_implementation(entries: Mapping[str, HelperServerEntry], aliases: Mapping[str, str]) -> str:
    """Return Python module source defining ``build_helpers(call_tool)``."""
    payload = build_registry_payload(entries, aliases)
    return _TEMPLATE.format(
        server_count=len(entries),
        tool_count=sum(len(e.tools) for e in entries.values()),
        payload=repr(json.dumps(payload, sort_keys=True, default=str)),
        entry_point=HELPERS_ENTRY_POINT,
    )
