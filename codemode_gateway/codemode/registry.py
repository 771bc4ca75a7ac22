"""Group resolved tools by server and derive the registry/metadata views."""

from __future__ import annotations

import re
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Container, Dict, Iterable, List, Mapping, Optional
from urllib.parse import urlsplit

from codemode_gateway.mcp_client.connection_manager import ToolSet
from codemode_gateway.mcp_client.schemas.config import ServerDescriptor, TransportType
from codemode_gateway.mcp_client.wrapper import WrappedTool

_TRANSPORT_SEGMENTS = {"mcp", "sse"}
_KEY_SUFFIXES = ("_mcp_server", "_mcp")


def _normalize_key(raw: str) -> str:
    return re.sub(r"[^a-z0-9]", "_", raw.lower())


def extract_server_key(url: str) -> str:
    """Derive a helper key from a server URL.

    ``https://host/mcp/entrez`` gives ``entrez``; with only transport segments
    in the path, the first subdomain label is used (``entrez-mcp-server.x.dev``
    gives ``entrez``), then the host itself.
    """
    parts = urlsplit(url)
    if not parts.hostname:
        return _normalize_key(re.sub(r"^https?://", "", url))
    segments = [s for s in parts.path.split("/") if s and s.lower() not in _TRANSPORT_SEGMENTS]
    if segments:
        return _normalize_key(segments[-1])
    labels = parts.hostname.split(".")
    if len(labels) > 2:
        key = _normalize_key(labels[0])
        for suffix in _KEY_SUFFIXES:
            if key.endswith(suffix) and len(key) > len(suffix):
                return key[: -len(suffix)]
        return key
    return _normalize_key(parts.hostname)


def server_key_for(descriptor: ServerDescriptor) -> str:
    if descriptor.name:
        return _normalize_key(descriptor.name)
    return extract_server_key(descriptor.url)


@dataclass(frozen=True)
class HelperServerEntry:
    key: str
    descriptor: ServerDescriptor
    tools: Dict[str, WrappedTool]


def unique_key(base: str, taken: Container[str]) -> str:
    key, n = base, 2
    while key in taken:
        key, n = f"{base}_{n}", n + 1
    return key


def build_catalog(descriptors: Iterable[ServerDescriptor]) -> "OrderedDict[str, ServerDescriptor]":
    """Key each configured server the same way helper entries are keyed."""
    catalog: "OrderedDict[str, ServerDescriptor]" = OrderedDict()
    for descriptor in descriptors:
        catalog[unique_key(server_key_for(descriptor), catalog)] = descriptor
    return catalog


def build_server_entries(
    tool_set: ToolSet, catalog: Optional[Mapping[str, ServerDescriptor]] = None
) -> "OrderedDict[str, HelperServerEntry]":
    """One entry per reachable server.

    With a ``catalog`` the entries follow its keys and order, and servers absent
    from ``tool_set`` are skipped. Without one, keys are derived from each
    descriptor in acquisition order and colliding keys get a numeric suffix.
    """
    entries: "OrderedDict[str, HelperServerEntry]" = OrderedDict()
    if catalog is not None:
        for key, descriptor in catalog.items():
            server = tool_set.by_server.get(descriptor.url)
            if server is not None:
                entries[key] = HelperServerEntry(key=key, descriptor=descriptor, tools=dict(server.tools))
        return entries
    for server in tool_set.by_server.values():
        key = unique_key(server_key_for(server.descriptor), entries)
        entries[key] = HelperServerEntry(key=key, descriptor=server.descriptor, tools=dict(server.tools))
    return entries


def build_alias_map(entries: Dict[str, HelperServerEntry]) -> Dict[str, str]:
    """Map transport names to the first server using that transport."""
    aliases: Dict[str, str] = {}
    for key, entry in entries.items():
        kind = entry.descriptor.type
        names = ["sse"] if kind is TransportType.SSE else ["http", "streamable_http"]
        for name in names:
            if name not in entries:
                aliases.setdefault(name, key)
    return aliases


def build_tool_registry(entries: Dict[str, HelperServerEntry]) -> Dict[str, List[str]]:
    return {key: list(entry.tools) for key, entry in entries.items()}


def build_helpers_metadata(entries: Dict[str, HelperServerEntry]) -> Dict[str, Any]:
    servers = [{"key": key, "toolCount": len(entry.tools), "toolNames": list(entry.tools)} for key, entry in entries.items()]
    return {"servers": servers, "totalTools": sum(s["toolCount"] for s in servers)}
