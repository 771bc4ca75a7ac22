"""Code mode: turn connected MCP tools into a scriptable ``helpers`` API.

- ``registry`` groups tools by server key and builds transport aliases.
- ``docs`` renders prompt-sized documentation for those tools.
- ``generator`` emits the helper module source the sandbox loads.
- ``runtime`` is the helper API itself (``helpers.<server>.<tool>``).
- ``sandbox`` validates and runs scripts against it.
"""

from .docs import generate_compact_docs, generate_detailed_docs, generate_minimal_docs, search_tools_with_ranking
from .generator import generate_helpers_implementation
from .registry import (
    HelperServerEntry,
    build_alias_map,
    build_helpers_metadata,
    build_server_entries,
    build_tool_registry,
)
from .resolution import resolve_tool_name
from .runtime import HelperRegistry, HelperToolError, ServerHelper
from .sandbox.executor import ConsoleCapture, ProxyChannel, SandboxExecutor

__all__ = [
    "ConsoleCapture",
    "HelperRegistry",
    "HelperServerEntry",
    "HelperToolError",
    "ProxyChannel",
    "SandboxExecutor",
    "ServerHelper",
    "build_alias_map",
    "build_helpers_metadata",
    "build_server_entries",
    "build_tool_registry",
    "generate_compact_docs",
    "generate_detailed_docs",
    "generate_helpers_implementation",
    "generate_minimal_docs",
    "resolve_tool_name",
    "search_tools_with_ranking",
]
