"""codemode-gateway.

This package turns a set of MCP tool servers into a scriptable helper API and
runs model-authored scripts against it inside a restricted sandbox.

High-level architecture
-----------------------

The request path is a pipeline of five stages:

- **Connection management**: live MCP sessions are pooled per server
  descriptor and reclaimed after an idle TTL.
- **Schema normalization and invocation wrapping**: tool parameter schemas are
  sanitized so every node carries a type; each tool call is bounded by a
  timeout, recorded in a metrics store, and retried once on enum violations.
- **Tool registry and helper generation**: tools are grouped by server and
  rendered both as compact prompt documentation and as a Python helper module.
- **Sandbox execution**: scripts are validated, wrapped in a single async entry
  point, and executed with restricted builtins and a single outbound channel to
  the tool proxy.
- **Response enrichment**: tool responses are classified, parsed from legacy
  text shapes where needed, and annotated with cross-reference hints.

Core subpackages
----------------

- ``codemode_gateway.mcp_client``: connections, schema sanitizer, invocation
  wrapper, metrics and argument validation.
- ``codemode_gateway.codemode``: registry, docs, helper generator, helper
  runtime and sandbox.
- ``codemode_gateway.enrichment``: structured-content handling and ID
  cross-references.
- ``codemode_gateway.server``: the FastAPI host exposing the proxy, sandbox and
  preparation endpoints.
"""

__version__ = "0.1.0"
