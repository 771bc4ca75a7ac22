"""
codemode-gateway Server Package.

This package contains the web server implementation for the gateway.

Subpackages:
    api: FastAPI route definitions (proxy, sandbox, prepare, metrics, health).
    core: Settings, constants and shared-secret authentication.
    exception_handlers: Global handler and exact-body error responses.
    services: The gateway service wiring the MCP client, code mode and sandbox.
"""
