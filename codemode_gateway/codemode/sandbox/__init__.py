"""Sandbox for model-authored scripts.

Scripts are checked by ``policy`` before anything runs, executed by
``executor.SandboxExecutor`` with restricted builtins and imports, and their
failures are mapped onto user-facing categories by ``classifier``. The only
network path out of a run is the proxy channel guarded by ``egress``.

``executor`` depends on the helper runtime and is imported from
``codemode_gateway.codemode`` rather than re-exported here.
"""

from .classifier import ClassifiedError, ErrorCategory, classify_error, format_error_for_user
from .egress import EgressDeniedError, EgressGuardTransport
from .models import (
    ProxyCallError,
    ProxyUnreachableError,
    SandboxDebug,
    SandboxError,
    SandboxPolicyError,
    SandboxRequest,
    SandboxResult,
    SandboxState,
)
from .policy import validate_script

__all__ = [
    "ClassifiedError",
    "EgressDeniedError",
    "EgressGuardTransport",
    "ErrorCategory",
    "ProxyCallError",
    "ProxyUnreachableError",
    "SandboxDebug",
    "SandboxError",
    "SandboxPolicyError",
    "SandboxRequest",
    "SandboxResult",
    "SandboxState",
    "classify_error",
    "format_error_for_user",
    "validate_script",
]
