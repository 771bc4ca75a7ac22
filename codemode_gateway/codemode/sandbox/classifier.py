"""Map raw sandbox failures onto user-facing categories with recovery suggestions."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from re import Match, Pattern
from typing import Callable, List, Optional, Tuple, Union


class ErrorCategory(str, Enum):
    VALIDATION = "validation"
    NETWORK = "network"
    TOOL = "tool"
    SYNTAX = "syntax"
    RUNTIME = "runtime"
    UNKNOWN = "unknown"


@dataclass
class ClassifiedError:
    message: str
    user_message: str
    category: ErrorCategory
    suggestions: List[str] = field(default_factory=list)
    recoverable: bool = True

    @property
    def error_code(self) -> str:
        return self.category.value.upper()


_Transform = Callable[[Match[str]], Tuple[str, List[str], bool]]


def _not_defined(m: Match[str]) -> Tuple[str, List[str], bool]:
    return (
        f'Variable "{m.group(1)}" was not found',
        [
            "Check for typos in the variable name",
            "Assign the variable before using it",
            "If it is a helper, check it exists: await helpers.<server>.list_tools()",
        ],
        True,
    )


def _server_missing(m: Match[str]) -> Tuple[str, List[str], bool]:
    return (
        f'Server "{m.group(1) or m.group(2)}" is not available',
        [
            "Check the server name spelling",
            "Use one of the servers listed in the helper documentation",
            "The server may not be connected",
        ],
        True,
    )


def _network(_: Match[str]) -> Tuple[str, List[str], bool]:
    return (
        "Could not connect to the tool server",
        [
            "This is usually temporary - try again in a moment",
            "Check if the MCP servers are running",
            "The external API may be experiencing issues",
        ],
        True,
    )


def _http_status(m: Match[str]) -> Tuple[str, List[str], bool]:
    status = int(m.group(1) or m.group(2))
    if status == 400:
        return (
            "Invalid parameters were sent to the tool",
            ["Check required parameters with get_tool_schema()", "Verify parameter types (string vs number)"],
            True,
        )
    if status in (401, 403):
        return (
            "Authentication failed for this tool",
            ["The API may require authentication", "Check if API keys are configured"],
            False,
        )
    if status == 404:
        return (
            "The requested resource was not found",
            ["Check if the ID or query is correct", "The data may not exist in the database"],
            True,
        )
    if status in (408, 504):
        return _timeout(m)
    if status == 429:
        return "Rate limit exceeded", ["Wait a moment and try again", "Reduce the number of API calls"], True
    if status >= 500:
        return (
            "The external service is temporarily unavailable",
            ["The upstream API has issues", "Try again in a few moments"],
            True,
        )
    return "The tool returned an error", [], True


def _missing_required(_: Match[str]) -> Tuple[str, List[str], bool]:
    return (
        "A required parameter is missing",
        ["Use get_tool_schema(tool_name) to see required parameters", "Check the tool documentation for required fields"],
        True,
    )


def _type_mismatch(_: Match[str]) -> Tuple[str, List[str], bool]:
    return (
        "Parameter type mismatch",
        [
            "Check if strings should be numbers or vice versa",
            'Lists should be passed as [...] not "..."',
            "Use get_tool_schema() to see expected types",
        ],
        True,
    )


def _json_decode(_: Match[str]) -> Tuple[str, List[str], bool]:
    return (
        "Invalid data format received",
        ["The tool may have returned unexpected data", "Try a simpler query first"],
        True,
    )


def _annotations(_: Match[str]) -> Tuple[str, List[str], bool]:
    return (
        "Type annotations are not supported in Code Mode",
        ["Remove `: type` from assignments and parameters", "Remove `-> type` return annotations"],
        True,
    )


def _declarations(_: Match[str]) -> Tuple[str, List[str], bool]:
    return (
        "Function declarations are not supported",
        ["Write the logic inline in the script body", "Use comprehensions or lambdas for small transformations"],
        True,
    )


def _timeout(_: Match[str]) -> Tuple[str, List[str], bool]:
    return (
        "The request took too long",
        [
            "Try a simpler query with fewer results",
            "The external API may be slow - try again",
            "Break the query into smaller parts",
        ],
        True,
    )


_RULES: List[Tuple[Pattern[str], ErrorCategory, _Transform]] = [
    (re.compile(r"name '(\w+)' is not defined"), ErrorCategory.RUNTIME, _not_defined),
    (re.compile(r"Server '(\w+)' is not available|helpers\.(\w+) is not available"), ErrorCategory.VALIDATION, _server_missing),
    (
        re.compile(r"Failed to reach Code Mode proxy|ConnectError|Connection refused|network", re.IGNORECASE),
        ErrorCategory.NETWORK,
        _network,
    ),
    (re.compile(r"HTTP (\d{3})|Status: (\d{3})"), ErrorCategory.TOOL, _http_status),
    (re.compile(r"missing required|required parameter|MISSING_REQUIRED_PARAM", re.IGNORECASE), ErrorCategory.VALIDATION, _missing_required),
    (
        re.compile(r"invalid.*argument|type mismatch|expected \w+, got|INVALID_ARGUMENTS", re.IGNORECASE),
        ErrorCategory.VALIDATION,
        _type_mismatch,
    ),
    (re.compile(r"JSONDecodeError|Expecting value|Unterminated string|JSON.*(?:parse|decode)", re.IGNORECASE), ErrorCategory.SYNTAX, _json_decode),
    (re.compile(r"Type annotations are not allowed", re.IGNORECASE), ErrorCategory.SYNTAX, _annotations),
    (re.compile(r"(?:function|class) declaration .* is not allowed", re.IGNORECASE), ErrorCategory.SYNTAX, _declarations),
    (re.compile(r"timeout|timed out", re.IGNORECASE), ErrorCategory.NETWORK, _timeout),
]


def classify_error(error: Union[BaseException, str]) -> ClassifiedError:
    """Classify an exception or message.

    The first matching rule wins. Messages no rule recognizes are passed
    through unchanged with category ``unknown``.
    """
    message = error if isinstance(error, str) else (str(error) or type(error).__name__)
    for pattern, category, transform in _RULES:
        match = pattern.search(message)
        if match:
            user_message, suggestions, recoverable = transform(match)
            if category is ErrorCategory.TOOL and (match.group(1) or match.group(2)) in ("408", "504"):
                category = ErrorCategory.NETWORK
            return ClassifiedError(message, user_message, category, suggestions, recoverable)
    return ClassifiedError(message, message, ErrorCategory.UNKNOWN, [], True)


def format_error_for_user(classified: ClassifiedError) -> str:
    lines = [classified.user_message]
    if classified.suggestions:
        lines += ["", "Suggestions:"]
        lines += [f"• {s}" for s in classified.suggestions]
    return "\n".join(lines)


def truncate_stack(stack: Optional[str], lines: int = 3) -> Optional[str]:
    if not stack:
        return None
    return "\n".join(stack.strip().splitlines()[:lines])
