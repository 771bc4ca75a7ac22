"""Structured-content classification of raw tool responses.

A ``structuredContent`` field, when present and a JSON object, is
authoritative. Otherwise the text content is parsed with a fallback chain:
fenced JSON, embedded JSON object/array, markdown table, and finally raw text.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from .markdown import parse_markdown_table

logger = logging.getLogger(__name__)

_FENCED_JSON = re.compile(r"```json\s*([\s\S]*?)\s*```")
_FENCED_ANY = re.compile(r"```\s*([\[{][\s\S]*?[\]}])\s*```")


class ContentType(str, Enum):
    STRUCTURED = "structured"
    TEXT = "text"
    MARKDOWN = "markdown"
    JSON = "json"
    MIXED = "mixed"
    UNKNOWN = "unknown"


class DataSource(str, Enum):
    STRUCTURED_CONTENT = "structuredContent"
    FALLBACK = "fallback"
    ERROR = "error"


@dataclass(frozen=True)
class ContentIssue:
    severity: str
    code: str
    message: str
    fix: Optional[str] = None


@dataclass
class ContentValidation:
    is_valid: bool
    has_structured_content: bool
    content_type: ContentType
    issues: List[ContentIssue] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class StructuredData:
    ok: bool
    source: DataSource
    data: Any = None
    error: Optional[Dict[str, Any]] = None
    validation: Optional[ContentValidation] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"ok": self.ok, "_source": self.source.value}
        if self.ok:
            out["data"] = self.data
        else:
            out["error"] = self.error
        return out


def first_text(response: Any) -> str:
    if isinstance(response, str):
        return response
    if not isinstance(response, dict):
        return ""
    content = response.get("content")
    if isinstance(content, list) and content and isinstance(content[0], dict):
        text = content[0].get("text")
        return text if isinstance(text, str) else ""
    return ""


def _classify_content(response: Dict[str, Any], has_structured: bool) -> ContentType:
    if has_structured and isinstance(response.get("structuredContent"), dict):
        return ContentType.STRUCTURED
    content = response.get("content")
    if not isinstance(content, list) or not content:
        return ContentType.UNKNOWN
    if len(content) > 1:
        return ContentType.MIXED
    item = content[0]
    if not isinstance(item, dict) or item.get("type") != "text":
        return ContentType.MIXED
    text = item.get("text") or ""
    stripped = text.strip()
    if "```json" in text or stripped.startswith("{") or stripped.startswith("["):
        return ContentType.JSON
    if "##" in text or "**" in text or "|" in text:
        return ContentType.MARKDOWN
    return ContentType.TEXT


def validate_structured_content(
    response: Any,
    *,
    strict: bool = False,
    server_key: Optional[str] = None,
    tool_name: Optional[str] = None,
) -> ContentValidation:
    """Diagnose whether a response carries a usable ``structuredContent`` object."""
    metadata: Dict[str, Any] = {"serverKey": server_key, "toolName": tool_name}
    if not isinstance(response, dict):
        return ContentValidation(
            is_valid=False,
            has_structured_content=False,
            content_type=ContentType.UNKNOWN,
            issues=[
                ContentIssue(
                    "error",
                    "INVALID_RESPONSE",
                    "Response is not a valid object",
                    "Ensure the MCP server returns a JSON object",
                )
            ],
            metadata=metadata,
        )

    issues: List[ContentIssue] = []
    metadata["responseKeys"] = list(response)
    has_structured = "structuredContent" in response
    if not has_structured:
        issues.append(
            ContentIssue(
                "error" if strict else "warning",
                "MISSING_STRUCTURED_CONTENT",
                "Response does not contain structuredContent field",
                "MCP servers should return { structuredContent: {...} } for code mode",
            )
        )
    elif not isinstance(response["structuredContent"], dict):
        issues.append(
            ContentIssue(
                "error",
                "INVALID_STRUCTURED_CONTENT_TYPE",
                f"structuredContent must be an object, got {type(response['structuredContent']).__name__}",
                "Ensure structuredContent is a JSON object, not a primitive",
            )
        )

    content = response.get("content")
    if content is not None:
        metadata["hasContent"] = True
        if isinstance(content, list) and content and isinstance(content[0], dict):
            text = content[0].get("text")
            metadata["contentLength"] = len(text) if isinstance(text, str) else None
            if content[0].get("type") == "text" and not has_structured:
                issues.append(
                    ContentIssue(
                        "info",
                        "LEGACY_TEXT_CONTENT",
                        "Response uses legacy content[].text format instead of structuredContent",
                        "Migrate to structuredContent",
                    )
                )

    no_errors = not any(i.severity == "error" for i in issues)
    return ContentValidation(
        is_valid=has_structured and no_errors,
        has_structured_content=has_structured,
        content_type=_classify_content(response, has_structured),
        issues=issues,
        metadata=metadata,
    )


def _load_json(raw: str) -> Any:
    try:
        return json.loads(raw)
    except (TypeError, ValueError):
        return None


def scan_json(text: str) -> Any:
    """First decodable JSON object or array embedded in ``text``, else ``None``."""
    decoder = json.JSONDecoder()
    for opener in ("{", "["):
        start = text.find(opener)
        while start != -1:
            try:
                value, _ = decoder.raw_decode(text, start)
            except ValueError:
                start = text.find(opener, start + 1)
                continue
            if isinstance(value, (dict, list)):
                return value
            start = text.find(opener, start + 1)
    return None


def parse_text_fallback(text: str) -> Any:
    """Fallback chain over free text; always returns something for non-empty text."""
    if not text:
        return None
    for pattern in (_FENCED_JSON, _FENCED_ANY):
        match = pattern.search(text)
        if match:
            value = _load_json(match.group(1))
            if value is not None:
                return value
    value = scan_json(text)
    if value is not None:
        return value
    rows = parse_markdown_table(text)
    if rows is not None:
        return rows
    return {"text": text, "_rawText": True}


def _structured_error(structured: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    if structured.get("success") is not False and not structured.get("error"):
        return None
    err = structured.get("error")
    err = err if isinstance(err, dict) else {}
    message = structured.get("message") or err.get("message")
    if not message and isinstance(structured.get("error"), str):
        message = structured["error"]
    return {
        "code": structured.get("code") or err.get("code") or "STRUCTURED_ERROR",
        "message": message or "Tool execution failed",
        "details": structured,
    }


def extract_structured_data(
    response: Any,
    *,
    strict: bool = False,
    enable_fallback: bool = True,
    server_key: Optional[str] = None,
    tool_name: Optional[str] = None,
) -> StructuredData:
    """Normalize a raw tool response.

    Args:
        response: Raw tool result (``{"content": [...], "structuredContent": {...}}``).
        strict: Fail when ``structuredContent`` is missing and no fallback applies.
        enable_fallback: Parse free-text content when ``structuredContent`` is missing.
        server_key: Used in diagnostics only.
        tool_name: Used in diagnostics only.

    Returns:
        ``StructuredData`` with ``ok`` and either ``data`` or ``error``.
    """
    validation = validate_structured_content(response, strict=strict, server_key=server_key, tool_name=tool_name)
    for issue in validation.issues:
        if issue.severity in ("error", "warning"):
            logger.debug("extract_structured_data: %s %s (%s)", issue.code, issue.message, tool_name or "?")

    if validation.has_structured_content and validation.is_valid:
        structured = response["structuredContent"]
        error = _structured_error(structured)
        if error is not None:
            return StructuredData(ok=False, source=DataSource.STRUCTURED_CONTENT, error=error, validation=validation)
        return StructuredData(ok=True, source=DataSource.STRUCTURED_CONTENT, data=structured, validation=validation)

    if enable_fallback:
        parsed = parse_text_fallback(first_text(response))
        if parsed is not None:
            return StructuredData(ok=True, source=DataSource.FALLBACK, data=parsed, validation=validation)

    if strict:
        return StructuredData(
            ok=False,
            source=DataSource.ERROR,
            error={
                "code": "STRUCTURED_CONTENT_REQUIRED",
                "message": "Server must return structuredContent in strict mode",
                "details": {"availableKeys": list(response) if isinstance(response, dict) else []},
            },
            validation=validation,
        )
    return StructuredData(ok=True, source=DataSource.FALLBACK, data=response, validation=validation)


def generate_compliance_report(validations: Iterable[ContentValidation]) -> Dict[str, Any]:
    items = list(validations)
    total = len(items)
    compliant = sum(1 for v in items if v.has_structured_content and v.is_valid)
    rate = compliant / total if total else 0.0
    summary: Dict[str, int] = {}
    for v in items:
        for issue in v.issues:
            summary[issue.code] = summary.get(issue.code, 0) + 1
    recommendations: List[str] = []
    if total:
        if summary.get("MISSING_STRUCTURED_CONTENT"):
            recommendations.append("Implement structuredContent for all tool responses")
        if summary.get("LEGACY_TEXT_CONTENT"):
            recommendations.append("Migrate from legacy content[].text format to structuredContent")
        if rate < 0.5:
            recommendations.append("Server compliance is below 50% - prioritize structuredContent")
    return {
        "totalResponses": total,
        "compliantResponses": compliant,
        "complianceRate": round(rate * 100, 1),
        "issuesSummary": summary,
        "recommendations": recommendations,
    }
