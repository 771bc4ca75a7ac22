"""Turn chat-style tool responses into code-friendly ``{ok, data, error}`` values.

Handles the legacy servers that report failures and staged datasets only in
free text: error markers and codes are extracted from the text, and staging
announcements (data access id, tables, row count, payload size) are lifted
into a ``staged`` block.
"""

from __future__ import annotations

import re
from typing import Any, Dict, List, Optional

from .structured import extract_structured_data, first_text

DATA_ACCESS_ID = re.compile(r"^[a-z]+_[a-z]+_\d{10,}_[a-z0-9]{4,}$")

_ERROR_MARKERS = re.compile(r"\berror\b:|\bfailed\b:|\bexception\b:|Query failed|Manager Error|❌|⚠️", re.IGNORECASE)
_MESSAGE_PATTERNS = (
    re.compile(r"Data Manager Error:\s*([^\n]+)", re.IGNORECASE),
    re.compile(r"(?:Error|Failed|Exception):\s*([^\n]+)", re.IGNORECASE),
    re.compile(r"❌\s*\*\*([^*]+)\*\*"),
    re.compile(r"⚠️\s*([^\n]+)"),
)
_CODE_PATTERNS = (
    re.compile(r"SQLITE_([A-Z_]+)"),
    re.compile(r"\[([A-Z_]+)\]"),
    re.compile(r"error code:\s*([A-Z_]+)", re.IGNORECASE),
)
_ID_PATTERNS = (
    re.compile(r"Data Access ID:\s*\*\*\s*([a-zA-Z0-9_]+)\s*\*\*"),
    re.compile(r"data_access_id[:\s]*[\"']?([a-zA-Z0-9_]+)[\"']?", re.IGNORECASE),
    re.compile(r"([a-z]+_[a-z]+_\d{10,}_[a-z0-9]{4,})"),
)
_FROM_TABLE = re.compile(r"FROM\s+([a-z_][a-z0-9_]*)", re.IGNORECASE)
_SQL_KEYWORDS = {"select", "where", "limit", "join", "order", "group"}
_ROW_COUNT = re.compile(r"(?:Entities|Records|Results):\s*\*{0,2}(\d+)\*{0,2}", re.IGNORECASE)
_PAYLOAD_SIZE = re.compile(r"Payload Size:\s*\*{0,2}(\d+)\s*(KB|MB|bytes)?\*{0,2}", re.IGNORECASE)


def detect_legacy_error(response: Any) -> bool:
    if isinstance(response, dict) and response.get("isError") is True:
        return True
    return bool(_ERROR_MARKERS.search(first_text(response)))


def extract_error_code(text: str) -> str:
    if "no such table" in text:
        return "TABLE_NOT_FOUND"
    if "Invalid arguments" in text:
        return "INVALID_ARGUMENTS"
    if "timed out" in text:
        return "TIMEOUT"
    if "required" in text:
        return "MISSING_REQUIRED_PARAM"
    if "not found" in text:
        return "NOT_FOUND"
    for pattern in _CODE_PATTERNS:
        match = pattern.search(text)
        if match:
            return match.group(1)
    return "UNKNOWN_ERROR"


def extract_legacy_error(response: Any) -> Dict[str, Any]:
    text = first_text(response)
    if not text:
        return {"code": "UNKNOWN_ERROR", "message": "Tool execution failed", "details": {"response": response}}
    message = None
    for pattern in _MESSAGE_PATTERNS:
        match = pattern.search(text)
        if match:
            message = match.group(1).strip()
            break
    if not message:
        message = text.strip() if len(text) < 500 else text[:200].strip() + "..."
    error: Dict[str, Any] = {"code": extract_error_code(text), "message": message}
    if text != message and len(text) < 2000:
        error["details"] = {"originalText": text}
    return error


def extract_data_access_id(text: str) -> Optional[str]:
    for pattern in _ID_PATTERNS:
        match = pattern.search(text)
        if match:
            cleaned = re.sub(r"[^\w\-]", "", match.group(1)).strip("-_")
            if DATA_ACCESS_ID.match(cleaned):
                return cleaned
    return None


def extract_table_names(text: str) -> List[str]:
    tables: List[str] = []
    for match in _FROM_TABLE.finditer(text):
        table = match.group(1).lower()
        if table not in _SQL_KEYWORDS and table not in tables:
            tables.append(table)
    return tables


def extract_staging_metadata(text: str) -> Optional[Dict[str, Any]]:
    """Staging details announced in free text, or ``None`` when nothing was staged."""
    if "Data Staged" not in text and "data_access_id" not in text and "Data Access ID" not in text:
        return None
    data_access_id = extract_data_access_id(text)
    if not data_access_id:
        return None
    tables = extract_table_names(text)
    staged: Dict[str, Any] = {"dataAccessId": data_access_id, "tables": tables}
    if tables:
        staged["primaryTable"] = tables[0]
    rows = _ROW_COUNT.search(text)
    if rows:
        staged["rowCount"] = int(rows.group(1))
    size = _PAYLOAD_SIZE.search(text)
    if size:
        value = int(size.group(1))
        unit = (size.group(2) or "").lower()
        staged["payloadSize"] = value * 1024 if unit == "kb" else value * 1024 * 1024 if unit == "mb" else value
    return staged


def transform_response(response: Any, tool_name: Optional[str] = None) -> Dict[str, Any]:
    """Normalize a raw tool response for helper code.

    Returns:
        ``{"ok": bool, "data": ..., "error": {...}, "staged": {...}}`` with only
        the relevant keys present.
    """
    if isinstance(response, dict) and ("ok" in response or "data" in response) and "content" not in response:
        ok = response.get("ok")
        if ok is None:
            ok = not response.get("error")
        out: Dict[str, Any] = {"ok": bool(ok), "data": response.get("data", response)}
        if response.get("error") is not None:
            out["error"] = response["error"]
        return out

    # Failure shape produced by the invocation wrapper: {"error": message}
    if isinstance(response, dict) and "error" in response and not ({"content", "structuredContent"} & response.keys()):
        error = response["error"]
        if isinstance(error, dict):
            return {
                "ok": False,
                "error": {
                    "code": str(error.get("code") or "TOOL_ERROR"),
                    "message": str(error.get("message") or "Tool execution failed"),
                    "details": error,
                },
            }
        return {"ok": False, "error": {"code": "TOOL_ERROR", "message": str(error) or "Tool execution failed"}}

    if isinstance(response, dict) and "structuredContent" in response:
        structured = extract_structured_data(response, tool_name=tool_name)
        return structured.to_dict()

    if detect_legacy_error(response):
        return {"ok": False, "error": extract_legacy_error(response)}

    text = first_text(response)
    if not text:
        return {"ok": True, "data": response}

    staged = extract_staging_metadata(text)
    if staged:
        data = {
            "dataAccessId": staged["dataAccessId"],
            "table": staged.get("primaryTable"),
            "tables": staged["tables"],
            "rowCount": staged.get("rowCount"),
            "payloadSize": staged.get("payloadSize"),
        }
        return {"ok": True, "data": data, "staged": staged}

    return extract_structured_data(response, tool_name=tool_name).to_dict()
