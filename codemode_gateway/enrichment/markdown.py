from __future__ import annotations

from typing import Dict, List, Optional

MIN_TABLE_ROWS = 2


def _cells(line: str) -> List[str]:
    stripped = line.strip()
    if stripped.startswith("|"):
        stripped = stripped[1:]
    if stripped.endswith("|"):
        stripped = stripped[:-1]
    return [c.strip() for c in stripped.split("|")]


def _is_separator(cells: List[str]) -> bool:
    return bool(cells) and all(c and set(c) <= set("-: ") for c in cells)


def parse_markdown_table(text: str, *, min_rows: int = MIN_TABLE_ROWS) -> Optional[List[Dict[str, str]]]:
    """Parse the first pipe table in ``text`` into row dicts.

    The table must have a header, a separator line and at least ``min_rows``
    data rows, each with the header's column count. Anything else yields
    ``None``.
    """
    table_lines: List[str] = []
    for line in (text or "").splitlines():
        if line.strip().startswith("|"):
            table_lines.append(line)
        elif table_lines:
            break
    if len(table_lines) < 2:
        return None
    headers = _cells(table_lines[0])
    if not headers or not all(headers):
        return None
    if not _is_separator(_cells(table_lines[1])):
        return None
    rows: List[Dict[str, str]] = []
    for line in table_lines[2:]:
        cells = _cells(line)
        if len(cells) != len(headers):
            return None
        rows.append(dict(zip(headers, cells)))
    if len(rows) < min_rows:
        return None
    return rows
