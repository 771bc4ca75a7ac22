"""Structural argument validation against sanitized tool schemas.

Used by the proxy before a call is forwarded: it catches missing required
parameters, unknown (typically misspelled) parameters, wrong JSON types and
enum violations, and produces suggestions a model can act on.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

SIMILARITY_THRESHOLD = 0.6


@dataclass(frozen=True)
class ValidationIssue:
    path: str
    message: str
    expected: Optional[str] = None
    received: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {k: v for k, v in self.__dict__.items() if v is not None}


@dataclass
class ValidationResult:
    valid: bool
    errors: List[ValidationIssue] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)


def json_type_name(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (list, tuple)):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__


def dice_similarity(a: str, b: str) -> float:
    """Sørensen-Dice coefficient over character bigrams."""
    if a == b:
        return 1.0
    if len(a) < 2 or len(b) < 2:
        return 0.0
    bigrams: Dict[str, int] = {}
    for i in range(len(a) - 1):
        bg = a[i : i + 2]
        bigrams[bg] = bigrams.get(bg, 0) + 1
    matches = 0
    for i in range(len(b) - 1):
        bg = b[i : i + 2]
        if bigrams.get(bg, 0) > 0:
            bigrams[bg] -= 1
            matches += 1
    return (2 * matches) / (len(a) + len(b) - 2)


def find_similar_param(name: str, known: Iterable[str]) -> Optional[str]:
    lowered = name.lower()
    best: Optional[str] = None
    best_score = 0.0
    for candidate in known:
        score = dice_similarity(lowered, candidate.lower())
        if score > best_score and score > SIMILARITY_THRESHOLD:
            best, best_score = candidate, score
    return best


def generate_example_value(prop: Any) -> Any:
    if not isinstance(prop, dict):
        return "..."
    if "default" in prop:
        return prop["default"]
    if "example" in prop:
        return prop["example"]
    if isinstance(prop.get("enum"), list) and prop["enum"]:
        return prop["enum"][0]
    typ = prop.get("type")
    if typ == "string":
        return "example_id" if "id" in str(prop.get("description", "")).lower() else "example"
    if typ in ("number", "integer"):
        return prop.get("minimum", 10)
    if typ == "boolean":
        return True
    if typ == "array":
        return []
    if typ == "object":
        return {}
    return "..."


def _is_numeric_string(value: Any) -> bool:
    if not isinstance(value, str) or not value.strip():
        return False
    try:
        float(value)
    except ValueError:
        return False
    return True


def _check_type(name: str, value: Any, prop: Dict[str, Any]) -> Optional[ValidationIssue]:
    expected = prop.get("type")
    if not isinstance(expected, str):
        return None
    actual = json_type_name(value)
    if expected == "string" and actual != "string":
        return ValidationIssue(name, f"Expected string, got {actual}", "string", actual)
    if expected in ("number", "integer") and actual != "number":
        if _is_numeric_string(value):
            return None
        return ValidationIssue(name, f"Expected {expected}, got {actual}", expected, actual)
    if expected == "boolean" and actual != "boolean":
        return ValidationIssue(name, f"Expected boolean, got {actual}", "boolean", actual)
    if expected == "array" and actual != "array":
        return ValidationIssue(name, f"Expected array, got {actual}", "array", actual)
    if expected == "object" and actual != "object":
        return ValidationIssue(name, f"Expected object, got {actual}", "object", actual)
    enums = prop.get("enum")
    if isinstance(enums, list) and enums and value not in enums:
        shown = ", ".join(str(e) for e in enums[:5]) + ("..." if len(enums) > 5 else "")
        return ValidationIssue(name, f'Value "{value}" is not in allowed values', shown, str(value))
    return None


def _type_suggestion(name: str, prop: Dict[str, Any], value: Any) -> str:
    expected = prop.get("type")
    if expected in ("number", "integer") and isinstance(value, str):
        return f'Convert "{name}" to number: {name}: 0'
    if expected == "string":
        return f'Convert "{name}" to string: {name}: "{value}"'
    if expected == "array":
        return f'Wrap "{name}" in array: {name}: [{json.dumps(value, default=str)}]'
    if isinstance(prop.get("enum"), list):
        return f'Use one of the allowed values for "{name}": {", ".join(str(e) for e in prop["enum"][:5])}'
    return f'Parameter "{name}" should be {expected}'


def validate_args(args: Dict[str, Any], schema: Optional[Dict[str, Any]]) -> ValidationResult:
    """Validate ``args`` against an object schema.

    Args:
        args: Arguments as sent by the caller.
        schema: Sanitized parameter schema; ``None`` accepts anything.

    Returns:
        A ``ValidationResult`` listing every problem found plus suggestions.
    """
    if not isinstance(schema, dict):
        return ValidationResult(valid=True)
    properties: Dict[str, Any] = schema.get("properties") if isinstance(schema.get("properties"), dict) else {}
    required = [r for r in (schema.get("required") or []) if isinstance(r, str)]
    errors: List[ValidationIssue] = []
    suggestions: List[str] = []

    for param in required:
        if args.get(param) is None:
            prop = properties.get(param) or {}
            errors.append(
                ValidationIssue(param, f"Missing required parameter: {param}", str(prop.get("type", "any")), "undefined")
            )
            example = json.dumps({param: generate_example_value(prop)}, default=str)
            suggestions.append(f'Add required parameter "{param}": {example}')

    open_object = schema.get("additionalProperties") is True
    if properties:
        for param in args:
            if param in properties:
                continue
            similar = find_similar_param(param, properties.keys())
            if open_object and not similar:
                continue
            errors.append(
                ValidationIssue(param, f"Unknown parameter: {param}", f"one of: {', '.join(properties)}", param)
            )
            if similar:
                suggestions.append(f'Did you mean "{similar}" instead of "{param}"?')
            else:
                suggestions.append(f"Valid parameters: {', '.join(properties)}")

    for param, value in args.items():
        prop = properties.get(param)
        if not isinstance(prop, dict) or value is None:
            continue
        issue = _check_type(param, value, prop)
        if issue:
            errors.append(issue)
            suggestions.append(_type_suggestion(param, prop, value))

    return ValidationResult(valid=not errors, errors=errors, suggestions=suggestions)


def format_validation_error(result: ValidationResult, tool_name: str, server_key: str) -> str:
    if result.valid:
        return ""
    lines = [f"Parameter validation failed for {server_key}/{tool_name}:", ""]
    for issue in result.errors:
        lines.append(f"  - {issue.message}")
        if issue.expected and issue.received:
            lines.append(f"    Expected: {issue.expected}")
            lines.append(f"    Received: {issue.received}")
    if result.suggestions:
        lines.append("")
        lines.append("Suggestions:")
        for s in result.suggestions[:3]:
            lines.append(f"  * {s}")
    lines.append("")
    lines.append(f"Tip: Use helpers.{server_key}.get_tool_schema('{tool_name}') to see full parameter requirements.")
    return "\n".join(lines)


def generate_schema_summary(schema: Any) -> str:
    """Compact ``{ name: type, optional?: type }`` rendering of an object schema."""
    if not isinstance(schema, dict):
        return "No schema available"
    properties = schema.get("properties") if isinstance(schema.get("properties"), dict) else {}
    required = set(schema.get("required") or [])
    params = []
    for name, prop in properties.items():
        typ = prop.get("type", "any") if isinstance(prop, dict) else "any"
        if isinstance(typ, list):
            typ = "|".join(str(t) for t in typ)
        params.append(f"{name}{'' if name in required else '?'}: {typ}")
    if not params:
        return "No parameters"
    return "{ " + ", ".join(params) + " }"
