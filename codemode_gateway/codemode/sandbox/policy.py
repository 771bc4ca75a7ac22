"""Static checks applied to scripts before they are executed.

A script is the body of ``async def __codemode_entry__(helpers, console)``. It
may not declare named top-level functions or classes, may not use type
annotations, and may not touch private or introspection attributes.
"""

from __future__ import annotations

import ast
import re
import textwrap
from typing import List, Optional

from .models import SandboxPolicyError

ENTRY_POINT = "__codemode_entry__"

POLICY_ERROR_CODES = frozenset(
    {
        "SYNTAX_ERROR",
        "FUNCTION_DECLARATION_NOT_ALLOWED",
        "TYPE_ANNOTATION_NOT_ALLOWED",
        "FORBIDDEN_ATTRIBUTE",
        "FORBIDDEN_NAME",
        "HELPERS_SYNTAX_ERROR",
        "HELPERS_ENTRY_POINT_MISSING",
    }
)

FUNCTION_DECLARATION_EXAMPLE = (
    "BAD:\n"
    "    async def fetch_all(query):\n"
    "        return await helpers.entrez.search(query=query)\n"
    "    return await fetch_all('p53')\n"
    "GOOD:\n"
    "    result = await helpers.entrez.search(query='p53')\n"
    "    return result"
)

ANNOTATION_EXAMPLE = (
    "BAD:\n"
    "    rows: list = await helpers.entrez.search(query='p53')\n"
    "GOOD:\n"
    "    rows = await helpers.entrez.search(query='p53')"
)

LAMBDA_HINT = "Use inline expressions, comprehensions or lambda assigned to a variable instead of named functions."

_INTROSPECTION_ATTR = re.compile(r"^(?:_|(?:f|tb|cr|gi|ag|co)_)|^get_loop$")
# str.format fields can walk attributes the AST never sees
_FORMAT_ATTRS = frozenset({"format", "format_map"})


def is_forbidden_attribute(name: str) -> bool:
    """Private, dunder and frame/coroutine introspection attributes."""
    return name in _FORMAT_ATTRS or bool(_INTROSPECTION_ATTR.match(name))


def _attribute_hints(name: str) -> List[str]:
    if name in _FORMAT_ATTRS:
        return ["Use f-strings instead of str.format()."]
    return ["Use the helpers API and plain data structures only."]


def wrap_script(code: str) -> str:
    """Indent ``code`` as the body of the async entry point."""
    body = textwrap.indent(textwrap.dedent(code).strip("\n") or "pass", "    ")
    return f"async def {ENTRY_POINT}(helpers, console):\n{body}\n"


def _line_of(node: ast.AST) -> Optional[int]:
    lineno = getattr(node, "lineno", None)
    return lineno - 1 if isinstance(lineno, int) and lineno > 1 else lineno


def _has_annotation(node: ast.AST) -> bool:
    if isinstance(node, ast.AnnAssign):
        return True
    if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
        if node.returns is not None:
            return True
    # parameters carry their own line numbers, ``ast.arguments`` does not
    if isinstance(node, ast.arg):
        return node.annotation is not None
    return False


def parse_script(code: str) -> ast.Module:
    """Parse the wrapped script.

    Raises:
        SandboxPolicyError: ``SYNTAX_ERROR`` when the body does not parse.
    """
    try:
        return ast.parse(wrap_script(code), filename="<codemode>")
    except SyntaxError as exc:
        line = exc.lineno - 1 if exc.lineno and exc.lineno > 1 else exc.lineno
        raise SandboxPolicyError(
            "SYNTAX_ERROR",
            f"Syntax error on line {line}: {exc.msg}",
            [
                "Write plain Python statements; the code already runs inside an async function.",
                "Use `await` for helper calls and finish with `return <value>`.",
                "Check for unbalanced brackets or quotes.",
            ],
            line=line,
        ) from exc


def validate_script(code: str) -> ast.Module:
    """Parse and check a script; returns the wrapped module AST.

    Raises:
        SandboxPolicyError: The first violation found.
    """
    tree = parse_script(code)
    entry = tree.body[0]
    assert isinstance(entry, ast.AsyncFunctionDef)

    for stmt in entry.body:
        if isinstance(stmt, (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef)):
            kind = "class" if isinstance(stmt, ast.ClassDef) else "function"
            raise SandboxPolicyError(
                "FUNCTION_DECLARATION_NOT_ALLOWED",
                f"Top-level {kind} declaration '{stmt.name}' is not allowed. "
                f"Write the logic inline in the script body.\n{FUNCTION_DECLARATION_EXAMPLE}",
                [
                    "Remove the declaration and inline its body.",
                    LAMBDA_HINT,
                ],
                line=_line_of(stmt),
            )

    violations: List[SandboxPolicyError] = []
    for node in ast.walk(entry):
        if node is entry:
            continue
        if _has_annotation(node):
            violations.append(
                SandboxPolicyError(
                    "TYPE_ANNOTATION_NOT_ALLOWED",
                    f"Type annotations are not allowed (line {_line_of(node)}).\n{ANNOTATION_EXAMPLE}",
                    ["Remove `: type` from assignments and parameters and `-> type` from functions."],
                    line=_line_of(node),
                )
            )
        elif isinstance(node, ast.Attribute) and is_forbidden_attribute(node.attr):
            violations.append(
                SandboxPolicyError(
                    "FORBIDDEN_ATTRIBUTE",
                    f"Access to '{node.attr}' is not allowed (line {_line_of(node)}).",
                    _attribute_hints(node.attr),
                    line=_line_of(node),
                )
            )
        elif isinstance(node, ast.Name) and node.id.startswith("__") and node.id != ENTRY_POINT:
            violations.append(
                SandboxPolicyError(
                    "FORBIDDEN_NAME",
                    f"Name '{node.id}' is not allowed (line {_line_of(node)}).",
                    ["Use the helpers API and plain data structures only."],
                    line=_line_of(node),
                )
            )
    if violations:
        raise min(violations, key=lambda v: v.line or 0)
    return tree


def validate_module_source(source: str, filename: str = "<helpers>") -> ast.Module:
    """Checks for the generated helper module: parse and reject dunder attribute access."""
    try:
        tree = ast.parse(source, filename=filename)
    except SyntaxError as exc:
        raise SandboxPolicyError("HELPERS_SYNTAX_ERROR", f"Helper module does not parse: {exc.msg}") from exc
    for node in ast.walk(tree):
        if isinstance(node, ast.Attribute) and is_forbidden_attribute(node.attr):
            raise SandboxPolicyError("FORBIDDEN_ATTRIBUTE", f"Helper module accesses '{node.attr}'")
    return tree
