#!/usr/bin/env python3
"""Gate: guest data must never reach the logs unredacted.

Fails if, anywhere under src/:
- print( is called in runtime code
- a logger call references a guest-data name (guest_details, special_requests,
  email, payload, body...) outside a safe_log_context/redact_* call

Usage:
    python scripts/check_log_redaction.py
"""

from __future__ import annotations

import ast
import sys
from pathlib import Path

SENSITIVE_NAMES = frozenset({
    "guest_details",
    "special_requests",
    "email",
    "payload",
    "body",
    "phone",
})

LOG_METHODS = frozenset({"debug", "info", "warning", "error", "critical", "exception"})

REDACTION_FUNCS = frozenset({"safe_log_context", "redact_value", "redact_string"})


def _call_name(node: ast.Call) -> str | None:
    if isinstance(node.func, ast.Name):
        return node.func.id
    if isinstance(node.func, ast.Attribute):
        return node.func.attr
    return None


def _is_logger_call(node: ast.Call) -> bool:
    func = node.func
    return (
        isinstance(func, ast.Attribute)
        and func.attr in LOG_METHODS
        and isinstance(func.value, ast.Name)
        and func.value.id == "logger"
    )


def _unredacted_names(node: ast.AST) -> list[str]:
    """Sensitive names referenced under node, skipping redaction calls."""
    found: list[str] = []
    stack = [node]
    while stack:
        current = stack.pop()
        if isinstance(current, ast.Call) and _call_name(current) in REDACTION_FUNCS:
            continue
        if isinstance(current, ast.Name) and current.id in SENSITIVE_NAMES:
            found.append(current.id)
        elif isinstance(current, ast.Attribute) and current.attr in SENSITIVE_NAMES:
            found.append(current.attr)
        stack.extend(ast.iter_child_nodes(current))
    return found


def check_source(source: str, filename: str = "<string>") -> list[str]:
    """Check Python source text. Returns list of error messages."""
    errors: list[str] = []
    tree = ast.parse(source, filename=filename)

    for node in ast.walk(tree):
        if not isinstance(node, ast.Call):
            continue
        if isinstance(node.func, ast.Name) and node.func.id == "print":
            errors.append(f"{filename}:{node.lineno}: print() not allowed in runtime code")
        elif _is_logger_call(node):
            for name in sorted(set(_unredacted_names(node))):
                errors.append(
                    f"{filename}:{node.lineno}: logger call references '{name}' "
                    "without redaction (safe_log_context/redact_value)"
                )
    return errors


def check_file(filepath: Path) -> list[str]:
    return check_source(filepath.read_text(encoding="utf-8"), str(filepath))


def main() -> int:
    src_dir = Path(__file__).resolve().parent.parent / "src"
    if not src_dir.exists():
        sys.stderr.write("Error: src directory not found\n")
        return 1

    all_errors: list[str] = []
    for pyfile in sorted(src_dir.rglob("*.py")):
        all_errors.extend(check_file(pyfile))

    if all_errors:
        sys.stderr.write("Log redaction gate FAILED:\n")
        for err in all_errors:
            sys.stderr.write(f"  {err}\n")
        return 1

    sys.stdout.write("Log redaction gate PASSED\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
