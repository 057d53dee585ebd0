"""
tenantsql/variables.py

{{variable}} substitution for SQL text.

Responsibilities:
- Replace every {{name}} placeholder with the SQL literal for the supplied value
- Leave placeholders inside comments untouched
- Escape values substituted inside a quoted string literal
- Resolve dotted paths ({{order.id}}, {{items.0}}) through nested mappings/lists

Rules:
- Outside quotes: numbers bare, strings single-quoted with '' escaping, None as NULL,
  booleans as TRUE/FALSE, mappings/lists as '<json>'::jsonb.
- Inside quotes: the raw text of the value, with single quotes doubled. A quoted
  literal that is exactly one placeholder whose value is None becomes NULL.
- Inside "quoted identifiers": the raw text of the value, with double quotes doubled.
- A placeholder without a supplied value raises UnresolvedVariableError. So does a
  value that is itself a bare {{placeholder}} token (substitution deferred to a
  later stage that never happened).
"""

from __future__ import annotations

import datetime as dt
import json
import math
import re
from decimal import Decimal
from typing import Any, Mapping

from .errors import UnresolvedVariableError
from .messages import t

PLACEHOLDER_RE = re.compile(r"\{\{\s*([A-Za-z_][A-Za-z0-9_]*(?:\.[A-Za-z0-9_]+)*)\s*\}\}")

_MISSING = object()


def has_placeholders(sql: str) -> bool:
    """Return True if `sql` contains at least one {{name}} placeholder."""
    return PLACEHOLDER_RE.search(sql) is not None


def lookup(variables: Mapping[str, Any], path: str) -> Any:
    """
    Resolve a dotted path against the supplied variables.

    Args:
        variables: Name -> value mapping.
        path: "name", "name.key" or "name.0".

    Returns:
        The value, or the module-private _MISSING sentinel.
    """
    if path in variables:
        return variables[path]
    current: Any = variables
    for part in path.split("."):
        if isinstance(current, Mapping) and part in current:
            current = current[part]
        elif isinstance(current, (list, tuple)) and part.isdigit() and int(part) < len(current):
            current = current[int(part)]
        else:
            return _MISSING
    return current


def to_sql_literal(value: Any) -> str:
    """
    Render a Python value as a SQL literal.

    Examples:
        1 -> 1, "O'Brien" -> 'O''Brien', None -> NULL, True -> TRUE,
        {"a": 1} -> '{"a": 1}'::jsonb
    """
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, (int, float, Decimal)):
        if isinstance(value, float) and (math.isnan(value) or math.isinf(value)):
            return "NULL"
        text = repr(value) if isinstance(value, float) else str(value)
        # "x -{{v}}" must not become the comment "x --1"
        return f"({text})" if value < 0 else text
    if isinstance(value, (dict, list, tuple)):
        return quote(json.dumps(value, ensure_ascii=False, default=str)) + "::jsonb"
    if isinstance(value, (dt.date, dt.datetime)):
        return quote(value.isoformat())
    return quote(str(value))


def to_raw_text(value: Any) -> str:
    """Text of a value substituted inside a quoted literal (quotes escaped by the caller)."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, ensure_ascii=False, default=str)
    if isinstance(value, (dt.date, dt.datetime)):
        return value.isoformat()
    return str(value)


def quote(text: str) -> str:
    """Single-quote `text`, doubling embedded quotes."""
    return "'" + text.replace("'", "''") + "'"


def _resolve(variables: Mapping[str, Any], name: str) -> Any:
    value = lookup(variables, name)
    if value is _MISSING:
        raise UnresolvedVariableError(t("unresolved_variable", name=name), name=name)
    if isinstance(value, str):
        deferred = PLACEHOLDER_RE.fullmatch(value.strip())
        if deferred:
            inner = deferred.group(1)
            raise UnresolvedVariableError(t("unresolved_variable", name=inner), name=inner)
    return value


def _substitute_in_string(body: str, variables: Mapping[str, Any]) -> str:
    """Substitute placeholders inside the body of a quoted literal (body still escaped)."""
    def repl(m: re.Match[str]) -> str:
        return to_raw_text(_resolve(variables, m.group(1))).replace("'", "''")

    return PLACEHOLDER_RE.sub(repl, body)


def _substitute_in_identifier(body: str, variables: Mapping[str, Any]) -> str:
    """Substitute placeholders inside a "quoted identifier" (double quotes doubled)."""
    def repl(m: re.Match[str]) -> str:
        return to_raw_text(_resolve(variables, m.group(1))).replace('"', '""')

    return PLACEHOLDER_RE.sub(repl, body)


def resolve_variables(sql: str, variables: Mapping[str, Any] | None) -> str:
    """
    Substitute {{name}} placeholders in `sql`.

    Args:
        sql: SQL text possibly containing placeholders.
        variables: Supplied values (None means no variables).

    Returns:
        SQL text with every placeholder outside comments replaced.

    Raises:
        UnresolvedVariableError: for a placeholder with no supplied value.
    """
    if not has_placeholders(sql):
        return sql
    variables = variables or {}

    out: list[str] = []
    i = 0
    n = len(sql)
    while i < n:
        ch = sql[i]

        # -- line comment: copy verbatim
        if ch == "-" and sql.startswith("--", i):
            j = sql.find("\n", i)
            j = n if j < 0 else j
            out.append(sql[i:j])
            i = j
            continue

        # /* block comment */: copy verbatim
        if ch == "/" and sql.startswith("/*", i):
            j = sql.find("*/", i + 2)
            j = n if j < 0 else j + 2
            out.append(sql[i:j])
            i = j
            continue

        # 'string literal'
        if ch == "'":
            j = i + 1
            while j < n:
                if sql[j] == "'":
                    if j + 1 < n and sql[j + 1] == "'":
                        j += 2
                        continue
                    break
                j += 1
            body = sql[i + 1:j]
            whole = PLACEHOLDER_RE.fullmatch(body)
            if whole and j < n and _resolve(variables, whole.group(1)) is None:
                out.append("NULL")
            else:
                out.append("'" + _substitute_in_string(body, variables) + (sql[j] if j < n else ""))
            i = j + 1
            continue

        # "quoted identifier": substitute as identifier text
        if ch == '"':
            j = sql.find('"', i + 1)
            j = n if j < 0 else j
            out.append('"' + _substitute_in_identifier(sql[i + 1:j], variables) + (sql[j] if j < n else ""))
            i = j + 1
            continue

        m = PLACEHOLDER_RE.match(sql, i)
        if m:
            out.append(to_sql_literal(_resolve(variables, m.group(1))))
            i = m.end()
            continue

        out.append(ch)
        i += 1

    return "".join(out)
