"""
tenantsql/safety.py

Safety gate and static resource checks, run after parsing and before any
catalog/storage access.

Responsibilities:
- Classify every statement class as ALLOWED or BLOCKED (STATEMENT_POLICY). The
  mapping is exhaustive: a Statement subclass without an entry is an internal
  error, so adding a statement kind forces a policy decision.
- Reject any statement that addresses a system namespace (pg_*, information_schema,
  pg_catalog), whatever its verb.
- Enforce the static limits of EngineConfig (subquery depth, JOIN count).
"""

from __future__ import annotations

from enum import Enum

from .ast import (
    AdminStatement,
    AlterTable,
    CreateTable,
    Delete,
    DropTable,
    Grant,
    Insert,
    Node,
    Query,
    RenameTable,
    Revoke,
    Select,
    SetOperation,
    Statement,
    TableRef,
    Truncate,
    Update,
    children,
    walk,
)
from .config import EngineConfig
from .errors import NotSupportedError, ResourceLimitError
from .messages import t

SYSTEM_SCHEMAS = ("information_schema", "pg_catalog", "pg_toast")


class Policy(Enum):
    ALLOWED = "allowed"
    BLOCKED = "blocked"


STATEMENT_POLICY: dict[type[Statement], Policy] = {
    CreateTable: Policy.ALLOWED,
    AlterTable: Policy.ALLOWED,
    DropTable: Policy.ALLOWED,
    Insert: Policy.ALLOWED,
    Update: Policy.ALLOWED,
    Delete: Policy.ALLOWED,
    Select: Policy.ALLOWED,
    SetOperation: Policy.ALLOWED,
    Truncate: Policy.BLOCKED,
    Grant: Policy.BLOCKED,
    Revoke: Policy.BLOCKED,
    AdminStatement: Policy.BLOCKED,
}


def statement_label(stmt: Statement) -> str:
    """Short SQL verb for messages and logs ("TRUNCATE", "CREATE DATABASE", "SELECT")."""
    if isinstance(stmt, AdminStatement):
        return stmt.verb
    if isinstance(stmt, CreateTable):
        return "CREATE TABLE"
    if isinstance(stmt, AlterTable):
        return "ALTER TABLE"
    if isinstance(stmt, DropTable):
        return "DROP TABLE"
    if isinstance(stmt, Query):
        return "SELECT"
    return type(stmt).__name__.upper()


def is_system_name(name: str, schema: str | None = None) -> bool:
    """
    True for names inside a system namespace.

    Examples:
        pg_tables, information_schema.tables, pg_catalog.pg_class
    """
    if schema is not None and (schema.lower() in SYSTEM_SCHEMAS or schema.lower().startswith("pg_")):
        return True
    lowered = name.lower()
    if lowered.startswith("pg_") or lowered in SYSTEM_SCHEMAS:
        return True
    return any(lowered.startswith(s + ".") for s in SYSTEM_SCHEMAS)


def referenced_names(stmt: Statement) -> list[tuple[str | None, str]]:
    """Every (schema, table) a statement names, including inside subqueries and CTEs."""
    names: list[tuple[str | None, str]] = []
    if isinstance(stmt, CreateTable):
        names.append((None, stmt.table_name))
    elif isinstance(stmt, (DropTable, Truncate)):
        names.extend((None, n) for n in stmt.table_names)
    elif isinstance(stmt, AlterTable):
        names.append((None, stmt.table_name))
        names.extend((None, a.new) for a in stmt.actions if isinstance(a, RenameTable))
    for node in walk(stmt):
        if isinstance(node, TableRef):
            names.append((node.schema, node.name))
    return names


def check_statement(stmt: Statement) -> None:
    """
    Apply the safety gate to one parsed statement.

    Raises:
        NotSupportedError: for blocked statement kinds and system namespaces.
        RuntimeError: if the statement class has no registered policy.
    """
    policy = STATEMENT_POLICY.get(type(stmt))
    if policy is None:
        raise RuntimeError(f"No safety policy registered for {type(stmt).__name__}")
    if policy is Policy.BLOCKED:
        raise NotSupportedError(t("not_supported", operation=statement_label(stmt)))

    for schema, name in referenced_names(stmt):
        if is_system_name(name, schema):
            full = f"{schema}.{name}" if schema else name
            raise NotSupportedError(t("system_namespace", name=full))


# ---------- static resource limits ----------

def query_depth(node: Node, level: int = 0) -> int:
    """
    Deepest query nesting below `node`; the statement itself is level 0.

    Subqueries, derived tables and CTE bodies add a level; the arms of a set
    operation stay on the level of the set operation.
    """
    deepest = level
    for child in children(node):
        arm = isinstance(node, SetOperation) and (child is node.left or child is node.right)
        if isinstance(child, Query) and not arm:
            deepest = max(deepest, query_depth(child, level + 1))
        else:
            deepest = max(deepest, query_depth(child, level))
    return deepest


def check_limits(stmt: Statement, config: EngineConfig) -> None:
    """
    Enforce static limits on a parsed statement.

    Raises:
        ResourceLimitError: when subquery nesting or the JOIN count exceeds the config.
    """
    if query_depth(stmt) > config.MAX_SUBQUERY_DEPTH:
        raise ResourceLimitError(t("subquery_depth", limit=config.MAX_SUBQUERY_DEPTH))
    for node in walk(stmt):
        if isinstance(node, Select) and len(node.joins) + max(len(node.from_) - 1, 0) > config.MAX_JOIN_TABLES:
            raise ResourceLimitError(t("join_limit", limit=config.MAX_JOIN_TABLES))
