"""
tenantsql/results.py

Result objects.

The executor returns one of:
- CommandOk: for statements that do not return a query result (DDL, INSERT/UPDATE/
  DELETE); RETURNING rows ride along in `columns`/`rows`
- QueryResult: for SELECT statements (also the intermediate result of every
  subquery, CTE and set-operation arm)

SqlEngine.execute() wraps them into an ExecutionResult, the success/failure shape
callers branch on.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .exec.values import to_output


@dataclass(frozen=True)
class CommandOk:
    """
    Represents successful execution of a non-SELECT statement.

    Attributes:
        rows_affected: Number of logical rows affected (INSERT/UPDATE/DELETE).
        message: Human-readable status message.
        columns: RETURNING column names (None without RETURNING).
        rows: RETURNING rows aligned with `columns`.
    """
    rows_affected: int = 0
    message: str = "OK"
    columns: list[str] | None = None
    rows: list[list[Any]] | None = None


@dataclass(frozen=True)
class QueryResult:
    """
    Represents the output of a query.

    Attributes:
        columns: Output column names in order (may repeat, e.g. `SELECT a.id, b.id`).
        rows: A list of rows; each row is a list of values aligned with `columns`.
    """
    columns: list[str]
    rows: list[list[Any]]


def rows_as_dicts(columns: list[str], rows: list[list[Any]]) -> list[dict[str, Any]]:
    """
    Convert positional rows to mappings.

    When a name repeats, the first column with that name wins.
    """
    out: list[dict[str, Any]] = []
    for row in rows:
        record: dict[str, Any] = {}
        for name, value in zip(columns, row):
            if name not in record:
                record[name] = to_output(value)
        out.append(record)
    return out


@dataclass
class ExecutionResult:
    """
    Outcome of one SqlEngine.execute() call.

    Attributes:
        success: False when any statement failed.
        rows: Result rows of a query (or RETURNING rows); None otherwise.
        affected: Rows affected by INSERT/UPDATE/DELETE; None otherwise.
        error: Localized error message when success is False.
        message: Status message of the last statement (DDL confirmations).
        columns: Output column names of `rows`.
        error_kind: Failure category ("syntax", "not_found", "not_supported", ...).
        statements: Per-statement results when the SQL text held several statements.
        truncated: True when the row guard (MAX_RESULT_ROWS) cut a row list while the
            statement ran, so `rows` may be incomplete.
    """
    success: bool
    rows: list[dict[str, Any]] | None = None
    affected: int | None = None
    error: str | None = None
    message: str | None = None
    columns: list[str] | None = None
    error_kind: str | None = None
    statements: list["ExecutionResult"] = field(default_factory=list)
    truncated: bool = False

    @classmethod
    def from_statement(cls, result: CommandOk | QueryResult, truncated: bool = False) -> "ExecutionResult":
        if isinstance(result, QueryResult):
            return cls(
                success=True,
                rows=rows_as_dicts(result.columns, result.rows),
                columns=list(result.columns),
                truncated=truncated,
            )
        rows = None
        if result.rows is not None and result.columns is not None:
            rows = rows_as_dicts(result.columns, result.rows)
        return cls(
            success=True,
            rows=rows,
            affected=result.rows_affected,
            message=result.message,
            columns=result.columns,
            truncated=truncated,
        )

    @classmethod
    def failure(cls, error: str, kind: str = "error") -> "ExecutionResult":
        return cls(success=False, error=error, error_kind=kind)

    def to_dict(self) -> dict[str, Any]:
        """
        The plain mapping shape:
            {"success": True, "rows": [...]}
            {"success": True, "affected": n[, "rows": [...]]}
            {"success": False, "error": "..."}
        A successful result carries "truncated": True when the row guard cut it.
        """
        if not self.success:
            return {"success": False, "error": self.error}
        out: dict[str, Any] = {"success": True}
        if self.affected is not None:
            out["affected"] = self.affected
        if self.rows is not None:
            out["rows"] = self.rows
        if self.message is not None and self.rows is None and self.affected is None:
            out["message"] = self.message
        if self.truncated:
            out["truncated"] = True
        return out
