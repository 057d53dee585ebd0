"""
tenantsql/exec/context.py

Per-statement execution context.

Responsibilities:
- QueryContext: owner, catalog, limits and the CTE bindings visible to the query
  being evaluated. It is immutable; binding a CTE produces a child context.
- StatementState: mutable per-statement data shared by every child context
  (statement timestamp, table scans already read from storage)
- Row guard: truncate materialized row lists at MAX_RESULT_ROWS

Design notes:
- Nested evaluation (subqueries, derived tables, CTE bodies, recursive CTE
  iterations) always receives its context explicitly. Outer-row bindings for
  correlated subqueries travel in the expression Env chain (see expressions.py).
"""

from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass, field, replace
from typing import Any, Mapping

from ..catalog import Catalog, TableMeta
from ..config import EngineConfig
from ..results import QueryResult
from ..storage.rowstore import StoredRow

logger = logging.getLogger(__name__)


@dataclass
class StatementState:
    """
    Mutable state of one statement.

    Attributes:
        now: Statement timestamp (NOW(), CURRENT_DATE, ... are stable within a statement).
        scans: Rows already read per table key.
        truncated: Set when the row guard cut a result.
    """
    now: dt.datetime
    scans: dict[str, list[StoredRow]] = field(default_factory=dict)
    truncated: bool = False


@dataclass(frozen=True)
class QueryContext:
    """
    Immutable evaluation context.

    Attributes:
        owner_id: Owner every table access is scoped to.
        catalog: The owner's catalog, bound to the statement's connection.
        config: Engine limits.
        state: Shared per-statement state.
        ctes: Lowercased CTE name -> materialized result.
        subquery_cache: Results of uncorrelated subqueries evaluated in this context.
    """
    owner_id: str
    catalog: Catalog
    config: EngineConfig
    state: StatementState
    ctes: Mapping[str, QueryResult] = field(default_factory=dict)
    subquery_cache: dict[int, QueryResult] = field(default_factory=dict)

    @classmethod
    def for_statement(cls, catalog: Catalog, config: EngineConfig) -> "QueryContext":
        return cls(
            owner_id=catalog.owner_id,
            catalog=catalog,
            config=config,
            state=StatementState(now=dt.datetime.now(dt.timezone.utc)),
        )

    def with_cte(self, name: str, result: QueryResult) -> "QueryContext":
        """Child context with one more CTE binding (and a fresh subquery cache)."""
        ctes = dict(self.ctes)
        ctes[name.lower()] = result
        return replace(self, ctes=ctes, subquery_cache={})

    def lookup_cte(self, name: str) -> QueryResult | None:
        return self.ctes.get(name.lower())

    def scan(self, table: TableMeta) -> list[StoredRow]:
        """All rows of a logical table, read once per statement."""
        rows = self.state.scans.get(table.name)
        if rows is None:
            rows = self.catalog.store.scan(self.catalog.conn, self.owner_id, table.name)
            self.state.scans[table.name] = rows
        return rows

    def forget_scan(self, table: TableMeta) -> None:
        self.state.scans.pop(table.name, None)

    def guard(self, rows: list[Any], what: str) -> list[Any]:
        """
        Apply the row guard to a materialized row list.

        Args:
            rows: Rows produced by a join, a recursive CTE or a query.
            what: Label for the warning log.

        Returns:
            `rows`, cut to MAX_RESULT_ROWS.
        """
        limit = self.config.MAX_RESULT_ROWS
        if len(rows) <= limit:
            return rows
        if not self.state.truncated:
            logger.warning(
                "Truncated %s for owner %s from %d to %d rows (MAX_RESULT_ROWS)",
                what, self.owner_id, len(rows), limit,
            )
        self.state.truncated = True
        return rows[:limit]
