"""
tenantsql/engine.py

Public engine API for tenantsql.

Responsibilities:
- Provide the library interface:
    - SqlEngine.open(url)
    - engine.execute(sql, owner_id, variables) -> ExecutionResult
    - engine.execute_or_raise(...) for callers that prefer exceptions
- Run the statement pipeline: variables -> parser -> safety gate -> executor
- Run each statement in its own transaction, serialized per owner
- Turn every failure into a failure result (no exception escapes execute())
- Log statement start, completion, slow statements and failures

This module is intentionally small so it can be used from:
- the REPL (tenantsql/repl.py)
- a workflow runtime calling execute(sql, owner_id, variables)
"""

from __future__ import annotations

import logging
import threading
import time
import weakref
from dataclasses import dataclass, field, replace
from typing import Any, Mapping

from .ast import Statement
from .catalog import Catalog, TableMeta
from .config import SLOW_STATEMENT_SECONDS, EngineConfig
from .errors import ExecutionError, ResourceLimitError, TenantSQLError, ValidationError
from .exec.context import QueryContext
from .exec.executor import Executor
from .messages import t, use_locale
from .parser import parse_script
from .results import CommandOk, ExecutionResult, QueryResult
from .safety import check_limits, check_statement, statement_label
from .storage.rowstore import RowStore
from .variables import resolve_variables

logger = logging.getLogger(__name__)

LOG_SQL_CHARS = 200


def _shorten(sql: str) -> str:
    flat = " ".join(sql.split())
    return flat if len(flat) <= LOG_SQL_CHARS else flat[:LOG_SQL_CHARS - 3] + "..."


class _OwnerLock:
    """Mutex serializing one owner's statements (weak-referenceable, unlike threading.Lock)."""

    __slots__ = ("_lock", "__weakref__")

    def __init__(self) -> None:
        self._lock = threading.Lock()

    def __enter__(self) -> "_OwnerLock":
        self._lock.acquire()
        return self

    def __exit__(self, *exc: object) -> None:
        self._lock.release()


@dataclass
class SqlEngine:
    """
    Multi-tenant SQL engine over one physical row store.

    Attributes:
        store: Row store (the only component talking to the physical database).
        config: Limits and settings.
    """
    store: RowStore
    config: EngineConfig = field(default_factory=EngineConfig)
    _locks: "weakref.WeakValueDictionary[str, _OwnerLock]" = field(
        default_factory=weakref.WeakValueDictionary, repr=False
    )
    _locks_guard: threading.Lock = field(default_factory=threading.Lock, repr=False)

    @classmethod
    def open(cls, url: str | None = None, config: EngineConfig | None = None) -> "SqlEngine":
        """
        Open an engine.

        Args:
            url: SQLAlchemy URL of the physical database (default: config.database_url).
            config: Engine config (default: EngineConfig.from_env()).

        Returns:
            SqlEngine instance. The physical row table is created if missing.
        """
        config = config or EngineConfig.from_env()
        store = RowStore.open(url or config.database_url)
        return cls(store=store, config=config)

    def close(self) -> None:
        self.store.dispose()

    # ---------- execution ----------

    def execute(self, sql: str, owner_id: str, variables: Mapping[str, Any] | None = None) -> ExecutionResult:
        """
        Execute one or more `;`-separated statements for an owner.

        Args:
            sql: SQL text, possibly with {{name}} placeholders.
            owner_id: Owner whose tables the statements address.
            variables: Values for the placeholders.

        Returns:
            ExecutionResult. With several statements, the top-level fields describe
            the last statement and `statements` holds every statement's result. A
            failing statement stops the script; statements before it keep their effects.
        """
        results, _error = self._execute(sql, owner_id, variables)
        if len(results) == 1:
            return results[0]
        return replace(results[-1], statements=results)

    def execute_or_raise(
        self, sql: str, owner_id: str, variables: Mapping[str, Any] | None = None
    ) -> ExecutionResult:
        """
        Like execute(), but raise the error of a failing statement.

        Raises:
            TenantSQLError subclasses.
        """
        results, error = self._execute(sql, owner_id, variables)
        if error is not None:
            raise error
        if len(results) == 1:
            return results[0]
        return replace(results[-1], statements=results)

    def _execute(
        self, sql: str, owner_id: str, variables: Mapping[str, Any] | None
    ) -> tuple[list[ExecutionResult], TenantSQLError | None]:
        with use_locale(self.config.locale):
            try:
                statements = self._prepare(sql, owner_id, variables)
            except TenantSQLError as exc:
                logger.info("Rejected SQL for owner %s: %s", owner_id, exc)
                return [ExecutionResult.failure(str(exc), exc.kind)], exc
            except Exception as exc:
                logger.exception("Internal error preparing SQL for owner %s", owner_id)
                error = ExecutionError(t("internal_error", detail=str(exc)))
                return [ExecutionResult.failure(str(error), "internal")], error

            results: list[ExecutionResult] = []
            for stmt in statements:
                try:
                    result, truncated = self._run(stmt, owner_id, sql)
                except TenantSQLError as exc:
                    logger.info("%s failed for owner %s: %s", statement_label(stmt), owner_id, exc)
                    results.append(ExecutionResult.failure(str(exc), exc.kind))
                    return results, exc
                except Exception as exc:
                    logger.exception("Internal error executing %s for owner %s", statement_label(stmt), owner_id)
                    error = ExecutionError(t("internal_error", detail=str(exc)))
                    results.append(ExecutionResult.failure(str(error), "internal"))
                    return results, error
                results.append(ExecutionResult.from_statement(result, truncated=truncated))
            return results, None

    def _prepare(self, sql: str, owner_id: str, variables: Mapping[str, Any] | None) -> list[Statement]:
        """
        Resolve variables, parse, and gate every statement before any of them runs.

        Raises:
            TenantSQLError subclasses.
        """
        if not owner_id:
            raise ValidationError(t("owner_required"))
        if sql is None or not sql.strip():
            raise ValidationError(t("empty_sql"))
        if len(sql) > self.config.MAX_SQL_LENGTH:
            raise ResourceLimitError(t("sql_too_long", limit=self.config.MAX_SQL_LENGTH))

        statements = parse_script(resolve_variables(sql, variables))
        if not statements:
            raise ValidationError(t("empty_sql"))
        for stmt in statements:
            check_statement(stmt)
            check_limits(stmt, self.config)
        return statements

    def _lock_for(self, owner_id: str) -> "_OwnerLock":
        """
        Return the owner's lock. Registry entries are weak: an owner with no
        statement in flight has no entry.
        """
        with self._locks_guard:
            lock = self._locks.get(owner_id)
            if lock is None:
                lock = _OwnerLock()
                self._locks[owner_id] = lock
            return lock

    def _run(self, stmt: Statement, owner_id: str, sql: str) -> tuple[CommandOk | QueryResult, bool]:
        """
        Run one statement in its own transaction while holding the owner's lock.

        Returns:
            (executor result, whether the row guard truncated any row list)
        """
        label = statement_label(stmt)
        logger.debug("Executing %s for owner %s: %s", label, owner_id, _shorten(sql))
        started = time.perf_counter()
        with self._lock_for(owner_id), self.store.transaction() as conn:
            catalog = Catalog(store=self.store, conn=conn, owner_id=owner_id, config=self.config)
            ctx = QueryContext.for_statement(catalog, self.config)
            result = Executor(ctx).execute(stmt)
        elapsed = time.perf_counter() - started

        count = len(result.rows) if isinstance(result, QueryResult) else result.rows_affected
        logger.info("%s for owner %s completed in %.3fs (%d rows)", label, owner_id, elapsed, count)
        if elapsed > SLOW_STATEMENT_SECONDS:
            logger.warning("Slow %s for owner %s: %.3fs: %s", label, owner_id, elapsed, _shorten(sql))
        return result, ctx.state.truncated

    # ---------- introspection ----------

    def list_tables(self, owner_id: str) -> list[TableMeta]:
        """Return the owner's logical tables in creation order."""
        with self.store.transaction() as conn:
            return Catalog(store=self.store, conn=conn, owner_id=owner_id, config=self.config).list_tables()

    def describe_table(self, owner_id: str, name: str) -> TableMeta:
        """
        Return one logical table's metadata.

        Raises:
            NotFoundError: if the owner has no such table.
        """
        with use_locale(self.config.locale), self.store.transaction() as conn:
            return Catalog(store=self.store, conn=conn, owner_id=owner_id, config=self.config).require_table(name)
