"""
tenantsql/exec/executor.py

Statement execution for tenantsql.

Responsibilities:
- Execute AST statements produced by the parser:
    - DDL: CREATE TABLE, DROP TABLE, ALTER TABLE (ADD/DROP/RENAME COLUMN, RENAME TO)
    - DML: INSERT (VALUES, SELECT, DEFAULT VALUES), UPDATE, DELETE, all with RETURNING
    - Queries: delegated to tenantsql/exec/select.py
- Apply column defaults and write-time type coercion
- Enforce NOT NULL and UNIQUE / PRIMARY KEY constraints

Core design:
- Logical tables live in the owner's catalog; rows live in the row store.
- One Executor runs one statement, inside the transaction of its QueryContext's
  catalog connection.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from typing import Any

from ..ast import (
    AddColumn,
    AlterTable,
    ColumnDef,
    CreateTable,
    Delete,
    DropColumn,
    DropTable,
    Expr,
    FuncCall,
    Insert,
    Query,
    RenameColumn,
    RenameTable,
    SelectItem,
    Statement,
    TableRef,
    Update,
    WithClause,
)
from ..catalog import (
    Catalog,
    ColumnMeta,
    TableMeta,
    coerce_value,
    column_meta_from_def,
    display_value,
)
from ..errors import NotFoundError, NotSupportedError, ValidationError
from ..messages import t
from ..results import CommandOk, QueryResult
from ..safety import statement_label
from ..storage.rowstore import StoredRow
from .context import QueryContext
from .expressions import CombinedRow, Env, Evaluator, Layout, empty_env
from .select import bind_ctes, project, run_query, table_relation, table_rows
from .values import hashable, is_number, to_bool

logger = logging.getLogger(__name__)

# Defaults evaluated per inserted row instead of once at CREATE TABLE.
DYNAMIC_DEFAULTS = {
    "NOW", "CURRENT_TIMESTAMP", "CURRENT_DATE", "CURRENT_TIME", "LOCALTIMESTAMP", "LOCALTIME",
    "GEN_RANDOM_UUID", "UUID_GENERATE_V4", "RANDOM",
}
SERIAL_TYPES = {"SERIAL", "BIGSERIAL", "SMALLSERIAL"}
NEXTVAL = "NEXTVAL"

_DEFAULT = object()


def _is_default(expr: Expr) -> bool:
    return isinstance(expr, FuncCall) and expr.name == "DEFAULT" and not expr.args


def _table_name(ref: TableRef) -> str:
    return ref.name if ref.schema is None else f"{ref.schema}.{ref.name}"


@dataclass
class Executor:
    """
    Executes parsed AST statements for one owner.

    Args:
        ctx: Statement context (owner, catalog bound to the statement's transaction, limits).
    """
    ctx: QueryContext

    @property
    def catalog(self) -> Catalog:
        return self.ctx.catalog

    # --------------------------
    # public entry point
    # --------------------------

    def execute(self, stmt: Statement) -> CommandOk | QueryResult:
        """
        Execute a single statement.

        Args:
            stmt: AST statement (already accepted by the safety gate).

        Returns:
            CommandOk for DDL/DML or QueryResult for queries.

        Raises:
            TenantSQLError subclasses on failure.
        """
        if isinstance(stmt, CreateTable):
            return self._create_table(stmt)
        if isinstance(stmt, DropTable):
            return self._drop_table(stmt)
        if isinstance(stmt, AlterTable):
            return self._alter_table(stmt)
        if isinstance(stmt, Insert):
            return self._insert(stmt)
        if isinstance(stmt, Update):
            return self._update(stmt)
        if isinstance(stmt, Delete):
            return self._delete(stmt)
        if isinstance(stmt, Query):
            return run_query(stmt, self.ctx)

        raise NotSupportedError(t("not_supported", operation=statement_label(stmt)))

    # --------------------------
    # defaults
    # --------------------------

    def _prepare_default(self, col: ColumnDef, table_name: str) -> dict[str, Any] | None:
        """
        Turn a DEFAULT clause into its stored form.

        Returns:
            {"function": NAME} for per-row defaults (NOW(), CURRENT_DATE, SERIAL, ...),
            {"value": v} for constant defaults, or None.
        """
        if col.default is None:
            if col.typ.name in SERIAL_TYPES and not col.typ.array:
                return {"function": NEXTVAL}
            return None
        default = col.default
        if isinstance(default, FuncCall) and not default.args and default.name in DYNAMIC_DEFAULTS:
            return {"function": default.name}
        value = Evaluator(self.ctx).eval(default, empty_env())
        meta = column_meta_from_def(col, None)
        stub = TableMeta(name=table_name.lower(), display_name=table_name)
        return {"value": coerce_value(stub, meta, value)}

    def _default_value(
        self,
        table: TableMeta,
        col: ColumnMeta,
        existing: list[StoredRow],
        batch: list[dict[str, Any]],
    ) -> Any:
        default = col.default
        if not default:
            return None
        if "value" in default:
            return copy.deepcopy(default["value"])
        name = default.get("function")
        if name == NEXTVAL:
            values = [r.data.get(col.name) for r in existing] + [d.get(col.name) for d in batch]
            numbers = [v for v in values if is_number(v)]
            return int(max(numbers, default=0)) + 1
        value = Evaluator(self.ctx).eval(FuncCall(name=name), empty_env())
        return coerce_value(table, col, value)

    # --------------------------
    # constraints
    # --------------------------

    def _enforce_constraints_batch(
        self,
        table: TableMeta,
        existing_rows: list[StoredRow],
        new_docs: list[dict[str, Any]],
        exclude_ids: set[str],
    ) -> None:
        """
        Enforce NOT NULL / PRIMARY KEY / UNIQUE constraints for a batch of row documents.

        This is used for:
        - INSERT (exclude_ids empty)
        - UPDATE (exclude_ids are the ids of the rows being replaced)

        Raises:
            ValidationError if a constraint is violated.
        """
        for doc in new_docs:
            for c in table.columns:
                if (c.not_null or c.primary_key) and doc.get(c.name) is None:
                    raise ValidationError(t("not_null", column=c.name, table=table.display_name))

        kept = [r for r in existing_rows if r.id not in exclude_ids]
        for c in table.columns:
            if not (c.unique or c.primary_key):
                continue
            existing_vals = {hashable(r.data.get(c.name)) for r in kept if r.data.get(c.name) is not None}
            seen_new: set[Any] = set()
            for doc in new_docs:
                v = doc.get(c.name)
                if v is None:
                    continue
                key = hashable(v)
                if key in existing_vals or key in seen_new:
                    raise ValidationError(
                        t("unique", value=display_value(v), column=c.name, table=table.display_name)
                    )
                seen_new.add(key)

    # --------------------------
    # DDL
    # --------------------------

    def _create_table(self, stmt: CreateTable) -> CommandOk:
        """
        CREATE TABLE execution.

        Single-column PRIMARY KEY / UNIQUE table constraints behave like the column
        constraints; a composite PRIMARY KEY makes its columns NOT NULL.
        """
        name = stmt.table_name
        if stmt.if_not_exists and self.catalog.get_table(name) is not None:
            return CommandOk(message=t("table_create_skipped", table=name))

        columns = [column_meta_from_def(c, self._prepare_default(c, name)) for c in stmt.columns]
        by_name = {c.name.lower(): c for c in columns}
        for constraint in stmt.constraints:
            targets = []
            for col_name in constraint.columns:
                meta = by_name.get(col_name.lower())
                if meta is None:
                    raise NotFoundError(t("column_not_found", column=col_name, table=name))
                targets.append(meta)
            for meta in targets:
                if constraint.kind == "PRIMARY KEY":
                    meta.not_null = True
                if len(targets) == 1:
                    meta.unique = True
                    meta.primary_key = meta.primary_key or constraint.kind == "PRIMARY KEY"

        self.catalog.create_table(name, columns)
        return CommandOk(message=t("table_created", table=name))

    def _drop_table(self, stmt: DropTable) -> CommandOk:
        messages = []
        for name in stmt.table_names:
            if stmt.if_exists and self.catalog.get_table(name) is None:
                messages.append(t("table_drop_skipped", table=name))
                continue
            self.catalog.drop_table(name)
            messages.append(t("table_dropped", table=name))
        self.ctx.state.scans.clear()
        return CommandOk(message="; ".join(messages))

    def _alter_table(self, stmt: AlterTable) -> CommandOk:
        table = self.catalog.require_table(stmt.table_name)
        for action in stmt.actions:
            if isinstance(action, AddColumn):
                if action.if_not_exists and table.get_column(action.column.name) is not None:
                    continue
                meta = column_meta_from_def(action.column, self._prepare_default(action.column, table.display_name))
                fill = None
                if meta.default and meta.default.get("function") not in (None, NEXTVAL):
                    fill = self._default_value(table, meta, [], [])
                elif meta.default and "value" in meta.default:
                    fill = meta.default["value"]
                if meta.not_null and fill is None and self.ctx.scan(table):
                    raise ValidationError(t("not_null", column=meta.name, table=table.display_name))
                self.catalog.add_column(table, meta, fill)
            elif isinstance(action, DropColumn):
                if action.if_exists and table.get_column(action.name) is None:
                    continue
                self.catalog.drop_column(table, action.name)
            elif isinstance(action, RenameColumn):
                self.catalog.rename_column(table, action.old, action.new)
            elif isinstance(action, RenameTable):
                table = self.catalog.rename_table(table, action.new)
            self.ctx.state.scans.clear()
        return CommandOk(message=t("table_altered", table=stmt.table_name))

    # --------------------------
    # DML
    # --------------------------

    def _statement_ctx(self, with_: WithClause | None) -> QueryContext:
        return self.ctx if with_ is None else bind_ctes(with_, self.ctx)

    def _returning(
        self,
        ctx: QueryContext,
        items: list[SelectItem],
        table: TableMeta,
        alias: str | None,
        rows: list[CombinedRow],
    ) -> tuple[list[str] | None, list[list[Any]] | None]:
        if not items:
            return None, None
        layout = Layout([table_relation(table, alias)])
        envs = [Env(layout=layout, row=row) for row in rows]
        return project(items, envs, layout, Evaluator(ctx))

    @staticmethod
    def _combined(table: TableMeta, key: str, row_id: str, created_at: str, doc: dict[str, Any]) -> CombinedRow:
        row: CombinedRow = {(key, c): doc.get(c) for c in table.column_names()}
        row[(key, "_id")] = row_id
        row[(key, "_createdAt")] = created_at
        return row

    def _insert(self, stmt: Insert) -> CommandOk:
        """
        INSERT execution.

        Values map to the listed columns, or positionally to the table's columns;
        omitted columns get their DEFAULT (or NULL).
        """
        ctx = self._statement_ctx(stmt.with_)
        evaluator = Evaluator(ctx)
        table = ctx.catalog.require_table(_table_name(stmt.table))
        targets = [table.require_column(c) for c in stmt.columns] if stmt.columns else list(table.columns)

        source: list[list[Any]] = []
        if stmt.query is not None:
            result = run_query(stmt.query, ctx)
            width = len(result.columns)
            if width > len(targets):
                raise ValidationError(t("too_many_values"))
            if stmt.columns and width != len(targets):
                raise ValidationError(t("column_count_mismatch", columns=len(targets), values=width))
            source = [list(r) for r in result.rows]
        else:
            for exprs in stmt.rows or []:
                if len(exprs) > len(targets):
                    raise ValidationError(t("too_many_values"))
                if stmt.columns and exprs and len(exprs) != len(targets):
                    raise ValidationError(t("column_count_mismatch", columns=len(targets), values=len(exprs)))
                env = empty_env()
                source.append([_DEFAULT if _is_default(e) else evaluator.eval(e, env) for e in exprs])

        existing = ctx.scan(table)
        docs: list[dict[str, Any]] = []
        for values in source:
            provided = {col.name: v for col, v in zip(targets, values)}
            doc: dict[str, Any] = {}
            for col in table.columns:
                value = provided.get(col.name, _DEFAULT)
                if value is _DEFAULT:
                    doc[col.name] = self._default_value(table, col, existing, docs)
                else:
                    doc[col.name] = coerce_value(table, col, value)
            docs.append(doc)

        self._enforce_constraints_batch(table, existing, docs, exclude_ids=set())
        stored = ctx.catalog.store.insert_rows(ctx.catalog.conn, ctx.owner_id, table.name, docs)
        ctx.forget_scan(table)

        alias = stmt.table.alias or stmt.table.name
        key = alias.lower()
        combined = [self._combined(table, key, r.id, r.created_at_text, r.data) for r in stored]
        columns, rows = self._returning(ctx, stmt.returning, table, alias, combined)
        logger.debug("Inserted %d row(s) into %s for owner %s", len(stored), table.name, ctx.owner_id)
        return CommandOk(rows_affected=len(stored), message=f"INSERT 0 {len(stored)}", columns=columns, rows=rows)

    def _matching(self, ctx: QueryContext, table: TableMeta, ref: TableRef, where: Expr | None):
        """Yield (stored row, combined row, env) for every row matching WHERE (all rows without WHERE)."""
        evaluator = Evaluator(ctx)
        relation = table_relation(table, ref.alias or ref.name)
        layout = Layout([relation])
        for stored, row in zip(ctx.scan(table), table_rows(ctx, table, relation)):
            env = Env(layout=layout, row=row)
            if where is None or to_bool(evaluator.eval(where, env)) is True:
                yield stored, row, env

    def _update(self, stmt: Update) -> CommandOk:
        """
        UPDATE execution.

        SET expressions see the row's values before the update; only the assigned
        fields change in the stored document.
        """
        ctx = self._statement_ctx(stmt.with_)
        evaluator = Evaluator(ctx)
        table = ctx.catalog.require_table(_table_name(stmt.table))
        assigned = [(table.require_column(a.column), a.value) for a in stmt.assignments]
        existing = ctx.scan(table)

        changes: list[tuple[str, dict[str, Any]]] = []
        new_docs: list[dict[str, Any]] = []
        updated: list[StoredRow] = []
        for stored, _row, env in list(self._matching(ctx, table, stmt.table, stmt.where)):
            fields: dict[str, Any] = {}
            for col, expr in assigned:
                if _is_default(expr):
                    fields[col.name] = self._default_value(table, col, existing, new_docs)
                else:
                    fields[col.name] = coerce_value(table, col, evaluator.eval(expr, env))
            changes.append((stored.id, fields))
            new_docs.append({**stored.data, **fields})
            updated.append(stored)

        self._enforce_constraints_batch(table, existing, new_docs, exclude_ids={r.id for r in updated})
        if changes:
            ctx.catalog.store.update_row_data(ctx.catalog.conn, ctx.owner_id, table.name, changes)
            ctx.forget_scan(table)

        alias = stmt.table.alias or stmt.table.name
        key = alias.lower()
        combined = [
            self._combined(table, key, r.id, r.created_at_text, doc) for r, doc in zip(updated, new_docs)
        ]
        columns, rows = self._returning(ctx, stmt.returning, table, alias, combined)
        return CommandOk(rows_affected=len(changes), message=f"UPDATE {len(changes)}", columns=columns, rows=rows)

    def _delete(self, stmt: Delete) -> CommandOk:
        """DELETE execution; RETURNING sees the deleted rows."""
        ctx = self._statement_ctx(stmt.with_)
        table = ctx.catalog.require_table(_table_name(stmt.table))
        matched = list(self._matching(ctx, table, stmt.table, stmt.where))

        if matched:
            ids = [stored.id for stored, _row, _env in matched]
            ctx.catalog.store.delete_rows(ctx.catalog.conn, ctx.owner_id, table.name, ids)
            ctx.forget_scan(table)

        alias = stmt.table.alias or stmt.table.name
        columns, rows = self._returning(ctx, stmt.returning, table, alias, [row for _s, row, _e in matched])
        return CommandOk(rows_affected=len(matched), message=f"DELETE {len(matched)}", columns=columns, rows=rows)
