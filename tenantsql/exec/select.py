"""
tenantsql/exec/select.py

Query evaluation (SELECT, set operations, WITH [RECURSIVE]).

Responsibilities:
- run_query(): evaluate a Query AST to a QueryResult, re-entrantly (subqueries,
  derived tables, CTE bodies and recursive CTE iterations all call back in)
- FROM: base tables (through the catalog and row store), CTEs, derived tables
- The SELECT pipeline: FROM/JOIN -> WHERE -> GROUP BY -> HAVING -> windows ->
  select list -> DISTINCT -> ORDER BY -> LIMIT/OFFSET
- UNION / INTERSECT / EXCEPT with and without ALL
- Recursive CTE fixpoint iteration over the previous iteration's rows

Design notes:
- Every nested evaluation gets its QueryContext and its enclosing environment
  passed explicitly; nothing is kept in module or call-stack state.
- Without ORDER BY rows keep insertion order, so LIMIT is deterministic.
"""

from __future__ import annotations

import logging
from collections import Counter
from functools import cmp_to_key
from typing import Any

from ..ast import (
    ArrayLiteral,
    BinaryOp,
    Case,
    Cast,
    ColumnRef,
    CommonTableExpr,
    DerivedTable,
    Exists,
    Expr,
    FuncCall,
    Literal,
    OrderItem,
    Query,
    Select,
    SelectItem,
    SetOperation,
    Star,
    SubqueryExpr,
    TableRef,
    WithClause,
    walk,
)
from ..catalog import TableMeta
from ..errors import ExecutionError, NotFoundError
from ..messages import t
from ..results import QueryResult
from .aggregates import contains_aggregate, iter_calls
from .context import QueryContext
from .expressions import (
    HIDDEN_COLUMNS,
    CombinedRow,
    Env,
    Evaluator,
    Layout,
    Probe,
    Relation,
    compare_keys,
    empty_env,
)
from .join import Predicate, cross_product, join_rows
from .values import row_key, to_bool, to_number
from .window import compute_windows

logger = logging.getLogger(__name__)

UNNAMED = "?column?"


def run_query(
    query: Query,
    ctx: QueryContext,
    outer: Env | None = None,
    probe: Probe | None = None,
) -> QueryResult:
    """
    Evaluate a query.

    Args:
        query: Select or SetOperation.
        ctx: Context of the enclosing statement/query.
        outer: Environment of the enclosing query's current row (subqueries).
        probe: Correlation probe of the subquery being evaluated.

    Returns:
        QueryResult with output column names and rows.
    """
    with_ = query.with_
    if with_ is not None:
        ctx = bind_ctes(with_, ctx, outer, probe)
    if isinstance(query, SetOperation):
        return _run_set_operation(query, ctx, outer, probe)
    if isinstance(query, Select):
        return _run_select(query, ctx, outer, probe)
    raise ExecutionError(f"Unsupported query: {type(query).__name__}")


# ---------- WITH ----------

def _references(query: Query, name: str) -> bool:
    lowered = name.lower()
    return any(
        isinstance(node, TableRef) and node.schema is None and node.name.lower() == lowered
        for node in walk(query)
    )


def _apply_cte_columns(cte: CommonTableExpr, columns: list[str]) -> list[str]:
    if not cte.columns:
        return list(columns)
    if len(cte.columns) > len(columns):
        raise ExecutionError(
            t("cte_columns", name=cte.name, actual=len(columns), expected=len(cte.columns))
        )
    return list(cte.columns) + list(columns[len(cte.columns):])


def bind_ctes(
    with_: WithClause,
    ctx: QueryContext,
    outer: Env | None = None,
    probe: Probe | None = None,
) -> QueryContext:
    """
    Evaluate each CTE in order and bind its result into a child context.

    Later CTEs (and the main statement) see every earlier one.
    """
    for cte in with_.ctes:
        if with_.recursive and _references(cte.query, cte.name):
            result = _recursive_cte(cte, ctx, outer, probe)
        else:
            body = run_query(cte.query, ctx, outer, probe)
            result = QueryResult(columns=_apply_cte_columns(cte, body.columns), rows=body.rows)
        ctx = ctx.with_cte(cte.name, result)
    return ctx


def _union_terms(query: Query) -> list[tuple[Query, bool]]:
    """Flatten `a UNION [ALL] b UNION [ALL] c` into [(a, True), (b, all), (c, all)]."""
    if (
        isinstance(query, SetOperation)
        and query.op == "UNION"
        and query.with_ is None
        and not query.order_by
        and query.limit is None
        and query.offset is None
    ):
        return _union_terms(query.left) + [(query.right, query.all)]
    return [(query, True)]


def _infer_columns(name: str, columns: list[str], recursive_terms: list[Query]) -> list[str]:
    """
    Name unnamed seed columns (`SELECT 1`) after the CTE columns the recursive
    term reads (`SELECT n + 1 FROM numbers`).
    """
    if UNNAMED not in columns:
        return columns
    lowered = name.lower()
    aliases = {lowered}
    for query in recursive_terms:
        for node in walk(query):
            if isinstance(node, TableRef) and node.name.lower() == lowered and node.alias:
                aliases.add(node.alias.lower())
    candidates: list[str] = []
    for query in recursive_terms:
        for node in walk(query):
            if (
                isinstance(node, ColumnRef)
                and (node.table is None or node.table.lower() in aliases)
                and node.column not in columns
                and node.column not in candidates
            ):
                candidates.append(node.column)
    remaining = iter(candidates)
    return [next(remaining, c) if c == UNNAMED else c for c in columns]


def _recursive_cte(
    cte: CommonTableExpr,
    ctx: QueryContext,
    outer: Env | None,
    probe: Probe | None,
) -> QueryResult:
    """
    Fixpoint evaluation of WITH RECURSIVE.

    The seed terms run once; each iteration runs the recursive terms with the CTE
    name bound to the rows produced by the previous iteration only. UNION (without
    ALL) drops rows already produced. Iteration stops when an iteration adds no
    rows, after MAX_CTE_ITERATIONS iterations, or when the row guard is reached.
    """
    terms = _union_terms(cte.query)
    seeds = [q for q, _all in terms if not _references(q, cte.name)]
    recursive = [q for q, _all in terms if _references(q, cte.name)]
    if not seeds:
        raise ExecutionError(t("invalid_argument", name=f"WITH RECURSIVE {cte.name}", value="no non-recursive term"))
    dedupe = any(not all_ for _q, all_ in terms[1:])

    seen: set[tuple[Any, ...]] = set()

    def fresh(rows: list[list[Any]]) -> list[list[Any]]:
        if not dedupe:
            return list(rows)
        out = []
        for row in rows:
            key = row_key(row)
            if key not in seen:
                seen.add(key)
                out.append(row)
        return out

    first = run_query(seeds[0], ctx, outer, probe)
    columns = first.columns
    accumulated: list[list[Any]] = fresh(first.rows)
    for seed in seeds[1:]:
        result = run_query(seed, ctx, outer, probe)
        if len(result.columns) != len(columns):
            raise ExecutionError(t("set_op_columns", op="UNION"))
        accumulated.extend(fresh(result.rows))
    columns = _apply_cte_columns(cte, _infer_columns(cte.name, columns, recursive))

    limit = ctx.config.MAX_RESULT_ROWS
    working = list(accumulated)
    iteration = 0
    while working:
        if iteration >= ctx.config.MAX_CTE_ITERATIONS:
            logger.warning(
                "Recursive CTE %s stopped after %d iterations for owner %s (MAX_CTE_ITERATIONS)",
                cte.name, iteration, ctx.owner_id,
            )
            break
        iteration += 1
        child = ctx.with_cte(cte.name, QueryResult(columns=columns, rows=working))
        produced: list[list[Any]] = []
        for term in recursive:
            result = run_query(term, child, outer, probe)
            if len(result.columns) != len(columns):
                raise ExecutionError(t("set_op_columns", op="UNION"))
            produced.extend(fresh(result.rows))
        accumulated.extend(produced)
        if len(accumulated) > limit:
            break
        working = produced

    return QueryResult(columns=columns, rows=ctx.guard(accumulated, f"recursive CTE {cte.name}"))


# ---------- FROM ----------

def _keyed(key: str, columns: list[str], values: list[Any]) -> CombinedRow:
    row: CombinedRow = {}
    for name, value in zip(columns, values):
        if (key, name) not in row:
            row[(key, name)] = value
    return row


def _distinct_names(columns: list[str]) -> list[str]:
    out: list[str] = []
    for c in columns:
        if c not in out:
            out.append(c)
    return out


def table_relation(table: TableMeta, alias: str | None = None) -> Relation:
    return Relation(alias=alias or table.display_name, columns=table.column_names(), hidden=HIDDEN_COLUMNS)


def table_rows(ctx: QueryContext, table: TableMeta, relation: Relation) -> list[CombinedRow]:
    """Current rows of a base table as combined rows (with `_id` and `_createdAt`)."""
    key = relation.key
    names = table.column_names()
    out: list[CombinedRow] = []
    for stored in ctx.scan(table):
        row: CombinedRow = {(key, c): stored.data.get(c) for c in names}
        row[(key, "_id")] = stored.id
        row[(key, "_createdAt")] = stored.created_at_text
        out.append(row)
    return out


def load_source(
    source: TableRef | DerivedTable,
    ctx: QueryContext,
    outer: Env | None,
    probe: Probe | None,
) -> tuple[Relation, list[CombinedRow]]:
    """
    Materialize one FROM item.

    Raises:
        NotFoundError: if a table reference is neither a CTE nor an existing table.
    """
    if isinstance(source, DerivedTable):
        result = run_query(source.query, ctx, outer, probe)
        columns = list(source.column_aliases) + list(result.columns[len(source.column_aliases):])
        relation = Relation(alias=source.alias, columns=_distinct_names(columns))
        return relation, [_keyed(relation.key, columns, r) for r in result.rows]

    if source.schema is None:
        cte = ctx.lookup_cte(source.name)
        if cte is not None:
            relation = Relation(alias=source.alias or source.name, columns=_distinct_names(cte.columns))
            return relation, [_keyed(relation.key, cte.columns, r) for r in cte.rows]

    name = source.name if source.schema is None else f"{source.schema}.{source.name}"
    table = ctx.catalog.require_table(name)
    relation = table_relation(table, source.alias or source.name)
    return relation, table_rows(ctx, table, relation)


def _conjuncts(expr: Expr | None) -> list[Expr]:
    """Split `a AND b AND c` into [a, b, c]."""
    if expr is None:
        return []
    if isinstance(expr, BinaryOp) and expr.op == "AND":
        return _conjuncts(expr.left) + _conjuncts(expr.right)
    return [expr]


def _decidable(conjunct: Expr, layout: Layout, full: Layout) -> bool:
    """
    True when `conjunct` can be evaluated on rows of `layout` with the same result
    as on rows of the complete FROM clause: no subqueries, aggregates or window
    calls, and every column resolves to the same relation in both layouts.
    """
    if contains_aggregate(conjunct):
        return False
    for node in walk(conjunct):
        if isinstance(node, Query) or _is_window_call(node):
            return False
        if isinstance(node, ColumnRef):
            key = layout.resolve(node.table, node.column)
            if key is None or key != full.resolve(node.table, node.column):
                return False
    return True


def _from_clause(
    select: Select,
    ctx: QueryContext,
    evaluator: Evaluator,
    outer: Env | None,
    probe: Probe | None,
) -> tuple[Layout, list[CombinedRow], list[Expr]]:
    """
    Evaluate FROM and JOIN.

    WHERE conjuncts that only read the relations combined so far are applied while
    comma-separated items and INNER/CROSS joins are combined, so intermediate row
    lists hold qualifying rows only. This stops at the first outer join, and is
    disabled when a RIGHT or FULL join follows.

    Returns:
        (layout, rows, WHERE conjuncts still to apply)
    """
    pending = _conjuncts(select.where)
    if not select.from_:
        return Layout(), [{}], pending

    sources = [load_source(source, ctx, outer, probe) for source in select.from_]
    joined = [load_source(join.source, ctx, outer, probe) for join in select.joins]
    full = Layout([relation for relation, _rows in sources + joined])
    early = not any(join.kind in ("RIGHT", "FULL") for join in select.joins)

    def take(layout: Layout) -> Predicate | None:
        nonlocal pending
        if not early:
            return None
        ready = [c for c in pending if _decidable(c, layout, full)]
        if not ready:
            return None
        pending = [c for c in pending if not any(c is r for r in ready)]

        def keep(row: CombinedRow) -> bool:
            env = Env(layout=layout, row=row, outer=outer, probe=probe)
            return all(to_bool(evaluator.eval(c, env)) is True for c in ready)

        return keep

    relation, rows = sources[0]
    layout = Layout([relation])
    keep = take(layout)
    if keep is not None:
        rows = [row for row in rows if keep(row)]
    for relation, source_rows in sources[1:]:
        layout = layout.extend(relation)
        rows = cross_product(ctx, rows, source_rows, take(layout))

    for join, (relation, source_rows) in zip(select.joins, joined):
        if join.kind not in ("INNER", "CROSS"):
            early = False
        layout, rows = join_rows(
            ctx=ctx,
            evaluator=evaluator,
            left_layout=layout,
            left_rows=rows,
            right=relation,
            right_rows=source_rows,
            join=join,
            outer=outer,
            probe=probe,
            keep=take(layout.extend(relation)),
        )
    return layout, rows, pending


# ---------- select list ----------

def output_name(item: SelectItem, layout: Layout) -> str:
    """Output column name of a select-list item."""
    if item.alias:
        return item.alias
    return _expr_name(item.expr, layout)


def _expr_name(expr: Expr, layout: Layout) -> str:
    if isinstance(expr, ColumnRef):
        key = layout.resolve(expr.table, expr.column)
        return key[1] if key is not None else expr.column
    if isinstance(expr, FuncCall):
        if expr.name == "INTERVAL":
            return "interval"
        return expr.name.lower()
    if isinstance(expr, Cast):
        inner = _expr_name(expr.operand, layout)
        return inner if inner != UNNAMED else expr.typ.name.lower()
    if isinstance(expr, Case):
        return "case"
    if isinstance(expr, Exists):
        return "exists"
    if isinstance(expr, ArrayLiteral):
        return "array"
    if isinstance(expr, SubqueryExpr) and isinstance(expr.query, Select) and expr.query.items:
        first = expr.query.items[0]
        if not isinstance(first.expr, Star):
            return output_name(first, Layout())
    return UNNAMED


def project(
    items: list[SelectItem],
    envs: list[Env],
    layout: Layout,
    evaluator: Evaluator,
) -> tuple[list[str], list[list[Any]]]:
    """
    Evaluate a select list (or RETURNING list) for every environment.

    Raises:
        NotFoundError: for `alias.*` with an unknown alias.
    """
    columns: list[str] = []
    outputs: list[tuple[str, Any]] = []
    for item in items:
        if isinstance(item.expr, Star):
            if item.expr.table is None:
                relations = layout.relations
            else:
                relation = layout.relation(item.expr.table)
                if relation is None:
                    raise NotFoundError(t("table_not_found", table=item.expr.table))
                relations = [relation]
            for relation in relations:
                for column in relation.star_columns():
                    columns.append(column)
                    outputs.append(("key", (relation.key, column)))
        else:
            columns.append(output_name(item, layout))
            outputs.append(("expr", item.expr))

    rows: list[list[Any]] = []
    for env in envs:
        values: list[Any] = []
        for kind, target in outputs:
            if kind == "key":
                values.append(env.row.get(target))
            else:
                values.append(evaluator.eval(target, env))
        rows.append(values)
    return columns, rows


# ---------- grouping ----------

def _position(expr: Expr) -> int | None:
    if isinstance(expr, Literal) and isinstance(expr.value, int) and not isinstance(expr.value, bool):
        return expr.value
    return None


def _group_expr(expr: Expr, items: list[SelectItem], layout: Layout) -> Expr:
    """GROUP BY 2 / GROUP BY alias refer to select-list items."""
    position = _position(expr)
    if position is not None:
        if not 1 <= position <= len(items) or isinstance(items[position - 1].expr, Star):
            raise ExecutionError(t("group_position", position=position))
        return items[position - 1].expr
    if isinstance(expr, ColumnRef) and expr.table is None and layout.resolve(None, expr.column) is None:
        for item in items:
            if item.alias and item.alias.lower() == expr.column.lower():
                return item.expr
    return expr


def _group(
    select: Select,
    layout: Layout,
    rows: list[CombinedRow],
    evaluator: Evaluator,
    outer: Env | None,
    probe: Probe | None,
) -> list[Env]:
    """Partition rows into groups; NULL keys group together. No GROUP BY means one group."""
    groups: dict[tuple[Any, ...], list[CombinedRow]] = {}
    if select.group_by:
        exprs = [_group_expr(g, select.items, layout) for g in select.group_by]
        for row in rows:
            env = Env(layout=layout, row=row, outer=outer, probe=probe)
            key = row_key([evaluator.eval(e, env) for e in exprs])
            groups.setdefault(key, []).append(row)
    else:
        groups[()] = rows
    return [
        Env(layout=layout, row=members[0] if members else {}, outer=outer, probe=probe, group=members)
        for members in groups.values()
    ]


# ---------- ordering / slicing ----------

def _output_index(columns: list[str], name: str) -> int | None:
    for i, c in enumerate(columns):
        if c == name:
            return i
    lowered = name.lower()
    for i, c in enumerate(columns):
        if c.lower() == lowered:
            return i
    return None


def order_pairs(
    pairs: list[tuple[Env, list[Any]]],
    order_by: list[OrderItem],
    columns: list[str],
    evaluator: Evaluator,
) -> list[tuple[Env, list[Any]]]:
    """
    Stable sort of (environment, output row) pairs.

    An ORDER BY key is a select-list position, an output column name, or an
    expression over the query's input columns.
    """
    for item in order_by:
        position = _position(item.expr)
        if position is not None and not 1 <= position <= len(columns):
            raise ExecutionError(t("order_position", position=position))

    def keys_of(env: Env, values: list[Any]) -> list[Any]:
        keys: list[Any] = []
        for item in order_by:
            position = _position(item.expr)
            if position is not None:
                keys.append(values[position - 1])
                continue
            if isinstance(item.expr, ColumnRef) and item.expr.table is None:
                index = _output_index(columns, item.expr.column)
                if index is not None:
                    keys.append(values[index])
                    continue
            keys.append(evaluator.eval(item.expr, env))
        return keys

    keyed = [(keys_of(env, values), env, values) for env, values in pairs]
    keyed.sort(key=cmp_to_key(lambda a, b: compare_keys(a[0], b[0], order_by)))
    return [(env, values) for _keys, env, values in keyed]


def _count(expr: Expr | None, evaluator: Evaluator, outer: Env | None, probe: Probe | None, what: str) -> int | None:
    if expr is None:
        return None
    value = to_number(evaluator.eval(expr, empty_env(outer, probe)))
    if value is None:
        return None
    if value < 0:
        raise ExecutionError(t("invalid_argument", name=what, value=value))
    return int(value)


def slice_pairs(
    pairs: list[Any],
    limit: Expr | None,
    offset: Expr | None,
    evaluator: Evaluator,
    outer: Env | None,
    probe: Probe | None,
) -> list[Any]:
    start = _count(offset, evaluator, outer, probe, "OFFSET") or 0
    count = _count(limit, evaluator, outer, probe, "LIMIT")
    if count is None:
        return pairs[start:]
    return pairs[start:start + count]


def _distinct(pairs: list[tuple[Env, list[Any]]]) -> list[tuple[Env, list[Any]]]:
    seen: set[tuple[Any, ...]] = set()
    out = []
    for env, values in pairs:
        key = row_key(values)
        if key not in seen:
            seen.add(key)
            out.append((env, values))
    return out


# ---------- SELECT ----------

def _is_window_call(node: Any) -> bool:
    return isinstance(node, FuncCall) and node.over is not None


def _run_select(select: Select, ctx: QueryContext, outer: Env | None, probe: Probe | None) -> QueryResult:
    evaluator = Evaluator(ctx)
    layout, rows, where = _from_clause(select, ctx, evaluator, outer, probe)

    if where:
        def passes(row: CombinedRow) -> bool:
            env = Env(layout=layout, row=row, outer=outer, probe=probe)
            return all(to_bool(evaluator.eval(c, env)) is True for c in where)

        rows = [row for row in rows if passes(row)]

    aggregated = (
        bool(select.group_by)
        or select.having is not None
        or any(contains_aggregate(item.expr) for item in select.items)
        or any(contains_aggregate(o.expr) for o in select.order_by)
    )
    if aggregated:
        envs = _group(select, layout, rows, evaluator, outer, probe)
    else:
        envs = [Env(layout=layout, row=row, outer=outer, probe=probe) for row in rows]

    if select.having is not None:
        having = select.having
        envs = [env for env in envs if to_bool(evaluator.eval(having, env)) is True]

    window_calls: list[FuncCall] = []
    for node in [item.expr for item in select.items] + [o.expr for o in select.order_by]:
        window_calls.extend(iter_calls(node, _is_window_call))
    if window_calls:
        compute_windows(envs, window_calls, evaluator)

    columns, outputs = project(select.items, envs, layout, evaluator)
    pairs = list(zip(envs, outputs))

    if select.distinct:
        pairs = _distinct(pairs)
    if select.order_by:
        pairs = order_pairs(pairs, select.order_by, columns, evaluator)
    pairs = slice_pairs(pairs, select.limit, select.offset, evaluator, outer, probe)

    return QueryResult(columns=columns, rows=ctx.guard([values for _env, values in pairs], "query"))


# ---------- set operations ----------

def _combine_sets(op: SetOperation, left: list[list[Any]], right: list[list[Any]]) -> list[list[Any]]:
    if op.op == "UNION":
        rows = left + right
        if op.all:
            return rows
        seen: set[tuple[Any, ...]] = set()
        out = []
        for row in rows:
            key = row_key(row)
            if key not in seen:
                seen.add(key)
                out.append(row)
        return out

    right_counts = Counter(row_key(row) for row in right)
    out = []
    if op.all:
        for row in left:
            key = row_key(row)
            present = right_counts[key] > 0
            if present:
                right_counts[key] -= 1
            if present == (op.op == "INTERSECT"):
                out.append(row)
        return out

    emitted: set[tuple[Any, ...]] = set()
    for row in left:
        key = row_key(row)
        if key in emitted:
            continue
        if (key in right_counts) == (op.op == "INTERSECT"):
            emitted.add(key)
            out.append(row)
    return out


def _run_set_operation(op: SetOperation, ctx: QueryContext, outer: Env | None, probe: Probe | None) -> QueryResult:
    left = run_query(op.left, ctx, outer, probe)
    right = run_query(op.right, ctx, outer, probe)
    if len(left.columns) != len(right.columns):
        raise ExecutionError(t("set_op_columns", op=op.op))

    rows = _combine_sets(op, left.rows, right.rows)
    columns = list(left.columns)

    if op.order_by or op.limit is not None or op.offset is not None:
        evaluator = Evaluator(ctx)
        relation = Relation(alias="", columns=_distinct_names(columns))
        layout = Layout([relation])
        pairs = [
            (Env(layout=layout, row=_keyed("", columns, row), outer=outer, probe=probe), row)
            for row in rows
        ]
        if op.order_by:
            pairs = order_pairs(pairs, op.order_by, columns, evaluator)
        pairs = slice_pairs(pairs, op.limit, op.offset, evaluator, outer, probe)
        rows = [row for _env, row in pairs]

    return QueryResult(columns=columns, rows=ctx.guard(rows, op.op))
