"""
tenantsql/exec/join.py

JOIN execution.

Responsibilities:
- Implement INNER, LEFT, RIGHT, FULL and CROSS joins as nested loops
- Produce combined rows keyed by (relation key, column) tuples
- Build the USING equality and hide the right-hand USING columns from `*`

Join methods:
- Nested-loop join only: every left row is tested against every right row.

Design notes:
- The NULL side of an outer join simply has no keys in the combined row;
  lookups of missing keys read as NULL.
- LEFT and FULL joins emit rows in left-row order; RIGHT joins in right-row order.
  FULL joins append unmatched right rows after all left rows.
- Intermediate rows are never truncated: the row guard (MAX_RESULT_ROWS) only cuts
  query results. A join step producing more than MAX_JOIN_ROWS rows fails with
  ResourceLimitError instead.
- `keep` is a row filter built from WHERE conjuncts that only read the relations
  joined so far; it is applied while rows are combined (CROSS/INNER steps only).
"""

from __future__ import annotations

from dataclasses import replace
from typing import Callable

from ..ast import Join
from ..errors import NotFoundError, ResourceLimitError
from ..messages import t
from .context import QueryContext
from .expressions import CombinedRow, Env, Evaluator, Layout, Probe, Relation
from .values import sql_equals, to_bool

Predicate = Callable[[CombinedRow], bool]


def _combine(left: CombinedRow, right: CombinedRow) -> CombinedRow:
    combined = dict(left)
    combined.update(right)
    return combined


def _using_predicate(left_layout: Layout, right: Relation, columns: list[str]) -> Predicate:
    pairs: list[tuple[tuple[str, str] | None, tuple[str, str] | None]] = []
    for name in columns:
        left_key = left_layout.resolve(None, name)
        right_name = right.find(name)
        if left_key is None or right_name is None:
            raise NotFoundError(t("column_not_found", column=name, table=right.alias))
        pairs.append((left_key, (right.key, right_name)))

    def matches(row: CombinedRow) -> bool:
        return all(sql_equals(row.get(lk), row.get(rk)) is True for lk, rk in pairs)

    return matches


def _check_size(ctx: QueryContext, out: list[CombinedRow]) -> None:
    limit = ctx.config.MAX_JOIN_ROWS
    if len(out) > limit:
        raise ResourceLimitError(t("join_rows", limit=limit))


def join_rows(
    *,
    ctx: QueryContext,
    evaluator: Evaluator,
    left_layout: Layout,
    left_rows: list[CombinedRow],
    right: Relation,
    right_rows: list[CombinedRow],
    join: Join,
    outer: Env | None = None,
    probe: Probe | None = None,
    keep: Predicate | None = None,
) -> tuple[Layout, list[CombinedRow]]:
    """
    Perform one JOIN step.

    Args:
        ctx: Query context (join size limit).
        evaluator: Evaluator for the ON condition.
        left_layout: Layout of the rows joined so far.
        left_rows: Combined rows joined so far.
        right: Relation being joined.
        right_rows: Its rows (already keyed by `right.key`).
        join: The JOIN clause.
        outer: Enclosing query's environment (ON may reference it).
        probe: Correlation probe of the current subquery.
        keep: Extra filter for matched rows; only valid for INNER and CROSS joins.

    Returns:
        (layout including the right relation, combined rows)

    Raises:
        ResourceLimitError: if the step produces more than MAX_JOIN_ROWS rows.
    """
    if join.using:
        right = replace(right, star_hidden=frozenset(right.find(c) or c for c in join.using))
    layout = left_layout.extend(right)

    if join.kind == "CROSS" or (join.condition is None and not join.using):
        def predicate(row: CombinedRow) -> bool:
            return True
    elif join.using:
        predicate = _using_predicate(left_layout, right, join.using)
    else:
        condition = join.condition

        def predicate(row: CombinedRow) -> bool:
            env = Env(layout=layout, row=row, outer=outer, probe=probe)
            return to_bool(evaluator.eval(condition, env)) is True

    def accept(row: CombinedRow) -> bool:
        return predicate(row) and (keep is None or keep(row))

    out: list[CombinedRow] = []

    if join.kind == "RIGHT":
        for rrow in right_rows:
            matched = False
            for lrow in left_rows:
                combined = _combine(lrow, rrow)
                if predicate(combined):
                    matched = True
                    out.append(combined)
            if not matched:
                out.append(dict(rrow))
            _check_size(ctx, out)
        return layout, out

    right_matched = [False] * len(right_rows)
    for lrow in left_rows:
        matched = False
        for index, rrow in enumerate(right_rows):
            combined = _combine(lrow, rrow)
            if accept(combined):
                matched = True
                right_matched[index] = True
                out.append(combined)
        if not matched and join.kind in ("LEFT", "FULL"):
            out.append(dict(lrow))
        _check_size(ctx, out)

    if join.kind == "FULL":
        for index, rrow in enumerate(right_rows):
            if not right_matched[index]:
                out.append(dict(rrow))
        _check_size(ctx, out)

    return layout, out


def cross_product(
    ctx: QueryContext,
    left: list[CombinedRow],
    right: list[CombinedRow],
    keep: Predicate | None = None,
) -> list[CombinedRow]:
    """
    Cartesian product for comma-separated FROM items.

    Args:
        ctx: Query context (join size limit).
        left: Rows joined so far.
        right: Rows of the next FROM item.
        keep: Filter applied to each combined row before it is kept.

    Raises:
        ResourceLimitError: if more than MAX_JOIN_ROWS rows are kept.
    """
    out: list[CombinedRow] = []
    for lrow in left:
        for rrow in right:
            combined = _combine(lrow, rrow)
            if keep is None or keep(combined):
                out.append(combined)
        _check_size(ctx, out)
    return out
