"""
tenantsql/exec/aggregates.py

Aggregate functions.

Responsibilities:
- Compute COUNT/SUM/AVG/MIN/MAX, STRING_AGG, ARRAY_AGG, JSON_AGG/JSONB_AGG and
  BOOL_AND/BOOL_OR/EVERY over a list of input items (group members or the rows
  of a window frame)
- Honor DISTINCT, FILTER (WHERE ...) and the aggregate-internal ORDER BY
- Find aggregate calls in an expression tree (without entering subqueries)

Conventions:
- NULL inputs are ignored by every aggregate except COUNT(*).
- Over zero non-NULL inputs every aggregate returns NULL except COUNT, which returns 0.
"""

from __future__ import annotations

from functools import cmp_to_key
from typing import Any, Callable, Iterator, TypeVar

from ..ast import Exists, FuncCall, InSubquery, Node, Quantified, SubqueryExpr, children
from ..errors import ExecutionError
from ..messages import t
from .values import arithmetic, compare, hashable, to_bool, to_number, to_text

T = TypeVar("T")

AGGREGATE_FUNCTIONS = {
    "COUNT", "SUM", "AVG", "MIN", "MAX",
    "STRING_AGG", "GROUP_CONCAT", "ARRAY_AGG", "JSON_AGG", "JSONB_AGG",
    "BOOL_AND", "BOOL_OR", "EVERY",
}


def is_aggregate_call(node: Node) -> bool:
    """True for an aggregate call that is not a window function (`SUM(x)` but not `SUM(x) OVER ()`)."""
    return isinstance(node, FuncCall) and node.name in AGGREGATE_FUNCTIONS and node.over is None


def iter_calls(node: Node, predicate: Callable[[Node], bool]) -> Iterator[FuncCall]:
    """
    Yield calls matching `predicate`, in tree order.

    Subquery bodies are not entered: their aggregates belong to the subquery.
    A matching call's own arguments are not searched either.
    """
    if predicate(node):
        yield node  # type: ignore[misc]
        return
    if isinstance(node, (SubqueryExpr, Exists, InSubquery, Quantified)):
        if isinstance(node, (InSubquery, Quantified)):
            yield from iter_calls(node.operand, predicate)
        return
    for child in children(node):
        yield from iter_calls(child, predicate)


def contains_aggregate(node: Node) -> bool:
    return next(iter_calls(node, is_aggregate_call), None) is not None


def compute_aggregate(call: FuncCall, items: list[T], evaluate: Callable[[Any, T], Any]) -> Any:
    """
    Compute one aggregate call over `items`.

    Args:
        call: The aggregate FuncCall (its `over` clause, if any, is ignored here).
        items: Group members or window-frame rows.
        evaluate: evaluate(expr, item) -> value.

    Returns:
        The aggregate value.

    Raises:
        ExecutionError: for unknown aggregates and malformed arguments.
    """
    name = call.name

    if call.filter is not None:
        items = [item for item in items if to_bool(evaluate(call.filter, item)) is True]

    if call.order_by:
        keyed = [([evaluate(o.expr, item) for o in call.order_by], item) for item in items]

        def order(a: tuple[list[Any], T], b: tuple[list[Any], T]) -> int:
            for o, x, y in zip(call.order_by, a[0], b[0]):
                nulls_first = o.nulls_first if o.nulls_first is not None else o.descending
                if x is None and y is None:
                    continue
                if x is None:
                    return -1 if nulls_first else 1
                if y is None:
                    return 1 if nulls_first else -1
                c = compare(x, y) or 0
                if c:
                    return -c if o.descending else c
            return 0

        items = [item for _keys, item in sorted(keyed, key=cmp_to_key(order))]

    if name == "COUNT" and (call.star or not call.args):
        return len(items)

    if not call.args:
        raise ExecutionError(t("invalid_argument", name=name.lower(), value="no argument"))

    values = [evaluate(call.args[0], item) for item in items]
    if name not in ("ARRAY_AGG", "JSON_AGG", "JSONB_AGG"):
        values = [v for v in values if v is not None]

    if call.distinct:
        seen: set[Any] = set()
        unique: list[Any] = []
        for v in values:
            key = hashable(v)
            if key not in seen:
                seen.add(key)
                unique.append(v)
        values = unique

    if name == "COUNT":
        return len(values)
    if name == "SUM":
        if not values:
            return None
        total: Any = 0
        for v in values:
            total = arithmetic("+", total, to_number(v))
        return total
    if name == "AVG":
        if not values:
            return None
        numbers = [to_number(v) for v in values]
        return sum(numbers) / len(numbers)
    if name in ("MIN", "MAX"):
        best = None
        for v in values:
            if best is None:
                best = v
                continue
            c = compare(v, best)
            if (name == "MIN" and c < 0) or (name == "MAX" and c > 0):
                best = v
        return best
    if name in ("STRING_AGG", "GROUP_CONCAT"):
        if not values:
            return None
        sep = ","
        if len(call.args) > 1:
            sep = to_text(evaluate(call.args[1], items[0])) or ""
        return sep.join(to_text(v) for v in values)
    if name in ("ARRAY_AGG", "JSON_AGG", "JSONB_AGG"):
        return values if values else None
    if name in ("BOOL_AND", "EVERY"):
        truths = [to_bool(v) for v in values]
        return all(truths) if truths else None
    if name == "BOOL_OR":
        truths = [to_bool(v) for v in values]
        return any(truths) if truths else None
    raise ExecutionError(t("unknown_function", name=name.lower()))
