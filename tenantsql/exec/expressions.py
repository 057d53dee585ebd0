"""
tenantsql/exec/expressions.py

Expression evaluation.

Responsibilities:
- Row layouts: which relation (alias) provides which columns
- Row-binding environments, chained to the enclosing query's row for
  correlated subqueries
- Evaluate every expression node against an environment (three-valued logic,
  CASE, casts, JSON access, subqueries, scalar/aggregate/window calls)

Rows:
- A row flowing through FROM/JOIN/WHERE is a CombinedRow: a mapping keyed by
  (relation key, column name). Missing keys read as NULL, which is how the
  NULL side of an outer join is represented.

Column resolution:
- `alias.col` looks for the relation named `alias`; `col` looks through every
  relation in FROM order. An exact column match wins over a case-insensitive
  one; the first relation that has the column wins.
- A reference that the current query cannot resolve is looked up in the
  enclosing query's row (correlation). A reference nobody can resolve is NULL.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from ..ast import (
    ArrayLiteral,
    Between,
    BinaryOp,
    Case,
    Cast,
    ColumnRef,
    Exists,
    Expr,
    FuncCall,
    InList,
    InSubquery,
    IsDistinct,
    IsTest,
    JsonAccess,
    Like,
    Literal,
    OrderItem,
    Quantified,
    Query,
    Star,
    SubqueryExpr,
    UnaryOp,
)
from ..errors import ExecutionError
from ..messages import t
from ..results import QueryResult
from .aggregates import AGGREGATE_FUNCTIONS, compute_aggregate
from .context import QueryContext
from .functions import DATE_FIELDS, call_scalar, extract_field
from .values import (
    Interval,
    arithmetic,
    cast,
    compare,
    compare_op,
    concat,
    like,
    negate,
    sql_equals,
    to_bool,
    to_number,
    to_text,
)

# Combined row representation: (relation key, column) -> value
CombinedRow = dict[tuple[str, str], Any]

HIDDEN_COLUMNS = ("_id", "_createdAt")

COMPARISON_OPS = {"=", "<>", "<", "<=", ">", ">="}
ARITHMETIC_OPS = {"+", "-", "*", "/", "%"}

WINDOW_ONLY_FUNCTIONS = {
    "ROW_NUMBER", "RANK", "DENSE_RANK", "PERCENT_RANK", "CUME_DIST", "NTILE",
    "LAG", "LEAD", "FIRST_VALUE", "LAST_VALUE", "NTH_VALUE",
}


# ---------- layouts ----------

@dataclass
class Relation:
    """
    One relation of a FROM clause.

    Attributes:
        alias: Alias (or table/CTE name) as written.
        columns: Columns in output order.
        hidden: Columns resolvable by name but not expanded by `*` (`_id`, `_createdAt`).
        star_hidden: Columns left out of `*` (right-hand USING columns).
    """
    alias: str
    columns: list[str]
    hidden: tuple[str, ...] = ()
    star_hidden: frozenset[str] = frozenset()

    @property
    def key(self) -> str:
        return self.alias.lower()

    def find(self, column: str) -> str | None:
        """Return the stored column name matching `column` (exact, then case-insensitive)."""
        for c in self.columns:
            if c == column:
                return c
        for c in self.hidden:
            if c == column:
                return c
        lowered = column.lower()
        for c in self.columns:
            if c.lower() == lowered:
                return c
        for c in self.hidden:
            if c.lower() == lowered:
                return c
        return None

    def star_columns(self) -> list[str]:
        return [c for c in self.columns if c not in self.star_hidden]


class Layout:
    """Ordered relations visible to one query level, with cached name resolution."""

    def __init__(self, relations: list[Relation] | None = None):
        self.relations = list(relations or [])
        self._resolved: dict[tuple[str | None, str], tuple[str, str] | None] = {}

    def extend(self, relation: Relation) -> "Layout":
        return Layout(self.relations + [relation])

    def relation(self, alias: str) -> Relation | None:
        lowered = alias.lower()
        for rel in self.relations:
            if rel.key == lowered:
                return rel
        return None

    def resolve(self, table: str | None, column: str) -> tuple[str, str] | None:
        """
        Resolve a column reference to its CombinedRow key.

        Returns:
            (relation key, stored column name), or None when this layout has no such column.
        """
        cache_key = (table, column)
        if cache_key in self._resolved:
            return self._resolved[cache_key]
        found: tuple[str, str] | None = None
        if table is not None:
            rel = self.relation(table)
            if rel is None and "." in table:
                rel = self.relation(table.rsplit(".", 1)[1])
            if rel is not None:
                name = rel.find(column)
                if name is not None:
                    found = (rel.key, name)
        else:
            for rel in self.relations:
                if column in rel.columns or column in rel.hidden:
                    found = (rel.key, column)
                    break
            if found is None:
                for rel in self.relations:
                    name = rel.find(column)
                    if name is not None:
                        found = (rel.key, name)
                        break
        self._resolved[cache_key] = found
        return found


# ---------- environments ----------

@dataclass
class Probe:
    """Records whether a subquery read anything from an enclosing query's row."""
    touched: bool = False


@dataclass
class Env:
    """
    Row-binding environment.

    Attributes:
        layout: Relations of the current query level.
        row: Current row.
        outer: Environment of the enclosing query (correlated subqueries).
        probe: Probe of the subquery this environment belongs to.
        group: Member rows when evaluating after GROUP BY (aggregates read these).
        aggregates: Aggregate values already computed for this group, by call id.
        windows: Window function values for this row, by call id.
    """
    layout: Layout
    row: CombinedRow
    outer: "Env | None" = None
    probe: Probe | None = None
    group: list[CombinedRow] | None = None
    aggregates: dict[int, Any] = field(default_factory=dict)
    windows: dict[int, Any] | None = None

    def lookup(self, ref: ColumnRef) -> Any:
        env: Env | None = self
        while env is not None:
            key = env.layout.resolve(ref.table, ref.column)
            if key is not None:
                return env.row.get(key)
            if env.probe is not None:
                env.probe.touched = True
            env = env.outer
        return None

    def member(self, row: CombinedRow) -> "Env":
        """Environment for one member row of this group."""
        return Env(layout=self.layout, row=row, outer=self.outer, probe=self.probe)


def empty_env(outer: Env | None = None, probe: Probe | None = None) -> Env:
    return Env(layout=Layout(), row={}, outer=outer, probe=probe)


def compare_keys(left: list[Any], right: list[Any], items: list[OrderItem]) -> int:
    """
    Compare two sort-key lists under ORDER BY directions.

    NULLs sort last on ASC and first on DESC unless NULLS FIRST/LAST says otherwise.
    """
    for item, x, y in zip(items, left, right):
        nulls_first = item.nulls_first if item.nulls_first is not None else item.descending
        if x is None and y is None:
            continue
        if x is None:
            return -1 if nulls_first else 1
        if y is None:
            return 1 if nulls_first else -1
        c = compare(x, y) or 0
        if c:
            return -c if item.descending else c
    return 0


# ---------- evaluator ----------

def _and(a: bool | None, b: bool | None) -> bool | None:
    if a is False or b is False:
        return False
    if a is None or b is None:
        return None
    return True


def _not(a: bool | None) -> bool | None:
    return None if a is None else not a


def _membership(needle: Any, candidates: list[Any]) -> bool | None:
    """Three-valued `needle IN (candidates)`."""
    if not candidates:
        return False
    if needle is None:
        return None
    unknown = False
    for c in candidates:
        eq = sql_equals(needle, c)
        if eq is True:
            return True
        if eq is None:
            unknown = True
    return None if unknown else False


def _json_value(value: Any) -> Any:
    if isinstance(value, str):
        try:
            return json.loads(value)
        except ValueError:
            return None
    return value


@dataclass
class Evaluator:
    """Evaluates expressions for one query context."""
    ctx: QueryContext

    def eval(self, expr: Expr, env: Env) -> Any:
        if isinstance(expr, Literal):
            return expr.value

        if isinstance(expr, ColumnRef):
            return env.lookup(expr)

        if isinstance(expr, BinaryOp):
            return self._binary(expr, env)

        if isinstance(expr, UnaryOp):
            if expr.op == "NOT":
                return _not(to_bool(self.eval(expr.operand, env)))
            value = self.eval(expr.operand, env)
            if expr.op == "-":
                return negate(value)
            return to_number(value)

        if isinstance(expr, FuncCall):
            return self._call(expr, env)

        if isinstance(expr, IsTest):
            value = self.eval(expr.operand, env)
            if expr.what == "NULL":
                result = value is None
            elif expr.what == "TRUE":
                result = to_bool(value) is True
            else:
                result = to_bool(value) is False
            return not result if expr.negated else result

        if isinstance(expr, IsDistinct):
            a, b = self.eval(expr.left, env), self.eval(expr.right, env)
            if a is None or b is None:
                distinct = (a is None) != (b is None)
            else:
                distinct = compare(a, b) != 0
            return not distinct if expr.negated else distinct

        if isinstance(expr, Like):
            result = like(self.eval(expr.operand, env), self.eval(expr.pattern, env), expr.case_insensitive)
            return _not(result) if expr.negated else result

        if isinstance(expr, Between):
            value = self.eval(expr.operand, env)
            low, high = self.eval(expr.low, env), self.eval(expr.high, env)
            result = _and(compare_op(">=", value, low), compare_op("<=", value, high))
            return _not(result) if expr.negated else result

        if isinstance(expr, InList):
            needle = self.eval(expr.operand, env)
            result = _membership(needle, [self.eval(item, env) for item in expr.items])
            return _not(result) if expr.negated else result

        if isinstance(expr, InSubquery):
            needle = self.eval(expr.operand, env)
            column = self._column(expr.query, env)
            result = _membership(needle, column)
            return _not(result) if expr.negated else result

        if isinstance(expr, Exists):
            result = bool(self.subquery(expr.query, env).rows)
            return not result if expr.negated else result

        if isinstance(expr, Quantified):
            return self._quantified(expr, env)

        if isinstance(expr, SubqueryExpr):
            column = self._column(expr.query, env)
            if len(column) > 1:
                raise ExecutionError(t("scalar_subquery_rows"))
            return column[0] if column else None

        if isinstance(expr, Case):
            return self._case(expr, env)

        if isinstance(expr, Cast):
            return cast(self.eval(expr.operand, env), expr.typ)

        if isinstance(expr, JsonAccess):
            return self._json_access(expr, env)

        if isinstance(expr, ArrayLiteral):
            return [self.eval(item, env) for item in expr.items]

        if isinstance(expr, Star):
            raise ExecutionError(t("invalid_argument", name="*", value="not allowed here"))

        raise ExecutionError(f"Unsupported expression: {type(expr).__name__}")

    # ---------- operators ----------

    def _binary(self, expr: BinaryOp, env: Env) -> Any:
        op = expr.op
        if op == "AND":
            left = to_bool(self.eval(expr.left, env))
            if left is False:
                return False
            return _and(left, to_bool(self.eval(expr.right, env)))
        if op == "OR":
            left = to_bool(self.eval(expr.left, env))
            if left is True:
                return True
            right = to_bool(self.eval(expr.right, env))
            if right is True:
                return True
            return None if left is None or right is None else False
        left = self.eval(expr.left, env)
        right = self.eval(expr.right, env)
        if op in COMPARISON_OPS:
            return compare_op(op, left, right)
        if op == "||":
            return concat(left, right)
        if op in ARITHMETIC_OPS:
            return arithmetic(op, left, right)
        raise ExecutionError(f"Unknown operator: {op}")

    def _case(self, expr: Case, env: Env) -> Any:
        if expr.operand is not None:
            subject = self.eval(expr.operand, env)
            for when in expr.whens:
                if sql_equals(subject, self.eval(when.condition, env)) is True:
                    return self.eval(when.result, env)
        else:
            for when in expr.whens:
                if to_bool(self.eval(when.condition, env)) is True:
                    return self.eval(when.result, env)
        return None if expr.else_ is None else self.eval(expr.else_, env)

    def _json_access(self, expr: JsonAccess, env: Env) -> Any:
        container = _json_value(self.eval(expr.operand, env))
        key = self.eval(expr.key, env)
        if container is None or key is None:
            return None
        if isinstance(container, list):
            index = to_number(key) if not isinstance(key, str) or key.lstrip("-").isdigit() else None
            if index is None:
                return None
            index = int(index)
            value = container[index] if -len(container) <= index < len(container) else None
        elif isinstance(container, dict):
            value = container.get(to_text(key))
        else:
            return None
        return to_text(value) if expr.as_text else value

    # ---------- subqueries ----------

    def subquery(self, query: Query, env: Env) -> QueryResult:
        """
        Evaluate a subquery with `env` as its enclosing row.

        A subquery that never read the enclosing row is cached for the rest of the
        statement and evaluated only once.
        """
        cached = self.ctx.subquery_cache.get(id(query))
        if cached is not None:
            return cached
        from .select import run_query

        probe = Probe()
        result = run_query(query, self.ctx, outer=env, probe=probe)
        if not probe.touched:
            self.ctx.subquery_cache[id(query)] = result
        return result

    def _column(self, query: Query, env: Env) -> list[Any]:
        result = self.subquery(query, env)
        if len(result.columns) != 1:
            raise ExecutionError(t("subquery_columns"))
        return [row[0] for row in result.rows]

    def _quantified(self, expr: Quantified, env: Env) -> bool | None:
        value = self.eval(expr.operand, env)
        column = self._column(expr.query, env)
        unknown = False
        if expr.quantifier == "ANY":
            for candidate in column:
                result = compare_op(expr.op, value, candidate)
                if result is True:
                    return True
                if result is None:
                    unknown = True
            return None if unknown else False
        for candidate in column:
            result = compare_op(expr.op, value, candidate)
            if result is False:
                return False
            if result is None:
                unknown = True
        return None if unknown else True

    # ---------- calls ----------

    def _call(self, call: FuncCall, env: Env) -> Any:
        name = call.name
        if call.over is not None:
            if env.windows is None or id(call) not in env.windows:
                raise ExecutionError(t("window_context", name=name.lower()))
            return env.windows[id(call)]

        if name in AGGREGATE_FUNCTIONS:
            return self.aggregate(call, env)

        if name in WINDOW_ONLY_FUNCTIONS:
            raise ExecutionError(t("window_context", name=name.lower()))

        if name == "COALESCE":
            for arg in call.args:
                value = self.eval(arg, env)
                if value is not None:
                    return value
            return None

        now = self.ctx.state.now
        if name in ("NOW", "CURRENT_TIMESTAMP", "LOCALTIMESTAMP", "TRANSACTION_TIMESTAMP", "STATEMENT_TIMESTAMP"):
            return now.isoformat()
        if name == "CURRENT_DATE":
            return now.date().isoformat()
        if name in ("CURRENT_TIME", "LOCALTIME"):
            return now.time().isoformat()

        if name == "INTERVAL":
            text = to_text(self.eval(call.args[0], env))
            return None if text is None else Interval.parse(text)

        if name == "EXTRACT":
            field_name = to_text(self.eval(call.args[0], env)) or ""
            if field_name.upper().rstrip("S") not in DATE_FIELDS and field_name.upper() not in DATE_FIELDS:
                raise ExecutionError(t("invalid_argument", name="extract", value=field_name))
            value = self.eval(call.args[1], env)
            return None if value is None else extract_field(field_name, value)

        if name == "DEFAULT":
            raise ExecutionError(t("invalid_argument", name="DEFAULT", value="not allowed here"))

        return call_scalar(name, [self.eval(arg, env) for arg in call.args])

    def aggregate(self, call: FuncCall, env: Env) -> Any:
        """Value of an aggregate call for the group bound in `env`."""
        if env.group is None:
            raise ExecutionError(t("aggregate_context", name=call.name.lower()))
        key = id(call)
        if key not in env.aggregates:
            env.aggregates[key] = compute_aggregate(
                call, env.group, lambda expr, row: self.eval(expr, env.member(row))
            )
        return env.aggregates[key]
