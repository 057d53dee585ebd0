"""
tenantsql/ast.py

AST (Abstract Syntax Tree) node definitions for the tenantsql SQL dialect.

The parser converts token streams into instances of these dataclasses.
The safety gate classifies Statement subclasses, and the executor walks the
tree to run DDL/DML and queries.

Design notes:
- Every node derives from Node; expressions from Expr, statements from Statement.
- Statement subclasses form a closed set: tenantsql/safety.py keeps a policy for
  each one, and a statement class without a policy is an internal error.
- `walk()` / `children()` give a generic traversal used by the safety gate,
  resource-limit checks and aggregate detection.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any, Iterator


# ---------- Core nodes ----------

class Node:
    """Base class marker for all AST nodes."""


class Expr(Node):
    """Base class marker for all expressions."""


class Statement(Node):
    """Base class marker for all statements."""


@dataclass(frozen=True)
class TypeSpec(Node):
    """
    Type specification for a column or a CAST.

    Attributes:
        name: Uppercased type name, e.g. "INTEGER", "VARCHAR", "DOUBLE PRECISION".
        params: Optional integer parameters, e.g. VARCHAR(255) => [255].
        array: True for `type[]` declarations.
    """
    name: str
    params: list[int] = field(default_factory=list)
    array: bool = False

    def sql(self) -> str:
        """Render the type back to SQL text (used for stored schemas and .schema)."""
        out = self.name
        if self.params:
            out += "(" + ",".join(str(p) for p in self.params) + ")"
        if self.array:
            out += "[]"
        return out


# ---------- Expressions ----------

@dataclass(frozen=True)
class Literal(Expr):
    """Constant value: int | float | str | bool | None | dict | list."""
    value: Any


@dataclass(frozen=True)
class ColumnRef(Expr):
    """
    Reference to a column.

    Attributes:
        column: Column name.
        table: Optional table name/alias for qualified references.
    """
    column: str
    table: str | None = None


@dataclass(frozen=True)
class Star(Expr):
    """`*` or `alias.*` in a select list."""
    table: str | None = None


@dataclass(frozen=True)
class UnaryOp(Expr):
    """op is "-", "+" or "NOT"."""
    op: str
    operand: Expr


@dataclass(frozen=True)
class BinaryOp(Expr):
    """
    Binary operator.

    op is one of: + - * / % || = <> < <= > >= AND OR
    """
    op: str
    left: Expr
    right: Expr


@dataclass(frozen=True)
class IsTest(Expr):
    """`x IS [NOT] NULL|TRUE|FALSE`; what is "NULL", "TRUE" or "FALSE"."""
    operand: Expr
    what: str
    negated: bool = False


@dataclass(frozen=True)
class IsDistinct(Expr):
    """`a IS [NOT] DISTINCT FROM b` (NULL-safe comparison)."""
    left: Expr
    right: Expr
    negated: bool = False


@dataclass(frozen=True)
class Like(Expr):
    """[NOT] LIKE / ILIKE pattern match."""
    operand: Expr
    pattern: Expr
    negated: bool = False
    case_insensitive: bool = False


@dataclass(frozen=True)
class Between(Expr):
    """[NOT] BETWEEN low AND high (inclusive)."""
    operand: Expr
    low: Expr
    high: Expr
    negated: bool = False


@dataclass(frozen=True)
class InList(Expr):
    """x [NOT] IN (a, b, c)."""
    operand: Expr
    items: list[Expr]
    negated: bool = False


@dataclass(frozen=True)
class InSubquery(Expr):
    """x [NOT] IN (SELECT ...)."""
    operand: Expr
    query: "Query"
    negated: bool = False


@dataclass(frozen=True)
class Exists(Expr):
    """[NOT] EXISTS (SELECT ...)."""
    query: "Query"
    negated: bool = False


@dataclass(frozen=True)
class Quantified(Expr):
    """x op ANY|SOME|ALL (SELECT ...); quantifier is "ANY" or "ALL"."""
    op: str
    operand: Expr
    quantifier: str
    query: "Query"


@dataclass(frozen=True)
class SubqueryExpr(Expr):
    """Scalar subquery: (SELECT ...) used as a value."""
    query: "Query"


@dataclass(frozen=True)
class WhenClause(Node):
    """WHEN condition THEN result (condition is a value in the simple CASE form)."""
    condition: Expr
    result: Expr


@dataclass(frozen=True)
class Case(Expr):
    """
    CASE expression.

    Attributes:
        operand: Set for the simple form `CASE x WHEN v THEN ...`; None for searched CASE.
        whens: WHEN clauses in order.
        else_: ELSE result, or None (evaluates to NULL).
    """
    operand: Expr | None
    whens: list[WhenClause]
    else_: Expr | None = None


@dataclass(frozen=True)
class Cast(Expr):
    """CAST(x AS type) and x::type."""
    operand: Expr
    typ: TypeSpec


@dataclass(frozen=True)
class JsonAccess(Expr):
    """x -> key (JSON value) and x ->> key (text)."""
    operand: Expr
    key: Expr
    as_text: bool = False


@dataclass(frozen=True)
class ArrayLiteral(Expr):
    """ARRAY[a, b, c]."""
    items: list[Expr]


@dataclass(frozen=True)
class OrderItem(Node):
    """
    One ORDER BY key.

    Attributes:
        expr: Sort expression (a NUMBER literal means a select-list position).
        descending: DESC when True.
        nulls_first: Explicit NULLS FIRST/LAST, or None for the default
                     (NULLs last on ASC, first on DESC).
    """
    expr: Expr
    descending: bool = False
    nulls_first: bool | None = None


@dataclass(frozen=True)
class FrameBound(Node):
    """
    Window frame bound.

    kind is one of: UNBOUNDED_PRECEDING, PRECEDING, CURRENT_ROW, FOLLOWING,
    UNBOUNDED_FOLLOWING. offset is set for PRECEDING/FOLLOWING.
    """
    kind: str
    offset: int | None = None


@dataclass(frozen=True)
class FrameSpec(Node):
    """ROWS|RANGE BETWEEN start AND end."""
    mode: str
    start: FrameBound
    end: FrameBound


@dataclass(frozen=True)
class WindowSpec(Node):
    """OVER (PARTITION BY ... ORDER BY ... [frame])."""
    partition_by: list[Expr] = field(default_factory=list)
    order_by: list[OrderItem] = field(default_factory=list)
    frame: FrameSpec | None = None


@dataclass(frozen=True)
class FuncCall(Expr):
    """
    Function call (scalar, aggregate or window).

    Attributes:
        name: Uppercased function name.
        args: Argument expressions.
        distinct: COUNT(DISTINCT x) and friends.
        star: COUNT(*).
        order_by: Aggregate-internal ORDER BY, e.g. STRING_AGG(x, ',' ORDER BY x).
        filter: FILTER (WHERE ...) condition for aggregates.
        over: Window specification when the call is a window function.
    """
    name: str
    args: list[Expr] = field(default_factory=list)
    distinct: bool = False
    star: bool = False
    order_by: list[OrderItem] = field(default_factory=list)
    filter: Expr | None = None
    over: WindowSpec | None = None


# ---------- Query structure ----------

@dataclass(frozen=True)
class SelectItem(Node):
    """One select-list entry: expression plus optional alias (Star for `*`)."""
    expr: Expr
    alias: str | None = None


@dataclass(frozen=True)
class TableRef(Node):
    """
    Base table (or CTE name) in FROM / DML target.

    Attributes:
        name: Table name as written.
        alias: Optional alias.
        schema: Optional schema qualifier (`information_schema.tables`).
    """
    name: str
    alias: str | None = None
    schema: str | None = None


@dataclass(frozen=True)
class DerivedTable(Node):
    """(SELECT ...) AS alias [(col, ...)] in FROM."""
    query: "Query"
    alias: str
    column_aliases: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class Join(Node):
    """
    JOIN clause.

    Attributes:
        kind: "INNER", "LEFT", "RIGHT", "FULL" or "CROSS".
        source: Right-hand TableRef or DerivedTable.
        condition: ON predicate (None for CROSS JOIN).
        using: Column names for JOIN ... USING (...).
    """
    kind: str
    source: TableRef | DerivedTable
    condition: Expr | None = None
    using: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class CommonTableExpr(Node):
    """name [(columns)] AS (query) inside WITH."""
    name: str
    query: "Query"
    columns: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class WithClause(Node):
    """WITH [RECURSIVE] cte, cte, ..."""
    ctes: list[CommonTableExpr]
    recursive: bool = False


class Query(Statement):
    """Base class for SELECT-shaped statements (Select and SetOperation)."""


@dataclass(frozen=True)
class Select(Query):
    """
    SELECT statement (one query block).

    Attributes:
        items: Select list.
        from_: FROM sources (comma-separated sources cross join in order).
        joins: JOIN clauses applied left to right.
        where: WHERE predicate.
        group_by: GROUP BY expressions (NUMBER literals are positions).
        having: HAVING predicate.
        distinct: SELECT DISTINCT.
        order_by: ORDER BY keys.
        limit / offset: LIMIT / OFFSET expressions.
        with_: Attached WITH clause.
    """
    items: list[SelectItem]
    from_: list[TableRef | DerivedTable] = field(default_factory=list)
    joins: list[Join] = field(default_factory=list)
    where: Expr | None = None
    group_by: list[Expr] = field(default_factory=list)
    having: Expr | None = None
    distinct: bool = False
    order_by: list[OrderItem] = field(default_factory=list)
    limit: Expr | None = None
    offset: Expr | None = None
    with_: WithClause | None = None


@dataclass(frozen=True)
class SetOperation(Query):
    """
    left UNION|INTERSECT|EXCEPT [ALL] right, with ORDER BY/LIMIT applying to the
    combined result.
    """
    op: str
    left: Query
    right: Query
    all: bool = False
    order_by: list[OrderItem] = field(default_factory=list)
    limit: Expr | None = None
    offset: Expr | None = None
    with_: WithClause | None = None


# ---------- DDL ----------

@dataclass(frozen=True)
class ColumnDef(Node):
    """
    Column definition in CREATE TABLE / ALTER TABLE ADD COLUMN.

    Attributes:
        name: Column name.
        typ: TypeSpec object.
        not_null: Whether NOT NULL is required.
        unique: Whether UNIQUE is required.
        primary_key: Whether this column is a PRIMARY KEY.
        default: DEFAULT expression (constant-evaluated at insert time).
    """
    name: str
    typ: TypeSpec
    not_null: bool = False
    unique: bool = False
    primary_key: bool = False
    default: Expr | None = None


@dataclass(frozen=True)
class TableConstraint(Node):
    """Table-level PRIMARY KEY (...) or UNIQUE (...); kind is "PRIMARY KEY" or "UNIQUE"."""
    kind: str
    columns: list[str]


@dataclass(frozen=True)
class CreateTable(Statement):
    """CREATE TABLE [IF NOT EXISTS] statement."""
    table_name: str
    columns: list[ColumnDef]
    constraints: list[TableConstraint] = field(default_factory=list)
    if_not_exists: bool = False


@dataclass(frozen=True)
class DropTable(Statement):
    """DROP TABLE [IF EXISTS] a, b, ..."""
    table_names: list[str]
    if_exists: bool = False


@dataclass(frozen=True)
class AddColumn(Node):
    """ALTER TABLE ... ADD [COLUMN] [IF NOT EXISTS] coldef."""
    column: ColumnDef
    if_not_exists: bool = False


@dataclass(frozen=True)
class DropColumn(Node):
    """ALTER TABLE ... DROP [COLUMN] [IF EXISTS] name."""
    name: str
    if_exists: bool = False


@dataclass(frozen=True)
class RenameColumn(Node):
    """ALTER TABLE ... RENAME [COLUMN] old TO new."""
    old: str
    new: str


@dataclass(frozen=True)
class RenameTable(Node):
    """ALTER TABLE ... RENAME TO new."""
    new: str


AlterAction = AddColumn | DropColumn | RenameColumn | RenameTable


@dataclass(frozen=True)
class AlterTable(Statement):
    """ALTER TABLE name action [, action ...]."""
    table_name: str
    actions: list[AlterAction]


# ---------- DML ----------

@dataclass(frozen=True)
class Insert(Statement):
    """
    INSERT statement.

    Exactly one of `rows` (VALUES lists) and `query` (INSERT ... SELECT) is set.
    """
    table: TableRef
    columns: list[str]
    rows: list[list[Expr]] | None = None
    query: Query | None = None
    returning: list[SelectItem] = field(default_factory=list)
    with_: WithClause | None = None


@dataclass(frozen=True)
class Assignment(Node):
    """A single SET assignment in UPDATE."""
    column: str
    value: Expr


@dataclass(frozen=True)
class Update(Statement):
    """UPDATE statement."""
    table: TableRef
    assignments: list[Assignment]
    where: Expr | None = None
    returning: list[SelectItem] = field(default_factory=list)
    with_: WithClause | None = None


@dataclass(frozen=True)
class Delete(Statement):
    """DELETE statement."""
    table: TableRef
    where: Expr | None = None
    returning: list[SelectItem] = field(default_factory=list)
    with_: WithClause | None = None


# ---------- Statements the safety gate rejects ----------

@dataclass(frozen=True)
class Truncate(Statement):
    """TRUNCATE [TABLE] a, b."""
    table_names: list[str]


@dataclass(frozen=True)
class Grant(Statement):
    """GRANT ... (the body is kept as text; it is never executed)."""
    text: str


@dataclass(frozen=True)
class Revoke(Statement):
    """REVOKE ... (the body is kept as text; it is never executed)."""
    text: str


@dataclass(frozen=True)
class AdminStatement(Statement):
    """
    Administrative statements outside the virtual-table model, e.g.
    CREATE DATABASE, DROP SCHEMA, CREATE INDEX, VACUUM, COPY.

    Attributes:
        verb: Leading words as written, uppercased ("CREATE DATABASE").
    """
    verb: str


# ---------- traversal ----------

def children(node: Node) -> Iterator[Node]:
    """Yield the direct child nodes of `node` (fields holding nodes or lists of nodes)."""
    for f in fields(node):  # type: ignore[arg-type]
        value = getattr(node, f.name)
        if isinstance(value, Node):
            yield value
        elif isinstance(value, list):
            for item in value:
                if isinstance(item, Node):
                    yield item
                elif isinstance(item, list):
                    for sub in item:
                        if isinstance(sub, Node):
                            yield sub


def walk(node: Node) -> Iterator[Node]:
    """Depth-first pre-order traversal of `node` and all descendants."""
    yield node
    for child in children(node):
        yield from walk(child)
