import pytest

from tenantsql.ast import (
    AdminStatement,
    AlterTable,
    BinaryOp,
    ColumnRef,
    CreateTable,
    DropTable,
    FuncCall,
    Insert,
    Literal,
    Quantified,
    RenameColumn,
    Select,
    SetOperation,
    Truncate,
)
from tenantsql.errors import SqlSyntaxError
from tenantsql.lexer import TokenType, tokenize
from tenantsql.parser import parse_script, parse_sql


def test_tokenize_literals_and_operators():
    tokens = tokenize("SELECT 'it''s', 3.5, data->>'k' FROM t -- trailing comment")
    types = [tok.typ for tok in tokens]
    assert types[0] == TokenType.SELECT
    assert tokens[1].value == "it's"
    assert tokens[3].value == 3.5
    assert TokenType.ARROW_TEXT in types
    assert types[-1] == TokenType.EOF


def test_unterminated_string_reports_position():
    with pytest.raises(SqlSyntaxError) as exc:
        tokenize("SELECT 'abc")
    assert exc.value.position.line == 1
    assert exc.value.position.col == 8


def test_create_table_with_constraints():
    stmt = parse_sql(
        "CREATE TABLE IF NOT EXISTS users ("
        " id SERIAL PRIMARY KEY,"
        " email VARCHAR(255) UNIQUE NOT NULL,"
        " tags TEXT[],"
        " score DOUBLE PRECISION DEFAULT 0,"
        " UNIQUE (email))"
    )
    assert isinstance(stmt, CreateTable)
    assert stmt.if_not_exists
    assert [c.name for c in stmt.columns] == ["id", "email", "tags", "score"]
    assert stmt.columns[0].primary_key
    assert stmt.columns[1].typ.params == [255]
    assert stmt.columns[2].typ.array
    assert stmt.columns[3].typ.name == "DOUBLE PRECISION"
    assert stmt.columns[3].default == Literal(0)
    assert stmt.constraints[0].kind == "UNIQUE"


def test_operator_precedence():
    stmt = parse_sql("SELECT 1 + 2 * 3")
    expr = stmt.items[0].expr
    assert isinstance(expr, BinaryOp) and expr.op == "+"
    assert isinstance(expr.right, BinaryOp) and expr.right.op == "*"


def test_select_clauses():
    stmt = parse_sql(
        "SELECT dept, COUNT(*) AS n FROM employees e "
        "WHERE salary > 10 GROUP BY dept HAVING COUNT(*) > 1 "
        "ORDER BY n DESC NULLS LAST LIMIT 5 OFFSET 1"
    )
    assert isinstance(stmt, Select)
    assert stmt.from_[0].alias == "e"
    assert stmt.items[1].alias == "n"
    assert isinstance(stmt.items[1].expr, FuncCall) and stmt.items[1].expr.star
    assert stmt.order_by[0].descending and stmt.order_by[0].nulls_first is False
    assert stmt.limit == Literal(5) and stmt.offset == Literal(1)


def test_intersect_binds_tighter_than_union():
    stmt = parse_sql("SELECT 1 UNION SELECT 2 INTERSECT SELECT 3")
    assert isinstance(stmt, SetOperation) and stmt.op == "UNION"
    assert isinstance(stmt.right, SetOperation) and stmt.right.op == "INTERSECT"


def test_quantified_comparison():
    stmt = parse_sql("SELECT * FROM t WHERE x > ALL (SELECT y FROM u)")
    assert isinstance(stmt.where, Quantified)
    assert stmt.where.quantifier == "ALL"


def test_window_call_with_frame():
    stmt = parse_sql(
        "SELECT SUM(x) OVER (PARTITION BY g ORDER BY x ROWS BETWEEN 1 PRECEDING AND CURRENT ROW) FROM t"
    )
    call = stmt.items[0].expr
    assert call.over.partition_by == [ColumnRef(column="g")]
    assert call.over.frame.mode == "ROWS"
    assert call.over.frame.start.offset == 1


def test_insert_multi_row_and_returning():
    stmt = parse_sql("INSERT INTO t (a, b) VALUES (1, 'x'), (2, DEFAULT) RETURNING a")
    assert isinstance(stmt, Insert)
    assert len(stmt.rows) == 2
    assert stmt.rows[1][1] == FuncCall(name="DEFAULT")
    assert stmt.returning[0].expr == ColumnRef(column="a")


def test_alter_and_drop():
    alter = parse_sql("ALTER TABLE t RENAME COLUMN a TO b")
    assert isinstance(alter, AlterTable)
    assert alter.actions == [RenameColumn(old="a", new="b")]
    drop = parse_sql("DROP TABLE IF EXISTS a, b CASCADE")
    assert isinstance(drop, DropTable)
    assert drop.table_names == ["a", "b"] and drop.if_exists


def test_blocked_statements_parse_to_their_own_nodes():
    assert isinstance(parse_sql("TRUNCATE TABLE users"), Truncate)
    admin = parse_sql("CREATE DATABASE other")
    assert isinstance(admin, AdminStatement)
    assert admin.verb == "CREATE DATABASE"


def test_parse_script_splits_statements():
    stmts = parse_script("SELECT 1; SELECT 2;; ")
    assert len(stmts) == 2


def test_syntax_error_has_location():
    with pytest.raises(SqlSyntaxError) as exc:
        parse_sql("SELECT FROM WHERE")
    assert "line 1" in str(exc.value)
