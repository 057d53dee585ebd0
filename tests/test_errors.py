import pytest

from tenantsql import EngineConfig, ExecutionError, SqlEngine, SqlSyntaxError, ValidationError


def test_syntax_error_result(engine, owner):
    res = engine.execute("SELEC 1", owner)
    assert not res.success
    assert res.error_kind == "syntax"
    assert res.error.startswith("Syntax error")
    assert res.to_dict() == {"success": False, "error": res.error}


def test_division_by_zero(fail):
    res = fail("SELECT 1 / 0")
    assert res.error_kind == "execution"
    assert "Division by zero" in res.error


def test_division_by_zero_inside_dml_rolls_back(run, fail):
    run("CREATE TABLE t (a INTEGER)")
    run("INSERT INTO t (a) VALUES (1), (0)")
    fail("UPDATE t SET a = 10 / a")
    assert run("SELECT a FROM t") == [{"a": 1}, {"a": 0}]


def test_empty_sql(engine, owner):
    for sql in ("", "   ", ";"):
        res = engine.execute(sql, owner)
        assert not res.success
        assert res.error_kind == "validation"


def test_sql_length_limit(tmp_path):
    eng = SqlEngine.open(f"sqlite:///{tmp_path}/len.db", EngineConfig(MAX_SQL_LENGTH=20))
    try:
        res = eng.execute("SELECT 1 AS a, 2 AS b, 3 AS c", "o")
        assert not res.success and res.error_kind == "resource_limit"
    finally:
        eng.close()


def test_gate_runs_before_any_statement(engine, owner):
    res = engine.execute("CREATE TABLE t (a INTEGER); TRUNCATE t", owner)
    assert not res.success
    assert res.error_kind == "not_supported"
    assert engine.list_tables(owner) == []


def test_script_reports_every_statement(engine, owner):
    res = engine.execute("CREATE TABLE t (a INTEGER); INSERT INTO t (a) VALUES (1)", owner)
    assert res.success
    assert [s.success for s in res.statements] == [True, True]
    assert res.statements[0].message == 'Table "t" created'
    assert res.affected == 1


def test_execute_or_raise_raises_typed_errors(engine, owner):
    with pytest.raises(SqlSyntaxError):
        engine.execute_or_raise("SELECT FROM", owner)
    with pytest.raises(ExecutionError):
        engine.execute_or_raise("SELECT 1 / 0", owner)
    engine.execute_or_raise("CREATE TABLE t (a INTEGER NOT NULL)", owner)
    with pytest.raises(ValidationError):
        engine.execute_or_raise("INSERT INTO t (a) VALUES (NULL)", owner)
    assert engine.execute_or_raise("SELECT COUNT(*) AS n FROM t", owner).rows == [{"n": 0}]


def test_invalid_number_in_arithmetic(fail):
    res = fail("SELECT 'abc' + 1")
    assert res.error_kind == "execution"


def test_invalid_json_cast(fail):
    assert fail("SELECT '{not json'::jsonb").error_kind == "execution"


def test_order_by_position_out_of_range(fail):
    assert fail("SELECT 1 AS a ORDER BY 2").error_kind == "execution"


def test_cte_column_list_too_long(fail):
    assert fail("WITH t(a, b) AS (SELECT 1) SELECT * FROM t").error_kind == "execution"
