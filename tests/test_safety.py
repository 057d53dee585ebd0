import pytest

from tenantsql import EngineConfig, SqlEngine
from tenantsql.ast import Statement
from tenantsql.errors import NotSupportedError, ResourceLimitError
from tenantsql.parser import parse_sql
from tenantsql.safety import STATEMENT_POLICY, check_limits, check_statement, query_depth


def _statement_classes(cls):
    for sub in cls.__subclasses__():
        yield sub
        yield from _statement_classes(sub)


def test_every_statement_class_has_a_policy():
    concrete = {c for c in _statement_classes(Statement) if c.__name__ != "Query"}
    assert concrete <= set(STATEMENT_POLICY)


@pytest.mark.parametrize(
    "sql",
    [
        "TRUNCATE TABLE users",
        "GRANT SELECT ON users TO bob",
        "REVOKE ALL ON users FROM bob",
        "CREATE DATABASE other",
        "DROP SCHEMA public",
        "VACUUM",
        "SELECT * FROM pg_tables",
        "SELECT * FROM information_schema.tables",
        "SELECT * FROM users WHERE id IN (SELECT oid FROM pg_catalog.pg_class)",
    ],
)
def test_blocked_statements(sql):
    with pytest.raises(NotSupportedError) as exc:
        check_statement(parse_sql(sql))
    assert "not supported" in str(exc.value)


def test_query_depth_counts_nesting_not_set_arms():
    flat = parse_sql("SELECT 1 UNION SELECT 2")
    assert query_depth(flat) == 0
    nested = parse_sql("SELECT * FROM (SELECT * FROM (SELECT 1) a) b")
    assert query_depth(nested) == 2


def test_subquery_depth_limit():
    config = EngineConfig(MAX_SUBQUERY_DEPTH=1)
    with pytest.raises(ResourceLimitError):
        check_limits(parse_sql("SELECT * FROM (SELECT * FROM (SELECT 1) a) b"), config)


def test_join_limit():
    config = EngineConfig(MAX_JOIN_TABLES=1)
    stmt = parse_sql("SELECT * FROM a JOIN b ON a.id = b.id JOIN c ON b.id = c.id")
    with pytest.raises(ResourceLimitError):
        check_limits(stmt, config)


def test_blocked_statement_leaves_state_untouched(engine, owner, run):
    run("CREATE TABLE users (id INTEGER)")
    run("INSERT INTO users (id) VALUES (1), (2)")
    res = engine.execute("TRUNCATE users", owner)
    assert not res.success
    assert res.error_kind == "not_supported"
    assert len(run("SELECT * FROM users")) == 2


def test_portuguese_messages(tmp_path):
    eng = SqlEngine.open(f"sqlite:///{tmp_path}/pt.db", EngineConfig(locale="pt"))
    try:
        assert "não suportada" in eng.execute("TRUNCATE users", "o").error
        assert "não existe" in eng.execute("SELECT * FROM nada", "o").error
        eng.execute("CREATE TABLE x (a INTEGER)", "o")
        assert "já existe" in eng.execute("CREATE TABLE x (a INTEGER)", "o").error
    finally:
        eng.close()
