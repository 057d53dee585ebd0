import pytest

from tenantsql.errors import UnresolvedVariableError
from tenantsql.variables import resolve_variables, to_sql_literal


def test_literals_by_type():
    assert to_sql_literal(1) == "1"
    assert to_sql_literal(-2) == "(-2)"
    assert to_sql_literal("O'Brien") == "'O''Brien'"
    assert to_sql_literal(None) == "NULL"
    assert to_sql_literal(True) == "TRUE"
    assert to_sql_literal({"a": 1}) == "'{\"a\": 1}'::jsonb"


def test_resolve_outside_and_inside_quotes():
    sql = "SELECT * FROM users WHERE id = {{userId}} AND name LIKE '{{prefix}}%'"
    out = resolve_variables(sql, {"userId": 7, "prefix": "it's"})
    assert out == "SELECT * FROM users WHERE id = 7 AND name LIKE 'it''s%'"


def test_placeholders_in_comments_are_left_alone():
    sql = "SELECT 1 -- {{missing}}\n"
    assert resolve_variables(sql, {}) == sql


def test_dotted_paths():
    out = resolve_variables("SELECT {{order.id}}, {{items.0}}", {"order": {"id": 5}, "items": ["a"]})
    assert out == "SELECT 5, 'a'"


def test_missing_variable_raises():
    with pytest.raises(UnresolvedVariableError) as exc:
        resolve_variables("SELECT {{nope}}", {})
    assert exc.value.name == "nope"


def test_deferred_placeholder_value_is_unresolved():
    with pytest.raises(UnresolvedVariableError):
        resolve_variables("SELECT {{a}}", {"a": "{{later}}"})


def test_quoted_placeholder_with_none_becomes_null():
    assert resolve_variables("SELECT '{{v}}'", {"v": None}) == "SELECT NULL"


def test_variable_filter_end_to_end(run):
    run("CREATE TABLE users (id INTEGER, name TEXT)")
    run("INSERT INTO users (id, name) VALUES (1, 'Ann'), (2, 'Ben')")
    rows = run("SELECT * FROM users WHERE id = {{userId}}", {"userId": 1})
    assert rows == [{"id": 1, "name": "Ann"}]


def test_injection_is_quoted(run):
    run("CREATE TABLE users (id INTEGER, name TEXT)")
    run("INSERT INTO users (id, name) VALUES (1, 'Ann')")
    rows = run("SELECT * FROM users WHERE name = {{name}}", {"name": "x' OR '1'='1"})
    assert rows == []
    run("INSERT INTO users (id, name) VALUES (2, {{name}})", {"name": "O'Brien"})
    assert run("SELECT name FROM users WHERE id = 2") == [{"name": "O'Brien"}]


def test_unresolved_variable_is_a_failure(engine, owner):
    res = engine.execute("SELECT {{missing}}", owner)
    assert not res.success
    assert res.error_kind == "unresolved_variable"


def test_placeholders_inside_quoted_identifiers():
    out = resolve_variables('SELECT * FROM "{{table}}"', {"table": 'odd"name'})
    assert out == 'SELECT * FROM "odd""name"'
    with pytest.raises(UnresolvedVariableError):
        resolve_variables('SELECT * FROM "{{table}}"', {})


def test_missing_identifier_variable_is_reported_as_unresolved(engine, owner):
    res = engine.execute('SELECT * FROM "{{t}}"', owner)
    assert not res.success
    assert res.error_kind == "unresolved_variable"
