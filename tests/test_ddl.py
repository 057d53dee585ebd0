import pytest

from tenantsql import EngineConfig, NotFoundError, SqlEngine


def test_create_and_duplicate_create(engine, owner, run):
    res = engine.execute("CREATE TABLE users (id INTEGER PRIMARY KEY, email TEXT UNIQUE)", owner)
    assert res.success
    assert res.message == 'Table "users" created'

    dup = engine.execute("CREATE TABLE users (id INTEGER)", owner)
    assert not dup.success
    assert "already exists" in dup.error
    assert dup.error_kind == "already_exists"

    skipped = engine.execute("CREATE TABLE IF NOT EXISTS users (id INTEGER)", owner)
    assert skipped.success


def test_table_names_are_case_insensitive(run, fail):
    run("CREATE TABLE Orders (id INTEGER)")
    run("INSERT INTO orders (id) VALUES (1)")
    assert run("SELECT * FROM ORDERS") == [{"id": 1}]
    assert "already exists" in fail("CREATE TABLE ORDERS (id INTEGER)").error


def test_drop_then_select_fails(run, fail):
    run("CREATE TABLE t (a INTEGER)")
    run("INSERT INTO t (a) VALUES (1)")
    run("DROP TABLE t")
    res = fail("SELECT * FROM t")
    assert "does not exist" in res.error
    assert res.error_kind == "not_found"


def test_drop_if_exists_and_missing(engine, owner, fail):
    assert engine.execute("DROP TABLE IF EXISTS ghost", owner).success
    assert "does not exist" in fail("DROP TABLE ghost").error


def test_drop_recreate_starts_empty(run):
    run("CREATE TABLE t (a INTEGER)")
    run("INSERT INTO t (a) VALUES (1)")
    run("DROP TABLE t")
    run("CREATE TABLE t (a INTEGER)")
    assert run("SELECT * FROM t") == []


def test_add_column_fills_existing_rows_with_null(run):
    run("CREATE TABLE t (a INTEGER, b TEXT)")
    run("INSERT INTO t (a, b) VALUES (1, 'x'), (2, 'y')")
    run("ALTER TABLE t ADD COLUMN c BOOLEAN")
    assert run("SELECT * FROM t") == [
        {"a": 1, "b": "x", "c": None},
        {"a": 2, "b": "y", "c": None},
    ]


def test_add_column_with_constant_default(run):
    run("CREATE TABLE t (a INTEGER)")
    run("INSERT INTO t (a) VALUES (1)")
    run("ALTER TABLE t ADD COLUMN status TEXT DEFAULT 'new'")
    assert run("SELECT a, status FROM t") == [{"a": 1, "status": "new"}]


def test_add_not_null_column_without_default_fails_on_populated_table(run, fail):
    run("CREATE TABLE t (a INTEGER)")
    run("INSERT INTO t (a) VALUES (1)")
    res = fail("ALTER TABLE t ADD COLUMN b INTEGER NOT NULL")
    assert res.error_kind == "validation"
    assert run("SELECT * FROM t") == [{"a": 1}]


def test_add_duplicate_column_fails(run, fail):
    run("CREATE TABLE t (a INTEGER)")
    assert "already exists" in fail("ALTER TABLE t ADD COLUMN a TEXT").error
    run("ALTER TABLE t ADD COLUMN IF NOT EXISTS a TEXT")


def test_rename_column_moves_values(run):
    run("CREATE TABLE t (a INTEGER, b TEXT)")
    run("INSERT INTO t (a, b) VALUES (1, 'x')")
    run("ALTER TABLE t RENAME COLUMN b TO label")
    rows = run("SELECT * FROM t")
    assert rows == [{"a": 1, "label": "x"}]
    assert "b" not in rows[0]


def test_drop_column_removes_key(run):
    run("CREATE TABLE t (a INTEGER, b TEXT)")
    run("INSERT INTO t (a, b) VALUES (1, 'x')")
    run("ALTER TABLE t DROP COLUMN b")
    assert run("SELECT * FROM t") == [{"a": 1}]


def test_rename_table(run, fail):
    run("CREATE TABLE t (a INTEGER)")
    run("CREATE TABLE other (a INTEGER)")
    run("INSERT INTO t (a) VALUES (5)")
    run("ALTER TABLE t RENAME TO renamed")
    assert run("SELECT * FROM renamed") == [{"a": 5}]
    assert "does not exist" in fail("SELECT * FROM t").error
    assert "already exists" in fail("ALTER TABLE renamed RENAME TO other").error


def test_alter_missing_table(fail):
    assert "does not exist" in fail("ALTER TABLE ghost ADD COLUMN a INTEGER").error


def test_composite_primary_key_columns_are_not_null(run, fail):
    run("CREATE TABLE pairs (a INTEGER, b INTEGER, PRIMARY KEY (a, b))")
    run("INSERT INTO pairs (a, b) VALUES (1, 1), (1, 2)")
    assert fail("INSERT INTO pairs (a, b) VALUES (NULL, 3)").error_kind == "validation"


def test_describe_table(engine, owner, run):
    run("CREATE TABLE items (id SERIAL PRIMARY KEY, name VARCHAR(100) NOT NULL, created TIMESTAMP DEFAULT NOW())")
    meta = engine.describe_table(owner, "ITEMS")
    assert meta.display_name == "items"
    cols = {c.name: c for c in meta.columns}
    assert cols["id"].primary_key and cols["id"].default == {"function": "NEXTVAL"}
    assert cols["name"].type_sql == "VARCHAR(100)" and cols["name"].not_null
    assert cols["created"].kind == "date" and cols["created"].default == {"function": "NOW"}
    with pytest.raises(NotFoundError):
        engine.describe_table(owner, "missing")


def test_list_tables_in_creation_order(engine, owner, run):
    run("CREATE TABLE b (x INTEGER)")
    run("CREATE TABLE a (x INTEGER)")
    assert [t.display_name for t in engine.list_tables(owner)] == ["b", "a"]


def test_max_tables_per_owner(tmp_path):
    eng = SqlEngine.open(f"sqlite:///{tmp_path}/limit.db", EngineConfig(MAX_TABLES_PER_OWNER=2))
    try:
        assert eng.execute("CREATE TABLE a (x INTEGER)", "o").success
        assert eng.execute("CREATE TABLE b (x INTEGER)", "o").success
        res = eng.execute("CREATE TABLE c (x INTEGER)", "o")
        assert not res.success and res.error_kind == "resource_limit"
    finally:
        eng.close()


def test_failed_multi_action_alter_changes_nothing(engine, owner, run, fail):
    run("CREATE TABLE t (a INTEGER, b TEXT)")
    run("INSERT INTO t (a, b) VALUES (1, 'x'), (2, 'y')")

    res = fail("ALTER TABLE t ADD COLUMN c INTEGER DEFAULT 0, DROP COLUMN missing")
    assert res.error_kind == "not_found"

    assert engine.describe_table(owner, "t").column_names() == ["a", "b"]
    assert run("SELECT * FROM t") == [{"a": 1, "b": "x"}, {"a": 2, "b": "y"}]
    run("ALTER TABLE t ADD COLUMN c INTEGER")
    assert run("SELECT c FROM t") == [{"c": None}, {"c": None}]
