def test_insert_reports_affected(engine, owner, run):
    run("CREATE TABLE t (a INTEGER, b TEXT)")
    res = engine.execute("INSERT INTO t (a, b) VALUES (1, 'x'), (2, 'y'), (3, 'z')", owner)
    assert res.success
    assert res.affected == 3
    assert res.message == "INSERT 0 3"
    assert res.to_dict() == {"success": True, "affected": 3}


def test_insert_positional_and_partial(run):
    run("CREATE TABLE t (a INTEGER, b TEXT, c BOOLEAN)")
    run("INSERT INTO t VALUES (1, 'x', true)")
    run("INSERT INTO t VALUES (2)")
    assert run("SELECT * FROM t") == [
        {"a": 1, "b": "x", "c": True},
        {"a": 2, "b": None, "c": None},
    ]


def test_insert_value_count_mismatch(run, fail):
    run("CREATE TABLE t (a INTEGER, b TEXT)")
    assert fail("INSERT INTO t (a, b) VALUES (1)").error_kind == "validation"
    assert fail("INSERT INTO t VALUES (1, 'x', 3)").error_kind == "validation"


def test_insert_unknown_column_fails(run, fail):
    run("CREATE TABLE t (a INTEGER)")
    assert "does not exist" in fail("INSERT INTO t (nope) VALUES (1)").error


def test_insert_into_missing_table(fail):
    assert "does not exist" in fail("INSERT INTO ghost (a) VALUES (1)").error


def test_defaults_and_serial(run):
    run(
        "CREATE TABLE tasks (id SERIAL PRIMARY KEY, title TEXT NOT NULL, "
        "status TEXT DEFAULT 'open', created DATE DEFAULT CURRENT_DATE)"
    )
    run("INSERT INTO tasks (title) VALUES ('one'), ('two')")
    run("INSERT INTO tasks (title, status) VALUES ('three', DEFAULT)")
    rows = run("SELECT id, title, status FROM tasks ORDER BY id")
    assert rows == [
        {"id": 1, "title": "one", "status": "open"},
        {"id": 2, "title": "two", "status": "open"},
        {"id": 3, "title": "three", "status": "open"},
    ]
    created = run("SELECT created FROM tasks")[0]["created"]
    assert len(created) == 10 and created[4] == "-"


def test_default_values_statement(run):
    run("CREATE TABLE counters (id SERIAL, hits INTEGER DEFAULT 0)")
    run("INSERT INTO counters DEFAULT VALUES")
    assert run("SELECT * FROM counters") == [{"id": 1, "hits": 0}]


def test_not_null_violation(run, fail):
    run("CREATE TABLE t (a INTEGER NOT NULL, b TEXT)")
    res = fail("INSERT INTO t (b) VALUES ('x')")
    assert res.error_kind == "validation"
    assert "cannot be NULL" in res.error
    assert run("SELECT * FROM t") == []


def test_unique_violation_within_one_statement(run, fail):
    run("CREATE TABLE t (email TEXT UNIQUE)")
    assert fail("INSERT INTO t (email) VALUES ('a@x'), ('a@x')").error_kind == "validation"
    run("INSERT INTO t (email) VALUES ('a@x'), (NULL), (NULL)")
    assert fail("INSERT INTO t (email) VALUES ('a@x')").error_kind == "validation"
    assert len(run("SELECT * FROM t")) == 3


def test_primary_key_on_update(run, fail):
    run("CREATE TABLE t (id INTEGER PRIMARY KEY, v TEXT)")
    run("INSERT INTO t (id, v) VALUES (1, 'a'), (2, 'b')")
    assert fail("UPDATE t SET id = 1 WHERE id = 2").error_kind == "validation"
    run("UPDATE t SET id = id + 10")
    assert run("SELECT id FROM t ORDER BY id") == [{"id": 11}, {"id": 12}]


def test_type_validation(run, fail):
    run("CREATE TABLE t (n INTEGER, flag BOOLEAN, meta JSONB, tags TEXT[], day DATE, label TEXT)")
    assert fail("INSERT INTO t (n) VALUES ('abc')").error_kind == "validation"
    assert fail("INSERT INTO t (meta) VALUES ('{\"a\": 1}')").error_kind == "validation"
    assert fail("INSERT INTO t (tags) VALUES ('[1, 2]')").error_kind == "validation"
    assert fail("INSERT INTO t (flag) VALUES ('maybe')").error_kind == "validation"
    assert fail("INSERT INTO t (day) VALUES ('not a date')").error_kind == "validation"

    run("INSERT INTO t (n, flag, day, label) VALUES ('42', 1, '25/12/2024', 7)")
    assert run("SELECT n, flag, day, label FROM t") == [
        {"n": 42, "flag": True, "day": "2024-12-25", "label": "7"}
    ]


def test_json_round_trip(run):
    run("CREATE TABLE docs (id INTEGER, meta JSONB, tags TEXT[], raw TEXT)")
    run(
        "INSERT INTO docs (id, meta, tags, raw) VALUES "
        "(1, '{\"a\": {\"b\": [1, 2]}}'::jsonb, ARRAY['x', 'y'], '{\"not\": \"parsed\"}')"
    )
    row = run("SELECT meta, tags, raw FROM docs")[0]
    assert row["meta"] == {"a": {"b": [1, 2]}}
    assert row["tags"] == ["x", "y"]
    assert row["raw"] == '{"not": "parsed"}'


def test_json_round_trip_through_variables(run):
    run("CREATE TABLE docs (meta JSONB)")
    run("INSERT INTO docs (meta) VALUES ({{meta}})", {"meta": {"k": [1, {"z": None}]}})
    assert run("SELECT meta->'k'->1 AS item FROM docs") == [{"item": {"z": None}}]


def test_update_merges_fields(engine, owner, run):
    run("CREATE TABLE t (a INTEGER, b TEXT, c TEXT)")
    run("INSERT INTO t (a, b, c) VALUES (1, 'x', 'keep'), (2, 'y', 'keep')")
    res = engine.execute("UPDATE t SET b = b || '!' WHERE a = 2", owner)
    assert res.success and res.affected == 1 and res.message == "UPDATE 1"
    assert run("SELECT * FROM t ORDER BY a") == [
        {"a": 1, "b": "x", "c": "keep"},
        {"a": 2, "b": "y!", "c": "keep"},
    ]


def test_update_sees_old_values(run):
    run("CREATE TABLE t (a INTEGER, b INTEGER)")
    run("INSERT INTO t (a, b) VALUES (1, 2)")
    run("UPDATE t SET a = b, b = a")
    assert run("SELECT * FROM t") == [{"a": 2, "b": 1}]


def test_update_no_match_is_success(engine, owner, run):
    run("CREATE TABLE t (a INTEGER)")
    res = engine.execute("UPDATE t SET a = 1 WHERE a = 99", owner)
    assert res.success and res.affected == 0


def test_delete(engine, owner, run):
    run("CREATE TABLE t (a INTEGER)")
    run("INSERT INTO t (a) VALUES (1), (2), (3)")
    res = engine.execute("DELETE FROM t WHERE a >= 2", owner)
    assert res.success and res.affected == 2 and res.message == "DELETE 2"
    assert run("SELECT * FROM t") == [{"a": 1}]
    assert engine.execute("DELETE FROM t", owner).affected == 1


def test_returning(engine, owner, run):
    run("CREATE TABLE t (id SERIAL, name TEXT)")
    res = engine.execute("INSERT INTO t (name) VALUES ('a'), ('b') RETURNING id, upper(name) AS up", owner)
    assert res.affected == 2
    assert res.rows == [{"id": 1, "up": "A"}, {"id": 2, "up": "B"}]
    assert res.to_dict()["rows"] == res.rows

    res = engine.execute("UPDATE t SET name = 'z' WHERE id = 2 RETURNING *", owner)
    assert res.rows == [{"id": 2, "name": "z"}]

    res = engine.execute("DELETE FROM t WHERE id = 1 RETURNING name", owner)
    assert res.rows == [{"name": "a"}]


def test_hidden_columns(run):
    run("CREATE TABLE t (a INTEGER)")
    run("INSERT INTO t (a) VALUES (1)")
    assert run("SELECT * FROM t") == [{"a": 1}]
    row = run("SELECT _id, _createdAt, a FROM t")[0]
    assert len(row["_id"]) == 36
    assert row["_createdAt"][:2] == "20"


def test_insert_select(run):
    run("CREATE TABLE src (a INTEGER, b TEXT)")
    run("CREATE TABLE dst (a INTEGER, b TEXT)")
    run("INSERT INTO src (a, b) VALUES (1, 'x'), (2, 'y')")
    run("INSERT INTO dst (a, b) SELECT a * 10, b FROM src WHERE a > 1")
    assert run("SELECT * FROM dst") == [{"a": 20, "b": "y"}]


def test_with_before_insert(run):
    run("CREATE TABLE dst (n INTEGER)")
    run("WITH nums AS (SELECT 1 AS n UNION ALL SELECT 2) INSERT INTO dst (n) SELECT n FROM nums")
    assert run("SELECT n FROM dst ORDER BY n") == [{"n": 1}, {"n": 2}]


def test_multi_statement_script(engine, owner):
    res = engine.execute(
        "CREATE TABLE t (a INTEGER); INSERT INTO t (a) VALUES (1), (2); SELECT COUNT(*) AS n FROM t;",
        owner,
    )
    assert res.success
    assert len(res.statements) == 3
    assert res.rows == [{"n": 2}]


def test_script_stops_at_first_failure(engine, owner):
    res = engine.execute(
        "CREATE TABLE t (a INTEGER); INSERT INTO ghost (a) VALUES (1); INSERT INTO t (a) VALUES (1)",
        owner,
    )
    assert not res.success
    assert len(res.statements) == 2
    assert engine.execute("SELECT * FROM t", owner).rows == []


def test_execute_or_raise(engine, owner):
    import pytest

    from tenantsql import NotFoundError

    with pytest.raises(NotFoundError):
        engine.execute_or_raise("SELECT * FROM ghost", owner)


def test_numeric_text_is_coerced_for_number_columns(run, fail):
    run("CREATE TABLE m (v REAL)")
    run("INSERT INTO m (v) VALUES (' 3.5 '), ('7')")
    assert run("SELECT v FROM m") == [{"v": 3.5}, {"v": 7}]
    assert fail("INSERT INTO m (v) VALUES ('nan')").error_kind == "validation"
    assert fail("INSERT INTO m (v) VALUES ('inf')").error_kind == "validation"
    assert fail("INSERT INTO m (v) VALUES ('12abc')").error_kind == "validation"


def test_untruncated_result_has_no_truncated_key(engine, owner, run):
    run("CREATE TABLE t (a INTEGER)")
    run("INSERT INTO t (a) VALUES (1)")
    res = engine.execute("SELECT a FROM t", owner)
    assert res.truncated is False
    assert "truncated" not in res.to_dict()
