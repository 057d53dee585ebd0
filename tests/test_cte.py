from tenantsql import EngineConfig, SqlEngine


def test_simple_cte(run, employees):
    rows = run(
        "WITH eng AS (SELECT * FROM employees WHERE dept = 'eng') "
        "SELECT name FROM eng ORDER BY salary"
    )
    assert rows == [{"name": "Bob"}, {"name": "Alice"}]


def test_later_cte_sees_earlier(run, employees):
    rows = run(
        "WITH totals AS (SELECT dept, SUM(salary) AS total FROM employees GROUP BY dept), "
        "big AS (SELECT dept FROM totals WHERE total > 100) "
        "SELECT dept FROM big ORDER BY dept"
    )
    assert [r["dept"] for r in rows] == ["eng", "sales"]


def test_cte_column_list(run):
    assert run("WITH t(a, b) AS (SELECT 1, 2) SELECT b, a FROM t") == [{"b": 2, "a": 1}]


def test_cte_shadows_table(run, employees):
    rows = run("WITH employees AS (SELECT 'nobody' AS name) SELECT name FROM employees")
    assert rows == [{"name": "nobody"}]


def test_recursive_counter(run):
    rows = run(
        "WITH RECURSIVE nums(n) AS (SELECT 1 UNION ALL SELECT n + 1 FROM nums WHERE n < 10) "
        "SELECT n FROM nums"
    )
    assert [r["n"] for r in rows] == list(range(1, 11))


def test_recursive_seed_column_name_is_inferred(run):
    rows = run("WITH RECURSIVE c AS (SELECT 1 UNION ALL SELECT n + 1 FROM c WHERE n < 3) SELECT * FROM c")
    assert rows == [{"n": 1}, {"n": 2}, {"n": 3}]


def test_recursive_hierarchy(run, employees):
    rows = run(
        "WITH RECURSIVE chain AS ("
        " SELECT id, name, 0 AS depth FROM employees WHERE manager_id IS NULL"
        " UNION ALL"
        " SELECT e.id, e.name, c.depth + 1 FROM employees e JOIN chain c ON e.manager_id = c.id"
        ") SELECT name, depth FROM chain ORDER BY depth, id"
    )
    assert rows == [
        {"name": "Alice", "depth": 0},
        {"name": "Bob", "depth": 1},
        {"name": "Carol", "depth": 1},
        {"name": "Eve", "depth": 1},
        {"name": "Dave", "depth": 2},
    ]


def test_recursive_union_stops_on_cycle(run):
    rows = run(
        "WITH RECURSIVE cyc(n) AS (SELECT 0 UNION SELECT (n + 1) % 3 FROM cyc) SELECT n FROM cyc ORDER BY n"
    )
    assert [r["n"] for r in rows] == [0, 1, 2]


def test_recursive_iteration_bound(tmp_path):
    eng = SqlEngine.open(f"sqlite:///{tmp_path}/bound.db", EngineConfig(MAX_CTE_ITERATIONS=5))
    try:
        res = eng.execute(
            "WITH RECURSIVE forever(n) AS (SELECT 1 UNION ALL SELECT n + 1 FROM forever) SELECT COUNT(*) AS c FROM forever",
            "o",
        )
        assert res.success
        assert res.rows == [{"c": 6}]
    finally:
        eng.close()


def test_row_guard_truncates(tmp_path):
    eng = SqlEngine.open(f"sqlite:///{tmp_path}/guard.db", EngineConfig(MAX_RESULT_ROWS=4))
    try:
        res = eng.execute(
            "WITH RECURSIVE r(n) AS (SELECT 1 UNION ALL SELECT n + 1 FROM r WHERE n < 100) SELECT n FROM r",
            "o",
        )
        assert res.success
        assert [row["n"] for row in res.rows] == [1, 2, 3, 4]
        assert res.truncated
    finally:
        eng.close()
