def _ids(rows):
    return [r["id"] for r in rows]


def test_select_star_in_insertion_order(run, employees):
    rows = run("SELECT * FROM employees")
    assert _ids(rows) == [1, 2, 3, 4, 5]
    assert list(rows[0]) == ["id", "name", "dept", "salary", "manager_id"]


def test_where_and_order(run, employees):
    rows = run("SELECT name FROM employees WHERE dept = 'eng' ORDER BY salary DESC")
    assert rows == [{"name": "Alice"}, {"name": "Bob"}]


def test_nulls_sort_last_ascending_and_first_descending(run, employees):
    assert _ids(run("SELECT id FROM employees ORDER BY manager_id, id")) == [2, 3, 5, 4, 1]
    assert _ids(run("SELECT id FROM employees ORDER BY manager_id DESC, id")) == [1, 4, 2, 3, 5]
    assert _ids(run("SELECT id FROM employees ORDER BY manager_id NULLS FIRST, id")) == [1, 2, 3, 5, 4]


def test_limit_offset(run, employees):
    assert _ids(run("SELECT id FROM employees ORDER BY id LIMIT 2 OFFSET 1")) == [2, 3]
    assert _ids(run("SELECT id FROM employees LIMIT 2")) == [1, 2]
    assert run("SELECT id FROM employees LIMIT 0") == []


def test_distinct(run, employees):
    rows = run("SELECT DISTINCT dept FROM employees ORDER BY dept")
    assert [r["dept"] for r in rows] == ["eng", "ops", "sales"]


def test_like_is_case_sensitive_ilike_is_not(run, employees):
    assert run("SELECT name FROM employees WHERE name LIKE 'a%'") == []
    assert run("SELECT name FROM employees WHERE name ILIKE 'a%'") == [{"name": "Alice"}]
    rows = run("SELECT name FROM employees WHERE name LIKE '%e' ORDER BY name")
    assert [r["name"] for r in rows] == ["Alice", "Dave", "Eve"]
    assert _ids(run("SELECT id FROM employees WHERE name NOT LIKE '_o%' ORDER BY id")) == [1, 3, 4, 5]


def test_between_in_and_is_null(run, employees):
    assert _ids(run("SELECT id FROM employees WHERE salary BETWEEN 80 AND 100")) == [2, 3, 4]
    assert _ids(run("SELECT id FROM employees WHERE dept IN ('ops', 'sales')")) == [3, 4, 5]
    assert _ids(run("SELECT id FROM employees WHERE dept NOT IN ('ops', 'sales')")) == [1, 2]
    assert _ids(run("SELECT id FROM employees WHERE manager_id IS NULL")) == [1]
    assert len(run("SELECT id FROM employees WHERE manager_id IS NOT NULL")) == 4


def test_null_comparisons_filter_out(run, employees):
    assert _ids(run("SELECT id FROM employees WHERE manager_id = NULL")) == []
    assert _ids(run("SELECT id FROM employees WHERE manager_id <> 1")) == [4]


def test_case_expression(run, employees):
    rows = run(
        "SELECT name, CASE WHEN salary >= 100 THEN 'high' WHEN salary >= 80 THEN 'mid' ELSE 'low' END AS band "
        "FROM employees ORDER BY id"
    )
    assert [r["band"] for r in rows] == ["high", "high", "mid", "mid", "low"]


def test_output_column_names(run, employees):
    res = run("SELECT COUNT(*), upper(name), 1 + 1, salary AS pay FROM employees WHERE id = 1")
    assert res == [{"count": 1, "upper": "ALICE", "?column?": 2, "pay": 120}]


def test_select_without_from_and_exact_division(run):
    assert run("SELECT 7 / 2 AS a, 6 / 2 AS b, 7 % 3 AS c, 2 * 3.5 AS d") == [
        {"a": 3.5, "b": 3, "c": 1, "d": 7.0}
    ]


def test_unknown_column_reads_as_null(run, employees):
    assert run("SELECT nope FROM employees WHERE id = 1") == [{"nope": None}]


def test_column_names_resolve_case_insensitively(run, employees):
    assert run("SELECT NAME FROM employees WHERE ID = 1") == [{"name": "Alice"}]


def test_duplicate_output_names_first_wins(engine, owner, employees):
    res = engine.execute(
        "SELECT e.id, m.id FROM employees e JOIN employees m ON e.manager_id = m.id WHERE e.id = 4",
        owner,
    )
    assert res.columns == ["id", "id"]
    assert res.rows == [{"id": 4}]


def test_order_by_alias_and_position(run, employees):
    assert run("SELECT name, salary * 2 AS double_pay FROM employees ORDER BY double_pay DESC LIMIT 1") == [
        {"name": "Alice", "double_pay": 240}
    ]
    assert run("SELECT name, salary FROM employees ORDER BY 2 LIMIT 1") == [{"name": "Eve", "salary": 70}]


def test_order_by_expression_not_in_select_list(run, employees):
    rows = run("SELECT name FROM employees ORDER BY salary % 50, id")
    assert [r["name"] for r in rows] == ["Bob", "Alice", "Eve", "Dave", "Carol"]


def test_qualified_star(run, employees):
    assert run("SELECT e.* FROM employees e WHERE e.id = 5") == [
        {"id": 5, "name": "Eve", "dept": "ops", "salary": 70, "manager_id": 1}
    ]


def test_derived_table(run, employees):
    rows = run(
        "SELECT d.dept, d.top FROM (SELECT dept, MAX(salary) AS top FROM employees GROUP BY dept) d "
        "WHERE d.top > 75 ORDER BY d.top"
    )
    assert rows == [{"dept": "sales", "top": 90}, {"dept": "eng", "top": 120}]


def test_casts(run):
    rows = run("SELECT CAST('42' AS INTEGER) AS i, '3.5'::numeric AS n, 1::text AS s, 'abc'::integer AS bad")
    assert rows == [{"i": 42, "n": 3.5, "s": "1", "bad": None}]


def test_json_operators(run):
    run("CREATE TABLE events (payload JSONB)")
    run("INSERT INTO events (payload) VALUES ({{p}})", {"p": {"user": {"name": "ann"}, "tags": ["a", "b"]}})
    rows = run(
        "SELECT payload->'user'->>'name' AS who, payload->'tags'->>0 AS first_tag, "
        "payload->>'missing' AS missing FROM events"
    )
    assert rows == [{"who": "ann", "first_tag": "a", "missing": None}]
    assert run("SELECT COUNT(*) AS n FROM events WHERE payload->'user'->>'name' = 'ann'") == [{"n": 1}]


def test_boolean_logic_with_nulls(run):
    rows = run("SELECT NULL AND FALSE AS a, NULL OR TRUE AS b, NOT (1 = 1) AS c, NULL = NULL AS d")
    assert rows == [{"a": False, "b": True, "c": False, "d": None}]


def test_is_distinct_from(run, employees):
    assert _ids(run("SELECT id FROM employees WHERE manager_id IS DISTINCT FROM 1 ORDER BY id")) == [1, 4]
    assert _ids(run("SELECT id FROM employees WHERE manager_id IS NOT DISTINCT FROM NULL")) == [1]
