def _names(rows):
    return [r["name"] for r in rows]


def test_scalar_subquery(run, employees):
    rows = run("SELECT name FROM employees WHERE salary > (SELECT AVG(salary) FROM employees) ORDER BY id")
    assert _names(rows) == ["Alice", "Bob"]


def test_scalar_subquery_in_select_list(run, employees):
    rows = run("SELECT name, (SELECT MAX(salary) FROM employees) - salary AS gap FROM employees WHERE id = 2")
    assert rows == [{"name": "Bob", "gap": 20}]


def test_scalar_subquery_with_several_rows_fails(fail, employees):
    res = fail("SELECT (SELECT id FROM employees) AS x")
    assert res.error_kind == "execution"


def test_in_and_not_in_subquery(run, employees):
    managers = run("SELECT name FROM employees WHERE id IN (SELECT manager_id FROM employees) ORDER BY id")
    assert _names(managers) == ["Alice", "Carol"]
    rows = run(
        "SELECT name FROM employees WHERE id NOT IN (SELECT manager_id FROM employees WHERE manager_id IS NOT NULL) "
        "ORDER BY id"
    )
    assert _names(rows) == ["Bob", "Dave", "Eve"]


def test_not_in_with_null_matches_nothing(run, employees):
    assert run("SELECT name FROM employees WHERE id NOT IN (SELECT manager_id FROM employees)") == []


def test_correlated_subquery(run, employees):
    rows = run(
        "SELECT e.name FROM employees e "
        "WHERE e.salary = (SELECT MAX(x.salary) FROM employees x WHERE x.dept = e.dept) ORDER BY e.id"
    )
    assert _names(rows) == ["Alice", "Carol", "Eve"]


def test_exists(run, employees):
    rows = run(
        "SELECT m.name FROM employees m "
        "WHERE EXISTS (SELECT 1 FROM employees e WHERE e.manager_id = m.id) ORDER BY m.id"
    )
    assert _names(rows) == ["Alice", "Carol"]
    rows = run(
        "SELECT m.name FROM employees m "
        "WHERE NOT EXISTS (SELECT 1 FROM employees e WHERE e.manager_id = m.id) ORDER BY m.id"
    )
    assert _names(rows) == ["Bob", "Dave", "Eve"]


def test_any_and_all(run, employees):
    rows = run("SELECT name FROM employees WHERE salary > ALL (SELECT salary FROM employees WHERE dept = 'sales')")
    assert _names(rows) == ["Alice", "Bob"]
    rows = run("SELECT name FROM employees WHERE salary = ANY (SELECT salary FROM employees WHERE dept = 'ops')")
    assert _names(rows) == ["Eve"]


def test_subquery_in_update_and_delete(run, employees):
    run("UPDATE employees SET salary = salary + 1 WHERE dept IN (SELECT dept FROM employees WHERE salary < 75)")
    assert run("SELECT salary FROM employees WHERE id = 5") == [{"salary": 71}]
    run("DELETE FROM employees WHERE salary < (SELECT AVG(salary) FROM employees)")
    assert [r["id"] for r in run("SELECT id FROM employees")] == [1, 2]


def test_having_with_subqueries(run, employees):
    rows = run(
        "SELECT dept FROM employees GROUP BY dept "
        "HAVING SUM(salary) > (SELECT AVG(salary) FROM employees) ORDER BY dept"
    )
    assert [r["dept"] for r in rows] == ["eng", "sales"]

    rows = run(
        "SELECT dept, COUNT(*) AS n FROM employees GROUP BY dept "
        "HAVING EXISTS (SELECT 1 FROM employees m WHERE m.dept = employees.dept AND m.salary >= 100)"
    )
    assert rows == [{"dept": "eng", "n": 2}]
