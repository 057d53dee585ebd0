import pytest


@pytest.fixture
def scores(run):
    run("CREATE TABLE scores (name TEXT, score INTEGER)")
    run("INSERT INTO scores (name, score) VALUES ('a', 80), ('b', 90), ('c', 90), ('d', 70)")


def test_rank_and_dense_rank(run, scores):
    rows = run(
        "SELECT name, RANK() OVER (ORDER BY score DESC) AS r, DENSE_RANK() OVER (ORDER BY score DESC) AS dr "
        "FROM scores"
    )
    assert [r["r"] for r in rows] == [3, 1, 1, 4]
    assert [r["dr"] for r in rows] == [2, 1, 1, 3]


def test_row_number_per_partition(run, employees):
    rows = run(
        "SELECT name, ROW_NUMBER() OVER (PARTITION BY dept ORDER BY salary DESC) AS rn "
        "FROM employees ORDER BY id"
    )
    assert [r["rn"] for r in rows] == [1, 2, 1, 2, 1]


def test_lag_and_lead(run, employees):
    rows = run(
        "SELECT id, LAG(salary) OVER (ORDER BY id) AS prev, LEAD(salary, 1, 0) OVER (ORDER BY id) AS next "
        "FROM employees"
    )
    assert [r["prev"] for r in rows] == [None, 120, 100, 90, 80]
    assert [r["next"] for r in rows] == [100, 90, 80, 70, 0]


def test_running_and_partition_totals(run, employees):
    rows = run(
        "SELECT id, SUM(salary) OVER (ORDER BY id) AS running, "
        "SUM(salary) OVER (PARTITION BY dept) AS dept_total FROM employees"
    )
    assert [r["running"] for r in rows] == [120, 220, 310, 390, 460]
    assert [r["dept_total"] for r in rows] == [220, 220, 170, 170, 70]


def test_default_frame_includes_peers(run, scores):
    rows = run("SELECT name, SUM(score) OVER (ORDER BY score) AS s FROM scores")
    assert {r["name"]: r["s"] for r in rows} == {"d": 70, "a": 150, "b": 330, "c": 330}


def test_rows_frame(run, employees):
    rows = run(
        "SELECT id, SUM(salary) OVER (ORDER BY id ROWS BETWEEN 1 PRECEDING AND CURRENT ROW) AS pair "
        "FROM employees"
    )
    assert [r["pair"] for r in rows] == [120, 220, 190, 170, 150]


def test_first_and_last_value(run, employees):
    rows = run(
        "SELECT id, FIRST_VALUE(name) OVER (PARTITION BY dept ORDER BY salary) AS lowest, "
        "LAST_VALUE(name) OVER (PARTITION BY dept ORDER BY salary "
        "ROWS BETWEEN UNBOUNDED PRECEDING AND UNBOUNDED FOLLOWING) AS highest FROM employees ORDER BY id"
    )
    assert [r["lowest"] for r in rows] == ["Bob", "Bob", "Dave", "Dave", "Eve"]
    assert [r["highest"] for r in rows] == ["Alice", "Alice", "Carol", "Carol", "Eve"]


def test_ntile(run, employees):
    rows = run("SELECT NTILE(2) OVER (ORDER BY id) AS bucket FROM employees")
    assert [r["bucket"] for r in rows] == [1, 1, 1, 2, 2]


def test_window_over_groups(run, employees):
    rows = run(
        "SELECT dept, SUM(salary) AS total, RANK() OVER (ORDER BY SUM(salary) DESC) AS pos "
        "FROM employees GROUP BY dept ORDER BY pos"
    )
    assert rows == [
        {"dept": "eng", "total": 220, "pos": 1},
        {"dept": "sales", "total": 170, "pos": 2},
        {"dept": "ops", "total": 70, "pos": 3},
    ]


def test_window_in_order_by(run, employees):
    rows = run("SELECT name FROM employees ORDER BY ROW_NUMBER() OVER (ORDER BY salary) LIMIT 2")
    assert [r["name"] for r in rows] == ["Eve", "Dave"]


def test_ranking_function_needs_over(fail, employees):
    assert fail("SELECT ROW_NUMBER() FROM employees").error_kind == "execution"


def test_percent_rank_and_cume_dist(run, scores):
    rows = run(
        "SELECT name, PERCENT_RANK() OVER (ORDER BY score DESC) AS pr, "
        "CUME_DIST() OVER (ORDER BY score DESC) AS cd FROM scores"
    )
    by_name = {r["name"]: (r["pr"], r["cd"]) for r in rows}
    assert by_name["b"] == (0.0, 0.5)
    assert by_name["c"] == (0.0, 0.5)
    assert by_name["a"][0] == pytest.approx(2 / 3)
    assert by_name["a"][1] == 0.75
    assert by_name["d"] == (1.0, 1.0)


def test_percent_rank_of_single_row_partition_is_zero(run, scores):
    rows = run(
        "SELECT PERCENT_RANK() OVER (PARTITION BY name ORDER BY score) AS pr, "
        "CUME_DIST() OVER (PARTITION BY name ORDER BY score) AS cd FROM scores"
    )
    assert [r["pr"] for r in rows] == [0, 0, 0, 0]
    assert [r["cd"] for r in rows] == [1, 1, 1, 1]


def test_nth_value(run, employees):
    rows = run(
        "SELECT id, NTH_VALUE(name, 2) OVER (ORDER BY salary DESC) AS running_second, "
        "NTH_VALUE(name, 2) OVER (ORDER BY salary DESC "
        "ROWS BETWEEN UNBOUNDED PRECEDING AND UNBOUNDED FOLLOWING) AS second FROM employees ORDER BY id"
    )
    assert [r["running_second"] for r in rows] == [None, "Bob", "Bob", "Bob", "Bob"]
    assert [r["second"] for r in rows] == ["Bob"] * 5
