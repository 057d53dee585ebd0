import pytest


@pytest.fixture
def pair(run):
    run("CREATE TABLE a (v INTEGER)")
    run("CREATE TABLE b (v INTEGER)")
    run("INSERT INTO a (v) VALUES (1), (2), (2)")
    run("INSERT INTO b (v) VALUES (2), (3)")


def _values(rows):
    return [r["v"] for r in rows]


def test_union_removes_duplicates(run, pair):
    assert sorted(_values(run("SELECT v FROM a UNION SELECT v FROM b"))) == [1, 2, 3]


def test_union_all_keeps_duplicates(run):
    rows = run("SELECT 1 AS v UNION ALL SELECT 1 UNION ALL SELECT 2 UNION ALL SELECT 2")
    assert _values(rows) == [1, 1, 2, 2]


def test_intersect_and_except(run, pair):
    assert _values(run("SELECT v FROM a INTERSECT SELECT v FROM b")) == [2]
    assert _values(run("SELECT v FROM a EXCEPT SELECT v FROM b")) == [1]
    assert _values(run("SELECT v FROM b EXCEPT SELECT v FROM a")) == [3]


def test_all_variants_respect_multiplicity(run, pair):
    assert _values(run("SELECT v FROM a INTERSECT ALL SELECT v FROM b")) == [2]
    assert _values(run("SELECT v FROM a EXCEPT ALL SELECT v FROM b")) == [1, 2]


def test_order_by_and_limit_apply_to_whole_result(run, pair):
    rows = run("SELECT v FROM a UNION SELECT v FROM b ORDER BY v DESC LIMIT 2")
    assert _values(rows) == [3, 2]


def test_column_names_come_from_the_left_side(run):
    assert run("SELECT 1 AS first UNION SELECT 2 AS second ORDER BY 1") == [{"first": 1}, {"first": 2}]


def test_column_count_mismatch_fails(fail, pair):
    assert fail("SELECT v FROM a UNION SELECT v, v FROM b").error_kind == "execution"
