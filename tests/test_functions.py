import re

import pytest


def one(run, expr):
    return run(f"SELECT {expr} AS v")[0]["v"]


@pytest.mark.parametrize(
    "expr, expected",
    [
        ("upper('abc')", "ABC"),
        ("lower('AbC')", "abc"),
        ("length('hello')", 5),
        ("concat('a', NULL, 'b', 1)", "ab1"),
        ("concat_ws('-', 'a', NULL, 'b')", "a-b"),
        ("'a' || 'b' || 3", "ab3"),
        ("'a' || NULL", None),
        ("substring('hello', 2, 3)", "ell"),
        ("substr('hello', 3)", "llo"),
        ("trim('  x  ')", "x"),
        ("replace('a-b-c', '-', '+')", "a+b+c"),
        ("left('hello', 2)", "he"),
        ("right('hello', 3)", "llo"),
        ("position('l' IN 'hello')", 3),
        ("initcap('hello world')", "Hello World"),
        ("lpad('7', 3, '0')", "007"),
        ("split_part('a,b,c', ',', 2)", "b"),
        ("reverse('abc')", "cba"),
    ],
)
def test_string_functions(run, expr, expected):
    assert one(run, expr) == expected


@pytest.mark.parametrize(
    "expr, expected",
    [
        ("round(2.5)", 3),
        ("round(2.345, 2)", 2.35),
        ("abs(-4)", 4),
        ("ceil(1.2)", 2),
        ("floor(1.8)", 1),
        ("power(2, 10)", 1024),
        ("sqrt(16)", 4.0),
        ("mod(10, 3)", 1),
        ("greatest(3, NULL, 9, 1)", 9),
        ("least(3, 9, 1)", 1),
        ("nullif(5, 5)", None),
        ("coalesce(NULL, NULL, 'x')", "x"),
        ("-(3)", -3),
    ],
)
def test_math_and_conditional_functions(run, expr, expected):
    assert one(run, expr) == expected


@pytest.mark.parametrize(
    "expr, expected",
    [
        ("EXTRACT(YEAR FROM '2024-03-15')", 2024),
        ("date_part('month', '2024-03-15')", 3),
        ("date_trunc('month', '2024-03-15 10:30:00')", "2024-03-01T00:00:00"),
        ("'2024-03-15'::date + 10", "2024-03-25"),
        ("'2024-03-15'::date - '2024-03-01'::date", 14),
        ("to_char('2024-03-05', 'DD/MM/YYYY')", "05/03/2024"),
        ("make_date(2024, 2, 29)", "2024-02-29"),
        ("to_date('15/03/2024', 'DD/MM/YYYY')", "2024-03-15"),
    ],
)
def test_date_functions(run, expr, expected):
    assert one(run, expr) == expected


def test_now_and_current_date_are_stable_within_a_statement(run):
    row = run("SELECT NOW() AS a, NOW() AS b, CURRENT_DATE AS d")[0]
    assert row["a"] == row["b"]
    assert re.fullmatch(r"\d{4}-\d{2}-\d{2}", row["d"])
    assert row["a"].startswith(row["d"])


@pytest.mark.parametrize(
    "expr, expected",
    [
        ("json_build_object('a', 1, 'b', 'x')", {"a": 1, "b": "x"}),
        ("json_build_array(1, 'x', NULL)", [1, "x", None]),
        ("jsonb_array_length('[1, 2, 3]')", 3),
        ("jsonb_typeof('[1]'::jsonb)", "array"),
        ("array_length(ARRAY[1, 2, 3], 1)", 3),
        ("array_to_string(ARRAY['a', 'b'], '/')", "a/b"),
        ("string_to_array('a,b', ',')", ["a", "b"]),
        ("ARRAY[1, 2] || ARRAY[3]", [1, 2, 3]),
    ],
)
def test_json_and_array_functions(run, expr, expected):
    assert one(run, expr) == expected


def test_uuid_function(run):
    value = one(run, "gen_random_uuid()")
    assert re.fullmatch(r"[0-9a-f-]{36}", value)


def test_unknown_function_fails(fail):
    res = fail("SELECT no_such_fn(1)")
    assert res.error_kind == "execution"
    assert "no_such_fn" in res.error


def test_functions_over_table_columns(run, employees):
    rows = run("SELECT lower(name) || '@corp' AS email FROM employees WHERE salary >= 100 ORDER BY id")
    assert rows == [{"email": "alice@corp"}, {"email": "bob@corp"}]
