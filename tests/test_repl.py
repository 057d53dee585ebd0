from tenantsql.repl import describe, format_table, is_complete_statement, print_result, repl
from tenantsql.results import ExecutionResult


def test_is_complete_statement():
    assert not is_complete_statement("SELECT 1")
    assert is_complete_statement("SELECT 1;")
    assert not is_complete_statement("SELECT 'a;b'")
    assert not is_complete_statement('SELECT "weird;name" FROM t')
    assert is_complete_statement("SELECT 'a;b';")


def test_format_table():
    out = format_table(["id", "name"], [[1, "Alice"], [22, None]])
    lines = out.splitlines()
    assert lines[0] == "id | name "
    assert lines[1] == "---+------"
    assert lines[2] == "1  | Alice"
    assert lines[3] == "22 | NULL "


def test_print_result_variants(capsys):
    print_result(ExecutionResult.failure("boom", "execution"))
    print_result(ExecutionResult(success=True, rows=[{"a": 1}], columns=["a"]))
    print_result(ExecutionResult(success=True, affected=2, message="DELETE 2"))
    print_result(ExecutionResult(success=True, message='Table "t" created'))
    out = capsys.readouterr().out
    assert "boom" in out
    assert "(1 row(s))" in out
    assert "DELETE 2" in out and "rows_affected=2" in out
    assert 'Table "t" created' in out


def test_describe(engine, owner, run):
    run("CREATE TABLE t (id SERIAL PRIMARY KEY, email TEXT UNIQUE NOT NULL, status TEXT DEFAULT 'new')")
    text = describe(engine.describe_table(owner, "t"))
    assert text.splitlines() == [
        "TABLE t",
        "  - id SERIAL PRIMARY KEY DEFAULT NEXTVAL()",
        "  - email TEXT UNIQUE NOT NULL",
        "  - status TEXT DEFAULT 'new'",
    ]


def test_repl_session(engine, owner, monkeypatch, capsys):
    lines = iter([
        ".tables",
        "CREATE TABLE notes (id SERIAL, body TEXT);",
        "INSERT INTO notes (body)",
        "VALUES ('hello');",
        "SELECT body FROM notes;",
        ".schema notes",
        ".schema",
        ".bogus",
        ".exit",
    ])
    monkeypatch.setattr("builtins.input", lambda prompt="": next(lines))
    assert repl(engine, owner) == 0
    out = capsys.readouterr().out
    assert "(no tables)" in out
    assert 'Table "notes" created' in out
    assert "INSERT 0 1" in out
    assert "hello" in out and "(1 row(s))" in out
    assert "TABLE notes" in out
    assert "Usage: .schema <table>" in out
    assert "Unknown command: .bogus" in out


def test_repl_exits_on_eof(engine, owner, monkeypatch):
    def eof(prompt=""):
        raise EOFError

    monkeypatch.setattr("builtins.input", eof)
    assert repl(engine, owner) == 0
