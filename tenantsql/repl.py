"""
tenantsql/repl.py

Interactive REPL (Read-Eval-Print Loop) for tenantsql.

Responsibilities:
- Provide a CLI shell for executing SQL against one owner's virtual tables.
- Support multiline SQL input until a semicolon ';' is entered outside of quotes.
- Display query results in a readable table format.
- Provide small meta-commands for introspection:
    - .help
    - .exit / .quit
    - .tables
    - .schema <table>

Usage:
    python -m tenantsql --owner alice [--url sqlite:///tenantsql.db]
"""

from __future__ import annotations

import argparse
import logging
from typing import Iterable

try:
    import readline  # noqa: F401
except ImportError:
    # readline is optional; if missing, REPL still works.
    readline = None  # type: ignore[assignment]

from .catalog import TableMeta
from .config import EngineConfig
from .engine import SqlEngine
from .errors import TenantSQLError
from .results import ExecutionResult

PROMPT = "tenantsql> "
PROMPT_CONT = "....> "


def is_complete_statement(buf: str) -> bool:
    """
    Decide whether the current buffer contains at least one complete statement.

    A statement is considered complete when a semicolon ';' appears outside of
    single-quoted string literals and double-quoted identifiers.

    Args:
        buf: Current accumulated input buffer.

    Returns:
        True if complete, else False.
    """
    quote: str | None = None
    for ch in buf:
        if quote is not None:
            if ch == quote:
                quote = None
        elif ch in ("'", '"'):
            quote = ch
        elif ch == ";":
            return True
    return False


def format_table(columns: list[str], rows: list[list[object]]) -> str:
    """
    Pretty-print rows as an aligned ASCII table.

    Args:
        columns: Column header list.
        rows: Row values list.

    Returns:
        A formatted string suitable for printing to console.
    """
    cols = [str(c) for c in columns]
    str_rows = [[("NULL" if v is None else str(v)) for v in r] for r in rows]

    widths = [len(c) for c in cols]
    for r in str_rows:
        for i, cell in enumerate(r):
            widths[i] = max(widths[i], len(cell))

    def fmt_row(r: Iterable[str]) -> str:
        return " | ".join(cell.ljust(widths[i]) for i, cell in enumerate(r))

    sep = "-+-".join("-" * w for w in widths)

    out: list[str] = []
    out.append(fmt_row(cols))
    out.append(sep)
    for r in str_rows:
        out.append(fmt_row(r))
    return "\n".join(out)


def print_result(res: ExecutionResult) -> None:
    """
    Print one statement's result.

    Args:
        res: ExecutionResult of a single statement.
    """
    if not res.success:
        print(res.error)
        return

    if res.rows is not None:
        columns = res.columns or (list(res.rows[0].keys()) if res.rows else [])
        print(format_table(columns, [[row.get(c) for c in columns] for row in res.rows]))
        print(f"({len(res.rows)} row(s))")
        if res.affected is not None:
            print(f"rows_affected={res.affected}")
        return

    if res.affected is not None:
        print(res.message)
        print(f"rows_affected={res.affected}")
        return

    print(res.message or "OK")


def cmd_tables(engine: SqlEngine, owner_id: str) -> None:
    """
    Meta-command: list the owner's tables.

    Args:
        engine: SqlEngine instance.
        owner_id: Owner the REPL is scoped to.
    """
    names = sorted(tbl.display_name for tbl in engine.list_tables(owner_id))
    if not names:
        print("(no tables)")
        return
    for n in names:
        print(n)


def describe(table: TableMeta) -> str:
    """Render a table's columns the way .schema prints them."""
    lines = [f"TABLE {table.display_name}"]
    for c in table.columns:
        flags: list[str] = []
        if c.primary_key:
            flags.append("PRIMARY KEY")
        elif c.unique:
            flags.append("UNIQUE")
        if c.not_null and not c.primary_key:
            flags.append("NOT NULL")
        if c.default is not None:
            if "function" in c.default:
                flags.append(f"DEFAULT {c.default['function']}()")
            else:
                flags.append(f"DEFAULT {c.default['value']!r}")
        suffix = (" " + " ".join(flags)) if flags else ""
        lines.append(f"  - {c.name} {c.type_sql}{suffix}")
    return "\n".join(lines)


def cmd_schema(engine: SqlEngine, owner_id: str, table: str) -> None:
    """
    Meta-command: print a table's schema.

    Args:
        engine: SqlEngine instance.
        owner_id: Owner the REPL is scoped to.
        table: Table name.
    """
    try:
        meta = engine.describe_table(owner_id, table)
    except TenantSQLError as e:
        print(e)
        return
    print(describe(meta))


def repl(engine: SqlEngine, owner_id: str) -> int:
    """
    Run the interactive REPL.

    Args:
        engine: Open SqlEngine.
        owner_id: Owner every statement runs as.

    Returns:
        Process exit code (0 on normal exit).
    """
    print(f"tenantsql REPL (owner={owner_id})")
    print("Type .help for commands. End SQL with ';'.")

    buf = ""
    while True:
        try:
            prompt = PROMPT if not buf else PROMPT_CONT
            line = input(prompt)
        except EOFError:
            print()
            return 0
        except KeyboardInterrupt:
            # Clear current buffer on Ctrl+C
            print()
            buf = ""
            continue

        line_stripped = line.strip()

        # Meta commands only apply if we're not in the middle of a multi-line SQL buffer.
        if not buf and line_stripped.startswith("."):
            parts = line_stripped.split()
            cmd = parts[0].lower()

            if cmd in (".exit", ".quit"):
                return 0

            if cmd == ".help":
                print("Meta commands:")
                print("  .help              show this help")
                print("  .tables            list tables")
                print("  .schema <table>    show table schema")
                print("  .exit / .quit      exit")
                print()
                print("SQL statements end with ';'. Example:")
                print("  CREATE TABLE users (id SERIAL PRIMARY KEY, email VARCHAR(255) UNIQUE NOT NULL);")
                print("  INSERT INTO users (email) VALUES ('a@b.com');")
                print("  SELECT * FROM users;")
                continue

            if cmd == ".tables":
                cmd_tables(engine, owner_id)
                continue

            if cmd == ".schema":
                if len(parts) != 2:
                    print("Usage: .schema <table>")
                else:
                    cmd_schema(engine, owner_id, parts[1])
                continue

            print(f"Unknown command: {cmd}. Type .help")
            continue

        buf += line + "\n"
        if not is_complete_statement(buf):
            continue

        # Execute buffer as a script (supports multiple statements separated by ;)
        result = engine.execute(buf, owner_id)
        for r in result.statements or [result]:
            print_result(r)

        buf = ""


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="tenantsql", description="Interactive shell for tenantsql virtual tables.")
    parser.add_argument("--owner", required=True, help="owner id every statement runs as")
    parser.add_argument("--url", default=None, help="SQLAlchemy database URL (default: TENANTSQL_DATABASE_URL)")
    parser.add_argument("--log-level", default=None, help="logging level (default: TENANTSQL_LOG_LEVEL)")
    return parser


def main(argv: list[str] | None = None) -> int:
    """
    CLI entrypoint.

    Args:
        argv: Arguments without the program name (default: sys.argv[1:]).

    Returns:
        Exit code.
    """
    args = build_arg_parser().parse_args(argv)
    config = EngineConfig.from_env()
    logging.basicConfig(
        level=(args.log_level or config.log_level).upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    engine = SqlEngine.open(args.url, config)
    try:
        return repl(engine, args.owner)
    finally:
        engine.close()
