"""
tenantsql/__main__.py

Package entry point for running tenantsql as a module:

    python -m tenantsql --owner <id> [--url <db-url>]

This also serves as the target for the console script entry point defined in
pyproject.toml:

    tenantsql --owner <id> [--url <db-url>]
"""

from __future__ import annotations

import sys


def main() -> int:
    """
    Entry point for `python -m tenantsql` and the installed `tenantsql` command.

    Returns:
        Exit code (0 for normal exit).
    """
    from .repl import main as repl_main

    return int(repl_main(sys.argv[1:]))


if __name__ == "__main__":
    raise SystemExit(main())
