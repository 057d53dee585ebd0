"""
tenantsql/config.py

Engine configuration.

Responsibilities:
- Name every resource limit the engine enforces (row guard, recursion bound, ...)
- Load overrides from the environment (and a .env file) via python-dotenv
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields, replace

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

ENV_PREFIX = "TENANTSQL_"

DEFAULT_DATABASE_URL = "sqlite:///tenantsql.db"

# Statements running longer than this are logged at WARNING level.
SLOW_STATEMENT_SECONDS = 5.0


@dataclass(frozen=True)
class EngineConfig:
    """
    Limits and settings for one SqlEngine.

    Attributes:
        MAX_RESULT_ROWS: Rows materialized for a single query result. Recursive CTE
            output and query results beyond this are truncated (with a warning log).
        MAX_CTE_ITERATIONS: Fixpoint iterations allowed for one recursive CTE.
        MAX_SUBQUERY_DEPTH: Nesting depth of subqueries/derived tables/CTE bodies.
        MAX_JOIN_TABLES: JOIN clauses allowed in one SELECT.
        MAX_JOIN_ROWS: Rows one join step may produce (after early WHERE filtering);
            more fails the statement with ResourceLimitError.
        MAX_SQL_LENGTH: Characters accepted per execute() call.
        MAX_TABLES_PER_OWNER: Logical tables one owner may create.
        database_url: SQLAlchemy URL of the physical store.
        locale: "en" or "pt", language of error messages.
        log_level: Level name used by the CLI when it configures logging.
    """
    MAX_RESULT_ROWS: int = 50_000
    MAX_CTE_ITERATIONS: int = 1_000
    MAX_SUBQUERY_DEPTH: int = 10
    MAX_JOIN_TABLES: int = 5
    MAX_JOIN_ROWS: int = 1_000_000
    MAX_SQL_LENGTH: int = 100_000
    MAX_TABLES_PER_OWNER: int = 50
    database_url: str = DEFAULT_DATABASE_URL
    locale: str = "en"
    log_level: str = "WARNING"

    @classmethod
    def from_env(cls, dotenv: bool = True) -> "EngineConfig":
        """
        Build a config from TENANTSQL_* environment variables.

        Args:
            dotenv: Load a .env file from the working directory first.

        Returns:
            EngineConfig with defaults for every variable that is not set.
        """
        if dotenv:
            load_dotenv()

        overrides: dict[str, object] = {}
        for f in fields(cls):
            raw = os.getenv(ENV_PREFIX + f.name.upper())
            if raw is None or raw == "":
                continue
            if f.type in ("int", int):
                try:
                    overrides[f.name] = int(raw)
                except ValueError:
                    logger.warning("Ignoring %s%s=%r: not an integer", ENV_PREFIX, f.name.upper(), raw)
                continue
            overrides[f.name] = raw

        return replace(cls(), **overrides)
