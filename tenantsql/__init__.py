"""
tenantsql

Multi-tenant virtual SQL engine: each owner gets logical tables whose rows are JSON
documents stored in one shared physical table.

Public API:
    SqlEngine.open(url) -> engine
    engine.execute(sql, owner_id, variables) -> ExecutionResult
"""

from .config import EngineConfig
from .engine import SqlEngine
from .errors import (
    AlreadyExistsError,
    ExecutionError,
    NotFoundError,
    NotSupportedError,
    ResourceLimitError,
    SqlSyntaxError,
    TenantSQLError,
    UnresolvedVariableError,
    ValidationError,
)
from .results import CommandOk, ExecutionResult, QueryResult

__all__ = [
    "AlreadyExistsError",
    "CommandOk",
    "EngineConfig",
    "ExecutionError",
    "ExecutionResult",
    "NotFoundError",
    "NotSupportedError",
    "QueryResult",
    "ResourceLimitError",
    "SqlEngine",
    "SqlSyntaxError",
    "TenantSQLError",
    "UnresolvedVariableError",
    "ValidationError",
]
