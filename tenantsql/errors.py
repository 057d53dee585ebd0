"""
tenantsql/errors.py

Centralized exception types for the tenantsql engine.

This module defines:
- A common base exception for all engine errors
- A lightweight Position structure for reporting syntax errors with line/column context
- One error class per failure category surfaced by SqlEngine.execute()

Every error carries an already-localized message (see tenantsql/messages.py), so the
engine boundary only needs str(exc) to build the failure result.
"""

from __future__ import annotations

from dataclasses import dataclass


class TenantSQLError(Exception):
    """
    Base class for all tenantsql errors.

    Catching this exception allows callers (engine boundary, REPL) to handle all
    engine errors without accidentally swallowing unrelated system exceptions.
    """

    kind = "error"


@dataclass(frozen=True)
class Position:
    """
    Represents a location in an input SQL string.

    Attributes:
        line: 1-based line number
        col:  1-based column number
    """
    line: int
    col: int


class SqlSyntaxError(TenantSQLError):
    """
    Raised when tokenization/parsing fails due to invalid SQL syntax.

    Args:
        message: Human readable explanation.
        position: Optional Position indicating where the error occurred.
    """

    kind = "syntax"

    def __init__(self, message: str, position: Position | None = None):
        self.message = message
        self.position = position
        super().__init__(self.__str__())

    def __str__(self) -> str:
        if self.position is None:
            return f"Syntax error: {self.message}"
        return f"Syntax error at line {self.position.line}, col {self.position.col}: {self.message}"


class NotSupportedError(TenantSQLError):
    """Raised by the safety gate for blocked statement kinds and system namespaces."""

    kind = "not_supported"


class NotFoundError(TenantSQLError):
    """Raised when a referenced logical table (or a required column) is absent."""

    kind = "not_found"


class AlreadyExistsError(TenantSQLError):
    """Raised on CREATE TABLE / RENAME TO / ADD COLUMN over an existing name."""

    kind = "already_exists"


class ValidationError(TenantSQLError):
    """
    Raised when a statement is well-formed but its data is not acceptable.

    Examples:
      - NOT NULL column missing on INSERT
      - a string written into an `object` or `array` column
      - duplicate value in a UNIQUE / PRIMARY KEY column
    """

    kind = "validation"


class ResourceLimitError(ValidationError):
    """Raised when a configured limit (SQL length, nesting depth, joins, tables) is exceeded."""

    kind = "resource_limit"


class UnresolvedVariableError(TenantSQLError):
    """Raised when a {{name}} placeholder has no supplied value."""

    kind = "unresolved_variable"

    def __init__(self, message: str, name: str):
        self.name = name
        super().__init__(message)


class ExecutionError(TenantSQLError):
    """
    Raised when a statement is valid but fails while being evaluated.

    Examples:
      - division by zero
      - scalar subquery returning more than one row
      - window function used outside SELECT / ORDER BY
    """

    kind = "execution"
