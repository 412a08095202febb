"""Error types raised by typed_sqlite."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from typed_sqlite.options import QueryOption


class TypedSqliteError(Exception):
    """Base class for all typed_sqlite errors."""


class SchemaError(TypedSqliteError, TypeError):
    """A record type cannot be mapped to a table schema."""

    def __init__(self, message: str, record_type: Any = None) -> None:
        super().__init__(message)
        self.record_type = record_type


class QueryConstraintError(TypedSqliteError, ValueError):
    """An option combination is not allowed for the query being built."""

    def __init__(
        self,
        message: str,
        operation: str = "",
        option: QueryOption | None = None,
    ) -> None:
        if operation:
            message = f"{operation}: {message}"
        super().__init__(message)
        self.operation = operation
        self.option = option


class ReferenceExpiredError(TypedSqliteError, ReferenceError):
    """The database a table was created from is closed or gone."""


class BackendError(TypedSqliteError):
    """Failure reported by the storage engine.

    Attributes:
        sql: The statement that failed, if any.
        message: The engine's own error message.
    """

    def __init__(self, message: str, sql: str | None = None) -> None:
        self.message = message
        self.sql = sql
        if sql:
            super().__init__(f"{message} (while executing: {sql})")
        else:
            super().__init__(message)
