"""Typed errors raised by the data-access engine.

Every public operation either returns a well-formed result or raises one of
these. Driver exceptions are chained (``raise ... from exc``) so the original
traceback is never lost.
"""

from typing import Optional


class DbServiceError(Exception):
    """Base class for all data-access failures."""

    def __init__(
        self,
        message: str,
        table_name: Optional[str] = None,
        operation: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.table_name = table_name
        self.operation = operation

    def __str__(self) -> str:
        context = []
        if self.operation:
            context.append(f"operation={self.operation}")
        if self.table_name:
            context.append(f"table={self.table_name}")
        if not context:
            return self.message
        return f"{self.message} ({', '.join(context)})"


class DbValidationError(DbServiceError, ValueError):
    """Identifier, WHERE fragment or value rejected before reaching the driver."""

    def __init__(
        self,
        message: str,
        field_name: Optional[str] = None,
        table_name: Optional[str] = None,
        operation: Optional[str] = None,
    ):
        super().__init__(message, table_name=table_name, operation=operation)
        self.field_name = field_name


class DbConnectionError(DbServiceError):
    """The database connection could not be opened or maintained."""


class DbQueryError(DbServiceError):
    """The driver rejected a generated statement."""

    def __init__(
        self,
        message: str,
        sql: Optional[str] = None,
        table_name: Optional[str] = None,
        operation: Optional[str] = None,
    ):
        super().__init__(message, table_name=table_name, operation=operation)
        self.sql = sql

    def __str__(self) -> str:
        text = super().__str__()
        if self.sql:
            return f"{text}\nSQL: {self.sql}"
        return text


class TableNotFoundError(DbServiceError):
    """Table name absent from the refreshed table list."""

    def __init__(self, table_name: str, operation: Optional[str] = None):
        super().__init__(
            f"Table '{table_name}' does not exist",
            table_name=table_name,
            operation=operation,
        )


class UnsupportedOperationError(DbServiceError, NotImplementedError):
    """The active dialect cannot express the requested operation."""

    def __init__(
        self,
        message: str,
        dialect: Optional[str] = None,
        table_name: Optional[str] = None,
        operation: Optional[str] = None,
    ):
        super().__init__(message, table_name=table_name, operation=operation)
        self.dialect = dialect


class RetriesExhaustedError(DbServiceError):
    """A transient failure persisted through every retry attempt."""

    def __init__(
        self,
        last_error: BaseException,
        attempts: int,
        table_name: Optional[str] = None,
        operation: Optional[str] = None,
        sql: Optional[str] = None,
    ):
        super().__init__(
            f"Operation failed after {attempts} attempts: {last_error}",
            table_name=table_name,
            operation=operation,
        )
        self.last_error = last_error
        self.attempts = attempts
        self.sql = sql


class OperationCancelledError(DbServiceError):
    """Cancellation was requested before the statement was issued."""
