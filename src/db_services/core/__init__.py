"""Core data-access layer: validation, mapping, caching, retry and the services."""

from .cache import SchemaCache
from .connection import DatabaseConnection, ExecutionResult
from .registry import DatabaseRegistry
from .retry import RetryPolicy
from .service import AsyncDatabaseService
from .sync import DatabaseService
from .table_service import TableService
from .validation import Validator

__all__ = [
    "AsyncDatabaseService",
    "DatabaseConnection",
    "DatabaseRegistry",
    "DatabaseService",
    "ExecutionResult",
    "RetryPolicy",
    "SchemaCache",
    "TableService",
    "Validator",
]
