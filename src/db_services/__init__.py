"""
db_services - dialect-agnostic CRUD engine

Validated, parameterized data access for SQLite, SQL Server, MySQL,
PostgreSQL and Oracle through one async service (with a blocking facade).
"""

__version__ = "0.1.0"

from db_services.core import (
    AsyncDatabaseService,
    DatabaseRegistry,
    DatabaseService,
    RetryPolicy,
    SchemaCache,
    TableService,
    Validator,
)
from db_services.dialects import Dialect, DialectStrategy, create_dialect, detect_dialect
from db_services.exceptions import (
    DbConnectionError,
    DbQueryError,
    DbServiceError,
    DbValidationError,
    OperationCancelledError,
    RetriesExhaustedError,
    TableNotFoundError,
    UnsupportedOperationError,
)
from db_services.models import (
    Criterion,
    DatabaseConfig,
    DeclaredTable,
    FieldDescriptor,
    ForeignKeyInfo,
    JoinType,
    QueryOperator,
    QueryOptions,
    QueryResult,
    Record,
    TableSchema,
)

__all__ = [
    "AsyncDatabaseService",
    "DatabaseService",
    "DatabaseRegistry",
    "TableService",
    "RetryPolicy",
    "SchemaCache",
    "Validator",
    "Dialect",
    "DialectStrategy",
    "create_dialect",
    "detect_dialect",
    "DbServiceError",
    "DbValidationError",
    "DbConnectionError",
    "DbQueryError",
    "TableNotFoundError",
    "UnsupportedOperationError",
    "RetriesExhaustedError",
    "OperationCancelledError",
    "DatabaseConfig",
    "DeclaredTable",
    "Criterion",
    "JoinType",
    "QueryOperator",
    "QueryOptions",
    "QueryResult",
    "FieldDescriptor",
    "ForeignKeyInfo",
    "Record",
    "TableSchema",
]
