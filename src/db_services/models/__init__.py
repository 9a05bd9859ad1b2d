"""Pydantic models for configuration, table schemas and query intents."""

from db_services.models.config import DatabaseConfig
from db_services.models.definition import DeclaredTable, table_definition
from db_services.models.query import (
    Criterion,
    JoinType,
    QueryOperator,
    QueryOptions,
    QueryResult,
    SqlStatement,
)
from db_services.models.table import (
    FieldDescriptor,
    ForeignKeyInfo,
    Record,
    TableSchema,
)

__all__ = [
    "DatabaseConfig",
    "DeclaredTable",
    "table_definition",
    "Criterion",
    "JoinType",
    "QueryOperator",
    "QueryOptions",
    "QueryResult",
    "SqlStatement",
    "FieldDescriptor",
    "ForeignKeyInfo",
    "Record",
    "TableSchema",
]
