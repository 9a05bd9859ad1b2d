"""SQLite dialect strategy."""

import datetime
import decimal
import uuid
from typing import Any, Optional, Sequence

from sqlalchemy.dialects.sqlite.base import SQLiteDialect

from db_services.dialects.base import Dialect, DialectStrategy
from db_services.models.query import JoinType, SqlStatement
from db_services.models.table import FieldDescriptor


class SQLiteStrategy(DialectStrategy):
    """SQLite: sqlite_master and table-valued pragmas for metadata."""

    dialect = Dialect.SQLITE
    sqlalchemy_dialect = SQLiteDialect
    unbounded_limit = "-1"
    create_table_prefix = "CREATE TABLE IF NOT EXISTS"

    # Declared names are kept (BOOLEAN, DATETIME, ...) so the column type
    # still tells the mapper what a stored 0/1 or ISO string means.
    type_map = {
        "Boolean": "BOOLEAN",
        "Byte": "INTEGER",
        "SByte": "INTEGER",
        "Byte[]": "BLOB",
        "Char": "TEXT",
        "DateOnly": "DATE",
        "DateTime": "DATETIME",
        "DateTimeOffset": "DATETIME",
        "Decimal": "NUMERIC",
        "Double": "REAL",
        "Guid": "TEXT",
        "Int16": "INTEGER",
        "Int32": "INTEGER",
        "Int64": "INTEGER",
        "UInt16": "INTEGER",
        "UInt32": "INTEGER",
        "UInt64": "INTEGER",
        "Single": "REAL",
        "String": "TEXT",
        "TimeOnly": "TIME",
        "TimeSpan": "TEXT",
    }

    native_type_map = {
        "boolean": "Boolean",
        "bool": "Boolean",
        "bit": "Boolean",
        "integer": "Int64",
        "int": "Int32",
        "bigint": "Int64",
        "smallint": "Int16",
        "tinyint": "Byte",
        "real": "Double",
        "double": "Double",
        "float": "Double",
        "numeric": "Decimal",
        "decimal": "Decimal",
        "date": "DateOnly",
        "datetime": "DateTime",
        "timestamp": "DateTime",
        "time": "TimeOnly",
        "text": "String",
        "varchar": "String",
        "nvarchar": "String",
        "char": "String",
        "clob": "String",
        "blob": "Byte[]",
    }

    def adapt_parameter(self, value: Any) -> Any:
        """sqlite3 binds neither Decimal nor UUID; dates are stored as ISO text."""
        value = super().adapt_parameter(value)
        if isinstance(value, bool):
            return int(value)
        if isinstance(value, datetime.datetime):
            return value.isoformat(sep=" ")
        if isinstance(value, (datetime.date, datetime.time)):
            return value.isoformat()
        if isinstance(value, decimal.Decimal):
            return str(value)
        if isinstance(value, uuid.UUID):
            return str(value)
        return value

    def list_tables(self, include_views: bool = True) -> SqlStatement:
        types = "('table', 'view')" if include_views else "('table')"
        return self._metadata(
            f"SELECT name AS table_name FROM sqlite_master WHERE type IN {types} "
            "AND name NOT LIKE 'sqlite_%' ORDER BY name;"
        )

    def columns_of(self, table_name: str) -> SqlStatement:
        return self._metadata(
            "SELECT name AS column_name, type AS data_type, "
            "CASE WHEN \"notnull\" = 1 OR pk > 0 THEN 'NO' ELSE 'YES' END AS is_nullable, "
            "CASE WHEN pk > 0 THEN 1 ELSE 0 END AS is_primary_key "
            "FROM pragma_table_info(:table_name) ORDER BY cid;",
            table_name,
        )

    def foreign_keys_of(self, table_name: str) -> SqlStatement:
        return self._metadata(
            'SELECT "from" AS column_name, "table" AS referenced_table, '
            "COALESCE(\"to\", 'Id') AS referenced_column "
            "FROM pragma_foreign_key_list(:table_name) ORDER BY id, seq;",
            table_name,
        )

    def table_exists(self, table_name: str) -> SqlStatement:
        return self._metadata(
            "SELECT name FROM sqlite_master WHERE type IN ('table', 'view') "
            "AND name = :table_name COLLATE NOCASE;",
            table_name,
        )

    def _identity_column(self, descriptor: FieldDescriptor) -> str:
        return f"{self.format_identifier(descriptor.name)} INTEGER PRIMARY KEY AUTOINCREMENT"

    def truncate_table(self, table_name: str) -> SqlStatement:
        return self._unbound(f"DELETE FROM {self.format_identifier(table_name)};")

    def last_insert_id(self, table_name: str, id_column: str = "Id") -> SqlStatement:
        self.format_identifier(table_name)
        return self._unbound("SELECT last_insert_rowid() AS LastId;")

    def join(
        self,
        join_type,
        one_table: str,
        one_key: str,
        many_table: str,
        many_key: str,
        columns: Optional[Sequence[tuple[str, str]]] = None,
    ) -> SqlStatement:
        """RIGHT joins are rewritten as LEFT joins from the one side."""
        join_type = JoinType(join_type)
        if join_type is not JoinType.RIGHT:
            return super().join(join_type, one_table, one_key, many_table, many_key, columns)
        condition = (
            f"{self.format_identifier(many_table)}.{self.format_identifier(many_key)} = "
            f"{self.format_identifier(one_table)}.{self.format_identifier(one_key)}"
        )
        return self._join_sql(JoinType.LEFT, one_table, many_table, condition, columns)
