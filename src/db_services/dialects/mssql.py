"""SQL Server dialect strategy."""

from typing import Optional

from sqlalchemy.dialects.mssql.base import MSDialect

from db_services.core.validation import Pairs, Validator
from db_services.dialects.base import Dialect, DialectStrategy
from db_services.models.query import SqlStatement
from db_services.models.table import FieldDescriptor


class SQLServerStrategy(DialectStrategy):
    """SQL Server: INFORMATION_SCHEMA metadata, IDENTITY keys, OFFSET/FETCH paging."""

    dialect = Dialect.MSSQL
    sqlalchemy_dialect = MSDialect
    quote_chars = ("[", "]")

    type_map = {
        "Boolean": "bit",
        "Byte": "tinyint",
        "SByte": "smallint",
        "Byte[]": "varbinary",
        "Char": "nchar",
        "DateOnly": "date",
        "DateTime": "datetime",
        "DateTimeOffset": "datetimeoffset",
        "Decimal": "money",
        "Double": "float",
        "Guid": "uniqueidentifier",
        "Int16": "smallint",
        "Int32": "int",
        "Int64": "bigint",
        "UInt16": "int",
        "UInt32": "bigint",
        "UInt64": "decimal(20,0)",
        "Single": "real",
        "String": "nvarchar",
        "TimeOnly": "time",
        "TimeSpan": "time",
    }

    native_type_map = {
        "bit": "Boolean",
        "tinyint": "Byte",
        "smallint": "Int16",
        "int": "Int32",
        "bigint": "Int64",
        "decimal": "Decimal",
        "numeric": "Decimal",
        "money": "Decimal",
        "smallmoney": "Decimal",
        "float": "Double",
        "real": "Single",
        "date": "DateOnly",
        "datetime": "DateTime",
        "datetime2": "DateTime",
        "smalldatetime": "DateTime",
        "datetimeoffset": "DateTimeOffset",
        "time": "TimeOnly",
        "char": "String",
        "nchar": "String",
        "varchar": "String",
        "nvarchar": "String",
        "text": "String",
        "ntext": "String",
        "xml": "String",
        "uniqueidentifier": "Guid",
        "binary": "Byte[]",
        "varbinary": "Byte[]",
        "image": "Byte[]",
    }

    def column_type(self, descriptor: FieldDescriptor) -> str:
        """Variable-length types need a length; key columns must be indexable."""
        native = super().column_type(descriptor)
        if native in ("nvarchar", "varbinary"):
            return f"{native}(450)" if descriptor.is_primary_key else f"{native}(max)"
        if native == "nchar":
            return "nchar(1)"
        return native

    def list_tables(self, include_views: bool = True) -> SqlStatement:
        types = "('BASE TABLE', 'VIEW')" if include_views else "('BASE TABLE')"
        return self._metadata(
            "SELECT TABLE_NAME AS table_name FROM INFORMATION_SCHEMA.TABLES "
            f"WHERE TABLE_TYPE IN {types} ORDER BY TABLE_NAME;"
        )

    def columns_of(self, table_name: str) -> SqlStatement:
        return self._metadata(
            "SELECT c.COLUMN_NAME AS column_name, c.DATA_TYPE AS data_type, "
            "c.IS_NULLABLE AS is_nullable, "
            "CASE WHEN k.COLUMN_NAME IS NULL THEN 0 ELSE 1 END AS is_primary_key "
            "FROM INFORMATION_SCHEMA.COLUMNS c "
            "LEFT JOIN (SELECT ku.TABLE_NAME, ku.COLUMN_NAME "
            "FROM INFORMATION_SCHEMA.TABLE_CONSTRAINTS tc "
            "JOIN INFORMATION_SCHEMA.KEY_COLUMN_USAGE ku "
            "ON tc.CONSTRAINT_NAME = ku.CONSTRAINT_NAME "
            "AND tc.CONSTRAINT_TYPE = 'PRIMARY KEY') k "
            "ON c.TABLE_NAME = k.TABLE_NAME AND c.COLUMN_NAME = k.COLUMN_NAME "
            "WHERE c.TABLE_NAME = :table_name ORDER BY c.ORDINAL_POSITION;",
            table_name,
        )

    def foreign_keys_of(self, table_name: str) -> SqlStatement:
        return self._metadata(
            "SELECT kcu.COLUMN_NAME AS column_name, ccu.TABLE_NAME AS referenced_table, "
            "ccu.COLUMN_NAME AS referenced_column "
            "FROM INFORMATION_SCHEMA.REFERENTIAL_CONSTRAINTS rc "
            "JOIN INFORMATION_SCHEMA.KEY_COLUMN_USAGE kcu "
            "ON rc.CONSTRAINT_NAME = kcu.CONSTRAINT_NAME "
            "JOIN INFORMATION_SCHEMA.CONSTRAINT_COLUMN_USAGE ccu "
            "ON rc.UNIQUE_CONSTRAINT_NAME = ccu.CONSTRAINT_NAME "
            "WHERE kcu.TABLE_NAME = :table_name;",
            table_name,
        )

    def table_exists(self, table_name: str) -> SqlStatement:
        return self._metadata(
            "SELECT TABLE_NAME FROM INFORMATION_SCHEMA.TABLES WHERE TABLE_NAME = :table_name;",
            table_name,
        )

    def _identity_column(self, descriptor: FieldDescriptor) -> str:
        return (
            f"{self.format_identifier(descriptor.name)} "
            f"{self.column_type(descriptor)} IDENTITY(1,1) PRIMARY KEY"
        )

    def last_insert_id(self, table_name: str, id_column: str = "Id") -> SqlStatement:
        self.format_identifier(table_name)
        return self._unbound("SELECT @@IDENTITY AS LastId;")

    def paginate(self, skip: Optional[int], take: Optional[int], ordered: bool) -> str:
        """OFFSET/FETCH, which SQL Server only accepts after an ORDER BY."""
        if take is None and not skip:
            return ""
        clause = "" if ordered else " ORDER BY (SELECT NULL)"
        clause += f" OFFSET {int(skip or 0)} ROWS"
        if take is not None:
            clause += f" FETCH NEXT {int(take)} ROWS ONLY"
        return clause

    def call_procedure(
        self,
        procedure_name: str,
        pairs: Optional[Pairs] = None,
        parameterized: Optional[bool] = None,
    ) -> SqlStatement:
        """``EXEC name @a = ..., @b = ...;``"""
        bind = self.builder(parameterized)
        arguments = ", ".join(
            f"@{name} = {bind(value)}" for name, value in Validator.normalize_pairs(pairs or {})
        )
        sql = f"EXEC {self.format_identifier(procedure_name)}"
        if arguments:
            sql += f" {arguments}"
        return bind.statement(sql + self.terminator)
