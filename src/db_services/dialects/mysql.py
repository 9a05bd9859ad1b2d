"""MySQL dialect strategy."""

from typing import Optional

from sqlalchemy.dialects.mysql.base import MySQLDialect

from db_services.core.validation import Pairs, Validator
from db_services.dialects.base import Dialect, DialectStrategy
from db_services.models.query import SqlStatement
from db_services.models.table import FieldDescriptor


class MySQLStrategy(DialectStrategy):
    """MySQL: INFORMATION_SCHEMA scoped to DATABASE(), AUTO_INCREMENT keys."""

    dialect = Dialect.MYSQL
    sqlalchemy_dialect = MySQLDialect
    quote_chars = ("`", "`")
    unbounded_limit = "18446744073709551615"
    create_table_prefix = "CREATE TABLE IF NOT EXISTS"

    type_map = {
        "Boolean": "TINYINT(1)",
        "Byte": "TINYINT UNSIGNED",
        "SByte": "TINYINT",
        "Byte[]": "BLOB",
        "Char": "CHAR(1)",
        "DateOnly": "DATE",
        "DateTime": "DATETIME",
        "DateTimeOffset": "DATETIME",
        "Decimal": "DECIMAL(18,2)",
        "Double": "DOUBLE",
        "Guid": "CHAR(36)",
        "Int16": "SMALLINT",
        "Int32": "INT",
        "Int64": "BIGINT",
        "UInt16": "SMALLINT UNSIGNED",
        "UInt32": "INT UNSIGNED",
        "UInt64": "BIGINT UNSIGNED",
        "Single": "FLOAT",
        "String": "TEXT",
        "TimeOnly": "TIME",
        "TimeSpan": "TIME",
    }

    # COLUMN_TYPE is read (not DATA_TYPE) so tinyint(1) is told apart from tinyint
    native_type_map = {
        "tinyint(1)": "Boolean",
        "bit(1)": "Boolean",
        "bool": "Boolean",
        "boolean": "Boolean",
        "tinyint": "Byte",
        "smallint": "Int16",
        "mediumint": "Int32",
        "int": "Int32",
        "integer": "Int32",
        "bigint": "Int64",
        "decimal": "Decimal",
        "numeric": "Decimal",
        "float": "Single",
        "double": "Double",
        "real": "Double",
        "date": "DateOnly",
        "datetime": "DateTime",
        "timestamp": "DateTime",
        "time": "TimeOnly",
        "year": "Int16",
        "char(36)": "Guid",
        "char": "String",
        "varchar": "String",
        "tinytext": "String",
        "text": "String",
        "mediumtext": "String",
        "longtext": "String",
        "enum": "String",
        "set": "String",
        "json": "String",
        "binary": "Byte[]",
        "varbinary": "Byte[]",
        "blob": "Byte[]",
        "tinyblob": "Byte[]",
        "mediumblob": "Byte[]",
        "longblob": "Byte[]",
    }

    def escape_string(self, value: str) -> str:
        """Backslash is an escape character in MySQL string literals."""
        return "'" + value.replace("\\", "\\\\").replace("'", "''") + "'"

    def native_to_logical(self, native_type: str) -> str:
        # "int(11) unsigned" -> "int(11)"
        return super().native_to_logical(native_type.replace(" unsigned", "").replace(" zerofill", ""))

    def column_type(self, descriptor: FieldDescriptor) -> str:
        """TEXT and BLOB cannot be keys without a prefix length."""
        native = super().column_type(descriptor)
        if descriptor.is_primary_key or descriptor.is_foreign_key:
            if native == "TEXT":
                return "VARCHAR(255)"
            if native == "BLOB":
                return "VARBINARY(255)"
        return native

    def list_tables(self, include_views: bool = True) -> SqlStatement:
        types = "('BASE TABLE', 'VIEW')" if include_views else "('BASE TABLE')"
        return self._metadata(
            "SELECT TABLE_NAME AS table_name FROM INFORMATION_SCHEMA.TABLES "
            f"WHERE TABLE_SCHEMA = DATABASE() AND TABLE_TYPE IN {types} "
            "ORDER BY TABLE_NAME;"
        )

    def columns_of(self, table_name: str) -> SqlStatement:
        return self._metadata(
            "SELECT COLUMN_NAME AS column_name, COLUMN_TYPE AS data_type, "
            "IS_NULLABLE AS is_nullable, "
            "CASE WHEN COLUMN_KEY = 'PRI' THEN 1 ELSE 0 END AS is_primary_key "
            "FROM INFORMATION_SCHEMA.COLUMNS "
            "WHERE TABLE_SCHEMA = DATABASE() AND TABLE_NAME = :table_name "
            "ORDER BY ORDINAL_POSITION;",
            table_name,
        )

    def foreign_keys_of(self, table_name: str) -> SqlStatement:
        return self._metadata(
            "SELECT kcu.COLUMN_NAME AS column_name, "
            "kcu.REFERENCED_TABLE_NAME AS referenced_table, "
            "kcu.REFERENCED_COLUMN_NAME AS referenced_column "
            "FROM INFORMATION_SCHEMA.KEY_COLUMN_USAGE kcu "
            "JOIN INFORMATION_SCHEMA.REFERENTIAL_CONSTRAINTS rc "
            "ON kcu.CONSTRAINT_NAME = rc.CONSTRAINT_NAME "
            "AND kcu.CONSTRAINT_SCHEMA = rc.CONSTRAINT_SCHEMA "
            "WHERE kcu.TABLE_SCHEMA = DATABASE() AND kcu.TABLE_NAME = :table_name;",
            table_name,
        )

    def table_exists(self, table_name: str) -> SqlStatement:
        return self._metadata(
            "SELECT TABLE_NAME FROM INFORMATION_SCHEMA.TABLES "
            "WHERE TABLE_SCHEMA = DATABASE() AND TABLE_NAME = :table_name;",
            table_name,
        )

    def _identity_column(self, descriptor: FieldDescriptor) -> str:
        return (
            f"{self.format_identifier(descriptor.name)} {self.column_type(descriptor)} "
            "NOT NULL AUTO_INCREMENT PRIMARY KEY"
        )

    def last_insert_id(self, table_name: str, id_column: str = "Id") -> SqlStatement:
        self.format_identifier(table_name)
        return self._unbound("SELECT LAST_INSERT_ID() AS LastId;")

    def call_procedure(
        self,
        procedure_name: str,
        pairs: Optional[Pairs] = None,
        parameterized: Optional[bool] = None,
    ) -> SqlStatement:
        """``CALL name(...);`` with arguments in the order given."""
        bind = self.builder(parameterized)
        arguments = ", ".join(bind(value) for _, value in Validator.normalize_pairs(pairs or {}))
        return bind.statement(
            f"CALL {self.format_identifier(procedure_name)}({arguments}){self.terminator}"
        )
