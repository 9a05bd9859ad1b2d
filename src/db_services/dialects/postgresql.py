"""PostgreSQL dialect strategy."""

from typing import Optional

from sqlalchemy.dialects.postgresql.base import PGDialect

from db_services.core.validation import Pairs, Validator
from db_services.dialects.base import Dialect, DialectStrategy
from db_services.exceptions import DbValidationError
from db_services.models.query import SqlStatement
from db_services.models.table import FieldDescriptor, TableSchema


class PostgresStrategy(DialectStrategy):
    """PostgreSQL: information_schema in current_schema(), identity keys, RETURNING.

    Unquoted identifiers fold to lower case, so metadata lookups compare
    table names case-insensitively.
    """

    dialect = Dialect.POSTGRESQL
    sqlalchemy_dialect = PGDialect
    supports_returning = True
    create_table_prefix = "CREATE TABLE IF NOT EXISTS"

    type_map = {
        "Boolean": "BOOLEAN",
        "Byte": "SMALLINT",
        "SByte": "SMALLINT",
        "Byte[]": "BYTEA",
        "Char": "CHAR(1)",
        "DateOnly": "DATE",
        "DateTime": "TIMESTAMP",
        "DateTimeOffset": "TIMESTAMPTZ",
        "Decimal": "NUMERIC(18,2)",
        "Double": "DOUBLE PRECISION",
        "Guid": "UUID",
        "Int16": "SMALLINT",
        "Int32": "INTEGER",
        "Int64": "BIGINT",
        "UInt16": "INTEGER",
        "UInt32": "BIGINT",
        "UInt64": "NUMERIC(20,0)",
        "Single": "REAL",
        "String": "TEXT",
        "TimeOnly": "TIME",
        "TimeSpan": "INTERVAL",
    }

    native_type_map = {
        "boolean": "Boolean",
        "smallint": "Int16",
        "integer": "Int32",
        "bigint": "Int64",
        "numeric": "Decimal",
        "real": "Single",
        "double precision": "Double",
        "money": "Decimal",
        "character varying": "String",
        "character": "String",
        "text": "String",
        "json": "String",
        "jsonb": "String",
        "uuid": "Guid",
        "bytea": "Byte[]",
        "date": "DateOnly",
        "timestamp without time zone": "DateTime",
        "timestamp with time zone": "DateTimeOffset",
        "time without time zone": "TimeOnly",
        "time with time zone": "TimeOnly",
        "interval": "TimeSpan",
    }

    def list_tables(self, include_views: bool = True) -> SqlStatement:
        types = "('BASE TABLE', 'VIEW')" if include_views else "('BASE TABLE')"
        return self._metadata(
            "SELECT table_name FROM information_schema.tables "
            f"WHERE table_schema = current_schema() AND table_type IN {types} "
            "ORDER BY table_name;"
        )

    def columns_of(self, table_name: str) -> SqlStatement:
        return self._metadata(
            "SELECT c.column_name, c.data_type, c.is_nullable, "
            "EXISTS (SELECT 1 FROM information_schema.table_constraints tc "
            "JOIN information_schema.key_column_usage kcu "
            "ON tc.constraint_name = kcu.constraint_name "
            "AND tc.table_schema = kcu.table_schema "
            "WHERE tc.constraint_type = 'PRIMARY KEY' "
            "AND tc.table_schema = c.table_schema AND tc.table_name = c.table_name "
            "AND kcu.column_name = c.column_name) AS is_primary_key "
            "FROM information_schema.columns c "
            "WHERE c.table_schema = current_schema() "
            "AND lower(c.table_name) = lower(:table_name) "
            "ORDER BY c.ordinal_position;",
            table_name,
        )

    def foreign_keys_of(self, table_name: str) -> SqlStatement:
        return self._metadata(
            "SELECT kcu.column_name, ccu.table_name AS referenced_table, "
            "ccu.column_name AS referenced_column "
            "FROM information_schema.table_constraints tc "
            "JOIN information_schema.key_column_usage kcu "
            "ON tc.constraint_name = kcu.constraint_name "
            "AND tc.table_schema = kcu.table_schema "
            "JOIN information_schema.constraint_column_usage ccu "
            "ON ccu.constraint_name = tc.constraint_name "
            "AND ccu.table_schema = tc.table_schema "
            "WHERE tc.constraint_type = 'FOREIGN KEY' "
            "AND tc.table_schema = current_schema() "
            "AND lower(tc.table_name) = lower(:table_name);",
            table_name,
        )

    def table_exists(self, table_name: str) -> SqlStatement:
        return self._metadata(
            "SELECT table_name FROM information_schema.tables "
            "WHERE table_schema = current_schema() "
            "AND lower(table_name) = lower(:table_name);",
            table_name,
        )

    def _identity_column(self, descriptor: FieldDescriptor) -> str:
        return (
            f"{self.format_identifier(descriptor.name)} {self.column_type(descriptor)} "
            "GENERATED BY DEFAULT AS IDENTITY PRIMARY KEY"
        )

    def drop_table(self, table_name: str) -> SqlStatement:
        return self._unbound(f"DROP TABLE IF EXISTS {self.format_identifier(table_name)} CASCADE;")

    def truncate_table(self, table_name: str) -> SqlStatement:
        return self._unbound(
            f"TRUNCATE TABLE {self.format_identifier(table_name)} RESTART IDENTITY CASCADE;"
        )

    def alter_table(self, schema: TableSchema) -> SqlStatement:
        """
        Add every non-key column of the schema that the table lacks.

        Raises:
            DbValidationError: If the schema has no non-key fields
        """
        actions = []
        for descriptor in schema.fields:
            if descriptor.is_primary_key:
                continue
            column = (
                f"ADD COLUMN IF NOT EXISTS {self.format_identifier(descriptor.name)} "
                f"{self.column_type(descriptor)}"
            )
            if descriptor.foreign_key is not None:
                info = descriptor.foreign_key
                column += (
                    f" REFERENCES {self.format_identifier(info.referenced_table)}"
                    f"({self.format_identifier(info.referenced_field)})"
                )
            actions.append(column)
        if not actions:
            raise DbValidationError(
                "ALTER TABLE requires at least one non-key field",
                table_name=schema.table_name,
            )
        return self._unbound(
            f"ALTER TABLE {self.format_identifier(schema.table_name)} {', '.join(actions)};"
        )

    def last_insert_id(self, table_name: str, id_column: str = "Id") -> SqlStatement:
        """Current value of the key's sequence; inserts normally use RETURNING instead."""
        table = self.format_identifier(table_name)
        column = self.format_identifier(id_column)
        return SqlStatement(
            sql="SELECT CURRVAL(pg_get_serial_sequence(:table_name, :id_column)) AS LastId;",
            params={
                # unquoted names were folded to lower case at creation
                "table_name": table if table != table_name else table_name.lower(),
                "id_column": id_column if column != id_column else id_column.lower(),
            },
        )

    def call_procedure(
        self,
        procedure_name: str,
        pairs: Optional[Pairs] = None,
        parameterized: Optional[bool] = None,
    ) -> SqlStatement:
        """``CALL name(a => ..., b => ...);``"""
        bind = self.builder(parameterized)
        arguments = ", ".join(
            f"{self.format_identifier(name)} => {bind(value)}"
            for name, value in Validator.normalize_pairs(pairs or {})
        )
        return bind.statement(
            f"CALL {self.format_identifier(procedure_name)}({arguments}){self.terminator}"
        )
