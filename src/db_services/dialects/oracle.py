"""Oracle dialect strategy."""

import re
from typing import Any, Optional

from sqlalchemy.dialects.oracle.base import OracleDialect

from db_services.core.validation import Pairs, Validator
from db_services.dialects.base import Dialect, DialectStrategy
from db_services.models.query import SqlStatement
from db_services.models.table import FieldDescriptor

_NUMBER_PATTERN = re.compile(r"number\((\d+)(?:,\s*(\d+))?\)")


class OracleStrategy(DialectStrategy):
    """Oracle (12c+): USER_* dictionary views, identity keys, OFFSET/FETCH paging.

    Oracle rejects a trailing ``;`` on single SQL statements, so none is
    emitted. Unquoted names are stored upper-case.
    """

    dialect = Dialect.ORACLE
    sqlalchemy_dialect = OracleDialect
    terminator = ""

    type_map = {
        "Boolean": "NUMBER(1)",
        "Byte": "NUMBER(3)",
        "SByte": "NUMBER(3)",
        "Byte[]": "BLOB",
        "Char": "NCHAR(1)",
        "DateOnly": "DATE",
        "DateTime": "TIMESTAMP",
        "DateTimeOffset": "TIMESTAMP WITH TIME ZONE",
        "Decimal": "NUMBER(18,2)",
        "Double": "BINARY_DOUBLE",
        "Guid": "VARCHAR2(36)",
        "Int16": "NUMBER(5)",
        "Int32": "NUMBER(10)",
        "Int64": "NUMBER(19)",
        "UInt16": "NUMBER(5)",
        "UInt32": "NUMBER(10)",
        "UInt64": "NUMBER(20)",
        "Single": "BINARY_FLOAT",
        "String": "NVARCHAR2(2000)",
        "TimeOnly": "INTERVAL DAY TO SECOND",
        "TimeSpan": "INTERVAL DAY TO SECOND",
    }

    native_type_map = {
        "number": "Decimal",
        "float": "Double",
        "binary_double": "Double",
        "binary_float": "Single",
        "date": "DateTime",
        "timestamp": "DateTime",
        "timestamp with time zone": "DateTimeOffset",
        "timestamp with local time zone": "DateTimeOffset",
        "interval day to second": "TimeSpan",
        "char": "String",
        "nchar": "String",
        "varchar2": "String",
        "nvarchar2": "String",
        "clob": "String",
        "nclob": "String",
        "long": "String",
        "blob": "Byte[]",
        "raw": "Byte[]",
    }

    def native_to_logical(self, native_type: str) -> str:
        """NUMBER precision decides the logical type: NUMBER(1) is Boolean."""
        key = native_type.strip().lower()
        match = _NUMBER_PATTERN.fullmatch(key)
        if match:
            precision = int(match.group(1))
            scale = int(match.group(2) or 0)
            if scale > 0:
                return "Decimal"
            if precision == 1:
                return "Boolean"
            if precision <= 3:
                return "Byte"
            if precision <= 5:
                return "Int16"
            if precision <= 10:
                return "Int32"
            if precision <= 19:
                return "Int64"
            return "Decimal"
        if key.startswith("timestamp") and "time zone" not in key:
            return "DateTime"
        if key.startswith("interval day"):
            return "TimeSpan"
        return super().native_to_logical(key)

    def adapt_parameter(self, value: Any) -> Any:
        value = super().adapt_parameter(value)
        if isinstance(value, bool):
            return int(value)
        return value

    def list_tables(self, include_views: bool = True) -> SqlStatement:
        sql = "SELECT table_name FROM user_tables"
        if include_views:
            sql += " UNION ALL SELECT view_name FROM user_views"
        return self._metadata(sql + " ORDER BY 1")

    def columns_of(self, table_name: str) -> SqlStatement:
        return self._metadata(
            "SELECT c.column_name, "
            "CASE WHEN c.data_type = 'NUMBER' AND c.data_precision IS NOT NULL "
            "THEN 'NUMBER(' || c.data_precision || ',' || NVL(c.data_scale, 0) || ')' "
            "ELSE c.data_type END AS data_type, "
            "CASE WHEN c.nullable = 'Y' THEN 'YES' ELSE 'NO' END AS is_nullable, "
            "CASE WHEN pk.column_name IS NULL THEN 0 ELSE 1 END AS is_primary_key "
            "FROM user_tab_columns c "
            "LEFT JOIN (SELECT cc.table_name, cc.column_name FROM user_constraints uc "
            "JOIN user_cons_columns cc ON uc.constraint_name = cc.constraint_name "
            "WHERE uc.constraint_type = 'P') pk "
            "ON c.table_name = pk.table_name AND c.column_name = pk.column_name "
            "WHERE UPPER(c.table_name) = UPPER(:table_name) ORDER BY c.column_id",
            table_name,
        )

    def foreign_keys_of(self, table_name: str) -> SqlStatement:
        return self._metadata(
            "SELECT a.column_name, c_pk.table_name AS referenced_table, "
            "b.column_name AS referenced_column "
            "FROM user_cons_columns a "
            "JOIN user_constraints c ON a.constraint_name = c.constraint_name "
            "JOIN user_constraints c_pk ON c.r_constraint_name = c_pk.constraint_name "
            "JOIN user_cons_columns b ON c_pk.constraint_name = b.constraint_name "
            "AND a.position = b.position "
            "WHERE c.constraint_type = 'R' AND UPPER(a.table_name) = UPPER(:table_name)",
            table_name,
        )

    def table_exists(self, table_name: str) -> SqlStatement:
        return self._metadata(
            "SELECT table_name FROM user_tables WHERE UPPER(table_name) = UPPER(:table_name)",
            table_name,
        )

    def _identity_column(self, descriptor: FieldDescriptor) -> str:
        return (
            f"{self.format_identifier(descriptor.name)} {self.column_type(descriptor)} "
            "GENERATED BY DEFAULT AS IDENTITY PRIMARY KEY"
        )

    def drop_table(self, table_name: str) -> SqlStatement:
        return self._unbound(
            f"DROP TABLE {self.format_identifier(table_name)} CASCADE CONSTRAINTS PURGE"
        )

    def last_insert_id(self, table_name: str, id_column: str = "Id") -> SqlStatement:
        """Highest key in the table; identity sequences are not addressable by name."""
        return self._unbound(
            f"SELECT MAX({self.format_identifier(id_column)}) AS LastId "
            f"FROM {self.format_identifier(table_name)}"
        )

    def paginate(self, skip: Optional[int], take: Optional[int], ordered: bool) -> str:
        if take is None and not skip:
            return ""
        clause = f" OFFSET {int(skip or 0)} ROWS"
        if take is not None:
            clause += f" FETCH NEXT {int(take)} ROWS ONLY"
        return clause

    def call_procedure(
        self,
        procedure_name: str,
        pairs: Optional[Pairs] = None,
        parameterized: Optional[bool] = None,
    ) -> SqlStatement:
        """Anonymous PL/SQL block with named notation: ``BEGIN name(a => ...); END;``"""
        bind = self.builder(parameterized)
        arguments = ", ".join(
            f"{self.format_identifier(name)} => {bind(value)}"
            for name, value in Validator.normalize_pairs(pairs or {})
        )
        return bind.statement(f"BEGIN {self.format_identifier(procedure_name)}({arguments}); END;")
