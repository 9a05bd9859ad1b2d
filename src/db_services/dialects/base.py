"""Dialect strategy interface and the SQL shapes shared by every dialect."""

import datetime
import decimal
import enum
from abc import ABC, abstractmethod
from functools import lru_cache
from typing import Any, ClassVar, Iterable, Mapping, Optional, Sequence, Union

from db_services.core.mapper import (
    INTEGER_TYPES,
    to_field_descriptors,
    to_foreign_key_info,
    to_records,
)
from db_services.core.validation import Pairs, Validator
from db_services.exceptions import DbValidationError, UnsupportedOperationError
from db_services.models.query import (
    Criterion,
    JoinType,
    QueryOperator,
    QueryOptions,
    SqlStatement,
)
from db_services.models.table import (
    FieldDescriptor,
    ForeignKeyInfo,
    Record,
    TableSchema,
)

CriterionLike = Union[Criterion, tuple]


class Dialect(str, enum.Enum):
    """Supported database families."""

    SQLITE = "sqlite"
    MSSQL = "mssql"
    MYSQL = "mysql"
    POSTGRESQL = "postgresql"
    ORACLE = "oracle"


@lru_cache(maxsize=None)
def _reserved_words(sqlalchemy_dialect: type) -> frozenset[str]:
    return frozenset(word.lower() for word in sqlalchemy_dialect.preparer.reserved_words)


class StatementBuilder:
    """Renders values of one statement as bind placeholders or literals."""

    def __init__(self, strategy: "DialectStrategy", parameterized: bool):
        self.strategy = strategy
        self.parameterized = parameterized
        self.params: dict[str, Any] = {}

    def __call__(self, value: Any) -> str:
        if not self.parameterized:
            return self.strategy.render_literal(value)
        name = f"p{len(self.params)}"
        self.params[name] = self.strategy.adapt_parameter(value)
        return f":{name}"

    def where(self, text: str) -> str:
        """Validated raw WHERE text; colons escaped so text() does not bind them."""
        Validator.validate_where_clause(text)
        text = text.strip()
        return text.replace(":", "\\:") if self.parameterized else text

    def statement(self, sql: str) -> SqlStatement:
        return SqlStatement(sql=sql, params=dict(self.params), parameterized=self.parameterized)


class DialectStrategy(ABC):
    """Turns data-access intents into SQL for one database family.

    Strategies do no I/O. Every identifier passes the Validator before it is
    emitted, and is quoted only when it is a reserved word of the dialect.
    Values become named binds (``:p0``) unless the strategy, or a single call,
    is in literal mode.
    """

    dialect: ClassVar[Dialect]
    sqlalchemy_dialect: ClassVar[type]
    quote_chars: ClassVar[tuple[str, str]] = ('"', '"')
    terminator: ClassVar[str] = ";"
    unbounded_limit: ClassVar[str] = "ALL"
    supports_returning: ClassVar[bool] = False
    create_table_prefix: ClassVar[str] = "CREATE TABLE"

    # logical type name -> native type name
    type_map: ClassVar[dict[str, str]] = {}
    # lower-cased native type name -> logical type name
    native_type_map: ClassVar[dict[str, str]] = {}

    def __init__(self, parameterized: bool = True):
        """
        Initialize the strategy.

        Args:
            parameterized: Default rendering of values (binds vs. literals)
        """
        self.parameterized = parameterized

    @property
    def name(self) -> str:
        return self.dialect.value

    # ==================== Identifiers and values ====================

    @property
    def reserved_words(self) -> frozenset[str]:
        return _reserved_words(self.sqlalchemy_dialect)

    def format_identifier(self, name: str) -> str:
        """Validated identifier, quoted when it is a reserved word."""
        Validator.validate_identifier(name)
        if name.lower() in self.reserved_words:
            opening, closing = self.quote_chars
            return f"{opening}{name}{closing}"
        return name

    def escape_string(self, value: str) -> str:
        return "'" + value.replace("'", "''") + "'"

    def render_literal(self, value: Any) -> str:
        """
        Render a value as an SQL literal.

        Dates (and datetimes) become ``'yyyy-MM-dd'``, booleans ``1``/``0``,
        numbers stay bare, strings are single-quoted with quotes doubled and
        None becomes ``''``.

        Raises:
            UnsupportedOperationError: For binary values, which need binds
        """
        if value is None:
            return "''"
        if isinstance(value, enum.Enum):
            value = value.value
        if isinstance(value, bool):
            return "1" if value else "0"
        if isinstance(value, datetime.date):
            return value.strftime("'%Y-%m-%d'")
        if isinstance(value, decimal.Decimal):
            return format(value, "f")
        if isinstance(value, (int, float)):
            return repr(value)
        if isinstance(value, (bytes, bytearray, memoryview)):
            raise UnsupportedOperationError(
                "Binary values cannot be rendered as literals; use parameterized queries",
                dialect=self.name,
            )
        return self.escape_string(str(value))

    def adapt_parameter(self, value: Any) -> Any:
        """Bind value as handed to the driver."""
        if isinstance(value, enum.Enum):
            return value.value
        return value

    def builder(self, parameterized: Optional[bool] = None) -> StatementBuilder:
        return StatementBuilder(
            self, self.parameterized if parameterized is None else parameterized
        )

    def _metadata(self, sql: str, table_name: Optional[str] = None) -> SqlStatement:
        params = {}
        if table_name is not None:
            Validator.validate_table_name(table_name)
            params["table_name"] = table_name
        return SqlStatement(sql=sql, params=params, parameterized=True)

    def _unbound(self, sql: str) -> SqlStatement:
        return SqlStatement(sql=sql, parameterized=False)

    # ==================== Type mapping ====================

    def logical_to_native(self, logical_type: str) -> str:
        """
        Native type name for a logical type.

        Raises:
            UnsupportedOperationError: If the dialect has no mapping
        """
        try:
            return self.type_map[logical_type]
        except KeyError:
            raise UnsupportedOperationError(
                f"Type '{logical_type}' is not supported by {self.name}",
                dialect=self.name,
            ) from None

    def native_to_logical(self, native_type: str) -> str:
        """Logical type for a native type name; String when unknown."""
        key = native_type.strip().lower()
        if key in self.native_type_map:
            return self.native_type_map[key]
        base = key.split("(")[0].strip()
        return self.native_type_map.get(base, "String")

    def column_type(self, descriptor: FieldDescriptor) -> str:
        """Native column type used in CREATE/ALTER TABLE."""
        return self.logical_to_native(descriptor.logical_type)

    # ==================== Metadata ====================

    @abstractmethod
    def list_tables(self, include_views: bool = True) -> SqlStatement:
        """Names of user tables (and views), one per row in the first column."""
        ...

    @abstractmethod
    def columns_of(self, table_name: str) -> SqlStatement:
        """Column metadata aliased to the names the mapper reads."""
        ...

    @abstractmethod
    def foreign_keys_of(self, table_name: str) -> SqlStatement:
        """Foreign key metadata aliased to the names the mapper reads."""
        ...

    @abstractmethod
    def table_exists(self, table_name: str) -> SqlStatement:
        """Returns a row when the table exists."""
        ...

    def row_count_of(self, table_name: str) -> SqlStatement:
        return self.builder().statement(
            f"SELECT COUNT(*) AS RecordCount FROM {self.format_identifier(table_name)}"
            f"{self.terminator}"
        )

    # ==================== DDL ====================

    @abstractmethod
    def _identity_column(self, descriptor: FieldDescriptor) -> str:
        """Column definition of a single auto-generated integer key."""
        ...

    def _foreign_key_constraints(self, schema: TableSchema) -> list[str]:
        # One constraint per column; several columns may reference the same table.
        return [
            f"FOREIGN KEY ({self.format_identifier(info.field_name)}) REFERENCES "
            f"{self.format_identifier(info.referenced_table)}"
            f"({self.format_identifier(info.referenced_field)})"
            for info in schema.foreign_keys
        ]

    def create_table(self, schema: TableSchema) -> SqlStatement:
        """
        CREATE TABLE for a declared schema.

        A single integer primary key becomes the dialect's auto-generated
        identity column. Several primary key fields become a table-level
        composite ``PRIMARY KEY (...)``.

        Raises:
            DbValidationError: If the schema has no fields
        """
        if not schema.fields:
            raise DbValidationError(
                "Cannot create a table without fields", table_name=schema.table_name
            )

        keys = [f for f in schema.fields if f.is_primary_key]
        identity = keys[0] if len(keys) == 1 and keys[0].logical_type in INTEGER_TYPES else None

        definitions = []
        for descriptor in schema.fields:
            if descriptor is identity:
                definitions.append(self._identity_column(descriptor))
                continue
            column = f"{self.format_identifier(descriptor.name)} {self.column_type(descriptor)}"
            if descriptor.is_not_null or descriptor.is_primary_key:
                column += " NOT NULL"
            definitions.append(column)

        if keys and identity is None:
            names = ", ".join(self.format_identifier(k.name) for k in keys)
            definitions.append(f"PRIMARY KEY ({names})")
        definitions.extend(self._foreign_key_constraints(schema))

        return self._unbound(
            f"{self.create_table_prefix} {self.format_identifier(schema.table_name)} "
            f"({','.join(definitions)}){self.terminator}"
        )

    def drop_table(self, table_name: str) -> SqlStatement:
        return self._unbound(
            f"DROP TABLE IF EXISTS {self.format_identifier(table_name)}{self.terminator}"
        )

    def alter_table(self, schema: TableSchema) -> SqlStatement:
        """Add the schema's missing columns to an existing table."""
        raise UnsupportedOperationError(
            f"ALTER TABLE is not supported for {self.name}",
            dialect=self.name,
            table_name=schema.table_name,
            operation="alter_table",
        )

    def truncate_table(self, table_name: str) -> SqlStatement:
        return self._unbound(
            f"TRUNCATE TABLE {self.format_identifier(table_name)}{self.terminator}"
        )

    # ==================== Conditions ====================

    def _condition(
        self,
        bind: StatementBuilder,
        field_name: str,
        value: Any,
        operator: Union[QueryOperator, str] = QueryOperator.EQUAL,
    ) -> str:
        column = self.format_identifier(field_name)
        operator = QueryOperator(operator)
        if value is None:
            if operator is QueryOperator.EQUAL:
                return f"{column} IS NULL"
            if operator is QueryOperator.NOT_EQUAL:
                return f"{column} IS NOT NULL"
            raise DbValidationError(
                f"Operator {operator.sql} cannot compare against NULL",
                field_name=field_name,
            )
        return f"{column} {operator.sql} {bind(value)}"

    def _criteria(self, bind: StatementBuilder, criteria: Iterable[CriterionLike]) -> str:
        conditions = []
        for item in criteria:
            criterion = Criterion.coerce(item)
            conditions.append(
                self._condition(bind, criterion.field, criterion.value, criterion.operator)
            )
        return " AND ".join(conditions)

    def _assignments(self, bind: StatementBuilder, pairs: Pairs) -> str:
        items = [(k, v) for k, v in Validator.normalize_pairs(pairs) if v is not None]
        if not items:
            raise DbValidationError("Update requires at least one non-null field value")
        return ", ".join(f"{self.format_identifier(k)} = {bind(v)}" for k, v in items)

    # ==================== DML ====================

    def insert(
        self,
        table_name: str,
        pairs: Pairs,
        returning: Optional[str] = None,
        parameterized: Optional[bool] = None,
    ) -> SqlStatement:
        """
        INSERT of one row.

        Args:
            table_name: Target table
            pairs: Column/value pairs in column order
            returning: Key column to return, on dialects with RETURNING
            parameterized: Override of the strategy's rendering mode

        Returns:
            ``INSERT INTO T (a,b) VALUES (...);``
        """
        bind = self.builder(parameterized)
        items = Validator.normalize_pairs(pairs)
        if not items:
            raise DbValidationError("Insert requires at least one field", table_name=table_name)

        columns = ",".join(self.format_identifier(k) for k, _ in items)
        values = ",".join(bind(v) for _, v in items)
        sql = f"INSERT INTO {self.format_identifier(table_name)} ({columns}) VALUES ({values})"
        if returning and self.supports_returning:
            sql += f" RETURNING {self.format_identifier(returning)}"
        return bind.statement(sql + self.terminator)

    def update(
        self,
        table_name: str,
        id: Any,
        pairs: Pairs,
        id_column: str = "Id",
        parameterized: Optional[bool] = None,
    ) -> SqlStatement:
        """UPDATE of one row by key; None values are left out of SET."""
        bind = self.builder(parameterized)
        assignments = self._assignments(bind, pairs)
        return bind.statement(
            f"UPDATE {self.format_identifier(table_name)} SET {assignments} "
            f"WHERE {self._condition(bind, id_column, id)}{self.terminator}"
        )

    def update_where(
        self,
        table_name: str,
        criterion: CriterionLike,
        pairs: Pairs,
        parameterized: Optional[bool] = None,
    ) -> SqlStatement:
        bind = self.builder(parameterized)
        assignments = self._assignments(bind, pairs)
        return bind.statement(
            f"UPDATE {self.format_identifier(table_name)} SET {assignments} "
            f"WHERE {self._criteria(bind, [criterion])}{self.terminator}"
        )

    def delete(
        self,
        table_name: str,
        id: Any,
        id_column: str = "Id",
        parameterized: Optional[bool] = None,
    ) -> SqlStatement:
        bind = self.builder(parameterized)
        return bind.statement(
            f"DELETE FROM {self.format_identifier(table_name)} "
            f"WHERE {self._condition(bind, id_column, id)}{self.terminator}"
        )

    def delete_where(
        self,
        table_name: str,
        criterion: CriterionLike,
        parameterized: Optional[bool] = None,
    ) -> SqlStatement:
        bind = self.builder(parameterized)
        return bind.statement(
            f"DELETE FROM {self.format_identifier(table_name)} "
            f"WHERE {self._criteria(bind, [criterion])}{self.terminator}"
        )

    @abstractmethod
    def last_insert_id(self, table_name: str, id_column: str = "Id") -> SqlStatement:
        """Key generated by the last INSERT on this connection."""
        ...

    # ==================== DQL ====================

    def select_all(
        self,
        table_name: str,
        where: Optional[str] = None,
        parameterized: Optional[bool] = None,
    ) -> SqlStatement:
        bind = self.builder(parameterized)
        sql = f"SELECT * FROM {self.format_identifier(table_name)}"
        if where and where.strip():
            sql += f" WHERE {bind.where(where)}"
        return bind.statement(sql + self.terminator)

    def select_fields(
        self,
        table_name: str,
        fields: Sequence[str],
        where: Optional[str] = None,
        parameterized: Optional[bool] = None,
    ) -> SqlStatement:
        if not fields:
            raise DbValidationError("Projection requires at least one field", table_name=table_name)
        bind = self.builder(parameterized)
        projection = ",".join(self.format_identifier(f) for f in fields)
        sql = f"SELECT {projection} FROM {self.format_identifier(table_name)}"
        if where and where.strip():
            sql += f" WHERE {bind.where(where)}"
        return bind.statement(sql + self.terminator)

    def select_by_id(
        self,
        table_name: str,
        id: Any,
        id_column: str = "Id",
        parameterized: Optional[bool] = None,
    ) -> SqlStatement:
        """``SELECT * FROM T WHERE Id = 3;``"""
        bind = self.builder(parameterized)
        return bind.statement(
            f"SELECT * FROM {self.format_identifier(table_name)} "
            f"WHERE {self._condition(bind, id_column, id)}{self.terminator}"
        )

    def select_by_criterion(
        self,
        table_name: str,
        field_name: str,
        value: Any,
        operator: Union[QueryOperator, str] = QueryOperator.EQUAL,
        parameterized: Optional[bool] = None,
    ) -> SqlStatement:
        bind = self.builder(parameterized)
        return bind.statement(
            f"SELECT * FROM {self.format_identifier(table_name)} "
            f"WHERE {self._condition(bind, field_name, value, operator)}{self.terminator}"
        )

    def select_by_criteria(
        self,
        table_name: str,
        pairs: Pairs,
        parameterized: Optional[bool] = None,
    ) -> SqlStatement:
        """Rows matching every pair (AND-joined equality)."""
        bind = self.builder(parameterized)
        items = Validator.normalize_pairs(pairs)
        sql = f"SELECT * FROM {self.format_identifier(table_name)}"
        if items:
            sql += " WHERE " + " AND ".join(self._condition(bind, k, v) for k, v in items)
        return bind.statement(sql + self.terminator)

    def select_distinct(self, table_name: str, field_name: str) -> SqlStatement:
        return self.builder().statement(
            f"SELECT DISTINCT {self.format_identifier(field_name)} "
            f"FROM {self.format_identifier(table_name)}{self.terminator}"
        )

    def count(
        self,
        table_name: str,
        criteria: Optional[Iterable[CriterionLike]] = None,
        parameterized: Optional[bool] = None,
    ) -> SqlStatement:
        bind = self.builder(parameterized)
        sql = f"SELECT COUNT(*) AS RecordCount FROM {self.format_identifier(table_name)}"
        where = self._criteria(bind, criteria or [])
        if where:
            sql += f" WHERE {where}"
        return bind.statement(sql + self.terminator)

    def paginate(self, skip: Optional[int], take: Optional[int], ordered: bool) -> str:
        """Pagination suffix appended after ORDER BY."""
        clause = ""
        if take is not None:
            clause += f" LIMIT {int(take)}"
        elif skip:
            clause += f" LIMIT {self.unbounded_limit}"
        if skip:
            clause += f" OFFSET {int(skip)}"
        return clause

    def select_with_options(
        self,
        table_name: str,
        criteria: Optional[Iterable[CriterionLike]] = None,
        options: Optional[QueryOptions] = None,
    ) -> SqlStatement:
        """Filtered select with projection, ordering and skip/take."""
        options = options or QueryOptions(use_parameterized_query=self.parameterized)
        bind = self.builder(options.use_parameterized_query)

        projection = "*"
        if options.select_fields:
            projection = ",".join(self.format_identifier(f) for f in options.select_fields)
        sql = f"SELECT {projection} FROM {self.format_identifier(table_name)}"

        where = self._criteria(bind, criteria or [])
        if where:
            sql += f" WHERE {where}"
        if options.order_by:
            sql += f" ORDER BY {self.format_identifier(options.order_by)}"
            if options.order_by_descending:
                sql += " DESC"
        sql += self.paginate(options.skip, options.take, bool(options.order_by))
        return bind.statement(sql + self.terminator)

    # ==================== Joins ====================

    def _join_projection(self, columns: Optional[Sequence[tuple[str, str]]]) -> str:
        if not columns:
            return "*"
        parts = []
        for table, column in columns:
            alias = self.format_identifier(f"{table}_{column}")
            parts.append(
                f"{self.format_identifier(table)}.{self.format_identifier(column)} AS {alias}"
            )
        return ", ".join(parts)

    def _join_sql(
        self,
        join_type: JoinType,
        from_table: str,
        join_table: str,
        condition: str,
        columns: Optional[Sequence[tuple[str, str]]],
    ) -> SqlStatement:
        return self._unbound(
            f"SELECT {self._join_projection(columns)} FROM {self.format_identifier(from_table)} "
            f"{join_type.value} {self.format_identifier(join_table)} ON {condition}"
            f"{self.terminator}"
        )

    def join(
        self,
        join_type: Union[JoinType, str],
        one_table: str,
        one_key: str,
        many_table: str,
        many_key: str,
        columns: Optional[Sequence[tuple[str, str]]] = None,
    ) -> SqlStatement:
        """
        Join a many-side table to its one-side table.

        The many side is the left (FROM) table, so a LEFT join keeps many-side
        rows without a match and a RIGHT join keeps unmatched one-side rows.

        Args:
            join_type: INNER, LEFT or RIGHT
            one_table: Referenced table
            one_key: Referenced column (usually its Id)
            many_table: Referencing table
            many_key: Foreign key column on the many side
            columns: ``(table, column)`` pairs to project, aliased ``table_column``
        """
        join_type = JoinType(join_type)
        condition = (
            f"{self.format_identifier(many_table)}.{self.format_identifier(many_key)} = "
            f"{self.format_identifier(one_table)}.{self.format_identifier(one_key)}"
        )
        return self._join_sql(join_type, many_table, one_table, condition, columns)

    def inner_join(self, one_table, one_key, many_table, many_key, columns=None) -> SqlStatement:
        return self.join(JoinType.INNER, one_table, one_key, many_table, many_key, columns)

    def left_join(self, one_table, one_key, many_table, many_key, columns=None) -> SqlStatement:
        return self.join(JoinType.LEFT, one_table, one_key, many_table, many_key, columns)

    def right_join(self, one_table, one_key, many_table, many_key, columns=None) -> SqlStatement:
        return self.join(JoinType.RIGHT, one_table, one_key, many_table, many_key, columns)

    # ==================== Procedures ====================

    def call_procedure(
        self,
        procedure_name: str,
        pairs: Optional[Pairs] = None,
        parameterized: Optional[bool] = None,
    ) -> SqlStatement:
        """Invocation of a stored procedure with named arguments."""
        raise UnsupportedOperationError(
            f"Stored procedures are not supported by {self.name}",
            dialect=self.name,
            operation="execute_stored_procedure",
        )

    # ==================== Mapping ====================

    def to_field_descriptors(
        self,
        raw_columns: Iterable[Mapping[str, Any]],
        raw_foreign_keys: Iterable[Mapping[str, Any]] = (),
    ) -> list[FieldDescriptor]:
        return to_field_descriptors(raw_columns, raw_foreign_keys, self.native_to_logical)

    def to_foreign_key_info(
        self, raw_foreign_keys: Iterable[Mapping[str, Any]]
    ) -> list[ForeignKeyInfo]:
        return to_foreign_key_info(raw_foreign_keys)

    def to_records(
        self,
        raw_rows: Iterable[Mapping[str, Any]],
        fields: Optional[Sequence[FieldDescriptor]] = None,
    ) -> list[Record]:
        return to_records(raw_rows, fields)
