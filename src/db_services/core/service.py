"""Dialect-blind CRUD orchestration over one database connection."""

import asyncio
import logging
import re
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Iterable, Optional, Sequence, Union

from sqlalchemy.exc import SQLAlchemyError

from db_services.core.cache import SchemaCache
from db_services.core.connection import DatabaseConnection, ExecutionResult
from db_services.core.mapper import coerce_value, find_id_field, row_value
from db_services.core.retry import RetryPolicy
from db_services.core.validation import Pairs, Validator
from db_services.dialects import DialectStrategy, create_dialect
from db_services.dialects.base import CriterionLike
from db_services.exceptions import (
    DbConnectionError,
    DbQueryError,
    DbServiceError,
    DbValidationError,
    OperationCancelledError,
    RetriesExhaustedError,
    TableNotFoundError,
)
from db_services.models.config import DatabaseConfig
from db_services.models.definition import DeclaredTable
from db_services.models.query import (
    JoinType,
    QueryOperator,
    QueryOptions,
    QueryResult,
    SqlStatement,
)
from db_services.models.table import FieldDescriptor, ForeignKeyInfo, Record, TableSchema
from db_services.utils import convert_rows_to_json_safe

logger = logging.getLogger(__name__)

TableDefinition = Union[type[DeclaredTable], TableSchema]

DDL_KEYWORDS = {"CREATE", "DROP", "ALTER", "TRUNCATE", "RENAME"}
_FIRST_KEYWORD = re.compile(r"\s*(\w+)")


class AsyncDatabaseService:
    """CRUD operations against one database, whatever its dialect.

    The service owns a single lazily opened connection, the dialect strategy
    chosen from the configuration URL, a schema cache and a retry policy.
    Operations act on the ``table`` argument or, when it is omitted, on the
    current table set with :meth:`set_current_table`.

    Statements run in their own transaction and are committed immediately,
    unless they are grouped with :meth:`transaction`. Transient driver errors
    are retried outside explicit transactions only. Instances are not safe for
    overlapping use from several tasks.
    """

    def __init__(
        self,
        config: DatabaseConfig,
        *,
        dialect: Optional[DialectStrategy] = None,
        cache: Optional[SchemaCache] = None,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        """
        Initialize the service. No connection is opened until first use.

        Args:
            config: Database configuration
            dialect: Strategy override; derived from the URL by default
            cache: Schema cache override; built from the configuration by default
            retry_policy: Retry policy override; built from the configuration by default
        """
        self.config = config
        self.dialect = dialect or create_dialect(config)
        if cache is None and config.enable_schema_cache:
            cache = SchemaCache(ttl_minutes=config.cache_expiration_minutes)
        self.cache = cache
        self.retry_policy = retry_policy or RetryPolicy(
            max_retries=config.max_retry_count,
            base_delay=config.retry_delay_seconds,
            use_exponential_backoff=config.use_exponential_backoff,
        )
        self._db = DatabaseConnection(config)
        self._table_names: Optional[list[str]] = None
        self._current_table: Optional[str] = None
        self._in_transaction = False

    @classmethod
    def from_url(cls, url: str, **options: Any) -> "AsyncDatabaseService":
        """Build a service from a connection URL and ``DatabaseConfig`` options."""
        return cls(DatabaseConfig(url=url, **options))

    # ==================== Execution ====================

    @staticmethod
    def _check_cancelled(
        cancel_event: Optional[asyncio.Event],
        table: Optional[str],
        operation: str,
    ) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise OperationCancelledError(
                "Operation cancelled before execution",
                table_name=table,
                operation=operation,
            )

    async def _connect(self, cancel_event: Optional[asyncio.Event] = None) -> None:
        """Open the connection if needed, retrying with linear backoff."""
        if self._db.is_open:
            return
        policy = RetryPolicy.for_connections(
            max_retries=self.config.max_retry_count,
            base_delay=self.config.retry_delay_seconds,
        )
        try:
            await policy.execute_with_retry(self._db.connect, cancel_event=cancel_event)
        except RetriesExhaustedError as e:
            raise DbConnectionError(
                f"Could not connect to {self.config.safe_url}: {e.last_error}",
                operation="connect",
            ) from e.last_error
        except (SQLAlchemyError, OSError) as e:
            raise DbConnectionError(
                f"Could not connect to {self.config.safe_url}: {e}",
                operation="connect",
            ) from e

    async def _discard(self) -> None:
        """Roll back a failed statement; drop the connection if that fails too."""
        try:
            await self._db.rollback()
        except SQLAlchemyError as e:
            logger.warning(f"Rollback failed, closing connection: {e}")
            await self._db.close()

    async def _execute(
        self,
        statement: SqlStatement,
        operation: str,
        table: Optional[str] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> ExecutionResult:
        """
        Run one statement with retry, committing unless inside a transaction.

        Raises:
            OperationCancelledError: If cancellation was requested first
            DbConnectionError: If no connection could be opened
            DbQueryError: If the driver rejected the statement
            RetriesExhaustedError: If a transient failure persisted
        """
        self._check_cancelled(cancel_event, table, operation)
        logger.debug(f"{operation}: {statement.sql}")

        async def attempt() -> ExecutionResult:
            await self._connect(cancel_event)
            try:
                result = await self._db.execute(statement)
                if not self._in_transaction:
                    await self._db.commit()
                return result
            except SQLAlchemyError:
                if not self._in_transaction:
                    await self._discard()
                raise

        try:
            if self._in_transaction:
                return await attempt()
            return await self.retry_policy.execute_with_retry(attempt, cancel_event=cancel_event)
        except RetriesExhaustedError as e:
            raise RetriesExhaustedError(
                e.last_error,
                e.attempts,
                table_name=table,
                operation=operation,
                sql=statement.sql,
            ) from e.last_error
        except OperationCancelledError as e:
            raise OperationCancelledError(e.message, table_name=table, operation=operation) from e
        except SQLAlchemyError as e:
            detail = getattr(e, "orig", None) or e
            raise DbQueryError(
                f"{operation} failed: {detail}",
                sql=statement.sql,
                table_name=table,
                operation=operation,
            ) from e

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator["AsyncDatabaseService"]:
        """
        Group operations into one transaction, committed on normal exit.

        Any exception rolls everything back. Statements inside are not retried.

        Raises:
            DbServiceError: If a transaction is already active
        """
        if self._in_transaction:
            raise DbServiceError("Nested transactions are not supported", operation="transaction")
        await self._connect()
        await self._db.commit()
        self._in_transaction = True
        try:
            yield self
            await self._db.commit()
        except BaseException:
            await self._db.rollback()
            raise
        finally:
            self._in_transaction = False

    # ==================== Tables ====================

    async def list_tables(
        self,
        include_views: bool = True,
        *,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> list[str]:
        """Names of the tables (and optionally views) of the database."""
        result = await self._execute(
            self.dialect.list_tables(include_views),
            operation="list_tables",
            cancel_event=cancel_event,
        )
        return [str(row_value(row, "table_name")) for row in result.rows]

    async def _refresh_table_names(self, cancel_event: Optional[asyncio.Event] = None) -> None:
        self._table_names = await self.list_tables(True, cancel_event=cancel_event)
        logger.debug(f"Refreshed table list: {len(self._table_names)} tables")

    async def _refresh_after_ddl(self, table_name: Optional[str]) -> None:
        """Drop cached columns of the table (all tables when None), reload the table list."""
        if self.cache is not None:
            if table_name is None:
                self.cache.invalidate_all()
            else:
                self.cache.invalidate(table_name)
        try:
            await self._refresh_table_names()
        except DbServiceError as e:
            # next lookup refreshes lazily
            logger.warning(f"Could not refresh table list after DDL: {e}")
            self._table_names = None

    def _lookup(self, table_name: str) -> Optional[str]:
        """Stored spelling of a table name, matched case-insensitively."""
        folded = table_name.casefold()
        for name in self._table_names or ():
            if name.casefold() == folded:
                return name
        return None

    async def _ensure_table(
        self,
        table: Optional[str],
        operation: str,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> str:
        """
        Resolve the target table, refreshing the table list once on a miss.

        Raises:
            DbValidationError: If no table is given or set, or the name is invalid
            TableNotFoundError: If the table is absent after the refresh
        """
        name = table if table is not None else self._current_table
        if name is None:
            raise DbValidationError("No table given and no current table set", operation=operation)
        Validator.validate_table_name(name)

        found = self._lookup(name)
        if found is None:
            await self._refresh_table_names(cancel_event)
            found = self._lookup(name)
        if found is None:
            raise TableNotFoundError(name, operation=operation)
        return found

    async def set_current_table(
        self,
        table_name: str,
        *,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> None:
        """Make ``table_name`` the default target of operations."""
        self._current_table = await self._ensure_table(
            table_name, "set_current_table", cancel_event
        )

    @property
    def current_table(self) -> Optional[str]:
        return self._current_table

    async def has_table(
        self,
        table_name: str,
        *,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> bool:
        """True if the table exists right now (always asks the database)."""
        Validator.validate_table_name(table_name)
        result = await self._execute(
            self.dialect.table_exists(table_name),
            operation="has_table",
            table=table_name,
            cancel_event=cancel_event,
        )
        return bool(result.rows)

    # ==================== Metadata ====================

    async def columns_of(
        self,
        table: Optional[str] = None,
        *,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> list[FieldDescriptor]:
        """
        Column metadata of a table, served from the schema cache while fresh.

        Returns:
            Field descriptors in ordinal order
        """
        name = await self._ensure_table(table, "columns_of", cancel_event)
        if self.cache is not None:
            cached = self.cache.get(name)
            if cached is not None:
                return cached

        columns = await self._execute(
            self.dialect.columns_of(name), "columns_of", name, cancel_event
        )
        foreign_keys = await self._execute(
            self.dialect.foreign_keys_of(name), "columns_of", name, cancel_event
        )
        fields = self.dialect.to_field_descriptors(columns.rows, foreign_keys.rows)
        if self.cache is not None:
            self.cache.set(name, fields)
        return fields

    async def foreign_keys_of(
        self,
        table: Optional[str] = None,
        *,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> list[ForeignKeyInfo]:
        name = await self._ensure_table(table, "foreign_keys_of", cancel_event)
        result = await self._execute(
            self.dialect.foreign_keys_of(name), "foreign_keys_of", name, cancel_event
        )
        return self.dialect.to_foreign_key_info(result.rows)

    async def values_of(
        self,
        field_name: str,
        *,
        table: Optional[str] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> list[Any]:
        """Distinct values of one column."""
        name = await self._ensure_table(table, "values_of", cancel_event)
        Validator.validate_field_name(field_name)
        fields = await self.columns_of(name, cancel_event=cancel_event)
        descriptor = next((f for f in fields if f.name.casefold() == field_name.casefold()), None)
        logical_type = descriptor.logical_type if descriptor else None

        result = await self._execute(
            self.dialect.select_distinct(name, field_name), "values_of", name, cancel_event
        )
        return [coerce_value(row_value(row, field_name), logical_type) for row in result.rows]

    async def row_count(
        self,
        table: Optional[str] = None,
        *,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> int:
        name = await self._ensure_table(table, "row_count", cancel_event)
        result = await self._execute(
            self.dialect.row_count_of(name), "row_count", name, cancel_event
        )
        return int(result.scalar() or 0)

    async def table_has_rows(
        self,
        table: Optional[str] = None,
        *,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> bool:
        return await self.row_count(table, cancel_event=cancel_event) > 0

    # ==================== Fetch ====================

    async def _fetch(
        self,
        statement: SqlStatement,
        table_name: str,
        operation: str,
        cancel_event: Optional[asyncio.Event],
        fields: Optional[list[FieldDescriptor]] = None,
        projection: Optional[Sequence[str]] = None,
    ) -> TableSchema:
        if fields is None:
            fields = await self.columns_of(table_name, cancel_event=cancel_event)
        if projection:
            wanted = {name.casefold() for name in projection}
            fields = [f for f in fields if f.name.casefold() in wanted]

        result = await self._execute(statement, operation, table_name, cancel_event)
        return TableSchema(
            table_name=table_name,
            connection=self.config.safe_url,
            fields=fields,
            records=self.dialect.to_records(result.rows, fields),
        )

    def _id_column(self, fields: Sequence[FieldDescriptor], table_name: str, operation: str) -> str:
        id_field = find_id_field(fields)
        if id_field is None:
            raise DbValidationError(
                f"Table '{table_name}' has no numeric Id column",
                table_name=table_name,
                operation=operation,
            )
        return id_field.name

    async def fetch_all(
        self,
        *,
        table: Optional[str] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> TableSchema:
        name = await self._ensure_table(table, "fetch_all", cancel_event)
        return await self._fetch(self.dialect.select_all(name), name, "fetch_all", cancel_event)

    async def fetch_by_id(
        self,
        id: int,
        *,
        table: Optional[str] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Optional[TableSchema]:
        """
        Fetch one row by its numeric Id.

        Returns:
            The table with the matching record, or None when no row has the Id
        """
        name = await self._ensure_table(table, "fetch_by_id", cancel_event)
        fields = await self.columns_of(name, cancel_event=cancel_event)
        id_column = self._id_column(fields, name, "fetch_by_id")
        schema = await self._fetch(
            self.dialect.select_by_id(name, id, id_column),
            name,
            "fetch_by_id",
            cancel_event,
            fields=fields,
        )
        return schema if schema.records else None

    async def fetch_by_criterion(
        self,
        field_name: str,
        value: Any,
        operator: Union[QueryOperator, str] = QueryOperator.EQUAL,
        *,
        table: Optional[str] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> TableSchema:
        """Rows where ``field_name <operator> value``."""
        name = await self._ensure_table(table, "fetch_by_criterion", cancel_event)
        statement = self.dialect.select_by_criterion(name, field_name, value, operator)
        return await self._fetch(statement, name, "fetch_by_criterion", cancel_event)

    async def fetch_by_criteria(
        self,
        pairs: Pairs,
        *,
        table: Optional[str] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> TableSchema:
        """Rows matching every field/value pair.

        Raises:
            DbValidationError: If no pairs are given
        """
        name = await self._ensure_table(table, "fetch_by_criteria", cancel_event)
        items = Validator.normalize_pairs(pairs)
        if not items:
            raise DbValidationError(
                "At least one criterion is required",
                table_name=name,
                operation="fetch_by_criteria",
            )
        statement = self.dialect.select_by_criteria(name, items)
        return await self._fetch(statement, name, "fetch_by_criteria", cancel_event)

    async def fetch_where(
        self,
        where: str,
        *,
        table: Optional[str] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> TableSchema:
        """Rows matching a raw WHERE fragment (validated, blank means all rows)."""
        name = await self._ensure_table(table, "fetch_where", cancel_event)
        statement = self.dialect.select_all(name, where)
        return await self._fetch(statement, name, "fetch_where", cancel_event)

    async def fetch_projection(
        self,
        fields: Sequence[str],
        where: Optional[str] = None,
        *,
        table: Optional[str] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> TableSchema:
        """Selected columns of the rows matching an optional WHERE fragment."""
        name = await self._ensure_table(table, "fetch_projection", cancel_event)
        statement = self.dialect.select_fields(name, fields, where)
        return await self._fetch(
            statement, name, "fetch_projection", cancel_event, projection=fields
        )

    async def fetch_with_options(
        self,
        criteria: Optional[Iterable[CriterionLike]] = None,
        options: Optional[QueryOptions] = None,
        *,
        table: Optional[str] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> TableSchema:
        """Rows matching all criteria, with ordering, skip/take and projection."""
        name = await self._ensure_table(table, "fetch_with_options", cancel_event)
        options = options or QueryOptions(
            use_parameterized_query=self.config.use_parameterized_query
        )
        statement = self.dialect.select_with_options(name, list(criteria or []), options)
        return await self._fetch(
            statement,
            name,
            "fetch_with_options",
            cancel_event,
            projection=options.select_fields,
        )

    async def count_records(
        self,
        criteria: Optional[Iterable[CriterionLike]] = None,
        *,
        table: Optional[str] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> int:
        name = await self._ensure_table(table, "count_records", cancel_event)
        result = await self._execute(
            self.dialect.count(name, list(criteria or [])), "count_records", name, cancel_event
        )
        return int(result.scalar() or 0)

    async def exists(
        self,
        criteria: Optional[Iterable[CriterionLike]] = None,
        *,
        table: Optional[str] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> bool:
        return await self.count_records(criteria, table=table, cancel_event=cancel_event) > 0

    async def first_record(
        self,
        criteria: Optional[Iterable[CriterionLike]] = None,
        order_by: Optional[str] = None,
        *,
        table: Optional[str] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Optional[Record]:
        options = QueryOptions(
            order_by=order_by,
            take=1,
            use_parameterized_query=self.config.use_parameterized_query,
        )
        schema = await self.fetch_with_options(
            criteria, options, table=table, cancel_event=cancel_event
        )
        return schema.first()

    async def field_values(
        self,
        field_names: Sequence[str],
        criteria: Optional[Iterable[CriterionLike]] = None,
        *,
        table: Optional[str] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Optional[dict[str, Any]]:
        """
        Selected columns of the first matching row.

        Args:
            field_names: Columns to read
            criteria: Conditions joined with AND

        Returns:
            Column name to value, or None when no row matches
        """
        if not field_names:
            raise DbValidationError(
                "Projection requires at least one field",
                table_name=table,
                operation="field_values",
            )
        options = QueryOptions(
            select_fields=list(field_names),
            take=1,
            use_parameterized_query=self.config.use_parameterized_query,
        )
        schema = await self.fetch_with_options(
            criteria, options, table=table, cancel_event=cancel_event
        )
        record = schema.first()
        return dict(record.items()) if record is not None else None

    async def field_value(
        self,
        field_name: str,
        criteria: Optional[Iterable[CriterionLike]] = None,
        *,
        table: Optional[str] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Any:
        """One column of the first matching row, or None."""
        values = await self.field_values(
            [field_name], criteria, table=table, cancel_event=cancel_event
        )
        if values is None:
            return None
        return next(iter(values.values()))

    # ==================== Foreign keys and joins ====================

    async def fetch_one_side(
        self,
        field_name: str,
        value: Any,
        *,
        table: Optional[str] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Optional[TableSchema]:
        """
        Follow a foreign key to the row it references.

        Args:
            field_name: Foreign key column of ``table``
            value: Foreign key value of the referencing row

        Returns:
            The referenced table with the matching record, or None

        Raises:
            DbValidationError: If the field is not a foreign key
        """
        name = await self._ensure_table(table, "fetch_one_side", cancel_event)
        fields = await self.columns_of(name, cancel_event=cancel_event)
        info = next(
            (
                f.foreign_key
                for f in fields
                if f.foreign_key is not None and f.name.casefold() == field_name.casefold()
            ),
            None,
        )
        if info is None:
            raise DbValidationError(
                f"'{field_name}' is not a foreign key of '{name}'",
                field_name=field_name,
                table_name=name,
                operation="fetch_one_side",
            )
        schema = await self.fetch_by_criterion(
            info.referenced_field,
            value,
            table=info.referenced_table,
            cancel_event=cancel_event,
        )
        return schema if schema.records else None

    async def fetch_many_side(
        self,
        many_table: str,
        key_value: Any,
        *,
        table: Optional[str] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> TableSchema:
        """
        Rows of ``many_table`` whose foreign key references one row of ``table``.

        Args:
            many_table: Referencing table
            key_value: Referenced key value (usually the one-side Id)

        Raises:
            DbValidationError: If ``many_table`` has no foreign key to ``table``
        """
        name = await self._ensure_table(table, "fetch_many_side", cancel_event)
        many_name = await self._ensure_table(many_table, "fetch_many_side", cancel_event)
        foreign_keys = [
            fk
            for fk in await self.foreign_keys_of(many_name, cancel_event=cancel_event)
            if fk.referenced_table.casefold() == name.casefold()
        ]
        if not foreign_keys:
            raise DbValidationError(
                f"'{many_name}' has no foreign key referencing '{name}'",
                table_name=many_name,
                operation="fetch_many_side",
            )
        return await self.fetch_by_criterion(
            foreign_keys[0].field_name,
            key_value,
            table=many_name,
            cancel_event=cancel_event,
        )

    async def fetch_join(
        self,
        one_table: str,
        one_key: str,
        many_table: str,
        many_key: str,
        join_type: Union[JoinType, str] = JoinType.INNER,
        columns: Optional[Sequence[tuple[str, str]]] = None,
        *,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> TableSchema:
        """
        Join a referencing table to the table it references.

        Result columns are named ``<table>_<column>``. Without ``columns``,
        every column of both tables is projected.
        """
        one_name = await self._ensure_table(one_table, "fetch_join", cancel_event)
        many_name = await self._ensure_table(many_table, "fetch_join", cancel_event)
        fields_by_table = {
            many_name: await self.columns_of(many_name, cancel_event=cancel_event),
            one_name: await self.columns_of(one_name, cancel_event=cancel_event),
        }
        if columns is None:
            columns = [(t, f.name) for t, fields in fields_by_table.items() for f in fields]

        joined_fields = []
        for table_name, column in columns:
            source = next(
                (
                    f
                    for f in fields_by_table.get(self._lookup(table_name) or table_name, [])
                    if f.name.casefold() == column.casefold()
                ),
                None,
            )
            joined_fields.append(
                FieldDescriptor(
                    name=f"{table_name}_{column}",
                    logical_type=source.logical_type if source else "String",
                    is_not_null=source.is_not_null if source else False,
                )
            )

        statement = self.dialect.join(join_type, one_name, one_key, many_name, many_key, columns)
        return await self._fetch(
            statement,
            f"{many_name}_{one_name}",
            "fetch_join",
            cancel_event,
            fields=joined_fields,
        )

    # ==================== Write ====================

    async def insert(
        self,
        pairs: Pairs,
        *,
        table: Optional[str] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Optional[TableSchema]:
        """
        Insert one row and return it as re-read from the database.

        The generated key comes from RETURNING where the dialect has it,
        otherwise from the dialect's last-insert-id query on the same
        connection.

        Returns:
            The table with the inserted record, or None if it cannot be re-read
        """
        name = await self._ensure_table(table, "insert", cancel_event)
        items = Validator.normalize_pairs(pairs)
        fields = await self.columns_of(name, cancel_event=cancel_event)
        id_field = find_id_field(fields)
        returning = (
            id_field.name if id_field is not None and self.dialect.supports_returning else None
        )

        result = await self._execute(
            self.dialect.insert(name, items, returning=returning),
            "insert",
            name,
            cancel_event,
        )

        if id_field is not None:
            new_id = result.scalar() if returning else None
            if new_id is None:
                new_id = row_value(dict(items), id_field.name)
            if new_id is None:
                last = await self._execute(
                    self.dialect.last_insert_id(name, id_field.name),
                    "insert",
                    name,
                    cancel_event,
                )
                new_id = last.scalar()
            if new_id is not None:
                return await self.fetch_by_id(int(new_id), table=name, cancel_event=cancel_event)

        criteria = [(k, v) for k, v in items if v is not None]
        if not criteria:
            return None
        schema = await self.fetch_by_criteria(criteria, table=name, cancel_event=cancel_event)
        return schema if schema.records else None

    async def update_by_id(
        self,
        id: int,
        pairs: Pairs,
        *,
        table: Optional[str] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Optional[TableSchema]:
        """
        Update the supplied (non-null) fields of one row.

        Returns:
            The re-read row, or None when no row has the Id
        """
        name = await self._ensure_table(table, "update_by_id", cancel_event)
        fields = await self.columns_of(name, cancel_event=cancel_event)
        id_column = self._id_column(fields, name, "update_by_id")
        result = await self._execute(
            self.dialect.update(name, id, pairs, id_column), "update_by_id", name, cancel_event
        )
        if result.rowcount == 0:
            return None
        return await self.fetch_by_id(id, table=name, cancel_event=cancel_event)

    async def update_by_criterion(
        self,
        criterion: CriterionLike,
        pairs: Pairs,
        *,
        table: Optional[str] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> bool:
        """True if at least one row matched the criterion and was updated."""
        name = await self._ensure_table(table, "update_by_criterion", cancel_event)
        result = await self._execute(
            self.dialect.update_where(name, criterion, pairs),
            "update_by_criterion",
            name,
            cancel_event,
        )
        return result.rowcount > 0

    async def delete_by_id(
        self,
        id: int,
        *,
        table: Optional[str] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> bool:
        """True if a row was deleted, False if no row had the Id."""
        name = await self._ensure_table(table, "delete_by_id", cancel_event)
        fields = await self.columns_of(name, cancel_event=cancel_event)
        id_column = self._id_column(fields, name, "delete_by_id")
        result = await self._execute(
            self.dialect.delete(name, id, id_column), "delete_by_id", name, cancel_event
        )
        return result.rowcount > 0

    async def delete_by_criterion(
        self,
        criterion: CriterionLike,
        *,
        table: Optional[str] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> bool:
        name = await self._ensure_table(table, "delete_by_criterion", cancel_event)
        result = await self._execute(
            self.dialect.delete_where(name, criterion), "delete_by_criterion", name, cancel_event
        )
        return result.rowcount > 0

    async def bulk_insert(
        self,
        records: Sequence[Pairs],
        *,
        table: Optional[str] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> int:
        """
        Insert many rows all-or-nothing.

        Every statement is built (and validated) before the first one runs;
        all of them run in one transaction.

        Returns:
            Number of rows inserted

        Raises:
            DbValidationError: If any record is malformed (nothing is executed)
            DbQueryError: If any insert fails; the whole batch is rolled back
        """
        name = await self._ensure_table(table, "bulk_insert", cancel_event)
        statements = [self.dialect.insert(name, Validator.normalize_pairs(r)) for r in records]
        if not statements:
            return 0

        if self._in_transaction:
            for statement in statements:
                await self._execute(statement, "bulk_insert", name, cancel_event)
            return len(statements)

        try:
            async with self.transaction():
                for statement in statements:
                    await self._execute(statement, "bulk_insert", name, cancel_event)
        except DbQueryError as e:
            logger.error(f"Bulk insert into {name} rolled back: {e.message}")
            raise DbQueryError(
                f"Bulk insert failed, 0 of {len(statements)} records committed: {e.message}",
                sql=e.sql,
                table_name=name,
                operation="bulk_insert",
            ) from e

        logger.info(f"Bulk inserted {len(statements)} records into {name}")
        return len(statements)

    # ==================== DDL ====================

    async def _run_ddl(
        self,
        statement: SqlStatement,
        table_name: str,
        operation: str,
        cancel_event: Optional[asyncio.Event],
    ) -> int:
        try:
            result = await self._execute(statement, operation, table_name, cancel_event)
            logger.info(f"{operation} on {table_name} completed")
            return max(result.rowcount, 0)
        finally:
            await self._refresh_after_ddl(table_name)

    @staticmethod
    def _definition(model: TableDefinition) -> TableSchema:
        if isinstance(model, TableSchema):
            return model
        if isinstance(model, type) and issubclass(model, DeclaredTable):
            return model.definition()
        raise DbValidationError(
            f"Expected a DeclaredTable subclass or TableSchema, got {model!r}"
        )

    async def create_table(
        self,
        model: TableDefinition,
        *,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> int:
        """Create the table of a declared model or ad-hoc schema if it is missing."""
        schema = self._definition(model)
        Validator.validate_table_name(schema.table_name)
        return await self._run_ddl(
            self.dialect.create_table(schema), schema.table_name, "create_table", cancel_event
        )

    async def drop_table(
        self,
        table: Optional[str] = None,
        *,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> int:
        """Drop a table if it exists."""
        name = table if table is not None else self._current_table
        if name is None:
            raise DbValidationError("No table given and no current table set", operation="drop_table")
        Validator.validate_table_name(name)
        name = self._lookup(name) or name
        return await self._run_ddl(self.dialect.drop_table(name), name, "drop_table", cancel_event)

    async def alter_table(
        self,
        model: TableDefinition,
        *,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> int:
        """Add the model's missing columns to its existing table."""
        schema = self._definition(model)
        name = await self._ensure_table(schema.table_name, "alter_table", cancel_event)
        return await self._run_ddl(
            self.dialect.alter_table(schema), name, "alter_table", cancel_event
        )

    async def truncate_table(
        self,
        table: Optional[str] = None,
        *,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> int:
        name = await self._ensure_table(table, "truncate_table", cancel_event)
        return await self._run_ddl(
            self.dialect.truncate_table(name), name, "truncate_table", cancel_event
        )

    # ==================== Raw SQL ====================

    async def execute_raw_sql(
        self,
        sql: str,
        params: Optional[dict[str, Any]] = None,
        *,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> int:
        """
        Execute caller-supplied SQL. The text is not validated.

        Without ``params`` the text goes to the driver unchanged; with them,
        ``:name`` placeholders are bound. DDL statements invalidate the schema
        cache and refresh the table list.

        Returns:
            Rows affected (0 when the driver does not report a count)
        """
        statement = SqlStatement(sql=sql, params=params or {}, parameterized=bool(params))
        match = _FIRST_KEYWORD.match(sql)
        is_ddl = bool(match) and match.group(1).upper() in DDL_KEYWORDS

        try:
            result = await self._execute(statement, "execute_raw_sql", cancel_event=cancel_event)
        finally:
            if is_ddl:
                await self._refresh_after_ddl(None)
        return max(result.rowcount, 0)

    async def execute_query(
        self,
        sql: str,
        params: Optional[dict[str, Any]] = None,
        *,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> QueryResult:
        """
        Execute caller-supplied SQL and return its rows.

        Returns:
            Query result with JSON-safe rows and timing
        """
        statement = SqlStatement(sql=sql, params=params or {}, parameterized=bool(params))
        start_time = time.time()
        result = await self._execute(statement, "execute_query", cancel_event=cancel_event)
        execution_time = (time.time() - start_time) * 1000

        rows = convert_rows_to_json_safe(result.rows)
        return QueryResult(
            query=sql,
            rows=rows,
            row_count=len(rows),
            columns=result.columns,
            rows_affected=max(result.rowcount, 0) if not result.columns else 0,
            execution_time_ms=execution_time,
        )

    async def execute_stored_procedure(
        self,
        procedure_name: str,
        pairs: Optional[Pairs] = None,
        *,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> int:
        """
        Call a stored procedure with named arguments.

        Raises:
            UnsupportedOperationError: On dialects without procedures
        """
        Validator.validate_identifier(procedure_name, "procedure name")
        statement = self.dialect.call_procedure(procedure_name, pairs)
        result = await self._execute(
            statement, "execute_stored_procedure", cancel_event=cancel_event
        )
        return max(result.rowcount, 0)

    # ==================== Lifecycle ====================

    async def test_connection(self) -> bool:
        return await self._db.test_connection()

    async def get_version(self) -> str:
        return await self._db.get_version()

    async def close(self) -> None:
        """Close the connection and dispose of the engine."""
        await self._db.dispose()

    async def __aenter__(self) -> "AsyncDatabaseService":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
