"""Blocking facade over the async service."""

import asyncio
from contextlib import contextmanager
from typing import Any, Coroutine, Iterable, Iterator, Optional, Sequence, TypeVar, Union

from db_services.core.service import AsyncDatabaseService, TableDefinition
from db_services.core.validation import Pairs
from db_services.dialects.base import CriterionLike
from db_services.models.config import DatabaseConfig
from db_services.models.query import JoinType, QueryOperator, QueryOptions, QueryResult
from db_services.models.table import FieldDescriptor, ForeignKeyInfo, Record, TableSchema

T = TypeVar("T")


class DatabaseService:
    """Synchronous variant of :class:`AsyncDatabaseService`.

    Each call runs the async operation to completion on an event loop owned
    by this instance, so semantics are identical. Must not be used from code
    that is already running inside an event loop.
    """

    def __init__(self, config: DatabaseConfig, **kwargs: Any):
        """
        Initialize the service.

        Args:
            config: Database configuration
            **kwargs: Passed to ``AsyncDatabaseService``
        """
        self._loop = asyncio.new_event_loop()
        self._service = AsyncDatabaseService(config, **kwargs)

    @classmethod
    def from_url(cls, url: str, **options: Any) -> "DatabaseService":
        return cls(DatabaseConfig(url=url, **options))

    def _run(self, coro: Coroutine[Any, Any, T]) -> T:
        if self._loop.is_closed():
            coro.close()
            raise RuntimeError("DatabaseService is closed")
        return self._loop.run_until_complete(coro)

    @property
    def service(self) -> AsyncDatabaseService:
        """The wrapped async service."""
        return self._service

    @property
    def config(self) -> DatabaseConfig:
        return self._service.config

    @property
    def current_table(self) -> Optional[str]:
        return self._service.current_table

    # Tables and metadata

    def set_current_table(self, table_name: str) -> None:
        self._run(self._service.set_current_table(table_name))

    def list_tables(self, include_views: bool = True) -> list[str]:
        return self._run(self._service.list_tables(include_views))

    def has_table(self, table_name: str) -> bool:
        return self._run(self._service.has_table(table_name))

    def columns_of(self, table: Optional[str] = None) -> list[FieldDescriptor]:
        return self._run(self._service.columns_of(table))

    def foreign_keys_of(self, table: Optional[str] = None) -> list[ForeignKeyInfo]:
        return self._run(self._service.foreign_keys_of(table))

    def values_of(self, field_name: str, *, table: Optional[str] = None) -> list[Any]:
        return self._run(self._service.values_of(field_name, table=table))

    def row_count(self, table: Optional[str] = None) -> int:
        return self._run(self._service.row_count(table))

    def table_has_rows(self, table: Optional[str] = None) -> bool:
        return self._run(self._service.table_has_rows(table))

    # Fetch

    def fetch_all(self, *, table: Optional[str] = None) -> TableSchema:
        return self._run(self._service.fetch_all(table=table))

    def fetch_by_id(self, id: int, *, table: Optional[str] = None) -> Optional[TableSchema]:
        return self._run(self._service.fetch_by_id(id, table=table))

    def fetch_by_criterion(
        self,
        field_name: str,
        value: Any,
        operator: Union[QueryOperator, str] = QueryOperator.EQUAL,
        *,
        table: Optional[str] = None,
    ) -> TableSchema:
        return self._run(
            self._service.fetch_by_criterion(field_name, value, operator, table=table)
        )

    def fetch_by_criteria(self, pairs: Pairs, *, table: Optional[str] = None) -> TableSchema:
        return self._run(self._service.fetch_by_criteria(pairs, table=table))

    def fetch_where(self, where: str, *, table: Optional[str] = None) -> TableSchema:
        return self._run(self._service.fetch_where(where, table=table))

    def fetch_projection(
        self,
        fields: Sequence[str],
        where: Optional[str] = None,
        *,
        table: Optional[str] = None,
    ) -> TableSchema:
        return self._run(self._service.fetch_projection(fields, where, table=table))

    def fetch_with_options(
        self,
        criteria: Optional[Iterable[CriterionLike]] = None,
        options: Optional[QueryOptions] = None,
        *,
        table: Optional[str] = None,
    ) -> TableSchema:
        return self._run(self._service.fetch_with_options(criteria, options, table=table))

    def count_records(
        self,
        criteria: Optional[Iterable[CriterionLike]] = None,
        *,
        table: Optional[str] = None,
    ) -> int:
        return self._run(self._service.count_records(criteria, table=table))

    def exists(
        self,
        criteria: Optional[Iterable[CriterionLike]] = None,
        *,
        table: Optional[str] = None,
    ) -> bool:
        return self._run(self._service.exists(criteria, table=table))

    def first_record(
        self,
        criteria: Optional[Iterable[CriterionLike]] = None,
        order_by: Optional[str] = None,
        *,
        table: Optional[str] = None,
    ) -> Optional[Record]:
        return self._run(self._service.first_record(criteria, order_by, table=table))

    def field_values(
        self,
        field_names: Sequence[str],
        criteria: Optional[Iterable[CriterionLike]] = None,
        *,
        table: Optional[str] = None,
    ) -> Optional[dict[str, Any]]:
        return self._run(self._service.field_values(field_names, criteria, table=table))

    def field_value(
        self,
        field_name: str,
        criteria: Optional[Iterable[CriterionLike]] = None,
        *,
        table: Optional[str] = None,
    ) -> Any:
        return self._run(self._service.field_value(field_name, criteria, table=table))

    def fetch_one_side(
        self, field_name: str, value: Any, *, table: Optional[str] = None
    ) -> Optional[TableSchema]:
        return self._run(self._service.fetch_one_side(field_name, value, table=table))

    def fetch_many_side(
        self, many_table: str, key_value: Any, *, table: Optional[str] = None
    ) -> TableSchema:
        return self._run(self._service.fetch_many_side(many_table, key_value, table=table))

    def fetch_join(
        self,
        one_table: str,
        one_key: str,
        many_table: str,
        many_key: str,
        join_type: Union[JoinType, str] = JoinType.INNER,
        columns: Optional[Sequence[tuple[str, str]]] = None,
    ) -> TableSchema:
        return self._run(
            self._service.fetch_join(one_table, one_key, many_table, many_key, join_type, columns)
        )

    # Write

    def insert(self, pairs: Pairs, *, table: Optional[str] = None) -> Optional[TableSchema]:
        return self._run(self._service.insert(pairs, table=table))

    def update_by_id(
        self, id: int, pairs: Pairs, *, table: Optional[str] = None
    ) -> Optional[TableSchema]:
        return self._run(self._service.update_by_id(id, pairs, table=table))

    def update_by_criterion(
        self, criterion: CriterionLike, pairs: Pairs, *, table: Optional[str] = None
    ) -> bool:
        return self._run(self._service.update_by_criterion(criterion, pairs, table=table))

    def delete_by_id(self, id: int, *, table: Optional[str] = None) -> bool:
        return self._run(self._service.delete_by_id(id, table=table))

    def delete_by_criterion(self, criterion: CriterionLike, *, table: Optional[str] = None) -> bool:
        return self._run(self._service.delete_by_criterion(criterion, table=table))

    def bulk_insert(self, records: Sequence[Pairs], *, table: Optional[str] = None) -> int:
        return self._run(self._service.bulk_insert(records, table=table))

    # DDL

    def create_table(self, model: TableDefinition) -> int:
        return self._run(self._service.create_table(model))

    def drop_table(self, table: Optional[str] = None) -> int:
        return self._run(self._service.drop_table(table))

    def alter_table(self, model: TableDefinition) -> int:
        return self._run(self._service.alter_table(model))

    def truncate_table(self, table: Optional[str] = None) -> int:
        return self._run(self._service.truncate_table(table))

    # Raw SQL

    def execute_raw_sql(self, sql: str, params: Optional[dict[str, Any]] = None) -> int:
        return self._run(self._service.execute_raw_sql(sql, params))

    def execute_query(self, sql: str, params: Optional[dict[str, Any]] = None) -> QueryResult:
        return self._run(self._service.execute_query(sql, params))

    def execute_stored_procedure(self, procedure_name: str, pairs: Optional[Pairs] = None) -> int:
        return self._run(self._service.execute_stored_procedure(procedure_name, pairs))

    # Lifecycle

    @contextmanager
    def transaction(self) -> Iterator["DatabaseService"]:
        """Group operations into one transaction, committed on normal exit."""
        manager = self._service.transaction()
        self._run(manager.__aenter__())
        try:
            yield self
        except BaseException as e:
            if not self._run(manager.__aexit__(type(e), e, e.__traceback__)):
                raise
        else:
            self._run(manager.__aexit__(None, None, None))

    def test_connection(self) -> bool:
        return self._run(self._service.test_connection())

    def get_version(self) -> str:
        return self._run(self._service.get_version())

    def close(self) -> None:
        """Close the connection and the private event loop."""
        if self._loop.is_closed():
            return
        try:
            self._run(self._service.close())
        finally:
            self._loop.close()

    def __enter__(self) -> "DatabaseService":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
