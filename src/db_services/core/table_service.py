"""Typed CRUD over one declared table model."""

from typing import Any, Generic, Optional, Sequence, TypeVar, Union

from db_services.core.service import AsyncDatabaseService
from db_services.core.validation import Validator
from db_services.exceptions import DbValidationError
from db_services.models.definition import DeclaredTable
from db_services.models.query import QueryOperator
from db_services.models.table import TableSchema

T = TypeVar("T", bound=DeclaredTable)


class TableService(Generic[T]):
    """CRUD for a ``DeclaredTable`` subclass, returning model instances.

    Objects are re-validated by pydantic before any SQL is generated.
    """

    def __init__(self, service: AsyncDatabaseService, model: type[T]):
        """
        Initialize the table service.

        Args:
            service: Service the table lives in
            model: Declared table model
        """
        self.service = service
        self.model = model

    @property
    def table_name(self) -> str:
        return self.model.table_name()

    def _objects(self, schema: Optional[TableSchema]) -> list[T]:
        if schema is None:
            return []
        return schema.to_objects(self.model)  # type: ignore[return-value]

    async def create_table(self) -> int:
        return await self.service.create_table(self.model)

    async def drop_table(self) -> int:
        return await self.service.drop_table(self.table_name)

    async def fetch_all(self) -> list[T]:
        return self._objects(await self.service.fetch_all(table=self.table_name))

    async def fetch_by_id(self, id: int) -> Optional[T]:
        objects = self._objects(await self.service.fetch_by_id(id, table=self.table_name))
        return objects[0] if objects else None

    async def fetch_by_criterion(
        self,
        field_name: str,
        value: Any,
        operator: Union[QueryOperator, str] = QueryOperator.EQUAL,
    ) -> list[T]:
        schema = await self.service.fetch_by_criterion(
            field_name, value, operator, table=self.table_name
        )
        return self._objects(schema)

    async def count(self) -> int:
        return await self.service.row_count(self.table_name)

    async def insert(self, obj: T) -> Optional[T]:
        """Insert an object and return it as stored, with its generated Id."""
        Validator.validate_object(obj)
        schema = await self.service.insert(obj.to_pairs(), table=self.table_name)
        objects = self._objects(schema)
        return objects[0] if objects else None

    async def update(self, obj: T) -> Optional[T]:
        """
        Write an object's non-null fields back to its row.

        Raises:
            DbValidationError: If the object has no Id
        """
        if obj.Id is None:
            raise DbValidationError(
                "Cannot update an object without an Id",
                field_name="Id",
                table_name=self.table_name,
                operation="update",
            )
        Validator.validate_object(obj)
        schema = await self.service.update_by_id(obj.Id, obj.to_pairs(), table=self.table_name)
        objects = self._objects(schema)
        return objects[0] if objects else None

    async def delete(self, obj_or_id: Union[T, int]) -> bool:
        if isinstance(obj_or_id, DeclaredTable):
            if obj_or_id.Id is None:
                raise DbValidationError(
                    "Cannot delete an object without an Id",
                    field_name="Id",
                    table_name=self.table_name,
                    operation="delete",
                )
            obj_or_id = obj_or_id.Id
        return await self.service.delete_by_id(obj_or_id, table=self.table_name)

    async def bulk_insert(self, objects: Sequence[T]) -> int:
        """Insert all objects in one transaction; none are stored on failure."""
        for obj in objects:
            Validator.validate_object(obj)
        return await self.service.bulk_insert(
            [obj.to_pairs() for obj in objects], table=self.table_name
        )
