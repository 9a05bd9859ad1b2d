"""Statically declared table models.

A table is declared once as a pydantic model::

    class Person(DeclaredTable):
        Name: str
        Age: int
        Email: Optional[str] = None

    class Pet(DeclaredTable):
        Name: str
        PersonId: int = Field(json_schema_extra={"foreign_key": "Person"})

The column layout (``TableSchema``) is derived when the subclass is created
and stored in a registry, so mapping code never re-inspects the class.
"""

import datetime
import decimal
import types
import uuid
from typing import Any, ClassVar, Optional, Union, get_args, get_origin

from pydantic import BaseModel, ConfigDict, Field
from pydantic.fields import FieldInfo

from db_services.models.table import FieldDescriptor, ForeignKeyInfo, TableSchema

# Python annotation -> logical type name. Order matters: bool before int,
# datetime before date.
PYTHON_LOGICAL_TYPES: list[tuple[type, str]] = [
    (bool, "Boolean"),
    (int, "Int32"),
    (float, "Double"),
    (decimal.Decimal, "Decimal"),
    (str, "String"),
    (datetime.datetime, "DateTime"),
    (datetime.date, "DateOnly"),
    (datetime.time, "TimeOnly"),
    (datetime.timedelta, "TimeSpan"),
    (bytes, "Byte[]"),
    (uuid.UUID, "Guid"),
]

_DEFINITIONS: dict[type, TableSchema] = {}


def _unwrap_optional(annotation: Any) -> tuple[Any, bool]:
    """Strip ``Optional[...]`` and report whether None was allowed."""
    origin = get_origin(annotation)
    if origin is Union or origin is types.UnionType:
        args = [a for a in get_args(annotation) if a is not type(None)]
        if len(args) == 1:
            return args[0], True
    return annotation, False


def logical_type_of(annotation: Any) -> str:
    """Map a Python annotation to a logical type name (String when unknown)."""
    annotation, _ = _unwrap_optional(annotation)
    if isinstance(annotation, type):
        for python_type, logical in PYTHON_LOGICAL_TYPES:
            if issubclass(annotation, python_type):
                return logical
    return "String"


def _extra(info: FieldInfo) -> dict[str, Any]:
    extra = info.json_schema_extra
    return extra if isinstance(extra, dict) else {}


def _describe_field(name: str, info: FieldInfo) -> FieldDescriptor:
    extra = _extra(info)
    _, optional = _unwrap_optional(info.annotation)
    is_primary_key = bool(extra.get("primary_key", False))

    logical = extra.get("logical_type")
    if logical is None:
        logical = logical_type_of(info.annotation)
        if is_primary_key and logical == "Int32":
            logical = "Int64"

    foreign_key = None
    target = extra.get("foreign_key")
    if target:
        table, _, column = str(target).partition(".")
        foreign_key = ForeignKeyInfo(
            field_name=name,
            referenced_table=table,
            referenced_field=column or "Id",
        )

    return FieldDescriptor(
        name=name,
        logical_type=logical,
        is_not_null=is_primary_key or (info.is_required() and not optional),
        is_primary_key=is_primary_key,
        foreign_key=foreign_key,
    )


def build_table_definition(model: type[BaseModel], table_name: str) -> TableSchema:
    """Derive the column layout of a pydantic model."""
    fields = [
        _describe_field(name, info)
        for name, info in model.model_fields.items()
        if not _extra(info).get("ignore", False)
    ]
    return TableSchema(table_name=table_name, fields=fields)


def table_definition(model: type["DeclaredTable"]) -> TableSchema:
    """Cached column layout of a declared table model."""
    definition = _DEFINITIONS.get(model)
    if definition is None:
        definition = build_table_definition(model, model.table_name())
        _DEFINITIONS[model] = definition
    return definition


class DeclaredTable(BaseModel):
    """Base class for statically declared tables with an ``Id`` primary key."""

    model_config = ConfigDict(from_attributes=True, extra="ignore")

    __table_name__: ClassVar[Optional[str]] = None

    Id: Optional[int] = Field(
        default=None,
        description="Primary key, generated by the database on insert",
        json_schema_extra={"primary_key": True},
    )

    @classmethod
    def __pydantic_init_subclass__(cls, **kwargs: Any) -> None:
        super().__pydantic_init_subclass__(**kwargs)
        _DEFINITIONS[cls] = build_table_definition(cls, cls.table_name())

    @classmethod
    def table_name(cls) -> str:
        return cls.__table_name__ or cls.__name__

    @classmethod
    def definition(cls) -> TableSchema:
        return table_definition(cls)

    def to_pairs(self, include_key: bool = False) -> dict[str, Any]:
        """Column values ready for insert/update, keyed by column name."""
        data = self.model_dump()
        return {
            f.name: data[f.name]
            for f in self.definition().fields
            if include_key or not f.is_primary_key
        }
