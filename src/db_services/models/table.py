"""Schema-aware result shapes: tables, fields, foreign keys and records."""

from typing import TYPE_CHECKING, Any, Iterable, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from db_services.utils import dumps, convert_row_to_json_safe

if TYPE_CHECKING:
    from db_services.models.definition import DeclaredTable


class ForeignKeyInfo(BaseModel):
    """Foreign key relationship of one column."""

    field_name: str = Field(..., description="Referencing column")
    referenced_table: str = Field(..., description="Referenced table")
    referenced_field: str = Field(..., description="Referenced column")


class FieldDescriptor(BaseModel):
    """Column metadata with a dialect-neutral logical type."""

    name: str = Field(..., description="Column name")
    logical_type: str = Field(
        default="String", description="Dialect-neutral type name (e.g. Int32)"
    )
    is_not_null: bool = Field(default=False, description="Column is NOT NULL")
    is_primary_key: bool = Field(default=False, description="Column is part of the PK")
    is_foreign_key: bool = Field(default=False, description="Column references a table")
    foreign_key: Optional[ForeignKeyInfo] = Field(
        None, description="Foreign key details when is_foreign_key"
    )

    @model_validator(mode="after")
    def _check_foreign_key(self) -> "FieldDescriptor":
        if self.foreign_key is not None:
            self.is_foreign_key = True
        elif self.is_foreign_key:
            raise ValueError(
                f"Field '{self.name}' is a foreign key but has no foreign key info"
            )
        return self


class Record(BaseModel):
    """One result row: ordered column/value pairs plus the resolved Id."""

    model_config = ConfigDict(frozen=True)

    id: Optional[int] = Field(None, description="Numeric Id when determinable")
    values: dict[str, Any] = Field(
        default_factory=dict, description="Column values in result order"
    )

    @classmethod
    def from_pairs(
        cls, pairs: Iterable[tuple[str, Any]], id: Optional[int] = None
    ) -> "Record":
        """Build a record, rejecting duplicate column names."""
        values: dict[str, Any] = {}
        for name, value in pairs:
            if name in values:
                raise ValueError(f"Duplicate column '{name}' in record")
            values[name] = value
        return cls(id=id, values=values)

    def get_value(self, name: str, default: Any = None) -> Any:
        """Value of a column, matched case-insensitively as a fallback."""
        if name in self.values:
            return self.values[name]
        folded = name.casefold()
        for key, value in self.values.items():
            if key.casefold() == folded:
                return value
        return default

    def __getitem__(self, name: str) -> Any:
        marker = object()
        value = self.get_value(name, marker)
        if value is marker:
            raise KeyError(name)
        return value

    def __contains__(self, name: object) -> bool:
        if not isinstance(name, str):
            return False
        folded = name.casefold()
        return any(key.casefold() == folded for key in self.values)

    def keys(self) -> list[str]:
        return list(self.values)

    def items(self) -> list[tuple[str, Any]]:
        return list(self.values.items())

    def as_dict(self) -> dict[str, Any]:
        return dict(self.values)

    def to_json(self, pretty: bool = False) -> str:
        return dumps(convert_row_to_json_safe(self.values), pretty=pretty)


class TableSchema(BaseModel):
    """A table's live field metadata together with fetched records."""

    table_name: str = Field(..., description="Table name")
    connection: Optional[str] = Field(
        None, description="Originating connection URL (password hidden)"
    )
    fields: list[FieldDescriptor] = Field(
        default_factory=list, description="Columns in ordinal order"
    )
    records: list[Record] = Field(default_factory=list, description="Fetched rows")

    @classmethod
    def define(
        cls,
        table_name: str,
        columns: Mapping[str, Union[str, FieldDescriptor]],
        with_id: bool = True,
    ) -> "TableSchema":
        """
        Build an ad-hoc table definition for ``create_table``.

        Args:
            table_name: Name of the table to create
            columns: Column name to logical type name (or a full descriptor)
            with_id: Prepend an auto-generated ``Id`` primary key

        Returns:
            Table schema without records
        """
        fields = []
        if with_id and not any(name.casefold() == "id" for name in columns):
            fields.append(
                FieldDescriptor(
                    name="Id",
                    logical_type="Int64",
                    is_not_null=True,
                    is_primary_key=True,
                )
            )
        for name, column in columns.items():
            if isinstance(column, FieldDescriptor):
                fields.append(column)
            else:
                fields.append(FieldDescriptor(name=name, logical_type=column))
        return cls(table_name=table_name, fields=fields)

    @property
    def field_names(self) -> list[str]:
        return [f.name for f in self.fields]

    @property
    def primary_key_columns(self) -> list[str]:
        """All primary key columns, in ordinal order (composite keys included)."""
        return [f.name for f in self.fields if f.is_primary_key]

    @property
    def foreign_keys(self) -> list[ForeignKeyInfo]:
        return [f.foreign_key for f in self.fields if f.foreign_key is not None]

    @property
    def record_count(self) -> int:
        return len(self.records)

    @property
    def is_empty(self) -> bool:
        return not self.records

    def get_field(self, name: str) -> Optional[FieldDescriptor]:
        folded = name.casefold()
        for descriptor in self.fields:
            if descriptor.name.casefold() == folded:
                return descriptor
        return None

    def get_foreign_key(self, field_name: str) -> Optional[ForeignKeyInfo]:
        """Foreign key info of a field, or None when it references nothing."""
        descriptor = self.get_field(field_name)
        return descriptor.foreign_key if descriptor else None

    def first(self) -> Optional[Record]:
        return self.records[0] if self.records else None

    def to_objects(self, model: type["DeclaredTable"]) -> list["DeclaredTable"]:
        """Validate every record into an instance of a declared model."""
        objects = []
        for record in self.records:
            data = {}
            for name in model.model_fields:
                if name in record:
                    data[name] = record.get_value(name)
            objects.append(model.model_validate(data))
        return objects

    def fields_json(self, pretty: bool = False) -> str:
        """Field metadata as JSON."""
        return dumps([f.model_dump() for f in self.fields], pretty=pretty)

    def records_json(self, pretty: bool = False) -> str:
        """Record values as a JSON array of objects."""
        rows = [convert_row_to_json_safe(r.values) for r in self.records]
        return dumps(rows, pretty=pretty)

    def to_json(self, pretty: bool = False) -> str:
        """Table name, fields and records as one JSON document."""
        return dumps(
            {
                "table_name": self.table_name,
                "fields": [f.model_dump() for f in self.fields],
                "records": [convert_row_to_json_safe(r.values) for r in self.records],
            },
            pretty=pretty,
        )
