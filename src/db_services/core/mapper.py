"""Translate raw driver rows into field descriptors and records.

Metadata queries of every dialect alias their output columns to the same
names, so one mapper serves all of them:

- columns: ``column_name``, ``data_type``, ``is_nullable``, ``is_primary_key``
- foreign keys: ``column_name``, ``referenced_table``, ``referenced_column``

Drivers differ in the case they return column labels in (Oracle upper-cases
unquoted labels), so lookups are case-insensitive.
"""

import datetime
import decimal
import logging
import uuid
from typing import Any, Callable, Iterable, Mapping, Optional, Sequence

from db_services.models.table import FieldDescriptor, ForeignKeyInfo, Record

logger = logging.getLogger(__name__)

INTEGER_TYPES = {"Byte", "SByte", "Int16", "Int32", "Int64", "UInt16", "UInt32", "UInt64"}
FLOAT_TYPES = {"Single", "Double"}
TRUE_STRINGS = {"1", "true", "t", "y", "yes", "on"}


def row_value(row: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    """First value found under any of ``keys``, ignoring case."""
    for key in keys:
        if key in row:
            return row[key]
    folded = {str(k).casefold(): v for k, v in row.items()}
    for key in keys:
        if key.casefold() in folded:
            return folded[key.casefold()]
    return default


def truthy(value: Any) -> bool:
    """Interpret metadata flags: booleans, 0/1, 'YES'/'NO', 'PRI', 't'/'f'."""
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    if isinstance(value, (int, decimal.Decimal, float)):
        return value != 0
    return str(value).strip().lower() in TRUE_STRINGS


def to_foreign_key_info(raw_foreign_keys: Iterable[Mapping[str, Any]]) -> list[ForeignKeyInfo]:
    """Map raw foreign key rows to ``ForeignKeyInfo``."""
    return [
        ForeignKeyInfo(
            field_name=str(row_value(row, "column_name")),
            referenced_table=str(row_value(row, "referenced_table")),
            referenced_field=str(row_value(row, "referenced_column")),
        )
        for row in raw_foreign_keys
    ]


def to_field_descriptors(
    raw_columns: Iterable[Mapping[str, Any]],
    raw_foreign_keys: Iterable[Mapping[str, Any]],
    native_to_logical: Callable[[str], str],
) -> list[FieldDescriptor]:
    """
    Build field descriptors, joining column rows with foreign key rows by name.

    Every column the metadata flags as a primary key member is marked, so a
    composite key shows up as several ``is_primary_key`` fields.

    Args:
        raw_columns: Column metadata rows in ordinal order
        raw_foreign_keys: Foreign key metadata rows
        native_to_logical: Dialect type-name translation

    Returns:
        One descriptor per column
    """
    foreign_keys = {fk.field_name.casefold(): fk for fk in to_foreign_key_info(raw_foreign_keys)}

    descriptors = []
    for row in raw_columns:
        name = str(row_value(row, "column_name"))
        native = str(row_value(row, "data_type", default="") or "")
        nullable = row_value(row, "is_nullable", default="YES")
        descriptors.append(
            FieldDescriptor(
                name=name,
                logical_type=native_to_logical(native),
                is_not_null=not truthy(nullable),
                is_primary_key=truthy(row_value(row, "is_primary_key")),
                foreign_key=foreign_keys.get(name.casefold()),
            )
        )
    return descriptors


def _to_bool(value: Any) -> bool:
    if isinstance(value, (bytes, bytearray)):
        return any(value)
    return truthy(value)


def _to_datetime(value: Any) -> datetime.datetime:
    if isinstance(value, datetime.datetime):
        return value
    if isinstance(value, datetime.date):
        return datetime.datetime.combine(value, datetime.time())
    return datetime.datetime.fromisoformat(str(value))


def _to_date(value: Any) -> datetime.date:
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    return datetime.date.fromisoformat(str(value)[:10])


def _to_time(value: Any) -> datetime.time:
    if isinstance(value, datetime.time):
        return value
    if isinstance(value, datetime.timedelta):
        return (datetime.datetime.min + value).time()
    return datetime.time.fromisoformat(str(value))


def _to_uuid(value: Any) -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    if isinstance(value, (bytes, bytearray)) and len(value) == 16:
        return uuid.UUID(bytes=bytes(value))
    return uuid.UUID(str(value))


def _to_int(value: Any) -> int:
    if isinstance(value, float) and not value.is_integer():
        raise ValueError(f"{value!r} is not integral")
    return int(value)


_CONVERTERS: dict[str, Callable[[Any], Any]] = {
    "Boolean": _to_bool,
    "Decimal": lambda v: v if isinstance(v, decimal.Decimal) else decimal.Decimal(str(v)),
    "DateTime": _to_datetime,
    "DateTimeOffset": _to_datetime,
    "DateOnly": _to_date,
    "TimeOnly": _to_time,
    "Guid": _to_uuid,
}
_CONVERTERS.update({name: _to_int for name in INTEGER_TYPES})
_CONVERTERS.update({name: float for name in FLOAT_TYPES})


def coerce_value(value: Any, logical_type: Optional[str]) -> Any:
    """
    Convert a raw driver value to the Python type of its declared column.

    The declared type decides, not the runtime type: SQLite hands back 0/1
    for BOOLEAN columns and ISO strings for DATETIME columns. Values that do
    not parse as the declared type are passed through unchanged.
    """
    if value is None or logical_type is None:
        return value
    converter = _CONVERTERS.get(logical_type)
    if converter is None:
        return value
    try:
        return converter(value)
    except (ValueError, TypeError, ArithmeticError) as exc:
        logger.debug(f"Keeping raw {type(value).__name__} for {logical_type} column: {exc}")
        return value


def find_id_field(fields: Sequence[FieldDescriptor]) -> Optional[FieldDescriptor]:
    """The column holding a record's numeric Id.

    An integer column named ``Id`` wins; otherwise the sole integer primary key
    column. Composite keys and text keys have no numeric Id.
    """
    for descriptor in fields:
        if descriptor.name.casefold() == "id":
            return descriptor if descriptor.logical_type in INTEGER_TYPES else None
    keys = [f for f in fields if f.is_primary_key]
    if len(keys) == 1 and keys[0].logical_type in INTEGER_TYPES:
        return keys[0]
    return None


def resolve_id(values: Mapping[str, Any], id_column: Optional[str] = "Id") -> Optional[int]:
    """Numeric Id of a row, or None when absent or not integral."""
    if id_column is None:
        return None
    raw = row_value(values, id_column)
    if raw is None or isinstance(raw, bool):
        return None
    try:
        return _to_int(raw)
    except (ValueError, TypeError):
        return None


def to_records(
    rows: Iterable[Mapping[str, Any]],
    fields: Optional[Sequence[FieldDescriptor]] = None,
) -> list[Record]:
    """
    Map driver rows to immutable records.

    Args:
        rows: Rows as column-keyed mappings
        fields: Declared columns of the source table, used for type coercion

    Returns:
        Records in row order
    """
    types_by_name = {f.name.casefold(): f.logical_type for f in fields or ()}
    if fields:
        id_field = find_id_field(fields)
        id_column = id_field.name if id_field is not None else None
    else:
        id_column = "Id"

    records = []
    for row in rows:
        pairs = [
            (str(name), coerce_value(value, types_by_name.get(str(name).casefold())))
            for name, value in row.items()
        ]
        records.append(Record.from_pairs(pairs, id=resolve_id(dict(pairs), id_column)))
    return records
