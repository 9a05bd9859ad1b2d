"""JSON serialization of records and table metadata using orjson.

orjson handles datetime, date, time, UUID, dataclasses and pydantic models
natively. Database drivers hand back a few more types, handled below.
"""

import base64
import datetime
import decimal
from typing import Any

import orjson


def _default_handler(obj: Any) -> Any:
    """
    Custom default handler for types orjson doesn't handle natively.

    Args:
        obj: Object to serialize

    Returns:
        JSON-serializable representation

    Raises:
        TypeError: If object cannot be serialized
    """
    # Decimal as string to keep precision (money, NUMERIC(18,2), ...)
    if isinstance(obj, decimal.Decimal):
        return str(obj)

    # timedelta - convert to total seconds
    if isinstance(obj, datetime.timedelta):
        return obj.total_seconds()

    # bytes/bytearray/memoryview (BLOB, varbinary, bytea, RAW)
    if isinstance(obj, (bytes, bytearray, memoryview)):
        data = bytes(obj)
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError:
            return base64.b64encode(data).decode("ascii")

    if isinstance(obj, (set, frozenset)):
        return list(obj)

    raise TypeError(f"Object of type {type(obj)} is not JSON serializable")


def convert_value_to_json_safe(value: Any) -> Any:
    """
    Convert a value to JSON-serializable format.

    Uses orjson's serialization and decodes back to Python objects, so the
    result matches what will actually be serialized.

    Args:
        value: Value to convert

    Returns:
        JSON-serializable value
    """
    try:
        json_bytes = orjson.dumps(value, default=_default_handler)
        return orjson.loads(json_bytes)
    except TypeError:
        return str(value)


def convert_row_to_json_safe(row: dict[str, Any]) -> dict[str, Any]:
    """
    Convert all values in a row dict to JSON-serializable formats.

    Args:
        row: Dictionary representing a database row

    Returns:
        Dictionary with JSON-serializable values
    """
    return {key: convert_value_to_json_safe(value) for key, value in row.items()}


def convert_rows_to_json_safe(rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Convert all rows to JSON-serializable format."""
    return [convert_row_to_json_safe(row) for row in rows]


def dumps(obj: Any, pretty: bool = False) -> str:
    """
    Serialize object to JSON string using orjson.

    Args:
        obj: Object to serialize
        pretty: Indent with two spaces

    Returns:
        JSON string
    """
    option = orjson.OPT_INDENT_2 if pretty else 0
    return orjson.dumps(obj, default=_default_handler, option=option).decode("utf-8")


def loads(data: str) -> Any:
    """Parse a JSON document produced by :func:`dumps`."""
    return orjson.loads(data)
