"""Query intents, generated statements and raw query results."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, Field


class QueryOperator(str, Enum):
    """Comparison rendered in generated WHERE clauses."""

    EQUAL = "="
    NOT_EQUAL = "<>"
    GREATER_THAN = ">"
    GREATER_THAN_OR_EQUAL = ">="
    LESS_THAN = "<"
    LESS_THAN_OR_EQUAL = "<="
    LIKE = "LIKE"
    NOT_LIKE = "NOT LIKE"

    @property
    def sql(self) -> str:
        return self.value


class JoinType(str, Enum):
    """Join direction between a one-side and a many-side table."""

    INNER = "INNER JOIN"
    LEFT = "LEFT OUTER JOIN"
    RIGHT = "RIGHT OUTER JOIN"


class Criterion(BaseModel):
    """A single field/operator/value triple used to build a WHERE condition."""

    field: str = Field(..., description="Column name")
    value: Any = Field(None, description="Value to compare against")
    operator: QueryOperator = Field(
        default=QueryOperator.EQUAL, description="Comparison operator"
    )

    @classmethod
    def coerce(cls, criterion: Union["Criterion", tuple]) -> "Criterion":
        """Accept a Criterion or a ``(field, value[, operator])`` tuple."""
        if isinstance(criterion, Criterion):
            return criterion
        if isinstance(criterion, tuple) and len(criterion) in (2, 3):
            field_name, value, *rest = criterion
            operator = QueryOperator(rest[0]) if rest else QueryOperator.EQUAL
            return cls(field=field_name, value=value, operator=operator)
        raise TypeError(f"Cannot interpret {criterion!r} as a criterion")


class QueryOptions(BaseModel):
    """Ordering, pagination and projection for a select."""

    order_by: Optional[str] = Field(None, description="Column to order by")
    order_by_descending: bool = Field(
        default=False, description="Sort descending instead of ascending"
    )
    skip: Optional[int] = Field(None, ge=0, description="Rows to skip")
    take: Optional[int] = Field(None, ge=1, description="Maximum rows to return")
    select_fields: Optional[list[str]] = Field(
        None, description="Columns to project (all when empty)"
    )
    use_parameterized_query: bool = Field(
        default=True, description="Emit bind placeholders instead of literals"
    )

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "order_by": "Name",
                    "order_by_descending": False,
                    "skip": 20,
                    "take": 10,
                    "select_fields": ["Id", "Name"],
                }
            ]
        }
    }


@dataclass(frozen=True)
class SqlStatement:
    """SQL text plus its bind parameters.

    ``parameterized`` statements are executed through ``sqlalchemy.text`` so
    ``:name`` placeholders bind; literal statements go to the driver as-is.
    """

    sql: str
    params: dict[str, Any] = field(default_factory=dict)
    parameterized: bool = True

    def __str__(self) -> str:
        return self.sql


class QueryResult(BaseModel):
    """Result of an ad-hoc query execution."""

    query: str = Field(..., description="Executed SQL query")
    rows: list[dict[str, Any]] = Field(..., description="Result rows as dictionaries")
    row_count: int = Field(..., description="Number of rows returned")
    columns: list[str] = Field(..., description="Column names in order")
    rows_affected: int = Field(
        default=0, description="Rows affected for statements without a result set"
    )
    execution_time_ms: Optional[float] = Field(
        None, description="Execution time in milliseconds"
    )

    @property
    def is_empty(self) -> bool:
        """Check if result set is empty."""
        return self.row_count == 0

    @property
    def column_count(self) -> int:
        """Get number of columns."""
        return len(self.columns)

    def get_column_values(self, column: str) -> list[Any]:
        """Extract all values for a specific column."""
        return [row.get(column) for row in self.rows]

    def to_table_string(self, max_rows: int = 10) -> str:
        """Format result as a simple table string."""
        if self.is_empty:
            return "No rows returned"

        result_lines = [" | ".join(self.columns)]
        result_lines.append("-" * len(result_lines[0]))

        for row in self.rows[:max_rows]:
            values = [str(row.get(col, "NULL")) for col in self.columns]
            result_lines.append(" | ".join(values))

        if len(self.rows) > max_rows:
            result_lines.append(f"... ({self.row_count - max_rows} more rows)")

        return "\n".join(result_lines)
