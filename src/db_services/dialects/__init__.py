"""Dialect strategies, one per supported database family."""

from typing import Union

from sqlalchemy.engine.url import make_url

from .base import Dialect, DialectStrategy, StatementBuilder
from .mssql import SQLServerStrategy
from .mysql import MySQLStrategy
from .oracle import OracleStrategy
from .postgresql import PostgresStrategy
from .sqlite import SQLiteStrategy
from ..models.config import DIALECT_ALIASES, DatabaseConfig

__all__ = [
    "Dialect",
    "DialectStrategy",
    "StatementBuilder",
    "SQLiteStrategy",
    "SQLServerStrategy",
    "MySQLStrategy",
    "PostgresStrategy",
    "OracleStrategy",
    "create_dialect",
    "detect_dialect",
]

STRATEGIES: dict[Dialect, type[DialectStrategy]] = {
    Dialect.SQLITE: SQLiteStrategy,
    Dialect.MSSQL: SQLServerStrategy,
    Dialect.MYSQL: MySQLStrategy,
    Dialect.POSTGRESQL: PostgresStrategy,
    Dialect.ORACLE: OracleStrategy,
}


def detect_dialect(url: str) -> Dialect:
    """
    Detect database dialect from connection URL.

    Args:
        url: Database connection URL

    Returns:
        Dialect of the URL

    Raises:
        ValueError: If dialect cannot be detected
    """
    try:
        parsed_url = make_url(url)
    except Exception as e:
        raise ValueError(f"Failed to detect dialect from URL: {e}")

    name = parsed_url.drivername.split("+")[0].lower()
    try:
        return Dialect(DIALECT_ALIASES.get(name, name))
    except ValueError:
        raise ValueError(f"Unsupported database dialect: {name}") from None


def create_dialect(
    source: Union[DatabaseConfig, Dialect, str],
    parameterized: bool = True,
) -> DialectStrategy:
    """
    Factory function to create the strategy for a dialect.

    Args:
        source: Database configuration, Dialect, or dialect name
        parameterized: Bind values instead of rendering literals; a
            configuration's ``use_parameterized_query`` takes precedence

    Returns:
        Dialect strategy instance

    Raises:
        ValueError: If database type is not supported
    """
    if isinstance(source, DatabaseConfig):
        parameterized = source.use_parameterized_query
        source = source.dialect

    if isinstance(source, Dialect):
        return STRATEGIES[source](parameterized=parameterized)

    try:
        dialect = Dialect(DIALECT_ALIASES.get(source.lower(), source))
    except ValueError:
        raise ValueError(
            f"Unsupported database dialect: {source}. "
            f"Supported dialects: {', '.join(d.value for d in STRATEGIES)}"
        ) from None

    return STRATEGIES[dialect](parameterized=parameterized)
