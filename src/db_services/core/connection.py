"""Database connection management with SQLAlchemy."""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from sqlalchemy import text
from sqlalchemy.engine.url import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine
from sqlalchemy.pool import NullPool

from db_services.models.config import DatabaseConfig
from db_services.models.query import SqlStatement

logger = logging.getLogger(__name__)


@dataclass
class ExecutionResult:
    """Rows (as column-keyed dicts) and affected row count of one statement."""

    rows: list[dict[str, Any]] = field(default_factory=list)
    columns: list[str] = field(default_factory=list)
    rowcount: int = -1

    def scalar(self) -> Any:
        """First column of the first row, or None."""
        if not self.rows or not self.columns:
            return None
        return self.rows[0][self.columns[0]]


class DatabaseConnection:
    """Owns one lazily opened connection on an unpooled async engine.

    Pooling is left to the driver; the engine uses ``NullPool`` so closing the
    connection really closes it. Not safe for overlapping use from several
    tasks.
    """

    def __init__(self, config: DatabaseConfig):
        """
        Initialize database connection.

        Args:
            config: Database configuration with connection URL
        """
        self.config = config
        self.engine: Optional[AsyncEngine] = None
        self._connection: Optional[AsyncConnection] = None
        self._dialect = config.dialect
        self._driver = config.driver

    async def initialize(self) -> None:
        """Create the async engine."""
        if self.engine is not None:
            return

        url = self.config.url
        connect_args: dict[str, Any] = {}

        # asyncpg expects 'ssl' in connect_args, not sslmode in the URL
        if self._dialect == "postgresql" and self._driver == "asyncpg":
            url_obj = make_url(url)
            if url_obj.query:
                if "sslmode" in url_obj.query:
                    sslmode = url_obj.query["sslmode"]
                    if sslmode in ["require", "prefer", "allow"]:
                        connect_args["ssl"] = sslmode
                    elif sslmode == "disable":
                        connect_args["ssl"] = False
                    url_obj = url_obj.difference_update_query(["sslmode"])
                elif "ssl" in url_obj.query:
                    ssl_value = url_obj.query["ssl"]
                    if ssl_value in ["require", "true", "1"]:
                        connect_args["ssl"] = "require"
                    elif ssl_value in ["false", "0", "disable"]:
                        connect_args["ssl"] = False
                    url_obj = url_obj.difference_update_query(["ssl"])
                url = url_obj.render_as_string(hide_password=False)

        self.engine = create_async_engine(
            url,
            poolclass=NullPool,
            echo=self.config.echo_sql,
            connect_args=connect_args,
        )

    async def connect(self) -> AsyncConnection:
        """
        Return the open connection, opening it on first use.

        Returns:
            The instance's connection
        """
        if self._connection is not None and not self._connection.closed:
            return self._connection

        await self.initialize()
        assert self.engine is not None

        conn = await self.engine.connect()
        try:
            if self._dialect == "sqlite":
                # SQLite leaves foreign key enforcement off per connection
                await conn.execute(text("PRAGMA foreign_keys = ON"))
                await conn.commit()
            if self.config.statement_timeout:
                await self._set_timeout(conn, self.config.statement_timeout)
                await conn.commit()
        except SQLAlchemyError:
            await conn.close()
            raise

        self._connection = conn
        logger.info(f"Opened {self._dialect} connection to {self.config.safe_url}")
        return conn

    async def _set_timeout(self, conn: AsyncConnection, timeout: int) -> None:
        """Set statement timeout based on database dialect."""
        timeout_ms = timeout * 1000

        if self._dialect == "postgresql":
            await conn.execute(text(f"SET statement_timeout = {timeout_ms}"))
        elif self._dialect == "mysql":
            await conn.execute(text(f"SET SESSION max_execution_time = {timeout_ms}"))
        elif self._dialect == "mssql":
            await conn.execute(text(f"SET LOCK_TIMEOUT {timeout_ms}"))
        elif self._dialect == "sqlite":
            await conn.execute(text(f"PRAGMA busy_timeout = {timeout_ms}"))

    @property
    def current(self) -> Optional[AsyncConnection]:
        """The open connection, if any."""
        if self._connection is not None and not self._connection.closed:
            return self._connection
        return None

    @property
    def is_open(self) -> bool:
        return self.current is not None

    async def execute(self, statement: SqlStatement) -> ExecutionResult:
        """
        Execute one statement on the open connection.

        Parameterized statements go through ``text()`` so ``:name`` binds
        apply; literal statements are passed to the driver untouched.

        Args:
            statement: SQL and parameters

        Returns:
            Result rows and affected row count

        Raises:
            RuntimeError: If no connection is open
        """
        conn = self.current
        if conn is None:
            raise RuntimeError("Connection is not open. Call connect() first.")

        if statement.parameterized:
            result = await conn.execute(text(statement.sql), statement.params)
        else:
            result = await conn.exec_driver_sql(
                statement.sql, execution_options={"no_parameters": True}
            )

        if not result.returns_rows:
            return ExecutionResult(rowcount=result.rowcount)

        columns = list(result.keys())
        rows = [dict(zip(columns, row)) for row in result.fetchall()]
        return ExecutionResult(rows=rows, columns=columns, rowcount=result.rowcount)

    async def commit(self) -> None:
        conn = self.current
        if conn is not None and conn.in_transaction():
            await conn.commit()

    async def rollback(self) -> None:
        conn = self.current
        if conn is not None and conn.in_transaction():
            await conn.rollback()

    async def close(self) -> None:
        """Close the connection; the engine stays usable for a reconnect."""
        if self._connection is not None:
            conn, self._connection = self._connection, None
            await conn.close()
            logger.info(f"Closed {self._dialect} connection")

    async def dispose(self) -> None:
        """Close the connection and dispose of the engine."""
        await self.close()
        if self.engine is not None:
            await self.engine.dispose()
            self.engine = None

    async def test_connection(self) -> bool:
        """
        Test database connectivity.

        Returns:
            True if connection successful, False otherwise
        """
        try:
            await self.connect()
            await self.execute(SqlStatement("SELECT 1" if self._dialect != "oracle" else "SELECT 1 FROM dual"))
            await self.commit()
            return True
        except (SQLAlchemyError, OSError) as e:
            logger.warning(f"Connection test failed: {e}")
            return False

    async def get_version(self) -> str:
        """
        Get database version string.

        Returns:
            Database version string
        """
        version_query = {
            "sqlite": "SELECT sqlite_version()",
            "mssql": "SELECT @@VERSION",
            "mysql": "SELECT VERSION()",
            "postgresql": "SELECT version()",
            "oracle": "SELECT banner FROM v$version WHERE ROWNUM = 1",
        }

        query = version_query.get(self._dialect, "SELECT version()")

        await self.connect()
        result = await self.execute(SqlStatement(query))
        await self.commit()
        value = result.scalar()
        return str(value) if value is not None else "Unknown"
