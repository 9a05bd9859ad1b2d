"""Pytest configuration and shared fixtures for data-access tests"""

import datetime
import decimal
import os
import sys
from pathlib import Path
from typing import AsyncGenerator, Optional

import pytest
from dotenv import load_dotenv
from pydantic import Field

from db_services import AsyncDatabaseService, DatabaseConfig, DeclaredTable

# Load environment variables
load_dotenv()

# Fix for Windows: asyncpg requires SelectorEventLoop on Windows
if sys.platform == "win32":
    import asyncio

    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())  # type: ignore[attr-defined]


# ==================== Declared Test Tables ====================


class Person(DeclaredTable):
    """Simple two-column table used by the end-to-end scenarios."""

    Name: str
    Age: int


class Department(DeclaredTable):
    """One side of the Employee foreign key."""

    Title: str


class Employee(DeclaredTable):
    """Many side, with a foreign key and typed optional columns."""

    Name: str
    DepartmentId: Optional[int] = Field(
        default=None, json_schema_extra={"foreign_key": "Department"}
    )
    Salary: Optional[decimal.Decimal] = None
    Active: bool = True
    HiredOn: Optional[datetime.date] = None


class Member(DeclaredTable):
    """Referenced twice by Ticket."""

    Name: str


class Ticket(DeclaredTable):
    """Two independent foreign keys to the same table."""

    Title: str
    OpenedBy: Optional[int] = Field(default=None, json_schema_extra={"foreign_key": "Member"})
    ClosedBy: Optional[int] = Field(default=None, json_schema_extra={"foreign_key": "Member"})


# ==================== Configuration Fixtures ====================


@pytest.fixture(scope="session")
def pg_database_url() -> Optional[str]:
    """PostgreSQL test database URL from environment"""
    return os.getenv("PG_TEST_DATABASE_URL")


@pytest.fixture(scope="session")
def mysql_database_url() -> Optional[str]:
    """MySQL test database URL from environment"""
    return os.getenv("MYSQL_TEST_DATABASE_URL")


@pytest.fixture(scope="session")
def mssql_database_url() -> Optional[str]:
    """SQL Server test database URL from environment"""
    return os.getenv("MSSQL_TEST_DATABASE_URL")


@pytest.fixture(scope="session")
def oracle_database_url() -> Optional[str]:
    """Oracle test database URL from environment"""
    return os.getenv("ORACLE_TEST_DATABASE_URL")


# ==================== SQLite Fixtures ====================


@pytest.fixture
def sqlite_path(tmp_path: Path) -> Path:
    """Path of a fresh SQLite database file"""
    return tmp_path / "test.db"


@pytest.fixture
def sqlite_config(sqlite_path: Path) -> DatabaseConfig:
    """SQLite configuration with fast, minimal retries"""
    return DatabaseConfig(
        url=f"sqlite:///{sqlite_path}",
        max_retry_count=1,
        retry_delay_seconds=0.01,
    )


@pytest.fixture
async def sqlite_service(
    sqlite_config: DatabaseConfig,
) -> AsyncGenerator[AsyncDatabaseService, None]:
    """Async service on an empty SQLite database with proper cleanup"""
    service = AsyncDatabaseService(sqlite_config)
    try:
        yield service
    finally:
        await service.close()


@pytest.fixture
async def person_service(
    sqlite_service: AsyncDatabaseService,
) -> AsyncDatabaseService:
    """SQLite service with the Person table created and set as current"""
    await sqlite_service.create_table(Person)
    await sqlite_service.set_current_table("Person")
    return sqlite_service


@pytest.fixture
async def company_service(
    sqlite_service: AsyncDatabaseService,
) -> AsyncDatabaseService:
    """SQLite service with Department and Employee tables and a few rows"""
    await sqlite_service.create_table(Department)
    await sqlite_service.create_table(Employee)
    await sqlite_service.bulk_insert(
        [{"Title": "Engineering"}, {"Title": "Sales"}, {"Title": "Legal"}],
        table="Department",
    )
    await sqlite_service.bulk_insert(
        [
            {
                "Name": "Ann",
                "DepartmentId": 1,
                "Salary": decimal.Decimal("5000.50"),
                "Active": True,
                "HiredOn": datetime.date(2020, 3, 1),
            },
            {"Name": "Bob", "DepartmentId": 1, "Salary": decimal.Decimal("4200"), "Active": False},
            {"Name": "Cid", "DepartmentId": 2, "Active": True},
            {"Name": "Dee", "DepartmentId": None, "Active": True},
        ],
        table="Employee",
    )
    return sqlite_service


# ==================== Live Database Fixtures ====================


LIVE_DATABASES = [
    pytest.param("pg", marks=pytest.mark.postgresql, id="postgresql"),
    pytest.param("mysql", marks=pytest.mark.mysql, id="mysql"),
    pytest.param("mssql", marks=pytest.mark.mssql, id="mssql"),
    pytest.param("oracle", marks=pytest.mark.oracle, id="oracle"),
]


@pytest.fixture(params=LIVE_DATABASES)
def live_config(request) -> DatabaseConfig:
    """Configuration of each live test database; skipped when its URL is unset"""
    url = request.getfixturevalue(f"{request.param}_database_url")
    if not url:
        pytest.skip(f"{request.param.upper()}_TEST_DATABASE_URL not set in environment")
    return DatabaseConfig(url=url, max_retry_count=1, retry_delay_seconds=0.1)


@pytest.fixture
async def live_service(
    live_config: DatabaseConfig,
) -> AsyncGenerator[AsyncDatabaseService, None]:
    """Async service on a live database with proper cleanup"""
    service = AsyncDatabaseService(live_config)
    try:
        yield service
    finally:
        await service.close()


# ==================== Pytest Configuration ====================


def pytest_configure(config):
    """Register custom markers"""
    config.addinivalue_line("markers", "sqlite: SQLite-specific tests")
    config.addinivalue_line("markers", "postgresql: PostgreSQL-specific tests")
    config.addinivalue_line("markers", "mysql: MySQL-specific tests")
    config.addinivalue_line("markers", "mssql: SQL Server-specific tests")
    config.addinivalue_line("markers", "oracle: Oracle-specific tests")
    config.addinivalue_line(
        "markers", "integration: Integration tests requiring a database server"
    )
