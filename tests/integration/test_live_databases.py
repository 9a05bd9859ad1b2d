"""Integration Tests against live database servers

Runs the same CRUD workflow on every server whose URL is configured:
- PG_TEST_DATABASE_URL
- MYSQL_TEST_DATABASE_URL
- MSSQL_TEST_DATABASE_URL
- ORACLE_TEST_DATABASE_URL

Tests are skipped for servers without a URL.
"""

import pytest

from db_services import AsyncDatabaseService, DeclaredTable, QueryOptions

pytestmark = pytest.mark.integration


class LivePerson(DeclaredTable):
    """Scratch table, dropped before and after each test."""

    __table_name__ = "DbsLivePerson"

    Name: str
    Age: int


@pytest.fixture
async def live_people(live_service: AsyncDatabaseService):
    """Live service with a fresh scratch table set as current"""
    table = LivePerson.table_name()
    if await live_service.has_table(table):
        await live_service.drop_table(table)
    await live_service.create_table(LivePerson)
    await live_service.set_current_table(table)
    try:
        yield live_service
    finally:
        if await live_service.has_table(table):
            await live_service.drop_table(table)


class TestLiveConnection:
    """Connectivity of each configured server."""

    @pytest.mark.asyncio
    async def test_connection(self, live_service: AsyncDatabaseService):
        assert await live_service.test_connection() is True
        assert await live_service.get_version() != "Unknown"


class TestLiveCrud:
    """One CRUD workflow per server."""

    @pytest.mark.asyncio
    async def test_insert_update_delete(self, live_people: AsyncDatabaseService):
        inserted = await live_people.insert({"Name": "Ann", "Age": 30})
        record = inserted.first()
        assert record["Name"] == "Ann"
        assert record.id is not None

        updated = await live_people.update_by_id(record.id, {"Age": 31})
        assert updated.first()["Age"] == 31

        assert await live_people.delete_by_id(record.id) is True
        assert await live_people.fetch_by_id(record.id) is None

    @pytest.mark.asyncio
    async def test_bulk_insert_and_paging(self, live_people: AsyncDatabaseService):
        names = ["Ann", "Bob", "Cid", "Dee", "Eve"]
        await live_people.bulk_insert(
            [{"Name": name, "Age": 20 + i} for i, name in enumerate(names)]
        )

        assert await live_people.row_count() == 5
        page = await live_people.fetch_with_options(
            [("Age", 21, ">=")], QueryOptions(order_by="Age", skip=1, take=2)
        )
        assert [r["Name"] for r in page.records] == ["Cid", "Dee"]

    @pytest.mark.asyncio
    async def test_metadata(self, live_people: AsyncDatabaseService):
        fields = await live_people.columns_of()
        names = [f.name.casefold() for f in fields]
        assert names == ["id", "name", "age"]
        assert fields[0].is_primary_key

        tables = [t.casefold() for t in await live_people.list_tables()]
        assert LivePerson.table_name().casefold() in tables

    @pytest.mark.asyncio
    async def test_transaction_rollback(self, live_people: AsyncDatabaseService):
        with pytest.raises(RuntimeError):
            async with live_people.transaction():
                await live_people.insert({"Name": "Ann", "Age": 30})
                raise RuntimeError("abort")
        assert await live_people.row_count() == 0
