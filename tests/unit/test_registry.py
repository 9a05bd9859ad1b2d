"""Unit tests for the named service registry (no database I/O)."""

import threading

import pytest

from db_services import AsyncDatabaseService, DatabaseConfig, DatabaseRegistry


def make_service(name: str) -> AsyncDatabaseService:
    return AsyncDatabaseService(DatabaseConfig(url=f"sqlite:///{name}.db"))


class TestRegistration:
    """Register, look up and remove services."""

    def test_register_and_get(self):
        registry = DatabaseRegistry()
        service = make_service("main")
        registry.register("main", service)

        assert registry.get("main") is service
        assert "main" in registry
        assert len(registry) == 1

    def test_duplicate_name(self):
        registry = DatabaseRegistry()
        registry.register("main", make_service("a"))
        with pytest.raises(ValueError, match="already registered"):
            registry.register("main", make_service("b"))

    def test_replace(self):
        registry = DatabaseRegistry()
        registry.register("main", make_service("a"))
        replacement = make_service("b")
        registry.register("main", replacement, replace=True)
        assert registry.get("main") is replacement

    def test_empty_name(self):
        with pytest.raises(ValueError):
            DatabaseRegistry().register("", make_service("a"))

    def test_unknown_name(self):
        with pytest.raises(KeyError):
            DatabaseRegistry().get("missing")

    def test_unregister(self):
        registry = DatabaseRegistry()
        service = make_service("a")
        registry.register("a", service)
        assert registry.unregister("a") is service
        assert registry.unregister("a") is None
        assert "a" not in registry

    def test_names_are_sorted(self):
        registry = DatabaseRegistry()
        for name in ("reports", "archive", "main"):
            registry.register(name, make_service(name))
        assert registry.names() == ["archive", "main", "reports"]

    def test_concurrent_registration(self):
        """Registrations from several threads are all kept."""
        registry = DatabaseRegistry()
        services = {f"db{i}": make_service(f"db{i}") for i in range(20)}

        threads = [
            threading.Thread(target=registry.register, args=(name, service))
            for name, service in services.items()
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(registry) == 20
        assert set(registry.names()) == set(services)


class TestAggregate:
    """Operations fanned out over several services."""

    @pytest.mark.asyncio
    async def test_results_keyed_by_name(self):
        registry = DatabaseRegistry()
        registry.register("a", make_service("first"))
        registry.register("b", make_service("second"))

        async def database_of(service: AsyncDatabaseService) -> str:
            return service.config.database

        results = await registry.aggregate(database_of)
        assert results == {"a": "first.db", "b": "second.db"}

        subset = await registry.aggregate(database_of, names=["b"])
        assert subset == {"b": "second.db"}

    @pytest.mark.asyncio
    async def test_close_all_empties_registry(self):
        registry = DatabaseRegistry()
        registry.register("a", make_service("first"))
        await registry.close_all()
        assert len(registry) == 0
