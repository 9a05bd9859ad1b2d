"""Process-wide registry of named database services."""

import asyncio
import logging
import threading
from typing import Awaitable, Callable, Iterable, Optional, TypeVar

from db_services.core.mapper import find_id_field
from db_services.core.service import AsyncDatabaseService
from db_services.dialects.base import CriterionLike

logger = logging.getLogger(__name__)

T = TypeVar("T")


class DatabaseRegistry:
    """Named ``AsyncDatabaseService`` instances guarded by one lock.

    The lock covers registration and lookup only. Each service still serves
    one logical session at a time.
    """

    def __init__(self) -> None:
        self._services: dict[str, AsyncDatabaseService] = {}
        self._lock = threading.Lock()

    def register(
        self,
        name: str,
        service: AsyncDatabaseService,
        replace: bool = False,
    ) -> None:
        """
        Register a service under a name.

        Raises:
            ValueError: If the name is empty, or taken and ``replace`` is False
        """
        if not name:
            raise ValueError("Service name must be a non-empty string")
        with self._lock:
            if name in self._services and not replace:
                raise ValueError(f"A service named '{name}' is already registered")
            self._services[name] = service
        logger.debug(f"Registered database service '{name}' ({service.config.safe_url})")

    def unregister(self, name: str) -> Optional[AsyncDatabaseService]:
        """Remove a service; returns it, or None if the name was unknown."""
        with self._lock:
            return self._services.pop(name, None)

    def get(self, name: str) -> AsyncDatabaseService:
        """
        Look up a service by name.

        Raises:
            KeyError: If no service has that name
        """
        with self._lock:
            service = self._services.get(name)
        if service is None:
            raise KeyError(f"No database service named '{name}'")
        return service

    def names(self) -> list[str]:
        with self._lock:
            return sorted(self._services)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._services

    def __len__(self) -> int:
        with self._lock:
            return len(self._services)

    async def aggregate(
        self,
        operation: Callable[[AsyncDatabaseService], Awaitable[T]],
        names: Optional[Iterable[str]] = None,
    ) -> dict[str, T]:
        """
        Run one operation against several services concurrently.

        Args:
            operation: Coroutine function taking a service
            names: Services to include (all registered ones by default)

        Returns:
            Results keyed by service name; the first failure propagates
        """
        selected = list(names) if names is not None else self.names()
        services = [self.get(name) for name in selected]
        results = await asyncio.gather(*(operation(service) for service in services))
        return dict(zip(selected, results))

    async def copy_records(
        self,
        source: str,
        target: str,
        table: str,
        criteria: Optional[Iterable[CriterionLike]] = None,
        target_table: Optional[str] = None,
    ) -> int:
        """
        Copy matching rows of a table from one service to another.

        Only columns the target table has are copied. The target's generated
        Id column is left for the target database to assign.

        Returns:
            Number of rows inserted into the target
        """
        source_service = self.get(source)
        target_service = self.get(target)
        target_table = target_table or table

        rows = await source_service.fetch_with_options(criteria, table=table)
        target_fields = await target_service.columns_of(target_table)
        id_field = find_id_field(target_fields)
        columns = [
            f.name for f in target_fields if id_field is None or f.name != id_field.name
        ]

        records = [
            [(name, record.get_value(name)) for name in columns if name in record]
            for record in rows.records
        ]
        count = await target_service.bulk_insert(records, table=target_table)
        logger.info(f"Copied {count} records of {table} from '{source}' to '{target}'")
        return count

    async def close_all(self) -> None:
        """Close every registered service and empty the registry."""
        with self._lock:
            services = list(self._services.values())
            self._services.clear()
        for service in services:
            await service.close()
