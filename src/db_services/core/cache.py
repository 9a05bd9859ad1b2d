"""Time-to-live cache of per-table column metadata."""

import logging
import threading
import time
from typing import Callable, Optional

from cachetools import TTLCache

from db_services.models.table import FieldDescriptor

logger = logging.getLogger(__name__)


class SchemaCache:
    """Column metadata keyed by table name (case-insensitive).

    Entries expire ``ttl_minutes`` after they were set and are evicted lazily
    on the next read. Nothing is invalidated automatically: code that runs DDL
    calls :meth:`invalidate`.
    """

    DEFAULT_TTL_MINUTES = 5
    DEFAULT_MAXSIZE = 512

    def __init__(
        self,
        ttl_minutes: float = DEFAULT_TTL_MINUTES,
        maxsize: int = DEFAULT_MAXSIZE,
        timer: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the cache.

        Args:
            ttl_minutes: Lifetime of an entry; 0 disables caching
            maxsize: Maximum number of tables kept
            timer: Clock returning seconds, injectable for tests
        """
        self.ttl_minutes = ttl_minutes
        self._cache: TTLCache = TTLCache(maxsize=maxsize, ttl=ttl_minutes * 60, timer=timer)
        self._lock = threading.RLock()

    @staticmethod
    def _key(table_name: str) -> str:
        return table_name.casefold()

    def get(self, table_name: str) -> Optional[list[FieldDescriptor]]:
        """Cached fields of a table, or None on a miss or after expiry."""
        with self._lock:
            expired = self._cache.expire()
            fields = self._cache.get(self._key(table_name))
        if expired:
            logger.debug(f"Evicted {len(expired)} expired schema cache entries")
        if fields is None:
            logger.debug(f"Schema cache miss for {table_name}")
            return None
        logger.debug(f"Schema cache hit for {table_name}")
        return list(fields)

    def set(self, table_name: str, fields: list[FieldDescriptor]) -> None:
        with self._lock:
            self._cache[self._key(table_name)] = tuple(fields)
        logger.debug(f"Cached {len(fields)} fields for {table_name}")

    def invalidate(self, table_name: str) -> None:
        with self._lock:
            self._cache.pop(self._key(table_name), None)

    def invalidate_all(self) -> None:
        with self._lock:
            self._cache.clear()

    def is_fresh(self, table_name: str) -> bool:
        """True while a non-expired entry exists for the table."""
        with self._lock:
            return self._key(table_name) in self._cache

    def __len__(self) -> int:
        with self._lock:
            self._cache.expire()
            return len(self._cache)
