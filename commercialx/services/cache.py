"""Thread-safe expiring cache for upstream enrichment lookups.

Caches registry decodes (keyed on VIN) and fuel-economy records (keyed on
year/make/model) so repeated listings of the same chassis skip the provider
round trips. Each entry carries its own TTL; expired entries are dropped
lazily on the next read. Each worker process gets its own cache.
"""

import logging
import threading
import time
from collections.abc import Callable
from typing import Any

from cachetools import TLRUCache

logger = logging.getLogger(__name__)


def _entry_expiry(_key: Any, entry: tuple[Any, float], now: float) -> float:
    return now + entry[1]


class ExpiringCache:
    """Per-entry TTL cache guarded by a threading.Lock."""

    def __init__(
        self,
        maxsize: int = 512,
        default_ttl: float = 3600,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the cache.

        Args:
            maxsize: Max entries before least-recently-used eviction.
            default_ttl: Seconds an entry lives when ``set`` gets no ttl.
            timer: Clock used for expiry (injectable for tests).
        """
        self._cache: TLRUCache[Any, tuple[Any, float]] = TLRUCache(
            maxsize=maxsize, ttu=_entry_expiry, timer=timer
        )
        self._default_ttl = default_ttl
        self._lock = threading.Lock()

    @staticmethod
    def registry_key(vin: str) -> tuple[str, str]:
        return ("nhtsa", vin.strip().upper())

    @staticmethod
    def fuel_economy_key(year: int, make: str, model: str) -> tuple[str, int, str, str]:
        return ("epa", year, make.strip().lower(), model.strip().lower())

    def get(self, key: Any) -> Any | None:
        """Get a cached value. Returns None on miss or expiry."""
        with self._lock:
            entry = self._cache.get(key)
        if entry is None:
            return None
        return entry[0]

    def set(self, key: Any, value: Any, ttl: float | None = None) -> None:
        """Store a value for ``ttl`` seconds (default TTL when omitted)."""
        ttl = self._default_ttl if ttl is None else ttl
        with self._lock:
            self._cache[key] = (value, ttl)
        logger.debug("Enrichment cache set: %s ttl=%s", key, ttl)

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)
