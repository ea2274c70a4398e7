"""TTL Cache — client-side cache for the row and column collections.

The grid treats the fetched collections as one cache that is dropped and
refetched wholesale after any successful mutation.
"""

import asyncio
import time
from typing import Any, Awaitable, Callable

from ..utils.logging import get_logger

logger = get_logger("utils.cache")

_MISSING = object()


class TTLCache:
    """In-memory cache with per-key TTL expiration and single-flight loading."""

    def __init__(self, default_ttl: float = 300.0, max_entries: int = 64):
        self._default_ttl = default_ttl
        self._max_entries = max_entries
        self._store: dict[str, tuple[Any, float]] = {}  # key -> (value, expires_at)
        self._locks: dict[str, asyncio.Lock] = {}
        self._generation = 0
        self.hits = 0
        self.misses = 0

    def get(self, key: str, default: Any = None) -> Any:
        """Get a cached value if it exists and hasn't expired."""
        entry = self._store.get(key)
        if entry is None:
            return default
        value, expires_at = entry
        if time.monotonic() > expires_at:
            del self._store[key]
            return default
        return value

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        self._evict_if_full()
        expires_at = time.monotonic() + (ttl if ttl is not None else self._default_ttl)
        self._store[key] = (value, expires_at)

    def invalidate(self, key: str) -> None:
        self._store.pop(key, None)

    def clear(self) -> None:
        """Drop every entry. Loads started before the clear will not be stored."""
        self._store.clear()
        self._generation += 1
        logger.debug("cache_cleared", generation=self._generation)

    def __contains__(self, key: str) -> bool:
        return self.get(key, _MISSING) is not _MISSING

    async def get_or_compute(
        self,
        key: str,
        compute_fn: Callable[[], Awaitable[Any]],
        ttl: float | None = None,
    ) -> Any:
        """Get cached value or compute it if missing/expired.

        Concurrent callers for the same key share one computation.
        """
        cached = self.get(key, _MISSING)
        if cached is not _MISSING:
            self.hits += 1
            return cached

        lock = self._locks.setdefault(key, asyncio.Lock())
        async with lock:
            cached = self.get(key, _MISSING)
            if cached is not _MISSING:
                self.hits += 1
                return cached

            self.misses += 1
            generation = self._generation
            value = await compute_fn()
            # A clear() during the fetch means the value may already be stale
            if generation == self._generation:
                self.set(key, value, ttl)
            return value

    def _evict_if_full(self) -> None:
        """Evict expired entries first, then the soonest-expiring if still full."""
        now = time.monotonic()
        expired_keys = [k for k, (_, exp) in self._store.items() if now > exp]
        for k in expired_keys:
            del self._store[k]

        if len(self._store) >= self._max_entries:
            sorted_keys = sorted(self._store, key=lambda k: self._store[k][1])
            to_remove = len(self._store) - self._max_entries + 1
            for k in sorted_keys[:to_remove]:
                del self._store[k]
