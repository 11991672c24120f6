"""
TTL-bounded in-memory cache.

Each logical domain (auth tokens, platform config, items, spells) owns its
own instance so one domain's churn cannot evict another's entries. Storage
and expiry are delegated to cachetools; this wrapper adds the empty-payload
guard, logging and the stats shape served by /health.

INVARIANTS:
- An entry added at T exists for reads at T+d with d < ttl, and is gone for d >= ttl
- The read that observes expiry removes the entry
- Empty payloads are never stored
"""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import cachetools

logger = logging.getLogger(__name__)

DEFAULT_MAX_ENTRIES = 1024

_MISSING = object()


@dataclass(frozen=True)
class CacheLookup:
    """Result of a cache read."""

    exists: bool
    data: Any = None


def _is_empty(data: Any) -> bool:
    if data is None:
        return True
    if isinstance(data, (list, tuple, dict, str)) and len(data) == 0:
        return True
    return False


class TTLCache:
    """
    Keyed store with per-instance time-to-live.

    The clock is injectable so tests can move time without sleeping. When
    the store is full the least recently used entry is dropped.
    """

    def __init__(
        self,
        name: str,
        ttl_seconds: float,
        clock: Callable[[], float] = time.monotonic,
        max_entries: int = DEFAULT_MAX_ENTRIES,
    ) -> None:
        self.name = name
        self.ttl_seconds = ttl_seconds
        self._store: cachetools.TTLCache = cachetools.TTLCache(
            maxsize=max_entries, ttl=ttl_seconds, timer=clock
        )

    def exists(self, key: str) -> CacheLookup:
        """Return the cached data for key if present and not expired."""
        data = self._store.get(key, _MISSING)
        if data is not _MISSING:
            logger.debug("[CACHE %s] Hit: %s...", self.name, key[:8])
            return CacheLookup(exists=True, data=data)

        # A miss may be a stale entry; sweep so it does not linger
        removed = self._store.expire()
        if removed:
            logger.debug("[CACHE %s] Expired entries removed: %d", self.name, len(removed))
        return CacheLookup(exists=False)

    def add(self, key: str, data: Any) -> None:
        """
        Store data under key with the current timestamp.

        Empty payloads are skipped so a transient platform failure is never
        cached as a true empty catalog.
        """
        if _is_empty(data):
            logger.debug("[CACHE %s] Skipping empty data for: %s...", self.name, key[:8])
            return

        self._store[key] = data

        size = f"{len(data)} items" if isinstance(data, list) else "object"
        logger.debug("[CACHE %s] Added: %s... (%s)", self.name, key[:8], size)

    def remove(self, key: str) -> None:
        if self._store.pop(key, None) is not None:
            logger.debug("[CACHE %s] Removed: %s...", self.name, key[:8])

    def clear(self) -> None:
        size = len(self._store)
        self._store.clear()
        logger.info("[CACHE %s] Cleared %d entries", self.name, size)

    def cleanup(self) -> int:
        """Drop every expired entry. Returns the number removed."""
        removed = len(self._store.expire())
        if removed:
            logger.info("[CACHE %s] Cleanup removed %d expired entries", self.name, removed)
        return removed

    @property
    def size(self) -> int:
        return len(self._store)

    def stats(self) -> dict[str, Any]:
        """
        Sweep expired entries and report what was valid and what was swept.

        totalEntries is the count before the sweep.
        """
        expired = len(self._store.expire())
        valid = len(self._store)
        return {
            "name": self.name,
            "ttlSeconds": self.ttl_seconds,
            "ttlMinutes": round(self.ttl_seconds / 60),
            "totalEntries": valid + expired,
            "validEntries": valid,
            "expiredEntries": expired,
        }
