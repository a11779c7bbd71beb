"""In-memory cache provider using cachetools.TLRUCache.

Backs the rule matcher's cache of matched rule lists and the context
service's weather cache.  Each entry carries its own time-to-live,
so the two callers can share one implementation with different expiry.
Suitable for single-process deployments; a shared backend can be swapped
in via the ICacheProvider interface.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import Any, NamedTuple

import structlog
from cachetools import TLRUCache

from contextune.interfaces.cache_provider import ICacheProvider

logger = structlog.get_logger(logger_name=__name__)


class _Entry(NamedTuple):
    value: Any
    ttl: float


def _expires_at(_key: str, entry: _Entry, now: float) -> float:
    return now + entry.ttl


class MemoryCacheProvider(ICacheProvider):
    """In-memory cache with per-entry expiry backed by ``cachetools.TLRUCache``.

    Parameters
    ----------
    max_size:
        Maximum number of entries before the least-recently-used entry
        is evicted.
    ttl:
        Time-to-live in seconds for entries stored without an explicit one.
    timer:
        Monotonic clock in seconds.  Injected by tests to expire entries
        without sleeping.
    """

    def __init__(
        self,
        max_size: int = 512,
        ttl: int = 1800,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        self._default_ttl = ttl
        self._cache: TLRUCache[str, _Entry] = TLRUCache(
            maxsize=max_size, ttu=_expires_at, timer=timer
        )
        self._hits = 0
        self._misses = 0

    # ------------------------------------------------------------------
    # ICacheProvider implementation
    # ------------------------------------------------------------------

    async def get(self, key: str) -> Any | None:
        """Retrieve the cached value for *key*, or ``None`` if missing/expired."""
        entry = self._cache.get(key)
        if entry is None:
            self._misses += 1
            logger.debug("cache_miss", key=key)
            return None
        self._hits += 1
        logger.debug("cache_hit", key=key)
        return entry.value

    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        """Store *value* under *key* for *ttl* seconds (the default TTL when omitted)."""
        expiry = self._default_ttl if ttl is None else ttl
        self._cache[key] = _Entry(value=value, ttl=expiry)
        logger.debug("cache_set", key=key, ttl=expiry)

    async def delete(self, key: str) -> None:
        self._cache.pop(key, None)
        logger.debug("cache_delete", key=key)

    async def clear(self) -> None:
        size = len(self._cache)
        self._cache.clear()
        logger.info("cache_cleared", entries=size, **self.stats())

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def stats(self) -> dict[str, int]:
        """Hit and miss counts since construction."""
        return {"hits": self._hits, "misses": self._misses}

    def __len__(self) -> int:
        # TLRUCache only drops expired entries lazily.
        self._cache.expire()
        return len(self._cache)
