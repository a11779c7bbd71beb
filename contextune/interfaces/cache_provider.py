"""Abstract base class for cache providers.

The rule matcher caches matched-rule lists per context, and the context
service caches weather readings per rounded coordinate.  Both caches are
best-effort: a miss or a stale entry only causes recomputation, never an
incorrect result, so implementations need plain key-value semantics
and nothing transactional.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class ICacheProvider(ABC):
    """Contract for key-value caches.

    Operations are async so a network-backed store (e.g. Redis) can be
    dropped in without blocking the event loop.  Implementations must be
    safe for concurrent use by overlapping requests.
    """

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """Return the value under *key*, or ``None`` if missing or expired."""

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        """Store *value* under *key*.

        Parameters
        ----------
        key:
            The cache key.
        value:
            The value to store.
        ttl:
            Time-to-live in seconds.  ``None`` uses the provider default.
        """

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove *key*; a no-op if it is absent."""

    @abstractmethod
    async def clear(self) -> None:
        """Drop every entry."""
