"""Cache provider implementations."""

from contextune.providers.cache.memory_cache import MemoryCacheProvider

__all__ = ["MemoryCacheProvider"]
