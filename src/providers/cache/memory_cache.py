"""In-memory cache provider using cachetools.TTLCache.

Single-process cache; entries expire after a uniform TTL and the least
recently used entry is evicted once ``max_size`` is reached.
"""

from __future__ import annotations

from typing import Any

import structlog
from cachetools import TTLCache

from src.interfaces.cache_provider import ICacheProvider

logger = structlog.get_logger(logger_name=__name__)


class MemoryCacheProvider(ICacheProvider):
    """In-memory TTL cache backed by ``cachetools.TTLCache``.

    Parameters
    ----------
    max_size:
        Maximum number of entries.
    ttl:
        Time-to-live in seconds for every entry.
    """

    def __init__(self, max_size: int = 1000, ttl: int = 300) -> None:
        self._cache: TTLCache[str, Any] = TTLCache(maxsize=max_size, ttl=ttl)

    async def get(self, key: str) -> Any | None:
        value = self._cache.get(key)
        logger.debug("cache_hit" if value is not None else "cache_miss", key=key)
        return value

    async def set(self, key: str, value: Any) -> None:
        self._cache[key] = value

    async def delete_prefix(self, prefix: str) -> int:
        keys = [k for k in list(self._cache.keys()) if k.startswith(prefix)]
        for key in keys:
            self._cache.pop(key, None)
        if keys:
            logger.debug("cache_prefix_cleared", prefix=prefix, removed=len(keys))
        return len(keys)
