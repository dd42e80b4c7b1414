"""Cache providers.

MemoryCacheProvider holds document display names looked up while building
citations.  It is per-process; a shared backend can implement
ICacheProvider without touching the services.
"""

from src.providers.cache.memory_cache import MemoryCacheProvider

__all__ = ["MemoryCacheProvider"]
