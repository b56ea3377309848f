"""
XtreamTV response cache.

Caches decoded provider responses per data kind:
- EPG listings (short TTL)
- Live stream lists and categories
- Movie metadata (long TTL)
"""

from xtreamtv.cache.base import CacheEntry, CacheStats, CacheType, cache_key, type_predicate
from xtreamtv.cache.memory import MemoryCache

__all__ = [
    "CacheEntry",
    "CacheStats",
    "CacheType",
    "MemoryCache",
    "cache_key",
    "type_predicate",
]
