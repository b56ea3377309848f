"""
In-memory response cache with per-entry TTL and a periodic sweep.
"""

import asyncio
import logging
import time
from typing import Any, Callable, Dict, List, Optional

from xtreamtv.cache.base import CacheEntry, CacheStats, CacheType, Clock, type_predicate

logger = logging.getLogger(__name__)


class MemoryCache:
    """
    Process-local TTL cache for decoded provider responses.

    Features:
    - Time-based expiration against an injectable clock
    - Lazy eviction on lookup
    - Background sweep task that purges expired entries
    - Predicate and type-based invalidation

    Expiry is evaluated with ``CacheEntry.is_expired`` on both the lookup
    path and the sweep, so they always agree. Mutations never span an
    ``await`` and are therefore atomic for other asyncio tasks.
    """

    def __init__(self, clock: Clock = time.time, sweep_interval: float = 300.0):
        self._cache: Dict[str, CacheEntry] = {}
        self._clock = clock
        self._sweep_interval = sweep_interval
        self._cleanup_task: Optional[asyncio.Task] = None
        self.stats = CacheStats()

    def __len__(self) -> int:
        return len(self._cache)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    @property
    def running(self) -> bool:
        return self._cleanup_task is not None and not self._cleanup_task.done()

    async def start(self) -> None:
        """Start background cleanup task."""
        if self._cleanup_task is None:
            self._cleanup_task = asyncio.create_task(self._cleanup_loop())
            logger.debug(f"Cache sweep started (every {self._sweep_interval}s)")

    async def stop(self) -> None:
        """Stop background cleanup task."""
        if self._cleanup_task:
            self._cleanup_task.cancel()
            try:
                await self._cleanup_task
            except asyncio.CancelledError:
                pass
            self._cleanup_task = None
            logger.debug("Cache sweep stopped")

    async def _cleanup_loop(self) -> None:
        """Periodically clean up expired entries."""
        while True:
            await asyncio.sleep(self._sweep_interval)
            removed = self.purge_expired()
            if removed:
                logger.debug(f"Cache sweep removed {removed} expired entries")

    def purge_expired(self) -> int:
        """Remove every expired entry. Returns the number removed."""
        now = self._clock()
        expired_keys = [
            key for key, entry in self._cache.items()
            if entry.is_expired(now)
        ]
        for key in expired_keys:
            del self._cache[key]
        self.stats.evictions += len(expired_keys)
        self.stats.entry_count = len(self._cache)
        return len(expired_keys)

    def get(self, key: str) -> Optional[Any]:
        """Get a value from cache. Expired entries are removed and reported absent."""
        entry = self._cache.get(key)

        if entry is None:
            self.stats.misses += 1
            return None

        if entry.is_expired(self._clock()):
            del self._cache[key]
            self.stats.misses += 1
            self.stats.evictions += 1
            self.stats.entry_count = len(self._cache)
            return None

        self.stats.hits += 1
        return entry.value

    def set(
        self,
        key: str,
        value: Any,
        ttl: float,
        cache_type: Optional[CacheType] = None,
    ) -> None:
        """Store ``value`` until ``now + ttl``."""
        if ttl <= 0:
            raise ValueError("ttl must be > 0")
        now = self._clock()
        self._cache[key] = CacheEntry(
            value=value,
            created_at=now,
            expires_at=now + ttl,
            cache_type=cache_type,
        )
        self.stats.sets += 1
        self.stats.entry_count = len(self._cache)

    def delete(self, key: str) -> bool:
        """Delete a value from cache."""
        if self._cache.pop(key, None) is None:
            return False
        self.stats.deletes += 1
        self.stats.entry_count = len(self._cache)
        return True

    def invalidate(self, predicate: Callable[[str], bool]) -> int:
        """Remove all entries whose key matches ``predicate``."""
        keys_to_delete = [key for key in self._cache if predicate(key)]
        for key in keys_to_delete:
            del self._cache[key]
        self.stats.deletes += len(keys_to_delete)
        self.stats.entry_count = len(self._cache)
        return len(keys_to_delete)

    def invalidate_type(self, cache_type: CacheType) -> int:
        """Invalidate all entries of a specific type."""
        return self.invalidate(type_predicate(cache_type))

    def clear(self) -> int:
        """Drop everything."""
        count = len(self._cache)
        self._cache.clear()
        self.stats.entry_count = 0
        return count

    def keys(self) -> List[str]:
        """Keys currently held, expired or not."""
        return list(self._cache.keys())

    def get_entry_info(self, key: str) -> Optional[Dict[str, Any]]:
        """Get metadata about a cache entry."""
        entry = self._cache.get(key)
        now = self._clock()
        if entry is None or entry.is_expired(now):
            return None

        return {
            "key": key,
            "created_at": entry.created_at,
            "expires_at": entry.expires_at,
            "ttl_remaining": entry.ttl_remaining(now),
            "cache_type": entry.cache_type.value if entry.cache_type else None,
        }

    def get_stats(self) -> CacheStats:
        """Get cache statistics."""
        return self.stats
