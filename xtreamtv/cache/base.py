"""
Cache entry, statistics and key helpers.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional
from urllib.parse import quote


Clock = Callable[[], float]

UNFILTERED = "*"


class CacheType(str, Enum):
    """Kinds of cacheable provider data. The value prefixes every key."""
    EPG = "epg"
    MOVIE_INFO = "movie_info"
    STREAMS = "streams"


@dataclass(frozen=True)
class CacheEntry:
    """A single cache entry with metadata."""
    value: Any
    created_at: float
    expires_at: float
    cache_type: Optional[CacheType] = None

    def is_expired(self, now: float) -> bool:
        """Shared expiry predicate for lookups and the sweep."""
        return now >= self.expires_at

    def ttl_remaining(self, now: float) -> float:
        """Get remaining TTL in seconds."""
        return max(0.0, self.expires_at - now)


@dataclass
class CacheStats:
    """Cache statistics."""
    hits: int = 0
    misses: int = 0
    sets: int = 0
    deletes: int = 0
    evictions: int = 0
    entry_count: int = 0

    @property
    def hit_rate(self) -> float:
        """Calculate cache hit rate."""
        total = self.hits + self.misses
        return (self.hits / total * 100) if total > 0 else 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "hits": self.hits,
            "misses": self.misses,
            "sets": self.sets,
            "deletes": self.deletes,
            "evictions": self.evictions,
            "hit_rate": round(self.hit_rate, 2),
            "entry_count": self.entry_count,
        }


def cache_key(cache_type: CacheType, *params: Any) -> str:
    """
    Build the logical request identity shared by the cache and the
    in-flight registry.

    Parameters are percent-encoded, so no id can contain ``:`` or ``*``.
    ``None`` renders as ``*``, which no encoded id can equal:

        cache_key(CacheType.STREAMS, "live", None)  -> "streams:live:*"
        cache_key(CacheType.STREAMS, "live", "a:b") -> "streams:live:a%3Ab"
        cache_key(CacheType.EPG, 42, 24)            -> "epg:42:24"
    """
    parts = [cache_type.value]
    for param in params:
        parts.append(UNFILTERED if param is None else quote(str(param), safe=""))
    return ":".join(parts)


def type_predicate(cache_type: CacheType) -> Callable[[str], bool]:
    """Match every key tagged with ``cache_type``."""
    prefix = f"{cache_type.value}:"
    return lambda key: key.startswith(prefix)
