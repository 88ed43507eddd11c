"""
In-Memory TTL Cache with LRU Eviction

Used for:
- Message CSV hand-off tokens (PhantomBuster fetches them over HTTP)
- Short-lived campaign list statistics

IMPORTANT: This is a single-instance cache. If you scale to multiple
server instances, you'll need Redis or similar distributed cache.
"""
import logging
import time
import fnmatch
from typing import Any, Optional, Dict
from collections import OrderedDict
from dataclasses import dataclass

logger = logging.getLogger("cache")


@dataclass
class CacheEntry:
    """A single cache entry with data and expiration time."""
    data: Any
    expires_at: float  # Unix timestamp


class SimpleCache:
    """
    In-memory cache with per-key TTL and LRU eviction.

    Usage:
        cache = SimpleCache(max_size=100)
        cache.set("campaigns:list:all", rows, ttl_seconds=30)
        rows = cache.get("campaigns:list:all")   # None if expired or missing
        cache.invalidate_pattern("campaigns:*")
    """

    def __init__(self, max_size: int = 100, clock=time.time):
        self._cache: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._max_size = max_size
        self._clock = clock
        self._stats = {"hits": 0, "misses": 0, "invalidations": 0}

    def get(self, key: str) -> Optional[Any]:
        """Return cached data, or None if the key is missing or expired."""
        entry = self._cache.get(key)
        if entry is None:
            self._stats["misses"] += 1
            return None

        if self._clock() > entry.expires_at:
            self._cache.pop(key, None)
            self._stats["misses"] += 1
            logger.debug(f"Cache EXPIRED: {key}")
            return None

        self._cache.move_to_end(key)
        self._stats["hits"] += 1
        return entry.data

    def set(self, key: str, data: Any, ttl_seconds: int = 60) -> None:
        """Store a value, evicting the least recently used entries when full."""
        self._cache.pop(key, None)
        while len(self._cache) >= self._max_size:
            oldest_key, _ = self._cache.popitem(last=False)
            logger.debug(f"Cache LRU eviction: {oldest_key}")

        self._cache[key] = CacheEntry(data=data, expires_at=self._clock() + ttl_seconds)
        logger.debug(f"Cache SET: {key} (TTL: {ttl_seconds}s)")

    def invalidate(self, key: str) -> bool:
        """Remove a key. Returns True if it existed."""
        if self._cache.pop(key, None) is None:
            return False
        self._stats["invalidations"] += 1
        return True

    def invalidate_pattern(self, pattern: str) -> int:
        """Remove all keys matching a glob pattern like "campaigns:*"."""
        keys_to_remove = [key for key in list(self._cache.keys()) if fnmatch.fnmatch(key, pattern)]
        for key in keys_to_remove:
            self._cache.pop(key, None)

        if keys_to_remove:
            self._stats["invalidations"] += len(keys_to_remove)
            logger.debug(f"Cache INVALIDATED pattern '{pattern}': {len(keys_to_remove)} keys")
        return len(keys_to_remove)

    def cleanup_expired(self) -> int:
        """Drop every expired entry. Returns the number removed."""
        now = self._clock()
        expired_keys = [key for key, entry in list(self._cache.items()) if now > entry.expires_at]
        for key in expired_keys:
            self._cache.pop(key, None)
        return len(expired_keys)

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        lookups = self._stats["hits"] + self._stats["misses"]
        return {
            **self._stats,
            "size": len(self._cache),
            "max_size": self._max_size,
            "hit_rate": self._stats["hits"] / max(1, lookups)
        }


# ============================================
# GLOBAL CACHE INSTANCE
# ============================================

# For multi-instance deployments, replace with Redis
app_cache = SimpleCache(max_size=100)


# ============================================
# CACHE KEY CONSTANTS
# ============================================

CACHE_KEY_CAMPAIGN_LIST = "campaigns:list"  # Will append status filter
CACHE_TTL_CAMPAIGN_LIST = 30  # seconds


def get_campaign_list_cache_key(status: Optional[str] = None) -> str:
    """Cache key for the campaign list, per status filter."""
    return f"{CACHE_KEY_CAMPAIGN_LIST}:{status or 'all'}"
