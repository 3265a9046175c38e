"""
In-process response cache with TTL support.
"""

import asyncio
import copy
import json
import logging
import threading
import time
from collections import OrderedDict
from contextlib import asynccontextmanager
from dataclasses import dataclass
from functools import wraps
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class _CacheEntry:
    payload: Any
    stored_at: float


def build_cache_key(*parts: Any) -> str:
    """
    Build a cache key from request parameters.

    Parts are stripped and lower-cased so that equivalent requests collapse
    onto one entry, then JSON-encoded as a list so separators inside a part
    cannot shift it into its neighbour. None becomes an empty segment.

    Example:
        build_cache_key("search", "Hat ", "All", "Relevance", None, 30)
        -> '["search", "hat", "all", "relevance", "", "30"]'
    """
    return json.dumps(["" if part is None else str(part).strip().lower() for part in parts])


class MemoryCache:
    """
    Generic in-memory cache with lazy expiration.

    Stores key-value pairs with timestamps. Entries older than the TTL are
    reported as missing but stay in the map until overwritten or purged
    with clear_expired(). With max_entries > 0 the least recently used
    entries are evicted once the bound is exceeded.
    """

    def __init__(
        self,
        ttl: int,
        max_entries: int = 0,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize cache.

        Args:
            ttl: Time-to-live in seconds
            max_entries: Maximum number of entries, 0 for unbounded
            clock: Monotonic time source in seconds
        """
        self.ttl = ttl
        self.max_entries = max_entries
        self._clock = clock
        self._entries: "OrderedDict[str, _CacheEntry]" = OrderedDict()
        self._lock = threading.Lock()
        # key -> [lock, holders + waiters]
        self._key_locks: Dict[str, List[Any]] = {}

    @asynccontextmanager
    async def key_lock(self, key: str):
        """
        Serialize loaders of one key so concurrent misses fetch once.

        The lock is dropped when its last holder or waiter leaves.
        """
        with self._lock:
            slot = self._key_locks.get(key)
            if slot is None:
                slot = self._key_locks[key] = [asyncio.Lock(), 0]
            slot[1] += 1

        try:
            async with slot[0]:
                yield
        finally:
            with self._lock:
                slot[1] -= 1
                if slot[1] == 0:
                    del self._key_locks[key]

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get(self, key: str) -> Optional[Any]:
        """
        Get cached value if not expired.

        Args:
            key: Cache key

        Returns:
            Copy of the cached value or None if not found/expired
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                logger.debug("Cache miss: %s", key)
                return None

            if self._clock() - entry.stored_at >= self.ttl:
                logger.debug("Cache stale: %s", key)
                return None

            self._entries.move_to_end(key)
            logger.debug("Cache hit: %s", key)
            return copy.deepcopy(entry.payload)

    def set(self, key: str, value: Any):
        """
        Set cache value with current timestamp.

        Args:
            key: Cache key
            value: JSON-serializable value to cache
        """
        entry = _CacheEntry(payload=copy.deepcopy(value), stored_at=self._clock())
        with self._lock:
            self._entries[key] = entry
            self._entries.move_to_end(key)

            if self.max_entries > 0:
                while len(self._entries) > self.max_entries:
                    evicted, _ = self._entries.popitem(last=False)
                    logger.debug("Cache evicted: %s", evicted)

    put = set

    def delete(self, key: str):
        """Delete a specific cache entry."""
        with self._lock:
            self._entries.pop(key, None)

    def clear_expired(self) -> int:
        """
        Drop all expired entries.

        Returns:
            Number of entries removed
        """
        with self._lock:
            now = self._clock()
            expired = [k for k, e in self._entries.items() if now - e.stored_at >= self.ttl]
            for key in expired:
                del self._entries[key]
            return len(expired)

    def clear_all(self):
        """Clear all cache entries."""
        with self._lock:
            self._entries.clear()


def cached(cache_getter: Callable[[Any], MemoryCache], key_fn: Callable):
    """
    Decorator to cache async method results.

    Concurrent calls that miss on the same key wait for the first one and
    are served its result instead of calling the method again.

    Args:
        cache_getter: Callable that takes the bound instance and returns its MemoryCache
        key_fn: Function that takes the method args/kwargs (without self) and returns cache key

    Example:
        class Service:
            @cached(lambda self: self.cache, lambda asset_id: build_cache_key("item", asset_id))
            async def load_item(self, asset_id: int):
                return await fetch_item(asset_id)
    """
    def decorator(func):
        @wraps(func)
        async def wrapper(self, *args, **kwargs):
            cache_instance = cache_getter(self)
            key = key_fn(*args, **kwargs)

            cached_value = cache_instance.get(key)
            if cached_value is not None:
                return cached_value

            async with cache_instance.key_lock(key):
                # Another caller may have loaded it while we waited
                cached_value = cache_instance.get(key)
                if cached_value is not None:
                    return cached_value

                result = await func(self, *args, **kwargs)
                cache_instance.set(key, result)
                return result
        return wrapper
    return decorator
