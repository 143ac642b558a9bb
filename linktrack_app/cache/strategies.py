"""
Cache strategies using Strategy Pattern.
Allows switching between different cache backends (Redis, In-Memory, Null).

Backends never raise: a failing cache behaves like a miss, because the
link store is always the source of truth.
"""

import asyncio
import logging
import threading
import time
from abc import ABC, abstractmethod
from typing import Dict, Optional, Tuple

logger = logging.getLogger(__name__)


class CacheStrategy(ABC):
    """
    Abstract base class for cache strategies.

    All methods are async because cache operations involve I/O (network for Redis).
    """

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """
        Get value from cache.

        Args:
            key: Cache key

        Returns:
            Cached value or None if not found or expired
        """
        pass

    @abstractmethod
    async def set(self, key: str, value: str, ttl: int = 3600) -> bool:
        """
        Set value in cache with TTL (Time To Live).

        Args:
            key: Cache key
            value: Value to cache
            ttl: Time to live in seconds (default: 1 hour)

        Returns:
            True if successful, False otherwise
        """
        pass

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """
        Delete key from cache.

        Returns:
            True if deleted, False if key didn't exist or the backend failed
        """
        pass

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Check if key exists in cache."""
        pass

    @abstractmethod
    async def clear(self) -> bool:
        """Clear all cache entries."""
        pass

    @abstractmethod
    async def delete_prefix(self, prefix: str) -> int:
        """Delete every key starting with prefix; returns how many were removed."""
        pass


class RedisCache(CacheStrategy):
    """
    Redis cache implementation.

    Shared by every API instance, so an invalidation issued by one instance
    is seen by all of them. TTL is enforced by Redis (SETEX). The client is
    the blocking redis-py client, so every call runs on a worker thread.
    """

    def __init__(self, redis_client):
        """
        Initialize Redis cache.

        Args:
            redis_client: Redis client instance (redis.Redis)
        """
        self.redis = redis_client

    async def get(self, key: str) -> Optional[str]:
        try:
            value = await asyncio.to_thread(self.redis.get, key)
            return value.decode("utf-8") if value else None
        except Exception as e:
            logger.warning("Redis get error for %s: %s", key, e)
            return None

    async def set(self, key: str, value: str, ttl: int = 3600) -> bool:
        try:
            return bool(await asyncio.to_thread(self.redis.setex, key, ttl, value))
        except Exception as e:
            logger.warning("Redis set error for %s: %s", key, e)
            return False

    async def delete(self, key: str) -> bool:
        try:
            return bool(await asyncio.to_thread(self.redis.delete, key))
        except Exception as e:
            logger.error("Redis delete error for %s: %s", key, e)
            return False

    async def exists(self, key: str) -> bool:
        try:
            return bool(await asyncio.to_thread(self.redis.exists, key))
        except Exception as e:
            logger.warning("Redis exists error for %s: %s", key, e)
            return False

    async def clear(self) -> bool:
        """Clear all Redis keys (use with caution!)"""
        try:
            await asyncio.to_thread(self.redis.flushdb)
            return True
        except Exception as e:
            logger.error("Redis clear error: %s", e)
            return False

    def _delete_matching(self, prefix: str) -> int:
        # SCAN instead of KEYS so a large keyspace does not block Redis
        keys = list(self.redis.scan_iter(match=f"{prefix}*", count=500))
        return self.redis.delete(*keys) if keys else 0

    async def delete_prefix(self, prefix: str) -> int:
        try:
            return await asyncio.to_thread(self._delete_matching, prefix)
        except Exception as e:
            logger.error("Redis delete error for prefix %s: %s", prefix, e)
            return 0


class InMemoryCache(CacheStrategy):
    """
    In-memory cache implementation using a dict of (value, deadline) pairs.

    Not distributed: each process has its own copy. Expired entries are
    dropped lazily on read.
    """

    def __init__(self, clock=time.monotonic):
        self._cache: Dict[str, Tuple[str, float]] = {}
        self._lock = threading.Lock()
        self._clock = clock

    def _live_entry(self, key: str) -> Optional[str]:
        entry = self._cache.get(key)
        if entry is None:
            return None
        value, deadline = entry
        if deadline <= self._clock():
            del self._cache[key]
            return None
        return value

    async def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._live_entry(key)

    async def set(self, key: str, value: str, ttl: int = 3600) -> bool:
        with self._lock:
            self._cache[key] = (value, self._clock() + ttl)
        return True

    async def delete(self, key: str) -> bool:
        with self._lock:
            return self._cache.pop(key, None) is not None

    async def exists(self, key: str) -> bool:
        with self._lock:
            return self._live_entry(key) is not None

    async def clear(self) -> bool:
        with self._lock:
            self._cache.clear()
        return True

    async def delete_prefix(self, prefix: str) -> int:
        with self._lock:
            matching = [key for key in self._cache if key.startswith(prefix)]
            for key in matching:
                del self._cache[key]
        return len(matching)


class NullCache(CacheStrategy):
    """
    Null Object Pattern - cache that does nothing.

    Used when caching is disabled; every read is a miss.
    """

    async def get(self, key: str) -> Optional[str]:
        return None

    async def set(self, key: str, value: str, ttl: int = 3600) -> bool:
        return True

    async def delete(self, key: str) -> bool:
        return True

    async def exists(self, key: str) -> bool:
        return False

    async def clear(self) -> bool:
        return True

    async def delete_prefix(self, prefix: str) -> int:
        return 0
