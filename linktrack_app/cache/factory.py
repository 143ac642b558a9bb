"""
Cache backend selection.

The link cache is an optimization only: an unreachable Redis degrades to the
in-process cache rather than failing startup.
"""

import logging
from enum import Enum
from typing import Optional, Union

from .strategies import CacheStrategy, RedisCache, InMemoryCache, NullCache
from linktrack_app.redis_client import connect_redis

logger = logging.getLogger(__name__)


class CacheBackend(Enum):
    REDIS = "redis"
    MEMORY = "memory"
    NULL = "null"


class CacheFactory:
    """Builds the process-wide cache once."""

    _instance: Optional[CacheStrategy] = None

    @classmethod
    def create(cls, backend: Union[CacheBackend, str]) -> CacheStrategy:
        if cls._instance is None:
            cls._instance = cls._build(CacheBackend(backend))
        return cls._instance

    @staticmethod
    def _build(backend: CacheBackend) -> CacheStrategy:
        if backend is CacheBackend.NULL:
            logger.info("Link caching disabled")
            return NullCache()

        if backend is CacheBackend.REDIS:
            client = connect_redis("link cache")
            if client is not None:
                logger.info("Link cache on Redis")
                return RedisCache(client)

        logger.info("Link cache in process memory")
        return InMemoryCache()

    @classmethod
    def clear_instance(cls):
        cls._instance = None
