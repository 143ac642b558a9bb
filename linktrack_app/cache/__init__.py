"""
Cache module.
Implements Strategy Pattern for flexible cache backends, plus the link cache
contract (get / put / invalidate by short code) built on top of it.
"""

from .strategies import CacheStrategy, RedisCache, InMemoryCache, NullCache
from .factory import CacheFactory, CacheBackend
from .link_cache import LinkCache

__all__ = [
    "CacheStrategy",
    "RedisCache",
    "InMemoryCache",
    "NullCache",
    "CacheFactory",
    "CacheBackend",
    "LinkCache",
]
