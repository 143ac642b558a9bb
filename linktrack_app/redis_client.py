"""Shared Redis connection for the cache and the enrichment queue."""

import logging
from typing import Optional

import redis

from linktrack_app.config import settings

logger = logging.getLogger(__name__)


def connect_redis(purpose: str, socket_timeout: float = 2.0) -> Optional[redis.Redis]:
    """
    Open a client on settings.redis_url and ping it.

    Returns None when Redis is unreachable so the caller can pick a local
    backend instead.
    """
    client = redis.from_url(
        settings.redis_url,
        decode_responses=False,
        socket_connect_timeout=2,
        socket_timeout=socket_timeout,
    )
    try:
        client.ping()
    except redis.RedisError as e:
        logger.warning("Redis unavailable for %s (%s)", purpose, e)
        return None
    return client
