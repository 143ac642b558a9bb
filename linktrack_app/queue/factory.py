"""
Enrichment queue selection.

Redis Streams let a standalone worker consume hits published by any API
process. Without Redis the queue lives in this process and only the embedded
worker can drain it; the in-memory queue is bounded either way.
"""

import logging
from enum import Enum
from typing import Optional, Union

from .strategies import QueueStrategy, RedisStreamQueue, InMemoryQueue
from linktrack_app.config import settings
from linktrack_app.redis_client import connect_redis

logger = logging.getLogger(__name__)


class QueueBackend(Enum):
    REDIS_STREAMS = "redis_streams"
    MEMORY = "memory"


class QueueFactory:
    """Builds the process-wide enrichment queue once."""

    _instance: Optional[QueueStrategy] = None

    @classmethod
    def create(cls, backend: Union[QueueBackend, str]) -> QueueStrategy:
        if cls._instance is None:
            cls._instance = cls._build(QueueBackend(backend))
        return cls._instance

    @staticmethod
    def _build(backend: QueueBackend) -> QueueStrategy:
        if backend is QueueBackend.REDIS_STREAMS:
            # Blocking XREADGROUP needs a read timeout longer than its block time
            client = connect_redis("enrichment queue", socket_timeout=5)
            if client is not None:
                logger.info(
                    "Enrichment queue on Redis stream %s (group %s)",
                    settings.queue_name,
                    settings.queue_consumer_group,
                )
                return RedisStreamQueue(client, settings.queue_consumer_group)
            if not settings.run_embedded_worker:
                logger.error(
                    "Redis unavailable and no embedded worker: hits beyond %d "
                    "will be dropped unenriched",
                    settings.memory_queue_max_length,
                )

        logger.info("Enrichment queue in process memory")
        return InMemoryQueue(max_length=settings.memory_queue_max_length)

    @classmethod
    def clear_instance(cls):
        cls._instance = None
