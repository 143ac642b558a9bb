"""
Queue strategies using Strategy Pattern.
Allows switching between different queue backends (Redis Streams, In-Memory).

The queue is the hand-off point between the redirect path and enrichment:
producers only ever append, consumers run somewhere else. publish() is a
plain blocking call; the dispatcher decides which thread it runs on.
"""

import asyncio
import json
import logging
import socket
import threading
from abc import ABC, abstractmethod
from collections import deque
from typing import Dict, List, Optional

from .models import RedirectHit

logger = logging.getLogger(__name__)


class QueueStrategy(ABC):
    """
    Abstract base class for queue strategies.

    Similar to Celery's broker abstraction.
    """

    # True when publish() never waits on I/O and may run on the event loop
    publishes_inline = False

    @abstractmethod
    def publish(self, queue_name: str, message: RedirectHit) -> bool:
        """
        Publish a message to the queue.

        Returns:
            True if successful, False otherwise
        """
        pass

    @abstractmethod
    async def consume(
        self,
        queue_name: str,
        batch_size: int = 1,
        block_time: Optional[int] = 1000
    ) -> List[RedirectHit]:
        """
        Consume messages from the queue.

        Args:
            queue_name: Name of the queue
            batch_size: Maximum number of messages to retrieve
            block_time: Time to wait for messages (milliseconds); None returns immediately

        Returns:
            List of RedirectHit messages
        """
        pass

    @abstractmethod
    async def ack(self, queue_name: str, message_ids: List[str]) -> bool:
        """Acknowledge messages (mark as processed)."""
        pass

    @abstractmethod
    async def get_queue_length(self, queue_name: str) -> int:
        """Get the number of pending messages in queue."""
        pass


class RedisStreamQueue(QueueStrategy):
    """
    Redis Streams implementation for message queue.

    - Producer publishes messages using XADD
    - Consumer reads messages using XREADGROUP
    - Consumer acknowledges messages using XACK

    Lets several API instances feed one pool of enrichment workers. The
    client is the blocking redis-py client, so consumer-side calls go through
    asyncio.to_thread.
    """

    def __init__(self, redis_client, consumer_group: str = "enrichment_workers"):
        self.redis = redis_client
        self.consumer_group = consumer_group
        self.consumer_name = f"worker-{socket.gethostname()}-{id(self)}"
        self._initialized_streams = set()

    def _ensure_stream_exists(self, queue_name: str):
        """Create the stream and consumer group on first use."""
        if queue_name in self._initialized_streams:
            return

        try:
            self.redis.xgroup_create(
                name=queue_name,
                groupname=self.consumer_group,
                id='0',
                mkstream=True
            )
            logger.info("Created Redis stream %s", queue_name)
        except Exception as e:
            # Group might already exist, that's OK
            if "BUSYGROUP" not in str(e):
                logger.warning("Stream creation warning for %s: %s", queue_name, e)

        self._initialized_streams.add(queue_name)

    def publish(self, queue_name: str, message: RedirectHit) -> bool:
        try:
            self._ensure_stream_exists(queue_name)
            self.redis.xadd(queue_name, {'data': message.model_dump_json()})
            return True
        except Exception as e:
            logger.error("Redis publish error: %s", e)
            return False

    def _read(self, queue_name: str, batch_size: int, block_time: Optional[int]):
        self._ensure_stream_exists(queue_name)
        # '>' means "messages never delivered to other consumers"
        return self.redis.xreadgroup(
            groupname=self.consumer_group,
            consumername=self.consumer_name,
            streams={queue_name: '>'},
            count=batch_size,
            block=block_time
        )

    async def consume(
        self,
        queue_name: str,
        batch_size: int = 1,
        block_time: Optional[int] = 1000
    ) -> List[RedirectHit]:
        try:
            messages = await asyncio.to_thread(self._read, queue_name, batch_size, block_time)
        except Exception as e:
            logger.error("Redis consume error: %s", e)
            return []

        events = []
        for _stream_name, stream_messages in messages or []:
            for message_id, message_data in stream_messages:
                decoded_id = message_id.decode('utf-8')
                try:
                    data = json.loads(message_data[b'data'].decode('utf-8'))
                    event = RedirectHit(**data)
                    event.message_id = decoded_id
                    events.append(event)
                except Exception as e:
                    logger.warning("Dropping unreadable message %s: %s", decoded_id, e)
                    await self.ack(queue_name, [decoded_id])

        return events

    async def ack(self, queue_name: str, message_ids: List[str]) -> bool:
        if not message_ids:
            return True
        try:
            await asyncio.to_thread(self.redis.xack, queue_name, self.consumer_group, *message_ids)
            return True
        except Exception as e:
            logger.error("Redis ack error: %s", e)
            return False

    async def get_queue_length(self, queue_name: str) -> int:
        """Get approximate queue length"""
        try:
            info = await asyncio.to_thread(self.redis.xinfo_stream, queue_name)
            return info['length']
        except Exception:
            return 0


class InMemoryQueue(QueueStrategy):
    """
    In-memory queue implementation using Python deque.

    Not persistent and not shared between processes, so the consumer has to
    be the embedded worker running inside the same process. Each queue holds
    at most max_length hits; publishing to a full queue drops the new hit.
    """

    publishes_inline = True

    def __init__(self, max_length: int = 10000):
        self.max_length = max_length
        self._queues: Dict[str, deque] = {}
        self._lock = threading.Lock()

    def _get_queue(self, queue_name: str) -> deque:
        with self._lock:
            if queue_name not in self._queues:
                self._queues[queue_name] = deque()
            return self._queues[queue_name]

    def publish(self, queue_name: str, message: RedirectHit) -> bool:
        queue = self._get_queue(queue_name)
        with self._lock:
            if len(queue) >= self.max_length:
                logger.warning("In-memory queue %s is full (%d hits)", queue_name, self.max_length)
                return False
            queue.append(message)
        return True

    async def consume(
        self,
        queue_name: str,
        batch_size: int = 1,
        block_time: Optional[int] = 1000
    ) -> List[RedirectHit]:
        """
        Pop up to batch_size messages.

        Note: block_time is ignored; the worker sleeps between empty polls.
        """
        queue = self._get_queue(queue_name)
        messages = []
        while queue and len(messages) < batch_size:
            try:
                messages.append(queue.popleft())
            except IndexError:
                break
        return messages

    async def ack(self, queue_name: str, message_ids: List[str]) -> bool:
        """Messages are removed on consume; nothing to acknowledge."""
        return True

    async def get_queue_length(self, queue_name: str) -> int:
        return len(self._get_queue(queue_name))
