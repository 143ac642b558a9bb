"""
Hand-off from the redirect path to enrichment.

submit() is the only thing the redirect resolver calls. It never raises and
never waits on a broker: in-process queues take the hit inline, network
brokers are published to from a single background thread. Whatever goes
wrong is logged and the hit is dropped, because the click itself is already
counted.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

from linktrack_app.config import settings
from linktrack_app.queue.models import RedirectHit
from linktrack_app.queue.strategies import QueueStrategy

logger = logging.getLogger(__name__)


class EnrichmentDispatcher:

    def __init__(
        self,
        queue: QueueStrategy,
        queue_name: Optional[str] = None,
        max_pending: Optional[int] = None,
    ):
        self.queue = queue
        self.queue_name = queue_name or settings.queue_name
        self._slots = threading.BoundedSemaphore(max_pending or settings.dispatch_max_pending)
        self._executor: Optional[ThreadPoolExecutor] = None
        self._executor_lock = threading.Lock()

    def _get_executor(self) -> ThreadPoolExecutor:
        with self._executor_lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="hit-publisher")
            return self._executor

    def _publish(self, hit: RedirectHit) -> bool:
        try:
            published = self.queue.publish(self.queue_name, hit)
        except Exception as e:
            logger.error("Dropping hit for %s, queue publish raised: %s", hit.short_code, e)
            return False
        if not published:
            logger.warning("Dropping hit for %s, queue rejected it", hit.short_code)
        return published

    def _publish_in_background(self, hit: RedirectHit) -> None:
        try:
            self._publish(hit)
        finally:
            self._slots.release()

    def submit(self, hit: RedirectHit) -> bool:
        """
        Queue a hit for enrichment without blocking the caller.

        Returns:
            True when the hit was queued or handed to the publisher thread,
            False when it was dropped
        """
        if self.queue.publishes_inline:
            return self._publish(hit)

        if not self._slots.acquire(blocking=False):
            logger.warning("Dropping hit for %s, publisher backlog is full", hit.short_code)
            return False
        try:
            self._get_executor().submit(self._publish_in_background, hit)
        except RuntimeError as e:
            self._slots.release()
            logger.error("Dropping hit for %s, publisher unavailable: %s", hit.short_code, e)
            return False
        return True

    def flush(self) -> None:
        """Wait for every handed-off hit to be published."""
        with self._executor_lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=True)
