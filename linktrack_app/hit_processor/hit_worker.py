"""
Enrichment Worker

Consumes redirect hits from the queue, resolves geo data and parses the user
agent, and records one click event per hit.

Every hit has its own error boundary: a failed geo lookup degrades to the
unknown location, a failed write is logged and the hit is dropped. Nothing
here can reach the redirect that produced the hit.

Runs either embedded in the API process (asyncio task started by the app
lifespan) or standalone:

    python -m linktrack_app.hit_processor.hit_worker
"""

import asyncio
import logging
import signal
import sys
from typing import Callable, List, Optional

from linktrack_app.config import settings
from linktrack_app.geo.strategies import GeoStrategy
from linktrack_app.queue.models import RedirectHit
from linktrack_app.queue.strategies import QueueStrategy
from linktrack_app.schemas.analytics import ClickEventCreate
from linktrack_app.schemas.enrichment import UserAgentInfo
from linktrack_app.services.user_agent_parser import parse_user_agent
from linktrack_app.storage.strategies import ClickStorageStrategy

logger = logging.getLogger(__name__)


class EnrichmentWorker:
    """
    Enrichment worker with batch consumption.

    Geo lookups within a batch run concurrently; writes go through the
    click storage strategy.
    """

    def __init__(
        self,
        queue: QueueStrategy,
        storage: ClickStorageStrategy,
        geo: GeoStrategy,
        user_agent_parser: Callable[[Optional[str]], UserAgentInfo] = parse_user_agent,
        queue_name: Optional[str] = None,
        batch_size: Optional[int] = None,
        poll_interval: Optional[float] = None,
    ):
        self.queue = queue
        self.storage = storage
        self.geo = geo
        self.user_agent_parser = user_agent_parser
        self.queue_name = queue_name or settings.queue_name
        self.batch_size = batch_size or settings.queue_batch_size
        self.poll_interval = poll_interval if poll_interval is not None else settings.queue_poll_interval
        self.running = False
        self.processed_count = 0
        self.failed_count = 0

    def _parse_agent(self, user_agent: Optional[str]) -> UserAgentInfo:
        try:
            return self.user_agent_parser(user_agent)
        except Exception as e:
            logger.warning("User agent parsing failed: %s", e)
            return UserAgentInfo()

    async def enrich(self, hit: RedirectHit) -> ClickEventCreate:
        """Combine geo and user-agent data into a click event."""
        location = await self.geo.lookup(hit.ip_address)
        return ClickEventCreate(
            link_id=hit.link_id,
            short_code=hit.short_code,
            ip_address=hit.ip_address,
            user_agent=hit.user_agent,
            agent=self._parse_agent(hit.user_agent),
            location=location,
            referer=hit.referer,
            timestamp=hit.timestamp,
        )

    async def process(self, hit: RedirectHit) -> bool:
        """Enrich and record one hit. Returns False when the hit was dropped."""
        try:
            event = await self.enrich(hit)
            await self.storage.record(event)
            return True
        except Exception as e:
            logger.error("Dropping click event for %s (link %s): %s", hit.short_code, hit.link_id, e)
            return False

    async def process_batch(self, hits: List[RedirectHit]) -> int:
        results = await asyncio.gather(*(self.process(hit) for hit in hits))
        recorded = sum(1 for ok in results if ok)
        self.processed_count += recorded
        self.failed_count += len(hits) - recorded
        return recorded

    async def run_once(self, block_time: Optional[int] = 1000) -> int:
        """
        Consume and process one batch.

        Returns:
            Number of hits taken off the queue
        """
        hits = await self.queue.consume(
            self.queue_name,
            batch_size=self.batch_size,
            block_time=block_time,
        )
        if not hits:
            return 0

        recorded = await self.process_batch(hits)

        # Failed hits are dropped rather than redelivered
        message_ids = [hit.message_id for hit in hits if hit.message_id]
        if message_ids:
            await self.queue.ack(self.queue_name, message_ids)

        logger.debug("Recorded %d of %d hits (total %d)", recorded, len(hits), self.processed_count)
        return len(hits)

    async def drain(self) -> int:
        """Process until the queue is empty."""
        total = 0
        while True:
            taken = await self.run_once(block_time=None)
            if not taken:
                return total
            total += taken

    async def start(self):
        """Run until stop() is called or the task is cancelled."""
        self.running = True
        logger.info("Enrichment worker started (queue %s, batch size %d)", self.queue_name, self.batch_size)

        while self.running:
            try:
                taken = await self.run_once()
                if not taken:
                    await asyncio.sleep(self.poll_interval)
            except asyncio.CancelledError:
                logger.info("Enrichment worker cancelled")
                break
            except Exception as e:
                logger.error("Error processing batch: %s", e)
                await asyncio.sleep(1)

        self.running = False
        logger.info(
            "Enrichment worker stopped: %d recorded, %d dropped",
            self.processed_count,
            self.failed_count,
        )

    def stop(self):
        self.running = False


def build_worker() -> EnrichmentWorker:
    """Assemble a worker from the configured backends."""
    from linktrack_app.dependencies import get_click_storage, get_geo_resolver, get_queue

    return EnrichmentWorker(
        queue=get_queue(),
        storage=get_click_storage(),
        geo=get_geo_resolver(),
    )


async def main():
    """
    Standalone entry point.

    Only useful with a shared queue backend (redis_streams); the in-memory
    queue is private to the API process.
    """
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.info(
        "Environment: %s, queue backend: %s, geo backend: %s",
        settings.environment,
        settings.queue_backend,
        settings.geo_backend,
    )

    from linktrack_app.database.connection import Base, engine
    import linktrack_app.models  # noqa: F401  registers tables

    Base.metadata.create_all(bind=engine)

    worker = build_worker()

    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, worker.stop)
        except NotImplementedError:
            signal.signal(signum, lambda *_: worker.stop())

    try:
        await worker.start()
    except Exception as e:
        logger.critical("Fatal worker error: %s", e)
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
