"""
Redirect resolution.

The hot path: validate the code, count the click with one atomic store
update, hand the raw request facts to enrichment, return the destination.
The link cache is never consulted here, so a deactivated or expired link
stops redirecting on the very next request.
"""

import asyncio
import logging
import re
from typing import Callable, Optional

from linktrack_app.clock import utcnow
from linktrack_app.hit_processor.dispatcher import EnrichmentDispatcher
from linktrack_app.queue.models import RedirectHit
from linktrack_app.services.link_store import LinkStore

logger = logging.getLogger(__name__)

SHORT_CODE_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,32}$")


def is_valid_short_code(short_code: Optional[str]) -> bool:
    return bool(short_code) and SHORT_CODE_PATTERN.match(short_code) is not None


class RedirectService:
    """
    Resolves short codes to destinations and records the visit.

    Args:
        store: Authoritative link store (request-scoped session)
        dispatcher: Enrichment hand-off; must neither raise nor block
        clock: Returns the current naive UTC time
    """

    def __init__(
        self,
        store: LinkStore,
        dispatcher: EnrichmentDispatcher,
        clock: Callable = utcnow,
    ):
        self.store = store
        self.dispatcher = dispatcher
        self.clock = clock

    async def resolve_and_record(
        self,
        short_code: str,
        client_ip: Optional[str] = None,
        user_agent: Optional[str] = None,
        referer: Optional[str] = None,
    ) -> Optional[str]:
        """
        Resolve a short code and count the visit.

        Returns:
            Destination URL, or None when the code is malformed, unknown,
            inactive or expired.

        Raises:
            StoreUnavailableError: the counter could not be updated; nothing
                was counted and no enrichment was scheduled.
        """
        if not is_valid_short_code(short_code):
            return None

        now = self.clock()
        # Blocking DB call; the busy timeout must not stall the event loop
        resolved = await asyncio.to_thread(self.store.increment_click_if_resolvable, short_code, now)
        if resolved is None:
            logger.debug("No resolvable link for %s", short_code)
            return None

        self._schedule_enrichment(
            link_id=resolved.id,
            short_code=resolved.short_code,
            timestamp=now,
            ip_address=client_ip,
            user_agent=user_agent,
            referer=referer,
        )
        return resolved.destination_url

    def _schedule_enrichment(self, **fields) -> None:
        # The click is already counted; nothing past this point may fail the redirect.
        try:
            hit = RedirectHit(**fields)
            self.dispatcher.submit(hit)
        except Exception as e:
            logger.error("Could not schedule enrichment for %s: %s", fields.get("short_code"), e)
