"""
Link cache contract on top of a CacheStrategy backend.

Keys:
- url:{short_code}        -> CachedLink JSON (cache_ttl)
- analytics:{link_id}:{report_key} -> analytics report JSON (analytics_cache_ttl)
"""

import json
import logging
from typing import Any, Optional

from pydantic import ValidationError

from linktrack_app.cache.strategies import CacheStrategy
from linktrack_app.config import settings
from linktrack_app.schemas.link import CachedLink

logger = logging.getLogger(__name__)


class LinkCache:
    """get / put / invalidate link snapshots by short code."""

    def __init__(self, backend: CacheStrategy):
        self.backend = backend

    @staticmethod
    def link_key(short_code: str) -> str:
        return f"url:{short_code}"

    @staticmethod
    def analytics_key(report_key: str) -> str:
        return f"analytics:{report_key}"

    async def get(self, short_code: str) -> Optional[CachedLink]:
        raw = await self.backend.get(self.link_key(short_code))
        if raw is None:
            logger.debug("Cache miss for %s", short_code)
            return None
        try:
            return CachedLink.model_validate_json(raw)
        except ValidationError:
            logger.warning("Discarding unreadable cache entry for %s", short_code)
            await self.backend.delete(self.link_key(short_code))
            return None

    async def put(self, short_code: str, record: CachedLink, ttl: Optional[int] = None) -> bool:
        return await self.backend.set(
            self.link_key(short_code),
            record.model_dump_json(),
            ttl=ttl or settings.cache_ttl,
        )

    async def invalidate(self, short_code: str) -> bool:
        deleted = await self.backend.delete(self.link_key(short_code))
        logger.info("Invalidated cache for %s", short_code)
        return deleted

    async def get_analytics(self, report_key: str) -> Optional[Any]:
        raw = await self.backend.get(self.analytics_key(report_key))
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            return None

    async def put_analytics(self, report_key: str, data: Any, ttl: Optional[int] = None) -> bool:
        return await self.backend.set(
            self.analytics_key(report_key),
            json.dumps(data, default=str),
            ttl=ttl or settings.analytics_cache_ttl,
        )

    async def invalidate_analytics(self, link_id: int) -> int:
        """Drop every cached report for one link."""
        removed = await self.backend.delete_prefix(self.analytics_key(f"{link_id}:"))
        logger.info("Invalidated %d analytics reports for link %s", removed, link_id)
        return removed
