"""
Analytics reports over recorded click events.

Reports read the click storage only; none of this touches the redirect
counter except the per-link total, which is copied from the link record.
"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Optional

from linktrack_app.cache.link_cache import LinkCache
from linktrack_app.clock import utcnow
from linktrack_app.config import settings
from linktrack_app.models.link import Link
from linktrack_app.schemas.analytics import (
    DashboardAnalytics,
    DashboardCharts,
    DashboardSummary,
    DateRange,
    LinkAnalytics,
    LinkCharts,
    LinkSummary,
    TopLink,
)
from linktrack_app.services.link_store import LinkStore
from linktrack_app.storage.strategies import ClickStorageStrategy

logger = logging.getLogger(__name__)

PERIOD_DAYS = {
    "7d": 7,
    "30d": 30,
    "90d": 90,
    "1y": 365,
}
DEFAULT_PERIOD = "30d"


def build_date_range(
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    period: str = DEFAULT_PERIOD,
    now: Optional[datetime] = None,
) -> DateRange:
    """Explicit dates win when both are given; unknown periods mean 30 days."""
    now = now or utcnow()
    if start_date and end_date:
        return DateRange(start=start_date, end=end_date)
    days = PERIOD_DAYS.get(period, PERIOD_DAYS[DEFAULT_PERIOD])
    return DateRange(start=now - timedelta(days=days), end=now)


class AnalyticsService:

    def __init__(
        self,
        store: LinkStore,
        storage: ClickStorageStrategy,
        cache: Optional[LinkCache] = None,
    ):
        self.store = store
        self.storage = storage
        self.cache = cache

    @staticmethod
    def report_key(
        link: Link,
        start_date: Optional[datetime],
        end_date: Optional[datetime],
        period: str,
    ) -> str:
        """
        Cache key for one report, scoped to the link row rather than the short
        code, which another owner can claim after a delete. The creation time
        covers SQLite reusing the id of a deleted row.
        """
        created = link.created_at.isoformat() if link.created_at else ""
        return f"{link.id}:{created}:{start_date or ''}_{end_date or ''}_{period}"

    async def get_link_analytics(
        self,
        short_code: str,
        owner_id: str,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        period: str = DEFAULT_PERIOD,
    ) -> Optional[LinkAnalytics]:
        """
        Per-link report, cached with the analytics TTL.

        Returns None when the link does not exist or belongs to someone else.
        """
        link = await asyncio.to_thread(self.store.get_owned, short_code, owner_id)
        if link is None:
            return None

        cache_key = self.report_key(link, start_date, end_date, period)
        if self.cache:
            cached = await self.cache.get_analytics(cache_key)
            if cached is not None:
                return LinkAnalytics.model_validate(cached)

        date_range = build_date_range(start_date, end_date, period)
        link_ids = [link.id]

        stats, daily, devices, browsers, locations, referrers = await asyncio.gather(
            self.storage.get_total_stats(link_ids, date_range),
            self.storage.get_daily_clicks(link_ids, date_range),
            self.storage.get_device_stats(link_ids, date_range),
            self.storage.get_browser_stats(link_ids, date_range),
            self.storage.get_location_stats(link_ids, date_range),
            self.storage.get_referrer_stats(link_ids, date_range),
        )

        report = LinkAnalytics(
            link=LinkSummary(
                short_code=link.short_code,
                destination_url=link.destination_url,
                total_clicks=link.click_count,
            ),
            period=date_range,
            stats=stats,
            charts=LinkCharts(
                daily_clicks=daily,
                devices=devices,
                browsers=browsers,
                locations=locations,
                referrers=referrers,
            ),
        )

        if self.cache:
            await self.cache.put_analytics(cache_key, report.model_dump(mode="json"))
        return report

    async def get_dashboard(self, owner_id: str, period: str = DEFAULT_PERIOD) -> DashboardAnalytics:
        """Summary across all of an owner's links."""
        links = await asyncio.to_thread(self.store.all_for_owner, owner_id)
        if not links:
            return DashboardAnalytics()

        date_range = build_date_range(period=period)
        link_ids = [link.id for link in links]

        total_clicks, unique_clicks, recent, daily, devices, locations = await asyncio.gather(
            self.storage.count_clicks(link_ids, date_range),
            self.storage.count_clicks(link_ids, date_range, unique_only=True),
            self.storage.get_recent_activity(link_ids, limit=15),
            self.storage.get_daily_clicks(link_ids, date_range),
            self.storage.get_device_stats(link_ids, date_range),
            self.storage.get_location_stats(link_ids, date_range),
        )

        top_links = sorted(links, key=lambda link: link.click_count, reverse=True)[:10]

        return DashboardAnalytics(
            summary=DashboardSummary(
                total_links=len(links),
                total_clicks=total_clicks,
                unique_clicks=unique_clicks,
                avg_clicks_per_link=int(total_clicks / len(links) + 0.5),
                # Links that have been visited at least once
                active_links=sum(1 for link in links if link.click_count > 0),
            ),
            top_links=[
                TopLink(
                    short_code=link.short_code,
                    destination_url=link.destination_url,
                    click_count=link.click_count,
                    short_url=f"{settings.base_url}/{link.short_code}",
                )
                for link in top_links
            ],
            recent_activity=recent,
            charts=DashboardCharts(
                daily_clicks=daily,
                devices=devices,
                locations=locations,
            ),
        )
