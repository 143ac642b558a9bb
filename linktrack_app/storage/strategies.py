"""
Click storage strategies (the analytics recorder).

Writes one immutable event per resolved redirect and answers the grouping
queries behind the reports. The interface is kept separate from the SQL
implementation so a columnar store can be plugged in for high volume.
"""

import asyncio
import functools
import logging
from abc import ABC, abstractmethod
from collections import Counter
from datetime import datetime, time, timedelta
from typing import Callable, List, Optional, Sequence

from sqlalchemy import case, distinct, func, select
from sqlalchemy.orm import Session

from linktrack_app.models.click import ClickEvent
from linktrack_app.models.link import Link
from linktrack_app.schemas.analytics import (
    BrowserStat,
    ClickEventCreate,
    DailyClicks,
    DateRange,
    DeviceStat,
    LocationStat,
    RecentActivity,
    ReferrerStat,
    TotalStats,
)
from linktrack_app.schemas.enrichment import DEVICE_UNKNOWN, UNKNOWN
from linktrack_app.services.user_agent_parser import simplify_browser_name

logger = logging.getLogger(__name__)


def run_in_thread(func):
    """Expose a blocking storage method as a coroutine run on a worker thread."""
    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        return await asyncio.to_thread(func, *args, **kwargs)
    return wrapper


def _percentage(count: int, total: int) -> int:
    return int(count * 100 / total + 0.5) if total > 0 else 0


class ClickStorageStrategy(ABC):
    """
    Abstract base class for click storage.

    Aggregations take a list of link ids so the same query serves a single
    link report and an owner's dashboard.
    """

    @abstractmethod
    async def record(self, event: ClickEventCreate) -> ClickEvent:
        """
        Persist one click event.

        Raises:
            SQLAlchemyError (or backend equivalent) when the write fails
        """
        pass

    @abstractmethod
    async def count_clicks(self, link_ids: Sequence[int], date_range: DateRange, unique_only: bool = False) -> int:
        pass

    @abstractmethod
    async def get_total_stats(self, link_ids: Sequence[int], date_range: DateRange) -> TotalStats:
        pass

    @abstractmethod
    async def get_daily_clicks(self, link_ids: Sequence[int], date_range: DateRange) -> List[DailyClicks]:
        pass

    @abstractmethod
    async def get_device_stats(self, link_ids: Sequence[int], date_range: DateRange) -> List[DeviceStat]:
        pass

    @abstractmethod
    async def get_browser_stats(self, link_ids: Sequence[int], date_range: DateRange, limit: int = 10) -> List[BrowserStat]:
        pass

    @abstractmethod
    async def get_location_stats(self, link_ids: Sequence[int], date_range: DateRange, limit: int = 10) -> List[LocationStat]:
        pass

    @abstractmethod
    async def get_referrer_stats(self, link_ids: Sequence[int], date_range: DateRange, limit: int = 10) -> List[ReferrerStat]:
        pass

    @abstractmethod
    async def get_recent_activity(self, link_ids: Sequence[int], limit: int = 15) -> List[RecentActivity]:
        pass


class SQLClickStorage(ClickStorageStrategy):
    """
    SQLAlchemy implementation on the main database.

    Lives next to the links table so events cascade with their link and
    recent activity can join the destination URL. Opens a short-lived
    session per call; the worker and the API share nothing but the engine.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    @staticmethod
    def _in_range(link_ids: Sequence[int], date_range: DateRange):
        return (
            ClickEvent.link_id.in_(list(link_ids)),
            ClickEvent.timestamp >= date_range.start,
            ClickEvent.timestamp <= date_range.end,
        )

    @staticmethod
    def _is_first_visit_today(db: Session, event: ClickEventCreate) -> bool:
        day_start = datetime.combine(event.timestamp.date(), time.min)
        previous = db.execute(
            select(ClickEvent.id).where(
                ClickEvent.link_id == event.link_id,
                ClickEvent.ip_address == event.ip_address,
                ClickEvent.user_agent == event.user_agent,
                ClickEvent.timestamp >= day_start,
                ClickEvent.timestamp < day_start + timedelta(days=1),
            ).limit(1)
        ).first()
        return previous is None

    @run_in_thread
    def record(self, event: ClickEventCreate) -> ClickEvent:
        user_agent = event.user_agent[:512] if event.user_agent else event.user_agent
        referer = event.referer[:512] if event.referer else None
        event = event.model_copy(update={"user_agent": user_agent})

        with self.session_factory() as db:
            try:
                click = ClickEvent(
                    link_id=event.link_id,
                    short_code=event.short_code,
                    ip_address=event.ip_address,
                    user_agent=user_agent,
                    browser_name=event.agent.browser.name,
                    browser_version=event.agent.browser.version,
                    os_name=event.agent.os.name,
                    os_version=event.agent.os.version,
                    device=event.agent.device,
                    country=event.location.country,
                    country_code=event.location.country_code,
                    region=event.location.region,
                    city=event.location.city,
                    timezone=event.location.timezone,
                    latitude=event.location.coordinates.lat,
                    longitude=event.location.coordinates.lon,
                    referer=referer,
                    is_bot=event.agent.is_bot,
                    is_unique=self._is_first_visit_today(db, event),
                    timestamp=event.timestamp,
                )
                db.add(click)
                db.commit()
                db.refresh(click)
                db.expunge(click)
                return click
            except Exception:
                db.rollback()
                raise

    @run_in_thread
    def count_clicks(self, link_ids: Sequence[int], date_range: DateRange, unique_only: bool = False) -> int:
        if not link_ids:
            return 0
        criteria = list(self._in_range(link_ids, date_range))
        if unique_only:
            criteria.append(ClickEvent.is_unique.is_(True))
        with self.session_factory() as db:
            return db.execute(select(func.count(ClickEvent.id)).where(*criteria)).scalar_one()

    @run_in_thread
    def get_total_stats(self, link_ids: Sequence[int], date_range: DateRange) -> TotalStats:
        if not link_ids:
            return TotalStats()
        criteria = self._in_range(link_ids, date_range)
        with self.session_factory() as db:
            row = db.execute(
                select(
                    func.count(ClickEvent.id).label("total_clicks"),
                    func.sum(case((ClickEvent.is_unique.is_(True), 1), else_=0)).label("unique_clicks"),
                    func.count(distinct(case((ClickEvent.country != UNKNOWN, ClickEvent.country)))).label("countries"),
                    func.count(distinct(case((ClickEvent.device != DEVICE_UNKNOWN, ClickEvent.device)))).label("devices"),
                ).where(*criteria)
            ).one()

        return TotalStats(
            total_clicks=row.total_clicks or 0,
            unique_clicks=row.unique_clicks or 0,
            unique_countries=row.countries or 0,
            unique_devices=row.devices or 0,
        )

    @run_in_thread
    def get_daily_clicks(self, link_ids: Sequence[int], date_range: DateRange) -> List[DailyClicks]:
        if not link_ids:
            return []
        day = func.date(ClickEvent.timestamp)
        with self.session_factory() as db:
            rows = db.execute(
                select(
                    day.label("day"),
                    func.count(ClickEvent.id).label("clicks"),
                    func.sum(case((ClickEvent.is_unique.is_(True), 1), else_=0)).label("unique_clicks"),
                )
                .where(*self._in_range(link_ids, date_range))
                .group_by(day)
                .order_by(day)
            ).all()

        return [
            DailyClicks(
                date=row.day if isinstance(row.day, str) else row.day.isoformat(),
                clicks=row.clicks,
                unique_clicks=row.unique_clicks or 0,
            )
            for row in rows
        ]

    @run_in_thread
    def get_device_stats(self, link_ids: Sequence[int], date_range: DateRange) -> List[DeviceStat]:
        if not link_ids:
            return []
        count = func.count(ClickEvent.id)
        with self.session_factory() as db:
            rows = db.execute(
                select(ClickEvent.device, count.label("count"))
                .where(*self._in_range(link_ids, date_range))
                .group_by(ClickEvent.device)
                .order_by(count.desc(), ClickEvent.device)
            ).all()

        total = sum(row.count for row in rows)
        return [
            DeviceStat(device=row.device or DEVICE_UNKNOWN, count=row.count, percentage=_percentage(row.count, total))
            for row in rows
        ]

    @run_in_thread
    def get_browser_stats(self, link_ids: Sequence[int], date_range: DateRange, limit: int = 10) -> List[BrowserStat]:
        """Counts per browser, with variants such as "Mobile Safari" folded into "Safari"."""
        if not link_ids:
            return []
        count = func.count(ClickEvent.id)
        with self.session_factory() as db:
            rows = db.execute(
                select(ClickEvent.browser_name, count.label("count"))
                .where(*self._in_range(link_ids, date_range))
                .group_by(ClickEvent.browser_name)
            ).all()

        totals = Counter()
        for row in rows:
            totals[simplify_browser_name(row.browser_name)] += row.count
        ranked = sorted(totals.items(), key=lambda item: (-item[1], item[0]))
        return [BrowserStat(browser=name, count=n) for name, n in ranked[:limit]]

    @run_in_thread
    def get_location_stats(self, link_ids: Sequence[int], date_range: DateRange, limit: int = 10) -> List[LocationStat]:
        if not link_ids:
            return []
        count = func.count(ClickEvent.id)
        with self.session_factory() as db:
            rows = db.execute(
                select(ClickEvent.country, ClickEvent.country_code, count.label("count"))
                .where(*self._in_range(link_ids, date_range))
                .group_by(ClickEvent.country, ClickEvent.country_code)
                .order_by(count.desc(), ClickEvent.country)
                .limit(limit)
            ).all()

        return [
            LocationStat(country=row.country or UNKNOWN, country_code=row.country_code or "XX", count=row.count)
            for row in rows
        ]

    @run_in_thread
    def get_referrer_stats(self, link_ids: Sequence[int], date_range: DateRange, limit: int = 10) -> List[ReferrerStat]:
        if not link_ids:
            return []
        count = func.count(ClickEvent.id)
        with self.session_factory() as db:
            rows = db.execute(
                select(ClickEvent.referer, count.label("count"))
                .where(*self._in_range(link_ids, date_range), ClickEvent.referer.isnot(None))
                .group_by(ClickEvent.referer)
                .order_by(count.desc(), ClickEvent.referer)
                .limit(limit)
            ).all()

        return [ReferrerStat(referer=row.referer, count=row.count) for row in rows]

    @run_in_thread
    def get_recent_activity(self, link_ids: Sequence[int], limit: int = 15) -> List[RecentActivity]:
        if not link_ids:
            return []
        with self.session_factory() as db:
            rows = db.execute(
                select(
                    ClickEvent.short_code,
                    ClickEvent.timestamp,
                    ClickEvent.country,
                    ClickEvent.device,
                    ClickEvent.browser_name,
                    Link.destination_url,
                )
                .join(Link, Link.id == ClickEvent.link_id)
                .where(ClickEvent.link_id.in_(list(link_ids)))
                .order_by(ClickEvent.timestamp.desc(), ClickEvent.id.desc())
                .limit(limit)
            ).all()

        return [
            RecentActivity(
                short_code=row.short_code,
                destination_url=row.destination_url or "",
                timestamp=row.timestamp,
                country=row.country or UNKNOWN,
                device=row.device or DEVICE_UNKNOWN,
                browser=row.browser_name or UNKNOWN,
            )
            for row in rows
        ]
