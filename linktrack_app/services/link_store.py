"""
Authoritative link store.

The redirect counter goes through increment_click_if_resolvable(), one
conditional UPDATE that matches (code, active, not expired) and bumps the
counter in the same statement. Two concurrent redirects on a hot link each
see their own post-increment value, across processes, with no in-process
lock.
"""

import logging
from datetime import datetime
from typing import List, NamedTuple, Optional, Tuple

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from linktrack_app.clock import utcnow
from linktrack_app.exceptions import StoreUnavailableError
from linktrack_app.models.click import ClickEvent
from linktrack_app.models.link import Link

logger = logging.getLogger(__name__)


class ResolvedLink(NamedTuple):
    """Post-increment view of a link returned by the atomic redirect update."""
    id: int
    short_code: str
    destination_url: str
    click_count: int


class LinkStore:
    """Data access for Link records on one session."""

    def __init__(self, db: Session):
        self.db = db

    def _supports_update_returning(self) -> bool:
        return bool(getattr(self.db.get_bind().dialect, "update_returning", False))

    def increment_click_if_resolvable(
        self,
        short_code: str,
        now: Optional[datetime] = None,
    ) -> Optional[ResolvedLink]:
        """
        Match an active, non-expired link by short code and increment its
        click counter in one statement.

        Returns:
            The post-increment link, or None when nothing matched (missing,
            inactive and expired are not distinguished).

        Raises:
            StoreUnavailableError: the store failed; nothing was counted.
        """
        now = now or utcnow()
        stmt = (
            update(Link)
            .where(
                Link.short_code == short_code,
                Link.is_active.is_(True),
                or_(Link.expires_at.is_(None), Link.expires_at > now),
            )
            .values(click_count=Link.click_count + 1)
            .execution_options(synchronize_session=False)
        )
        columns = (Link.id, Link.short_code, Link.destination_url, Link.click_count)

        try:
            if self._supports_update_returning():
                row = self.db.execute(stmt.returning(*columns)).first()
            else:
                # Same conditional UPDATE; the row lock it took is held until
                # commit, so the read below sees our own increment.
                result = self.db.execute(stmt)
                row = None
                if result.rowcount:
                    row = self.db.execute(
                        select(*columns).where(Link.short_code == short_code)
                    ).first()
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Atomic click increment failed for %s: %s", short_code, e)
            raise StoreUnavailableError("Link store unavailable") from e

        if row is None:
            return None
        return ResolvedLink(
            id=row.id,
            short_code=row.short_code,
            destination_url=row.destination_url,
            click_count=row.click_count,
        )

    def get_by_short_code(self, short_code: str) -> Optional[Link]:
        return self.db.execute(
            select(Link).where(Link.short_code == short_code)
        ).scalar_one_or_none()

    def get_owned(self, short_code: str, owner_id: str) -> Optional[Link]:
        return self.db.execute(
            select(Link).where(Link.short_code == short_code, Link.owner_id == owner_id)
        ).scalar_one_or_none()

    def short_code_exists(self, short_code: str) -> bool:
        return self.db.execute(
            select(Link.id).where(Link.short_code == short_code)
        ).first() is not None

    def add(self, link: Link) -> Link:
        self.db.add(link)
        self.db.flush()
        return link

    def list_by_owner(
        self,
        owner_id: str,
        page: int = 1,
        limit: int = 10,
        search: Optional[str] = None,
    ) -> Tuple[List[Link], int]:
        """Page through an owner's links, newest first."""
        criteria = [Link.owner_id == owner_id]
        if search:
            pattern = f"%{search.lower()}%"
            criteria.append(or_(
                func.lower(Link.destination_url).like(pattern),
                func.lower(Link.description).like(pattern),
                func.lower(Link.short_code).like(pattern),
            ))

        total = self.db.execute(
            select(func.count(Link.id)).where(*criteria)
        ).scalar_one()
        links = self.db.execute(
            select(Link)
            .where(*criteria)
            .order_by(Link.created_at.desc(), Link.id.desc())
            .limit(limit)
            .offset((page - 1) * limit)
        ).scalars().all()
        return list(links), total

    def all_for_owner(self, owner_id: str) -> List[Link]:
        return list(self.db.execute(
            select(Link).where(Link.owner_id == owner_id)
        ).scalars().all())

    def delete_with_events(self, link: Link) -> None:
        """Remove a link and every click event recorded for it."""
        self.db.execute(
            delete(ClickEvent)
            .where(ClickEvent.link_id == link.id)
            .execution_options(synchronize_session=False)
        )
        self.db.delete(link)
