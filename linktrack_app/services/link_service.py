import asyncio
import logging
from typing import List, Optional, Tuple

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from linktrack_app.cache.link_cache import LinkCache
from linktrack_app.clock import utcnow
from linktrack_app.exceptions import (
    AliasUnavailableError,
    InvalidExpiryError,
    StoreUnavailableError,
)
from linktrack_app.models.link import Link
from linktrack_app.schemas.link import CachedLink, LinkCreate, LinkUpdate
from linktrack_app.services.link_store import LinkStore
from linktrack_app.services.short_code_factory import ShortCodeFactory
from linktrack_app.services.short_code_strategies import (
    ShortCodeStrategy,
    validate_custom_alias,
)

logger = logging.getLogger(__name__)


class LinkService:
    """
    Owner-facing link management.

    Every edit that can change whether a link resolves invalidates its cache
    entry before returning, so the preview never outlives the edit by more
    than the invalidation itself.
    """

    def __init__(
        self,
        db: Session,
        cache: Optional[LinkCache] = None,
        short_code_strategy: Optional[ShortCodeStrategy] = None,
    ):
        self.db = db
        self.store = LinkStore(db)
        self.cache = cache
        # Use provided strategy or create default from factory
        self.short_code_strategy = short_code_strategy or ShortCodeFactory.create_strategy()

    def _insert(self, link: Link, generate_code: bool) -> Link:
        try:
            self.store.add(link)
            if generate_code:
                link.short_code = self.short_code_strategy.generate(link.id, self.store)
            self.db.commit()
        except IntegrityError as e:
            # Lost a race for the same code
            self.db.rollback()
            raise AliasUnavailableError(f"Short code '{link.short_code}' is already taken") from e
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreUnavailableError("Could not create link") from e
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(link)
        return link

    def _commit(self, link: Link, action: str) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreUnavailableError(f"Could not {action} link") from e
        self.db.refresh(link)

    def _delete(self, link: Link) -> None:
        try:
            self.store.delete_with_events(link)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreUnavailableError("Could not delete link") from e

    async def create_link(self, data: LinkCreate, owner_id: str) -> Link:
        """
        Create a link with a generated code or the owner's custom alias.

        Raises:
            InvalidAliasError: alias has the wrong format
            AliasUnavailableError: alias is already a short code
            InvalidExpiryError: expires_at is not in the future
            ShortCodeGenerationError: no free generated code was found
        """
        if data.expires_at is not None and data.expires_at <= utcnow():
            raise InvalidExpiryError("Expiration date must be in the future")

        alias = data.custom_alias
        if alias is not None:
            validate_custom_alias(alias)
            if await asyncio.to_thread(self.store.short_code_exists, alias):
                raise AliasUnavailableError(f"Custom alias '{alias}' is already taken")

        link = Link(
            short_code=alias,
            destination_url=str(data.destination_url),
            owner_id=owner_id,
            is_custom_alias=alias is not None,
            description=data.description,
            tags=data.tags,
            expires_at=data.expires_at,
        )
        await asyncio.to_thread(self._insert, link, alias is None)
        logger.info("Created link %s for owner %s", link.short_code, owner_id)

        if self.cache:
            await self.cache.put(link.short_code, CachedLink.model_validate(link))
        return link

    def list_links(
        self,
        owner_id: str,
        page: int = 1,
        limit: int = 10,
        search: Optional[str] = None,
    ) -> Tuple[List[Link], int]:
        return self.store.list_by_owner(owner_id, page=page, limit=limit, search=search)

    def get_link(self, short_code: str, owner_id: str) -> Optional[Link]:
        """Owner detail view, always read from the store."""
        return self.store.get_owned(short_code, owner_id)

    async def get_link_preview(self, short_code: str) -> Optional[CachedLink]:
        """
        Public lookup without counting a click (cache-aside).

        A cached snapshot can be stale for at most the cache TTL; it is still
        checked for active/expiry against the current time.
        """
        record = await self.cache.get(short_code) if self.cache else None
        if record is None:
            link = await asyncio.to_thread(self.store.get_by_short_code, short_code)
            if link is None:
                return None
            record = CachedLink.model_validate(link)
            if self.cache:
                await self.cache.put(short_code, record)

        if not record.is_resolvable(utcnow()):
            return None
        return record

    async def update_link(
        self,
        short_code: str,
        owner_id: str,
        data: LinkUpdate,
    ) -> Optional[Link]:
        """
        Apply an owner edit. Only fields present in the payload change.

        Raises:
            InvalidExpiryError: a new expires_at is not in the future
        """
        link = await asyncio.to_thread(self.store.get_owned, short_code, owner_id)
        if link is None:
            return None

        fields = data.model_fields_set
        if "expires_at" in fields:
            if data.expires_at is not None and data.expires_at <= utcnow():
                raise InvalidExpiryError("Expiration date must be in the future")
            link.expires_at = data.expires_at
        if "is_active" in fields and data.is_active is not None:
            link.is_active = data.is_active
        if "description" in fields:
            link.description = data.description
        if "tags" in fields and data.tags is not None:
            link.tags = data.tags

        await asyncio.to_thread(self._commit, link, "update")

        if self.cache:
            await self.cache.invalidate(short_code)
        return link

    async def delete_link(self, short_code: str, owner_id: str) -> bool:
        """
        Delete a link, its click events and every cached view of it.
        Returns False if not found.
        """
        link = await asyncio.to_thread(self.store.get_owned, short_code, owner_id)
        if link is None:
            return False

        link_id = link.id
        await asyncio.to_thread(self._delete, link)

        if self.cache:
            await self.cache.invalidate(short_code)
            await self.cache.invalidate_analytics(link_id)
        logger.info("Deleted link %s", short_code)
        return True
