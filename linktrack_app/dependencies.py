"""
FastAPI dependencies for dependency injection.

This module provides singleton instances of cache, queue, geo resolver and
click storage that are injected into services and routes.

Pattern: Dependency Injection
- Loose coupling between components
- Easy to test (inject mocks)
- Flexible (swap implementations via config)
"""

from functools import lru_cache

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from linktrack_app.cache.factory import CacheFactory, CacheBackend
from linktrack_app.cache.link_cache import LinkCache
from linktrack_app.cache.strategies import CacheStrategy
from linktrack_app.config import settings
from linktrack_app.database.connection import SessionLocal, get_db
from linktrack_app.geo.factory import GeoFactory, GeoBackend
from linktrack_app.geo.strategies import GeoStrategy
from linktrack_app.hit_processor.dispatcher import EnrichmentDispatcher
from linktrack_app.queue.factory import QueueFactory, QueueBackend
from linktrack_app.queue.strategies import QueueStrategy
from linktrack_app.services.link_store import LinkStore
from linktrack_app.storage.strategies import ClickStorageStrategy, SQLClickStorage


@lru_cache()
def get_cache() -> CacheStrategy:
    """
    Get cache instance (singleton).

    Factory gets config from settings internally.
    @lru_cache ensures this is called only once.
    """
    backend = CacheBackend(settings.cache_backend)
    return CacheFactory.create(backend)


@lru_cache()
def get_link_cache() -> LinkCache:
    return LinkCache(get_cache())


@lru_cache()
def get_queue() -> QueueStrategy:
    """Get enrichment queue instance (singleton)."""
    backend = QueueBackend(settings.queue_backend)
    return QueueFactory.create(backend)


@lru_cache()
def get_geo_resolver() -> GeoStrategy:
    backend = GeoBackend(settings.geo_backend)
    return GeoFactory.create(backend)


@lru_cache()
def get_click_storage() -> ClickStorageStrategy:
    """Click storage on the main database; opens its own sessions."""
    return SQLClickStorage(SessionLocal)


@lru_cache()
def get_dispatcher() -> EnrichmentDispatcher:
    return EnrichmentDispatcher(get_queue())


def get_owner_id(x_owner_id: str = Header(..., min_length=1, max_length=64)) -> str:
    """Owner reference for owner-scoped routes."""
    return x_owner_id


def get_redirect_service(
    db: Session = Depends(get_db),
    dispatcher: EnrichmentDispatcher = Depends(get_dispatcher),
):
    """
    Get RedirectService with all dependencies injected.

    No cache here: the redirect path always goes to the store.
    """
    from linktrack_app.services.redirect_service import RedirectService
    return RedirectService(store=LinkStore(db), dispatcher=dispatcher)


def get_link_service(
    db: Session = Depends(get_db),
    cache: LinkCache = Depends(get_link_cache),
):
    """
    Get LinkService with all dependencies injected.

    Controller depends on service, service depends on infrastructure.
    """
    from linktrack_app.services.link_service import LinkService
    return LinkService(db=db, cache=cache)


def get_analytics_service(
    db: Session = Depends(get_db),
    storage: ClickStorageStrategy = Depends(get_click_storage),
    cache: LinkCache = Depends(get_link_cache),
):
    from linktrack_app.services.analytics_service import AnalyticsService
    return AnalyticsService(store=LinkStore(db), storage=storage, cache=cache)
