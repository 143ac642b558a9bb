"""
Test configuration and fixtures for the LinkTrack API.
This centralizes all test setup, making individual tests clean.
"""

import os

# Settings are read at import time; pin the backends before the app loads
os.environ["DATABASE_URL"] = "sqlite:///./test.db"
os.environ["CACHE_BACKEND"] = "memory"
os.environ["QUEUE_BACKEND"] = "memory"
os.environ["GEO_BACKEND"] = "null"
os.environ["RUN_EMBEDDED_WORKER"] = "false"
os.environ["RATE_LIMIT_ENABLED"] = "false"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from main import app
from linktrack_app import dependencies
from linktrack_app.cache.factory import CacheFactory
from linktrack_app.database.connection import Base, create_db_engine, get_db
from linktrack_app.geo.factory import GeoFactory
from linktrack_app.geo.strategies import NullGeoResolver
from linktrack_app.hit_processor.hit_worker import EnrichmentWorker
from linktrack_app.models.link import Link
from linktrack_app.queue.factory import QueueFactory
from linktrack_app.services.short_code_factory import ShortCodeFactory
from linktrack_app.storage.strategies import SQLClickStorage

# Test database configuration
SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"
engine = create_db_engine(SQLALCHEMY_DATABASE_URL)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

OWNER = "owner-1"
OWNER_HEADERS = {"X-Owner-Id": OWNER}


def reset_singletons():
    CacheFactory.clear_instance()
    QueueFactory.clear_instance()
    GeoFactory.clear_instance()
    ShortCodeFactory.clear_instances()
    for provider in (
        dependencies.get_cache,
        dependencies.get_link_cache,
        dependencies.get_queue,
        dependencies.get_geo_resolver,
        dependencies.get_click_storage,
        dependencies.get_dispatcher,
    ):
        provider.cache_clear()


@pytest.fixture(scope="function")
def db_session():
    """
    Create a fresh database session for each test.
    This ensures tests are isolated and don't affect each other.
    """
    reset_singletons()

    # Create tables
    Base.metadata.create_all(bind=engine)

    # Create session
    db = TestingSessionLocal()

    try:
        yield db
    finally:
        # Cleanup
        db.close()
        Base.metadata.drop_all(bind=engine)
        reset_singletons()


@pytest.fixture(scope="function")
def client(db_session):
    """
    Create a test client with database dependency overridden.
    This is the main fixture that tests will use.
    """
    def override_get_db():
        yield db_session

    # Override the database dependency
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[dependencies.get_click_storage] = lambda: SQLClickStorage(TestingSessionLocal)

    # Create test client
    with TestClient(app) as test_client:
        yield test_client

    # Clean up overrides
    app.dependency_overrides.clear()


@pytest.fixture
def click_storage(db_session):
    return SQLClickStorage(TestingSessionLocal)


@pytest.fixture
def worker(db_session, click_storage):
    """Worker on the same in-memory queue the redirect route publishes to."""
    return EnrichmentWorker(
        queue=dependencies.get_queue(),
        storage=click_storage,
        geo=NullGeoResolver(),
        poll_interval=0,
    )


@pytest.fixture
def make_link(db_session):
    """Insert a link directly, bypassing the creation flow."""
    counter = {"n": 0}

    def _make(short_code=None, destination_url="https://example.com/page", **fields):
        counter["n"] += 1
        link = Link(
            short_code=short_code or f"code{counter['n']}",
            destination_url=destination_url,
            owner_id=fields.pop("owner_id", OWNER),
            **fields,
        )
        db_session.add(link)
        db_session.commit()
        db_session.refresh(link)
        return link

    return _make
