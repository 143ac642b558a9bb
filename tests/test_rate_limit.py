"""
Tests for request rate limits: per owner on creation, per client on reads.
"""
import pytest
from fastapi.testclient import TestClient

from linktrack_app.config import settings
from linktrack_app.rate_limit import limiter

OWNER_HEADERS = {"X-Owner-Id": "owner-1"}
OTHER_HEADERS = {"X-Owner-Id": "owner-2"}


@pytest.fixture
def limits(monkeypatch):
    """Enable the limiter with small limits and empty counters."""
    monkeypatch.setattr(limiter, "enabled", True)
    monkeypatch.setattr(settings, "rate_limit_create", "2/minute")
    monkeypatch.setattr(settings, "rate_limit_api", "3/minute")
    limiter.reset()
    yield
    limiter.reset()


def create(client, headers):
    return client.post(
        "/api/v1/links/",
        json={"destination_url": "https://www.example.com/"},
        headers=headers,
    )


class TestCreationLimit:

    def test_owner_over_limit_gets_429(self, client: TestClient, limits):
        assert create(client, OWNER_HEADERS).status_code == 201
        assert create(client, OWNER_HEADERS).status_code == 201

        response = create(client, OWNER_HEADERS)
        assert response.status_code == 429
        assert "Too many requests" in response.json()["detail"]

    def test_limit_is_per_owner(self, client: TestClient, limits):
        create(client, OWNER_HEADERS)
        create(client, OWNER_HEADERS)

        assert create(client, OWNER_HEADERS).status_code == 429
        assert create(client, OTHER_HEADERS).status_code == 201


class TestReadLimit:

    def test_listing_over_limit_gets_429(self, client: TestClient, limits):
        for _ in range(3):
            assert client.get("/api/v1/links/", headers=OWNER_HEADERS).status_code == 200

        assert client.get("/api/v1/links/", headers=OWNER_HEADERS).status_code == 429

    def test_dashboard_is_limited(self, client: TestClient, limits):
        for _ in range(3):
            client.get("/api/v1/analytics/dashboard", headers=OWNER_HEADERS)

        assert client.get("/api/v1/analytics/dashboard", headers=OWNER_HEADERS).status_code == 429

    def test_redirects_are_never_limited(self, client: TestClient, make_link, limits):
        make_link("free01")
        for _ in range(10):
            assert client.get("/free01", follow_redirects=False).status_code == 302


class TestDisabled:

    def test_disabled_limiter_lets_everything_through(self, client: TestClient):
        for _ in range(25):
            assert create(client, OWNER_HEADERS).status_code == 201
