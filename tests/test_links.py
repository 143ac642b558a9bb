import asyncio
from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from linktrack_app.clock import utcnow
from linktrack_app.dependencies import get_link_cache
from linktrack_app.exceptions import AliasUnavailableError, InvalidAliasError, InvalidExpiryError
from linktrack_app.models.click import ClickEvent
from linktrack_app.schemas.link import LinkCreate, LinkUpdate
from linktrack_app.services.link_service import LinkService
from linktrack_app.services.short_code_strategies import Base62ShortCodeStrategy

OWNER_HEADERS = {"X-Owner-Id": "owner-1"}
OTHER_HEADERS = {"X-Owner-Id": "owner-2"}


class TestCreateLink:
    """Test POST /api/v1/links/"""

    def test_create_generated_code(self, client: TestClient):
        response = client.post(
            "/api/v1/links/",
            json={"destination_url": "https://www.example.com/"},
            headers=OWNER_HEADERS,
        )
        assert response.status_code == 201

        data = response.json()
        assert len(data["short_code"]) == 6
        assert data["short_url"].endswith("/" + data["short_code"])
        assert data["destination_url"] == "https://www.example.com/"
        assert data["owner_id"] == "owner-1"
        assert data["click_count"] == 0
        assert data["is_active"] is True
        assert data["is_custom_alias"] is False

    def test_create_with_custom_alias(self, client: TestClient):
        response = client.post(
            "/api/v1/links/",
            json={"destination_url": "https://www.example.com/", "custom_alias": "my-promo_1"},
            headers=OWNER_HEADERS,
        )
        assert response.status_code == 201
        assert response.json()["short_code"] == "my-promo_1"
        assert response.json()["is_custom_alias"] is True

    def test_alias_collision_is_rejected(self, client: TestClient, make_link):
        make_link("taken1")

        response = client.post(
            "/api/v1/links/",
            json={"destination_url": "https://www.example.com/", "custom_alias": "taken1"},
            headers=OWNER_HEADERS,
        )
        assert response.status_code == 400
        assert "already taken" in response.json()["detail"]

    @pytest.mark.parametrize("alias", ["ab", "a" * 21, "has space", "slash/es", "dot.ted"])
    def test_invalid_alias_is_rejected(self, client: TestClient, alias):
        response = client.post(
            "/api/v1/links/",
            json={"destination_url": "https://www.example.com/", "custom_alias": alias},
            headers=OWNER_HEADERS,
        )
        assert response.status_code == 400

    def test_past_expiry_is_rejected(self, client: TestClient):
        past = (utcnow() - timedelta(hours=1)).isoformat()
        response = client.post(
            "/api/v1/links/",
            json={"destination_url": "https://www.example.com/", "expires_at": past},
            headers=OWNER_HEADERS,
        )
        assert response.status_code == 400

    def test_non_http_destination_is_rejected(self, client: TestClient):
        response = client.post(
            "/api/v1/links/",
            json={"destination_url": "ftp://files.example.com/x"},
            headers=OWNER_HEADERS,
        )
        assert response.status_code == 422

    def test_owner_header_is_required(self, client: TestClient):
        response = client.post("/api/v1/links/", json={"destination_url": "https://www.example.com/"})
        assert response.status_code == 422

    def test_create_primes_cache(self, client: TestClient):
        response = client.post(
            "/api/v1/links/",
            json={"destination_url": "https://www.example.com/primed"},
            headers=OWNER_HEADERS,
        )
        code = response.json()["short_code"]

        cached = asyncio.run(get_link_cache().get(code))
        assert cached is not None
        assert cached.destination_url == "https://www.example.com/primed"


class TestReadLinks:

    def test_list_is_owner_scoped_and_paginated(self, client: TestClient, make_link):
        for i in range(3):
            make_link(f"mine{i}")
        make_link("theirs", owner_id="owner-2")

        response = client.get("/api/v1/links/?page=1&limit=2", headers=OWNER_HEADERS)
        assert response.status_code == 200

        data = response.json()
        assert len(data["links"]) == 2
        assert data["pagination"] == {"page": 1, "limit": 2, "total": 3, "pages": 2}
        assert all(link["owner_id"] == "owner-1" for link in data["links"])

    def test_list_search(self, client: TestClient, make_link):
        make_link("blog01", destination_url="https://blog.example.com/post")
        make_link("shop01", destination_url="https://shop.example.com/item")

        response = client.get("/api/v1/links/?search=BLOG", headers=OWNER_HEADERS)
        codes = [link["short_code"] for link in response.json()["links"]]
        assert codes == ["blog01"]

    def test_preview_does_not_count(self, client: TestClient, db_session, make_link):
        link = make_link("peek01", destination_url="https://example.com/peek")

        response = client.get("/api/v1/links/peek01")
        assert response.status_code == 200
        assert response.json()["destination_url"] == "https://example.com/peek"

        db_session.refresh(link)
        assert link.click_count == 0

    def test_preview_hides_expired_link(self, client: TestClient, make_link):
        make_link("gone01", expires_at=utcnow() - timedelta(seconds=1))
        assert client.get("/api/v1/links/gone01").status_code == 404

    def test_details_are_owner_only(self, client: TestClient, make_link):
        make_link("own001")

        assert client.get("/api/v1/links/own001/details", headers=OWNER_HEADERS).status_code == 200
        assert client.get("/api/v1/links/own001/details", headers=OTHER_HEADERS).status_code == 404


class TestUpdateAndDelete:

    def test_deactivate_invalidates_cache(self, client: TestClient, make_link):
        make_link("edit01")
        assert client.get("/api/v1/links/edit01").status_code == 200  # primes the cache

        response = client.patch("/api/v1/links/edit01", json={"is_active": False}, headers=OWNER_HEADERS)
        assert response.status_code == 200
        assert response.json()["is_active"] is False

        assert asyncio.run(get_link_cache().get("edit01")) is None
        assert client.get("/api/v1/links/edit01").status_code == 404
        assert client.get("/edit01", follow_redirects=False).status_code == 404

    def test_clearing_expiry_with_explicit_null(self, client: TestClient, make_link):
        make_link("exp001", expires_at=utcnow() + timedelta(days=1))

        response = client.patch("/api/v1/links/exp001", json={"expires_at": None}, headers=OWNER_HEADERS)
        assert response.status_code == 200
        assert response.json()["expires_at"] is None

    def test_omitted_fields_are_untouched(self, client: TestClient, make_link):
        make_link("keep01", description="launch", tags=["q3"])

        response = client.patch("/api/v1/links/keep01", json={"tags": ["q4"]}, headers=OWNER_HEADERS)
        assert response.json()["description"] == "launch"
        assert response.json()["tags"] == ["q4"]

    def test_update_by_other_owner_is_404(self, client: TestClient, make_link):
        make_link("lock01")
        response = client.patch("/api/v1/links/lock01", json={"is_active": False}, headers=OTHER_HEADERS)
        assert response.status_code == 404

    def test_delete_removes_events_and_cache(self, client: TestClient, db_session, make_link):
        link = make_link("del001")
        db_session.add(ClickEvent(link_id=link.id, short_code="del001", timestamp=utcnow()))
        db_session.commit()
        client.get("/api/v1/links/del001")

        response = client.delete("/api/v1/links/del001", headers=OWNER_HEADERS)
        assert response.status_code == 204

        db_session.expire_all()
        assert db_session.query(ClickEvent).filter_by(short_code="del001").count() == 0
        assert asyncio.run(get_link_cache().get("del001")) is None
        assert client.get("/del001", follow_redirects=False).status_code == 404

    def test_delete_missing_is_404(self, client: TestClient):
        assert client.delete("/api/v1/links/nothing", headers=OWNER_HEADERS).status_code == 404


class TestLinkService:
    """Service-level behaviour without HTTP"""

    def test_alias_validation_errors(self, db_session):
        service = LinkService(db=db_session)
        data = LinkCreate(destination_url="https://example.com/", custom_alias="x!")

        with pytest.raises(InvalidAliasError):
            asyncio.run(service.create_link(data, "owner-1"))

    def test_alias_is_case_sensitive(self, db_session, make_link):
        make_link("Promo")
        service = LinkService(db=db_session)

        link = asyncio.run(service.create_link(
            LinkCreate(destination_url="https://example.com/", custom_alias="promo"), "owner-1"
        ))
        assert link.short_code == "promo"

        with pytest.raises(AliasUnavailableError):
            asyncio.run(service.create_link(
                LinkCreate(destination_url="https://example.com/", custom_alias="Promo"), "owner-1"
            ))

    def test_update_rejects_past_expiry(self, db_session, make_link):
        make_link("upd001")
        service = LinkService(db=db_session)

        with pytest.raises(InvalidExpiryError):
            asyncio.run(service.update_link(
                "upd001", "owner-1", LinkUpdate(expires_at=utcnow() - timedelta(minutes=1))
            ))

    def test_base62_strategy_assigns_code_after_insert(self, db_session):
        service = LinkService(db=db_session, short_code_strategy=Base62ShortCodeStrategy(salt=1000))

        link = asyncio.run(service.create_link(LinkCreate(destination_url="https://example.com/"), "owner-1"))
        assert link.short_code == Base62ShortCodeStrategy(salt=1000)._base62_encode(link.id + 1000)
