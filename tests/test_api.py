"""Tests for API endpoints using FastAPI TestClient."""

import pytest
from fastapi.testclient import TestClient

from conftest import FakePriceSource, RecordingNotifier
from pricehawk.db import get_db, get_session_factory
from pricehawk.main import app
from pricehawk.notifier import get_notifier
from pricehawk.scrape import get_price_source


@pytest.fixture()
def source():
    return FakePriceSource()


@pytest.fixture()
def client(session_factory, source, notifier):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_price_source] = lambda: source
    app.dependency_overrides[get_notifier] = lambda: notifier
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()


def _create(client, url="https://marketplace.example.com/item/1", price=100, **extra):
    body = {"url": url, "title": "Road Bike", "price": price, "location": "Davao", "category": "bikes"}
    body.update(extra)
    return client.post("/api/listings", json=body)


class TestRootAndHealth:
    def test_root(self, client):
        data = client.get("/").json()
        assert data["version"] == "1.0.0"
        assert "timestamp" in data

    def test_health(self, client):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "healthy"


class TestListings:
    def test_create(self, client):
        resp = _create(client)
        assert resp.status_code == 201
        data = resp.json()
        assert data["status"] == "active"
        assert float(data["price"]) == 100

    def test_create_duplicate_url(self, client):
        first = _create(client).json()
        resp = _create(client)
        assert resp.status_code == 409
        assert resp.json()["listing_id"] == first["id"]

    @pytest.mark.parametrize("body", [
        {"url": "not-a-url", "price": 10},
        {"url": "https://x.example.com/1", "price": -5},
        {"url": "https://x.example.com/1", "price": 1e11},
        {"url": "https://x.example.com/1"},
        {"price": 10},
    ])
    def test_create_invalid(self, client, body):
        assert client.post("/api/listings", json=body).status_code == 422

    def test_list_and_get(self, client):
        a = _create(client, url="https://m.example.com/a").json()
        b = _create(client, url="https://m.example.com/b").json()
        listed = client.get("/api/listings").json()
        assert [l["id"] for l in listed] == [b["id"], a["id"]]

        detail = client.get(f"/api/listings/{a['id']}").json()
        assert detail["listing"]["url"] == "https://m.example.com/a"
        assert [float(h["price"]) for h in detail["price_history"]] == [100]

    def test_get_not_found(self, client):
        assert client.get("/api/listings/999").status_code == 404

    def test_delete(self, client):
        listing = _create(client).json()
        assert client.delete(f"/api/listings/{listing['id']}").json() == {"status": "deleted"}
        assert client.delete(f"/api/listings/{listing['id']}").status_code == 404


class TestCheck:
    def test_manual_check_with_explicit_price(self, client, notifier):
        listing = _create(client).json()
        alert = client.post("/api/alerts", json={
            "user_email": "me@example.com", "listing_id": listing["id"], "target_price": 90,
        }).json()

        resp = client.post(f"/api/listings/{listing['id']}/check", json={"price": 90})
        assert resp.status_code == 200
        data = resp.json()
        assert data["changed"] is True
        assert float(data["previous_price"]) == 100
        assert data["fired_alert_ids"] == [alert["id"]]
        assert len(notifier.sent) == 1
        assert client.get("/api/alerts").json() == []

        history = client.get(f"/api/listings/{listing['id']}").json()["price_history"]
        assert [float(h["price"]) for h in history] == [100, 90]

    def test_manual_check_uses_price_source(self, client, source):
        listing = _create(client).json()
        source.prices[listing["url"]] = 100
        data = client.post(f"/api/listings/{listing['id']}/check").json()
        assert data["changed"] is False
        assert data["fired_alert_ids"] == []

    def test_manual_check_upstream_failure(self, client):
        listing = _create(client).json()
        resp = client.post(f"/api/listings/{listing['id']}/check")
        assert resp.status_code == 502

    def test_manual_check_negative_price(self, client):
        listing = _create(client).json()
        resp = client.post(f"/api/listings/{listing['id']}/check", json={"price": -1})
        assert resp.status_code == 400

    @pytest.mark.parametrize("price", [1e30, 1e10])
    def test_manual_check_oversized_price(self, client, price):
        listing = _create(client).json()
        resp = client.post(f"/api/listings/{listing['id']}/check", json={"price": price})
        assert resp.status_code == 400
        assert float(client.get(f"/api/listings/{listing['id']}").json()["listing"]["price"]) == 100

    def test_manual_check_string_price(self, client):
        listing = _create(client).json()
        resp = client.post(f"/api/listings/{listing['id']}/check", json={"price": "90"})
        assert resp.status_code == 422

    def test_manual_check_not_found(self, client):
        assert client.post("/api/listings/42/check", json={"price": 1}).status_code == 404

    def test_sweep(self, client, source):
        a = _create(client, url="https://m.example.com/a").json()
        b = _create(client, url="https://m.example.com/b").json()
        source.prices[a["url"]] = 80
        data = client.post("/api/check").json()
        assert data["checked"] == 1
        assert data["changed"] == 1
        assert data["failed_listing_ids"] == [b["id"]]


class TestAlerts:
    def test_create_and_list(self, client):
        listing = _create(client, title="Kayak").json()
        resp = client.post("/api/alerts", json={
            "user_email": "me@example.com", "listing_id": listing["id"], "target_price": 75.5,
        })
        assert resp.status_code == 201
        assert resp.json()["is_active"] is True
        alerts = client.get("/api/alerts").json()
        assert len(alerts) == 1
        assert alerts[0]["title"] == "Kayak"
        assert float(alerts[0]["current_price"]) == 100

    def test_unknown_listing(self, client):
        resp = client.post("/api/alerts", json={
            "user_email": "me@example.com", "listing_id": 999, "target_price": 10,
        })
        assert resp.status_code == 404

    @pytest.mark.parametrize("body", [
        {"user_email": "nope", "listing_id": 1, "target_price": 10},
        {"user_email": "me@example.com", "listing_id": 1, "target_price": -1},
        {"user_email": "me@example.com", "listing_id": 1, "target_price": 1e11},
        {"user_email": "me@example.com", "listing_id": 1, "target_price": 10, "alert_type": "price_rise"},
    ])
    def test_invalid(self, client, body):
        _create(client)
        assert client.post("/api/alerts", json=body).status_code == 422


def test_stats(client):
    listing = _create(client, price=100).json()
    _create(client, url="https://m.example.com/other", price=50)
    client.post("/api/alerts", json={"user_email": "me@example.com", "listing_id": listing["id"], "target_price": 10})
    assert client.get("/api/stats").json() == {
        "total_listings": 2, "total_alerts": 1, "average_price": "75.00",
    }
