"""HTTP layer tests: envelopes and status codes through FastAPI's TestClient.

The lifespan is not started; module-level handles are replaced with fakes.
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from app import main
from app.inventory_client import InventoryError
from fakes import FakeInventoryClient


@pytest.fixture
def client(monkeypatch, store, inventory, redis):
    monkeypatch.setattr(main, "store", store)
    monkeypatch.setattr(main, "inventory", inventory)
    monkeypatch.setattr(main, "redis_pool", redis)
    return TestClient(main.app)


class TestProducts:

    def test_create_with_inventory(self, client):
        resp = client.post(
            "/products",
            json={"name": "Lamp", "price": 30, "quantity": 2, "category_name": "Home"},
        )
        body = resp.json()
        assert resp.status_code == 200
        assert body["success"] is True
        product_id = body["data"]["product"]["id"]
        assert body["data"]["inventory"]["sku"] == f"PROD-{product_id}"

    def test_create_compensated_is_503(self, client, monkeypatch, store):
        monkeypatch.setattr(
            main, "inventory", FakeInventoryClient(error=InventoryError("down"))
        )
        resp = client.post(
            "/products",
            json={"name": "Lamp", "price": 30, "quantity": 2, "category_name": "Home"},
        )
        body = resp.json()
        assert resp.status_code == 503
        assert body["success"] is False
        assert body["error"]["type"] == "SERVICE_UNAVAILABLE"
        assert store.products == {}

    def test_create_without_category_is_400(self, client):
        resp = client.post("/products", json={"name": "Lamp", "price": 30})
        assert resp.status_code == 400
        assert resp.json()["error"]["type"] == "VALIDATION_ERROR"

    def test_malformed_body_is_400_envelope(self, client, store):
        resp = client.post(
            "/products", json={"name": "Lamp", "price": -1, "category_name": "Home"}
        )
        body = resp.json()
        assert resp.status_code == 400
        assert body["success"] is False
        assert body["error"]["type"] == "VALIDATION_ERROR"
        assert body["error"]["details"]["validation_errors"]
        assert store.products == {}

    def test_find_one_not_found(self, client):
        resp = client.get("/products/nonexistent-id")
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == 404

    def test_find_all_survives_inventory_outage(self, client, monkeypatch, store):
        category = store.add_category("Home")
        store.add_product("Lamp", 30, category)
        monkeypatch.setattr(
            main, "inventory", FakeInventoryClient(error=InventoryError("down"))
        )
        resp = client.get("/products")
        body = resp.json()
        assert resp.status_code == 200
        assert body["data"]["count"] == 1
        assert body["data"]["products"][0]["inventory"] is None
        assert "warning" in body

    def test_filter(self, client, store):
        x = store.add_category("x")
        y = store.add_category("y")
        store.add_product("A", 10, x)
        store.add_product("B", 50, y)
        resp = client.post("/products/filter", json={"min_price": 20})
        assert [p["name"] for p in resp.json()["data"]["products"]] == ["B"]

    def test_soft_then_hard_delete(self, client, store):
        product = store.add_product("Lamp", 30, store.add_category("Home"))
        resp = client.delete(f"/products/{product.id}")
        assert resp.json()["data"]["product"]["is_active"] is False
        resp = client.delete(f"/products/{product.id}", params={"soft_delete": "false"})
        assert resp.status_code == 200
        assert product.id not in store.products

    def test_update(self, client, store):
        product = store.add_product("Lamp", 30, store.add_category("Home"))
        resp = client.patch(f"/products/{product.id}", json={"name": "Desk Lamp"})
        assert resp.json()["data"]["product"]["name"] == "Desk Lamp"


class TestCategories:

    def test_create_then_conflict(self, client):
        assert client.post("/categories", json={"name": "Home"}).status_code == 200
        resp = client.post("/categories", json={"name": "Home"})
        assert resp.status_code == 409
        assert resp.json()["error"]["type"] == "CONFLICT"

    def test_list(self, client, store):
        store.add_category("Home")
        assert client.get("/categories").json()["data"]["count"] == 1


def test_health(client):
    assert client.get("/health").json() == {"status": "ok", "service": "catalog-service"}
