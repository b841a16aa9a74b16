"""
Tests for the FastAPI layer: identity headers, request mapping and the
error-to-status translation.
"""

from __future__ import annotations

from decimal import Decimal

import httpx
import pytest
from fastapi.testclient import TestClient

from api.main import app
from tests.fakes import BUSINESS_ID

ASSOCIATE_HEADERS = {"X-Actor-Id": "user-assoc", "X-Business-Id": BUSINESS_ID, "X-Actor-Role": "Associate"}
BOSS_HEADERS = {"X-Actor-Id": "user-boss", "X-Business-Id": BUSINESS_ID, "X-Actor-Role": "Boss"}


@pytest.fixture
def client(fake_db) -> TestClient:
    return TestClient(app)


def _sale_body(item_id: str, quantity: str = "3", unit_price: str = "5.00", **extra) -> dict:
    body = {
        "items": [{"stock_item_id": item_id, "quantity": quantity, "unit_price": unit_price}],
        "payment_method": "cash",
    }
    body.update(extra)
    return body


def test_health(client) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_identity_headers_are_required(client) -> None:
    assert client.get("/api/v1/stock").status_code == 401

    headers = dict(ASSOCIATE_HEADERS, **{"X-Actor-Role": "Janitor"})
    assert client.get("/api/v1/stock", headers=headers).status_code == 400


def test_record_sale(client, fake_db) -> None:
    item = fake_db.seed_stock_item(BUSINESS_ID, "Soap", 10, "5.00")

    response = client.post("/api/v1/sales", json=_sale_body(item, total="1.00"), headers=ASSOCIATE_HEADERS)

    assert response.status_code == 201
    data = response.json()
    assert data["state"] == "committed"
    assert data["replayed"] is False
    assert data["receipt_sent"] is None
    assert Decimal(data["sale"]["total_amount"]) == Decimal("15.00")
    assert data["sale"]["items"][0]["item_name"] == "Soap"
    assert fake_db.quantity(item) == Decimal("7")

    listed = client.get("/api/v1/sales", headers=ASSOCIATE_HEADERS).json()
    assert listed["total_count"] == 1
    fetched = client.get(f"/api/v1/sales/{data['sale']['id']}", headers=ASSOCIATE_HEADERS)
    assert fetched.status_code == 200


def test_record_sale_insufficient_stock(client, fake_db) -> None:
    item = fake_db.seed_stock_item(BUSINESS_ID, "Soap", 2, "5.00")

    response = client.post("/api/v1/sales", json=_sale_body(item), headers=ASSOCIATE_HEADERS)

    assert response.status_code == 409
    body = response.json()
    assert body["error"] == "INSUFFICIENT_STOCK"
    assert body["details"]["available"] == "2"
    assert fake_db.rows("sales") == []


def test_record_sale_validation_error(client, fake_db) -> None:
    item = fake_db.seed_stock_item(BUSINESS_ID, "Soap", 10, "5.00")

    response = client.post("/api/v1/sales", json=_sale_body(item, quantity="0"), headers=ASSOCIATE_HEADERS)
    assert response.status_code == 400
    assert response.json()["details"]["field"] == "lines[0].quantity"

    response = client.post(
        "/api/v1/sales", json=dict(_sale_body(item), payment_method="barter"), headers=ASSOCIATE_HEADERS
    )
    assert response.status_code == 400


def test_record_sale_partial_failure_reports_existing_sale(client, fake_db) -> None:
    item = fake_db.seed_stock_item(BUSINESS_ID, "Soap", 10, "5.00")
    fake_db.fail("sales_items", "insert", httpx.ConnectError("connection reset"))

    response = client.post("/api/v1/sales", json=_sale_body(item), headers=ASSOCIATE_HEADERS)

    assert response.status_code == 502
    details = response.json()["details"]
    assert details["sale_exists"] is True
    assert details["stage"] == "items-write"
    assert details["sale_id"] == fake_db.rows("sales")[0]["id"]


def test_record_sale_store_unavailable(client, fake_db) -> None:
    item = fake_db.seed_stock_item(BUSINESS_ID, "Soap", 10, "5.00")
    fake_db.fail("sales", "insert", httpx.ConnectError("connection reset"))

    response = client.post("/api/v1/sales", json=_sale_body(item), headers=ASSOCIATE_HEADERS)

    assert response.status_code == 503
    assert response.headers["Retry-After"] == "1"
    assert response.json()["details"]["sale_exists"] is False


def test_record_sale_replay(client, fake_db) -> None:
    item = fake_db.seed_stock_item(BUSINESS_ID, "Soap", 10, "5.00")
    body = _sale_body(item, idempotency_key="till-7-0001")

    first = client.post("/api/v1/sales", json=body, headers=ASSOCIATE_HEADERS).json()
    second = client.post("/api/v1/sales", json=body, headers=ASSOCIATE_HEADERS).json()

    assert second["replayed"] is True
    assert second["sale"]["id"] == first["sale"]["id"]
    assert fake_db.quantity(item) == Decimal("7")


def test_record_sale_replay_after_failed_decrement_is_502(client, fake_db) -> None:
    item = fake_db.seed_stock_item(BUSINESS_ID, "Soap", 10, "5.00")
    fake_db.fail(
        "stock_items",
        "update",
        httpx.ConnectError("connection reset"),
        when=lambda q: "quantity" in (q.payload or {}),
    )
    body = _sale_body(item, idempotency_key="till-7-0002")

    assert client.post("/api/v1/sales", json=body, headers=ASSOCIATE_HEADERS).status_code == 502
    second = client.post("/api/v1/sales", json=body, headers=ASSOCIATE_HEADERS)

    assert second.status_code == 502
    details = second.json()["details"]
    assert details["replayed"] is True
    assert details["stage"] == "stock-decrement"
    assert details["stock_decremented"] == "none"
    assert fake_db.quantity(item) == Decimal("10")


def test_receipt_failure_does_not_fail_the_sale(client, fake_db) -> None:
    item = fake_db.seed_stock_item(BUSINESS_ID, "Soap", 10, "5.00")

    response = client.post(
        "/api/v1/sales", json=_sale_body(item, receipt_phone="+254700000000"), headers=ASSOCIATE_HEADERS
    )

    assert response.status_code == 201
    assert response.json()["receipt_sent"] is False


def test_stock_endpoints(client, fake_db) -> None:
    assert client.get("/api/v1/stock", headers=ASSOCIATE_HEADERS).status_code == 404

    create = {"name": "Maize flour 2kg", "quantity": "10", "unit_price": "5.00", "reorder_level": "10"}
    assert client.post("/api/v1/stock", json=create, headers=ASSOCIATE_HEADERS).status_code == 403

    created = client.post("/api/v1/stock", json=create, headers=BOSS_HEADERS)
    assert created.status_code == 201
    item_id = created.json()["id"]

    listing = client.get("/api/v1/stock", headers=ASSOCIATE_HEADERS).json()
    assert listing["total_count"] == 1
    assert listing["items"][0]["is_low_stock"] is True

    low = client.get("/api/v1/stock/low", headers=ASSOCIATE_HEADERS).json()
    assert [i["id"] for i in low["items"]] == [item_id]

    replenished = client.post(f"/api/v1/stock/{item_id}/replenish", json={"quantity": "5"}, headers=BOSS_HEADERS)
    assert Decimal(replenished.json()["quantity"]) == Decimal("15")

    assert client.delete(f"/api/v1/stock/{item_id}", headers=BOSS_HEADERS).status_code == 204
    assert client.get(f"/api/v1/stock/{item_id}", headers=ASSOCIATE_HEADERS).json()["status"] == "archived"


def test_void_sale_endpoint(client, fake_db) -> None:
    item = fake_db.seed_stock_item(BUSINESS_ID, "Soap", 10, "5.00")
    sale_id = client.post("/api/v1/sales", json=_sale_body(item), headers=ASSOCIATE_HEADERS).json()["sale"]["id"]

    assert client.post(f"/api/v1/sales/{sale_id}/void", headers=ASSOCIATE_HEADERS).status_code == 403
    voided = client.post(f"/api/v1/sales/{sale_id}/void", headers=BOSS_HEADERS)
    assert voided.status_code == 200
    assert voided.json()["status"] == "voided"


def test_send_receipt_unknown_sale(client, fake_db) -> None:
    response = client.post(
        "/api/v1/receipts/send-sms",
        json={"sale_id": "missing", "phone_number": "+254700000000"},
        headers=ASSOCIATE_HEADERS,
    )
    assert response.status_code == 404


def test_edit_stock_item_endpoint(client, fake_db) -> None:
    item = fake_db.seed_stock_item(BUSINESS_ID, "Soap", 10, "5.00")

    assert client.put(f"/api/v1/stock/{item}", json={"unit_price": "6.00"}, headers=ASSOCIATE_HEADERS).status_code == 403

    edited = client.put(
        f"/api/v1/stock/{item}", json={"unit_price": "6.00", "description": "Bar"}, headers=BOSS_HEADERS
    )
    assert edited.status_code == 200
    data = edited.json()
    assert Decimal(data["unit_price"]) == Decimal("6.00")
    assert data["description"] == "Bar"
    assert Decimal(data["quantity"]) == Decimal("10")

    rejected = client.put(f"/api/v1/stock/{item}", json={"quantity": "99"}, headers=BOSS_HEADERS)
    assert rejected.status_code == 422
    assert fake_db.quantity(item) == Decimal("10")

    assert client.put("/api/v1/stock/missing", json={"unit_price": "1.00"}, headers=BOSS_HEADERS).status_code == 404


def test_bulk_add_stock_endpoint(client, fake_db) -> None:
    body = {
        "items": [
            {"name": "Rice", "quantity": "25", "unit_price": "1.80"},
            {"name": "Beans", "quantity": "10", "unit_price": "2.20", "unit_of_measure": "kg"},
        ]
    }

    assert client.post("/api/v1/stock/bulk", json=body, headers=ASSOCIATE_HEADERS).status_code == 403

    created = client.post("/api/v1/stock/bulk", json=body, headers=BOSS_HEADERS)
    assert created.status_code == 201
    assert created.json()["total_count"] == 2
    assert sorted(row["name"] for row in fake_db.rows("stock_items")) == ["Beans", "Rice"]

    bad = {"items": [{"name": "Oil", "quantity": "1", "unit_price": "3.00", "unit_of_measure": "other"}]}
    response = client.post("/api/v1/stock/bulk", json=bad, headers=BOSS_HEADERS)
    assert response.status_code == 400
    assert response.json()["details"]["field"] == "items[0].custom_unit"
    assert len(fake_db.rows("stock_items")) == 2


def test_openapi_documents_error_bodies(client) -> None:
    schema = client.get("/openapi.json").json()

    assert "ErrorResponse" in schema["components"]["schemas"]
    conflict = schema["paths"]["/api/v1/sales"]["post"]["responses"]["409"]
    assert conflict["content"]["application/json"]["schema"]["$ref"] == "#/components/schemas/ErrorResponse"
