from datetime import datetime

import pytest

from app.api.auth import create_access_token
from app.application.service import OrderService
from app.domain.models import Order


def test_admin_routes_require_token(client):
    assert client.get("/api/admin/orders").status_code == 401
    response = client.get("/api/admin/orders", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401
    assert response.json() == {"success": False, "error": "Invalid token"}


def test_admin_routes_require_admin_role(client):
    token = create_access_token("shopper@example.com", role="customer")
    response = client.get("/api/admin/orders", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 403


def test_super_admin_is_accepted(client):
    token = create_access_token("owner@example.com", role="super_admin")
    assert client.get("/api/admin/orders", headers={"Authorization": f"Bearer {token}"}).status_code == 200


def test_list_newest_first_with_filter(client, admin_headers, make_order):
    make_order(created_at=datetime(2024, 1, 1))
    newer = make_order(created_at=datetime(2024, 2, 1), order_status="shipped")
    make_order(created_at=datetime(2024, 3, 1))

    listed = client.get("/api/admin/orders", headers=admin_headers).json()
    assert [o["created_at"][:10] for o in listed] == ["2024-03-01", "2024-02-01", "2024-01-01"]

    shipped = client.get("/api/admin/orders?status=shipped", headers=admin_headers).json()
    assert [o["id"] for o in shipped] == [newer.id]

    assert len(client.get("/api/admin/orders?status=all&limit=2", headers=admin_headers).json()) == 2


def test_customer_order_history(client, admin_headers, make_order):
    older = make_order(user_id="user-1", created_at=datetime(2024, 1, 5))
    newer = make_order(user_id="user-1", created_at=datetime(2024, 2, 5), order_status="delivered")
    make_order(user_id="user-2", created_at=datetime(2024, 3, 5))
    make_order(created_at=datetime(2024, 4, 5))

    history = client.get("/api/admin/customers/user-1/orders", headers=admin_headers).json()
    assert [o["id"] for o in history] == [newer.id, older.id]
    assert {o["user_id"] for o in history} == {"user-1"}

    assert client.get("/api/admin/customers/nobody/orders", headers=admin_headers).json() == []
    assert client.get("/api/admin/customers/user-1/orders").status_code == 401

    delivered = client.get("/api/admin/orders?user_id=user-1&status=delivered", headers=admin_headers).json()
    assert [o["id"] for o in delivered] == [newer.id]


def test_update_without_id_fails_before_store_access(client, admin_headers, monkeypatch):
    def boom(self, order_id):
        raise AssertionError("store accessed")

    monkeypatch.setattr(OrderService, "get", boom)
    response = client.put("/api/admin/orders", json={"order_status": "shipped"}, headers=admin_headers)
    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "Order ID is required"}


def test_update_to_shipped_stamps_once(client, db, admin_headers, make_order):
    order = make_order()
    response = client.put("/api/admin/orders", json={"id": order.id, "order_status": "shipped"}, headers=admin_headers)
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["order"]["order_status"] == "shipped"
    first = body["order"]["shipped_at"]
    assert first is not None
    assert body["order"]["updated_at"] is not None

    again = client.put("/api/admin/orders", json={"id": order.id, "order_status": "shipped"}, headers=admin_headers)
    assert again.json()["order"]["shipped_at"] == first


def test_update_to_delivered_keeps_existing_delivered_at(client, admin_headers, make_order):
    original = datetime(2024, 3, 3, 15, 0, 0)
    order = make_order(order_status="out_for_delivery", delivered_at=original)
    response = client.put("/api/admin/orders", json={"id": order.id, "order_status": "delivered"}, headers=admin_headers)
    assert response.json()["order"]["delivered_at"] == "2024-03-03T15:00:00"


def test_update_with_field_overrides(client, db, admin_headers, make_order):
    order = make_order()
    response = client.put("/api/admin/orders", json={
        "id": order.id,
        "awb_number": "MANUAL-1",
        "courier_name": "India Post",
        "expected_delivery_date": "2024-03-10T00:00:00Z",
    }, headers=admin_headers)
    assert response.status_code == 200
    db.refresh(order)
    assert order.order_status == "processing"
    assert order.awb_number == "MANUAL-1"
    assert order.expected_delivery_date == datetime(2024, 3, 10)


def test_update_rejects_invalid_transition(client, db, admin_headers, make_order):
    order = make_order(order_status="delivered")
    response = client.put("/api/admin/orders", json={"id": order.id, "order_status": "processing"}, headers=admin_headers)
    assert response.status_code == 409
    db.refresh(order)
    assert order.order_status == "delivered"


@pytest.mark.parametrize("body", [
    {"order_status": "teleported"},
    {"order_number": "ORD-HACKED"},
    {"no_such_column": 1},
    {"payment_status": "maybe"},
    {"shipped_at": "yesterday"},
])
def test_update_rejects_bad_fields(client, admin_headers, make_order, body):
    order = make_order()
    response = client.put("/api/admin/orders", json={"id": order.id, **body}, headers=admin_headers)
    assert response.status_code == 400


def test_update_unknown_order(client, admin_headers):
    response = client.put("/api/admin/orders", json={"id": "missing", "order_status": "shipped"}, headers=admin_headers)
    assert response.status_code == 404


def test_ship_deliver_endpoints(client, db, admin_headers, make_order):
    order = make_order()
    shipped = client.post(f"/api/admin/orders/{order.id}/ship", headers=admin_headers).json()["order"]
    assert shipped["order_status"] == "shipped"
    delivered = client.post(f"/api/admin/orders/{order.id}/deliver", headers=admin_headers).json()["order"]
    assert delivered["order_status"] == "delivered"
    assert delivered["shipped_at"] == shipped["shipped_at"]
    assert delivered["delivered_at"] is not None


def test_cancel_delivered_order_is_refused(client, admin_headers, make_order):
    order = make_order(order_status="delivered")
    assert client.post(f"/api/admin/orders/{order.id}/cancel", headers=admin_headers).status_code == 409


class RecordingCarrier:
    def __init__(self, fail=False):
        self.cancelled = []
        self.fail = fail

    def cancel_shipment(self, order_ids):
        from app.application.errors import CarrierAPIError
        if self.fail:
            raise CarrierAPIError("Order cannot be cancelled")
        self.cancelled.extend(order_ids)
        return {"message": "Order cancelled"}


def test_cancel_calls_carrier_first(client, db, admin_headers, make_order, override_carrier):
    carrier = RecordingCarrier()
    override_carrier(carrier)
    order = make_order(shiprocket_order_id="4242")
    response = client.post(f"/api/admin/orders/{order.id}/cancel", headers=admin_headers)
    assert response.status_code == 200
    assert carrier.cancelled == [4242]
    db.refresh(order)
    assert order.order_status == "cancelled"


def test_cancel_carrier_failure_leaves_order_untouched(client, db, admin_headers, make_order, override_carrier):
    override_carrier(RecordingCarrier(fail=True))
    order = make_order(shiprocket_order_id="4242")
    response = client.post(f"/api/admin/orders/{order.id}/cancel", headers=admin_headers)
    assert response.status_code == 502
    db.refresh(order)
    assert order.order_status == "processing"
    assert order.updated_at is None


def test_public_order_creation_and_lookup(client, db, shipping_address):
    response = client.post("/api/orders", json={
        "items": [{"product_id": 7, "product_name": "Kurta", "quantity": 2, "price": 499.5}],
        "shipping_address": shipping_address,
        "shipping_cost": 40,
    })
    assert response.status_code == 201
    created = response.json()
    assert created["subtotal"] == 999.0
    assert created["total"] == 1039.0
    assert created["order_status"] == "processing"
    assert created["payment_status"] == "pending"
    assert created["order_number"].startswith("ORD-")

    fetched = client.get(f"/api/orders/{created['id']}")
    assert fetched.json()["order_number"] == created["order_number"]
    assert client.get("/api/orders/missing").status_code == 404
    assert db.query(Order).count() == 1


def test_request_validation_uses_error_shape(client):
    response = client.post("/api/orders", json={"items": []})
    assert response.status_code == 422
    assert response.json()["success"] is False
