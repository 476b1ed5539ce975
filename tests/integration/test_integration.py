"""
Integration Test Suite for the Orders Service
Exercises a running deployment end to end: checkout order, carrier
webhooks, admin overrides and the delivery-date backfill.

Set STOREFRONT_BASE_URL (and ADMIN_JWT_SECRET matching the deployment)
to run it.
"""

import os
import time
from datetime import datetime, timedelta, timezone

import httpx
import jwt
import pytest

# Configuration
BASE_URL = os.getenv("STOREFRONT_BASE_URL")
ADMIN_JWT_SECRET = os.getenv("ADMIN_JWT_SECRET", "change-me")
HEALTH_CHECK_RETRIES = 30
HEALTH_CHECK_DELAY = 2

pytestmark = pytest.mark.skipif(not BASE_URL, reason="STOREFRONT_BASE_URL not set")


class TestOrdersIntegration:
    """Integration tests against a live orders service"""

    @classmethod
    def setup_class(cls):
        cls.client = httpx.Client(base_url=BASE_URL, timeout=30.0)
        cls.wait_for_service()
        now = datetime.now(timezone.utc)
        token = jwt.encode(
            {"sub": "integration@example.com", "role": "admin", "iat": now, "exp": now + timedelta(minutes=10)},
            ADMIN_JWT_SECRET,
            algorithm="HS256",
        )
        cls.headers = {"Authorization": f"Bearer {token}"}

    @classmethod
    def teardown_class(cls):
        cls.client.close()

    @classmethod
    def wait_for_service(cls):
        """Wait for the service to be healthy"""
        for attempt in range(HEALTH_CHECK_RETRIES):
            try:
                if cls.client.get("/health").status_code == 200:
                    return
            except httpx.HTTPError as e:
                print(f"Attempt {attempt + 1}/{HEALTH_CHECK_RETRIES}: {e}")
            time.sleep(HEALTH_CHECK_DELAY)
        raise RuntimeError("Orders service failed to start within timeout period")

    def _create_order(self):
        response = self.client.post("/api/orders", json={
            "items": [{"product_id": 1, "product_name": "Integration Tee", "quantity": 1, "price": 499}],
            "shipping_address": {
                "first_name": "Test",
                "phone": "9999999999",
                "address_line1": "1 Test Street",
                "city": "Pune",
                "state": "Maharashtra",
                "postal_code": "411001",
            },
        })
        assert response.status_code == 201
        return response.json()

    def test_health_endpoints(self):
        for endpoint in ["/health", "/health/live", "/health/ready", "/health/startup"]:
            response = self.client.get(endpoint)
            assert response.status_code in [200, 503]
            assert "status" in response.json()

    def test_metrics_endpoint(self):
        response = self.client.get("/metrics")
        assert response.status_code == 200
        assert "system" in response.json()

    def test_carrier_webhook_lifecycle(self):
        order = self._create_order()
        for carrier_status, expected in [
            ("PICKED UP", "shipped"),
            ("OUT FOR DELIVERY", "out_for_delivery"),
            ("DELIVERED", "delivered"),
            ("IN TRANSIT", "delivered"),
        ]:
            response = self.client.post("/api/webhooks/shiprocket", json={
                "order_id": order["order_number"],
                "current_status": carrier_status,
            })
            assert response.status_code == 200
            assert response.json()["new_status"] == expected

        current = self.client.get(f"/api/orders/{order['id']}").json()
        assert current["shipped_at"] is not None
        assert current["delivered_at"] is not None

    def test_admin_update_and_backfill(self):
        order = self._create_order()
        response = self.client.put(
            "/api/admin/orders",
            json={"id": order["id"], "order_status": "delivered", "delivered_at": None},
            headers=self.headers,
        )
        assert response.status_code == 200

        report = self.client.get("/api/admin/fix-delivery-dates", headers=self.headers).json()
        assert report["success"] is True

        response = self.client.post(
            "/api/admin/fix-delivery-dates",
            json={"action": "fix_single", "orderId": order["id"]},
            headers=self.headers,
        )
        assert response.status_code in [200, 409]

    def test_error_handling(self):
        assert self.client.get("/api/admin/orders").status_code == 401
        response = self.client.post("/api/webhooks/shiprocket", json={"order_id": "ORD-NOPE", "current_status": "DELIVERED"})
        assert response.status_code == 404
        assert response.json()["success"] is False

    def test_request_tracking(self):
        response = self.client.get("/health", headers={"X-Request-ID": "integration-req"})
        assert response.headers.get("X-Request-ID") == "integration-req"
