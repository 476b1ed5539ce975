import os

# Configure before the app modules build their engine and cached settings
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ADMIN_JWT_SECRET"] = "test-admin-secret"
os.environ["RAZORPAY_KEY_ID"] = "rzp_test_key"
os.environ["RAZORPAY_KEY_SECRET"] = "test-key-secret"
os.environ["RAZORPAY_WEBHOOK_SECRET"] = "test-webhook-secret"
os.environ["SHIPROCKET_EMAIL"] = ""
os.environ["SHIPROCKET_PASSWORD"] = ""
os.environ["SHIPROCKET_WEBHOOK_TOKEN"] = ""

from datetime import datetime

import pytest
import fakeredis
from fastapi.testclient import TestClient

from app.api.auth import create_access_token
from app.api.deps import get_carrier, get_payment_gateway, get_rate_limiter
from app.domain.models import Base, Order, OrderStatus, PaymentStatus
from app.infrastructure.db import SessionLocal, engine, get_db
from app.infrastructure.rate_limit import RateLimiter
from app.main import app


@pytest.fixture
def db():
    Base.metadata.create_all(engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(engine)


@pytest.fixture
def rate_limiter():
    return RateLimiter(fakeredis.FakeRedis(decode_responses=True))


@pytest.fixture
def client(db, rate_limiter):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_carrier] = lambda: None
    app.dependency_overrides[get_rate_limiter] = lambda: rate_limiter
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def admin_headers():
    return {"Authorization": f"Bearer {create_access_token('admin@example.com')}"}


SHIPPING_ADDRESS = {
    "first_name": "Asha",
    "last_name": "Rao",
    "phone": "9876543210",
    "email": "asha@example.com",
    "address_line1": "12 MG Road",
    "city": "Bengaluru",
    "state": "Karnataka",
    "postal_code": "560001",
    "country": "India",
}


@pytest.fixture
def make_order(db):
    counter = {"n": 0}

    def _make(**overrides) -> Order:
        counter["n"] += 1
        fields = {
            "order_number": f"ORD-2024-{counter['n']:05d}",
            "items": [{"product_id": 1, "product_name": "Linen Shirt", "sku": "LS-1", "quantity": 2, "price": 999.0}],
            "shipping_address": dict(SHIPPING_ADDRESS),
            "subtotal": 1998,
            "tax": 0,
            "shipping_cost": 50,
            "total": 2048,
            "payment_method": "razorpay",
            "order_status": OrderStatus.PROCESSING.value,
            "payment_status": PaymentStatus.PENDING.value,
            "created_at": datetime(2024, 3, 1, 10, 0, 0),
        }
        fields.update(overrides)
        order = Order(**fields)
        db.add(order)
        db.commit()
        db.refresh(order)
        return order

    return _make


@pytest.fixture
def override_gateway():
    def _install(gateway):
        app.dependency_overrides[get_payment_gateway] = lambda: gateway
    return _install


@pytest.fixture
def override_carrier():
    def _install(carrier):
        app.dependency_overrides[get_carrier] = lambda: carrier
    return _install


@pytest.fixture
def shipping_address():
    return dict(SHIPPING_ADDRESS)
