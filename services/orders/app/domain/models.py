from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy import String, Numeric, DateTime, JSON, Text, Index
from datetime import datetime, timezone
from enum import Enum
from typing import Optional
import uuid


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every datetime column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_timestamp(value) -> Optional[datetime]:
    """Accept a datetime or an ISO-8601 string and return naive UTC. Raises ValueError."""
    if value is None or isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
    if parsed is not None and parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


class OrderStatus(str, Enum):
    PROCESSING = "processing"
    READY_TO_SHIP = "ready_to_ship"
    SHIPPED = "shipped"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    RETURN_IN_TRANSIT = "return_in_transit"
    RETURNED = "returned"
    CANCELLED = "cancelled"
    LOST = "lost"
    DAMAGED = "damaged"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class Base(DeclarativeBase):
    pass


class Order(Base):
    __tablename__ = "orders"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    order_number: Mapped[str] = mapped_column(String(50), unique=True, index=True)
    user_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)

    # Checkout payloads, opaque to the lifecycle code
    items: Mapped[list] = mapped_column(JSON, default=list)
    shipping_address: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    subtotal: Mapped[float] = mapped_column(Numeric(10, 2), default=0)
    tax: Mapped[float] = mapped_column(Numeric(10, 2), default=0)
    shipping_cost: Mapped[float] = mapped_column(Numeric(10, 2), default=0)
    total: Mapped[float] = mapped_column(Numeric(10, 2), default=0)
    payment_method: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)

    order_status: Mapped[str] = mapped_column(String(30), default=OrderStatus.PROCESSING.value, index=True)
    payment_status: Mapped[str] = mapped_column(String(30), default=PaymentStatus.PENDING.value)

    # Payment gateway correlation
    razorpay_order_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)
    razorpay_payment_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    razorpay_signature: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # Carrier correlation
    shiprocket_order_id: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    shiprocket_shipment_id: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    shiprocket_status: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    shiprocket_synced_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    awb_number: Mapped[Optional[str]] = mapped_column(String(50), nullable=True, index=True)
    courier_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    courier_id: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    pickup_scheduled_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    expected_delivery_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    shipped_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    delivered_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)


class ShipmentLog(Base):
    """Append-only trail of carrier traffic (webhooks and outbound calls)."""
    __tablename__ = "shipment_logs"
    id: Mapped[int] = mapped_column(primary_key=True)
    # No FK: the log must survive whatever happens to the order row
    order_id: Mapped[str] = mapped_column(String(36), index=True)
    action: Mapped[str] = mapped_column(String(50))
    request_payload: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    response_payload: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    status: Mapped[str] = mapped_column(String(20))
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)


Index("idx_orders_status_delivered_at", Order.order_status, Order.delivered_at)
