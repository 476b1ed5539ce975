from sqlalchemy import DateTime
from sqlalchemy.orm import Session
from app.domain.models import Order, OrderStatus, PaymentStatus, parse_timestamp
from shared.core import get_logger, set_request_context
from .schemas import OrderCreate, AdminOrderUpdate
from .errors import OrderNotFoundError, OrderValidationError, CarrierAPIError, InvalidTransitionError
from .transitions import apply_status_transition, parse_status, is_valid_transition
from datetime import datetime
from typing import Any, Optional

logger = get_logger(__name__)

# Columns an admin may not override through the generic update
_PROTECTED_COLUMNS = frozenset({"id", "order_number", "created_at", "order_status"})


class OrderService:
    """Checkout order creation plus the admin-facing lifecycle controller."""

    def __init__(self, db: Session, carrier=None):
        self.db = db
        # Optional ShiprocketClient, used to cancel carrier shipments
        self.carrier = carrier

    def _generate_order_number(self) -> str:
        """Generate a realistic order number in format ORD-YYYY-NNNNN"""
        year = datetime.now().year
        count = self.db.query(Order).filter(
            Order.order_number.like(f"ORD-{year}-%")
        ).count()
        return f"ORD-{year}-{(count + 1):05d}"

    def list(self, status: Optional[str] = None, limit: Optional[int] = None, user_id: Optional[str] = None):
        query = self.db.query(Order).order_by(Order.created_at.desc())
        if user_id:
            query = query.filter(Order.user_id == user_id)
        if status and status != "all":
            query = query.filter(Order.order_status == parse_status(status).value)
        if limit:
            query = query.limit(limit)
        return query.all()

    def get(self, order_id: str) -> Order:
        order = self.db.get(Order, order_id)
        if order is None:
            raise OrderNotFoundError(details={"order_id": order_id})
        return order

    def create(self, data: OrderCreate) -> Order:
        items = [item.model_dump() for item in data.items]
        for item in items:
            item["subtotal"] = round(item["price"] * item["quantity"], 2)
        subtotal = round(sum(item["subtotal"] for item in items), 2)

        order = Order(
            order_number=self._generate_order_number(),
            user_id=data.user_id,
            items=items,
            shipping_address=data.shipping_address.model_dump(),
            subtotal=subtotal,
            tax=data.tax,
            shipping_cost=data.shipping_cost,
            total=round(subtotal + data.tax + data.shipping_cost, 2),
            payment_method=data.payment_method,
            order_status=OrderStatus.PROCESSING.value,
            payment_status=PaymentStatus.PENDING.value,
        )
        self.db.add(order)
        self.db.commit()
        self.db.refresh(order)
        logger.info(f"Order {order.order_number} created", extra={'extra_fields': {'order_id': order.id}})
        return order

    def _coerce_overrides(self, overrides: dict[str, Any]) -> dict[str, Any]:
        columns = Order.__table__.columns
        unknown = sorted(k for k in overrides if k not in columns or k in _PROTECTED_COLUMNS)
        if unknown:
            raise OrderValidationError(f"Fields cannot be updated: {', '.join(unknown)}", {"fields": unknown})

        values = {}
        for key, value in overrides.items():
            if isinstance(columns[key].type, DateTime) and value is not None:
                try:
                    value = parse_timestamp(value)
                except ValueError:
                    raise OrderValidationError(f"Invalid datetime for {key}: {value!r}")
            if key == "payment_status" and value not in {s.value for s in PaymentStatus}:
                raise OrderValidationError(f"Unknown payment status: {value!r}")
            values[key] = value
        return values

    def update(self, payload: AdminOrderUpdate) -> Order:
        """
        Admin update: optional status change plus arbitrary column overrides.

        Moving to shipped/delivered stamps shipped_at/delivered_at only when
        they are unset; ``updated_at`` is always refreshed.
        """
        if not payload.id:
            raise OrderValidationError("Order ID is required")
        new_status = parse_status(payload.order_status) if payload.order_status is not None else None
        values = self._coerce_overrides(payload.overrides())

        set_request_context(order_id=payload.id)
        order = self.get(payload.id)
        previous = order.order_status
        order = apply_status_transition(self.db, order, new_status, values)
        logger.info(
            f"Order {order.order_number} updated by admin",
            extra={'extra_fields': {
                'from_status': previous,
                'to_status': order.order_status,
                'fields': sorted(values),
            }},
        )
        return order

    def mark_shipped(self, order_id: str) -> Order:
        return self._transition(order_id, OrderStatus.SHIPPED)

    def mark_delivered(self, order_id: str) -> Order:
        return self._transition(order_id, OrderStatus.DELIVERED)

    def cancel(self, order_id: str) -> Order:
        order = self.get(order_id)
        # Validate before touching the carrier so a refused cancel leaves no trace there
        if not is_valid_transition(order.order_status, OrderStatus.CANCELLED):
            raise InvalidTransitionError(order.order_status, OrderStatus.CANCELLED.value)
        if order.shiprocket_order_id and self.carrier is not None:
            try:
                self.carrier.cancel_shipment([int(order.shiprocket_order_id)])
            except CarrierAPIError:
                logger.error(f"Carrier refused cancellation of order {order.order_number}")
                raise
        return self._transition(order_id, OrderStatus.CANCELLED)

    def _transition(self, order_id: str, status: OrderStatus) -> Order:
        set_request_context(order_id=order_id)
        order = self.get(order_id)
        previous = order.order_status
        order = apply_status_transition(self.db, order, status)
        logger.info(
            f"Order {order.order_number} moved {previous} -> {order.order_status}",
            extra={'extra_fields': {'order_id': order.id}},
        )
        return order
