import json
from typing import Any, Optional
from sqlalchemy import update
from sqlalchemy.orm import Session

from shared.core import get_logger, set_request_context
from app.core_settings import Settings
from app.domain.models import Order, PaymentStatus, utcnow
from app.infrastructure import razorpay
from .audit import record_shipment_log
from .errors import (
    OrderNotFoundError,
    OrderValidationError,
    StorefrontError,
    WebhookSignatureError,
)
from .fulfillment import FulfillmentService
from .schemas import PaymentIntentCreate, PaymentVerification
from .transitions import fill_if_null

logger = get_logger(__name__)

MAX_ORDER_AMOUNT = 1_000_000


class PaymentService:
    """
    Payment side of the order lifecycle. Only ``payment_status`` and the
    gateway correlation columns are written here, never ``order_status``.
    """

    def __init__(self, db: Session, settings: Settings, gateway=None, carrier=None):
        self.db = db
        self.settings = settings
        self.gateway = gateway
        self.carrier = carrier

    def create_intent(self, data: PaymentIntentCreate) -> dict[str, Any]:
        if not data.amount or data.amount <= 0:
            raise OrderValidationError("Invalid amount")
        if not data.receipt:
            raise OrderValidationError("Receipt/order number is required")
        if data.amount > MAX_ORDER_AMOUNT:
            raise OrderValidationError("Order amount exceeds maximum limit")

        gateway_order = self.gateway.create_order(
            razorpay.to_paise(data.amount), data.currency, data.receipt, data.notes
        )
        order = self.db.query(Order).filter(Order.order_number == data.receipt).first()
        if order is not None:
            order.razorpay_order_id = gateway_order["id"]
            order.updated_at = utcnow()
            self.db.commit()
        logger.info(
            f"Payment intent {gateway_order['id']} created for {data.receipt}",
            extra={'extra_fields': {'amount': data.amount, 'currency': data.currency}},
        )
        return gateway_order

    def verify_checkout(self, data: PaymentVerification) -> Order:
        if not (data.razorpay_order_id and data.razorpay_payment_id and data.razorpay_signature):
            raise OrderValidationError("Missing payment details")
        if not data.order_id:
            raise OrderValidationError("Order ID is required")
        valid = razorpay.verify_payment_signature(
            data.razorpay_order_id,
            data.razorpay_payment_id,
            data.razorpay_signature,
            self.settings.RAZORPAY_KEY_SECRET,
        )
        if not valid:
            raise OrderValidationError("Invalid payment signature")

        set_request_context(order_id=data.order_id)
        order = self.db.get(Order, data.order_id)
        if order is None:
            raise OrderNotFoundError(details={"order_id": data.order_id})
        self._mark_paid(order, data.razorpay_payment_id, signature=data.razorpay_signature)
        return order

    def handle_webhook(self, body: bytes, signature: Optional[str]) -> dict[str, Any]:
        if not signature:
            raise OrderValidationError("Missing signature")
        if not razorpay.verify_webhook_signature(body, signature, self.settings.RAZORPAY_WEBHOOK_SECRET):
            logger.warning("Invalid Razorpay webhook signature")
            raise WebhookSignatureError("Invalid signature")
        try:
            event = razorpay.normalize_event(json.loads(body))
        except (ValueError, AttributeError):
            raise OrderValidationError("Malformed webhook body")

        logger.info(f"Razorpay webhook event: {event.name}")
        if event.kind is None:
            return {"received": True}
        if not event.gateway_order_id:
            raise OrderValidationError(f"{event.name} event carries no order id")

        order = self.db.query(Order).filter(Order.razorpay_order_id == event.gateway_order_id).first()
        if order is None:
            logger.error(f"Order not found for razorpay_order_id {event.gateway_order_id}")
            raise OrderNotFoundError(details={"razorpay_order_id": event.gateway_order_id})
        set_request_context(order_id=order.id)

        if event.kind == razorpay.PAYMENT_FAILED:
            self._mark_failed(order)
        else:
            self._mark_paid(order, event.payment_id)
            self._auto_create_carrier_order(order)
        return {"success": True}

    def _mark_paid(self, order: Order, payment_id: Optional[str], signature: Optional[str] = None) -> None:
        now = utcnow()
        values: dict[str, Any] = {
            "payment_status": PaymentStatus.PAID.value,
            "paid_at": fill_if_null("paid_at", now),
            "updated_at": now,
        }
        if payment_id:
            values["razorpay_payment_id"] = payment_id
        if signature:
            values["razorpay_signature"] = signature
        self.db.execute(
            update(Order).where(Order.id == order.id).values(**values)
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        self.db.refresh(order)
        logger.info(f"Order {order.order_number} marked as paid")

    def _mark_failed(self, order: Order) -> None:
        # A late failure event must not undo a capture
        self.db.execute(
            update(Order)
            .where(Order.id == order.id, Order.payment_status != PaymentStatus.PAID.value)
            .values(payment_status=PaymentStatus.FAILED.value, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        self.db.refresh(order)
        logger.info(f"Order {order.order_number} payment status is {order.payment_status}")

    def _auto_create_carrier_order(self, order: Order) -> None:
        if self.carrier is None:
            return
        fulfillment = FulfillmentService(self.db, self.carrier, self.settings.SHIPROCKET_PICKUP_NAME)
        try:
            fulfillment.create_carrier_order(order.id)
        except StorefrontError as e:
            logger.error(f"Shiprocket order creation failed for {order.order_number}: {e}")
            record_shipment_log(self.db, order.id, "auto_create_order", "error", error_message=str(e))
