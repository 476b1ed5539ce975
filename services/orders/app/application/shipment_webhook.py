"""
Inbound carrier status webhook.

Resolves the order (order number first, AWB as fallback), maps the carrier
status, writes one guarded UPDATE, then appends an audit row. No retries:
a failed write is reported back so the carrier redelivers.
"""
from typing import Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from shared.core import get_logger, set_request_context
from app.domain.models import Order, parse_timestamp
from .audit import record_shipment_log
from .errors import OrderNotFoundError, OrderValidationError, StorefrontError
from .schemas import ShipmentWebhookPayload, ShipmentWebhookResult
from .status_mapping import map_carrier_status
from .transitions import apply_status_transition, fill_if_null, is_valid_transition

logger = get_logger(__name__)

WEBHOOK_ACTION = "webhook_received"


class ShipmentWebhookService:
    def __init__(self, db: Session):
        self.db = db

    def find_order(self, order_number: Optional[str], awb: Optional[str]) -> Optional[Order]:
        order = None
        if order_number:
            order = self.db.query(Order).filter(Order.order_number == order_number).first()
        if order is None and awb:
            order = self.db.query(Order).filter(Order.awb_number == awb).first()
        return order

    def handle(self, payload: ShipmentWebhookPayload) -> ShipmentWebhookResult:
        raw_status = payload.current_status or payload.shipment_status
        if not raw_status:
            raise OrderValidationError("current_status is required")
        if not payload.order_id and not payload.awb:
            raise OrderValidationError("order_id or awb is required")

        order = self.find_order(payload.order_id, payload.awb)
        if order is None:
            logger.error(
                "Order not found for carrier webhook",
                extra={'extra_fields': {'order_number': payload.order_id, 'awb': payload.awb}},
            )
            raise OrderNotFoundError(details={"order_id": payload.order_id, "awb": payload.awb})
        set_request_context(order_id=order.id)

        mapped = map_carrier_status(raw_status)
        values = {"shiprocket_status": raw_status}
        if payload.awb:
            values["awb_number"] = fill_if_null("awb_number", payload.awb)
        if payload.courier_name:
            values["courier_name"] = fill_if_null("courier_name", payload.courier_name)
        if payload.edd:
            try:
                # Carriers revise ETAs, so this one is always overwritten
                values["expected_delivery_date"] = parse_timestamp(payload.edd)
            except ValueError:
                logger.warning(f"Ignoring unparseable edd {payload.edd!r} for order {order.order_number}")

        new_status = mapped
        if not is_valid_transition(order.order_status, mapped):
            logger.warning(
                f"Carrier status {raw_status!r} would move order {order.order_number} "
                f"from {order.order_status} to {mapped.value}; keeping current status",
            )
            new_status = None

        audit_payload = payload.model_dump(mode="json")
        order_id, order_number = order.id, order.order_number
        try:
            order = apply_status_transition(self.db, order, new_status, values)
        except (SQLAlchemyError, StorefrontError) as e:
            self.db.rollback()
            logger.error(f"Failed to update order {order_number} from carrier webhook: {e}")
            record_shipment_log(
                self.db, order_id, WEBHOOK_ACTION, "error",
                request_payload=audit_payload, error_message=str(e),
            )
            raise

        record_shipment_log(
            self.db, order.id, WEBHOOK_ACTION, "success",
            request_payload=audit_payload,
            response_payload={"new_status": order.order_status},
        )
        logger.info(
            f"Order {order.order_number} updated to status: {order.order_status}",
            extra={'extra_fields': {'carrier_status': raw_status, 'scans': len(payload.scans)}},
        )
        return ShipmentWebhookResult(order_id=order.id, new_status=order.order_status)
