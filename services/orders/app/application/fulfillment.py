from typing import Any, Optional
from sqlalchemy.orm import Session

from shared.core import get_logger, set_request_context
from app.domain.models import Order, OrderStatus, PaymentStatus, utcnow
from .audit import record_shipment_log
from .errors import CarrierAPIError, InvalidTransitionError, OrderNotFoundError, OrderValidationError
from .transitions import apply_status_transition, is_valid_transition

logger = get_logger(__name__)

# Parcel defaults when the catalog has no dimensions (kg / cm)
DEFAULT_ITEM_WEIGHT = 0.5
DEFAULT_LENGTH = 10
DEFAULT_BREADTH = 10
DEFAULT_ITEM_HEIGHT = 5


def package_dimensions(items: list[dict]) -> dict[str, float]:
    units = sum(int(item.get("quantity") or 1) for item in items) or 1
    return {
        "weight": max(DEFAULT_ITEM_WEIGHT * units, DEFAULT_ITEM_WEIGHT),
        "length": DEFAULT_LENGTH,
        "breadth": DEFAULT_BREADTH,
        "height": max(DEFAULT_ITEM_HEIGHT * units, DEFAULT_ITEM_HEIGHT),
    }


def build_carrier_order_payload(order: Order, pickup_location: str) -> dict[str, Any]:
    address = order.shipping_address or {}
    items = order.items or []
    missing = [k for k in ("first_name", "address_line1", "city", "state", "postal_code", "phone") if not address.get(k)]
    if missing:
        raise OrderValidationError(
            f"Order {order.order_number} shipping address is missing: {', '.join(missing)}",
            {"order_id": order.id},
        )
    return {
        "order_id": order.order_number,
        "order_date": order.created_at.strftime("%Y-%m-%d"),
        "pickup_location": pickup_location,
        "comment": f"Storefront order {order.order_number}",
        "billing_customer_name": address["first_name"],
        "billing_last_name": address.get("last_name") or "",
        "billing_address": address["address_line1"],
        "billing_address_2": address.get("address_line2") or "",
        "billing_city": address["city"],
        "billing_pincode": address["postal_code"],
        "billing_state": address["state"],
        "billing_country": address.get("country") or "India",
        "billing_email": address.get("email") or "",
        "billing_phone": address["phone"],
        "shipping_is_billing": True,
        "order_items": [
            {
                "name": item.get("product_name") or "Product",
                "sku": item.get("sku") or f"SKU-{item.get('product_id')}",
                "units": int(item.get("quantity") or 1),
                "selling_price": float(item.get("price") or 0),
                "discount": 0,
                "tax": 0,
            }
            for item in items
        ],
        "payment_method": "Prepaid" if order.payment_status == PaymentStatus.PAID.value else "COD",
        "shipping_charges": float(order.shipping_cost or 0),
        "sub_total": float(order.subtotal or 0),
        **package_dimensions(items),
    }


class FulfillmentService:
    """Admin-side carrier actions: create the carrier order, assign an AWB, book pickup."""

    def __init__(self, db: Session, carrier, pickup_location: str = "Primary"):
        self.db = db
        self.carrier = carrier
        self.pickup_location = pickup_location

    def _get(self, order_id: Optional[str]) -> Order:
        if not order_id:
            raise OrderValidationError("Order ID is required")
        set_request_context(order_id=order_id)
        order = self.db.get(Order, order_id)
        if order is None:
            raise OrderNotFoundError(details={"order_id": order_id})
        return order

    def _require_carrier(self):
        if self.carrier is None:
            raise CarrierAPIError("Shiprocket is not configured")
        return self.carrier

    def create_carrier_order(self, order_id: str) -> dict[str, Any]:
        order = self._get(order_id)
        if order.shiprocket_order_id:
            logger.info(f"Order {order.order_number} already synced to Shiprocket")
            return {
                "message": "Order already synced",
                "shiprocket_order_id": order.shiprocket_order_id,
            }
        carrier = self._require_carrier()
        payload = build_carrier_order_payload(order, self.pickup_location)

        try:
            response = carrier.create_order(payload)
        except CarrierAPIError as e:
            record_shipment_log(self.db, order.id, "create_order", "error", request_payload=payload, error_message=str(e))
            raise

        apply_status_transition(self.db, order, None, {
            "shiprocket_order_id": str(response["order_id"]),
            "shiprocket_shipment_id": str(response["shipment_id"]),
            "shiprocket_status": response.get("status"),
            "shiprocket_synced_at": utcnow(),
        })
        record_shipment_log(
            self.db, order.id, "create_order", "success",
            request_payload=payload, response_payload=response,
        )
        logger.info(f"Shiprocket order {response['order_id']} created for {order.order_number}")

        awb = None
        if response.get("shipment_id"):
            try:
                awb = self.generate_awb(order.id)
            except CarrierAPIError:
                # AWB can be assigned manually later
                logger.warning(f"AWB assignment deferred for order {order.order_number}")

        return {
            "shiprocket_order_id": response["order_id"],
            "shiprocket_shipment_id": response["shipment_id"],
            "awb": awb,
        }

    def generate_awb(self, order_id: str) -> dict[str, Any]:
        order = self._get(order_id)
        if not order.shiprocket_shipment_id:
            raise OrderValidationError("Shipment ID not found. Create order first.")
        carrier = self._require_carrier()

        try:
            response = carrier.generate_awb(int(order.shiprocket_shipment_id))
            data = (response.get("response") or {}).get("data") or response
            awb_code = data.get("awb_code")
            if not awb_code:
                raise CarrierAPIError(data.get("awb_assign_error") or "AWB code not generated")
        except CarrierAPIError as e:
            record_shipment_log(self.db, order.id, "generate_awb", "error", error_message=str(e))
            raise

        courier_id = data.get("courier_company_id")
        apply_status_transition(self.db, order, None, {
            "awb_number": awb_code,
            "courier_name": data.get("courier_name"),
            "courier_id": str(courier_id) if courier_id is not None else None,
        })
        record_shipment_log(self.db, order.id, "generate_awb", "success", response_payload=response)
        logger.info(f"AWB {awb_code} assigned to order {order.order_number}")
        return {"awb_code": awb_code, "courier_name": data.get("courier_name")}

    def schedule_pickup(self, order_id: str) -> dict[str, Any]:
        order = self._get(order_id)
        if not order.shiprocket_shipment_id:
            raise OrderValidationError("Shipment ID not found. Create order first.")
        # Checked before the carrier books anything
        if not is_valid_transition(order.order_status, OrderStatus.READY_TO_SHIP):
            raise InvalidTransitionError(order.order_status, OrderStatus.READY_TO_SHIP.value)
        carrier = self._require_carrier()

        try:
            response = carrier.schedule_pickup([int(order.shiprocket_shipment_id)])
        except CarrierAPIError as e:
            record_shipment_log(self.db, order.id, "schedule_pickup", "error", error_message=str(e))
            raise

        apply_status_transition(self.db, order, OrderStatus.READY_TO_SHIP, {"pickup_scheduled_date": utcnow()})
        record_shipment_log(self.db, order.id, "schedule_pickup", "success", response_payload=response)
        return response
