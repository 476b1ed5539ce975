from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core_settings import Settings, get_settings
from app.infrastructure.db import get_db
from app.application.backfill import DeliveryDateBackfill
from app.application.errors import OrderValidationError
from app.application.fulfillment import FulfillmentService
from app.application.schemas import (
    AdminOrderUpdate,
    CarrierActionRequest,
    FixDeliveryDatesRequest,
    MissingDeliveryDate,
    MissingDeliveryDatesReport,
    OrderEnvelope,
    OrderRead,
)
from app.application.service import OrderService
from .auth import require_admin
from .deps import get_carrier

router = APIRouter(prefix="/api/admin", tags=["admin"], dependencies=[Depends(require_admin)])

def _envelope(order) -> OrderEnvelope:
    return OrderEnvelope(order=OrderRead.model_validate(order))

@router.get("/orders", response_model=list[OrderRead])
def list_orders(
    status: Optional[str] = None,
    limit: Optional[int] = Query(None, ge=1, le=500),
    user_id: Optional[str] = None,
    db: Session = Depends(get_db),
):
    return OrderService(db).list(status, limit, user_id=user_id)

@router.get("/customers/{user_id}/orders", response_model=list[OrderRead])
def customer_orders(user_id: str, db: Session = Depends(get_db)):
    """Order history of one customer, newest first."""
    return OrderService(db).list(user_id=user_id)

@router.put("/orders", response_model=OrderEnvelope)
def update_order(payload: AdminOrderUpdate, db: Session = Depends(get_db)):
    """Status change plus any column overrides in one guarded write."""
    return _envelope(OrderService(db).update(payload))

@router.post("/orders/{order_id}/ship", response_model=OrderEnvelope)
def ship_order(order_id: str, db: Session = Depends(get_db)):
    return _envelope(OrderService(db).mark_shipped(order_id))

@router.post("/orders/{order_id}/deliver", response_model=OrderEnvelope)
def deliver_order(order_id: str, db: Session = Depends(get_db)):
    return _envelope(OrderService(db).mark_delivered(order_id))

@router.post("/orders/{order_id}/cancel", response_model=OrderEnvelope)
def cancel_order(order_id: str, db: Session = Depends(get_db), carrier=Depends(get_carrier)):
    return _envelope(OrderService(db, carrier=carrier).cancel(order_id))

@router.get("/fix-delivery-dates", response_model=MissingDeliveryDatesReport)
def missing_delivery_dates(db: Session = Depends(get_db)):
    orders = DeliveryDateBackfill(db).find_missing()
    return MissingDeliveryDatesReport(
        count=len(orders),
        orders=[MissingDeliveryDate.model_validate(o) for o in orders],
    )

@router.post("/fix-delivery-dates")
def fix_delivery_dates(payload: FixDeliveryDatesRequest, db: Session = Depends(get_db)):
    backfill = DeliveryDateBackfill(db)
    if payload.action == "fix_single":
        order = backfill.fix_single(payload.orderId, payload.deliveryDate)
        return {
            "success": True,
            "message": "Delivery date updated successfully",
            "order": OrderRead.model_validate(order),
        }
    if payload.action == "fix_all":
        result = backfill.fix_all()
        return {"success": True, "message": result.message, "fixed": result.fixed, "total": result.total}
    raise OrderValidationError("Invalid action")

@router.post("/shiprocket/create-order")
def carrier_action(
    payload: CarrierActionRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    carrier=Depends(get_carrier),
):
    fulfillment = FulfillmentService(db, carrier, settings.SHIPROCKET_PICKUP_NAME)
    actions = {
        "create": fulfillment.create_carrier_order,
        "generate_awb": fulfillment.generate_awb,
        "schedule_pickup": fulfillment.schedule_pickup,
    }
    if payload.action not in actions:
        raise OrderValidationError("Invalid action")
    return {"success": True, "data": actions[payload.action](payload.orderId)}
