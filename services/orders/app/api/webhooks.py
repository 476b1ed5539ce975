import hmac
import json
from typing import Optional
from fastapi import APIRouter, Depends, Header, Request
from pydantic import ValidationError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from app.core_settings import Settings, get_settings
from app.infrastructure.db import get_db
from app.application.errors import OrderValidationError, WebhookSignatureError
from app.application.payments import PaymentService
from app.application.schemas import ShipmentWebhookPayload, ShipmentWebhookResult
from app.application.shipment_webhook import ShipmentWebhookService
from .deps import get_carrier

router = APIRouter(prefix="/api/webhooks", tags=["webhooks"])


def _check_carrier_token(api_key: Optional[str], settings: Settings) -> None:
    expected = settings.SHIPROCKET_WEBHOOK_TOKEN
    if not expected:
        return
    if not api_key or not hmac.compare_digest(api_key.encode(), expected.encode()):
        raise WebhookSignatureError("Invalid webhook token")


@router.post("/shiprocket", response_model=ShipmentWebhookResult)
async def shiprocket_webhook(
    request: Request,
    x_api_key: Optional[str] = Header(None),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    _check_carrier_token(x_api_key, settings)
    try:
        payload = ShipmentWebhookPayload.model_validate(json.loads(await request.body()))
    except (ValueError, ValidationError):
        raise OrderValidationError("Malformed webhook body")
    return await run_in_threadpool(ShipmentWebhookService(db).handle, payload)


@router.post("/razorpay")
async def razorpay_webhook(
    request: Request,
    x_razorpay_signature: Optional[str] = Header(None),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    carrier=Depends(get_carrier),
):
    # Signature covers the exact bytes received, so the body is read raw
    body = await request.body()
    service = PaymentService(db, settings, carrier=carrier)
    return await run_in_threadpool(service.handle_webhook, body, x_razorpay_signature)
