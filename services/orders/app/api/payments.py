import time

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from app.core_settings import Settings, get_settings
from app.infrastructure.db import get_db
from app.application.errors import RateLimitExceededError
from app.application.payments import PaymentService
from app.application.schemas import OrderRead, PaymentIntentCreate, PaymentVerification
from .deps import client_identifier, get_payment_gateway, get_rate_limiter

router = APIRouter(prefix="/api/razorpay", tags=["payments"])

@router.post("/create-order")
def create_payment_order(
    payload: PaymentIntentCreate,
    request: Request,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    gateway=Depends(get_payment_gateway),
    limiter=Depends(get_rate_limiter),
):
    """Create a gateway order for checkout; amount is in rupees."""
    window = settings.PAYMENT_RATE_WINDOW_SECONDS
    attempt = limiter.hit("payment", client_identifier(request), settings.PAYMENT_RATE_LIMIT, window)
    if attempt.limited:
        minutes = max(1, -(-(attempt.reset_at - int(time.time())) // 60))
        raise RateLimitExceededError(
            f"Too many payment attempts. Please try again in {minutes} minutes.",
            attempt.headers(),
        )

    gateway_order = PaymentService(db, settings, gateway=gateway).create_intent(payload)
    return {"success": True, "order": gateway_order}

@router.post("/verify-payment")
def verify_payment(
    payload: PaymentVerification,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    order = PaymentService(db, settings).verify_checkout(payload)
    return {
        "success": True,
        "message": "Payment verified successfully",
        "order": OrderRead.model_validate(order),
    }
