"""
Razorpay gateway adapter.

Creates payment intents (gateway orders) over the REST API, verifies
webhook and checkout signatures, and normalises gateway events into the
``payment.captured`` / ``payment.failed`` / ``order.paid`` vocabulary.
"""
from dataclasses import dataclass
from typing import Any, Optional
import hashlib
import hmac
import httpx

from shared.core import get_logger
from app.core_settings import Settings
from app.application.errors import PaymentGatewayError

logger = get_logger(__name__)

PAYMENT_CAPTURED = "payment.captured"
PAYMENT_FAILED = "payment.failed"
ORDER_PAID = "order.paid"
HANDLED_EVENTS = frozenset({PAYMENT_CAPTURED, PAYMENT_FAILED, ORDER_PAID})


def to_paise(amount: float) -> int:
    return int(round(amount * 100))


def _hmac_hex(secret: str, message: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def verify_webhook_signature(body: bytes, signature: str, secret: str) -> bool:
    """HMAC-SHA256 of the raw request body, hex encoded."""
    if not signature or not secret:
        return False
    return hmac.compare_digest(_hmac_hex(secret, body), signature)


def verify_payment_signature(order_id: str, payment_id: str, signature: str, secret: str) -> bool:
    """Checkout callback signature: HMAC-SHA256 of ``"{order_id}|{payment_id}"``."""
    if not signature or not secret:
        return False
    expected = _hmac_hex(secret, f"{order_id}|{payment_id}".encode("utf-8"))
    return hmac.compare_digest(expected, signature)


@dataclass
class PaymentEvent:
    kind: Optional[str]
    name: str
    gateway_order_id: Optional[str] = None
    payment_id: Optional[str] = None


def normalize_event(event: dict) -> PaymentEvent:
    name = event.get("event") or ""
    payload = event.get("payload") or {}
    payment = (payload.get("payment") or {}).get("entity") or {}
    order = (payload.get("order") or {}).get("entity") or {}

    gateway_order_id = payment.get("order_id") or order.get("id")
    return PaymentEvent(
        kind=name if name in HANDLED_EVENTS else None,
        name=name,
        gateway_order_id=gateway_order_id,
        payment_id=payment.get("id"),
    )


class RazorpayClient:
    def __init__(
        self,
        base_url: str,
        key_id: str,
        key_secret: str,
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.key_id = key_id
        self.key_secret = key_secret
        self.timeout = timeout
        self.transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> "RazorpayClient":
        return cls(
            settings.RAZORPAY_API_URL,
            settings.RAZORPAY_KEY_ID,
            settings.RAZORPAY_KEY_SECRET,
            timeout=settings.HTTP_TIMEOUT_SECONDS,
        )

    def create_order(
        self,
        amount_paise: int,
        currency: str,
        receipt: str,
        notes: Optional[dict[str, str]] = None,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {"amount": amount_paise, "currency": currency, "receipt": receipt}
        if notes:
            body["notes"] = notes
        try:
            with httpx.Client(
                base_url=self.base_url,
                auth=(self.key_id, self.key_secret),
                timeout=self.timeout,
                transport=self.transport,
            ) as client:
                response = client.post("/orders", json=body)
        except httpx.HTTPError as e:
            logger.error(f"Razorpay order creation failed: {e}")
            raise PaymentGatewayError(f"Payment gateway error: {e}")

        if response.status_code >= 400:
            description = _error_description(response)
            logger.error(
                "Razorpay rejected order creation",
                extra={'extra_fields': {'status_code': response.status_code, 'receipt': receipt}},
            )
            raise PaymentGatewayError(f"Payment gateway error: {description}", {"status_code": response.status_code})
        return response.json()


def _error_description(response: httpx.Response) -> str:
    try:
        error = response.json().get("error") or {}
    except (ValueError, AttributeError):
        return response.reason_phrase or "Unknown error"
    return error.get("description") or error.get("reason") or "Unknown error"
