from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from typing import Any, Optional

class OrderItemIn(BaseModel):
    product_id: int
    product_name: Optional[str] = None
    sku: Optional[str] = None
    size: Optional[str] = None
    color: Optional[str] = None
    quantity: int = Field(1, ge=1)
    price: float = Field(..., ge=0)

class ShippingAddress(BaseModel):
    first_name: str
    last_name: Optional[str] = None
    phone: str
    email: Optional[str] = None
    address_line1: str
    address_line2: Optional[str] = None
    city: str
    state: str
    postal_code: str
    country: str = "India"

class OrderCreate(BaseModel):
    user_id: Optional[str] = None
    items: list[OrderItemIn]
    shipping_address: ShippingAddress
    shipping_cost: float = 0
    tax: float = 0
    payment_method: str = "razorpay"

class OrderRead(BaseModel):
    id: str
    order_number: str
    user_id: Optional[str] = None
    items: list[dict[str, Any]] = []
    shipping_address: Optional[dict[str, Any]] = None
    subtotal: float
    tax: float
    shipping_cost: float
    total: float
    payment_method: Optional[str] = None
    order_status: str
    payment_status: str
    razorpay_order_id: Optional[str] = None
    razorpay_payment_id: Optional[str] = None
    paid_at: Optional[datetime] = None
    shiprocket_order_id: Optional[str] = None
    shiprocket_shipment_id: Optional[str] = None
    shiprocket_status: Optional[str] = None
    awb_number: Optional[str] = None
    courier_name: Optional[str] = None
    pickup_scheduled_date: Optional[datetime] = None
    expected_delivery_date: Optional[datetime] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    shipped_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class AdminOrderUpdate(BaseModel):
    """``{id, order_status?, ...}``; any other key is a column override."""
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    order_status: Optional[str] = None

    def overrides(self) -> dict[str, Any]:
        return dict(self.model_extra or {})

class OrderEnvelope(BaseModel):
    success: bool = True
    order: OrderRead

# --- carrier webhook -------------------------------------------------------

class ShipmentWebhookPayload(BaseModel):
    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    order_id: Optional[str] = None
    awb: Optional[str] = None
    courier_name: Optional[str] = None
    current_status: Optional[str] = None
    shipment_status: Optional[str] = None
    edd: Optional[str] = None
    scans: list[Any] = []

class ShipmentWebhookResult(BaseModel):
    success: bool = True
    order_id: str
    new_status: str

# --- delivery date backfill ------------------------------------------------

class MissingDeliveryDate(BaseModel):
    id: str
    order_number: str
    order_status: str
    created_at: datetime
    updated_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    shipped_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class MissingDeliveryDatesReport(BaseModel):
    success: bool = True
    count: int
    orders: list[MissingDeliveryDate]

class FixDeliveryDatesRequest(BaseModel):
    action: Optional[str] = None
    orderId: Optional[str] = None
    deliveryDate: Optional[datetime] = None

# --- payments --------------------------------------------------------------

class PaymentIntentCreate(BaseModel):
    amount: Optional[float] = None
    currency: str = "INR"
    receipt: Optional[str] = None
    notes: Optional[dict[str, str]] = None

class PaymentVerification(BaseModel):
    razorpay_order_id: Optional[str] = None
    razorpay_payment_id: Optional[str] = None
    razorpay_signature: Optional[str] = None
    order_id: Optional[str] = None

# --- admin carrier actions -------------------------------------------------

class CarrierActionRequest(BaseModel):
    orderId: Optional[str] = None
    action: str = "create"
