"""Carrier (Shiprocket) status vocabulary -> internal order status."""
from typing import Optional

from app.domain.models import OrderStatus

CARRIER_STATUS_MAP: dict[str, OrderStatus] = {
    "PICKUP SCHEDULED": OrderStatus.READY_TO_SHIP,
    "PICKED UP": OrderStatus.SHIPPED,
    "IN TRANSIT": OrderStatus.SHIPPED,
    "OUT FOR DELIVERY": OrderStatus.OUT_FOR_DELIVERY,
    "DELIVERED": OrderStatus.DELIVERED,
    "RTO IN TRANSIT": OrderStatus.RETURN_IN_TRANSIT,
    "RTO DELIVERED": OrderStatus.RETURNED,
    "CANCELLED": OrderStatus.CANCELLED,
    "LOST": OrderStatus.LOST,
    "DAMAGED": OrderStatus.DAMAGED,
}


def map_carrier_status(raw: Optional[str]) -> OrderStatus:
    """
    Map a free-text carrier status onto the order status enumeration.

    Matching is case-insensitive. Anything not in the table falls back to
    ``processing`` so an unfamiliar carrier status never blocks an update.
    """
    if not raw:
        return OrderStatus.PROCESSING
    return CARRIER_STATUS_MAP.get(raw.strip().upper(), OrderStatus.PROCESSING)
