import pytest

from app.application.status_mapping import CARRIER_STATUS_MAP, map_carrier_status
from app.domain.models import OrderStatus


@pytest.mark.parametrize("raw,expected", [
    ("PICKUP SCHEDULED", OrderStatus.READY_TO_SHIP),
    ("PICKED UP", OrderStatus.SHIPPED),
    ("IN TRANSIT", OrderStatus.SHIPPED),
    ("OUT FOR DELIVERY", OrderStatus.OUT_FOR_DELIVERY),
    ("DELIVERED", OrderStatus.DELIVERED),
    ("RTO IN TRANSIT", OrderStatus.RETURN_IN_TRANSIT),
    ("RTO DELIVERED", OrderStatus.RETURNED),
    ("CANCELLED", OrderStatus.CANCELLED),
    ("LOST", OrderStatus.LOST),
    ("DAMAGED", OrderStatus.DAMAGED),
])
def test_known_carrier_statuses(raw, expected):
    assert map_carrier_status(raw) == expected


@pytest.mark.parametrize("raw,expected", sorted(CARRIER_STATUS_MAP.items()))
def test_matching_ignores_case_and_whitespace(raw, expected):
    assert map_carrier_status(raw.lower()) == expected
    assert map_carrier_status(raw.upper()) == expected
    assert map_carrier_status(f"  {raw.title()} ") == expected


@pytest.mark.parametrize("raw", ["SHIPMENT BOOKED", "UNDELIVERED", "", None])
def test_unknown_status_falls_back_to_processing(raw):
    assert map_carrier_status(raw) == OrderStatus.PROCESSING


def test_every_mapped_value_is_an_order_status():
    assert all(isinstance(status, OrderStatus) for status in CARRIER_STATUS_MAP.values())
