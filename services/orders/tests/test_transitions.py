import pytest

from app.application.errors import (
    ConcurrentUpdateError,
    InvalidTransitionError,
    OrderValidationError,
)
from app.application.transitions import (
    TERMINAL_STATUSES,
    VALID_TRANSITIONS,
    apply_status_transition,
    is_valid_transition,
    parse_status,
)
from app.domain.models import Order, OrderStatus
from datetime import datetime


@pytest.mark.parametrize("status", list(OrderStatus))
def test_staying_in_place_is_always_valid(status):
    assert is_valid_transition(status, status)


@pytest.mark.parametrize("terminal", sorted(TERMINAL_STATUSES))
def test_terminal_statuses_have_no_exits(terminal):
    for target in OrderStatus:
        if target != terminal:
            assert not is_valid_transition(terminal, target)


def test_every_status_has_a_row():
    assert set(VALID_TRANSITIONS) == set(OrderStatus)


def test_forward_and_backward_moves():
    assert is_valid_transition("processing", "shipped")
    assert is_valid_transition("shipped", "delivered")
    assert is_valid_transition("out_for_delivery", "shipped")
    assert is_valid_transition("delivered", "returned")
    assert not is_valid_transition("delivered", "shipped")
    assert not is_valid_transition("delivered", "cancelled")
    assert not is_valid_transition("shipped", "processing")


def test_unknown_values_are_never_valid():
    assert not is_valid_transition("processing", "teleported")
    assert not is_valid_transition("pending", "shipped")


def test_parse_status_rejects_unknown_values():
    assert parse_status("shipped") is OrderStatus.SHIPPED
    with pytest.raises(OrderValidationError):
        parse_status("teleported")


def test_apply_stamps_shipped_at_once(db, make_order):
    order = make_order()
    first = datetime(2024, 3, 2, 9, 0, 0)
    apply_status_transition(db, order, OrderStatus.SHIPPED, when=first)
    assert order.order_status == "shipped"
    assert order.shipped_at == first

    apply_status_transition(db, order, OrderStatus.SHIPPED, when=datetime(2024, 3, 5, 9, 0, 0))
    assert order.shipped_at == first
    assert order.updated_at == datetime(2024, 3, 5, 9, 0, 0)


def test_apply_keeps_explicit_timestamp(db, make_order):
    order = make_order()
    explicit = datetime(2024, 2, 28, 18, 30, 0)
    apply_status_transition(db, order, OrderStatus.DELIVERED, {"delivered_at": explicit})
    assert order.delivered_at == explicit


def test_apply_rejects_invalid_transition(db, make_order):
    order = make_order(order_status="delivered")
    with pytest.raises(InvalidTransitionError) as exc:
        apply_status_transition(db, order, OrderStatus.SHIPPED)
    assert exc.value.status_code == 409
    db.refresh(order)
    assert order.order_status == "delivered"


def test_apply_detects_concurrent_status_change(db, make_order):
    order = make_order()
    # Another writer moves the row after this session read it
    db.query(Order).filter(Order.id == order.id).update(
        {"order_status": "cancelled"}, synchronize_session=False
    )
    db.commit()
    with pytest.raises(ConcurrentUpdateError):
        apply_status_transition(db, order, OrderStatus.SHIPPED)
