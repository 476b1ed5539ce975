"""
Order status state machine.

Every path that writes ``order_status`` (carrier webhook, admin controller,
fulfilment) goes through :func:`apply_status_transition`, so the transition
table and the "set a shipment timestamp only once" rule live in one place.
"""
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import DateTime, func, literal, update
from sqlalchemy.orm import Session

from app.domain.models import Order, OrderStatus, utcnow
from .errors import ConcurrentUpdateError, InvalidTransitionError, OrderValidationError

TERMINAL_STATUSES = frozenset({
    OrderStatus.RETURNED,
    OrderStatus.CANCELLED,
    OrderStatus.LOST,
    OrderStatus.DAMAGED,
})

_FAILURES = {OrderStatus.LOST, OrderStatus.DAMAGED}

VALID_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PROCESSING: frozenset({
        OrderStatus.READY_TO_SHIP, OrderStatus.SHIPPED, OrderStatus.OUT_FOR_DELIVERY,
        OrderStatus.DELIVERED, OrderStatus.CANCELLED, *_FAILURES,
    }),
    OrderStatus.READY_TO_SHIP: frozenset({
        OrderStatus.SHIPPED, OrderStatus.OUT_FOR_DELIVERY, OrderStatus.DELIVERED,
        OrderStatus.CANCELLED, *_FAILURES,
    }),
    OrderStatus.SHIPPED: frozenset({
        OrderStatus.OUT_FOR_DELIVERY, OrderStatus.DELIVERED,
        OrderStatus.RETURN_IN_TRANSIT, OrderStatus.RETURNED, *_FAILURES,
    }),
    # A failed delivery attempt goes back into transit
    OrderStatus.OUT_FOR_DELIVERY: frozenset({
        OrderStatus.SHIPPED, OrderStatus.DELIVERED,
        OrderStatus.RETURN_IN_TRANSIT, OrderStatus.RETURNED, *_FAILURES,
    }),
    OrderStatus.DELIVERED: frozenset({OrderStatus.RETURN_IN_TRANSIT, OrderStatus.RETURNED}),
    OrderStatus.RETURN_IN_TRANSIT: frozenset({OrderStatus.RETURNED, *_FAILURES}),
    OrderStatus.RETURNED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
    OrderStatus.LOST: frozenset(),
    OrderStatus.DAMAGED: frozenset(),
}

# Status -> timestamp column stamped the first time the order reaches it
STATUS_TIMESTAMPS: dict[OrderStatus, str] = {
    OrderStatus.SHIPPED: "shipped_at",
    OrderStatus.DELIVERED: "delivered_at",
}


def parse_status(value: Any) -> OrderStatus:
    try:
        return OrderStatus(value)
    except ValueError:
        raise OrderValidationError(f"Unknown order status: {value!r}", {"order_status": value})


def is_valid_transition(from_status: Any, to_status: Any) -> bool:
    """True when ``to_status`` is reachable from ``from_status`` (or equal to it)."""
    try:
        source = OrderStatus(from_status)
        target = OrderStatus(to_status)
    except ValueError:
        return False
    if source == target:
        return True
    return target in VALID_TRANSITIONS[source]


def fill_if_null(column: str, value: Any):
    """SET expression that keeps an existing value and only fills a NULL column."""
    if isinstance(value, datetime):
        value = literal(value, DateTime())
    return func.coalesce(getattr(Order, column), value)


def apply_status_transition(
    db: Session,
    order: Order,
    new_status: Optional[OrderStatus],
    values: Optional[dict[str, Any]] = None,
    when: Optional[datetime] = None,
) -> Order:
    """
    Write a status change plus any extra column values in a single UPDATE.

    With ``new_status`` of None only ``values`` and ``updated_at`` are written.
    Shipment timestamps are filled with ``when`` only if they are still NULL,
    unless the caller supplies an explicit value for that column. The UPDATE is
    guarded on the status that was read, so a concurrent writer makes it fail
    with ConcurrentUpdateError instead of silently interleaving.
    """
    when = when or utcnow()
    current_status = order.order_status
    stmt_values = dict(values or {})
    stmt_values["updated_at"] = when

    if new_status is not None:
        new_status = OrderStatus(new_status)
        if not is_valid_transition(current_status, new_status):
            raise InvalidTransitionError(current_status, new_status.value)
        stmt_values["order_status"] = new_status.value
        column = STATUS_TIMESTAMPS.get(new_status)
        if column and column not in stmt_values:
            stmt_values[column] = fill_if_null(column, when)

    stmt = (
        update(Order)
        .where(Order.id == order.id, Order.order_status == current_status)
        .values(**stmt_values)
        .execution_options(synchronize_session=False)
    )
    result = db.execute(stmt)
    if result.rowcount == 0:
        db.rollback()
        raise ConcurrentUpdateError(order.id)
    db.commit()
    db.refresh(order)
    return order
