"""
Delivery-date backfill.

Repairs orders that are ``delivered`` but have no ``delivered_at``, left
behind by hand edits or by orders that predate automatic stamping. A
missing ``shipped_at`` is filled with the same value: an imprecise ship
date is preferred over none.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from shared.core import get_logger
from app.domain.models import Order, OrderStatus, parse_timestamp, utcnow
from .errors import AlreadyRecordedError, ConcurrentUpdateError, OrderNotFoundError, OrderValidationError
from .transitions import fill_if_null

logger = get_logger(__name__)


@dataclass
class BackfillResult:
    fixed: int
    total: int

    @property
    def message(self) -> str:
        if self.total == 0:
            return "No orders need fixing"
        return f"Fixed {self.fixed} orders"


class DeliveryDateBackfill:
    def __init__(self, db: Session):
        self.db = db

    def _missing_query(self):
        return self.db.query(Order).filter(
            Order.order_status == OrderStatus.DELIVERED.value,
            Order.delivered_at.is_(None),
        )

    def find_missing(self) -> list[Order]:
        """Read-only: delivered orders without a delivery date, newest first."""
        orders = self._missing_query().order_by(Order.created_at.desc()).all()
        logger.info(f"Found {len(orders)} orders with missing delivery dates")
        return orders

    def _repair(self, order_id: str, delivered_at: datetime) -> bool:
        stmt = (
            update(Order)
            .where(
                Order.id == order_id,
                Order.order_status == OrderStatus.DELIVERED.value,
                Order.delivered_at.is_(None),
            )
            .values(
                delivered_at=delivered_at,
                shipped_at=fill_if_null("shipped_at", delivered_at),
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        result = self.db.execute(stmt)
        self.db.commit()
        return result.rowcount == 1

    def fix_single(self, order_id: Optional[str], delivery_date: Optional[datetime | str] = None) -> Order:
        """Stamp one order with ``delivery_date``, or the current time when omitted."""
        if not order_id:
            raise OrderValidationError("orderId is required")
        order = self.db.get(Order, order_id)
        if order is None:
            raise OrderNotFoundError(details={"order_id": order_id})
        if order.order_status != OrderStatus.DELIVERED.value:
            raise OrderValidationError(
                f"Order {order.order_number} is {order.order_status}, not delivered",
                {"order_id": order_id},
            )
        if order.delivered_at is not None:
            raise AlreadyRecordedError(
                f"Order {order.order_number} already has a delivery date",
                {"order_id": order_id},
            )

        delivered_at = parse_timestamp(delivery_date) if delivery_date else utcnow()
        if not self._repair(order_id, delivered_at):
            raise ConcurrentUpdateError(order_id)
        self.db.refresh(order)
        logger.info(f"Fixed delivery date for order {order.order_number}")
        return order

    def fix_all(self) -> BackfillResult:
        """
        Repair every affected order, one commit per row.

        Each order gets its own ``updated_at`` (else ``created_at``) as the
        delivery date, the closest thing to a historical record available.
        Row failures are logged and skipped; the result reports the tally.
        """
        rows = self._missing_query().with_entities(Order.id, Order.updated_at, Order.created_at).all()
        fixed = 0
        for order_id, updated_at, created_at in rows:
            try:
                if self._repair(order_id, updated_at or created_at):
                    fixed += 1
            except SQLAlchemyError:
                self.db.rollback()
                logger.error(f"Failed to fix order {order_id}", exc_info=True)

        result = BackfillResult(fixed=fixed, total=len(rows))
        logger.info(
            result.message,
            extra={'extra_fields': {'fixed': result.fixed, 'total': result.total}},
        )
        return result
