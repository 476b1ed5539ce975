from typing import Any, Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from shared.core import get_logger
from app.domain.models import ShipmentLog

logger = get_logger(__name__)


def record_shipment_log(
    db: Session,
    order_id: str,
    action: str,
    status: str,
    request_payload: Optional[Any] = None,
    response_payload: Optional[Any] = None,
    error_message: Optional[str] = None,
) -> bool:
    """Append a carrier audit row. Best-effort: a failed write is logged, never raised."""
    try:
        db.add(ShipmentLog(
            order_id=order_id,
            action=action,
            status=status,
            request_payload=request_payload,
            response_payload=response_payload,
            error_message=error_message,
        ))
        db.commit()
        return True
    except SQLAlchemyError:
        db.rollback()
        logger.warning(
            f"Could not write shipment log for order {order_id}",
            exc_info=True,
            extra={'extra_fields': {'action': action, 'status': status}},
        )
        return False
