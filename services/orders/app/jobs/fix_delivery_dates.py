"""
List delivered orders that have no delivery date and, with ``--apply``,
backfill them. Run from ``services/orders``:

    python -m app.jobs.fix_delivery_dates [--apply]
"""
import argparse

from shared.core import setup_logging
from app.core_settings import get_settings
from app.infrastructure.db import SessionLocal
from app.application.backfill import DeliveryDateBackfill


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Backfill missing delivered_at timestamps")
    parser.add_argument("--apply", action="store_true", help="repair the orders instead of only listing them")
    args = parser.parse_args(argv)

    settings = get_settings()
    setup_logging(service_name="orders-backfill", level=settings.LOG_LEVEL, environment=settings.ENVIRONMENT)

    db = SessionLocal()
    try:
        backfill = DeliveryDateBackfill(db)
        orders = backfill.find_missing()
        print(f"{len(orders)} delivered orders without a delivery date")
        for o in orders:
            print(f"  {o.order_number}  created={o.created_at:%Y-%m-%d %H:%M}  updated={o.updated_at or '-'}")
        if args.apply and orders:
            result = backfill.fix_all()
            print(f"{result.message} (of {result.total})")
            return 0 if result.fixed == result.total else 1
    finally:
        db.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
