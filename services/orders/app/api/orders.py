from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from app.infrastructure.db import get_db
from app.application.service import OrderService
from app.application.schemas import OrderCreate, OrderRead

router = APIRouter(prefix="/api/orders", tags=["orders"])

@router.post("", response_model=OrderRead, status_code=201)
def create_order(payload: OrderCreate, db: Session = Depends(get_db)):
    return OrderService(db).create(payload)

@router.get("/{order_id}", response_model=OrderRead)
def get_order(order_id: str, db: Session = Depends(get_db)):
    """Get a specific order."""
    return OrderService(db).get(order_id)
