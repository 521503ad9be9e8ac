"""
Order Module - Admin Routes
==============================
Order management for admin: list, status transitions, sales stats.
"""

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from config.database import get_db
from common.responses import ok
from modules.auth.deps import require_admin
from modules.order.service import order_service

router = APIRouter(prefix="/api/v1/admin", tags=["order-admin"])


class StatusUpdate(BaseModel):
    status: str = Field(..., min_length=1, max_length=20)


@router.get("/orders")
async def admin_orders(
    status: str = Query(None),
    db: Session = Depends(get_db),
    admin=Depends(require_admin),
):
    orders = order_service.list_all_orders(db, admin, status=status)
    return ok([order_service.to_dict(o) for o in orders], count=len(orders))


@router.put("/orders/{order_id}")
async def update_order_status(
    order_id: int,
    body: StatusUpdate,
    db: Session = Depends(get_db),
    admin=Depends(require_admin),
):
    order = order_service.update_status(db, admin, order_id, body.status)
    db.commit()
    return ok(order_service.to_dict(order))


@router.put("/orders/{order_id}/deliver")
async def deliver_order(
    order_id: int,
    db: Session = Depends(get_db),
    admin=Depends(require_admin),
):
    order = order_service.mark_delivered(db, admin, order_id)
    db.commit()
    return ok(order_service.to_dict(order))


@router.get("/sales")
async def sales_stats(
    db: Session = Depends(get_db),
    admin=Depends(require_admin),
):
    return ok(order_service.sales_stats(db, admin))
