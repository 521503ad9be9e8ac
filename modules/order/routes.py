"""
Order Routes
==============
Checkout, my orders, order detail, payment confirmation, coupon preview.
"""

from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from config.database import get_db
from common.responses import ok
from modules.auth.deps import require_login
from modules.coupon.service import coupon_service
from modules.order.service import order_service

router = APIRouter(prefix="/api/v1/orders", tags=["order"])


# ==========================================
# Schemas
# ==========================================

class ShippingInfo(BaseModel):
    address: str = Field(..., min_length=1, max_length=500)
    city: str = Field(..., min_length=1, max_length=100)
    postal_code: str = Field(..., min_length=1, max_length=20)
    country: str = Field(..., min_length=1, max_length=100)
    phone: Optional[str] = Field(None, max_length=30)


class PaymentInfo(BaseModel):
    id: Optional[str] = Field(None, max_length=200)
    status: Optional[str] = Field(None, max_length=50)


class CheckoutRequest(BaseModel):
    shipping_info: ShippingInfo
    payment_info: Optional[PaymentInfo] = None
    items_price: Optional[Decimal] = Field(None, ge=0)
    tax_price: Decimal = Field(Decimal("0"), ge=0)
    shipping_price: Decimal = Field(Decimal("0"), ge=0)
    coupon: Optional[str] = Field(None, max_length=50)


class PayRequest(BaseModel):
    id: str = Field(..., min_length=1, max_length=200)
    status: str = Field(..., min_length=1, max_length=50)


class ApplyCouponRequest(BaseModel):
    coupon_code: str = Field(..., min_length=1, max_length=50)
    order_total: Decimal


# ==========================================
# ✅ Checkout
# ==========================================

@router.post("", status_code=201)
async def create_order(
    body: CheckoutRequest,
    db: Session = Depends(get_db),
    me=Depends(require_login),
):
    order = order_service.checkout(
        db,
        me,
        shipping=body.shipping_info.model_dump(),
        tax_price=body.tax_price,
        shipping_price=body.shipping_price,
        items_price=body.items_price,
        coupon_code=body.coupon,
        payment=body.payment_info.model_dump() if body.payment_info else None,
    )
    db.commit()
    return ok(order_service.to_dict(order))


@router.get("/me")
async def my_orders(
    db: Session = Depends(get_db),
    me=Depends(require_login),
):
    orders = order_service.list_user_orders(db, me)
    return ok([order_service.to_dict(o) for o in orders], count=len(orders))


@router.post("/apply-coupon")
async def apply_coupon(
    body: ApplyCouponRequest,
    db: Session = Depends(get_db),
    me=Depends(require_login),
):
    """Preview a coupon's effect on a total without placing an order."""
    return ok(coupon_service.preview(db, body.coupon_code, body.order_total))


@router.get("/{order_id}")
async def get_order(
    order_id: int,
    db: Session = Depends(get_db),
    me=Depends(require_login),
):
    order = order_service.get_order(db, me, order_id)
    return ok(order_service.to_dict(order))


@router.put("/{order_id}/pay")
async def pay_order(
    order_id: int,
    body: PayRequest,
    db: Session = Depends(get_db),
    me=Depends(require_login),
):
    order = order_service.mark_paid(db, me, order_id, body.id, body.status)
    db.commit()
    return ok(order_service.to_dict(order))
