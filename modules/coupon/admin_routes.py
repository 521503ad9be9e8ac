"""
Coupon Module - Admin Routes
===============================
CRUD for coupons.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from config.database import get_db
from common.responses import ok
from modules.auth.deps import require_admin
from modules.coupon.service import coupon_service

router = APIRouter(prefix="/api/v1/admin/coupons", tags=["coupon-admin"])


class CouponCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=50)
    discount: Decimal = Field(..., ge=0)
    min_amount: Decimal = Field(0, ge=0)
    max_amount: Decimal = Field(..., ge=0)
    expiry: datetime
    is_active: bool = True


class CouponUpdate(BaseModel):
    code: Optional[str] = Field(None, min_length=1, max_length=50)
    discount: Optional[Decimal] = Field(None, ge=0)
    min_amount: Optional[Decimal] = Field(None, ge=0)
    max_amount: Optional[Decimal] = Field(None, ge=0)
    expiry: Optional[datetime] = None
    is_active: Optional[bool] = None


@router.get("")
async def list_coupons(
    db: Session = Depends(get_db),
    admin=Depends(require_admin),
):
    coupons = coupon_service.list_coupons(db)
    return ok([coupon_service.to_dict(c) for c in coupons], count=len(coupons))


@router.get("/{coupon_id}")
async def get_coupon(
    coupon_id: int,
    db: Session = Depends(get_db),
    admin=Depends(require_admin),
):
    return ok(coupon_service.to_dict(coupon_service.get_coupon(db, coupon_id)))


@router.post("", status_code=201)
async def create_coupon(
    body: CouponCreate,
    db: Session = Depends(get_db),
    admin=Depends(require_admin),
):
    coupon = coupon_service.create_coupon(db, body.model_dump())
    db.commit()
    return ok(coupon_service.to_dict(coupon))


@router.put("/{coupon_id}")
async def update_coupon(
    coupon_id: int,
    body: CouponUpdate,
    db: Session = Depends(get_db),
    admin=Depends(require_admin),
):
    coupon = coupon_service.update_coupon(db, coupon_id, body.model_dump(exclude_unset=True))
    db.commit()
    return ok(coupon_service.to_dict(coupon))


@router.delete("/{coupon_id}")
async def delete_coupon(
    coupon_id: int,
    db: Session = Depends(get_db),
    admin=Depends(require_admin),
):
    coupon_service.delete_coupon(db, coupon_id)
    db.commit()
    return ok({})
