"""
Coupon Routes - Customer Facing
==================================
Public validity check for a coupon code.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from config.database import get_db
from common.responses import ok
from modules.coupon.service import coupon_service

router = APIRouter(prefix="/api/v1/coupons", tags=["coupon"])


@router.get("/check/{code}")
async def check_coupon(code: str, db: Session = Depends(get_db)):
    """Active and unexpired? The minimum amount is checked at checkout."""
    coupon = coupon_service.validate(db, code)
    return ok(coupon_service.to_dict(coupon))
