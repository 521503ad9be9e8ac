"""
Coupon Service
================
Validate, price, and administer coupons.

Validation chain:
  1. Code exists (case-normalized) & is active
  2. Expiry strictly in the future
  3. Order total >= min_amount (skipped when no total is given)

Discount is flat: min(discount, max_amount). It is subtracted as-is, so a
discount larger than the order drives the total negative.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional, Dict, Any, List

from sqlalchemy.orm import Session

from common.exceptions import (
    NotFoundError, ValidationError, ConflictError, DuplicateError,
    InvalidCouponError, ExpiredCouponError, BelowMinimumError,
)
from common.helpers import now_utc, as_utc, to_money
from modules.coupon.models import Coupon
from modules.order.models import Order

logger = logging.getLogger("storefront.coupon")

# Fields that may not change once an order has used the coupon
_LOCKED_FIELDS = ("code", "discount", "min_amount", "max_amount")


def normalize_code(code: str) -> str:
    return (code or "").strip().upper()


def compute_discount(coupon: Coupon) -> Decimal:
    """Flat discount granted by a coupon, capped at max_amount."""
    return to_money(min(to_money(coupon.discount), to_money(coupon.max_amount)))


def apply_discount(order_total, coupon: Coupon) -> Decimal:
    """order_total minus the coupon's discount. Not clamped at zero."""
    return to_money(order_total) - compute_discount(coupon)


class CouponService:

    # ------------------------------------------
    # Validate coupon
    # ------------------------------------------

    def find_by_code(self, db: Session, code: str) -> Optional[Coupon]:
        return db.query(Coupon).filter(Coupon.code == normalize_code(code)).first()

    def validate(
        self,
        db: Session,
        code: str,
        order_total=None,
        now: Optional[datetime] = None,
    ) -> Coupon:
        """
        Run the validation chain and return the coupon.
        Raises InvalidCouponError / ExpiredCouponError / BelowMinimumError.
        """
        coupon = self.find_by_code(db, code)
        if not coupon or not coupon.is_active:
            raise InvalidCouponError()

        now = as_utc(now) or now_utc()
        if as_utc(coupon.expiry) <= now:
            raise ExpiredCouponError()

        if order_total is not None and to_money(order_total) < to_money(coupon.min_amount):
            raise BelowMinimumError(to_money(coupon.min_amount))

        return coupon

    def preview(self, db: Session, code: str, order_total) -> Dict[str, Any]:
        """Validate against a total and report the resulting discount."""
        coupon = self.validate(db, code, order_total)
        discount = compute_discount(coupon)
        return {
            "coupon": coupon.code,
            "discount": discount,
            "new_total": apply_discount(order_total, coupon),
        }

    # ------------------------------------------
    # Admin CRUD
    # ------------------------------------------

    def list_coupons(self, db: Session) -> List[Coupon]:
        return db.query(Coupon).order_by(Coupon.created_at.desc(), Coupon.id.desc()).all()

    def get_coupon(self, db: Session, coupon_id: int) -> Coupon:
        coupon = db.query(Coupon).filter(Coupon.id == coupon_id).first()
        if not coupon:
            raise NotFoundError(f"Coupon not found with id of {coupon_id}")
        return coupon

    def create_coupon(self, db: Session, data: Dict[str, Any]) -> Coupon:
        code = normalize_code(data.get("code"))
        if not code:
            raise ValidationError("Please enter coupon code")
        if self.find_by_code(db, code):
            raise DuplicateError(f"Coupon code {code} already exists")

        coupon = Coupon(
            code=code,
            discount=to_money(data["discount"]),
            min_amount=to_money(data.get("min_amount", 0)),
            max_amount=to_money(data["max_amount"]),
            expiry=data["expiry"],
            is_active=data.get("is_active", True),
        )
        self._check_amounts(coupon)
        db.add(coupon)
        db.flush()
        logger.info(f"Coupon {coupon.code} created (discount={coupon.discount}, cap={coupon.max_amount})")
        return coupon

    def update_coupon(self, db: Session, coupon_id: int, data: Dict[str, Any]) -> Coupon:
        """
        Update a coupon. Code and monetary fields are frozen once any order
        references the coupon; expiry and is_active stay editable.
        """
        coupon = self.get_coupon(db, coupon_id)

        changes = {k: v for k, v in data.items() if v is not None}
        if "code" in changes:
            changes["code"] = normalize_code(changes["code"])
        for key in ("discount", "min_amount", "max_amount"):
            if key in changes:
                changes[key] = to_money(changes[key])

        locked = [
            k for k in _LOCKED_FIELDS
            if k in changes and changes[k] != getattr(coupon, k)
        ]
        if locked and self.is_referenced(db, coupon.id):
            raise ConflictError(f"Coupon {coupon.code} is used by placed orders; {', '.join(locked)} cannot change")

        if "code" in changes and changes["code"] != coupon.code:
            if self.find_by_code(db, changes["code"]):
                raise DuplicateError(f"Coupon code {changes['code']} already exists")

        for key, value in changes.items():
            setattr(coupon, key, value)
        self._check_amounts(coupon)
        db.flush()
        return coupon

    def delete_coupon(self, db: Session, coupon_id: int):
        """Delete an unused coupon. Coupons referenced by orders can only be deactivated."""
        coupon = self.get_coupon(db, coupon_id)
        if self.is_referenced(db, coupon.id):
            raise ConflictError(f"Coupon {coupon.code} is used by placed orders; deactivate it instead")
        db.delete(coupon)
        db.flush()
        logger.info(f"Coupon {coupon.code} deleted")

    def is_referenced(self, db: Session, coupon_id: int) -> bool:
        return db.query(Order.id).filter(Order.coupon_id == coupon_id).first() is not None

    # ------------------------------------------
    # Serialization
    # ------------------------------------------

    def to_dict(self, coupon: Coupon) -> Dict[str, Any]:
        return {
            "id": coupon.id,
            "code": coupon.code,
            "discount": coupon.discount,
            "min_amount": coupon.min_amount,
            "max_amount": coupon.max_amount,
            "expiry": as_utc(coupon.expiry),
            "is_active": coupon.is_active,
            "created_at": as_utc(coupon.created_at),
        }

    def _check_amounts(self, coupon: Coupon):
        for key in ("discount", "min_amount", "max_amount"):
            if to_money(getattr(coupon, key)) < 0:
                raise ValidationError(f"{key} cannot be negative")


# Singleton
coupon_service = CouponService()
