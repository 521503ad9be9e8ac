from datetime import timedelta
from decimal import Decimal

import pytest

from common.exceptions import (
    BelowMinimumError, ConflictError, DuplicateError, ExpiredCouponError, InvalidCouponError,
)
from common.helpers import now_utc
from modules.cart.service import cart_service
from modules.coupon.models import Coupon
from modules.coupon.service import apply_discount, compute_discount, coupon_service
from modules.order.service import order_service

from conftest import SHIPPING, principal_for


def test_discount_is_capped_by_max_amount():
    coupon = Coupon(discount=Decimal("20"), max_amount=Decimal("15"))
    assert compute_discount(coupon) == Decimal("15.00")


def test_discount_below_cap_applies_in_full():
    coupon = Coupon(discount=Decimal("5"), max_amount=Decimal("15"))
    assert compute_discount(coupon) == Decimal("5.00")


def test_apply_discount_can_go_negative():
    coupon = Coupon(discount=Decimal("30"), max_amount=Decimal("30"))
    assert apply_discount(Decimal("10"), coupon) == Decimal("-20.00")


def test_validate_and_preview(db, make_coupon):
    make_coupon(code="SAVE20", discount="20", max_amount="15", min_amount="50")

    preview = coupon_service.preview(db, "SAVE20", Decimal("100"))
    assert preview["discount"] == Decimal("15.00")
    assert preview["new_total"] == Decimal("85.00")


def test_code_lookup_is_case_insensitive(db, make_coupon):
    make_coupon(code="SAVE20")
    assert coupon_service.validate(db, "  save20 ", Decimal("100")).code == "SAVE20"


def test_below_minimum(db, make_coupon):
    make_coupon(min_amount="50")
    with pytest.raises(BelowMinimumError) as exc:
        coupon_service.validate(db, "SAVE20", Decimal("49.99"))
    assert exc.value.min_amount == Decimal("50.00")


def test_minimum_is_inclusive(db, make_coupon):
    make_coupon(min_amount="50")
    assert coupon_service.validate(db, "SAVE20", Decimal("50.00"))


def test_expired(db, make_coupon):
    make_coupon(expires_in=timedelta(days=-1))
    with pytest.raises(ExpiredCouponError):
        coupon_service.validate(db, "SAVE20", Decimal("100"))


def test_expiry_boundary_counts_as_expired(db, make_coupon):
    coupon = make_coupon()
    with pytest.raises(ExpiredCouponError):
        coupon_service.validate(db, "SAVE20", Decimal("100"), now=coupon.expiry)


def test_inactive(db, make_coupon):
    make_coupon(is_active=False)
    with pytest.raises(InvalidCouponError):
        coupon_service.validate(db, "SAVE20", Decimal("100"))


def test_unknown_code(db):
    with pytest.raises(InvalidCouponError):
        coupon_service.validate(db, "NOPE")


def test_create_normalizes_and_rejects_duplicates(db):
    data = {
        "code": "welcome",
        "discount": Decimal("10"),
        "max_amount": Decimal("10"),
        "min_amount": Decimal("0"),
        "expiry": now_utc() + timedelta(days=30),
    }
    coupon = coupon_service.create_coupon(db, data)
    db.commit()
    assert coupon.code == "WELCOME"

    with pytest.raises(DuplicateError):
        coupon_service.create_coupon(db, dict(data, code="WELCOME"))


def _order_with_coupon(db, user, make_product, code):
    product = make_product(price="100.00", stock=5)
    me = principal_for(user)
    cart_service.add_line(db, me, product.id, 1)
    order = order_service.checkout(db, me, SHIPPING, coupon_code=code)
    db.commit()
    return order


def test_referenced_coupon_is_locked(db, user, make_product, make_coupon):
    coupon = make_coupon()
    _order_with_coupon(db, user, make_product, "SAVE20")

    with pytest.raises(ConflictError):
        coupon_service.update_coupon(db, coupon.id, {"discount": Decimal("50")})
    with pytest.raises(ConflictError):
        coupon_service.delete_coupon(db, coupon.id)

    updated = coupon_service.update_coupon(db, coupon.id, {"is_active": False})
    db.commit()
    assert updated.is_active is False


def test_unreferenced_coupon_can_change_and_be_deleted(db, make_coupon):
    coupon = make_coupon()
    updated = coupon_service.update_coupon(db, coupon.id, {"discount": Decimal("25")})
    assert updated.discount == Decimal("25.00")

    coupon_service.delete_coupon(db, coupon.id)
    db.commit()
    assert coupon_service.find_by_code(db, "SAVE20") is None
