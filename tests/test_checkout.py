import threading
from decimal import Decimal

import pytest

from common.exceptions import (
    BelowMinimumError, EmptyCartError, InsufficientStockError, ValidationError,
)
from modules.cart.service import cart_service
from modules.catalog.models import Product, ProductSize
from modules.catalog.service import catalog_service
from modules.order.models import Order, OrderStatus
from modules.order.service import order_service

from conftest import SHIPPING, principal_for


def _stock(db, product_id):
    db.expire_all()
    return db.query(Product).filter(Product.id == product_id).one().stock


def test_checkout_creates_order_and_deletes_cart(db, user, make_product):
    product = make_product(price="25.00", stock=10)
    me = principal_for(user)
    cart_service.add_line(db, me, product.id, 2)
    db.commit()

    order = order_service.checkout(db, me, SHIPPING, tax_price="5.00", shipping_price="10.00")
    db.commit()

    assert order.items_price == Decimal("50.00")
    assert order.total_price == Decimal("65.00")
    assert order.order_status == OrderStatus.PLACED.value
    assert order.paid_at is None
    assert [(it.name, it.quantity) for it in order.items] == [(product.name, 2)]
    assert cart_service.find_cart(db, user.id) is None
    assert _stock(db, product.id) == 8


def test_checkout_with_coupon(db, user, make_product, make_coupon):
    make_coupon(code="SAVE20", discount="20", max_amount="15", min_amount="50")
    product = make_product(price="100.00", stock=3)
    me = principal_for(user)
    cart_service.add_line(db, me, product.id, 1)

    order = order_service.checkout(db, me, SHIPPING, coupon_code="save20")
    db.commit()

    assert order.discount == Decimal("15.00")
    assert order.total_price == Decimal("85.00")
    assert order.coupon_code == "SAVE20"


def test_coupon_failure_leaves_stock_and_cart_untouched(db, user, make_product, make_coupon):
    make_coupon(min_amount="500")
    product = make_product(price="100.00", stock=3)
    me = principal_for(user)
    cart_service.add_line(db, me, product.id, 2)
    db.commit()

    with pytest.raises(BelowMinimumError):
        order_service.checkout(db, me, SHIPPING, coupon_code="SAVE20")
    db.rollback()

    assert _stock(db, product.id) == 3
    assert cart_service.get_cart(db, me).total_quantity == 2


def test_empty_cart(db, user):
    with pytest.raises(EmptyCartError):
        order_service.checkout(db, principal_for(user), SHIPPING)


def test_items_price_must_match_cart(db, user, make_product):
    product = make_product(price="25.00", stock=10)
    me = principal_for(user)
    cart_service.add_line(db, me, product.id, 2)

    with pytest.raises(ValidationError):
        order_service.checkout(db, me, SHIPPING, items_price="1.00")


def test_lines_are_priced_at_checkout(db, user, make_product):
    product = make_product(price="25.00", stock=10)
    me = principal_for(user)
    cart_service.add_line(db, me, product.id, 1)
    db.commit()

    product.price = Decimal("30.00")
    db.commit()

    order = order_service.checkout(db, me, SHIPPING)
    assert order.items_price == Decimal("30.00")


def test_order_snapshot_survives_product_changes(db, user, make_product):
    product = make_product(name="Hoodie", price="40.00", stock=5)
    me = principal_for(user)
    cart_service.add_line(db, me, product.id, 1)
    order = order_service.checkout(db, me, SHIPPING)
    db.commit()

    product.name = "Hoodie v2"
    product.price = Decimal("55.00")
    db.commit()

    db.expire_all()
    item = order_service.get_order(db, me, order.id).items[0]
    assert item.name == "Hoodie"
    assert item.price == Decimal("40.00")


def test_sized_checkout_decrements_the_size(db, user, make_product):
    product = make_product(stock=0, sizes={"M": 3, "L": 1})
    me = principal_for(user)
    cart_service.add_line(db, me, product.id, 2, size="M")
    order_service.checkout(db, me, SHIPPING)
    db.commit()

    db.expire_all()
    rows = {s.size: s.quantity for s in db.query(ProductSize).filter(ProductSize.product_id == product.id)}
    assert rows == {"M": 1, "L": 1}


def test_stock_drop_after_add_fails_checkout(db, make_user, make_product):
    product = make_product(stock=1)
    first, second = make_user(), make_user()
    cart_service.add_line(db, principal_for(first), product.id, 1)
    cart_service.add_line(db, principal_for(second), product.id, 1)
    db.commit()

    order_service.checkout(db, principal_for(first), SHIPPING)
    db.commit()

    with pytest.raises(InsufficientStockError):
        order_service.checkout(db, principal_for(second), SHIPPING)
    db.rollback()

    assert _stock(db, product.id) == 0
    assert cart_service.get_cart(db, principal_for(second)).total_quantity == 1


def test_concurrent_checkouts_for_last_unit(db, session_factory, make_user, make_product):
    product = make_product(stock=1)
    buyers = [make_user(), make_user()]
    for buyer in buyers:
        cart_service.add_line(db, principal_for(buyer), product.id, 1)
    db.commit()
    principals = [principal_for(b) for b in buyers]
    product_id = product.id
    db.close()

    barrier = threading.Barrier(len(principals))
    outcomes = []

    def attempt(principal):
        session = session_factory()
        try:
            barrier.wait()
            order_service.checkout(session, principal, SHIPPING)
            session.commit()
            outcomes.append("ok")
        except InsufficientStockError:
            session.rollback()
            outcomes.append("out-of-stock")
        finally:
            session.close()

    threads = [threading.Thread(target=attempt, args=(p,)) for p in principals]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=60)

    assert sorted(outcomes) == ["ok", "out-of-stock"]
    assert _stock(db, product_id) == 0


def test_concurrent_checkouts_same_cart(db, session_factory, monkeypatch, user, make_product):
    product = make_product(stock=5)
    me = principal_for(user)
    cart_service.add_line(db, me, product.id, 1)
    db.commit()
    product_id, user_id = product.id, user.id
    db.close()

    # Both requests have loaded the cart before either one writes
    barrier = threading.Barrier(2)
    decrement = catalog_service.decrement_stock

    def decrement_after_both_loaded(session, product, quantity, size):
        barrier.wait(timeout=30)
        return decrement(session, product, quantity, size)

    monkeypatch.setattr(catalog_service, "decrement_stock", decrement_after_both_loaded)
    outcomes = []

    def attempt():
        session = session_factory()
        try:
            order_service.checkout(session, me, SHIPPING)
            session.commit()
            outcomes.append("ok")
        except EmptyCartError:
            session.rollback()
            outcomes.append("empty-cart")
        finally:
            session.close()

    threads = [threading.Thread(target=attempt) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=60)

    assert sorted(outcomes) == ["empty-cart", "ok"]
    assert db.query(Order).filter(Order.user_id == user_id).count() == 1
    assert _stock(db, product_id) == 4
    assert cart_service.find_cart(db, user_id) is None
