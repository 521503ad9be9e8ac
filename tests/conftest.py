"""
Shared fixtures: a fresh SQLite file per test, a TestClient bound to it,
and small factories for users, products, coupons and delivered orders.
"""

import itertools
import os
import tempfile
from datetime import timedelta
from decimal import Decimal

_TMP_DIR = tempfile.mkdtemp(prefix="storefront-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP_DIR, 'app.db')}"
os.environ["SECRET_KEY"] = "test-secret-key"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from config.database import Base, build_engine, get_db  # noqa: E402
from common.helpers import now_utc  # noqa: E402
from common.security import create_token  # noqa: E402
from main import app  # noqa: E402
from modules.auth.policy import Principal  # noqa: E402
from modules.catalog.models import Product, ProductSize  # noqa: E402
from modules.coupon.models import Coupon  # noqa: E402
from modules.order.models import Order, OrderItem, OrderStatus  # noqa: E402
from modules.user.models import User  # noqa: E402


@pytest.fixture
def engine(tmp_path):
    eng = build_engine(f"sqlite:///{tmp_path / 'storefront.db'}")
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def client(session_factory):
    def _get_db():
        session = session_factory()
        try:
            yield session
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


# ==========================================
# Factories
# ==========================================

@pytest.fixture
def make_user(db):
    counter = itertools.count(1)

    def _make(role="user", name=None):
        n = next(counter)
        user = User(name=name or f"User {n}", email=f"user{n}@example.com", role=role)
        db.add(user)
        db.commit()
        return user

    return _make


@pytest.fixture
def user(make_user):
    return make_user()


@pytest.fixture
def admin(make_user):
    return make_user(role="admin", name="Admin")


def principal_for(user: User) -> Principal:
    return Principal(id=user.id, role=user.role)


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_token({'sub': str(user.id)})}"}


@pytest.fixture
def make_product(db):
    def _make(name="T-Shirt", price="25.00", stock=10, sizes=None, **extra):
        product = Product(name=name, price=Decimal(price), stock=stock, **extra)
        for size, quantity in (sizes or {}).items():
            product.sizes.append(ProductSize(size=size, quantity=quantity))
        db.add(product)
        db.commit()
        return product

    return _make


@pytest.fixture
def make_coupon(db):
    def _make(code="SAVE20", discount="20", max_amount="15", min_amount="50", expires_in=timedelta(days=7), **extra):
        coupon = Coupon(
            code=code,
            discount=Decimal(discount),
            max_amount=Decimal(max_amount),
            min_amount=Decimal(min_amount),
            expiry=now_utc() + expires_in,
            **extra,
        )
        db.add(coupon)
        db.commit()
        return coupon

    return _make


@pytest.fixture
def make_delivered_order(db):
    """A delivered order for user containing product, as the purchase gate expects."""
    def _make(user, product, status=OrderStatus.DELIVERED.value):
        order = Order(
            user_id=user.id,
            shipping_address="1 Main St",
            shipping_city="Springfield",
            shipping_postal_code="12345",
            shipping_country="US",
            items_price=product.price,
            total_price=product.price,
            order_status=status,
            delivered_at=now_utc() if status == OrderStatus.DELIVERED.value else None,
        )
        order.items = [OrderItem(product_id=product.id, name=product.name, price=product.price, quantity=1)]
        db.add(order)
        db.commit()
        return order

    return _make


SHIPPING = {
    "address": "1 Main St",
    "city": "Springfield",
    "postal_code": "12345",
    "country": "US",
    "phone": "555-0100",
}
