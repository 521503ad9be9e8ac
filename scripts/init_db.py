"""
Storefront - Database Initialization
======================================
Creates all tables if they don't exist, optionally seeds an admin account
and prints a bearer token for it (tokens are normally issued by the
identity provider).

Usage:
    python scripts/init_db.py
    python scripts/init_db.py --drop                       # Drop and recreate all tables
    python scripts/init_db.py --admin ops@example.com      # Ensure an admin and print a token
"""

import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import inspect

from config.database import Base, engine, SessionLocal
from common.security import create_token

# Import ALL models so Base.metadata knows about them
from modules.user.models import User, UserRole  # noqa
from modules.catalog.models import Product, ProductSize  # noqa
from modules.cart.models import Cart, CartItem  # noqa
from modules.coupon.models import Coupon  # noqa
from modules.order.models import Order, OrderItem, OrderStatusLog  # noqa
from modules.review.models import Review  # noqa


def init_db(drop_first=False):
    if drop_first:
        print("Dropping all tables...")
        Base.metadata.drop_all(bind=engine)

    Base.metadata.create_all(bind=engine)

    tables = sorted(inspect(engine).get_table_names())
    print(f"Tables ({len(tables)}): {', '.join(tables)}")


def ensure_admin(email: str) -> User:
    db = SessionLocal()
    try:
        user = db.query(User).filter(User.email == email).first()
        if user is None:
            user = User(name=email.split("@")[0], email=email, role=UserRole.ADMIN.value)
            db.add(user)
        else:
            user.role = UserRole.ADMIN.value
            user.is_active = True
        db.commit()
        db.refresh(user)
        return user
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def _arg_value(flag: str):
    if flag in sys.argv:
        idx = sys.argv.index(flag)
        if idx + 1 < len(sys.argv):
            return sys.argv[idx + 1]
        print(f"{flag} needs a value")
        sys.exit(2)
    return None


if __name__ == "__main__":
    drop = "--drop" in sys.argv
    if drop:
        confirm = input("This will DROP all tables. Type 'yes': ")
        if confirm.strip().lower() != "yes":
            print("Aborted.")
            sys.exit(0)
    init_db(drop_first=drop)

    admin_email = _arg_value("--admin")
    if admin_email:
        admin = ensure_admin(admin_email.strip().lower())
        print(f"Admin #{admin.id} <{admin.email}>")
        print(f"Bearer {create_token({'sub': str(admin.id)})}")
