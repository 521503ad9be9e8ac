"""
Cart Module - Models
=====================
Shopping cart with per-user uniqueness, snapshot line items and cached
totals.
"""

from sqlalchemy import (
    Column, Integer, String, Numeric, ForeignKey, DateTime,
    UniqueConstraint, CheckConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from config.database import Base


class Cart(Base):
    __tablename__ = "carts"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)

    # Cached aggregates, recomputed by cart_service after every line mutation
    total_price = Column(Numeric(14, 2), default=0, nullable=False)
    total_quantity = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    user = relationship("User", foreign_keys=[user_id])
    items = relationship(
        "CartItem", back_populates="cart",
        cascade="all, delete-orphan", order_by="CartItem.id",
    )


class CartItem(Base):
    __tablename__ = "cart_items"

    id = Column(Integer, primary_key=True)
    cart_id = Column(Integer, ForeignKey("carts.id", ondelete="CASCADE"), nullable=False)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    quantity = Column(Integer, default=1, nullable=False)
    size = Column(String(8), nullable=True)

    # Snapshot at time of adding
    price = Column(Numeric(12, 2), nullable=False)
    name = Column(String(100), nullable=False)
    image = Column(String, nullable=True)

    cart = relationship("Cart", back_populates="items")
    product = relationship("Product")

    __table_args__ = (
        UniqueConstraint("cart_id", "product_id", "size", name="uq_cart_product_size"),
        CheckConstraint("quantity >= 1", name="ck_cart_qty"),
    )

    @property
    def line_total(self):
        return self.price * self.quantity
