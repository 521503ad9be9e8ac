"""
Order Module - Models
======================
Order with full snapshot per line item, price breakdown, payment record,
and an audit trail of status transitions.
"""

import enum
from sqlalchemy import (
    Column, Integer, String, Numeric, Text,
    ForeignKey, DateTime, Index,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from config.database import Base


class OrderStatus(str, enum.Enum):
    PLACED = "Placed"
    PAID = "Paid"
    DELIVERED = "Delivered"


# Forward-only progression
STATUS_RANK = {
    OrderStatus.PLACED.value: 0,
    OrderStatus.PAID.value: 1,
    OrderStatus.DELIVERED.value: 2,
}


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True)

    # Shipping info
    shipping_address = Column(Text, nullable=False)
    shipping_city = Column(String, nullable=False)
    shipping_postal_code = Column(String, nullable=False)
    shipping_country = Column(String, nullable=False)
    shipping_phone = Column(String, nullable=True)

    # Price breakdown: items + tax + shipping - discount = total
    items_price = Column(Numeric(14, 2), nullable=False, default=0)
    tax_price = Column(Numeric(14, 2), nullable=False, default=0)
    shipping_price = Column(Numeric(14, 2), nullable=False, default=0)
    discount = Column(Numeric(14, 2), nullable=False, default=0)
    total_price = Column(Numeric(14, 2), nullable=False, default=0)

    # Coupon (code kept as a snapshot)
    coupon_id = Column(Integer, ForeignKey("coupons.id", ondelete="SET NULL"), nullable=True)
    coupon_code = Column(String(50), nullable=True)

    # Payment (confirmed externally; independent of order_status)
    payment_id = Column(String, nullable=True)
    payment_status = Column(String, nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)

    order_status = Column(String, default=OrderStatus.PLACED.value, nullable=False)
    delivered_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    # Relationships
    user = relationship("User", foreign_keys=[user_id])
    coupon = relationship("Coupon", foreign_keys=[coupon_id])
    items = relationship(
        "OrderItem", back_populates="order",
        cascade="all, delete-orphan", order_by="OrderItem.id",
    )
    status_logs = relationship(
        "OrderStatusLog", back_populates="order",
        cascade="all, delete-orphan", order_by="OrderStatusLog.id",
    )

    __table_args__ = (
        Index("ix_order_user_status", "user_id", "order_status"),
    )

    @property
    def is_paid(self) -> bool:
        return self.paid_at is not None

    @property
    def is_delivered(self) -> bool:
        return self.order_status == OrderStatus.DELIVERED.value


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="SET NULL"), nullable=True, index=True)

    # Snapshot at time of purchase
    name = Column(String(100), nullable=False)
    price = Column(Numeric(12, 2), nullable=False)
    quantity = Column(Integer, nullable=False)
    size = Column(String(8), nullable=True)
    image = Column(String, nullable=True)

    order = relationship("Order", back_populates="items")


class OrderStatusLog(Base):
    __tablename__ = "order_status_logs"

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    old_status = Column(String, nullable=True)
    new_status = Column(String, nullable=False)
    changed_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    order = relationship("Order", back_populates="status_logs")
