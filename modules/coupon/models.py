"""
Coupon Module - Models
========================
Flat-amount discount coupons.

  - discount:   absolute amount subtracted from the order total
  - max_amount: cap on the discount actually granted
  - min_amount: order total floor required to qualify
  - expiry / is_active gate validity
"""

from sqlalchemy import (
    Column, Integer, String, Numeric, Boolean, DateTime, Index,
)
from sqlalchemy.sql import func
from config.database import Base


class Coupon(Base):
    __tablename__ = "coupons"

    id = Column(Integer, primary_key=True)
    code = Column(String(50), unique=True, nullable=False, index=True)  # stored upper-case

    discount = Column(Numeric(12, 2), nullable=False)
    min_amount = Column(Numeric(12, 2), default=0, nullable=False)
    max_amount = Column(Numeric(12, 2), nullable=False)

    expiry = Column(DateTime(timezone=True), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        Index("ix_coupon_code_active", "code", "is_active"),
    )

    def __repr__(self):
        return f"<Coupon {self.code}>"
