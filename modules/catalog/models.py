"""
Catalog Module - Models
========================
Product with flat stock or a per-size stock breakdown, plus the cached
rating aggregate maintained by the review module.
"""

import enum

from sqlalchemy import (
    Column, Integer, String, Numeric, Boolean, Float, Text,
    ForeignKey, DateTime, UniqueConstraint, CheckConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from config.database import Base


class Size(str, enum.Enum):
    XS = "XS"
    S = "S"
    M = "M"
    L = "L"
    XL = "XL"
    XXL = "XXL"
    XXXL = "XXXL"


# ==========================================
# 📦 Product
# ==========================================

class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Numeric(12, 2), nullable=False, default=0)
    stock = Column(Integer, default=0, nullable=False)         # used when no size breakdown
    category = Column(String, nullable=True)
    image_url = Column(String, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    # Aggregate of reviews (see review service)
    rating = Column(Float, default=0, server_default="0", nullable=False)
    num_of_reviews = Column(Integer, default=0, server_default="0", nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    sizes = relationship(
        "ProductSize", back_populates="product",
        cascade="all, delete-orphan", order_by="ProductSize.id",
    )

    __table_args__ = (
        CheckConstraint("stock >= 0", name="ck_product_stock"),
    )

    @property
    def has_sizes(self) -> bool:
        return len(self.sizes) > 0

    @property
    def total_stock(self) -> int:
        if self.has_sizes:
            return sum(s.quantity for s in self.sizes)
        return self.stock

    def size_entry(self, size: str):
        for s in self.sizes:
            if s.size == size:
                return s
        return None

    def __repr__(self):
        return f"<Product {self.name}>"


# ==========================================
# 📏 Per-size stock
# ==========================================

class ProductSize(Base):
    __tablename__ = "product_sizes"

    id = Column(Integer, primary_key=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    size = Column(String(8), nullable=False)
    quantity = Column(Integer, default=0, nullable=False)

    product = relationship("Product", back_populates="sizes")

    __table_args__ = (
        UniqueConstraint("product_id", "size", name="uq_product_size"),
        CheckConstraint("quantity >= 0", name="ck_product_size_qty"),
    )
