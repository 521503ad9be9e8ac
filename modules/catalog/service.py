"""
Catalog Module - Service Layer
================================
Product lookup, stock availability, atomic stock decrement, and the admin
create/update operations.
"""

import logging
from typing import List, Optional, Dict, Any

from sqlalchemy.orm import Session

from common.exceptions import NotFoundError, ValidationError, InsufficientStockError
from common.helpers import to_money
from modules.catalog.models import Product, ProductSize, Size

logger = logging.getLogger("storefront.catalog")

_VALID_SIZES = {s.value for s in Size}


def normalize_size(size: Optional[str]) -> Optional[str]:
    """Upper-case and validate a size label; empty means no size."""
    if size is None or not str(size).strip():
        return None
    value = str(size).strip().upper()
    if value not in _VALID_SIZES:
        raise ValidationError(f"Invalid size: {size}")
    return value


class CatalogService:

    # ==========================================
    # Lookup
    # ==========================================

    def get_product(self, db: Session, product_id: int, include_inactive: bool = False) -> Product:
        q = db.query(Product).filter(Product.id == product_id)
        if not include_inactive:
            q = q.filter(Product.is_active == True)
        product = q.first()
        if not product:
            raise NotFoundError("Product not found")
        return product

    def list_products(self, db: Session, category: str = None) -> List[Product]:
        q = db.query(Product).filter(Product.is_active == True)
        if category:
            q = q.filter(Product.category == category)
        return q.order_by(Product.id.desc()).all()

    # ==========================================
    # Stock
    # ==========================================

    def available_stock(self, product: Product, size: Optional[str]) -> int:
        """
        Live stock for a (product, size) pair.
        Sized products require a size they offer; flat products reject a size.
        """
        if product.has_sizes:
            if not size:
                raise ValidationError(f"Please select a size for {product.name}")
            entry = product.size_entry(size)
            if entry is None:
                raise ValidationError(f"Size {size} is not available for {product.name}")
            return entry.quantity
        if size:
            raise ValidationError(f"{product.name} is not sold by size")
        return product.stock

    def decrement_stock(self, db: Session, product: Product, quantity: int, size: Optional[str]):
        """
        Decrement-if-sufficient in a single UPDATE, so concurrent checkouts
        cannot both take the last unit. Raises InsufficientStockError when no
        row matched.
        """
        if size:
            updated = db.query(ProductSize).filter(
                ProductSize.product_id == product.id,
                ProductSize.size == size,
                ProductSize.quantity >= quantity,
            ).update({
                ProductSize.quantity: ProductSize.quantity - quantity,
            }, synchronize_session=False)
        else:
            updated = db.query(Product).filter(
                Product.id == product.id,
                Product.stock >= quantity,
            ).update({
                Product.stock: Product.stock - quantity,
            }, synchronize_session=False)

        if updated != 1:
            label = f"{product.name} ({size})" if size else product.name
            raise InsufficientStockError(label)

    # ==========================================
    # Admin
    # ==========================================

    def create_product(self, db: Session, data: Dict[str, Any]) -> Product:
        product = Product(
            name=data["name"].strip(),
            description=data.get("description"),
            price=to_money(data.get("price", 0)),
            stock=int(data.get("stock") or 0),
            category=data.get("category"),
            image_url=data.get("image_url"),
        )
        self._set_sizes(product, data.get("sizes"))
        db.add(product)
        db.flush()
        logger.info(f"Product #{product.id} created: {product.name}")
        return product

    def update_product(self, db: Session, product_id: int, data: Dict[str, Any]) -> Product:
        product = self.get_product(db, product_id, include_inactive=True)
        for field in ("name", "description", "category", "image_url", "is_active"):
            if data.get(field) is not None:
                setattr(product, field, data[field])
        if data.get("price") is not None:
            product.price = to_money(data["price"])
        if data.get("stock") is not None:
            product.stock = int(data["stock"])
        if data.get("sizes") is not None:
            self._set_sizes(product, data["sizes"])
        db.flush()
        return product

    def _set_sizes(self, product: Product, sizes: Optional[List[Dict[str, Any]]]):
        if not sizes:
            product.sizes = []
            return
        seen = set()
        rows = []
        for entry in sizes:
            size = normalize_size(entry.get("size"))
            if not size:
                raise ValidationError("Size is required for each size entry")
            if size in seen:
                raise ValidationError(f"Duplicate size: {size}")
            quantity = int(entry.get("quantity") or 0)
            if quantity < 0:
                raise ValidationError("Size quantity cannot be negative")
            seen.add(size)
            existing = product.size_entry(size)
            if existing is not None:
                existing.quantity = quantity
                rows.append(existing)
            else:
                rows.append(ProductSize(size=size, quantity=quantity))
        product.sizes = rows

    # ==========================================
    # Serialization
    # ==========================================

    def to_dict(self, product: Product) -> Dict[str, Any]:
        return {
            "id": product.id,
            "name": product.name,
            "description": product.description,
            "price": product.price,
            "stock": product.total_stock,
            "sizes": [{"size": s.size, "quantity": s.quantity} for s in product.sizes],
            "category": product.category,
            "image": product.image_url,
            "rating": product.rating,
            "num_of_reviews": product.num_of_reviews,
        }


# Singleton
catalog_service = CatalogService()
