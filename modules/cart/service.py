"""
Cart Module - Service Layer
==============================
Cart management: add/merge, update quantity, remove, clear, view.
Totals are a cache over the lines and are only ever produced by
compute_totals().
"""

import logging
from decimal import Decimal
from typing import Iterable, Optional, Tuple, Dict, Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from config.settings import MAX_CART_LINE_QUANTITY
from common.exceptions import (
    NotFoundError, ValidationError, InsufficientStockError, EmptyCartError,
)
from common.helpers import to_money
from modules.auth.policy import Principal
from modules.cart.models import Cart, CartItem
from modules.catalog.service import catalog_service, normalize_size

logger = logging.getLogger("storefront.cart")


def compute_totals(items: Iterable[CartItem]) -> Tuple[Decimal, int]:
    """Return (total_price, total_quantity) for a collection of lines."""
    total_price = Decimal("0.00")
    total_quantity = 0
    for item in items:
        total_price += to_money(item.price) * item.quantity
        total_quantity += item.quantity
    return to_money(total_price), total_quantity


class CartService:

    # ==========================================
    # Lookup
    # ==========================================

    def find_cart(self, db: Session, user_id: int, for_update: bool = False) -> Optional[Cart]:
        """
        Load the user's cart. With for_update the cart row is locked and the
        cart and its lines are re-read, so a concurrent writer is either
        waited for or seen.
        """
        q = db.query(Cart).filter(Cart.user_id == user_id)
        if for_update:
            q = q.options(selectinload(Cart.items)).with_for_update().populate_existing()
        return q.first()

    def get_or_create_cart(self, db: Session, user_id: int, for_update: bool = False) -> Cart:
        """Get existing cart or create new one for the user."""
        cart = self.find_cart(db, user_id, for_update=for_update)
        if not cart:
            cart = Cart(user_id=user_id, total_price=Decimal("0.00"), total_quantity=0)
            db.add(cart)
            try:
                db.flush()
            except IntegrityError:
                # Another request created it first
                db.rollback()
                cart = self.find_cart(db, user_id, for_update=for_update)
        return cart

    def get_cart(self, db: Session, principal: Principal) -> Cart:
        """Cart for display. A missing or lineless cart is reported as EmptyCartError."""
        cart = self.find_cart(db, principal.id)
        if not cart or not cart.items:
            raise EmptyCartError()
        return cart

    # ==========================================
    # Mutations
    # ==========================================

    def add_line(
        self,
        db: Session,
        principal: Principal,
        product_id: int,
        quantity: int,
        size: Optional[str] = None,
    ) -> Cart:
        """
        Add a product to the cart. An existing (product, size) line is merged
        and the combined quantity is checked against live stock.
        """
        self._validate_quantity(quantity)
        size = normalize_size(size)

        product = catalog_service.get_product(db, product_id)
        available = catalog_service.available_stock(product, size)
        if quantity > available:
            raise InsufficientStockError(available=available)

        cart = self.get_or_create_cart(db, principal.id, for_update=True)
        item = next(
            (it for it in cart.items if it.product_id == product.id and it.size == size),
            None,
        )

        if item:
            combined = item.quantity + quantity
            self._validate_quantity(combined)
            if combined > available:
                raise InsufficientStockError(available=available)
            item.quantity = combined
        else:
            cart.items.append(CartItem(
                product_id=product.id,
                quantity=quantity,
                size=size,
                price=to_money(product.price),
                name=product.name,
                image=product.image_url,
            ))

        self._refresh_totals(cart)
        db.flush()
        logger.debug(f"Cart #{cart.id}: added product #{product.id} x{quantity} size={size}")
        return cart

    def remove_line(self, db: Session, principal: Principal, line_id: int) -> Cart:
        cart = self.find_cart(db, principal.id, for_update=True)
        if not cart:
            raise NotFoundError("Cart not found")

        item = self._find_line(cart, line_id)
        cart.items.remove(item)

        self._refresh_totals(cart)
        db.flush()
        return cart

    def update_line_quantity(self, db: Session, principal: Principal, line_id: int, quantity: int) -> Cart:
        """Set a line's quantity, validated against the product's live stock."""
        self._validate_quantity(quantity)

        cart = self.find_cart(db, principal.id, for_update=True)
        if not cart:
            raise NotFoundError("Cart not found")

        item = self._find_line(cart, line_id)
        product = catalog_service.get_product(db, item.product_id)
        available = catalog_service.available_stock(product, item.size)
        if quantity > available:
            raise InsufficientStockError(available=available)

        item.quantity = quantity
        self._refresh_totals(cart)
        db.flush()
        return cart

    def clear(self, db: Session, principal: Principal) -> bool:
        """Delete the user's cart entity. Returns True if a cart existed."""
        cart = self.find_cart(db, principal.id, for_update=True)
        if not cart:
            return False
        db.delete(cart)
        db.flush()
        return True

    # ==========================================
    # Serialization
    # ==========================================

    def to_dict(self, cart: Cart) -> Dict[str, Any]:
        """Cart with each line joined against current product data."""
        items = []
        for item in cart.items:
            product = item.product
            live = None
            if product is not None:
                if item.size and product.has_sizes:
                    entry = product.size_entry(item.size)
                    stock = entry.quantity if entry else 0
                else:
                    stock = product.stock
                live = {
                    "id": product.id,
                    "name": product.name,
                    "price": product.price,
                    "image": product.image_url,
                    "stock": stock,
                    "rating": product.rating,
                }
            items.append({
                "id": item.id,
                "product_id": item.product_id,
                "name": item.name,
                "price": item.price,
                "quantity": item.quantity,
                "size": item.size,
                "image": item.image,
                "line_total": item.line_total,
                "product": live,
            })
        return {
            "id": cart.id,
            "user_id": cart.user_id,
            "items": items,
            "total_price": cart.total_price,
            "total_quantity": cart.total_quantity,
        }

    # ==========================================
    # Private helpers
    # ==========================================

    def _refresh_totals(self, cart: Cart):
        cart.total_price, cart.total_quantity = compute_totals(cart.items)

    def _find_line(self, cart: Cart, line_id: int) -> CartItem:
        for item in cart.items:
            if item.id == line_id:
                return item
        raise NotFoundError("Item not found in cart")

    def _validate_quantity(self, quantity: int):
        if quantity is None or quantity < 1:
            raise ValidationError("Quantity must be at least 1")
        if quantity > MAX_CART_LINE_QUANTITY:
            raise ValidationError(f"Quantity cannot exceed {MAX_CART_LINE_QUANTITY}")


# Singleton
cart_service = CartService()
