"""
Order Module - Service Layer
===============================
Checkout (cart -> order), payment confirmation, status transitions, queries.
"""

import logging
from decimal import Decimal
from typing import List, Optional, Dict, Any

from sqlalchemy.orm import Session
from sqlalchemy import desc, func

from common.exceptions import (
    NotFoundError, ValidationError, EmptyCartError, InsufficientStockError,
    AlreadyDeliveredError, AlreadyPaidError,
)
from common.helpers import now_utc, as_utc, to_money
from modules.auth.policy import Principal, ensure_admin, ensure_owner, ensure_owner_or_admin
from modules.cart.models import Cart, CartItem
from modules.cart.service import cart_service
from modules.catalog.service import catalog_service
from modules.coupon.service import coupon_service, compute_discount
from modules.order.models import Order, OrderItem, OrderStatus, OrderStatusLog, STATUS_RANK

logger = logging.getLogger("storefront.order")
checkout_logger = logging.getLogger("storefront.checkout")


def parse_status(value: str) -> str:
    """Map a case-insensitive status label onto an OrderStatus value."""
    for status in OrderStatus:
        if str(value or "").strip().lower() == status.value.lower():
            return status.value
    raise ValidationError(f"Invalid order status: {value}")


class OrderService:

    # ==========================================
    # Checkout
    # ==========================================

    def checkout(
        self,
        db: Session,
        principal: Principal,
        shipping: Dict[str, Any],
        tax_price=0,
        shipping_price=0,
        items_price=None,
        coupon_code: Optional[str] = None,
        payment: Optional[Dict[str, Any]] = None,
    ) -> Order:
        """
        Create an order from the user's cart:
        1. Load and lock cart (EmptyCartError when missing or lineless)
        2. Price lines at the live product price; a caller-supplied
           items_price must match
        3. Validate coupon against items + tax + shipping (no writes yet)
        4. Decrement stock per line with a conditional UPDATE
        5. Snapshot lines into the order
        6. Delete the cart (EmptyCartError when a concurrent checkout
           already consumed it)

        Steps 4-6 share the caller's transaction. Any failure in them rolls the
        session back before the error propagates.
        """
        cart = cart_service.find_cart(db, principal.id, for_update=True)
        if not cart or not cart.items:
            raise EmptyCartError()

        tax = to_money(tax_price)
        ship = to_money(shipping_price)
        if tax < 0 or ship < 0:
            raise ValidationError("Tax and shipping prices cannot be negative")

        lines = []
        computed_items = Decimal("0.00")
        for item in cart.items:
            product = catalog_service.get_product(db, item.product_id)
            available = catalog_service.available_stock(product, item.size)
            if item.quantity > available:
                raise InsufficientStockError(
                    f"{product.name} ({item.size})" if item.size else product.name
                )
            price = to_money(product.price)
            computed_items += price * item.quantity
            lines.append((item, product, price))

        computed_items = to_money(computed_items)
        if items_price is not None and to_money(items_price) != computed_items:
            raise ValidationError(
                f"Items price {to_money(items_price)} does not match cart total {computed_items}"
            )

        total = computed_items + tax + ship

        coupon = None
        discount = Decimal("0.00")
        if coupon_code and coupon_code.strip():
            coupon = coupon_service.validate(db, coupon_code, total)
            discount = compute_discount(coupon)
            total = total - discount

        # Writes start here
        try:
            for item, product, _ in lines:
                catalog_service.decrement_stock(db, product, item.quantity, item.size)
        except InsufficientStockError as e:
            db.rollback()
            checkout_logger.warning(f"Checkout aborted for user #{principal.id}: {e.message}")
            raise

        payment = payment or {}
        order = Order(
            user_id=principal.id,
            shipping_address=shipping["address"],
            shipping_city=shipping["city"],
            shipping_postal_code=shipping["postal_code"],
            shipping_country=shipping["country"],
            shipping_phone=shipping.get("phone"),
            items_price=computed_items,
            tax_price=tax,
            shipping_price=ship,
            discount=discount,
            total_price=to_money(total),
            coupon_id=coupon.id if coupon else None,
            coupon_code=coupon.code if coupon else None,
            payment_id=payment.get("id"),
            payment_status=payment.get("status"),
            order_status=OrderStatus.PLACED.value,
        )
        order.items = [
            OrderItem(
                product_id=product.id,
                name=product.name,
                price=price,
                quantity=item.quantity,
                size=item.size,
                image=product.image_url or item.image,
            )
            for item, product, price in lines
        ]
        db.add(order)
        db.flush()

        # The cart must still exist; a concurrent checkout of the same cart
        # has otherwise already turned it into an order
        db.query(CartItem).filter(CartItem.cart_id == cart.id).delete(synchronize_session=False)
        deleted = db.query(Cart).filter(Cart.id == cart.id).delete(synchronize_session=False)
        if deleted != 1:
            db.rollback()
            checkout_logger.warning(f"Checkout aborted for user #{principal.id}: cart already checked out")
            raise EmptyCartError()
        db.expunge(cart)

        checkout_logger.info(
            f"Order #{order.id} placed by user #{principal.id}: "
            f"{len(lines)} lines, total={order.total_price}"
            + (f", coupon={order.coupon_code} (-{discount})" if coupon else "")
        )
        return order

    # ==========================================
    # Payment
    # ==========================================

    def mark_paid(
        self,
        db: Session,
        principal: Principal,
        order_id: int,
        payment_id: str,
        payment_status: str,
    ) -> Order:
        """
        Record an externally confirmed payment. Owner only.
        order_status is left as-is; payment and delivery are tracked separately.
        """
        order = self._get_for_update(db, order_id)
        ensure_owner(principal, order.user_id, "order")
        if order.is_paid:
            raise AlreadyPaidError()

        order.payment_id = payment_id
        order.payment_status = payment_status
        order.paid_at = now_utc()
        db.flush()
        logger.info(f"Order #{order.id} payment recorded: {payment_id} ({payment_status})")
        return order

    # ==========================================
    # Status transitions (admin)
    # ==========================================

    def update_status(self, db: Session, principal: Principal, order_id: int, status: str) -> Order:
        ensure_admin(principal)
        new_status = parse_status(status)

        order = self._get_for_update(db, order_id)
        if order.is_delivered:
            raise AlreadyDeliveredError()

        old_status = order.order_status
        if STATUS_RANK[new_status] < STATUS_RANK[old_status]:
            raise ValidationError(f"Cannot move order from {old_status} back to {new_status}")
        if new_status == old_status:
            return order

        order.order_status = new_status
        if new_status == OrderStatus.DELIVERED.value:
            order.delivered_at = now_utc()

        db.add(OrderStatusLog(
            order_id=order.id,
            old_status=old_status,
            new_status=new_status,
            changed_by=principal.id,
        ))
        db.flush()
        logger.info(f"Order #{order.id}: {old_status} -> {new_status} by user #{principal.id}")
        return order

    def mark_delivered(self, db: Session, principal: Principal, order_id: int) -> Order:
        return self.update_status(db, principal, order_id, OrderStatus.DELIVERED.value)

    # ==========================================
    # Query
    # ==========================================

    def get_order(self, db: Session, principal: Principal, order_id: int) -> Order:
        order = db.query(Order).filter(Order.id == order_id).first()
        if not order:
            raise NotFoundError(f"Order not found with id of {order_id}")
        ensure_owner_or_admin(principal, order.user_id, "order")
        return order

    def list_user_orders(self, db: Session, principal: Principal) -> List[Order]:
        return db.query(Order).filter(
            Order.user_id == principal.id,
        ).order_by(desc(Order.created_at), desc(Order.id)).all()

    def list_all_orders(self, db: Session, principal: Principal, status: str = None) -> List[Order]:
        ensure_admin(principal)
        q = db.query(Order).order_by(desc(Order.created_at), desc(Order.id))
        if status:
            q = q.filter(Order.order_status == parse_status(status))
        return q.all()

    def sales_stats(self, db: Session, principal: Principal) -> Dict[str, Any]:
        """Total, average, min and max order value over all orders."""
        ensure_admin(principal)
        total, avg, low, high, count = db.query(
            func.sum(Order.total_price),
            func.avg(Order.total_price),
            func.min(Order.total_price),
            func.max(Order.total_price),
            func.count(Order.id),
        ).one()
        if not count:
            return {}
        return {
            "total_sales": to_money(total),
            "avg_order_value": to_money(avg),
            "min_order": to_money(low),
            "max_order": to_money(high),
            "count": count,
        }

    # ==========================================
    # Serialization
    # ==========================================

    def to_dict(self, order: Order) -> Dict[str, Any]:
        return {
            "id": order.id,
            "user_id": order.user_id,
            "shipping_info": {
                "address": order.shipping_address,
                "city": order.shipping_city,
                "postal_code": order.shipping_postal_code,
                "country": order.shipping_country,
                "phone": order.shipping_phone,
            },
            "order_items": [
                {
                    "product_id": it.product_id,
                    "name": it.name,
                    "price": it.price,
                    "quantity": it.quantity,
                    "size": it.size,
                    "image": it.image,
                }
                for it in order.items
            ],
            "payment_info": {
                "id": order.payment_id,
                "status": order.payment_status,
            },
            "items_price": order.items_price,
            "tax_price": order.tax_price,
            "shipping_price": order.shipping_price,
            "discount": order.discount,
            "total_price": order.total_price,
            "coupon": order.coupon_code,
            "order_status": order.order_status,
            "is_paid": order.is_paid,
            "paid_at": as_utc(order.paid_at),
            "delivered_at": as_utc(order.delivered_at),
            "created_at": as_utc(order.created_at),
        }

    # ==========================================
    # Private Helpers
    # ==========================================

    def _get_for_update(self, db: Session, order_id: int) -> Order:
        order = db.query(Order).filter(Order.id == order_id).with_for_update().first()
        if not order:
            raise NotFoundError(f"Order not found with id of {order_id}")
        return order


# Singleton
order_service = OrderService()
