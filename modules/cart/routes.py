"""
Cart Routes
=============
JSON API for the shopping cart: add, view, update quantity, remove, clear.
"""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from config.database import get_db
from common.responses import ok
from modules.auth.deps import require_login
from modules.cart.service import cart_service

router = APIRouter(prefix="/api/v1/cart", tags=["cart"])


class AddToCartRequest(BaseModel):
    product_id: int = Field(..., gt=0)
    quantity: int = Field(1, ge=1)
    size: Optional[str] = Field(None, max_length=8)


class UpdateQuantityRequest(BaseModel):
    quantity: int = Field(..., ge=1)


@router.post("/add")
async def add_to_cart(
    body: AddToCartRequest,
    db: Session = Depends(get_db),
    me=Depends(require_login),
):
    cart = cart_service.add_line(db, me, body.product_id, body.quantity, body.size)
    db.commit()
    return ok(cart_service.to_dict(cart))


@router.get("")
async def view_cart(
    db: Session = Depends(get_db),
    me=Depends(require_login),
):
    cart = cart_service.get_cart(db, me)
    return ok(cart_service.to_dict(cart))


@router.put("/update/{line_id}")
async def update_cart_item(
    line_id: int,
    body: UpdateQuantityRequest,
    db: Session = Depends(get_db),
    me=Depends(require_login),
):
    cart = cart_service.update_line_quantity(db, me, line_id, body.quantity)
    db.commit()
    return ok(cart_service.to_dict(cart))


@router.delete("/remove/{line_id}")
async def remove_cart_item(
    line_id: int,
    db: Session = Depends(get_db),
    me=Depends(require_login),
):
    cart = cart_service.remove_line(db, me, line_id)
    db.commit()
    return ok(cart_service.to_dict(cart))


@router.delete("/clear")
async def clear_cart(
    db: Session = Depends(get_db),
    me=Depends(require_login),
):
    cart_service.clear(db, me)
    db.commit()
    return ok(message="Cart cleared successfully")
