"""
Catalog Module - Admin Routes
===============================
Product create/update for admins (stock and size breakdown included).
"""

from decimal import Decimal
from typing import Optional, List

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from config.database import get_db
from common.responses import ok
from modules.auth.deps import require_admin
from modules.catalog.service import catalog_service

router = APIRouter(prefix="/api/v1/admin/products", tags=["catalog-admin"])


class SizeStock(BaseModel):
    size: str = Field(..., min_length=1, max_length=8)
    quantity: int = Field(0, ge=0)


class ProductCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    price: Decimal = Field(..., ge=0)
    stock: int = Field(0, ge=0)
    category: Optional[str] = None
    image_url: Optional[str] = None
    sizes: List[SizeStock] = Field(default_factory=list)


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    price: Optional[Decimal] = Field(None, ge=0)
    stock: Optional[int] = Field(None, ge=0)
    category: Optional[str] = None
    image_url: Optional[str] = None
    is_active: Optional[bool] = None
    sizes: Optional[List[SizeStock]] = None


@router.post("", status_code=201)
async def create_product(
    body: ProductCreate,
    db: Session = Depends(get_db),
    admin=Depends(require_admin),
):
    product = catalog_service.create_product(db, body.model_dump())
    db.commit()
    return ok(catalog_service.to_dict(product))


@router.put("/{product_id}")
async def update_product(
    product_id: int,
    body: ProductUpdate,
    db: Session = Depends(get_db),
    admin=Depends(require_admin),
):
    product = catalog_service.update_product(db, product_id, body.model_dump(exclude_unset=True))
    db.commit()
    return ok(catalog_service.to_dict(product))
