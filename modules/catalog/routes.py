"""
Catalog Module - Public Routes
================================
Product list and detail (with current stock and rating aggregate).
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from config.database import get_db
from common.responses import ok
from modules.catalog.service import catalog_service

router = APIRouter(prefix="/api/v1/products", tags=["catalog"])


@router.get("")
async def list_products(
    category: str = Query(None),
    db: Session = Depends(get_db),
):
    products = catalog_service.list_products(db, category=category)
    return ok([catalog_service.to_dict(p) for p in products], count=len(products))


@router.get("/{product_id}")
async def get_product(product_id: int, db: Session = Depends(get_db)):
    product = catalog_service.get_product(db, product_id)
    return ok(catalog_service.to_dict(product))
