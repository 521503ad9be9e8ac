"""
Review Module - Routes
========================
Product reviews: list per product, submit, update, delete.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from config.database import get_db
from common.responses import ok
from modules.auth.deps import require_login
from modules.catalog.service import catalog_service
from modules.review.service import review_service

router = APIRouter(prefix="/api/v1", tags=["reviews"])


class ReviewCreate(BaseModel):
    rating: int
    comment: str = Field(..., max_length=2000)


class ReviewUpdate(BaseModel):
    rating: Optional[int] = None
    comment: Optional[str] = Field(None, max_length=2000)


# ==========================================
# Reviews of a product
# ==========================================

@router.get("/products/{product_id}/reviews")
async def product_reviews(product_id: int, db: Session = Depends(get_db)):
    catalog_service.get_product(db, product_id)
    reviews = review_service.list_reviews(db, product_id=product_id)
    return ok([review_service.to_dict(r) for r in reviews], count=len(reviews))


@router.post("/products/{product_id}/reviews", status_code=201)
async def submit_review(
    product_id: int,
    body: ReviewCreate,
    db: Session = Depends(get_db),
    me=Depends(require_login),
):
    review = review_service.create_review(db, me, product_id, body.rating, body.comment)
    db.commit()
    return ok(review_service.to_dict(review))


# ==========================================
# Reviews by id
# ==========================================

@router.get("/reviews")
async def all_reviews(
    product_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
):
    reviews = review_service.list_reviews(db, product_id=product_id)
    return ok([review_service.to_dict(r) for r in reviews], count=len(reviews))


@router.get("/reviews/{review_id}")
async def get_review(review_id: int, db: Session = Depends(get_db)):
    return ok(review_service.to_dict(review_service.get_review(db, review_id)))


@router.put("/reviews/{review_id}")
async def update_review(
    review_id: int,
    body: ReviewUpdate,
    db: Session = Depends(get_db),
    me=Depends(require_login),
):
    review = review_service.update_review(db, me, review_id, rating=body.rating, comment=body.comment)
    db.commit()
    return ok(review_service.to_dict(review))


@router.delete("/reviews/{review_id}")
async def delete_review(
    review_id: int,
    db: Session = Depends(get_db),
    me=Depends(require_login),
):
    review_service.delete_review(db, me, review_id)
    db.commit()
    return ok({}, message="Review deleted")
