"""
Review Service - Business Logic
==================================
Create, update, delete and list product reviews. Every mutation refreshes
the product's rating aggregate from the review rows.
"""

import logging
from typing import Iterable, List, Tuple, Dict, Any, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from common.exceptions import (
    NotFoundError, ValidationError, DuplicateReviewError, NotPurchasedError,
)
from common.helpers import as_utc
from modules.auth.policy import Principal, ensure_owner, ensure_owner_or_admin
from modules.catalog.models import Product
from modules.catalog.service import catalog_service
from modules.order.models import Order, OrderItem, OrderStatus
from modules.review.models import Review

logger = logging.getLogger("storefront.review")

MIN_RATING = 1
MAX_RATING = 5


def aggregate_ratings(ratings: Iterable[int]) -> Tuple[float, int]:
    """(mean, count) of a set of ratings; an empty set is (0.0, 0)."""
    values = list(ratings)
    if not values:
        return 0.0, 0
    return sum(values) / len(values), len(values)


class ReviewService:

    def has_purchased(self, db: Session, user_id: int, product_id: int) -> bool:
        """True when the user has a delivered order containing the product."""
        return db.query(OrderItem.id).join(Order).filter(
            Order.user_id == user_id,
            Order.order_status == OrderStatus.DELIVERED.value,
            OrderItem.product_id == product_id,
        ).first() is not None

    # ------------------------------------------
    # Rating aggregate
    # ------------------------------------------

    def refresh_product_rating(self, db: Session, product_id: int) -> Optional[Product]:
        """Recompute the rating aggregate. The product row is locked before the ratings are read."""
        product = db.query(Product).filter(Product.id == product_id).with_for_update().first()
        if not product:
            return None
        ratings = [r for (r,) in db.query(Review.rating).filter(Review.product_id == product_id).all()]
        product.rating, product.num_of_reviews = aggregate_ratings(ratings)
        db.flush()
        logger.debug(f"Product #{product_id} rating={product.rating:.2f} over {product.num_of_reviews} reviews")
        return product

    # ------------------------------------------
    # Mutations
    # ------------------------------------------

    def create_review(self, db: Session, principal: Principal, product_id: int, rating: int, comment: str) -> Review:
        catalog_service.get_product(db, product_id)
        self._validate(rating, comment)

        if not self.has_purchased(db, principal.id, product_id):
            raise NotPurchasedError()

        existing = db.query(Review.id).filter(
            Review.user_id == principal.id,
            Review.product_id == product_id,
        ).first()
        if existing:
            raise DuplicateReviewError()

        review = Review(
            product_id=product_id,
            user_id=principal.id,
            rating=rating,
            comment=comment.strip(),
        )
        try:
            db.add(review)
            db.flush()
        except IntegrityError:
            db.rollback()
            # Race condition: another request created this review
            raise DuplicateReviewError()

        self.refresh_product_rating(db, product_id)
        logger.info(f"Review #{review.id} created by user #{principal.id} for product #{product_id}")
        return review

    def update_review(
        self,
        db: Session,
        principal: Principal,
        review_id: int,
        rating: Optional[int] = None,
        comment: Optional[str] = None,
    ) -> Review:
        review = self.get_review(db, review_id)
        ensure_owner(principal, review.user_id, "review")

        new_rating = review.rating if rating is None else rating
        new_comment = review.comment if comment is None else comment
        self._validate(new_rating, new_comment)

        review.rating = new_rating
        review.comment = new_comment.strip()
        db.flush()

        self.refresh_product_rating(db, review.product_id)
        return review

    def delete_review(self, db: Session, principal: Principal, review_id: int):
        review = self.get_review(db, review_id)
        ensure_owner_or_admin(principal, review.user_id, "review")

        product_id = review.product_id
        db.delete(review)
        db.flush()

        self.refresh_product_rating(db, product_id)
        logger.info(f"Review #{review_id} deleted by user #{principal.id}")

    # ------------------------------------------
    # Query methods
    # ------------------------------------------

    def get_review(self, db: Session, review_id: int) -> Review:
        review = db.query(Review).filter(Review.id == review_id).first()
        if not review:
            raise NotFoundError(f"Review not found with id of {review_id}")
        return review

    def list_reviews(self, db: Session, product_id: int = None) -> List[Review]:
        q = db.query(Review)
        if product_id is not None:
            q = q.filter(Review.product_id == product_id)
        return q.order_by(Review.created_at.desc(), Review.id.desc()).all()

    def to_dict(self, review: Review) -> Dict[str, Any]:
        return {
            "id": review.id,
            "product_id": review.product_id,
            "user": {"id": review.user_id, "name": review.user.name if review.user else None},
            "rating": review.rating,
            "comment": review.comment,
            "created_at": as_utc(review.created_at),
        }

    def _validate(self, rating: int, comment: str):
        if rating is None or rating < MIN_RATING or rating > MAX_RATING:
            raise ValidationError(f"Rating must be between {MIN_RATING} and {MAX_RATING}")
        if not comment or not comment.strip():
            raise ValidationError("Please enter a comment")


review_service = ReviewService()
