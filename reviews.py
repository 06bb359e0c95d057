import logging
from typing import List

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

import config
from errors import ConflictError, NotFoundError
from models import Order, OrderItem, Product, Review, ReviewStatus, User
from schemas import ReviewCreate

logger = logging.getLogger("buddiesinn")


def _get_product(db: Session, product_id: int) -> Product:
    product = db.get(Product, product_id)
    if product is None:
        raise NotFoundError("product not found")
    return product


def has_purchased(db: Session, user_id: int, product_id: int) -> bool:
    return (
        db.query(OrderItem.id)
        .join(Order, Order.id == OrderItem.order_id)
        .filter(Order.user_id == user_id, OrderItem.product_id == product_id)
        .first()
        is not None
    )


def list_product_reviews(db: Session, product_id: int) -> List[Review]:
    _get_product(db, product_id)
    return (
        db.query(Review)
        .filter(Review.product_id == product_id, Review.status == ReviewStatus.APPROVED.value)
        .order_by(Review.created_at.desc(), Review.id.desc())
        .all()
    )


def create_review(db: Session, user: User, product_id: int, data: ReviewCreate) -> Review:
    _get_product(db, product_id)
    existing = (
        db.query(Review)
        .filter(Review.user_id == user.id, Review.product_id == product_id)
        .first()
    )
    if existing:
        raise ConflictError("already reviewed this product")

    review = Review(
        user_id=user.id,
        product_id=product_id,
        rating=data.rating,
        title=data.title,
        comment=data.comment,
        verified=has_purchased(db, user.id, product_id),
        status=config.REVIEW_DEFAULT_STATUS,
    )
    db.add(review)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("already reviewed this product")
    db.refresh(review)
    logger.info("User %s reviewed product %s (%s stars)", user.id, product_id, review.rating)
    return review


def delete_review(db: Session, user: User, review_id: int):
    review = db.get(Review, review_id)
    if review is None or review.user_id != user.id:
        raise NotFoundError("review not found")
    db.delete(review)
    db.commit()
