"""
Category and product catalog.

Listing supports pagination (limit clamped to MAX_PAGE_SIZE), case-insensitive
search over name and description, an allow-listed sort field and optional
status/featured/category/price filters. Deletes are refused while other records
still reference the row.
"""
import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

import config
from carts import recalculate
from errors import BusinessRuleError, ConflictError, NotFoundError, ValidationError
from models import (
    Cart,
    CartItem,
    Category,
    OrderItem,
    Product,
    ProductImage,
    ProductStatus,
    ProductVariant,
    Review,
    ReviewStatus,
)
from schemas import CategoryCreate, CategoryUpdate, Pagination, ProductCreate, ProductUpdate

logger = logging.getLogger("buddiesinn")

SORT_FIELDS = {
    "createdAt": Product.created_at,
    "updatedAt": Product.updated_at,
    "name": Product.name,
    "price": Product.price,
    "stock": Product.stock,
}


@dataclass
class ProductQuery:
    page: int = 1
    limit: int = config.DEFAULT_PAGE_SIZE
    search: Optional[str] = None
    sort_by: str = "createdAt"
    sort_order: str = "desc"
    status: Optional[str] = ProductStatus.ACTIVE.value
    featured: Optional[bool] = None
    category_id: Optional[int] = None
    min_price: Optional[Decimal] = None
    max_price: Optional[Decimal] = None


def paginate(page: int, limit: int, total: int) -> Pagination:
    total_pages = math.ceil(total / limit) if limit else 0
    return Pagination(
        current_page=page,
        total_pages=total_pages,
        total_items=total,
        items_per_page=limit,
        has_next_page=page < total_pages,
        has_prev_page=page > 1,
    )


# Categories
def list_categories(db: Session) -> List[Tuple[Category, int]]:
    counts = dict(
        db.query(Product.category_id, func.count(Product.id)).group_by(Product.category_id).all()
    )
    categories = db.query(Category).order_by(Category.sort_order.asc(), Category.id.asc()).all()
    return [(c, counts.get(c.id, 0)) for c in categories]


def get_category(db: Session, category_id: int) -> Tuple[Category, List[Product], int]:
    category = db.get(Category, category_id)
    if category is None:
        raise NotFoundError("Category not found")
    products = [p for p in category.products if p.status == ProductStatus.ACTIVE.value]
    return category, products, len(category.products)


def _ensure_unique_category_name(db: Session, name: str, exclude_id: Optional[int] = None):
    query = db.query(Category).filter(Category.name == name)
    if exclude_id is not None:
        query = query.filter(Category.id != exclude_id)
    if query.first():
        raise ConflictError("Category name must be unique")


def create_category(db: Session, data: CategoryCreate) -> Category:
    _ensure_unique_category_name(db, data.name)
    category = Category(**data.model_dump())
    db.add(category)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("Category name must be unique")
    db.refresh(category)
    logger.info("Created category %s (%s)", category.id, category.name)
    return category


def update_category(db: Session, category_id: int, data: CategoryUpdate) -> Category:
    category = db.get(Category, category_id)
    if category is None:
        raise NotFoundError("Category not found")
    changes = data.model_dump(exclude_unset=True)
    if changes.get("name"):
        _ensure_unique_category_name(db, changes["name"], exclude_id=category.id)
    for field, value in changes.items():
        if value is None and field in ("name", "sort_order", "is_active"):
            continue
        setattr(category, field, value)
    db.commit()
    db.refresh(category)
    return category


def delete_category(db: Session, category_id: int):
    category = db.get(Category, category_id)
    if category is None:
        raise NotFoundError("Category not found")
    product_count = db.query(Product).filter(Product.category_id == category_id).count()
    if product_count > 0:
        raise BusinessRuleError(
            f"Cannot delete category with {product_count} products. Remove products first."
        )
    db.delete(category)
    db.commit()
    logger.info("Deleted category %s", category_id)


# Products
def list_products(db: Session, q: ProductQuery) -> Tuple[List[Product], Pagination]:
    if q.sort_by not in SORT_FIELDS:
        raise ValidationError(f"sortBy must be one of: {', '.join(SORT_FIELDS)}")
    if q.sort_order not in ("asc", "desc"):
        raise ValidationError("sortOrder must be asc or desc")
    page = max(1, q.page)
    limit = min(max(1, q.limit), config.MAX_PAGE_SIZE)

    query = db.query(Product)
    if q.status and q.status != "all":
        query = query.filter(Product.status == q.status)
    if q.featured is not None:
        query = query.filter(Product.featured == q.featured)
    if q.category_id is not None:
        query = query.filter(Product.category_id == q.category_id)
    if q.min_price is not None:
        query = query.filter(Product.price >= q.min_price)
    if q.max_price is not None:
        query = query.filter(Product.price <= q.max_price)
    if q.search:
        query = query.filter(or_(
            Product.name.icontains(q.search, autoescape=True),
            Product.description.icontains(q.search, autoescape=True),
        ))

    total = query.count()
    column = SORT_FIELDS[q.sort_by]
    ordering = column.asc() if q.sort_order == "asc" else column.desc()
    products = query.order_by(ordering, Product.id.asc()).offset((page - 1) * limit).limit(limit).all()
    return products, paginate(page, limit, total)


def get_product(db: Session, product_id: int) -> Tuple[Product, List[Review], float]:
    product = db.get(Product, product_id)
    if product is None:
        raise NotFoundError("Product not found")
    reviews = (
        db.query(Review)
        .filter(Review.product_id == product_id, Review.status == ReviewStatus.APPROVED.value)
        .order_by(Review.created_at.desc(), Review.id.desc())
        .all()
    )
    avg_rating = sum(r.rating for r in reviews) / len(reviews) if reviews else 0
    return product, reviews, round(avg_rating, 1)


def _ensure_unique_sku_slug(db: Session, sku: Optional[str], slug: Optional[str], exclude_id: Optional[int] = None):
    clauses = []
    if sku:
        clauses.append(Product.sku == sku)
    if slug:
        clauses.append(Product.slug == slug)
    if not clauses:
        return
    query = db.query(Product).filter(or_(*clauses))
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    if query.first():
        raise ConflictError("A product with this SKU or slug already exists")


def _ensure_category(db: Session, category_id: int):
    if db.get(Category, category_id) is None:
        raise ValidationError("category does not exist")


def _build_images(images, product_name: str) -> List[ProductImage]:
    return [
        ProductImage(url=img.url, alt_text=img.alt_text or product_name, sort_order=index)
        for index, img in enumerate(images)
    ]


def _build_variants(variants) -> List[ProductVariant]:
    return [ProductVariant(**v.model_dump()) for v in variants]


def create_product(db: Session, data: ProductCreate) -> Product:
    _ensure_unique_sku_slug(db, data.sku, data.slug)
    _ensure_category(db, data.category_id)
    fields = data.model_dump(exclude={"images", "variants"})
    product = Product(**fields)
    if data.status == ProductStatus.ACTIVE.value:
        product.published_at = datetime.now(timezone.utc)
    product.images = _build_images(data.images, data.name)
    product.variants = _build_variants(data.variants)
    db.add(product)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("A product with this SKU or slug already exists")
    db.refresh(product)
    logger.info("Created product %s (%s)", product.id, product.sku)
    return product


def update_product(db: Session, product_id: int, data: ProductUpdate) -> Product:
    product = db.get(Product, product_id)
    if product is None:
        raise NotFoundError("Product not found")
    changes: Dict = data.model_dump(exclude_unset=True, exclude={"images", "variants"})
    _ensure_unique_sku_slug(db, changes.get("sku"), changes.get("slug"), exclude_id=product.id)
    if changes.get("category_id") is not None:
        _ensure_category(db, changes["category_id"])

    # stock is the only nullable field a client may explicitly clear
    required = {"name", "description", "price", "sku", "slug", "category_id", "featured", "status", "tags"}
    for field, value in changes.items():
        if value is None and field in required:
            continue
        setattr(product, field, value)

    if product.status == ProductStatus.ACTIVE.value and product.published_at is None:
        product.published_at = datetime.now(timezone.utc)
    if data.images is not None:
        product.images = _build_images(data.images, product.name)
    if data.variants is not None:
        product.variants = _build_variants(data.variants)

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("A product with this SKU or slug already exists")
    db.refresh(product)
    logger.info("Updated product %s", product.id)
    return product


def delete_product(db: Session, product_id: int):
    product = db.get(Product, product_id)
    if product is None:
        raise NotFoundError("Product not found")
    ordered = db.query(OrderItem).filter(OrderItem.product_id == product_id).count()
    if ordered:
        raise BusinessRuleError("Cannot delete a product that appears in orders")

    carts = (
        db.query(Cart)
        .join(CartItem, CartItem.cart_id == Cart.id)
        .filter(CartItem.product_id == product_id)
        .all()
    )
    db.query(CartItem).filter(CartItem.product_id == product_id).delete(synchronize_session=False)
    for cart in carts:
        db.expire(cart, ["items"])
        recalculate(db, cart)

    db.delete(product)
    db.commit()
    logger.info("Deleted product %s", product_id)
