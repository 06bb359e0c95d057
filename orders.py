"""
Order placement from the user's cart.

`create_order` is the one multi-table write in the service: it re-validates the
cart against live product rows, writes the order with its item snapshots,
decrements stock and empties the cart, all in a single transaction. Either all
of that is committed or none of it is.
"""
import logging
import random
import time
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

import config
from carts import line_total
from errors import (
    ConflictError,
    EmptyCartError,
    InsufficientStockError,
    NotFoundError,
    ProductUnavailableError,
)
from models import Cart, CartItem, Order, OrderItem, Product, ProductStatus, User
from schemas import OrderCreate

logger = logging.getLogger("buddiesinn")

CENT = Decimal("0.01")


def generate_order_number() -> str:
    rnd = random.randint(1000, 9999)
    return f"ORD-{int(time.time() * 1000)}-{rnd}"


def compute_totals(subtotal: Decimal) -> Dict[str, Decimal]:
    subtotal = Decimal(subtotal).quantize(CENT, rounding=ROUND_HALF_UP)
    tax = (subtotal * config.TAX_RATE).quantize(CENT, rounding=ROUND_HALF_UP)
    shipping = config.SHIPPING_FLAT.quantize(CENT) if subtotal > 0 else Decimal("0.00")
    discount = Decimal("0.00")
    total = subtotal + tax + shipping - discount
    return {"subtotal": subtotal, "tax": tax, "shipping": shipping, "discount": discount, "total": total}


def _lock_products(db: Session, product_ids: List[int]) -> Dict[int, Product]:
    rows = (
        db.query(Product)
        .filter(Product.id.in_(product_ids))
        .with_for_update()
        .populate_existing()
        .all()
    )
    return {p.id: p for p in rows}


def create_order(db: Session, user: User, data: Optional[OrderCreate] = None) -> Order:
    data = data or OrderCreate()
    cart = db.query(Cart).filter(Cart.user_id == user.id).with_for_update().first()
    items: List[CartItem] = list(cart.items) if cart else []
    if not items:
        logger.warning("Order rejected for user %s: cart is empty", user.id)
        raise EmptyCartError()

    products = _lock_products(db, [it.product_id for it in items])
    for it in items:
        product = products.get(it.product_id)
        if product is None or product.status != ProductStatus.ACTIVE.value:
            name = product.name if product else str(it.product_id)
            logger.warning("Order rejected for user %s: product %s not active", user.id, name)
            raise ProductUnavailableError(name)
        if product.stock is not None and product.stock < it.quantity:
            logger.warning("Order rejected for user %s: insufficient stock for %s", user.id, product.name)
            raise InsufficientStockError(product.name)

    subtotal = sum((line_total(it.price, it.quantity) for it in items), Decimal("0"))
    totals = compute_totals(subtotal)

    shipping_address = data.shipping_address.model_dump() if data.shipping_address else None
    billing_address = data.billing_address.model_dump() if data.billing_address else shipping_address

    order = Order(
        order_number=generate_order_number(),
        user_id=user.id,
        customer_name=user.user_name or user.number,
        shipping_address=shipping_address,
        billing_address=billing_address,
        notes=data.notes,
        items=[
            OrderItem(
                product_id=it.product_id,
                name=products[it.product_id].name,
                quantity=it.quantity,
                price=it.price,
                total=line_total(it.price, it.quantity),
            )
            for it in items
        ],
        **totals,
    )
    db.add(order)

    for it in items:
        product = products[it.product_id]
        if product.stock is not None:
            product.stock = max(0, product.stock - it.quantity)

    cart.items.clear()
    cart.subtotal = Decimal("0")

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.exception("Order number collision for user %s", user.id)
        raise ConflictError("order number collision, please retry")
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to persist order for user %s", user.id)
        raise

    db.refresh(order)
    logger.info("Created order %s for user %s, total %s", order.order_number, user.id, order.total)
    return order


def list_my_orders(db: Session, user: User) -> List[Order]:
    return (
        db.query(Order)
        .filter(Order.user_id == user.id)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .all()
    )


def get_order(db: Session, user: User, order_id: int) -> Order:
    order = db.query(Order).filter(Order.id == order_id, Order.user_id == user.id).first()
    if order is None:
        raise NotFoundError("order not found")
    return order
