"""
Shopping cart operations.

Each user owns exactly one cart row, created on first access and kept for the
lifetime of the account. Every mutation ends with `recalculate`, which re-reads
the cart's items and stores the full sum as the cart subtotal in the same
transaction as the mutation.
"""
import logging
from decimal import Decimal

from sqlalchemy.orm import Session

from errors import BusinessRuleError, NotFoundError
from models import Cart, CartItem, Product, ProductStatus, User

logger = logging.getLogger("buddiesinn")


def line_total(price, quantity: int) -> Decimal:
    return Decimal(price) * quantity


def ensure_cart(db: Session, user_id: int, lock: bool = False) -> Cart:
    query = db.query(Cart).filter(Cart.user_id == user_id)
    if lock:
        query = query.with_for_update()
    cart = query.first()
    if cart is None:
        cart = Cart(user_id=user_id, subtotal=Decimal("0"))
        db.add(cart)
        db.flush()
        logger.info("Created cart %s for user %s", cart.id, user_id)
    return cart


def recalculate(db: Session, cart: Cart) -> Cart:
    db.flush()
    items = db.query(CartItem).filter(CartItem.cart_id == cart.id).all()
    cart.subtotal = sum((line_total(it.price, it.quantity) for it in items), Decimal("0"))
    return cart


def _commit(db: Session, cart: Cart) -> Cart:
    db.commit()
    db.refresh(cart)
    return cart


def _check_stock(product: Product, quantity: int):
    if product.stock is not None and product.stock < quantity:
        logger.warning("Insufficient stock for product %s: %s < %s", product.id, product.stock, quantity)
        raise BusinessRuleError("insufficient stock")


def _owned_item(db: Session, user: User, item_id: int) -> CartItem:
    item = db.get(CartItem, item_id)
    if item is None or item.cart.user_id != user.id:
        raise NotFoundError("cart item not found")
    return item


def get_cart(db: Session, user: User) -> Cart:
    cart = ensure_cart(db, user.id)
    return _commit(db, cart)


def add_item(db: Session, user: User, product_id: int, quantity: int) -> Cart:
    product = db.get(Product, product_id)
    if product is None:
        raise NotFoundError("product not found")
    if product.status != ProductStatus.ACTIVE.value:
        raise BusinessRuleError("product not active")
    _check_stock(product, quantity)

    cart = ensure_cart(db, user.id, lock=True)
    existing = (
        db.query(CartItem)
        .filter(CartItem.cart_id == cart.id, CartItem.product_id == product_id)
        .first()
    )
    if existing:
        new_qty = existing.quantity + quantity
        _check_stock(product, new_qty)
        existing.quantity = new_qty
        existing.price = product.price
    else:
        db.add(CartItem(cart_id=cart.id, product_id=product_id, quantity=quantity, price=product.price))

    recalculate(db, cart)
    return _commit(db, cart)


def update_item(db: Session, user: User, item_id: int, quantity: int) -> Cart:
    item = _owned_item(db, user, item_id)
    _check_stock(item.product, quantity)
    item.quantity = quantity
    cart = recalculate(db, item.cart)
    return _commit(db, cart)


def remove_item(db: Session, user: User, item_id: int) -> Cart:
    item = _owned_item(db, user, item_id)
    cart = item.cart
    cart.items.remove(item)
    recalculate(db, cart)
    return _commit(db, cart)


def clear_cart(db: Session, user: User) -> Cart:
    cart = ensure_cart(db, user.id, lock=True)
    db.query(CartItem).filter(CartItem.cart_id == cart.id).delete(synchronize_session=False)
    db.expire(cart, ["items"])
    recalculate(db, cart)
    return _commit(db, cart)
