import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, Dict, Any

from fastapi import FastAPI, Depends, Path, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import DisconnectionError, IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

import auth
import carts
import catalog
import config
import orders
import reviews
from database import Base, engine, get_db, ping
from errors import AppError, DependencyError, InternalError
from models import User
from schemas import (
    MAX_ID,
    AuthOut,
    CartItemCreate,
    CartItemUpdate,
    CartOut,
    CategoryCreate,
    CategoryDetailOut,
    CategoryOut,
    CategoryUpdate,
    LoginDTO,
    OrderCreate,
    OrderOut,
    ProductCreate,
    ProductDetailOut,
    ProductOut,
    ProductUpdate,
    RegisterDTO,
    ReviewCreate,
    ReviewOut,
    UserOut,
)

# Logging
logging.basicConfig(level=config.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s %(message)s")
logger = logging.getLogger("buddiesinn")


@asynccontextmanager
async def lifespan(app: FastAPI):
    Base.metadata.create_all(bind=engine)
    logger.info("%s API started (%s)", config.APP_NAME, config.APP_ENV)
    yield


app = FastAPI(title=f"{config.APP_NAME} API", version="1.0.0", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in config.ALLOWED_ORIGINS] if config.ALLOWED_ORIGINS else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def ok(data: Any = None, message: Optional[str] = None, **extra) -> Dict[str, Any]:
    body: Dict[str, Any] = {"success": True}
    if data is not None:
        body["data"] = data
    if message:
        body["message"] = message
    body.update(extra)
    return body


def fail(status_code: int, error: str, message: Optional[str] = None) -> JSONResponse:
    content: Dict[str, Any] = {"success": False, "error": error}
    if message:
        content["message"] = message
    return JSONResponse(status_code=status_code, content=content)


# Error handlers
@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return fail(exc.status_code, exc.message)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        error = f"{location}: {first.get('msg')}" if location else str(first.get("msg"))
    else:
        error = "invalid request"
    return fail(400, error)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return fail(exc.status_code, str(exc.detail))


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    if isinstance(exc, IntegrityError):
        return fail(400, "Duplicate entry", "A record with this information already exists")
    if isinstance(exc, (OperationalError, DisconnectionError)):
        logger.error("Database unavailable: %s", exc)
        return fail(503, "Database unavailable")
    logger.exception("Database error: %s", exc)
    return fail(500, "Internal server error", str(exc) if config.DEBUG else None)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error: %s", exc)
    error = InternalError("Internal server error")
    return fail(error.status_code, error.message, str(exc) if config.DEBUG else None)


# Health
@app.get("/")
def root():
    return {"name": config.APP_NAME, "status": "ok"}


@app.get("/health")
def health(db: Session = Depends(get_db)):
    try:
        ping(db)
    except SQLAlchemyError as exc:
        logger.error("Health check failed: %s", exc)
        raise DependencyError("database unreachable")
    return ok({
        "status": "ok",
        "database": "connected",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    })


# Auth
@app.post("/auth/register", status_code=201)
def register(data: RegisterDTO, db: Session = Depends(get_db)):
    user, token = auth.register(db, data)
    return ok(AuthOut(user=UserOut.model_validate(user), token=token), "registered")


@app.post("/auth/login")
def login(data: LoginDTO, db: Session = Depends(get_db)):
    user, token = auth.login(db, data)
    return ok(AuthOut(user=UserOut.model_validate(user), token=token))


@app.get("/auth/me")
def me(user: User = Depends(auth.get_current_user)):
    return ok(UserOut.model_validate(user))


# Categories
def _category_out(category, product_count: int) -> CategoryOut:
    return CategoryOut.model_validate(category).model_copy(update={"product_count": product_count})


@app.get("/categories")
def list_categories(db: Session = Depends(get_db)):
    return ok([_category_out(c, n) for c, n in catalog.list_categories(db)])


@app.get("/categories/{category_id}")
def get_category(category_id: int = Path(..., ge=1, le=MAX_ID), db: Session = Depends(get_db)):
    category, products, product_count = catalog.get_category(db, category_id)
    out = CategoryDetailOut.model_validate(category).model_copy(update={
        "product_count": product_count,
        "products": [ProductOut.model_validate(p) for p in products],
    })
    return ok(out)


@app.post("/categories", status_code=201)
def create_category(data: CategoryCreate, db: Session = Depends(get_db), user: User = Depends(auth.get_current_user)):
    category = catalog.create_category(db, data)
    return ok(_category_out(category, 0), "category created")


@app.put("/categories/{category_id}")
def update_category(data: CategoryUpdate, category_id: int = Path(..., ge=1, le=MAX_ID),
                    db: Session = Depends(get_db), user: User = Depends(auth.get_current_user)):
    category = catalog.update_category(db, category_id, data)
    return ok(_category_out(category, len(category.products)), "category updated")


@app.delete("/categories/{category_id}")
def delete_category(category_id: int = Path(..., ge=1, le=MAX_ID),
                    db: Session = Depends(get_db), user: User = Depends(auth.get_current_user)):
    catalog.delete_category(db, category_id)
    return ok(message="Category deleted")


# Products
@app.get("/products")
def list_products(page: int = Query(1, ge=1, le=MAX_ID), limit: int = Query(config.DEFAULT_PAGE_SIZE, ge=1),
                  search: Optional[str] = None, sortBy: str = "createdAt", sortOrder: str = "desc",
                  status: Optional[str] = "active", featured: Optional[bool] = None,
                  categoryId: Optional[int] = Query(None, ge=1, le=MAX_ID), minPrice: Optional[Decimal] = None,
                  maxPrice: Optional[Decimal] = None, db: Session = Depends(get_db)):
    query = catalog.ProductQuery(
        page=page, limit=limit, search=search, sort_by=sortBy, sort_order=sortOrder.lower(),
        status=status, featured=featured, category_id=categoryId, min_price=minPrice, max_price=maxPrice,
    )
    products, pagination = catalog.list_products(db, query)
    return ok([ProductOut.model_validate(p) for p in products], pagination=pagination)


@app.get("/products/{product_id}")
def get_product(product_id: int = Path(..., ge=1, le=MAX_ID), db: Session = Depends(get_db)):
    product, product_reviews, avg_rating = catalog.get_product(db, product_id)
    out = ProductDetailOut.model_validate(product).model_copy(update={
        "avg_rating": avg_rating,
        "review_count": len(product_reviews),
        "reviews": [ReviewOut.model_validate(r) for r in product_reviews],
    })
    return ok(out)


@app.post("/products", status_code=201)
def create_product(data: ProductCreate, db: Session = Depends(get_db), user: User = Depends(auth.get_current_user)):
    product = catalog.create_product(db, data)
    return ok(ProductOut.model_validate(product), "Product created successfully")


@app.put("/products/{product_id}")
def update_product(data: ProductUpdate, product_id: int = Path(..., ge=1, le=MAX_ID),
                   db: Session = Depends(get_db), user: User = Depends(auth.get_current_user)):
    product = catalog.update_product(db, product_id, data)
    return ok(ProductOut.model_validate(product), "Product updated successfully")


@app.delete("/products/{product_id}")
def delete_product(product_id: int = Path(..., ge=1, le=MAX_ID),
                   db: Session = Depends(get_db), user: User = Depends(auth.get_current_user)):
    catalog.delete_product(db, product_id)
    return ok(message="Product deleted")


# Reviews
@app.get("/products/{product_id}/reviews")
def list_reviews(product_id: int = Path(..., ge=1, le=MAX_ID), db: Session = Depends(get_db)):
    return ok([ReviewOut.model_validate(r) for r in reviews.list_product_reviews(db, product_id)])


@app.post("/products/{product_id}/reviews", status_code=201)
def create_review(data: ReviewCreate, product_id: int = Path(..., ge=1, le=MAX_ID),
                  db: Session = Depends(get_db), user: User = Depends(auth.get_current_user)):
    review = reviews.create_review(db, user, product_id, data)
    return ok(ReviewOut.model_validate(review), "review created")


@app.delete("/reviews/{review_id}")
def delete_review(review_id: int = Path(..., ge=1, le=MAX_ID),
                  db: Session = Depends(get_db), user: User = Depends(auth.get_current_user)):
    reviews.delete_review(db, user, review_id)
    return ok(message="review deleted")


# Cart
@app.get("/cart")
def get_cart(db: Session = Depends(get_db), user: User = Depends(auth.get_current_user)):
    return ok(CartOut.model_validate(carts.get_cart(db, user)))


@app.post("/cart/items")
def add_cart_item(data: CartItemCreate, db: Session = Depends(get_db), user: User = Depends(auth.get_current_user)):
    cart = carts.add_item(db, user, data.product_id, data.quantity)
    return ok(CartOut.model_validate(cart), "item added")


@app.put("/cart/items/{item_id}")
def update_cart_item(data: CartItemUpdate, item_id: int = Path(..., ge=1, le=MAX_ID),
                     db: Session = Depends(get_db), user: User = Depends(auth.get_current_user)):
    cart = carts.update_item(db, user, item_id, data.quantity)
    return ok(CartOut.model_validate(cart), "item updated")


@app.delete("/cart/items/{item_id}")
def remove_cart_item(item_id: int = Path(..., ge=1, le=MAX_ID),
                     db: Session = Depends(get_db), user: User = Depends(auth.get_current_user)):
    cart = carts.remove_item(db, user, item_id)
    return ok(CartOut.model_validate(cart), "item removed")


@app.delete("/cart")
def clear_cart(db: Session = Depends(get_db), user: User = Depends(auth.get_current_user)):
    return ok(CartOut.model_validate(carts.clear_cart(db, user)), "cart cleared")


# Orders
@app.post("/orders", status_code=201)
def create_order(data: Optional[OrderCreate] = None, db: Session = Depends(get_db),
                 user: User = Depends(auth.get_current_user)):
    order = orders.create_order(db, user, data)
    return ok(OrderOut.model_validate(order), "order created")


@app.get("/orders")
def list_orders(db: Session = Depends(get_db), user: User = Depends(auth.get_current_user)):
    return ok([OrderOut.model_validate(o) for o in orders.list_my_orders(db, user)])


@app.get("/orders/{order_id}")
def get_order(order_id: int = Path(..., ge=1, le=MAX_ID),
              db: Session = Depends(get_db), user: User = Depends(auth.get_current_user)):
    return ok(OrderOut.model_validate(orders.get_order(db, user, order_id)))


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=config.PORT)
