"""
Buddies Inn API Schemas

Request bodies are validated by the *Create/*Update models before they reach the
service layer. The *Out models are built from ORM objects (`from_attributes=True`)
and are what ends up under `data` in every response envelope.
"""
from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Optional, Dict, Any
from pydantic import BaseModel, ConfigDict, Field, EmailStr


ProductStatusName = Literal["draft", "active", "archived", "out_of_stock"]

# upper bounds keep values inside a 32-bit INTEGER column
MAX_ID = 2**31 - 1
MAX_ITEM_QUANTITY = 10_000


class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# Identity
class RegisterDTO(BaseModel):
    number: str = Field(..., min_length=3, max_length=32, description="phone number, unique login id")
    password: str = Field(..., min_length=6, max_length=128)
    user_name: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = None
    email: Optional[EmailStr] = None


class LoginDTO(BaseModel):
    number: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class UserOut(ORMModel):
    id: int
    number: str
    user_name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    role: str
    is_active: bool
    created_at: datetime


class AuthOut(BaseModel):
    user: UserOut
    token: str


# Categories
class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    description: Optional[str] = None
    image: Optional[str] = None
    sort_order: int = Field(0, ge=-MAX_ID, le=MAX_ID)
    is_active: bool = True


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=120)
    description: Optional[str] = None
    image: Optional[str] = None
    sort_order: Optional[int] = Field(None, ge=-MAX_ID, le=MAX_ID)
    is_active: Optional[bool] = None


class CategorySummary(ORMModel):
    id: int
    name: str
    description: Optional[str] = None


class CategoryOut(ORMModel):
    id: int
    name: str
    description: Optional[str] = None
    image: Optional[str] = None
    sort_order: int
    is_active: bool
    created_at: datetime
    updated_at: datetime
    product_count: int = 0


# Products
class ProductImageIn(BaseModel):
    url: str
    alt_text: Optional[str] = None


class ProductImageOut(ORMModel):
    id: int
    url: str
    alt_text: Optional[str] = None
    sort_order: int


class ProductVariantIn(BaseModel):
    name: str
    value: str
    price: Optional[Decimal] = Field(None, ge=0)
    stock: Optional[int] = Field(None, ge=0, le=MAX_ID)
    sku: Optional[str] = None


class ProductVariantOut(ORMModel):
    id: int
    name: str
    value: str
    price: Optional[float] = None
    stock: Optional[int] = None
    sku: Optional[str] = None


class ProductCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1)
    price: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)
    compare_price: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    sku: str = Field(..., min_length=1, max_length=64)
    slug: str = Field(..., min_length=1, max_length=200)
    stock: Optional[int] = Field(0, ge=0, le=MAX_ID, description="null disables stock tracking")
    category_id: int = Field(..., ge=1, le=MAX_ID)
    brand: Optional[str] = None
    tags: List[str] = []
    featured: bool = False
    status: ProductStatusName = "draft"
    images: List[ProductImageIn] = []
    variants: List[ProductVariantIn] = []


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, min_length=1)
    price: Optional[Decimal] = Field(None, gt=0, max_digits=10, decimal_places=2)
    compare_price: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    sku: Optional[str] = Field(None, min_length=1, max_length=64)
    slug: Optional[str] = Field(None, min_length=1, max_length=200)
    stock: Optional[int] = Field(None, ge=0, le=MAX_ID)
    category_id: Optional[int] = Field(None, ge=1, le=MAX_ID)
    brand: Optional[str] = None
    tags: Optional[List[str]] = None
    featured: Optional[bool] = None
    status: Optional[ProductStatusName] = None
    images: Optional[List[ProductImageIn]] = None
    variants: Optional[List[ProductVariantIn]] = None


class ProductOut(ORMModel):
    id: int
    name: str
    description: str
    price: float
    compare_price: Optional[float] = None
    sku: str
    slug: str
    stock: Optional[int] = None
    brand: Optional[str] = None
    tags: List[str] = []
    featured: bool
    status: str
    category_id: int
    category: Optional[CategorySummary] = None
    images: List[ProductImageOut] = []
    variants: List[ProductVariantOut] = []
    published_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class ReviewOut(ORMModel):
    id: int
    product_id: int
    user_id: int
    user_name: Optional[str] = None
    rating: int
    title: Optional[str] = None
    comment: Optional[str] = None
    verified: bool
    status: str
    created_at: datetime


class ProductDetailOut(ProductOut):
    avg_rating: float = 0
    review_count: int = 0
    reviews: List[ReviewOut] = []


class CategoryDetailOut(CategoryOut):
    products: List[ProductOut] = []


class Pagination(BaseModel):
    current_page: int
    total_pages: int
    total_items: int
    items_per_page: int
    has_next_page: bool
    has_prev_page: bool


# Reviews
class ReviewCreate(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    title: Optional[str] = Field(None, max_length=200)
    comment: Optional[str] = None


# Cart
class CartItemCreate(BaseModel):
    product_id: int = Field(..., ge=1, le=MAX_ID)
    quantity: int = Field(1, ge=1, le=MAX_ITEM_QUANTITY)


class CartItemUpdate(BaseModel):
    quantity: int = Field(..., ge=1, le=MAX_ITEM_QUANTITY)


class CartProductOut(ORMModel):
    id: int
    name: str
    price: float
    stock: Optional[int] = None
    featured: bool
    status: str
    category: Optional[CategorySummary] = None


class CartItemOut(ORMModel):
    id: int
    product_id: int
    quantity: int
    price: float
    product: CartProductOut
    created_at: datetime


class CartOut(ORMModel):
    id: int
    user_id: int
    subtotal: float
    items: List[CartItemOut] = []
    updated_at: datetime


# Orders
class Address(BaseModel):
    full_name: str
    line1: str
    line2: Optional[str] = None
    city: str
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: str = "US"
    phone: Optional[str] = None


class OrderCreate(BaseModel):
    shipping_address: Optional[Address] = None
    billing_address: Optional[Address] = None
    notes: Optional[str] = Field(None, max_length=1000)


class OrderItemOut(ORMModel):
    id: int
    product_id: int
    name: str
    quantity: int
    price: float
    total: float


class OrderOut(ORMModel):
    id: int
    order_number: str
    user_id: int
    customer_name: str
    status: str
    subtotal: float
    tax: float
    shipping: float
    discount: float
    total: float
    shipping_address: Optional[Dict[str, Any]] = None
    billing_address: Optional[Dict[str, Any]] = None
    notes: Optional[str] = None
    items: List[OrderItemOut]
    created_at: datetime
