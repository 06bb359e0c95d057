import os
from decimal import Decimal

APP_NAME = os.getenv("APP_NAME", "Buddies Inn")
APP_ENV = os.getenv("APP_ENV", "production")
DEBUG = APP_ENV == "development"
PORT = int(os.getenv("PORT", "8000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Database
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./buddiesinn.db")

# Security
JWT_SECRET = os.getenv("JWT_SECRET", "dev_secret")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXP_MIN = int(os.getenv("JWT_EXP_MIN", str(60 * 24 * 7)))  # 7 days
BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))
ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "*").split(",")

# Catalog
DEFAULT_PAGE_SIZE = int(os.getenv("DEFAULT_PAGE_SIZE", "10"))
MAX_PAGE_SIZE = int(os.getenv("MAX_PAGE_SIZE", "100"))

# Orders
TAX_RATE = Decimal(os.getenv("TAX_RATE", "0"))
SHIPPING_FLAT = Decimal(os.getenv("SHIPPING_FLAT", "0"))

# Reviews
REVIEW_DEFAULT_STATUS = os.getenv("REVIEW_DEFAULT_STATUS", "approved")
