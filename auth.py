import logging
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any

import jwt
from fastapi import Depends, Header
from passlib.context import CryptContext
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

import config
from database import get_db
from errors import AuthError, ConflictError
from models import Role, User
from schemas import LoginDTO, RegisterDTO

logger = logging.getLogger("buddiesinn")

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=config.BCRYPT_ROUNDS)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    return pwd_context.verify(password, password_hash)


def create_token(user: User) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user.id),
        "role": user.role,
        "iat": now,
        "exp": now + timedelta(minutes=config.JWT_EXP_MIN),
    }
    return jwt.encode(payload, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)


def decode_token(token: str) -> Dict[str, Any]:
    try:
        return jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise AuthError("token expired")
    except jwt.InvalidTokenError:
        raise AuthError("invalid token")


def register(db: Session, data: RegisterDTO):
    if db.query(User).filter(User.number == data.number).first():
        raise ConflictError("number already in use")
    user = User(
        number=data.number,
        user_name=data.user_name,
        phone=data.phone,
        email=data.email,
        password_hash=hash_password(data.password),
        role=Role.CUSTOMER.value,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("number already in use")
    db.refresh(user)
    logger.info("Registered user %s", user.id)
    return user, create_token(user)


def login(db: Session, data: LoginDTO):
    user = db.query(User).filter(User.number == data.number).first()
    if not user or not verify_password(data.password, user.password_hash):
        logger.warning("Failed login for number %s", data.number)
        raise AuthError("invalid credentials")
    if not user.is_active:
        raise AuthError("account is inactive")
    return user, create_token(user)


def get_current_user(
    authorization: Optional[str] = Header(default=None),
    db: Session = Depends(get_db),
) -> User:
    if not authorization:
        raise AuthError("missing token")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise AuthError("invalid authorization header")
    payload = decode_token(token)
    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise AuthError("invalid token")
    user = db.get(User, user_id)
    if not user or not user.is_active:
        raise AuthError("user not found or inactive")
    return user
