"""
Password hashing and access-token helpers.

Tokens carry the user's ``id`` (used for identity resolution) plus
``username`` and ``email`` for convenience; only ``id`` is trusted on the
way back in, and the user row is always re-read from the database.
"""
from datetime import datetime, timedelta, timezone

import jwt
from passlib.context import CryptContext

from conduit.config import settings

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, password_hash: str) -> bool:
    return pwd_context.verify(plain_password, password_hash)


def create_access_token(user, expires_delta: timedelta | None = None) -> str:
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    payload = {
        "id": user.id,
        "username": user.username,
        "email": user.email,
        "exp": expire,
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict:
    """Return the token payload; raises ``jwt.PyJWTError`` when invalid or expired."""
    return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
