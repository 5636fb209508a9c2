"""Security utilities for JWT, password hashing and reset tokens."""
import hashlib
import secrets
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Optional, Tuple

from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from smartstudy.core.config import Settings
from smartstudy.core.exceptions import InvalidTokenError, TokenExpiredError


@lru_cache(maxsize=None)
def _crypt_context(rounds: int) -> CryptContext:
    context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=rounds)
    # Force passlib to initialize the bcrypt backend with a short password so
    # backend detection never runs against a user's long password.
    context.hash("__init__")
    return context


def _truncate_for_bcrypt(password: str) -> str:
    """Truncate password to bcrypt's 72-byte limit.

    Truncation happens on the UTF-8 encoded bytes and decodes with 'ignore' so
    a multi-byte sequence is never split.
    """
    if not isinstance(password, str):
        return password
    b = password.encode("utf-8")[:72]
    return b.decode("utf-8", "ignore")


def get_password_hash(password: str, settings: Settings) -> str:
    """Hash a password."""
    return _crypt_context(settings.BCRYPT_ROUNDS).hash(_truncate_for_bcrypt(password))


def verify_password(plain_password: str, hashed_password: str, settings: Settings) -> bool:
    """Verify a plain password against a hashed password."""
    return _crypt_context(settings.BCRYPT_ROUNDS).verify(
        _truncate_for_bcrypt(plain_password), hashed_password
    )


def create_access_token(data: dict, settings: Settings, expires_delta: Optional[timedelta] = None) -> str:
    """Create a JWT access token."""
    to_encode = data.copy()

    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def create_user_token(user, settings: Settings) -> str:
    """Token carrying the user's id, email and role."""
    return create_access_token(
        {"sub": str(user.id), "email": user.email, "role": user.role},
        settings,
    )


def decode_token(token: str, settings: Settings) -> dict:
    """Decode and validate a JWT token."""
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except ExpiredSignatureError:
        raise TokenExpiredError()
    except JWTError:
        raise InvalidTokenError()


def expires_in_label(settings: Settings) -> str:
    minutes = settings.ACCESS_TOKEN_EXPIRE_MINUTES
    if minutes % (60 * 24) == 0:
        return f"{minutes // (60 * 24)}d"
    if minutes % 60 == 0:
        return f"{minutes // 60}h"
    return f"{minutes}m"


def hash_reset_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def generate_reset_token(settings: Settings) -> Tuple[str, str, datetime]:
    """Return (raw token for the link, digest to store, naive UTC expiry)."""
    token = secrets.token_hex(32)
    expires = datetime.utcnow() + timedelta(minutes=settings.PASSWORD_RESET_EXPIRE_MINUTES)
    return token, hash_reset_token(token), expires
