"""JWT token helpers + password hashing (passlib)."""
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt
from passlib.context import CryptContext

from findmyestate.core.config import settings

# pbkdf2_sha256 is pure passlib; no native bcrypt build needed
pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

RESET_TOKEN_PURPOSE = "password_reset"


def hash_password(plain: str) -> str:
    """Hash a plain-text password."""
    return pwd_context.hash(plain)


def verify_password(plain: str, hashed: str) -> bool:
    """Verify a plain-text password against a hash."""
    return pwd_context.verify(plain, hashed)


def _encode(payload: dict[str, Any]) -> str:
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def _decode(token: str) -> dict[str, Any] | None:
    try:
        return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None


def create_access_token(sub: str, user_id: str, name: str | None = None) -> str:
    """Create a JWT access token."""
    expire = datetime.now(timezone.utc) + timedelta(days=settings.jwt_expiry_days)
    return _encode({
        "sub": sub,
        "user_id": user_id,
        "exp": expire,
        "name": name or sub,
    })


def create_reset_token(user_id: str, email: str) -> str:
    """Create a short-lived JWT for password reset (1 hour)."""
    expire = datetime.now(timezone.utc) + timedelta(hours=1)
    return _encode({
        "sub": email,
        "user_id": user_id,
        "purpose": RESET_TOKEN_PURPOSE,
        "exp": expire,
    })


def decode_reset_token(token: str) -> dict[str, Any] | None:
    """Decode password reset token. Returns payload only if purpose=password_reset."""
    payload = _decode(token)
    if not payload or payload.get("purpose") != RESET_TOKEN_PURPOSE:
        return None
    return payload


def decode_access_token(token: str) -> dict[str, Any] | None:
    """Decode and validate JWT; return payload or None if invalid (reset tokens are refused)."""
    payload = _decode(token)
    if not payload or payload.get("purpose") == RESET_TOKEN_PURPOSE:
        return None
    return payload
