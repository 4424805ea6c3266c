"""
Security Utilities

PIN hashing, constant-time comparison, opaque token generation and the
admin session JWT issued once every login step has passed.

Uses pwdlib with bcrypt for the PIN comparison value.
"""

import secrets
from datetime import UTC, datetime, timedelta
from typing import Any

import jwt
from pwdlib import PasswordHash
from pwdlib.hashers.bcrypt import BcryptHasher

from portfolio_api.config import get_settings

# We explicitly use BcryptHasher to avoid requiring argon2 dependency
password_hash = PasswordHash((BcryptHasher(),))

# bcrypt only reads the first 72 bytes
_BCRYPT_MAX_BYTES = 72

ADMIN_SESSION_TYPE = "admin_session"


def hash_pin(pin: str) -> str:
    """
    Hash a PIN using bcrypt.

    Args:
        pin: Plain text PIN

    Returns:
        Hashed PIN string
    """
    return password_hash.hash(pin)


def verify_pin(plain_pin: str, pin_hash: str) -> bool:
    """
    Verify a PIN against its bcrypt hash.

    Args:
        plain_pin: The PIN to verify
        pin_hash: The stored hash to compare against

    Returns:
        True if the PIN matches, False otherwise
    """
    if len(plain_pin.encode()) > _BCRYPT_MAX_BYTES:
        return False
    return password_hash.verify(plain_pin, pin_hash)


def constant_time_equals(left: str, right: str) -> bool:
    """Compare two strings without leaking where they differ."""
    return secrets.compare_digest(left.encode(), right.encode())


def generate_token() -> str:
    """
    Generate an opaque bearer token.

    Returns:
        URL-safe base64 encoded random string (43 characters)
    """
    return secrets.token_urlsafe(32)


def create_admin_session_token(
    subject: str, method: str, expires_delta: timedelta | None = None
) -> tuple[str, datetime]:
    """
    Create the JWT granted after the final login step.

    Args:
        subject: Admin principal identifier
        method: Possession factor used for this login
        expires_delta: Optional custom lifetime

    Returns:
        Tuple of (encoded JWT, expiry time)
    """
    settings = get_settings()

    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.admin_session_expire_minutes)
    expire = datetime.now(UTC) + expires_delta

    to_encode = {
        "sub": subject,
        "type": ADMIN_SESSION_TYPE,
        "amr": ["pin", method, "human_check"],
        "exp": expire,
        "iss": settings.jwt_issuer,
        "aud": settings.jwt_audience,
    }

    token = jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)
    return token, expire


def decode_admin_session_token(token: str) -> dict[str, Any] | None:
    """
    Decode and validate an admin session JWT.

    Returns:
        Decoded payload or None if invalid, expired or of another type
    """
    settings = get_settings()

    try:
        payload = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.algorithm],
            issuer=settings.jwt_issuer,
            audience=settings.jwt_audience,
        )
    except jwt.InvalidTokenError:
        return None

    if payload.get("type") != ADMIN_SESSION_TYPE:
        return None
    return payload
