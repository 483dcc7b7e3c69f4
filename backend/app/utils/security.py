"""Security utilities: password hashing, JWT access tokens, random tokens."""

from __future__ import annotations

import hashlib
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt
from passlib.context import CryptContext

from app.config import get_settings
from app.utils.errors import AuthError, ErrorCode

settings = get_settings()
logger = logging.getLogger(__name__)

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=12,
)


# =============================================================================
# Password Utilities
# =============================================================================


def hash_password(password: str) -> str:
    """Hash a password using bcrypt.

    The password is pre-hashed with SHA-256 so inputs longer than bcrypt's
    72-byte limit are not silently truncated.
    """
    password_sha256 = hashlib.sha256(password.encode()).hexdigest()
    return pwd_context.hash(password_sha256)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    password_sha256 = hashlib.sha256(plain_password.encode()).hexdigest()
    return pwd_context.verify(password_sha256, hashed_password)


def generate_reset_token() -> str:
    """32 random bytes, hex encoded."""
    return secrets.token_hex(32)


# =============================================================================
# JWT Token Utilities
# =============================================================================


def create_access_token(
    user_id: str,
    is_admin: bool = False,
    expires_delta: timedelta | None = None,
) -> str:
    """Create a JWT access token.

    Args:
        user_id: User ID stored in ``sub``
        is_admin: Elevated admin tier
        expires_delta: Custom expiration time

    Returns:
        Encoded JWT token string
    """
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.jwt_access_token_expire_minutes)

    now = datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "type": "access",
        "adm": is_admin,
        "iat": now,
        "exp": now + expires_delta,
    }

    return jwt.encode(
        payload,
        settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
    )


def verify_access_token(token: str) -> dict[str, Any]:
    """Verify an access token and return its payload.

    Raises:
        AuthError: AUTH_REQUIRED when the token is missing, expired or invalid
    """
    if not token:
        raise AuthError(ErrorCode.AUTH_REQUIRED, "Authentication required")

    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
            options={"require": ["exp", "sub", "iat"]},
        )
    except jwt.ExpiredSignatureError:
        logger.debug("Access token verification failed: token expired")
        raise AuthError(ErrorCode.AUTH_REQUIRED, "Token has expired")
    except JWTError as e:
        logger.warning(f"Access token verification failed: {type(e).__name__}")
        raise AuthError(ErrorCode.AUTH_REQUIRED, "Invalid token")

    if payload.get("type") != "access":
        raise AuthError(ErrorCode.AUTH_REQUIRED, "Invalid token type")

    return payload
