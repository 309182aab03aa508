"""
Security utilities for authentication.

- Password hashing and verification (bcrypt)
- JWT access token creation and validation (python-jose)
- Opaque state tokens for third-party OAuth redirects

References:
-----------
- FastAPI Security: https://fastapi.tiangolo.com/tutorial/security/oauth2-jwt/
- JWT Standard: https://jwt.io/introduction
"""

from datetime import datetime, timedelta, timezone
from typing import Any

import bcrypt
from jose import JWTError, jwt

from app.core.config import settings


# ================================
# Password Hashing
# ================================

def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a plaintext password against a bcrypt hash.

    bcrypt only looks at the first 72 bytes of the password.
    """
    return bcrypt.checkpw(
        plain_password.encode("utf-8")[:72],
        hashed_password.encode("utf-8"),
    )


def get_password_hash(password: str) -> str:
    """Hash a plaintext password with a fresh salt."""
    hashed = bcrypt.hashpw(password.encode("utf-8")[:72], bcrypt.gensalt())
    return hashed.decode("utf-8")


# ================================
# JWT Tokens
# ================================

def create_access_token(data: dict[str, Any], expires_delta: timedelta | None = None) -> str:
    """
    Create a signed JWT access token.

    Args:
        data: Claims to include. Should contain "sub" (the user's email).
        expires_delta: Lifetime; defaults to ACCESS_TOKEN_EXPIRE_MINUTES.

    Returns:
        Encoded JWT string.
    """
    to_encode = data.copy()

    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(
            minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES
        )

    to_encode.update({"exp": expire})

    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict[str, Any] | None:
    """Decode and verify a JWT. Returns the claims, or None if invalid/expired."""
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        return None


# ================================
# OAuth state
# ================================

OAUTH_STATE_EXPIRE_MINUTES = 10


def create_oauth_state(user_id: int, provider: str, extra: dict[str, Any] | None = None) -> str:
    """
    Create a signed, short-lived state value for a third-party OAuth redirect.

    The state carries the user id so the callback can attribute the tokens
    without server-side session storage.
    """
    claims: dict[str, Any] = {"uid": user_id, "provider": provider}
    if extra:
        claims.update(extra)
    return create_access_token(claims, expires_delta=timedelta(minutes=OAUTH_STATE_EXPIRE_MINUTES))


def decode_oauth_state(state: str, provider: str) -> dict[str, Any] | None:
    """Validate a state value produced by create_oauth_state()."""
    claims = decode_access_token(state)
    if not claims or claims.get("provider") != provider or "uid" not in claims:
        return None
    return claims
