"""
Authentication dependencies for FastAPI.

This module provides:
- OAuth2 password bearer schemes (required and optional)
- authenticate_user for the password login route
- Dependencies for protected and optionally-authenticated routes

Usage in routes:
----------------
    @router.get("/library")
    async def get_library(current_user: CurrentUser, db: DBSession):
        ...

    @router.get("/users/{username}")
    async def get_profile(username: str, viewer: OptionalUser, db: DBSession):
        # viewer is None for anonymous requests
        ...

References:
-----------
- FastAPI Security Tutorial: https://fastapi.tiangolo.com/tutorial/security/oauth2-jwt/
"""

from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.security import decode_access_token, verify_password
from app.db.deps import get_db
from app.models.user import User

# ================================
# OAuth2 Configuration
# ================================

# Extracts "Authorization: Bearer <token>"; tokenUrl feeds the Swagger "Authorize" button
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="api/v1/auth/login")

# Same extraction, but a missing header yields None instead of a 401
optional_oauth2_scheme = OAuth2PasswordBearer(tokenUrl="api/v1/auth/login", auto_error=False)


# ================================
# Authentication Functions
# ================================

async def authenticate_user(db: AsyncSession, email: str, password: str) -> User | None:
    """
    Authenticate a user by email and password.

    Returns None for an unknown email, a Google-only account (no password
    hash) or a wrong password, so the caller cannot tell which one failed.
    """
    result = await db.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()

    if not user or not user.hashed_password:
        return None

    if not verify_password(password, user.hashed_password):
        return None

    return user


async def _user_from_token(db: AsyncSession, token: str) -> User | None:
    payload = decode_access_token(token)
    if payload is None:
        return None

    # "sub" carries the user's email
    email: str | None = payload.get("sub")
    if email is None:
        return None

    result = await db.execute(select(User).where(User.email == email))
    return result.scalar_one_or_none()


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db)
) -> User:
    """
    Load the user named by the bearer token.

    Raises:
        HTTPException 401: invalid/expired token or unknown user. The same
        error is used for every failure so callers learn nothing about why.
    """
    user = await _user_from_token(db, token)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


async def get_current_active_user(
    current_user: User = Depends(get_current_user)
) -> User:
    """Same as get_current_user, but disabled accounts get 400 "Inactive user"."""
    if not current_user.is_active:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Inactive user"
        )
    return current_user


async def get_optional_user(
    token: str | None = Depends(optional_oauth2_scheme),
    db: AsyncSession = Depends(get_db)
) -> User | None:
    """
    Resolve the viewer for routes that also serve anonymous requests.

    A missing, invalid or expired token, or an inactive account, yields None.
    """
    if not token:
        return None

    user = await _user_from_token(db, token)
    if user is None or not user.is_active:
        return None
    return user


CurrentUser = Annotated[User, Depends(get_current_active_user)]
OptionalUser = Annotated[User | None, Depends(get_optional_user)]
