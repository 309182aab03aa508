"""
Authentication endpoints.

This module provides:
- Login (OAuth2 password flow, email in the "username" field)
- User registration (password-based)
- Get current user profile
- Google sign-in (ID token posted by the frontend)

References:
-----------
- FastAPI Security: https://fastapi.tiangolo.com/tutorial/security/oauth2-jwt/
- OAuth2 Password Flow: https://oauth.net/2/grant-types/password/
"""

import re
from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import authenticate_user, get_current_active_user
from app.core.config import settings
from app.core.google_oauth import check_google_oauth_configured, verify_google_token
from app.core.logging import get_logger
from app.core.security import create_access_token, get_password_hash
from app.db.base import utcnow
from app.db.deps import get_db
from app.models.user import User
from app.schemas.auth import (
    GoogleAuthRequest,
    Token,
    UserRegister,
    UserResponse,
    UserWithToken,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["authentication"])

USERNAME_INVALID_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


def _issue_token(user: User) -> str:
    return create_access_token(
        data={"sub": user.email},
        expires_delta=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
    )


async def _available_username(db: AsyncSession, email: str) -> str:
    """Derive a free username from the local part of an email address."""
    base = USERNAME_INVALID_CHARS.sub("", email.split("@", 1)[0])[:24] or "user"
    if len(base) < 3:
        base = f"{base}user"

    candidate = base
    suffix = 1
    while True:
        taken = await db.execute(select(User.id).where(User.username == candidate))
        if taken.scalar_one_or_none() is None:
            return candidate
        suffix += 1
        candidate = f"{base}{suffix}"


# ================================
# OAuth2 Password Flow Login
# ================================

@router.post("/login", response_model=Token)
async def login(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: AsyncSession = Depends(get_db)
):
    """
    Login with email and password (OAuth2 password flow).

    Request Format:
    ---------------
    Content-Type: application/x-www-form-urlencoded

    username=alice@example.com&password=secret

    OAuth2 requires the field to be called "username"; it carries the email.

    Raises:
        HTTPException 401: Unknown email, wrong password or Google-only account
        HTTPException 400: Inactive user
    """
    user = await authenticate_user(db, form_data.username, form_data.password)
    if user is None:
        logger.warning("login_failed", email=form_data.username)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        logger.warning("login_inactive_user", user_id=user.id)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Inactive user"
        )

    user.last_login = utcnow()
    await db.commit()

    logger.info("login_succeeded", user_id=user.id)
    return Token(access_token=_issue_token(user), token_type="bearer")


# ================================
# User Registration
# ================================

@router.post("/register", response_model=UserWithToken, status_code=status.HTTP_201_CREATED)
async def register(
    user_data: UserRegister,
    db: AsyncSession = Depends(get_db)
):
    """
    Create a password account and return it with an access token.

    Raises:
        HTTPException 409: Email or username already registered
        HTTPException 422: Invalid data (handled by Pydantic)
    """
    existing = await db.execute(select(User.id).where(User.email == user_data.email))
    if existing.scalar_one_or_none() is not None:
        logger.warning("registration_email_taken", email=user_data.email)
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Email already registered"
        )

    existing = await db.execute(select(User.id).where(User.username == user_data.username))
    if existing.scalar_one_or_none() is not None:
        logger.warning("registration_username_taken", username=user_data.username)
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Username already taken"
        )

    new_user = User(
        email=user_data.email,
        username=user_data.username,
        name=user_data.name,
        hashed_password=get_password_hash(user_data.password),
        is_active=True,
        last_login=utcnow(),
    )
    db.add(new_user)
    await db.commit()
    await db.refresh(new_user)

    logger.info("user_registered", user_id=new_user.id, username=new_user.username)

    return UserWithToken(
        user=UserResponse.model_validate(new_user),
        access_token=_issue_token(new_user),
        token_type="bearer"
    )


# ================================
# Get Current User
# ================================

@router.get("/me", response_model=UserResponse)
async def read_users_me(
    current_user: User = Depends(get_current_active_user)
):
    """Own account, including the email address."""
    return UserResponse.model_validate(current_user)


# ================================
# Google Sign-In
# ================================

@router.post("/google", response_model=UserWithToken)
async def google_oauth(
    token_data: GoogleAuthRequest,
    db: AsyncSession = Depends(get_db)
):
    """
    Sign in (or sign up) with a Google ID token.

    Flow:
    -----
    1. Frontend runs Google Sign-In and receives an ID token
    2. Frontend posts {"id_token": "..."} here
    3. We verify the token with google-auth
    4. Existing account (by email): refresh name/avatar if empty, log in
    5. New email: create a password-less account with a username derived
       from the email

    Raises:
        HTTPException 501: Google sign-in is not configured
        HTTPException 401: Invalid Google token
        HTTPException 400: Inactive user
    """
    if not check_google_oauth_configured():
        raise HTTPException(
            status_code=status.HTTP_501_NOT_IMPLEMENTED,
            detail="Google sign-in is not configured"
        )

    google_user = await verify_google_token(token_data.id_token)

    result = await db.execute(select(User).where(User.email == google_user["email"]))
    user = result.scalar_one_or_none()

    if user is None:
        user = User(
            email=google_user["email"],
            username=await _available_username(db, google_user["email"]),
            name=google_user.get("name") or None,
            avatar=google_user.get("picture") or None,
            hashed_password=None,
            is_active=True,
        )
        db.add(user)
        logger.info("google_user_created", email=google_user["email"])
    else:
        if not user.is_active:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Inactive user"
            )
        if not user.name and google_user.get("name"):
            user.name = google_user["name"]
        if not user.avatar and google_user.get("picture"):
            user.avatar = google_user["picture"]

    user.last_login = utcnow()
    await db.commit()
    await db.refresh(user)

    logger.info("google_login_succeeded", user_id=user.id)

    return UserWithToken(
        user=UserResponse.model_validate(user),
        access_token=_issue_token(user),
        token_type="bearer"
    )
