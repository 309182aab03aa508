"""
Authentication schemas (Pydantic models for request/response).

References:
-----------
- Pydantic: https://docs.pydantic.dev/latest/
- FastAPI Request Body: https://fastapi.tiangolo.com/tutorial/body/
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

USERNAME_PATTERN = r"^[A-Za-z0-9_.-]{3,30}$"


# ================================
# Token Schemas
# ================================

class Token(BaseModel):
    """
    JWT token response.

    Client sends it back as:
        Authorization: Bearer <access_token>
    """
    access_token: str = Field(
        ...,
        description="JWT access token",
        examples=["eyJhbGciOiJIUzI1NiIsInR5cCI6IkpXVCJ9..."]
    )
    token_type: str = Field(
        default="bearer",
        description="Token type (always 'bearer' for JWT)"
    )


# ================================
# User Registration/Login
# ================================

class UserLogin(BaseModel):
    email: EmailStr = Field(..., examples=["alice@example.com"])
    password: str = Field(..., min_length=8, examples=["SecurePassword123!"])


class UserRegister(BaseModel):
    """
    Example request:
        POST /api/v1/auth/register
        {
            "email": "alice@example.com",
            "username": "alice",
            "password": "SecurePassword123!",
            "name": "Alice Johnson"
        }
    """
    email: EmailStr = Field(..., examples=["alice@example.com"])
    username: str = Field(
        ...,
        pattern=USERNAME_PATTERN,
        description="3-30 characters: letters, digits, '_', '.', '-'",
        examples=["alice"]
    )
    password: str = Field(..., min_length=8, max_length=100)
    name: Optional[str] = Field(None, max_length=100, examples=["Alice Johnson"])


# ================================
# User Response Schemas
# ================================

class UserResponse(BaseModel):
    """Own-account view (includes email). Never includes the password hash."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    username: str
    name: Optional[str] = None
    avatar: Optional[str] = None
    bio: Optional[str] = None
    is_active: bool
    created_at: datetime
    last_login: Optional[datetime] = None


class UserWithToken(BaseModel):
    user: UserResponse = Field(..., description="User information")
    access_token: str = Field(..., description="JWT access token")
    token_type: str = Field(default="bearer", description="Token type")


# ================================
# Google OAuth Schemas
# ================================

class GoogleAuthRequest(BaseModel):
    """
    Google ID token obtained by the frontend's Google Sign-In.

        POST /api/v1/auth/google
        {"id_token": "eyJhbGciOiJSUzI1NiIs..."}
    """
    id_token: str = Field(..., min_length=1, description="Google ID token (JWT)")
