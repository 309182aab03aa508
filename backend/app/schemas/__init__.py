"""
Pydantic schemas for request/response validation.

Import all schemas here for easy access.
"""

from app.schemas.auth import (
    GoogleAuthRequest,
    Token,
    UserLogin,
    UserRegister,
    UserResponse,
    UserWithToken,
)
from app.schemas.matching import LibraryEntry, MashResult, PublicUser

__all__ = [
    # Authentication
    "Token",
    "UserLogin",
    "UserRegister",
    "UserResponse",
    "UserWithToken",
    "GoogleAuthRequest",
    # Matching
    "PublicUser",
    "LibraryEntry",
    "MashResult",
]
