"""
Pydantic schemas for user profiles and user search.
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from app.models.media import MediaType
from app.schemas.auth import USERNAME_PATTERN
from app.schemas.matching import PublicUser


class LibraryStats(BaseModel):
    total: int
    by_type: Dict[str, int]
    average_rating: Optional[float] = None


class TopRatedItem(BaseModel):
    id: int
    media_type: MediaType
    media_id: int
    rating: float
    title: str
    poster_url: Optional[str] = None


class UserProfileResponse(BaseModel):
    """
    GET /users/{username}

    compatibility is the viewer's MashScore with this user; null when
    anonymous or viewing one's own profile.
    """

    user: PublicUser
    stats: LibraryStats
    top_rated: List[TopRatedItem] = Field(default_factory=list)
    compatibility: Optional[int] = None


class UserSearchItem(BaseModel):
    user: PublicUser
    compatibility: Optional[int] = None


class UserSearchResponse(BaseModel):
    users: List[UserSearchItem]
    total: int
    page: int
    limit: int
    total_pages: int
    has_more: bool


class UserUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=100)
    username: Optional[str] = Field(None, pattern=USERNAME_PATTERN)
    bio: Optional[str] = Field(None, max_length=500)
    avatar: Optional[str] = Field(None, max_length=1000)
