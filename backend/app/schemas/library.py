"""
Pydantic schemas for media items and the user library.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.models.library import MediaStatus
from app.models.media import MediaType


# ========================================
# Media Schemas
# ========================================

class MediaItemResponse(BaseModel):
    """
    A media row of any type. Per-type columns are present only for the
    matching type (author/isbn for books, year for movies ...).
    """

    model_config = ConfigDict(from_attributes=True)

    id: int
    source: str
    source_item_id: str
    title: str
    genre: List[str] = Field(default_factory=list)
    poster_url: Optional[str] = None

    author: Optional[str] = None
    isbn: Optional[str] = None
    num_episodes: Optional[int] = None
    num_chapters: Optional[int] = None
    year: Optional[int] = None
    artist: Optional[str] = None
    album: Optional[str] = None
    duration_ms: Optional[int] = None


class MediaDetailResponse(BaseModel):
    media_type: MediaType
    media: MediaItemResponse


# ========================================
# Library Schemas
# ========================================

class LibraryItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    media_type: MediaType
    media_id: int
    rating: Optional[float] = None
    status: Optional[MediaStatus] = None
    progress: Optional[int] = None
    progress_total: Optional[int] = None
    is_favorite: bool = False
    tags: List[str] = Field(default_factory=list)
    consumed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    media: Optional[MediaItemResponse] = None


class LibraryResponse(BaseModel):
    items: List[LibraryItemResponse]
    total: int


class LibraryItemCreate(BaseModel):
    media_type: MediaType
    media_id: int = Field(..., ge=1)
    rating: Optional[float] = None
    status: Optional[str] = None


class RatingUpdate(BaseModel):
    # Range is checked by the library service so the error is a 400, not a 422
    rating: Optional[float] = None


class StatusUpdate(BaseModel):
    status: str


class ProgressUpdate(BaseModel):
    progress: Optional[int] = None
    progress_total: Optional[int] = None


class FavoriteUpdate(BaseModel):
    is_favorite: bool


# ========================================
# Search Schemas
# ========================================

class SearchUserResult(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    name: Optional[str] = None
    avatar: Optional[str] = None


class SearchMediaResult(BaseModel):
    media_type: MediaType
    media: MediaItemResponse


class SearchResponse(BaseModel):
    query: str
    users: List[SearchUserResult] = Field(default_factory=list)
    media: List[SearchMediaResult] = Field(default_factory=list)
