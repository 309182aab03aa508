"""
Pydantic schemas for the MashScore engine and the matching API.

LibraryEntry / MashResult are also the engine's own input/output types, so
the scoring function stays free of ORM objects.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.models.media import MediaType


class PublicUser(BaseModel):
    """Profile fields safe to show to other users (no email)."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    name: Optional[str] = None
    avatar: Optional[str] = None
    bio: Optional[str] = None


# ========================================
# Engine types
# ========================================

class LibraryEntry(BaseModel):
    """One library row with its media resolved, as seen by the scorer."""

    media_type: MediaType
    media_id: int
    rating: Optional[float] = None
    title: str = ""
    genres: List[str] = Field(default_factory=list)
    poster_url: Optional[str] = None

    @property
    def key(self) -> tuple[str, int]:
        return (self.media_type.value, self.media_id)


class SharedItem(BaseModel):
    media_type: MediaType
    media_id: int
    title: str
    poster_url: Optional[str] = None
    user1_rating: Optional[float] = None
    user2_rating: Optional[float] = None


class MatchRecommendation(BaseModel):
    media_type: MediaType
    media_id: int
    title: str
    poster_url: Optional[str] = None
    rating: float
    reason: str


class MashResult(BaseModel):
    score: int = Field(..., ge=0, le=100)
    shared_count: int
    shared_items: List[SharedItem] = Field(default_factory=list)
    recommendations: List[MatchRecommendation] = Field(default_factory=list)
    overlap_score: float = 0.0
    rating_score: float = 0.0
    genre_score: float = 0.0


# ========================================
# API responses
# ========================================

class MatchResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user1_id: int
    user2_id: int
    similarity_score: float
    shared_count: int
    created_at: datetime
    updated_at: datetime


class MatchingResponse(BaseModel):
    """GET /matching/{user1}/{user2}"""

    user1: PublicUser
    user2: PublicUser
    match: MatchResponse
    mash_result: MashResult


class MatchListItem(BaseModel):
    match: MatchResponse
    user: PublicUser = Field(..., description="The other user of the pair")


class MatchListResponse(BaseModel):
    matches: List[MatchListItem]
    total: int
    page: int
    limit: int
    total_pages: int
    has_more: bool
