"""
Pydantic schemas for taste DNA, taste twins, influencers and social proof.
"""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel

from app.models.media import MediaType
from app.schemas.matching import PublicUser


class RatingTrendPoint(BaseModel):
    month: str
    avg: float


class TasteDNAResponse(BaseModel):
    top_genres: Dict[str, List[str]]
    favorite_genres_overall: List[str]
    avg_rating: float
    rating_distribution: Dict[str, int]
    total_items_count: int
    media_type_distribution: Dict[str, int]
    most_active_media_type: str
    items_added_last_30_days: int
    avg_rating_trend: List[RatingTrendPoint]
    genre_diversity_score: float
    rating_generosity_score: float
    activity_score: float
    rating_pattern: str
    consumption_style: str


class TasteTwin(BaseModel):
    user: PublicUser
    compatibility_score: int
    shared_favorites: int
    shared_genres: List[str]
    influence_score: int
    recommendations_from_them: int


class TasteTwinsResponse(BaseModel):
    twins: List[TasteTwin]


class TasteInfluencer(BaseModel):
    user: PublicUser
    influence_percentage: int
    shared_items: int
    compatibility: int


class InfluencersResponse(BaseModel):
    influencers: List[TasteInfluencer]


# ========================================
# Social proof
# ========================================

class NetworkActivity(BaseModel):
    id: str
    user_id: int
    username: str
    action: str
    media_type: MediaType
    media_id: int
    media_title: str
    media_cover: Optional[str] = None
    rating: Optional[float] = None
    timestamp: datetime


class NetworkActivityResponse(BaseModel):
    activities: List[NetworkActivity]


class FriendRating(BaseModel):
    user_id: int
    username: str
    rating: float


class ItemSocialProofResponse(BaseModel):
    friend_count: int
    friends: List[FriendRating]
    avg_rating: float
    has_more: bool


class TrendingItem(BaseModel):
    media_type: MediaType
    media_id: int
    title: str
    cover: Optional[str] = None
    genre: List[str] = []
    friend_count: int
    avg_rating: float
    author: Optional[str] = None
    artist: Optional[str] = None
    year: Optional[int] = None


class TrendingResponse(BaseModel):
    trending: List[TrendingItem]
