"""
Pydantic schemas for the dashboard.
"""

from typing import List

from pydantic import BaseModel

from app.schemas.library import LibraryItemResponse
from app.schemas.matching import MatchListItem, PublicUser


class MediaCounts(BaseModel):
    total: int
    book: int = 0
    anime: int = 0
    manga: int = 0
    movie: int = 0
    music: int = 0


class DashboardStats(BaseModel):
    media: MediaCounts
    integrations: int
    total_matches: int


class SuggestedMatch(BaseModel):
    user: PublicUser
    score: int
    shared_count: int


class DashboardResponse(BaseModel):
    stats: DashboardStats
    recent_matches: List[MatchListItem]
    suggested_matches: List[SuggestedMatch]
    recent_activity: List[LibraryItemResponse]
    connected_integrations: List[str]
