"""
Pydantic schemas for recommendations.
"""

from typing import List, Literal

from pydantic import BaseModel

from app.models.media import MediaType
from app.schemas.library import MediaItemResponse

RecommendationSource = Literal["collaborative", "content", "similar_users"]


class Recommendation(BaseModel):
    media_type: MediaType
    media: MediaItemResponse
    reason: str
    score: float
    source: RecommendationSource


class RecommendationListResponse(BaseModel):
    recommendations: List[Recommendation]
    total: int
