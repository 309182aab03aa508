"""
Pydantic schemas for compatibility insights.
"""

from typing import List

from pydantic import BaseModel, Field


class CompatibilityInsights(BaseModel):
    summary: str
    highlights: List[str] = Field(default_factory=list)
    patterns: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)


class InsightsResponse(BaseModel):
    insights: CompatibilityInsights
    mash_score: int
    shared_count: int
