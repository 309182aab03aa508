"""Business logic services."""

from app.services.cache import CacheService
from app.services.library import LibraryService
from app.services.matching import MatchingService, calculate_mash_score
from app.services.recommendations import RecommendationService

__all__ = [
    "CacheService",
    "LibraryService",
    "MatchingService",
    "calculate_mash_score",
    "RecommendationService",
]
