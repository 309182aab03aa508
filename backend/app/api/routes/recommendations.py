"""
Recommendation endpoint.
"""

from fastapi import APIRouter, HTTPException, Query, status

from app.core.auth import CurrentUser
from app.core.errors import AppError, ValidationError
from app.core.logging import get_logger
from app.db.deps import DBSession
from app.models.media import MediaType
from app.schemas.recommendations import RecommendationListResponse
from app.services.recommendations import RecommendationService

logger = get_logger(__name__)

router = APIRouter(prefix="/recommendations", tags=["recommendations"])

RECOMMENDATION_TYPES = ("all", "collaborative", "content", "similar_users")
MAX_LIMIT = 100


@router.get("", response_model=RecommendationListResponse)
async def get_recommendations(
    current_user: CurrentUser,
    db: DBSession,
    limit: int = Query(20),
    type: str = Query("all"),
    media_type: MediaType | None = Query(None, description="Only return one media type"),
):
    """
    Personal recommendations.

    type=all blends the collaborative, content-based and similar-users
    strategies; any other type runs just that strategy. media_type narrows
    the candidates before they are ranked and cut to `limit`.

    Raises:
        ValidationError 400: limit outside 1..100 or unknown type
    """
    if limit < 1 or limit > MAX_LIMIT:
        raise ValidationError(f"Limit must be between 1 and {MAX_LIMIT}")
    if type not in RECOMMENDATION_TYPES:
        raise ValidationError(
            f"Invalid type. Must be one of: {', '.join(RECOMMENDATION_TYPES)}"
        )

    try:
        recommendations = await RecommendationService(db).get_recommendations(
            current_user.id, limit=limit, rec_type=type, media_type=media_type
        )
        return RecommendationListResponse(
            recommendations=recommendations,
            total=len(recommendations),
        )
    except (HTTPException, AppError):
        raise
    except Exception as e:
        logger.error("recommendations_failed", user_id=current_user.id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to generate recommendations"
        )
