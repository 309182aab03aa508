"""
Dashboard endpoint.
"""

from fastapi import APIRouter, HTTPException, status

from app.api.routes.library import to_library_item
from app.core.auth import CurrentUser
from app.core.errors import AppError
from app.core.logging import get_logger
from app.db.deps import DBSession
from app.schemas.dashboard import DashboardResponse, DashboardStats, MediaCounts, SuggestedMatch
from app.schemas.matching import MatchListItem, MatchResponse, PublicUser
from app.services.dashboard import DashboardService

logger = get_logger(__name__)

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("", response_model=DashboardResponse)
async def get_dashboard(current_user: CurrentUser, db: DBSession):
    """Library counts, best matches, a few scored suggestions and recent library additions."""
    try:
        summary = await DashboardService(db).summary(current_user.id)
        stats = summary["stats"]
        return DashboardResponse(
            stats=DashboardStats(
                media=MediaCounts(**stats["media"]),
                integrations=stats["integrations"],
                total_matches=stats["total_matches"],
            ),
            recent_matches=[
                MatchListItem(
                    match=MatchResponse.model_validate(entry["match"]),
                    user=PublicUser.model_validate(entry["user"]),
                )
                for entry in summary["recent_matches"]
            ],
            suggested_matches=[
                SuggestedMatch(
                    user=PublicUser.model_validate(s["user"]),
                    score=s["score"],
                    shared_count=s["shared_count"],
                )
                for s in summary["suggested_matches"]
            ],
            recent_activity=[to_library_item(entry, media) for entry, media in summary["recent_activity"]],
            connected_integrations=summary["connected_integrations"],
        )
    except (HTTPException, AppError):
        raise
    except Exception as e:
        logger.error("dashboard_failed", user_id=current_user.id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to load dashboard"
        )
