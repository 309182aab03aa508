"""
Social proof endpoints: what the caller's taste network is rating.
"""

from fastapi import APIRouter, HTTPException, Query, status

from app.core.auth import CurrentUser
from app.core.errors import AppError
from app.core.logging import get_logger
from app.db.deps import DBSession
from app.schemas.taste import (
    ItemSocialProofResponse,
    NetworkActivity,
    NetworkActivityResponse,
    TrendingItem,
    TrendingResponse,
)
from app.services.social_proof import SocialProofService

logger = get_logger(__name__)

router = APIRouter(prefix="/social-proof", tags=["social-proof"])


def _server_error(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=detail
    )


@router.get("/activity", response_model=NetworkActivityResponse)
async def get_network_activity(current_user: CurrentUser, db: DBSession):
    try:
        activities = await SocialProofService(db).network_activity(current_user.id)
        return NetworkActivityResponse(activities=[NetworkActivity(**a) for a in activities])
    except (HTTPException, AppError):
        raise
    except Exception as e:
        logger.error("network_activity_failed", user_id=current_user.id, error=str(e))
        raise _server_error("Failed to load network activity")


@router.get("/item", response_model=ItemSocialProofResponse)
async def get_item_social_proof(
    current_user: CurrentUser,
    db: DBSession,
    media_type: str = Query(...),
    media_id: int = Query(..., ge=1),
):
    try:
        proof = await SocialProofService(db).item_proof(current_user.id, media_type, media_id)
        return ItemSocialProofResponse(**proof)
    except (HTTPException, AppError):
        raise
    except Exception as e:
        logger.error("item_social_proof_failed", user_id=current_user.id, error=str(e))
        raise _server_error("Failed to load item social proof")


@router.get("/trending", response_model=TrendingResponse)
async def get_trending(current_user: CurrentUser, db: DBSession):
    try:
        trending = await SocialProofService(db).trending(current_user.id)
        return TrendingResponse(trending=[TrendingItem(**t) for t in trending])
    except (HTTPException, AppError):
        raise
    except Exception as e:
        logger.error("network_trending_failed", user_id=current_user.id, error=str(e))
        raise _server_error("Failed to load trending items")
