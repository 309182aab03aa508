"""
Taste profile endpoints: taste DNA, taste twins and influencers.
"""

from typing import Optional

from fastapi import APIRouter, HTTPException, status

from app.core.auth import CurrentUser
from app.core.errors import AppError
from app.core.logging import get_logger
from app.db.deps import DBSession
from app.schemas.matching import PublicUser
from app.schemas.taste import (
    InfluencersResponse,
    TasteDNAResponse,
    TasteInfluencer,
    TasteTwin,
    TasteTwinsResponse,
)
from app.services.taste import TasteService

logger = get_logger(__name__)

router = APIRouter(tags=["taste"])


def _server_error(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=detail
    )


@router.get("/taste-dna", response_model=Optional[TasteDNAResponse])
async def get_taste_dna(current_user: CurrentUser, db: DBSession):
    """The caller's taste profile; null while the library is empty."""
    try:
        profile = await TasteService(db).taste_dna(current_user.id)
        return TasteDNAResponse(**profile) if profile is not None else None
    except (HTTPException, AppError):
        raise
    except Exception as e:
        logger.error("taste_dna_failed", user_id=current_user.id, error=str(e))
        raise _server_error("Failed to build taste profile")


@router.get("/taste-twins", response_model=TasteTwinsResponse)
async def get_taste_twins(current_user: CurrentUser, db: DBSession):
    try:
        twins = await TasteService(db).taste_twins(current_user.id)
        return TasteTwinsResponse(twins=[
            TasteTwin(**{**t, "user": PublicUser.model_validate(t["user"])})
            for t in twins
        ])
    except (HTTPException, AppError):
        raise
    except Exception as e:
        logger.error("taste_twins_failed", user_id=current_user.id, error=str(e))
        raise _server_error("Failed to find taste twins")


@router.get("/taste-twins/influencers", response_model=InfluencersResponse)
async def get_influencers(current_user: CurrentUser, db: DBSession):
    try:
        influencers = await TasteService(db).influencers(current_user.id)
        return InfluencersResponse(influencers=[
            TasteInfluencer(**{**i, "user": PublicUser.model_validate(i["user"])})
            for i in influencers
        ])
    except (HTTPException, AppError):
        raise
    except Exception as e:
        logger.error("influencers_failed", user_id=current_user.id, error=str(e))
        raise _server_error("Failed to find influencers")
