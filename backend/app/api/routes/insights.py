"""
Compatibility insights endpoint.
"""

from fastapi import APIRouter, HTTPException, status

from app.core.errors import AppError
from app.core.logging import get_logger
from app.db.deps import DBSession
from app.schemas.insights import InsightsResponse
from app.services.insights import InsightsGenerator
from app.services.matching import MatchingService
from app.services.users import UserService

logger = get_logger(__name__)

router = APIRouter(prefix="/insights", tags=["insights"])


@router.get("/{user1}/{user2}", response_model=InsightsResponse)
async def get_insights(user1: str, user2: str, db: DBSession):
    """
    Written compatibility insights for two usernames.

    Generated by the LLM when ANTHROPIC_API_KEY is set; otherwise (or when
    the call fails) a rule-based summary is returned.
    """
    try:
        users = UserService(db)
        first = await users.get_by_username(user1)
        second = await users.get_by_username(user2)

        mash_result = await MatchingService(db).compute(first.id, second.id)
        insights = await InsightsGenerator().generate(first, second, mash_result)

        return InsightsResponse(
            insights=insights,
            mash_score=mash_result.score,
            shared_count=mash_result.shared_count,
        )
    except (HTTPException, AppError):
        raise
    except Exception as e:
        logger.error("insights_failed", user1=user1, user2=user2, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to generate insights"
        )
