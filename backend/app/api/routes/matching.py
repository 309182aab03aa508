"""
Matching endpoints.

- GET /matches: the caller's stored matches, best first
- GET /matching/{user1}/{user2}: MashScore breakdown for two usernames
"""

from fastapi import APIRouter, HTTPException, Query, status

from app.core.auth import CurrentUser
from app.core.errors import AppError
from app.core.logging import get_logger
from app.db.deps import DBSession
from app.schemas.matching import (
    MatchingResponse,
    MatchListItem,
    MatchListResponse,
    MatchResponse,
    PublicUser,
)
from app.services.cache import cache, user_matches_key
from app.services.matching import MatchingService
from app.services.users import UserService

logger = get_logger(__name__)

router = APIRouter(tags=["matching"])

DEFAULT_PAGE_SIZE = 20


@router.get("/matches", response_model=MatchListResponse)
async def list_matches(
    current_user: CurrentUser,
    db: DBSession,
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=100),
    min_score: float = Query(0, ge=0, le=100, alias="minScore"),
):
    """
    The caller's stored matches, best first.

    The default first page is cached at user:{id}:matches and dropped
    whenever one of the caller's match rows is written.
    """
    async def build() -> dict:
        result = await MatchingService(db).list_matches(current_user.id, page, limit, min_score)
        return MatchListResponse(
            matches=[
                MatchListItem(
                    match=MatchResponse.model_validate(entry["match"]),
                    user=PublicUser.model_validate(entry["user"]),
                )
                for entry in result["matches"]
            ],
            total=result["total"],
            page=result["page"],
            limit=result["limit"],
            total_pages=result["total_pages"],
            has_more=result["has_more"],
        ).model_dump(mode="json")

    try:
        if page == 1 and limit == DEFAULT_PAGE_SIZE and min_score == 0:
            payload = await cache.cached_fetch(user_matches_key(current_user.id), build)
        else:
            payload = await build()
        return MatchListResponse.model_validate(payload)
    except (HTTPException, AppError):
        raise
    except Exception as e:
        logger.error("match_list_failed", user_id=current_user.id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch matches"
        )


@router.get("/matching/{user1}/{user2}", response_model=MatchingResponse)
async def get_matching(user1: str, user2: str, db: DBSession):
    """
    Compatibility of two users, addressed by username.

    The score is computed once; the stored match row is refreshed with it
    when stale (see MatchingService.get_or_create_match).
    """
    try:
        users = UserService(db)
        first = await users.get_by_username(user1)
        second = await users.get_by_username(user2)

        service = MatchingService(db)
        mash_result = await service.compute(first.id, second.id)
        match = await service.get_or_create_match(first.id, second.id, result=mash_result)

        return MatchingResponse(
            user1=PublicUser.model_validate(first),
            user2=PublicUser.model_validate(second),
            match=MatchResponse.model_validate(match),
            mash_result=mash_result,
        )
    except (HTTPException, AppError):
        raise
    except Exception as e:
        logger.error("matching_failed", user1=user1, user2=user2, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to compute match"
        )
