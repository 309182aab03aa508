"""
User profile and user search endpoints.
"""

from fastapi import APIRouter, HTTPException, Query, status

from app.core.auth import CurrentUser, OptionalUser
from app.core.errors import AppError
from app.core.logging import get_logger
from app.db.deps import DBSession
from app.schemas.auth import UserResponse
from app.schemas.matching import PublicUser
from app.schemas.users import (
    LibraryStats,
    TopRatedItem,
    UserProfileResponse,
    UserSearchItem,
    UserSearchResponse,
    UserUpdate,
)
from app.services.users import UserService

logger = get_logger(__name__)

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/search", response_model=UserSearchResponse)
async def search_users(
    current_user: CurrentUser,
    db: DBSession,
    q: str = Query("", max_length=100),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    sort: str = Query("username"),
):
    """
    Find other users by username or name.

    sort=similarity ranks the results by the caller's MashScore with each
    user; sort=username (default) is alphabetical.
    """
    try:
        result = await UserService(db).search_users(current_user, q, page, limit, sort)
        return UserSearchResponse(
            users=[
                UserSearchItem(
                    user=PublicUser.model_validate(entry["user"]),
                    compatibility=entry["compatibility"],
                )
                for entry in result["users"]
            ],
            total=result["total"],
            page=result["page"],
            limit=result["limit"],
            total_pages=result["total_pages"],
            has_more=result["has_more"],
        )
    except (HTTPException, AppError):
        raise
    except Exception as e:
        logger.error("user_search_failed", user_id=current_user.id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to search users"
        )


@router.patch("/me", response_model=UserResponse)
async def update_me(
    changes: UserUpdate,
    current_user: CurrentUser,
    db: DBSession,
):
    """Update name, username, bio or avatar. A taken username is a 409."""
    try:
        user = await UserService(db).update_profile(
            current_user, changes.model_dump(exclude_unset=True)
        )
        return UserResponse.model_validate(user)
    except (HTTPException, AppError):
        raise
    except Exception as e:
        logger.error("profile_update_failed", user_id=current_user.id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update profile"
        )


@router.get("/{username}", response_model=UserProfileResponse)
async def get_profile(
    username: str,
    viewer: OptionalUser,
    db: DBSession,
):
    """
    Public profile with library stats and top-rated items.

    Signed-in viewers looking at someone else also get their MashScore with
    that user as `compatibility`.
    """
    try:
        profile = await UserService(db).get_profile(username, viewer)
        return UserProfileResponse(
            user=PublicUser.model_validate(profile["user"]),
            stats=LibraryStats(**profile["stats"]),
            top_rated=[TopRatedItem(**item) for item in profile["top_rated"]],
            compatibility=profile["compatibility"],
        )
    except (HTTPException, AppError):
        raise
    except Exception as e:
        logger.error("profile_fetch_failed", username=username, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to load profile"
        )
