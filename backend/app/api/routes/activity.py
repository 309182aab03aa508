"""
Activity feed endpoints.

Anonymous viewers see every public entry; signed-in viewers choose between
their own, their friends' or both.
"""

from fastapi import APIRouter, HTTPException, Query, status

from app.core.auth import CurrentUser, OptionalUser
from app.core.errors import AppError
from app.core.logging import get_logger
from app.db.deps import DBSession
from app.schemas.activity import ActivityCreate, ActivityEntry, ActivityFeedResponse, ActivityResponse
from app.schemas.matching import PublicUser
from app.services.activity import ActivityService

logger = get_logger(__name__)

router = APIRouter(prefix="/activity", tags=["activity"])


def _server_error(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=detail
    )


@router.get("", response_model=ActivityFeedResponse)
async def get_feed(
    viewer: OptionalUser,
    db: DBSession,
    filter: str = Query("all", description="all, friends or own"),
):
    try:
        entries = await ActivityService(db).list_feed(
            viewer_id=viewer.id if viewer else None,
            feed_filter=filter,
        )
        return ActivityFeedResponse(activities=[
            ActivityEntry(
                activity=ActivityResponse.model_validate(entry["activity"]),
                user=PublicUser.model_validate(entry["user"]) if entry["user"] else None,
            )
            for entry in entries
        ])
    except (HTTPException, AppError):
        raise
    except Exception as e:
        logger.error("activity_feed_failed", error=str(e))
        raise _server_error("Failed to load activity feed")


@router.post("", response_model=ActivityResponse, status_code=status.HTTP_201_CREATED)
async def create_activity(
    data: ActivityCreate,
    current_user: CurrentUser,
    db: DBSession,
):
    try:
        activity = await ActivityService(db).create(
            current_user.id,
            data.activity_type,
            data.content,
            is_public=data.is_public,
        )
        return ActivityResponse.model_validate(activity)
    except (HTTPException, AppError):
        raise
    except Exception as e:
        logger.error("activity_create_failed", user_id=current_user.id, error=str(e))
        raise _server_error("Failed to create activity")
