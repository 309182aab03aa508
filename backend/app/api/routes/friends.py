"""
Friend endpoints.
"""

from fastapi import APIRouter, HTTPException, status

from app.core.auth import CurrentUser
from app.core.errors import AppError
from app.core.logging import get_logger
from app.db.deps import DBSession
from app.schemas.matching import PublicUser
from app.schemas.social import (
    FriendEntry,
    FriendListResponse,
    FriendRequestCreate,
    FriendshipResponse,
)
from app.services.social import FriendService

logger = get_logger(__name__)

router = APIRouter(prefix="/friends", tags=["friends"])


def _entries(rows: list[dict]) -> list[FriendEntry]:
    return [
        FriendEntry(
            friendship=FriendshipResponse.model_validate(row["friendship"]),
            user=PublicUser.model_validate(row["user"]),
        )
        for row in rows
    ]


@router.get("", response_model=FriendListResponse)
async def list_friends(current_user: CurrentUser, db: DBSession):
    """Accepted friends, requests received and requests sent."""
    try:
        result = await FriendService(db).list_friends(current_user.id)
        return FriendListResponse(
            friends=_entries(result["friends"]),
            pending_received=_entries(result["pending_received"]),
            pending_sent=_entries(result["pending_sent"]),
        )
    except (HTTPException, AppError):
        raise
    except Exception as e:
        logger.error("friend_list_failed", user_id=current_user.id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to list friends"
        )


@router.post("/requests", response_model=FriendshipResponse, status_code=status.HTTP_201_CREATED)
async def send_friend_request(
    request: FriendRequestCreate,
    current_user: CurrentUser,
    db: DBSession,
):
    try:
        friendship = await FriendService(db).send_request(current_user, request.friend_id)
        return FriendshipResponse.model_validate(friendship)
    except (HTTPException, AppError):
        raise
    except Exception as e:
        logger.error("friend_request_failed", user_id=current_user.id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to send friend request"
        )


@router.post("/requests/{friendship_id}/accept", response_model=FriendshipResponse)
async def accept_friend_request(friendship_id: int, current_user: CurrentUser, db: DBSession):
    try:
        friendship = await FriendService(db).accept_request(current_user, friendship_id)
        return FriendshipResponse.model_validate(friendship)
    except (HTTPException, AppError):
        raise
    except Exception as e:
        logger.error("friend_accept_failed", user_id=current_user.id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to accept friend request"
        )


@router.post("/requests/{friendship_id}/decline", response_model=FriendshipResponse)
async def decline_friend_request(friendship_id: int, current_user: CurrentUser, db: DBSession):
    try:
        friendship = await FriendService(db).decline_request(current_user, friendship_id)
        return FriendshipResponse.model_validate(friendship)
    except (HTTPException, AppError):
        raise
    except Exception as e:
        logger.error("friend_decline_failed", user_id=current_user.id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to decline friend request"
        )


@router.delete("/{friendship_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_friend(friendship_id: int, current_user: CurrentUser, db: DBSession):
    """Unfriend, or withdraw a pending request."""
    try:
        await FriendService(db).remove_friend(current_user.id, friendship_id)
    except (HTTPException, AppError):
        raise
    except Exception as e:
        logger.error("friend_remove_failed", user_id=current_user.id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to remove friend"
        )
