"""
Queue endpoints.

The caller manages their own queue; friends can see it through
/queue/user/{username} and vote on its items.
"""

from typing import Any

from fastapi import APIRouter, HTTPException, Query, status

from app.core.auth import CurrentUser
from app.core.errors import AppError
from app.core.logging import get_logger
from app.db.deps import DBSession
from app.schemas.library import MediaItemResponse
from app.schemas.matching import PublicUser
from app.schemas.queue import (
    FriendQueueResponse,
    QueueEntry,
    QueueItemCreate,
    QueueItemResponse,
    QueueItemUpdate,
    QueueResponse,
    QueueVoter,
    QueueVoteResponse,
    QueueVotesResponse,
)
from app.services.queue import QueueService

logger = get_logger(__name__)

router = APIRouter(prefix="/queue", tags=["queue"])


def _server_error(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=detail
    )


def _entries(entries: list[dict[str, Any]]) -> list[QueueEntry]:
    return [
        QueueEntry(
            item=QueueItemResponse.model_validate(entry["item"]),
            media=MediaItemResponse.model_validate(entry["media"]) if entry["media"] else None,
            vote_count=entry["vote_count"],
            has_voted=entry["has_voted"],
        )
        for entry in entries
    ]


@router.get("", response_model=QueueResponse)
async def get_queue(
    current_user: CurrentUser,
    db: DBSession,
    sort: str = Query("position", description="position, priority or random"),
):
    try:
        entries = await QueueService(db).list_queue(current_user.id, sort=sort)
        return QueueResponse(queue=_entries(entries))
    except (HTTPException, AppError):
        raise
    except Exception as e:
        logger.error("queue_fetch_failed", user_id=current_user.id, error=str(e))
        raise _server_error("Failed to load queue")


@router.post("", response_model=QueueItemResponse, status_code=status.HTTP_201_CREATED)
async def add_to_queue(
    data: QueueItemCreate,
    current_user: CurrentUser,
    db: DBSession,
):
    try:
        item = await QueueService(db).add_item(
            current_user.id,
            data.media_type,
            data.media_id,
            priority=data.priority,
            notes=data.notes,
        )
        return QueueItemResponse.model_validate(item)
    except (HTTPException, AppError):
        raise
    except Exception as e:
        logger.error("queue_add_failed", user_id=current_user.id, error=str(e))
        raise _server_error("Failed to add to queue")


@router.get("/user/{username}", response_model=FriendQueueResponse)
async def get_friend_queue(
    username: str,
    current_user: CurrentUser,
    db: DBSession,
):
    try:
        owner, entries = await QueueService(db).friend_queue(current_user.id, username)
        return FriendQueueResponse(user=PublicUser.model_validate(owner), queue=_entries(entries))
    except (HTTPException, AppError):
        raise
    except Exception as e:
        logger.error("friend_queue_failed", user_id=current_user.id, username=username, error=str(e))
        raise _server_error("Failed to load queue")


@router.patch("/{item_id}", response_model=QueueItemResponse)
async def update_queue_item(
    item_id: int,
    data: QueueItemUpdate,
    current_user: CurrentUser,
    db: DBSession,
):
    try:
        item = await QueueService(db).update_item(
            item_id,
            current_user.id,
            data.model_dump(exclude_unset=True),
        )
        return QueueItemResponse.model_validate(item)
    except (HTTPException, AppError):
        raise
    except Exception as e:
        logger.error("queue_update_failed", item_id=item_id, error=str(e))
        raise _server_error("Failed to update queue item")


@router.delete("/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_from_queue(item_id: int, current_user: CurrentUser, db: DBSession):
    try:
        await QueueService(db).remove_item(item_id, current_user.id)
    except (HTTPException, AppError):
        raise
    except Exception as e:
        logger.error("queue_remove_failed", item_id=item_id, error=str(e))
        raise _server_error("Failed to remove queue item")


@router.post("/{item_id}/vote", response_model=QueueVoteResponse)
async def toggle_vote(item_id: int, current_user: CurrentUser, db: DBSession):
    """Vote for a friend's queue item; voting again takes the vote back."""
    try:
        action, vote_count = await QueueService(db).toggle_vote(current_user, item_id)
        return QueueVoteResponse(action=action, vote_count=vote_count)
    except (HTTPException, AppError):
        raise
    except Exception as e:
        logger.error("queue_vote_failed", user_id=current_user.id, item_id=item_id, error=str(e))
        raise _server_error("Failed to vote")


@router.get("/{item_id}/votes", response_model=QueueVotesResponse)
async def list_votes(item_id: int, current_user: CurrentUser, db: DBSession):
    try:
        votes = await QueueService(db).list_votes(item_id, current_user.id)
        return QueueVotesResponse(
            votes=[
                QueueVoter(user=PublicUser.model_validate(v["user"]), voted_at=v["vote"].created_at)
                for v in votes
            ],
            vote_count=len(votes),
        )
    except (HTTPException, AppError):
        raise
    except Exception as e:
        logger.error("queue_votes_failed", item_id=item_id, error=str(e))
        raise _server_error("Failed to load votes")
