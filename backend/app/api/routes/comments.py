"""
Media comment endpoints.
"""

from fastapi import APIRouter, HTTPException, Query, status

from app.core.auth import CurrentUser
from app.core.errors import AppError
from app.core.logging import get_logger
from app.db.deps import DBSession
from app.schemas.activity import (
    CommentCreate,
    CommentEntry,
    CommentLikeResponse,
    CommentListResponse,
    CommentResponse,
)
from app.services.comments import CommentService

logger = get_logger(__name__)

router = APIRouter(prefix="/comments", tags=["comments"])


def _server_error(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=detail
    )


@router.get("", response_model=CommentListResponse)
async def list_comments(
    db: DBSession,
    media_type: str = Query(...),
    media_id: int = Query(..., ge=1),
):
    try:
        entries = await CommentService(db).list_comments(media_type, media_id)
        return CommentListResponse(comments=[
            CommentEntry(comment=CommentResponse.model_validate(e["comment"]), username=e["username"])
            for e in entries
        ])
    except (HTTPException, AppError):
        raise
    except Exception as e:
        logger.error("comment_list_failed", media_type=media_type, media_id=media_id, error=str(e))
        raise _server_error("Failed to load comments")


@router.post("", response_model=CommentResponse)
async def post_comment(
    data: CommentCreate,
    current_user: CurrentUser,
    db: DBSession,
):
    """Create the caller's comment on an item, or replace it."""
    try:
        comment = await CommentService(db).post_comment(
            current_user,
            data.media_type,
            data.media_id,
            data.content,
            rating=data.rating,
            is_spoiler=data.is_spoiler,
        )
        return CommentResponse.model_validate(comment)
    except (HTTPException, AppError):
        raise
    except Exception as e:
        logger.error("comment_post_failed", user_id=current_user.id, error=str(e))
        raise _server_error("Failed to post comment")


@router.delete("/{comment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_comment(
    comment_id: int,
    current_user: CurrentUser,
    db: DBSession,
):
    try:
        await CommentService(db).delete_comment(current_user.id, comment_id)
    except (HTTPException, AppError):
        raise
    except Exception as e:
        logger.error("comment_delete_failed", user_id=current_user.id, comment_id=comment_id, error=str(e))
        raise _server_error("Failed to delete comment")


@router.post("/{comment_id}/like", response_model=CommentLikeResponse)
async def toggle_like(
    comment_id: int,
    current_user: CurrentUser,
    db: DBSession,
):
    try:
        liked, likes_count = await CommentService(db).toggle_like(current_user.id, comment_id)
        return CommentLikeResponse(liked=liked, likes_count=likes_count)
    except (HTTPException, AppError):
        raise
    except Exception as e:
        logger.error("comment_like_failed", user_id=current_user.id, comment_id=comment_id, error=str(e))
        raise _server_error("Failed to like comment")
