"""
Notification endpoints.
"""

from fastapi import APIRouter, HTTPException, status

from app.core.auth import CurrentUser
from app.core.errors import AppError
from app.core.logging import get_logger
from app.db.deps import DBSession
from app.schemas.social import NotificationListResponse, NotificationResponse
from app.services.social import NotificationService

logger = get_logger(__name__)

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=NotificationListResponse)
async def list_notifications(current_user: CurrentUser, db: DBSession):
    """The latest 50 notifications plus the number still unread."""
    try:
        result = await NotificationService(db).list_notifications(current_user.id)
        return NotificationListResponse(
            notifications=[NotificationResponse.model_validate(n) for n in result["notifications"]],
            unread_count=result["unread_count"],
        )
    except (HTTPException, AppError):
        raise
    except Exception as e:
        logger.error("notification_list_failed", user_id=current_user.id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to list notifications"
        )


@router.post("/read-all")
async def mark_all_read(current_user: CurrentUser, db: DBSession):
    try:
        updated = await NotificationService(db).mark_all_read(current_user.id)
        return {"updated": updated}
    except (HTTPException, AppError):
        raise
    except Exception as e:
        logger.error("notification_read_all_failed", user_id=current_user.id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update notifications"
        )


@router.post("/{notification_id}/read", response_model=NotificationResponse)
async def mark_read(notification_id: int, current_user: CurrentUser, db: DBSession):
    try:
        notification = await NotificationService(db).mark_read(current_user.id, notification_id)
        return NotificationResponse.model_validate(notification)
    except (HTTPException, AppError):
        raise
    except Exception as e:
        logger.error("notification_read_failed", user_id=current_user.id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update notification"
        )
