"""
Library endpoints.

A library is the signed-in user's user_media rows. Every endpoint here acts
on the caller's own library; item ids that belong to someone else are
reported as missing.
"""

from typing import Optional

from fastapi import APIRouter, HTTPException, Query, status

from app.core.auth import CurrentUser
from app.core.errors import AppError
from app.core.logging import get_logger
from app.db.deps import DBSession
from app.models.library import UserMedia
from app.models.media import MediaItem, MediaType
from app.schemas.library import (
    FavoriteUpdate,
    LibraryItemCreate,
    LibraryItemResponse,
    LibraryResponse,
    MediaItemResponse,
    ProgressUpdate,
    RatingUpdate,
    StatusUpdate,
)
from app.services.cache import cache, user_library_key
from app.services.library import LibraryService

logger = get_logger(__name__)

router = APIRouter(prefix="/library", tags=["library"])


def to_library_item(entry: UserMedia, media: Optional[MediaItem] = None) -> LibraryItemResponse:
    item = LibraryItemResponse.model_validate(entry)
    if media is not None:
        item.media = MediaItemResponse.model_validate(media)
    return item


def _server_error(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=detail
    )


@router.get("", response_model=LibraryResponse)
async def get_library(
    current_user: CurrentUser,
    db: DBSession,
    media_type: Optional[MediaType] = Query(None, description="Only return one media type"),
):
    """
    The caller's library, newest first, each row with its media item.

    The unfiltered library is cached at user:{id}:library and dropped on
    every library change or import.
    """
    service = LibraryService(db)

    async def build() -> dict:
        rows = await service.get_library(current_user.id, media_type)
        items = [to_library_item(entry, media) for entry, media in rows]
        return LibraryResponse(items=items, total=len(items)).model_dump(mode="json")

    try:
        if media_type is None:
            payload = await cache.cached_fetch(user_library_key(current_user.id), build)
        else:
            payload = await build()
        return LibraryResponse.model_validate(payload)
    except (HTTPException, AppError):
        raise
    except Exception as e:
        logger.error("library_fetch_failed", user_id=current_user.id, error=str(e))
        raise _server_error("Failed to load library")


@router.post("", response_model=LibraryItemResponse, status_code=status.HTTP_201_CREATED)
async def add_to_library(
    item: LibraryItemCreate,
    current_user: CurrentUser,
    db: DBSession,
):
    """Add an existing media item. 404 for unknown media, 409 when already present."""
    try:
        service = LibraryService(db)
        entry = await service.add_item(
            current_user.id,
            item.media_type,
            item.media_id,
            rating=item.rating,
            status=item.status,
        )
        media = await service.get_media(entry.media_type, entry.media_id)
        return to_library_item(entry, media)
    except (HTTPException, AppError):
        raise
    except Exception as e:
        logger.error("library_add_failed", user_id=current_user.id, error=str(e))
        raise _server_error("Failed to add item to library")


@router.patch("/{item_id}/rating", response_model=LibraryItemResponse)
async def update_rating(
    item_id: int,
    update: RatingUpdate,
    current_user: CurrentUser,
    db: DBSession,
):
    """Set a 1-10 rating, or clear it with null."""
    try:
        entry = await LibraryService(db).update_rating(current_user.id, item_id, update.rating)
        return to_library_item(entry)
    except (HTTPException, AppError):
        raise
    except Exception as e:
        logger.error("library_rating_failed", user_id=current_user.id, item_id=item_id, error=str(e))
        raise _server_error("Failed to update rating")


@router.patch("/{item_id}/status", response_model=LibraryItemResponse)
async def update_status(
    item_id: int,
    update: StatusUpdate,
    current_user: CurrentUser,
    db: DBSession,
):
    try:
        entry = await LibraryService(db).update_status(current_user.id, item_id, update.status)
        return to_library_item(entry)
    except (HTTPException, AppError):
        raise
    except Exception as e:
        logger.error("library_status_failed", user_id=current_user.id, item_id=item_id, error=str(e))
        raise _server_error("Failed to update status")


@router.patch("/{item_id}/progress", response_model=LibraryItemResponse)
async def update_progress(
    item_id: int,
    update: ProgressUpdate,
    current_user: CurrentUser,
    db: DBSession,
):
    try:
        entry = await LibraryService(db).update_progress(
            current_user.id, item_id, update.progress, update.progress_total
        )
        return to_library_item(entry)
    except (HTTPException, AppError):
        raise
    except Exception as e:
        logger.error("library_progress_failed", user_id=current_user.id, item_id=item_id, error=str(e))
        raise _server_error("Failed to update progress")


@router.patch("/{item_id}/favorite", response_model=LibraryItemResponse)
async def set_favorite(
    item_id: int,
    update: FavoriteUpdate,
    current_user: CurrentUser,
    db: DBSession,
):
    try:
        entry = await LibraryService(db).set_favorite(current_user.id, item_id, update.is_favorite)
        return to_library_item(entry)
    except (HTTPException, AppError):
        raise
    except Exception as e:
        logger.error("library_favorite_failed", user_id=current_user.id, item_id=item_id, error=str(e))
        raise _server_error("Failed to update favorite")


@router.delete("/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_from_library(
    item_id: int,
    current_user: CurrentUser,
    db: DBSession,
):
    try:
        await LibraryService(db).remove_item(current_user.id, item_id)
    except (HTTPException, AppError):
        raise
    except Exception as e:
        logger.error("library_remove_failed", user_id=current_user.id, item_id=item_id, error=str(e))
        raise _server_error("Failed to remove item")
