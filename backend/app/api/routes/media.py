"""
Media detail and global search endpoints.
"""

from typing import Literal

from fastapi import APIRouter, HTTPException, Query, status

from app.core.errors import AppError
from app.core.logging import get_logger
from app.db.deps import DBSession
from app.schemas.library import (
    MediaDetailResponse,
    MediaItemResponse,
    SearchMediaResult,
    SearchResponse,
    SearchUserResult,
)
from app.services.library import LibraryService, parse_media_type

logger = get_logger(__name__)

router = APIRouter(tags=["media"])


@router.get("/media/{media_type}/{media_id}", response_model=MediaDetailResponse)
async def get_media(media_type: str, media_id: int, db: DBSession):
    """One media item. 400 for an unknown type, 404 when the item does not exist."""
    try:
        parsed = parse_media_type(media_type)
        item = await LibraryService(db).get_media(parsed, media_id)
        return MediaDetailResponse(
            media_type=parsed,
            media=MediaItemResponse.model_validate(item),
        )
    except (HTTPException, AppError):
        raise
    except Exception as e:
        logger.error("media_fetch_failed", media_type=media_type, media_id=media_id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to load media"
        )


@router.get("/search", response_model=SearchResponse)
async def search(
    db: DBSession,
    q: str = Query("", max_length=200),
    type: Literal["all", "users", "media"] = Query("all"),
):
    """
    Search usernames and media titles.

    Queries shorter than two characters return empty lists.
    """
    try:
        results = await LibraryService(db).search(q, type)
        return SearchResponse(
            query=q,
            users=[SearchUserResult.model_validate(u) for u in results["users"]],
            media=[
                SearchMediaResult(media_type=media_type, media=MediaItemResponse.model_validate(item))
                for media_type, item in results["media"]
            ],
        )
    except (HTTPException, AppError):
        raise
    except Exception as e:
        logger.error("search_failed", query=q, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Search failed"
        )
