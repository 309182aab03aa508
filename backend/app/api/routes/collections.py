"""
Collection endpoints.

Listing and reading work anonymously (public collections only); every
change requires a signed-in user and is permission-checked by
CollectionService.
"""

from typing import Optional

from fastapi import APIRouter, HTTPException, Query, status

from app.core.auth import CurrentUser, OptionalUser
from app.core.errors import AppError
from app.core.logging import get_logger
from app.db.deps import DBSession
from app.schemas.collections import (
    CollectionCreate,
    CollectionDetailResponse,
    CollectionItemCreate,
    CollectionItemResponse,
    CollectionListResponse,
    CollectionResponse,
    CollectionUpdate,
)
from app.schemas.library import MediaItemResponse
from app.services.collections import CollectionService

logger = get_logger(__name__)

router = APIRouter(prefix="/collections", tags=["collections"])


def _server_error(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=detail
    )


@router.get("", response_model=CollectionListResponse)
async def list_collections(
    viewer: OptionalUser,
    db: DBSession,
    user_id: Optional[int] = Query(None, description="Only this user's collections"),
):
    try:
        collections = await CollectionService(db).list_collections(
            viewer_id=viewer.id if viewer else None,
            owner_id=user_id,
        )
        return CollectionListResponse(
            collections=[CollectionResponse.model_validate(c) for c in collections]
        )
    except (HTTPException, AppError):
        raise
    except Exception as e:
        logger.error("collection_list_failed", error=str(e))
        raise _server_error("Failed to list collections")


@router.post("", response_model=CollectionResponse, status_code=status.HTTP_201_CREATED)
async def create_collection(
    data: CollectionCreate,
    current_user: CurrentUser,
    db: DBSession,
):
    try:
        collection = await CollectionService(db).create_collection(
            current_user.id,
            data.title,
            description=data.description,
            is_public=data.is_public,
            is_collaborative=data.is_collaborative,
        )
        return CollectionResponse.model_validate(collection)
    except (HTTPException, AppError):
        raise
    except Exception as e:
        logger.error("collection_create_failed", user_id=current_user.id, error=str(e))
        raise _server_error("Failed to create collection")


@router.get("/{collection_id}", response_model=CollectionDetailResponse)
async def get_collection(collection_id: int, viewer: OptionalUser, db: DBSession):
    """A collection with its items in order. Private collections are owner-only (403)."""
    try:
        collection, items = await CollectionService(db).get_collection(
            collection_id, viewer_id=viewer.id if viewer else None
        )

        item_responses = []
        for item, media in items:
            response = CollectionItemResponse.model_validate(item)
            if media is not None:
                response.media = MediaItemResponse.model_validate(media)
            item_responses.append(response)

        return CollectionDetailResponse(
            collection=CollectionResponse.model_validate(collection),
            items=item_responses,
        )
    except (HTTPException, AppError):
        raise
    except Exception as e:
        logger.error("collection_fetch_failed", collection_id=collection_id, error=str(e))
        raise _server_error("Failed to load collection")


@router.patch("/{collection_id}", response_model=CollectionResponse)
async def update_collection(
    collection_id: int,
    changes: CollectionUpdate,
    current_user: CurrentUser,
    db: DBSession,
):
    try:
        collection = await CollectionService(db).update_collection(
            collection_id, current_user.id, changes.model_dump(exclude_unset=True)
        )
        return CollectionResponse.model_validate(collection)
    except (HTTPException, AppError):
        raise
    except Exception as e:
        logger.error("collection_update_failed", collection_id=collection_id, error=str(e))
        raise _server_error("Failed to update collection")


@router.delete("/{collection_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_collection(collection_id: int, current_user: CurrentUser, db: DBSession):
    try:
        await CollectionService(db).delete_collection(collection_id, current_user.id)
    except (HTTPException, AppError):
        raise
    except Exception as e:
        logger.error("collection_delete_failed", collection_id=collection_id, error=str(e))
        raise _server_error("Failed to delete collection")


@router.post(
    "/{collection_id}/items",
    response_model=CollectionItemResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_collection_item(
    collection_id: int,
    data: CollectionItemCreate,
    current_user: CurrentUser,
    db: DBSession,
):
    try:
        item = await CollectionService(db).add_item(
            collection_id,
            current_user.id,
            data.media_type,
            data.media_id,
            notes=data.notes,
        )
        return CollectionItemResponse.model_validate(item)
    except (HTTPException, AppError):
        raise
    except Exception as e:
        logger.error("collection_item_add_failed", collection_id=collection_id, error=str(e))
        raise _server_error("Failed to add item")


@router.delete("/{collection_id}/items/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_collection_item(
    collection_id: int,
    item_id: int,
    current_user: CurrentUser,
    db: DBSession,
):
    try:
        await CollectionService(db).remove_item(collection_id, item_id, current_user.id)
    except (HTTPException, AppError):
        raise
    except Exception as e:
        logger.error("collection_item_remove_failed", collection_id=collection_id, error=str(e))
        raise _server_error("Failed to remove item")
