"""
Pydantic schemas for collections.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.models.media import MediaType
from app.schemas.library import MediaItemResponse


class CollectionCreate(BaseModel):
    title: str = Field(..., max_length=255)
    description: Optional[str] = None
    is_public: bool = True
    is_collaborative: bool = False


class CollectionUpdate(BaseModel):
    title: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None
    is_public: Optional[bool] = None
    is_collaborative: Optional[bool] = None


class CollectionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    title: str
    description: Optional[str] = None
    is_public: bool
    is_collaborative: bool
    item_count: int
    follower_count: int
    created_at: datetime
    updated_at: datetime


class CollectionListResponse(BaseModel):
    collections: List[CollectionResponse]


class CollectionItemCreate(BaseModel):
    media_type: MediaType
    media_id: int = Field(..., ge=1)
    notes: Optional[str] = None


class CollectionItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    collection_id: int
    media_type: MediaType
    media_id: int
    added_by_user_id: Optional[int] = None
    position: int
    notes: Optional[str] = None
    created_at: datetime
    media: Optional[MediaItemResponse] = None


class CollectionDetailResponse(BaseModel):
    collection: CollectionResponse
    items: List[CollectionItemResponse]
