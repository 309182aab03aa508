"""
Pydantic schemas for the activity feed and media comments.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.models.media import MediaType
from app.schemas.matching import PublicUser


class ActivityCreate(BaseModel):
    activity_type: str = Field(..., max_length=50)
    content: Dict[str, Any]
    is_public: bool = True


class ActivityResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    activity_type: str
    content: Dict[str, Any]
    is_public: bool
    created_at: datetime


class ActivityEntry(BaseModel):
    activity: ActivityResponse
    user: Optional[PublicUser] = None


class ActivityFeedResponse(BaseModel):
    activities: List[ActivityEntry]


# ========================================
# Comments
# ========================================

class CommentCreate(BaseModel):
    media_type: MediaType
    media_id: int = Field(..., ge=1)
    content: str = Field(..., max_length=5000)
    rating: Optional[float] = None
    is_spoiler: bool = False


class CommentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    media_type: MediaType
    media_id: int
    content: str
    rating: Optional[float] = None
    is_spoiler: bool
    likes_count: int
    created_at: datetime
    updated_at: datetime


class CommentEntry(BaseModel):
    comment: CommentResponse
    username: str


class CommentListResponse(BaseModel):
    comments: List[CommentEntry]


class CommentLikeResponse(BaseModel):
    liked: bool
    likes_count: int
