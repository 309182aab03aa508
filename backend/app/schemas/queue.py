"""
Pydantic schemas for the watch/read queue.
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.models.media import MediaType
from app.models.queue import QueuePriority
from app.schemas.library import MediaItemResponse
from app.schemas.matching import PublicUser


class QueueItemCreate(BaseModel):
    media_type: MediaType
    media_id: int = Field(..., ge=1)
    priority: QueuePriority = QueuePriority.MEDIUM
    notes: Optional[str] = None


class QueueItemUpdate(BaseModel):
    priority: Optional[QueuePriority] = None
    notes: Optional[str] = None
    position: Optional[int] = Field(None, ge=0)


class QueueItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    media_type: MediaType
    media_id: int
    position: int
    priority: QueuePriority
    notes: Optional[str] = None
    created_at: datetime


class QueueEntry(BaseModel):
    item: QueueItemResponse
    media: Optional[MediaItemResponse] = None
    vote_count: int = 0
    has_voted: bool = False


class QueueResponse(BaseModel):
    queue: List[QueueEntry]


class FriendQueueResponse(BaseModel):
    user: PublicUser
    queue: List[QueueEntry]


class QueueVoteResponse(BaseModel):
    action: Literal["voted", "unvoted"]
    vote_count: int


class QueueVoter(BaseModel):
    user: PublicUser
    voted_at: datetime


class QueueVotesResponse(BaseModel):
    votes: List[QueueVoter]
    vote_count: int
