"""
Pydantic schemas for friends and notifications.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict

from app.models.social import FriendshipStatus
from app.schemas.matching import PublicUser


class FriendRequestCreate(BaseModel):
    friend_id: int


class FriendshipResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    friend_id: int
    status: FriendshipStatus
    created_at: datetime


class FriendEntry(BaseModel):
    friendship: FriendshipResponse
    user: PublicUser


class FriendListResponse(BaseModel):
    friends: List[FriendEntry]
    pending_received: List[FriendEntry]
    pending_sent: List[FriendEntry]


class NotificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    type: str
    title: str
    message: Optional[str] = None
    link: Optional[str] = None
    is_read: bool
    actor_id: Optional[int] = None
    created_at: datetime


class NotificationListResponse(BaseModel):
    notifications: List[NotificationResponse]
    unread_count: int
