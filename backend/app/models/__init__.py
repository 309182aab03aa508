"""
Database Models

Import models from here so every table is registered on Base.metadata
before Alembic or create_all inspects it:

    from app.models import User, UserMedia, MediaType
"""

from app.models.activity import Activity
from app.models.collection import Collection, CollectionItem
from app.models.comment import CommentLike, MediaComment
from app.models.conversation import Conversation, Message, MessageRole
from app.models.library import MediaStatus, UserMedia
from app.models.match import Match, ordered_pair
from app.models.media import (
    MEDIA_MODELS,
    Anime,
    Book,
    Manga,
    MediaItem,
    MediaType,
    Movie,
    Music,
    get_media_model,
)
from app.models.queue import QueueItem, QueuePriority, QueueVote
from app.models.social import Friendship, FriendshipStatus, Notification, NotificationType
from app.models.source import Source, SourceName
from app.models.user import User

__all__ = [
    # Users and social
    "User",
    "Friendship",
    "FriendshipStatus",
    "Notification",
    "NotificationType",
    # Sources
    "Source",
    "SourceName",
    # Media
    "MediaItem",
    "MediaType",
    "Book",
    "Anime",
    "Manga",
    "Movie",
    "Music",
    "MEDIA_MODELS",
    "get_media_model",
    # Library
    "UserMedia",
    "MediaStatus",
    # Matching
    "Match",
    "ordered_pair",
    # Collections
    "Collection",
    "CollectionItem",
    # Activity, comments and queue
    "Activity",
    "MediaComment",
    "CommentLike",
    "QueueItem",
    "QueuePriority",
    "QueueVote",
    # Chat
    "Conversation",
    "Message",
    "MessageRole",
]
