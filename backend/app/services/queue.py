"""
Queue Service

A user's "up next" list plus friend voting.

- only the owner changes or removes queue items (403 otherwise)
- friends (accepted friendships) can view a queue and toggle one vote per
  item; voting on your own queue is refused
- only the owner sees who voted
"""

import random
from collections import defaultdict
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from app.core.logging import get_logger
from app.models.media import MediaType
from app.models.queue import QueueItem, QueuePriority, QueueVote
from app.models.social import NotificationType
from app.models.user import User
from app.services.library import LibraryService, load_media_map, parse_media_type
from app.services.social import FriendService, NotificationService
from app.services.users import UserService

logger = get_logger(__name__)

QUEUE_SORTS = ("position", "priority", "random")

UPDATABLE_FIELDS = ("priority", "notes", "position")


def parse_priority(value: str | QueuePriority) -> QueuePriority:
    try:
        return QueuePriority(value)
    except ValueError:
        valid = ", ".join(p.value for p in QueuePriority)
        raise ValidationError(f"Invalid priority. Must be one of: {valid}")


def sort_queue(items: list[QueueItem], sort: str) -> list[QueueItem]:
    if sort == "priority":
        return sorted(items, key=lambda i: (-QueuePriority(i.priority).rank, i.position, i.id))
    if sort == "random":
        shuffled = list(items)
        random.shuffle(shuffled)
        return shuffled
    return sorted(items, key=lambda i: (i.position, i.id))


class QueueService:
    def __init__(self, db: AsyncSession):
        self.db = db

    # ================================
    # Helpers
    # ================================

    async def _get(self, item_id: int) -> QueueItem:
        item = await self.db.get(QueueItem, item_id)
        if item is None:
            raise NotFoundError("Queue item", item_id)
        return item

    async def _get_owned(self, item_id: int, user_id: int) -> QueueItem:
        item = await self._get(item_id)
        if item.user_id != user_id:
            raise ForbiddenError("Only the owner can change this queue item")
        return item

    async def _vote_counts(self, item_ids: list[int]) -> dict[int, int]:
        if not item_ids:
            return {}
        result = await self.db.execute(
            select(QueueVote.queue_item_id, func.count(QueueVote.id))
            .where(QueueVote.queue_item_id.in_(item_ids))
            .group_by(QueueVote.queue_item_id)
        )
        return defaultdict(int, result.all())

    async def _entries(
        self,
        items: list[QueueItem],
        viewer_id: Optional[int] = None,
    ) -> list[dict[str, Any]]:
        """Queue items paired with their media, vote count and (for a viewer) whether they voted."""
        ids = [i.id for i in items]
        media_map = await load_media_map(self.db, ((i.media_type, i.media_id) for i in items))
        counts = await self._vote_counts(ids)

        voted: set[int] = set()
        if viewer_id is not None and ids:
            result = await self.db.execute(
                select(QueueVote.queue_item_id).where(
                    QueueVote.queue_item_id.in_(ids),
                    QueueVote.user_id == viewer_id,
                )
            )
            voted = set(result.scalars().all())

        return [
            {
                "item": item,
                "media": media_map.get((item.media_type, item.media_id)),
                "vote_count": counts.get(item.id, 0),
                "has_voted": item.id in voted,
            }
            for item in items
        ]

    async def _items_for(self, user_id: int) -> list[QueueItem]:
        result = await self.db.execute(select(QueueItem).where(QueueItem.user_id == user_id))
        return list(result.scalars().all())

    # ================================
    # Owner operations
    # ================================

    async def list_queue(self, user_id: int, sort: str = "position") -> list[dict[str, Any]]:
        if sort not in QUEUE_SORTS:
            raise ValidationError(f"Invalid sort. Must be one of: {', '.join(QUEUE_SORTS)}")
        items = sort_queue(await self._items_for(user_id), sort)
        return await self._entries(items)

    async def add_item(
        self,
        user_id: int,
        media_type: str | MediaType,
        media_id: int,
        priority: str | QueuePriority = QueuePriority.MEDIUM,
        notes: Optional[str] = None,
    ) -> QueueItem:
        media_type = parse_media_type(media_type)
        priority = parse_priority(priority)
        await LibraryService(self.db).get_media(media_type, media_id)

        duplicate = await self.db.execute(
            select(QueueItem.id).where(
                QueueItem.user_id == user_id,
                QueueItem.media_type == media_type,
                QueueItem.media_id == media_id,
            )
        )
        if duplicate.scalar_one_or_none() is not None:
            raise ConflictError("Item already in queue")

        last_position = (
            await self.db.execute(
                select(func.max(QueueItem.position)).where(QueueItem.user_id == user_id)
            )
        ).scalar_one_or_none()

        item = QueueItem(
            user_id=user_id,
            media_type=media_type,
            media_id=media_id,
            position=0 if last_position is None else last_position + 1,
            priority=priority,
            notes=notes,
        )
        self.db.add(item)
        await self.db.commit()
        await self.db.refresh(item)
        logger.info("queue_item_added", user_id=user_id, media_type=media_type.value, media_id=media_id)
        return item

    async def update_item(self, item_id: int, user_id: int, changes: dict[str, Any]) -> QueueItem:
        item = await self._get_owned(item_id, user_id)

        for field in UPDATABLE_FIELDS:
            if field not in changes or changes[field] is None:
                continue
            value = changes[field]
            if field == "priority":
                value = parse_priority(value)
            elif field == "position" and value < 0:
                raise ValidationError("Position cannot be negative")
            setattr(item, field, value)

        await self.db.commit()
        await self.db.refresh(item)
        return item

    async def remove_item(self, item_id: int, user_id: int) -> None:
        item = await self._get_owned(item_id, user_id)
        await self.db.delete(item)
        await self.db.commit()

    async def list_votes(self, item_id: int, user_id: int) -> list[dict[str, Any]]:
        item = await self._get(item_id)
        if item.user_id != user_id:
            raise ForbiddenError("Can only view votes on your own queue items")

        result = await self.db.execute(
            select(QueueVote, User)
            .join(User, User.id == QueueVote.user_id)
            .where(QueueVote.queue_item_id == item_id)
            .order_by(QueueVote.created_at.desc(), QueueVote.id.desc())
        )
        return [{"vote": vote, "user": user} for vote, user in result.all()]

    # ================================
    # Friends
    # ================================

    async def friend_queue(self, viewer_id: int, username: str) -> tuple[User, list[dict[str, Any]]]:
        owner = await UserService(self.db).get_by_username(username)
        if owner.id != viewer_id and not await FriendService(self.db).are_friends(viewer_id, owner.id):
            raise ForbiddenError("You must be friends to view this queue")

        items = sort_queue(await self._items_for(owner.id), "position")
        return owner, await self._entries(items, viewer_id=viewer_id)

    async def toggle_vote(self, voter: User, item_id: int) -> tuple[str, int]:
        """Vote for a friend's queue item, or take the vote back. Returns (action, vote_count)."""
        item = await self._get(item_id)
        if item.user_id == voter.id:
            raise ForbiddenError("Cannot vote on your own queue items")
        if not await FriendService(self.db).are_friends(voter.id, item.user_id):
            raise ForbiddenError("Can only vote on friends' queue items")

        result = await self.db.execute(
            select(QueueVote).where(
                QueueVote.queue_item_id == item_id,
                QueueVote.user_id == voter.id,
            )
        )
        vote = result.scalar_one_or_none()

        if vote is not None:
            await self.db.delete(vote)
            action = "unvoted"
        else:
            self.db.add(QueueVote(queue_item_id=item_id, user_id=voter.id))
            NotificationService(self.db).create(
                user_id=item.user_id,
                type=NotificationType.QUEUE_VOTE,
                title="Friend voted on your queue",
                message=f"{voter.display_name} voted for an item in your queue",
                link="/queue",
                actor_id=voter.id,
            )
            action = "voted"

        await self.db.commit()
        count = (await self._vote_counts([item_id])).get(item_id, 0)
        logger.info("queue_vote_toggled", user_id=voter.id, item_id=item_id, action=action)
        return action, count
