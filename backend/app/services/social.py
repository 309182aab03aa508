"""
Friends and notifications.

A friendship row is created by the requester (user_id) for the recipient
(friend_id) and starts as pending. Only the recipient can accept or decline.
Each request and each acceptance drops a notification on the other side.
"""

from typing import Optional

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import ConflictError, NotFoundError, ValidationError
from app.core.logging import get_logger
from app.models.social import Friendship, FriendshipStatus, Notification, NotificationType
from app.models.user import User

logger = get_logger(__name__)

NOTIFICATION_LIMIT = 50


class NotificationService:
    def __init__(self, db: AsyncSession):
        self.db = db

    def create(
        self,
        user_id: int,
        type: NotificationType | str,
        title: str,
        message: Optional[str] = None,
        link: Optional[str] = None,
        actor_id: Optional[int] = None,
    ) -> Notification:
        """Add a notification to the session; the caller commits."""
        notification = Notification(
            user_id=user_id,
            type=str(type),
            title=title,
            message=message,
            link=link,
            actor_id=actor_id,
        )
        self.db.add(notification)
        return notification

    async def list_notifications(self, user_id: int, limit: int = NOTIFICATION_LIMIT) -> dict:
        result = await self.db.execute(
            select(Notification)
            .where(Notification.user_id == user_id)
            .order_by(Notification.created_at.desc(), Notification.id.desc())
            .limit(limit)
        )
        unread = await self.db.execute(
            select(func.count(Notification.id)).where(
                Notification.user_id == user_id,
                Notification.is_read.is_(False),
            )
        )
        return {
            "notifications": list(result.scalars().all()),
            "unread_count": unread.scalar_one(),
        }

    async def mark_read(self, user_id: int, notification_id: int) -> Notification:
        result = await self.db.execute(
            select(Notification).where(
                Notification.id == notification_id,
                Notification.user_id == user_id,
            )
        )
        notification = result.scalar_one_or_none()
        if notification is None:
            raise NotFoundError("Notification", notification_id)
        notification.is_read = True
        await self.db.commit()
        await self.db.refresh(notification)
        return notification

    async def mark_all_read(self, user_id: int) -> int:
        result = await self.db.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
            .values(is_read=True)
        )
        await self.db.commit()
        return result.rowcount or 0


class FriendService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.notifications = NotificationService(db)

    async def _find_pair(self, user_a: int, user_b: int) -> Optional[Friendship]:
        result = await self.db.execute(
            select(Friendship).where(
                or_(
                    (Friendship.user_id == user_a) & (Friendship.friend_id == user_b),
                    (Friendship.user_id == user_b) & (Friendship.friend_id == user_a),
                )
            )
        )
        return result.scalars().first()

    async def friend_ids(self, user_id: int) -> list[int]:
        result = await self.db.execute(
            select(Friendship.user_id, Friendship.friend_id).where(
                or_(Friendship.user_id == user_id, Friendship.friend_id == user_id),
                Friendship.status == FriendshipStatus.ACCEPTED,
            )
        )
        return [friend if owner == user_id else owner for owner, friend in result.all()]

    async def are_friends(self, user_a: int, user_b: int) -> bool:
        friendship = await self._find_pair(user_a, user_b)
        return friendship is not None and friendship.status == FriendshipStatus.ACCEPTED

    async def send_request(self, requester: User, friend_id: int) -> Friendship:
        if requester.id == friend_id:
            raise ValidationError("Cannot send a friend request to yourself")

        recipient = await self.db.get(User, friend_id)
        if recipient is None:
            raise NotFoundError("User", friend_id)

        existing = await self._find_pair(requester.id, friend_id)
        if existing is not None:
            if existing.status == FriendshipStatus.ACCEPTED:
                raise ConflictError("Already friends")
            if existing.status == FriendshipStatus.PENDING:
                raise ConflictError("Friend request already sent")
            # A declined request can be sent again
            await self.db.delete(existing)
            await self.db.flush()

        friendship = Friendship(
            user_id=requester.id,
            friend_id=friend_id,
            status=FriendshipStatus.PENDING,
        )
        self.db.add(friendship)
        self.notifications.create(
            user_id=friend_id,
            type=NotificationType.FRIEND_REQUEST,
            title="New friend request",
            message=f"{requester.display_name} sent you a friend request",
            link=f"/{requester.username}",
            actor_id=requester.id,
        )
        await self.db.commit()
        await self.db.refresh(friendship)

        logger.info("friend_request_sent", user_id=requester.id, friend_id=friend_id)
        return friendship

    async def _get_pending_for_recipient(self, friendship_id: int, recipient_id: int) -> Friendship:
        result = await self.db.execute(
            select(Friendship).where(
                Friendship.id == friendship_id,
                Friendship.friend_id == recipient_id,
                Friendship.status == FriendshipStatus.PENDING,
            )
        )
        friendship = result.scalar_one_or_none()
        if friendship is None:
            raise NotFoundError("Friend request", friendship_id)
        return friendship

    async def accept_request(self, recipient: User, friendship_id: int) -> Friendship:
        friendship = await self._get_pending_for_recipient(friendship_id, recipient.id)
        friendship.status = FriendshipStatus.ACCEPTED
        self.notifications.create(
            user_id=friendship.user_id,
            type=NotificationType.FRIEND_ACCEPTED,
            title="Friend request accepted",
            message=f"{recipient.display_name} accepted your friend request",
            link=f"/{recipient.username}",
            actor_id=recipient.id,
        )
        await self.db.commit()
        await self.db.refresh(friendship)
        logger.info("friend_request_accepted", user_id=recipient.id, friendship_id=friendship_id)
        return friendship

    async def decline_request(self, recipient: User, friendship_id: int) -> Friendship:
        friendship = await self._get_pending_for_recipient(friendship_id, recipient.id)
        friendship.status = FriendshipStatus.DECLINED
        await self.db.commit()
        await self.db.refresh(friendship)
        return friendship

    async def remove_friend(self, user_id: int, friendship_id: int) -> None:
        """Either side may remove a friendship or withdraw a request."""
        result = await self.db.execute(
            select(Friendship).where(
                Friendship.id == friendship_id,
                or_(Friendship.user_id == user_id, Friendship.friend_id == user_id),
            )
        )
        friendship = result.scalar_one_or_none()
        if friendship is None:
            raise NotFoundError("Friendship", friendship_id)
        await self.db.delete(friendship)
        await self.db.commit()

    async def list_friends(self, user_id: int) -> dict:
        """Accepted friends plus pending requests in both directions."""
        result = await self.db.execute(
            select(Friendship).where(
                or_(Friendship.user_id == user_id, Friendship.friend_id == user_id),
                Friendship.status.in_([FriendshipStatus.ACCEPTED, FriendshipStatus.PENDING]),
            ).order_by(Friendship.created_at.desc())
        )
        friendships = list(result.scalars().all())

        other_ids = {f.friend_id if f.user_id == user_id else f.user_id for f in friendships}
        users: dict[int, User] = {}
        if other_ids:
            rows = await self.db.execute(select(User).where(User.id.in_(other_ids)))
            users = {u.id: u for u in rows.scalars().all()}

        friends, received, sent = [], [], []
        for friendship in friendships:
            other_id = friendship.friend_id if friendship.user_id == user_id else friendship.user_id
            other = users.get(other_id)
            if other is None:
                continue
            entry = {"friendship": friendship, "user": other}
            if friendship.status == FriendshipStatus.ACCEPTED:
                friends.append(entry)
            elif friendship.friend_id == user_id:
                received.append(entry)
            else:
                sent.append(entry)

        return {"friends": friends, "pending_received": received, "pending_sent": sent}
