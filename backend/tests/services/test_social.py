"""
Tests for friendships and notifications.
"""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import ConflictError, NotFoundError, ValidationError
from app.models.social import FriendshipStatus, NotificationType
from app.services.social import FriendService, NotificationService


class TestFriendRequests:

    async def test_send_request_notifies_recipient(self, db_session: AsyncSession, test_user, other_user):
        friendship = await FriendService(db_session).send_request(test_user, other_user.id)

        assert friendship.status == FriendshipStatus.PENDING
        assert friendship.user_id == test_user.id
        assert friendship.friend_id == other_user.id

        inbox = await NotificationService(db_session).list_notifications(other_user.id)
        assert inbox["unread_count"] == 1
        notification = inbox["notifications"][0]
        assert notification.type == NotificationType.FRIEND_REQUEST.value
        assert notification.message == "Alice Tester sent you a friend request"
        assert notification.link == "/alice"
        assert notification.actor_id == test_user.id

    async def test_cannot_befriend_self(self, db_session: AsyncSession, test_user):
        with pytest.raises(ValidationError):
            await FriendService(db_session).send_request(test_user, test_user.id)

    async def test_unknown_recipient(self, db_session: AsyncSession, test_user):
        with pytest.raises(NotFoundError):
            await FriendService(db_session).send_request(test_user, 999)

    async def test_duplicate_request_either_direction(self, db_session: AsyncSession, test_user, other_user):
        service = FriendService(db_session)
        await service.send_request(test_user, other_user.id)

        with pytest.raises(ConflictError, match="already sent"):
            await service.send_request(test_user, other_user.id)
        with pytest.raises(ConflictError):
            await service.send_request(other_user, test_user.id)

    async def test_accept_request(self, db_session: AsyncSession, test_user, other_user):
        service = FriendService(db_session)
        request = await service.send_request(test_user, other_user.id)

        accepted = await service.accept_request(other_user, request.id)

        assert accepted.status == FriendshipStatus.ACCEPTED
        inbox = await NotificationService(db_session).list_notifications(test_user.id)
        assert inbox["notifications"][0].type == NotificationType.FRIEND_ACCEPTED.value

        with pytest.raises(ConflictError, match="Already friends"):
            await service.send_request(test_user, other_user.id)

    async def test_only_recipient_can_accept(self, db_session: AsyncSession, test_user, other_user):
        service = FriendService(db_session)
        request = await service.send_request(test_user, other_user.id)

        with pytest.raises(NotFoundError):
            await service.accept_request(test_user, request.id)

    async def test_declined_request_can_be_resent(self, db_session: AsyncSession, test_user, other_user):
        service = FriendService(db_session)
        request = await service.send_request(test_user, other_user.id)
        declined = await service.decline_request(other_user, request.id)
        assert declined.status == FriendshipStatus.DECLINED

        again = await service.send_request(test_user, other_user.id)

        assert again.status == FriendshipStatus.PENDING

    async def test_remove_friend_from_either_side(self, db_session: AsyncSession, test_user, other_user, create_user):
        service = FriendService(db_session)
        request = await service.send_request(test_user, other_user.id)
        carol = await create_user("carol")

        with pytest.raises(NotFoundError):
            await service.remove_friend(carol.id, request.id)

        await service.remove_friend(other_user.id, request.id)

        listing = await service.list_friends(test_user.id)
        assert listing == {"friends": [], "pending_received": [], "pending_sent": []}

    async def test_list_friends_groups_by_direction(self, db_session: AsyncSession, test_user, other_user, create_user):
        service = FriendService(db_session)
        carol = await create_user("carol")
        dave = await create_user("dave")

        await service.send_request(test_user, other_user.id)
        incoming = await service.send_request(carol, test_user.id)
        accepted = await service.send_request(dave, test_user.id)
        await service.accept_request(test_user, accepted.id)

        listing = await service.list_friends(test_user.id)

        assert [e["user"].username for e in listing["friends"]] == ["dave"]
        assert [e["friendship"].id for e in listing["pending_received"]] == [incoming.id]
        assert [e["user"].username for e in listing["pending_sent"]] == ["bob"]


class TestNotifications:

    async def test_mark_read(self, db_session: AsyncSession, test_user):
        service = NotificationService(db_session)
        notification = service.create(test_user.id, NotificationType.SYSTEM, "Welcome")
        await db_session.commit()

        updated = await service.mark_read(test_user.id, notification.id)

        assert updated.is_read is True
        assert (await service.list_notifications(test_user.id))["unread_count"] == 0

    async def test_cannot_mark_someone_elses(self, db_session: AsyncSession, test_user, other_user):
        service = NotificationService(db_session)
        notification = service.create(other_user.id, NotificationType.SYSTEM, "Hi")
        await db_session.commit()

        with pytest.raises(NotFoundError):
            await service.mark_read(test_user.id, notification.id)

    async def test_mark_all_read(self, db_session: AsyncSession, test_user, other_user):
        service = NotificationService(db_session)
        for title in ("one", "two"):
            service.create(test_user.id, NotificationType.SYSTEM, title)
        service.create(other_user.id, NotificationType.SYSTEM, "other")
        await db_session.commit()

        assert await service.mark_all_read(test_user.id) == 2
        assert (await service.list_notifications(other_user.id))["unread_count"] == 1
