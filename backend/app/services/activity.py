"""
Activity feed.

Feed filters:

- all: the viewer's entries plus their friends' (everyone's when anonymous)
- friends: friends' entries only
- own: the viewer's entries only

Only public entries are ever listed, newest first, capped at FEED_LIMIT.
"""

from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import ValidationError
from app.core.logging import get_logger
from app.models.activity import Activity
from app.models.user import User
from app.services.social import FriendService

logger = get_logger(__name__)

FEED_LIMIT = 50
FEED_FILTERS = ("all", "friends", "own")


class ActivityService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def _feed_user_ids(self, viewer_id: Optional[int], feed_filter: str) -> Optional[list[int]]:
        """User ids the feed is restricted to; None means no restriction."""
        if viewer_id is None:
            return None
        if feed_filter == "own":
            return [viewer_id]

        friend_ids = await FriendService(self.db).friend_ids(viewer_id)
        if feed_filter == "friends":
            return friend_ids
        return [viewer_id, *friend_ids]

    async def list_feed(
        self,
        viewer_id: Optional[int] = None,
        feed_filter: str = "all",
    ) -> list[dict[str, Any]]:
        if feed_filter not in FEED_FILTERS:
            raise ValidationError(f"Invalid filter. Must be one of: {', '.join(FEED_FILTERS)}")

        user_ids = await self._feed_user_ids(viewer_id, feed_filter)
        if user_ids is not None and not user_ids:
            return []

        query = select(Activity).where(Activity.is_public.is_(True))
        if user_ids is not None:
            query = query.where(Activity.user_id.in_(user_ids))
        query = query.order_by(Activity.created_at.desc(), Activity.id.desc()).limit(FEED_LIMIT)

        activities = list((await self.db.execute(query)).scalars().all())
        author_ids = {a.user_id for a in activities}
        users: dict[int, User] = {}
        if author_ids:
            rows = await self.db.execute(select(User).where(User.id.in_(author_ids)))
            users = {u.id: u for u in rows.scalars().all()}

        return [{"activity": a, "user": users.get(a.user_id)} for a in activities]

    async def create(
        self,
        user_id: int,
        activity_type: str,
        content: dict[str, Any],
        is_public: bool = True,
    ) -> Activity:
        activity_type = (activity_type or "").strip()
        if not activity_type or not content:
            raise ValidationError("activity_type and content are required")

        activity = Activity(
            user_id=user_id,
            activity_type=activity_type,
            content=content,
            is_public=is_public,
        )
        self.db.add(activity)
        await self.db.commit()
        await self.db.refresh(activity)
        logger.info("activity_created", user_id=user_id, activity_type=activity_type)
        return activity
