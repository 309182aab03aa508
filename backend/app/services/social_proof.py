"""
Social proof: what a user's taste network has been rating.

The network is everyone the user has a stored match with at or above a
threshold score (ACTIVITY_MIN_SCORE for the activity stream, NETWORK_MIN_SCORE
for item ratings and trending).
"""

from collections import defaultdict
from datetime import timedelta
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.logging import get_logger
from app.db.base import as_utc, utcnow
from app.models.library import UserMedia
from app.models.media import MediaType
from app.models.user import User
from app.services.library import load_media_map, parse_media_type
from app.services.matching import MatchingService

logger = get_logger(__name__)

ACTIVITY_MIN_SCORE = 70
ACTIVITY_DAYS = 7
ACTIVITY_LIMIT = 50

NETWORK_MIN_SCORE = 60
ITEM_FRIENDS_SHOWN = 5

TRENDING_DAYS = 30
TRENDING_MIN_RATING = 8
TRENDING_MIN_FRIENDS = 2
TRENDING_LIMIT = 20

# created_at and updated_at are stamped by separate utcnow() calls on insert
NEW_ROW_TOLERANCE = timedelta(seconds=1)


class SocialProofService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.matching = MatchingService(db)

    async def _usernames(self, user_ids) -> dict[int, str]:
        user_ids = set(user_ids)
        if not user_ids:
            return {}
        result = await self.db.execute(select(User.id, User.username).where(User.id.in_(user_ids)))
        return dict(result.all())

    async def network_activity(self, user_id: int) -> list[dict[str, Any]]:
        """Library rows the network added or re-rated in the last ACTIVITY_DAYS, newest first."""
        network = await self.matching.network_user_ids(user_id, ACTIVITY_MIN_SCORE)
        if not network:
            return []

        since = utcnow() - timedelta(days=ACTIVITY_DAYS)
        rows = (
            await self.db.execute(
                select(UserMedia)
                .where(UserMedia.user_id.in_(network), UserMedia.updated_at >= since)
                .order_by(UserMedia.updated_at.desc(), UserMedia.id.desc())
                .limit(ACTIVITY_LIMIT)
            )
        ).scalars().all()

        usernames = await self._usernames(r.user_id for r in rows)
        media_map = await load_media_map(self.db, ((r.media_type, r.media_id) for r in rows))

        activities = []
        for row in rows:
            media = media_map.get((row.media_type, row.media_id))
            is_new = as_utc(row.updated_at) - as_utc(row.created_at) <= NEW_ROW_TOLERANCE
            activities.append({
                "id": f"{row.user_id}-{row.media_type.value}-{row.media_id}",
                "user_id": row.user_id,
                "username": usernames.get(row.user_id, "Someone"),
                "action": "rated" if is_new else "updated rating for",
                "media_type": row.media_type,
                "media_id": row.media_id,
                "media_title": media.title if media else "Unknown",
                "media_cover": media.poster_url if media else None,
                "rating": row.rating,
                "timestamp": row.updated_at,
            })
        return activities

    async def item_proof(self, user_id: int, media_type: str | MediaType, media_id: int) -> dict[str, Any]:
        """How the user's network rated one item."""
        media_type = parse_media_type(media_type)
        empty = {"friend_count": 0, "friends": [], "avg_rating": 0.0, "has_more": False}

        network = await self.matching.network_user_ids(user_id, NETWORK_MIN_SCORE)
        if not network:
            return empty

        ratings = (
            await self.db.execute(
                select(UserMedia.user_id, UserMedia.rating)
                .where(
                    UserMedia.user_id.in_(network),
                    UserMedia.media_type == media_type,
                    UserMedia.media_id == media_id,
                    UserMedia.rating.is_not(None),
                )
                .order_by(UserMedia.rating.desc(), UserMedia.user_id)
            )
        ).all()
        if not ratings:
            return empty

        usernames = await self._usernames(uid for uid, _ in ratings)
        friends = [
            {"user_id": uid, "username": usernames.get(uid, "Someone"), "rating": rating}
            for uid, rating in ratings
        ]
        return {
            "friend_count": len(friends),
            "friends": friends[:ITEM_FRIENDS_SHOWN],
            "avg_rating": round(sum(r for _, r in ratings) / len(ratings), 1),
            "has_more": len(friends) > ITEM_FRIENDS_SHOWN,
        }

    async def trending(self, user_id: int) -> list[dict[str, Any]]:
        """Items at least TRENDING_MIN_FRIENDS of the network rated highly in the last TRENDING_DAYS."""
        network = await self.matching.network_user_ids(user_id, NETWORK_MIN_SCORE)
        if not network:
            return []

        since = utcnow() - timedelta(days=TRENDING_DAYS)
        rows = (
            await self.db.execute(
                select(UserMedia.media_type, UserMedia.media_id, UserMedia.rating).where(
                    UserMedia.user_id.in_(network),
                    UserMedia.updated_at >= since,
                    UserMedia.rating >= TRENDING_MIN_RATING,
                )
            )
        ).all()

        ratings: dict[tuple[MediaType, int], list[float]] = defaultdict(list)
        for media_type, media_id, rating in rows:
            ratings[(MediaType(media_type), media_id)].append(rating)

        popular = sorted(
            ((key, values) for key, values in ratings.items() if len(values) >= TRENDING_MIN_FRIENDS),
            key=lambda kv: (-len(kv[1]), kv[0][0].value, kv[0][1]),
        )[:TRENDING_LIMIT]

        media_map = await load_media_map(self.db, (key for key, _ in popular))
        trending = []
        for key, values in popular:
            media = media_map.get(key)
            if media is None:
                continue
            trending.append({
                "media_type": key[0],
                "media_id": key[1],
                "title": media.title,
                "cover": media.poster_url,
                "genre": list(media.genre or []),
                "friend_count": len(values),
                "avg_rating": round(sum(values) / len(values), 1),
                "author": getattr(media, "author", None),
                "artist": getattr(media, "artist", None),
                "year": getattr(media, "year", None),
            })

        logger.info("network_trending_built", user_id=user_id, count=len(trending))
        return trending
