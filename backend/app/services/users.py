"""
User profiles, user search and profile edits.
"""

import math
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import ConflictError, NotFoundError, ValidationError
from app.core.logging import get_logger
from app.models.library import UserMedia
from app.models.media import MediaType
from app.models.user import User
from app.services.library import load_media_map
from app.services.matching import MatchingService, calculate_mash_score

logger = get_logger(__name__)

TOP_RATED_MIN = 8
TOP_RATED_LIMIT = 12
SEARCH_SORTS = ("username", "similarity")
PROFILE_FIELDS = ("name", "username", "bio", "avatar")


class UserService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_username(self, username: str) -> User:
        result = await self.db.execute(select(User).where(User.username == username))
        user = result.scalar_one_or_none()
        if user is None:
            raise NotFoundError("User", username)
        return user

    async def library_stats(self, user_id: int) -> dict[str, Any]:
        rows = await self.db.execute(
            select(UserMedia.media_type, func.count(UserMedia.id))
            .where(UserMedia.user_id == user_id)
            .group_by(UserMedia.media_type)
        )
        by_type = {media_type.value: 0 for media_type in MediaType}
        for media_type, count in rows.all():
            by_type[MediaType(media_type).value] = count

        average = (
            await self.db.execute(
                select(func.avg(UserMedia.rating)).where(
                    UserMedia.user_id == user_id,
                    UserMedia.rating.is_not(None),
                )
            )
        ).scalar_one_or_none()

        return {
            "total": sum(by_type.values()),
            "by_type": by_type,
            "average_rating": round(float(average), 1) if average is not None else None,
        }

    async def top_rated(self, user_id: int) -> list[dict[str, Any]]:
        rows = (
            await self.db.execute(
                select(UserMedia)
                .where(UserMedia.user_id == user_id, UserMedia.rating >= TOP_RATED_MIN)
                .order_by(UserMedia.rating.desc(), UserMedia.id)
                .limit(TOP_RATED_LIMIT)
            )
        ).scalars().all()
        media_map = await load_media_map(self.db, ((r.media_type, r.media_id) for r in rows))

        items = []
        for row in rows:
            media = media_map.get((row.media_type, row.media_id))
            if media is None:
                continue
            items.append({
                "id": row.id,
                "media_type": row.media_type.value,
                "media_id": row.media_id,
                "rating": row.rating,
                "title": media.title,
                "poster_url": media.poster_url,
            })
        return items

    async def get_profile(self, username: str, viewer: Optional[User] = None) -> dict[str, Any]:
        """Profile, library stats, top-rated items and, for other signed-in users, the MashScore."""
        user = await self.get_by_username(username)

        compatibility = None
        if viewer is not None and viewer.id != user.id:
            result = await MatchingService(self.db).compute(viewer.id, user.id)
            compatibility = result.score

        return {
            "user": user,
            "stats": await self.library_stats(user.id),
            "top_rated": await self.top_rated(user.id),
            "compatibility": compatibility,
        }

    async def search_users(
        self,
        viewer: User,
        query: str = "",
        page: int = 1,
        limit: int = 20,
        sort: str = "username",
    ) -> dict[str, Any]:
        if sort not in SEARCH_SORTS:
            raise ValidationError(f"Invalid sort. Must be one of: {', '.join(SEARCH_SORTS)}")
        page = max(page, 1)
        limit = max(1, min(limit, 100))

        conditions = [User.id != viewer.id, User.is_active.is_(True)]
        query = (query or "").strip()
        if query:
            conditions.append(
                User.username.icontains(query, autoescape=True)
                | User.name.icontains(query, autoescape=True)
            )

        total = (await self.db.execute(select(func.count(User.id)).where(*conditions))).scalar_one()

        if sort == "username":
            rows = await self.db.execute(
                select(User)
                .where(*conditions)
                .order_by(User.username)
                .offset((page - 1) * limit)
                .limit(limit)
            )
            users = [{"user": u, "compatibility": None} for u in rows.scalars().all()]
        else:
            # Scores are computed on the fly, so rank every candidate then page
            rows = await self.db.execute(select(User).where(*conditions).order_by(User.username))
            matching = MatchingService(self.db)
            viewer_library = await matching.load_library(viewer.id)

            scored = []
            for candidate in rows.scalars().all():
                result = calculate_mash_score(
                    viewer_library,
                    await matching.load_library(candidate.id),
                    user2_name=candidate.username,
                )
                scored.append({"user": candidate, "compatibility": result.score})

            scored.sort(key=lambda entry: entry["compatibility"], reverse=True)
            start = (page - 1) * limit
            users = scored[start:start + limit]

        total_pages = math.ceil(total / limit) if total else 0
        return {
            "users": users,
            "total": total,
            "page": page,
            "limit": limit,
            "total_pages": total_pages,
            "has_more": page < total_pages,
        }

    async def update_profile(self, user: User, changes: dict[str, Any]) -> User:
        new_username = changes.get("username")
        if new_username is not None and new_username != user.username:
            taken = await self.db.execute(
                select(User.id).where(User.username == new_username, User.id != user.id)
            )
            if taken.scalar_one_or_none() is not None:
                raise ConflictError("Username already taken")

        for field in PROFILE_FIELDS:
            if field in changes and changes[field] is not None:
                setattr(user, field, changes[field])

        await self.db.commit()
        await self.db.refresh(user)
        logger.info("profile_updated", user_id=user.id, fields=sorted(k for k in changes if k in PROFILE_FIELDS))
        return user
