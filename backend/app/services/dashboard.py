"""
Dashboard summary for the signed-in user.
"""

from typing import Any

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.logging import get_logger
from app.models.match import Match
from app.models.source import Source
from app.models.user import User
from app.services.library import load_library_rows
from app.services.matching import MatchingService
from app.services.users import UserService

logger = get_logger(__name__)

RECENT_MATCHES = 5
SUGGESTION_POOL = 20
SUGGESTIONS_SCORED = 3
RECENT_ACTIVITY = 10


class DashboardService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.matching = MatchingService(db)

    async def _suggestions(self, user_id: int, matched_ids: set[int]) -> list[dict[str, Any]]:
        """Score a few users the caller has no stored match with yet, best first."""
        result = await self.db.execute(
            select(User).where(User.id != user_id).order_by(User.id).limit(SUGGESTION_POOL)
        )
        unmatched = [u for u in result.scalars().all() if u.id not in matched_ids]

        suggestions = []
        for user in unmatched[:SUGGESTIONS_SCORED]:
            mash = await self.matching.compute(user_id, user.id)
            suggestions.append({"user": user, "score": mash.score, "shared_count": mash.shared_count})
        suggestions.sort(key=lambda s: -s["score"])
        return suggestions

    async def summary(self, user_id: int) -> dict[str, Any]:
        stats = await UserService(self.db).library_stats(user_id)

        sources = (
            await self.db.execute(
                select(Source.source_name).where(Source.user_id == user_id).order_by(Source.id)
            )
        ).scalars().all()

        total_matches = (
            await self.db.execute(
                select(func.count(Match.id)).where(
                    or_(Match.user1_id == user_id, Match.user2_id == user_id)
                )
            )
        ).scalar_one()

        recent = (await self.matching.list_matches(user_id, limit=RECENT_MATCHES))["matches"]

        matched = await self.matching.network_user_ids(user_id, min_score=0)
        suggestions = await self._suggestions(user_id, set(matched))

        rows = await load_library_rows(self.db, user_id)

        return {
            "stats": {
                "media": {"total": stats["total"], **stats["by_type"]},
                "integrations": len(sources),
                "total_matches": total_matches,
            },
            "recent_matches": recent,
            "suggested_matches": suggestions,
            "recent_activity": rows[:RECENT_ACTIVITY],
            "connected_integrations": [str(name) for name in sources],
        }
