"""
MashScore Engine

Scores how compatible two users' tastes are, 0-100:

    score = 0.5 * overlap + 0.3 * rating_similarity + 0.2 * genre_overlap

- overlap:            shared items / distinct items across both libraries
- rating_similarity:  mean of (10 - |r1 - r2|) over shared items both rated, as %
- genre_overlap:      shared genres / size of the larger genre set

calculate_mash_score is pure and deterministic: it only looks at the two
entry lists it is given. MatchingService loads those lists from the database
and persists the resulting score in the matches table.
"""

import math
from datetime import timedelta
from typing import Optional

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.errors import ValidationError
from app.core.logging import get_logger
from app.db.base import as_utc, utcnow
from app.models.library import UserMedia
from app.models.match import Match, ordered_pair
from app.models.user import User
from app.schemas.matching import (
    LibraryEntry,
    MashResult,
    MatchRecommendation,
    SharedItem,
)
from app.services.cache import cache, user_matches_key
from app.services.library import load_library_rows

logger = get_logger(__name__)

OVERLAP_WEIGHT = 0.5
RATING_WEIGHT = 0.3
GENRE_WEIGHT = 0.2

RECOMMENDATION_MIN_RATING = 7
MAX_RECOMMENDATIONS = 10


def _format_rating(rating: float) -> str:
    return str(int(rating)) if float(rating).is_integer() else f"{rating:g}"


def calculate_mash_score(
    library1: list[LibraryEntry],
    library2: list[LibraryEntry],
    user2_name: Optional[str] = None,
) -> MashResult:
    """
    Compare two libraries.

    Items are matched on (media_type, media_id). Recommendations are the
    items user 2 rated 7+ that user 1 does not have, best rated first.
    """
    items1 = {entry.key: entry for entry in library1}
    items2 = {entry.key: entry for entry in library2}

    shared_keys = [key for key in items1 if key in items2]
    union_size = len(set(items1) | set(items2))

    shared_items: list[SharedItem] = []
    rating_sum = 0.0
    rating_count = 0

    for key in shared_keys:
        entry1, entry2 = items1[key], items2[key]
        shared_items.append(
            SharedItem(
                media_type=entry1.media_type,
                media_id=entry1.media_id,
                title=entry1.title or entry2.title,
                poster_url=entry1.poster_url or entry2.poster_url,
                user1_rating=entry1.rating,
                user2_rating=entry2.rating,
            )
        )
        # A rating of 0 counts as unrated
        if entry1.rating and entry2.rating:
            rating_sum += 10 - abs(entry1.rating - entry2.rating)
            rating_count += 1

    overlap_score = (len(shared_keys) / union_size) * 100 if union_size else 0.0
    rating_score = (rating_sum / rating_count / 10) * 100 if rating_count else 0.0

    genres1 = {genre for entry in library1 for genre in entry.genres}
    genres2 = {genre for entry in library2 for genre in entry.genres}
    if genres1 and genres2:
        genre_score = len(genres1 & genres2) / max(len(genres1), len(genres2)) * 100
    else:
        genre_score = 0.0

    final_score = round(
        overlap_score * OVERLAP_WEIGHT
        + rating_score * RATING_WEIGHT
        + genre_score * GENRE_WEIGHT
    )

    name = user2_name or "your match"
    candidates = [
        entry for key, entry in items2.items()
        if key not in items1 and (entry.rating or 0) >= RECOMMENDATION_MIN_RATING
    ]
    # Stable sort keeps library order among equal ratings
    candidates.sort(key=lambda entry: entry.rating or 0, reverse=True)
    recommendations = [
        MatchRecommendation(
            media_type=entry.media_type,
            media_id=entry.media_id,
            title=entry.title,
            poster_url=entry.poster_url,
            rating=entry.rating,
            reason=f"Liked by {name} ({_format_rating(entry.rating)}/10)",
        )
        for entry in candidates[:MAX_RECOMMENDATIONS]
    ]

    return MashResult(
        score=min(100, max(0, final_score)),
        shared_count=len(shared_items),
        shared_items=shared_items,
        recommendations=recommendations,
        overlap_score=round(overlap_score, 2),
        rating_score=round(rating_score, 2),
        genre_score=round(genre_score, 2),
    )


class MatchingService:
    """
    Loads libraries, computes MashScores and caches them in `matches`.

    Usage:
    ------
        service = MatchingService(db)
        result = await service.compute(alice.id, bob.id)
        match = await service.get_or_create_match(alice.id, bob.id, result=result)
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def load_library(self, user_id: int) -> list[LibraryEntry]:
        rows = await load_library_rows(self.db, user_id)
        return [
            LibraryEntry(
                media_type=row.media_type,
                media_id=row.media_id,
                rating=row.rating,
                title=media.title if media else "",
                genres=list(media.genre or []) if media else [],
                poster_url=media.poster_url if media else None,
            )
            for row, media in rows
        ]

    async def compute(self, user1_id: int, user2_id: int) -> MashResult:
        user2 = await self.db.get(User, user2_id)
        library1 = await self.load_library(user1_id)
        library2 = await self.load_library(user2_id)
        return calculate_mash_score(
            library1,
            library2,
            user2_name=user2.username if user2 else None,
        )

    async def find_match(self, user1_id: int, user2_id: int) -> Optional[Match]:
        # Rows are written ordered, but legacy rows may not be; check both orders
        result = await self.db.execute(
            select(Match).where(
                or_(
                    (Match.user1_id == user1_id) & (Match.user2_id == user2_id),
                    (Match.user1_id == user2_id) & (Match.user2_id == user1_id),
                )
            )
        )
        return result.scalars().first()

    async def _has_recent_activity(self, user_ids: tuple[int, int]) -> bool:
        since = utcnow() - timedelta(minutes=settings.MATCH_RECENT_ACTIVITY_MINUTES)
        result = await self.db.execute(
            select(UserMedia.id)
            .where(
                UserMedia.user_id.in_(user_ids),
                UserMedia.updated_at >= since,
            )
            .limit(1)
        )
        return result.scalar_one_or_none() is not None

    async def is_fresh(self, match: Match) -> bool:
        updated_at = as_utc(match.updated_at)
        if updated_at is None:
            return False
        if utcnow() - updated_at >= timedelta(hours=settings.MATCH_CACHE_HOURS):
            return False
        return not await self._has_recent_activity((match.user1_id, match.user2_id))

    async def get_or_create_match(
        self,
        user1_id: int,
        user2_id: int,
        force: bool = False,
        result: Optional[MashResult] = None,
    ) -> Match:
        """
        Return the stored match for the pair, recomputing when it is stale.

        A stored match is reused when it is younger than MATCH_CACHE_HOURS and
        neither user touched their library in the last
        MATCH_RECENT_ACTIVITY_MINUTES. A precomputed `result` is used instead
        of scoring again when a recompute is needed.
        """
        if user1_id == user2_id:
            raise ValidationError("Cannot match a user with themselves")

        existing = await self.find_match(user1_id, user2_id)
        if existing is not None and not force and await self.is_fresh(existing):
            return existing

        if result is None:
            result = await self.compute(user1_id, user2_id)

        if existing is not None:
            existing.similarity_score = result.score
            existing.shared_count = result.shared_count
            existing.updated_at = utcnow()
            match = existing
        else:
            low, high = ordered_pair(user1_id, user2_id)
            match = Match(
                user1_id=low,
                user2_id=high,
                similarity_score=result.score,
                shared_count=result.shared_count,
            )
            self.db.add(match)

        await self.db.commit()
        await self.db.refresh(match)
        await cache.delete(user_matches_key(match.user1_id))
        await cache.delete(user_matches_key(match.user2_id))

        logger.info(
            "match_computed",
            user1_id=match.user1_id,
            user2_id=match.user2_id,
            score=result.score,
            shared_count=result.shared_count,
        )
        return match

    async def list_matches(
        self,
        user_id: int,
        page: int = 1,
        limit: int = 20,
        min_score: float = 0,
    ) -> dict:
        """A user's stored matches, best first, each paired with the other user."""
        page = max(page, 1)
        limit = max(1, min(limit, 100))

        conditions = [
            or_(Match.user1_id == user_id, Match.user2_id == user_id),
            Match.similarity_score >= min_score,
        ]

        total = (
            await self.db.execute(select(func.count(Match.id)).where(*conditions))
        ).scalar_one()

        result = await self.db.execute(
            select(Match)
            .where(*conditions)
            .order_by(Match.similarity_score.desc(), Match.id)
            .offset((page - 1) * limit)
            .limit(limit)
        )
        matches = list(result.scalars().all())

        other_ids = {m.other_user_id(user_id) for m in matches}
        users: dict[int, User] = {}
        if other_ids:
            user_rows = await self.db.execute(select(User).where(User.id.in_(other_ids)))
            users = {u.id: u for u in user_rows.scalars().all()}

        total_pages = math.ceil(total / limit) if total else 0
        return {
            "matches": [
                {"match": m, "user": users[m.other_user_id(user_id)]}
                for m in matches
                if m.other_user_id(user_id) in users
            ],
            "total": total,
            "page": page,
            "limit": limit,
            "total_pages": total_pages,
            "has_more": page < total_pages,
        }

    async def top_matches(self, user_id: int, limit: int = 5, min_score: float = 0) -> list[Match]:
        result = await self.db.execute(
            select(Match)
            .where(
                or_(Match.user1_id == user_id, Match.user2_id == user_id),
                Match.similarity_score >= min_score,
            )
            .order_by(Match.similarity_score.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def network_user_ids(self, user_id: int, min_score: float) -> list[int]:
        """Everyone the user has a stored match with at or above min_score."""
        result = await self.db.execute(
            select(Match).where(
                or_(Match.user1_id == user_id, Match.user2_id == user_id),
                Match.similarity_score >= min_score,
            )
        )
        return [m.other_user_id(user_id) for m in result.scalars().all()]

    async def refresh_stale_matches(self, limit: int = 200) -> int:
        """Recompute up to `limit` matches older than MATCH_CACHE_HOURS, oldest first."""
        cutoff = utcnow() - timedelta(hours=settings.MATCH_CACHE_HOURS)
        result = await self.db.execute(
            select(Match)
            .where(Match.updated_at < cutoff)
            .order_by(Match.updated_at)
            .limit(limit)
        )
        stale = list(result.scalars().all())

        for match in stale:
            await self.get_or_create_match(match.user1_id, match.user2_id, force=True)

        if stale:
            logger.info("stale_matches_refreshed", count=len(stale))
        return len(stale)
