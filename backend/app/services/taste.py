"""
Taste profile ("taste DNA"), taste twins and taste influencers.

The scoring functions are pure and work on plain rating maps keyed by
(media_type, media_id); TasteService loads the rows and resolves users.

Taste twins: over items each side rated >= TWIN_MIN_RATING, needing
TWIN_MIN_OWN of the caller's and TWIN_MIN_SHARED in common.

    rating_score  = max(0, 100 - avg_abs_diff * 10)
    jaccard_score = shared / union * 100
    compatibility = round(0.6 * rating_score + 0.4 * jaccard_score)

Only compatibility >= TWIN_MIN_SCORE counts as a twin.

Influencers: over whole libraries, compatibility = round(100 - avg_abs_diff * 10)
(>= INFLUENCER_MIN_SCORE), influence = shared / len(own library) * compatibility.
The top INFLUENCER_LIMIT are normalised so their percentages sum to ~100.
"""

import math
from collections import Counter, defaultdict
from datetime import datetime, timedelta
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.logging import get_logger
from app.db.base import as_utc, utcnow
from app.models.library import UserMedia
from app.models.media import MediaItem, MediaType
from app.models.user import User
from app.services.library import load_library_rows, load_media_map

logger = get_logger(__name__)

MediaKey = tuple[MediaType, int]
RatingMap = dict[MediaKey, float]

TOP_GENRES = 10
MAX_EXPECTED_GENRES = 50
RECENT_DAYS = 30
TREND_MONTHS = 6
RATING_BUCKETS = (("1-2", 2), ("3-4", 4), ("5-6", 6), ("7-8", 8), ("9-10", 10))

TWIN_MIN_RATING = 7
TWIN_MIN_OWN = 5
TWIN_MIN_SHARED = 3
TWIN_MIN_SCORE = 90
TWIN_LIMIT = 10
TWIN_SHARED_GENRES = 5

INFLUENCER_MIN_OWN = 5
INFLUENCER_MIN_SHARED = 2
INFLUENCER_MIN_SCORE = 60
INFLUENCER_LIMIT = 5


# ================================
# Taste DNA
# ================================

def _top(counter: Counter, n: int = TOP_GENRES) -> list[str]:
    return [name for name, _ in sorted(counter.items(), key=lambda kv: (-kv[1], kv[0]))[:n]]


def _rating_bucket(rating: float) -> str:
    for label, upper in RATING_BUCKETS:
        if rating <= upper:
            return label
    return RATING_BUCKETS[-1][0]


def _month_starts(now: datetime, count: int) -> list[tuple[int, int]]:
    """(year, month) for the last `count` months, oldest first, including now's month."""
    months = []
    for back in range(count - 1, -1, -1):
        index = now.year * 12 + (now.month - 1) - back
        months.append((index // 12, index % 12 + 1))
    return months


def rating_pattern(avg_rating: float) -> str:
    if avg_rating >= 7.5:
        return "generous"
    if avg_rating >= 5.5:
        return "balanced"
    return "harsh"


def consumption_style(activity_score: float, diversity_score: float) -> str:
    if activity_score >= 7:
        return "diverse_explorer" if diversity_score >= 7 else "binge_watcher"
    if diversity_score >= 7:
        return "diverse_explorer"
    if activity_score >= 4:
        return "steady_reader"
    return "casual_enjoyer"


def build_taste_dna(
    rows: list[tuple[UserMedia, Optional[MediaItem]]],
    now: Optional[datetime] = None,
) -> Optional[dict[str, Any]]:
    """Summarise a library; None for an empty one."""
    if not rows:
        return None
    now = now or utcnow()

    type_counts: Counter = Counter(entry.media_type.value for entry, _ in rows)
    genres_by_type: dict[str, Counter] = defaultdict(Counter)
    genres_overall: Counter = Counter()
    for entry, media in rows:
        for genre in (media.genre if media is not None else None) or []:
            genres_by_type[entry.media_type.value][genre] += 1
            genres_overall[genre] += 1

    rated = [entry for entry, _ in rows if entry.rating and entry.rating > 0]
    avg_rating = sum(e.rating for e in rated) / len(rated) if rated else 0.0

    distribution = {label: 0 for label, _ in RATING_BUCKETS}
    for entry in rated:
        distribution[_rating_bucket(entry.rating)] += 1

    cutoff = now - timedelta(days=RECENT_DAYS)
    recent = sum(1 for entry, _ in rows if as_utc(entry.created_at) >= cutoff)

    trend = []
    for year, month in _month_starts(now, TREND_MONTHS):
        in_month = [
            e.rating for e in rated
            if (as_utc(e.created_at).year, as_utc(e.created_at).month) == (year, month)
        ]
        trend.append({
            "month": f"{year:04d}-{month:02d}",
            "avg": sum(in_month) / len(in_month) if in_month else 0.0,
        })

    total = len(rows)
    diversity = min(10.0, len(genres_overall) / MAX_EXPECTED_GENRES * 10)
    activity = min(10.0, recent / total * 100)

    return {
        "top_genres": {media_type: _top(counter) for media_type, counter in genres_by_type.items()},
        "favorite_genres_overall": _top(genres_overall),
        "avg_rating": avg_rating,
        "rating_distribution": distribution,
        "total_items_count": total,
        "media_type_distribution": dict(type_counts),
        "most_active_media_type": _top(type_counts, 1)[0],
        "items_added_last_30_days": recent,
        "avg_rating_trend": trend,
        "genre_diversity_score": diversity,
        "rating_generosity_score": avg_rating,
        "activity_score": activity,
        "rating_pattern": rating_pattern(avg_rating),
        "consumption_style": consumption_style(activity, diversity),
    }


# ================================
# Twins and influencers
# ================================

def _avg_abs_diff(mine: RatingMap, theirs: RatingMap, shared: set[MediaKey]) -> float:
    return sum(abs((mine[k] or 0) - (theirs[k] or 0)) for k in shared) / len(shared)


def find_taste_twins(mine: RatingMap, others: dict[int, RatingMap]) -> list[dict[str, Any]]:
    """
    Users whose highly-rated items overlap strongly with the caller's.

    Both maps must already be limited to ratings >= TWIN_MIN_RATING.
    Returned entries carry user_id and the shared keys; best first.
    """
    if len(mine) < TWIN_MIN_OWN:
        return []

    twins = []
    for user_id, theirs in others.items():
        shared = mine.keys() & theirs.keys()
        if len(shared) < TWIN_MIN_SHARED:
            continue

        rating_score = max(0.0, 100 - _avg_abs_diff(mine, theirs, shared) * 10)
        jaccard_score = len(shared) / len(mine.keys() | theirs.keys()) * 100
        score = round(rating_score * 0.6 + jaccard_score * 0.4)
        if score < TWIN_MIN_SCORE:
            continue

        twins.append({
            "user_id": user_id,
            "compatibility_score": score,
            "shared_favorites": len(shared),
            "influence_score": round(score * len(shared) / 10),
            "recommendations_from_them": math.floor(len(shared) * 0.3),
            "shared_keys": sorted(shared, key=lambda k: (k[0].value, k[1])),
        })

    twins.sort(key=lambda t: (-t["compatibility_score"], -t["shared_favorites"], t["user_id"]))
    return twins[:TWIN_LIMIT]


def find_influencers(mine: RatingMap, others: dict[int, RatingMap]) -> list[dict[str, Any]]:
    if len(mine) < INFLUENCER_MIN_OWN:
        return []

    candidates = []
    for user_id, theirs in others.items():
        shared = mine.keys() & theirs.keys()
        if len(shared) < INFLUENCER_MIN_SHARED:
            continue

        compatibility = max(0, round(100 - _avg_abs_diff(mine, theirs, shared) * 10))
        if compatibility < INFLUENCER_MIN_SCORE:
            continue

        influence = len(shared) / len(mine) * compatibility
        candidates.append({
            "user_id": user_id,
            "influence_percentage": min(100, round(influence)),
            "shared_items": len(shared),
            "compatibility": compatibility,
        })

    candidates.sort(key=lambda c: (-c["influence_percentage"], c["user_id"]))
    top = candidates[:INFLUENCER_LIMIT]

    total = sum(c["influence_percentage"] for c in top)
    if total > 0:
        for candidate in top:
            candidate["influence_percentage"] = round(candidate["influence_percentage"] / total * 100)
    return top


class TasteService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def taste_dna(self, user_id: int) -> Optional[dict[str, Any]]:
        rows = await load_library_rows(self.db, user_id)
        return build_taste_dna(rows)

    async def _ratings(self, user_id: int, min_rating: Optional[float] = None) -> tuple[RatingMap, dict[int, RatingMap]]:
        """The caller's rating map and every other user's, optionally limited to min_rating."""
        query = select(UserMedia.user_id, UserMedia.media_type, UserMedia.media_id, UserMedia.rating)
        if min_rating is not None:
            query = query.where(UserMedia.rating >= min_rating)

        mine: RatingMap = {}
        others: dict[int, RatingMap] = defaultdict(dict)
        for owner_id, media_type, media_id, rating in (await self.db.execute(query)).all():
            key = (MediaType(media_type), media_id)
            target = mine if owner_id == user_id else others[owner_id]
            target[key] = rating or 0
        return mine, others

    async def _users(self, user_ids: list[int]) -> dict[int, User]:
        if not user_ids:
            return {}
        result = await self.db.execute(select(User).where(User.id.in_(user_ids)))
        return {u.id: u for u in result.scalars().all()}

    async def taste_twins(self, user_id: int) -> list[dict[str, Any]]:
        mine, others = await self._ratings(user_id, min_rating=TWIN_MIN_RATING)
        twins = find_taste_twins(mine, others)
        if not twins:
            return []

        users = await self._users([t["user_id"] for t in twins])
        media_map = await load_media_map(self.db, (k for t in twins for k in t["shared_keys"]))

        results = []
        for twin in twins:
            user = users.get(twin.pop("user_id"))
            shared_keys = twin.pop("shared_keys")
            if user is None:
                continue
            genres: Counter = Counter(
                genre
                for key in shared_keys
                for genre in (getattr(media_map.get(key), "genre", None) or [])
            )
            results.append({**twin, "user": user, "shared_genres": _top(genres, TWIN_SHARED_GENRES)})

        logger.info("taste_twins_found", user_id=user_id, count=len(results))
        return results

    async def influencers(self, user_id: int) -> list[dict[str, Any]]:
        mine, others = await self._ratings(user_id)
        top = find_influencers(mine, others)
        users = await self._users([c["user_id"] for c in top])
        return [
            {**{k: v for k, v in c.items() if k != "user_id"}, "user": users[c["user_id"]]}
            for c in top
            if c["user_id"] in users
        ]
