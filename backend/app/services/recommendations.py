"""
Recommendation Engine

Three strategies, each excluding everything already in the user's library:

1. collaborative   users sharing 3+ items with you; their 7+ rated items,
                   scored count * 0.6 + avg_rating * 0.4
2. content         genres of your 7+ rated items; candidates of the same
                   media types, scored by genre overlap
3. similar_users   your top 5 matches with MashScore >= 70; their 8+ rated
                   items, scored count * 10 + best rating

get_all blends them (ceil(limit / 3) each) and keeps the first occurrence of
each item. The unfiltered blend is cached under user:{id}:recommendations
together with the limit it was built for.
"""

import math
from collections import defaultdict
from typing import Literal, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.logging import get_logger
from app.models.library import UserMedia
from app.models.media import MEDIA_MODELS, MediaType
from app.schemas.library import MediaItemResponse
from app.schemas.recommendations import Recommendation
from app.services.cache import cache, user_recommendations_key
from app.services.library import load_media_map
from app.services.matching import MatchingService

logger = get_logger(__name__)

MIN_SHARED_ITEMS = 3
COLLABORATIVE_MIN_RATING = 7
CONTENT_MIN_RATING = 7
CONTENT_CANDIDATES_PER_TYPE = 100
SIMILAR_USERS_MIN_SCORE = 70
SIMILAR_USERS_TOP_MATCHES = 5
SIMILAR_USERS_MIN_RATING = 8

RecommendationType = Literal["all", "collaborative", "content", "similar_users"]

Key = tuple[MediaType, int]


def _plural(count: int, word: str) -> str:
    return f"{count} {word}{'s' if count != 1 else ''}"


class RecommendationService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def _owned_keys(self, user_id: int) -> set[Key]:
        result = await self.db.execute(
            select(UserMedia.media_type, UserMedia.media_id).where(UserMedia.user_id == user_id)
        )
        return {(row.media_type, row.media_id) for row in result.all()}

    async def _build(
        self,
        scored: dict[Key, tuple[float, str]],
        source: str,
        limit: int,
        media_type: Optional[MediaType] = None,
    ) -> list[Recommendation]:
        """Resolve media for the top `limit` scored keys (of `media_type`, if given) and wrap them."""
        if media_type is not None:
            scored = {key: value for key, value in scored.items() if key[0] == media_type}
        ranked = sorted(scored.items(), key=lambda kv: kv[1][0], reverse=True)[:limit]
        media_map = await load_media_map(self.db, (key for key, _ in ranked))

        recommendations = []
        for key, (score, reason) in ranked:
            media = media_map.get(key)
            if media is None:
                continue
            recommendations.append(
                Recommendation(
                    media_type=key[0],
                    media=MediaItemResponse.model_validate(media),
                    reason=reason,
                    score=round(score, 4),
                    source=source,
                )
            )
        return recommendations

    # ================================
    # Strategies
    # ================================

    async def get_collaborative(
        self, user_id: int, limit: int = 10, media_type: Optional[MediaType] = None
    ) -> list[Recommendation]:
        owned = await self._owned_keys(user_id)
        if not owned:
            return []

        owned_ids_by_type: dict[MediaType, set[int]] = defaultdict(set)
        for item_type, media_id in owned:
            owned_ids_by_type[item_type].add(media_id)

        shared_counts: dict[int, int] = defaultdict(int)
        for item_type, ids in owned_ids_by_type.items():
            result = await self.db.execute(
                select(UserMedia.user_id, func.count(UserMedia.id))
                .where(
                    UserMedia.user_id != user_id,
                    UserMedia.media_type == item_type,
                    UserMedia.media_id.in_(ids),
                )
                .group_by(UserMedia.user_id)
            )
            for other_id, count in result.all():
                shared_counts[other_id] += count

        similar_ids = [uid for uid, count in shared_counts.items() if count >= MIN_SHARED_ITEMS]
        if not similar_ids:
            return []

        result = await self.db.execute(
            select(UserMedia.media_type, UserMedia.media_id, UserMedia.rating).where(
                UserMedia.user_id.in_(similar_ids),
                UserMedia.rating >= COLLABORATIVE_MIN_RATING,
            )
        )

        totals: dict[Key, list[float]] = defaultdict(list)
        for item_type, media_id, rating in result.all():
            key = (item_type, media_id)
            if key not in owned:
                totals[key].append(rating or 0)

        scored = {}
        for key, ratings in totals.items():
            count = len(ratings)
            avg_rating = sum(ratings) / count
            scored[key] = (
                count * 0.6 + avg_rating * 0.4,
                f"Liked by {_plural(count, 'user')} with similar taste",
            )

        return await self._build(scored, "collaborative", limit, media_type)

    async def get_content_based(
        self, user_id: int, limit: int = 10, media_type: Optional[MediaType] = None
    ) -> list[Recommendation]:
        owned = await self._owned_keys(user_id)

        result = await self.db.execute(
            select(UserMedia.media_type, UserMedia.media_id).where(
                UserMedia.user_id == user_id,
                UserMedia.rating >= CONTENT_MIN_RATING,
            )
        )
        liked_keys = [(row.media_type, row.media_id) for row in result.all()]
        if not liked_keys:
            return []

        liked_media = await load_media_map(self.db, liked_keys)
        liked_genres: set[str] = set()
        liked_types: set[MediaType] = set()
        for (liked_type, _), media in liked_media.items():
            liked_types.add(liked_type)
            liked_genres.update(media.genre or [])

        if not liked_genres and not liked_types:
            return []

        scored = {}
        for candidate_type in liked_types:
            if media_type is not None and candidate_type != media_type:
                continue
            model = MEDIA_MODELS[candidate_type]
            owned_ids = [media_id for t, media_id in owned if t == candidate_type]
            query = select(model)
            if owned_ids:
                query = query.where(model.id.not_in(owned_ids))
            candidates = await self.db.execute(
                query.order_by(model.id).limit(CONTENT_CANDIDATES_PER_TYPE)
            )
            for media in candidates.scalars().all():
                media_genres = set(media.genre or [])
                shared = [g for g in sorted(liked_genres) if g in media_genres]
                score = len(shared) / max(len(liked_genres), 1)
                if score > 0.5:
                    reason = f"Similar to your favorite {', '.join(shared[:2])}"
                else:
                    reason = "Based on your preferences"
                scored[(candidate_type, media.id)] = (score, reason)

        return await self._build(scored, "content", limit, media_type)

    async def get_similar_users(
        self, user_id: int, limit: int = 10, media_type: Optional[MediaType] = None
    ) -> list[Recommendation]:
        matches = await MatchingService(self.db).top_matches(
            user_id,
            limit=SIMILAR_USERS_TOP_MATCHES,
            min_score=SIMILAR_USERS_MIN_SCORE,
        )
        if not matches:
            return []

        similar_ids = [m.other_user_id(user_id) for m in matches]
        owned = await self._owned_keys(user_id)

        result = await self.db.execute(
            select(UserMedia.media_type, UserMedia.media_id, UserMedia.rating).where(
                UserMedia.user_id.in_(similar_ids),
                UserMedia.rating >= SIMILAR_USERS_MIN_RATING,
            )
        )

        counts: dict[Key, int] = defaultdict(int)
        best: dict[Key, float] = defaultdict(float)
        for item_type, media_id, rating in result.all():
            key = (item_type, media_id)
            if key in owned:
                continue
            counts[key] += 1
            best[key] = max(best[key], rating or 0)

        scored = {
            key: (
                count * 10 + best[key],
                f"Liked by {_plural(count, 'highly compatible user')}",
            )
            for key, count in counts.items()
        }
        return await self._build(scored, "similar_users", limit, media_type)

    # ================================
    # Blend
    # ================================

    async def get_all(
        self, user_id: int, limit: int = 20, media_type: Optional[MediaType] = None
    ) -> list[Recommendation]:
        per_strategy = math.ceil(limit / 3)

        combined = (
            await self.get_collaborative(user_id, per_strategy, media_type)
            + await self.get_content_based(user_id, per_strategy, media_type)
            + await self.get_similar_users(user_id, per_strategy, media_type)
        )

        seen: set[Key] = set()
        unique = []
        for rec in combined:
            key = (rec.media_type, rec.media.id)
            if key in seen:
                continue
            seen.add(key)
            unique.append(rec)

        unique.sort(key=lambda rec: rec.score, reverse=True)
        return unique[:limit]

    async def get_recommendations(
        self,
        user_id: int,
        limit: int = 20,
        rec_type: RecommendationType = "all",
        media_type: Optional[MediaType] = None,
    ) -> list[Recommendation]:
        """
        Route entry point.

        Only the unfiltered blend is cached; a cached blend is reused only
        when it was built for the same limit.
        """
        if rec_type == "collaborative":
            return await self.get_collaborative(user_id, limit, media_type)
        if rec_type == "content":
            return await self.get_content_based(user_id, limit, media_type)
        if rec_type == "similar_users":
            return await self.get_similar_users(user_id, limit, media_type)
        if media_type is not None:
            return await self.get_all(user_id, limit, media_type)

        key = user_recommendations_key(user_id)
        cached: Optional[dict] = await cache.get(key)
        if cached and cached.get("limit") == limit:
            return [Recommendation.model_validate(item) for item in cached["items"]]

        recommendations = await self.get_all(user_id, limit)
        await cache.set(
            key,
            {
                "limit": limit,
                "items": [rec.model_dump(mode="json") for rec in recommendations],
            },
        )
        logger.info("recommendations_generated", user_id=user_id, count=len(recommendations))
        return recommendations
