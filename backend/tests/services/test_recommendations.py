"""
Tests for the recommendation strategies and the cached blend.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.match import Match
from app.models.media import MediaType
from app.services.cache import user_recommendations_key
from app.services.recommendations import RecommendationService


class TestCollaborative:

    async def test_needs_three_shared_items(self, db_session: AsyncSession, test_user, other_user, books, add_to_library):
        for book in books[:2]:
            await add_to_library(test_user, book, rating=8)
            await add_to_library(other_user, book, rating=8)
        await add_to_library(other_user, books[3], rating=9)

        recs = await RecommendationService(db_session).get_collaborative(test_user.id)

        assert recs == []

    async def test_recommends_unowned_liked_items(self, db_session: AsyncSession, test_user, other_user, books, add_to_library):
        for book in books[:3]:
            await add_to_library(test_user, book, rating=8)
            await add_to_library(other_user, book, rating=8)
        await add_to_library(other_user, books[3], rating=9)

        recs = await RecommendationService(db_session).get_collaborative(test_user.id)

        assert len(recs) == 1
        assert recs[0].media.title == "Neuromancer"
        assert recs[0].source == "collaborative"
        assert recs[0].reason == "Liked by 1 user with similar taste"
        # 1 * 0.6 + 9 * 0.4
        assert recs[0].score == 4.2

    async def test_low_ratings_are_ignored(self, db_session: AsyncSession, test_user, other_user, books, add_to_library):
        for book in books[:3]:
            await add_to_library(test_user, book, rating=8)
            await add_to_library(other_user, book, rating=8)
        await add_to_library(other_user, books[3], rating=5)

        recs = await RecommendationService(db_session).get_collaborative(test_user.id)

        assert recs == []

    async def test_empty_library(self, db_session: AsyncSession, test_user):
        assert await RecommendationService(db_session).get_collaborative(test_user.id) == []


class TestContentBased:

    async def test_genre_overlap_scoring(self, db_session: AsyncSession, test_user, books, movies, add_to_library):
        # Hyperion is pure Science Fiction
        await add_to_library(test_user, books[1], rating=9)

        recs = await RecommendationService(db_session).get_content_based(test_user.id)

        titles = [rec.media.title for rec in recs]
        assert titles == ["Dune", "Neuromancer", "Emma"]
        assert recs[0].reason == "Similar to your favorite Science Fiction"
        assert recs[2].reason == "Based on your preferences"
        # only media types the user already rated highly
        assert all(rec.media_type == MediaType.BOOK for rec in recs)

    async def test_no_highly_rated_items(self, db_session: AsyncSession, test_user, books, add_to_library):
        await add_to_library(test_user, books[1], rating=4)

        assert await RecommendationService(db_session).get_content_based(test_user.id) == []


class TestSimilarUsers:

    async def test_uses_high_scoring_matches(self, db_session: AsyncSession, test_user, other_user, books, add_to_library):
        db_session.add(
            Match(user1_id=test_user.id, user2_id=other_user.id, similarity_score=80, shared_count=4)
        )
        await db_session.commit()
        await add_to_library(test_user, books[0], rating=9)
        await add_to_library(other_user, books[0], rating=9)
        await add_to_library(other_user, books[2], rating=8)
        await add_to_library(other_user, books[3], rating=6)

        recs = await RecommendationService(db_session).get_similar_users(test_user.id)

        assert [rec.media.title for rec in recs] == ["Emma"]
        assert recs[0].reason == "Liked by 1 highly compatible user"
        assert recs[0].score == 18

    async def test_ignores_weak_matches(self, db_session: AsyncSession, test_user, other_user, books, add_to_library):
        db_session.add(
            Match(user1_id=test_user.id, user2_id=other_user.id, similarity_score=50, shared_count=1)
        )
        await db_session.commit()
        await add_to_library(other_user, books[2], rating=10)

        assert await RecommendationService(db_session).get_similar_users(test_user.id) == []


class TestBlend:

    async def test_get_all_deduplicates(self, db_session: AsyncSession, test_user, other_user, books, add_to_library):
        db_session.add(
            Match(user1_id=test_user.id, user2_id=other_user.id, similarity_score=90, shared_count=3)
        )
        await db_session.commit()
        for book in books[:3]:
            await add_to_library(test_user, book, rating=8)
            await add_to_library(other_user, book, rating=8)
        await add_to_library(other_user, books[3], rating=9)

        recs = await RecommendationService(db_session).get_all(test_user.id, limit=9)

        keys = [(rec.media_type, rec.media.id) for rec in recs]
        assert len(keys) == len(set(keys))
        assert [rec.media.title for rec in recs] == ["Neuromancer"]

    async def test_blend_is_cached(self, db_session: AsyncSession, test_user, books, add_to_library, fake_redis):
        await add_to_library(test_user, books[1], rating=9)
        service = RecommendationService(db_session)

        first = await service.get_recommendations(test_user.id, limit=5)

        assert user_recommendations_key(test_user.id) in fake_redis.store
        second = await service.get_recommendations(test_user.id, limit=5)
        assert [rec.media.id for rec in second] == [rec.media.id for rec in first]

    async def test_single_strategy_bypasses_cache(self, db_session: AsyncSession, test_user, books, add_to_library, fake_redis):
        await add_to_library(test_user, books[1], rating=9)

        recs = await RecommendationService(db_session).get_recommendations(
            test_user.id, rec_type="content"
        )

        assert recs
        assert user_recommendations_key(test_user.id) not in fake_redis.store

    async def test_cached_blend_reused_only_for_same_limit(
        self, db_session: AsyncSession, test_user, other_user, books, movies, add_to_library, fake_redis
    ):
        for book in books[:3]:
            await add_to_library(test_user, book, rating=8)
            await add_to_library(other_user, book, rating=8)
        await add_to_library(other_user, books[3], rating=9)
        await add_to_library(other_user, movies[0], rating=9)
        service = RecommendationService(db_session)

        await service.get_recommendations(test_user.id, limit=20)
        small = await service.get_recommendations(test_user.id, limit=2)
        fresh = await service.get_all(test_user.id, limit=2)

        assert [(r.source, r.media.title) for r in small] == [(r.source, r.media.title) for r in fresh]
        assert '"limit": 2' in fake_redis.store[user_recommendations_key(test_user.id)]

    async def test_media_type_narrows_blend_before_limit(
        self, db_session: AsyncSession, test_user, books, movies, add_to_library, fake_redis
    ):
        await add_to_library(test_user, books[1], rating=9)
        await add_to_library(test_user, movies[0], rating=9)

        recs = await RecommendationService(db_session).get_recommendations(
            test_user.id, limit=1, media_type=MediaType.MOVIE
        )

        assert [rec.media.title for rec in recs] == ["Heat"]
        assert user_recommendations_key(test_user.id) not in fake_redis.store
