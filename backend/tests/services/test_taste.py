"""
Tests for taste DNA, taste twins and influencers.
"""

from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.library import UserMedia
from app.models.media import Anime, Book, MediaType, Movie
from app.services.taste import (
    TasteService,
    build_taste_dna,
    consumption_style,
    find_influencers,
    find_taste_twins,
    rating_pattern,
)

NOW = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)


def entry(media_type: MediaType, rating, created_at: datetime) -> UserMedia:
    return UserMedia(user_id=1, media_type=media_type, media_id=1, rating=rating, created_at=created_at)


def keys(*ids: int) -> list[tuple[MediaType, int]]:
    return [(MediaType.BOOK, i) for i in ids]


class TestTasteDNA:

    def test_profile(self):
        rows = [
            (entry(MediaType.BOOK, 9, datetime(2026, 3, 10, tzinfo=timezone.utc)),
             Book(title="Dune", genre=["Science Fiction", "Classics"])),
            (entry(MediaType.BOOK, 4, datetime(2026, 1, 5, tzinfo=timezone.utc)),
             Book(title="Emma", genre=["Romance", "Classics"])),
            (entry(MediaType.MOVIE, 8, datetime(2025, 12, 20, tzinfo=timezone.utc)),
             Movie(title="Alien", genre=["Horror", "Science Fiction"])),
            (entry(MediaType.ANIME, None, datetime(2026, 3, 1, tzinfo=timezone.utc)),
             Anime(title="Cowboy Bebop", genre=["Action"])),
        ]

        dna = build_taste_dna(rows, now=NOW)

        assert dna["avg_rating"] == 7.0
        assert dna["rating_pattern"] == "balanced"
        assert dna["rating_distribution"] == {"1-2": 0, "3-4": 1, "5-6": 0, "7-8": 1, "9-10": 1}
        assert dna["total_items_count"] == 4
        assert dna["media_type_distribution"] == {"book": 2, "movie": 1, "anime": 1}
        assert dna["most_active_media_type"] == "book"
        assert dna["top_genres"]["book"] == ["Classics", "Romance", "Science Fiction"]
        assert dna["favorite_genres_overall"] == ["Classics", "Science Fiction", "Action", "Horror", "Romance"]
        assert dna["items_added_last_30_days"] == 2
        assert dna["activity_score"] == 10.0
        assert dna["genre_diversity_score"] == 1.0
        assert dna["consumption_style"] == "binge_watcher"
        assert dna["avg_rating_trend"] == [
            {"month": "2025-10", "avg": 0.0},
            {"month": "2025-11", "avg": 0.0},
            {"month": "2025-12", "avg": 8.0},
            {"month": "2026-01", "avg": 4.0},
            {"month": "2026-02", "avg": 0.0},
            {"month": "2026-03", "avg": 9.0},
        ]

    def test_empty_library(self):
        assert build_taste_dna([], now=NOW) is None

    def test_rating_pattern_thresholds(self):
        assert rating_pattern(7.5) == "generous"
        assert rating_pattern(5.5) == "balanced"
        assert rating_pattern(5.4) == "harsh"

    def test_consumption_styles(self):
        assert consumption_style(8, 8) == "diverse_explorer"
        assert consumption_style(8, 2) == "binge_watcher"
        assert consumption_style(1, 9) == "diverse_explorer"
        assert consumption_style(5, 1) == "steady_reader"
        assert consumption_style(1, 1) == "casual_enjoyer"


class TestTwinsAndInfluencers:

    def test_twins_need_high_overlap(self):
        mine = dict.fromkeys(keys(1, 2, 3, 4, 5), 9.0)
        others = {
            2: dict.fromkeys(keys(1, 2, 3, 4, 5), 9.0),
            3: {**dict.fromkeys(keys(1, 2, 3), 10.0), **dict.fromkeys(keys(6, 7), 8.0)},
            4: dict.fromkeys(keys(1, 2), 9.0),
        }

        twins = find_taste_twins(mine, others)

        assert [t["user_id"] for t in twins] == [2]
        twin = twins[0]
        assert twin["compatibility_score"] == 100
        assert twin["shared_favorites"] == 5
        assert twin["influence_score"] == 50
        assert twin["recommendations_from_them"] == 1

    def test_twins_need_enough_favourites(self):
        mine = dict.fromkeys(keys(1, 2, 3, 4), 9.0)

        assert find_taste_twins(mine, {2: dict(mine)}) == []

    def test_influencers_normalised(self):
        mine = dict.fromkeys(keys(1, 2, 3, 4, 5), 8.0)
        others = {
            2: dict.fromkeys(keys(1, 2, 3, 4, 5), 8.0),
            3: dict.fromkeys(keys(1, 2), 6.0),
            4: dict.fromkeys(keys(1), 8.0),
            5: dict.fromkeys(keys(1, 2, 3), 3.0),
        }

        influencers = find_influencers(mine, others)

        assert [(i["user_id"], i["influence_percentage"], i["compatibility"]) for i in influencers] == [
            (2, 76, 100),
            (3, 24, 80),
        ]

    async def test_twins_from_database(
        self, db_session: AsyncSession, test_user, other_user, create_user, add_to_library, books, movies
    ):
        carol = await create_user("carol")
        favourites = [*books, movies[0]]
        for media in favourites:
            await add_to_library(test_user, media, rating=9)
            await add_to_library(other_user, media, rating=9)
        for media in favourites[:3]:
            await add_to_library(carol, media, rating=7)
        await add_to_library(carol, movies[1], rating=10)

        twins = await TasteService(db_session).taste_twins(test_user.id)

        assert [t["user"].username for t in twins] == ["bob"]
        assert twins[0]["shared_genres"] == ["Science Fiction", "Classics", "Cyberpunk", "Horror", "Romance"]

    async def test_influencers_from_database(
        self, db_session: AsyncSession, test_user, other_user, add_to_library, books, movies
    ):
        for media in [*books, movies[0]]:
            await add_to_library(test_user, media, rating=8)
        for media in books[:2]:
            await add_to_library(other_user, media, rating=7)

        influencers = await TasteService(db_session).influencers(test_user.id)

        assert [(i["user"].username, i["influence_percentage"], i["shared_items"]) for i in influencers] == [
            ("bob", 100, 2),
        ]

    async def test_taste_dna_empty_library(self, db_session: AsyncSession, test_user):
        assert await TasteService(db_session).taste_dna(test_user.id) is None
