"""
Media Models

One table per media type. Every table shares the MediaItem columns:

    source          where the record came from ("goodreads", "myanimelist", ...)
    source_item_id  the id on that source (Goodreads book id, MAL id, slug ...)
    title
    genre           JSON list of strings
    poster_url

(source, source_item_id) is unique per table, which is what the import
pipeline uses to find existing rows.

user_media rows point at these tables polymorphically through
(media_type, media_id); MEDIA_MODELS resolves a MediaType to its model.
"""

import enum

from sqlalchemy import JSON, Integer, UniqueConstraint
from sqlalchemy.orm import Mapped, declared_attr, mapped_column

from app.db.base import BaseModel, String50, String255, String500, String1000


class MediaType(str, enum.Enum):
    BOOK = "book"
    ANIME = "anime"
    MANGA = "manga"
    MOVIE = "movie"
    MUSIC = "music"

    def __str__(self) -> str:
        return self.value


class MediaItem(BaseModel):
    """Abstract base for the per-type media tables."""

    __abstract__ = True

    source: Mapped[str] = mapped_column(
        String50,
        nullable=False,
        index=True,
        comment="Origin of the record (goodreads, letterboxd, myanimelist, spotify, scrape)"
    )

    source_item_id: Mapped[str] = mapped_column(
        String255,
        nullable=False,
        comment="Identifier on the origin service"
    )

    title: Mapped[str] = mapped_column(
        String500,
        nullable=False,
        index=True,
    )

    genre: Mapped[list[str]] = mapped_column(
        JSON,
        default=list,
        nullable=False,
        comment="Genre names (artist names for music)"
    )

    poster_url: Mapped[str | None] = mapped_column(
        String1000,
        nullable=True,
        comment="Cover / poster image URL"
    )

    @declared_attr.directive
    def __table_args__(cls) -> tuple:
        return (
            UniqueConstraint(
                "source",
                "source_item_id",
                name=f"uq_{cls.__tablename__}_source_item",
            ),
        )

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(id={self.id}, title='{self.title}')>"


class Book(MediaItem):
    __tablename__ = "books"

    author: Mapped[str | None] = mapped_column(String255, nullable=True)
    isbn: Mapped[str | None] = mapped_column(
        String50,
        nullable=True,
        index=True,
        comment="ISBN13 when known, else ISBN10"
    )


class Anime(MediaItem):
    __tablename__ = "anime"

    num_episodes: Mapped[int | None] = mapped_column(Integer, nullable=True)


class Manga(MediaItem):
    __tablename__ = "manga"

    num_chapters: Mapped[int | None] = mapped_column(Integer, nullable=True)


class Movie(MediaItem):
    __tablename__ = "movies"

    year: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)


class Music(MediaItem):
    __tablename__ = "music"

    artist: Mapped[str | None] = mapped_column(String500, nullable=True)
    album: Mapped[str | None] = mapped_column(String500, nullable=True)
    duration_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)


MEDIA_MODELS: dict[MediaType, type[MediaItem]] = {
    MediaType.BOOK: Book,
    MediaType.ANIME: Anime,
    MediaType.MANGA: Manga,
    MediaType.MOVIE: Movie,
    MediaType.MUSIC: Music,
}


def get_media_model(media_type: MediaType | str) -> type[MediaItem]:
    """Resolve a media type (enum or raw string) to its model; ValueError if unknown."""
    return MEDIA_MODELS[MediaType(media_type)]
