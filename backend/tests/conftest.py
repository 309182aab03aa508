"""
Pytest configuration and fixtures.

This file is automatically discovered by pytest and provides
shared fixtures for all test modules.

Tests run against an in-memory SQLite database (aiosqlite) created fresh
for every test, and an in-memory stand-in for Redis, so no services need to
be running.

References:
-----------
- Pytest Fixtures: https://docs.pytest.org/en/stable/fixture.html
- FastAPI Testing: https://fastapi.tiangolo.com/tutorial/testing/
"""

import fnmatch
import os
from datetime import timedelta
from typing import AsyncGenerator

# Settings are read at import time, so the environment must be ready first
os.environ.setdefault("SECRET_KEY", "test-secret-key-that-is-at-least-32-characters")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ["APP_ENV"] = "testing"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["ANTHROPIC_API_KEY"] = ""
os.environ["TMDB_API_KEY"] = ""

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401  (register tables)
import app.services.cache as cache_module
from app.core.security import create_access_token, get_password_hash
from app.db.base import Base
from app.db.deps import get_db
from app.main import app
from app.models.library import UserMedia
from app.models.media import MEDIA_MODELS, Anime, Book, Movie
from app.models.user import User

MEDIA_TYPE_BY_MODEL = {model: media_type for media_type, model in MEDIA_MODELS.items()}
TEST_DATABASE_URL = os.environ.get("TEST_DATABASE_URL", "sqlite+aiosqlite:///:memory:")


# ================================
# Redis stand-in
# ================================

class FakeRedis:
    """The handful of redis.asyncio calls the cache layer makes, kept in a dict."""

    def __init__(self):
        self.store: dict[str, str] = {}

    async def get(self, key):
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        self.store[key] = value
        return True

    async def delete(self, *keys):
        removed = 0
        for key in keys:
            if self.store.pop(key, None) is not None:
                removed += 1
        return removed

    async def scan_iter(self, match="*", count=None):
        for key in list(self.store):
            if fnmatch.fnmatchcase(key, match):
                yield key

    async def flushdb(self):
        self.store.clear()
        return True

    async def ping(self):
        return True


@pytest.fixture(autouse=True)
def fake_redis(monkeypatch) -> FakeRedis:
    """Every test gets an empty cache."""
    redis = FakeRedis()

    async def _get_redis():
        return redis

    monkeypatch.setattr(cache_module, "get_redis", _get_redis)
    return redis


# ================================
# Database Fixtures
# ================================

@pytest_asyncio.fixture
async def test_engine():
    """
    A fresh schema per test: in-memory SQLite unless TEST_DATABASE_URL is set.

    StaticPool keeps the single SQLite connection alive so every session in
    the test sees the same tables.
    """
    if TEST_DATABASE_URL.startswith("sqlite"):
        engine = create_async_engine(
            TEST_DATABASE_URL,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    else:
        engine = create_async_engine(TEST_DATABASE_URL)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Session used by the test body and, through get_db, by the routes."""
    session_factory = async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    async with session_factory() as session:
        yield session


# ================================
# FastAPI Client Fixtures
# ================================

@pytest_asyncio.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """
    Create an async HTTP client for testing FastAPI endpoints.

    Usage:
        async def test_something(client: AsyncClient):
            response = await client.get("/api/v1/library")
    """
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ================================
# User Fixtures
# ================================

async def make_user(
    db: AsyncSession,
    username: str,
    email: str | None = None,
    password: str = "testpass123",
    is_active: bool = True,
    **fields,
) -> User:
    user = User(
        email=email or f"{username}@example.com",
        username=username,
        hashed_password=get_password_hash(password) if password else None,
        is_active=is_active,
        **fields,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


def auth_headers_for(user: User) -> dict[str, str]:
    token = create_access_token(data={"sub": user.email}, expires_delta=timedelta(minutes=30))
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def create_user(db_session: AsyncSession):
    """Factory for extra users: await create_user("carol")."""
    async def _create(username: str, **fields) -> User:
        return await make_user(db_session, username, **fields)

    return _create


@pytest_asyncio.fixture
async def test_user(db_session: AsyncSession) -> User:
    """Password is "testpass123"."""
    return await make_user(db_session, "alice", email="test@example.com", name="Alice Tester")


@pytest_asyncio.fixture
async def other_user(db_session: AsyncSession) -> User:
    return await make_user(db_session, "bob", name="Bob Tester")


@pytest_asyncio.fixture
async def inactive_user(db_session: AsyncSession) -> User:
    return await make_user(db_session, "inactive", is_active=False)


@pytest.fixture
def auth_headers(test_user: User) -> dict[str, str]:
    """
    Usage:
        async def test_protected_endpoint(client: AsyncClient, auth_headers: dict):
            response = await client.get("/api/v1/auth/me", headers=auth_headers)
    """
    return auth_headers_for(test_user)


@pytest.fixture
def other_auth_headers(other_user: User) -> dict[str, str]:
    return auth_headers_for(other_user)


@pytest.fixture
def expired_token() -> str:
    return create_access_token(
        data={"sub": "test@example.com"},
        expires_delta=timedelta(hours=-1)
    )


# ================================
# Media Fixtures
# ================================

@pytest_asyncio.fixture
async def books(db_session: AsyncSession) -> list[Book]:
    items = [
        Book(source="goodreads", source_item_id="1", title="Dune", author="Frank Herbert",
             genre=["Science Fiction", "Classics"]),
        Book(source="goodreads", source_item_id="2", title="Hyperion", author="Dan Simmons",
             genre=["Science Fiction"]),
        Book(source="goodreads", source_item_id="3", title="Emma", author="Jane Austen",
             genre=["Romance", "Classics"]),
        Book(source="goodreads", source_item_id="4", title="Neuromancer", author="William Gibson",
             genre=["Science Fiction", "Cyberpunk"]),
    ]
    db_session.add_all(items)
    await db_session.commit()
    return items


@pytest_asyncio.fixture
async def movies(db_session: AsyncSession) -> list[Movie]:
    items = [
        Movie(source="letterboxd", source_item_id="Alien (1979)", title="Alien", year=1979,
              genre=["Horror", "Science Fiction"]),
        Movie(source="letterboxd", source_item_id="Heat (1995)", title="Heat", year=1995,
              genre=["Crime"]),
    ]
    db_session.add_all(items)
    await db_session.commit()
    return items


@pytest_asyncio.fixture
async def anime(db_session: AsyncSession) -> list[Anime]:
    items = [
        Anime(source="myanimelist", source_item_id="1", title="Cowboy Bebop", num_episodes=26,
              genre=["Action", "Sci-Fi"]),
        Anime(source="myanimelist", source_item_id="5114", title="Fullmetal Alchemist: Brotherhood",
              num_episodes=64, genre=["Action", "Adventure"]),
    ]
    db_session.add_all(items)
    await db_session.commit()
    return items


@pytest.fixture
def add_to_library(db_session: AsyncSession):
    """
    Factory putting a media row in a user's library.

        await add_to_library(user, books[0], rating=9)
    """
    async def _add(user: User, media, rating=None, **fields) -> UserMedia:
        entry = UserMedia(
            user_id=user.id,
            media_type=MEDIA_TYPE_BY_MODEL[type(media)],
            media_id=media.id,
            rating=rating,
            tags=fields.pop("tags", []),
            **fields,
        )
        db_session.add(entry)
        await db_session.commit()
        await db_session.refresh(entry)
        return entry

    return _add


# ================================
# Pytest Hooks
# ================================

def pytest_addoption(parser):
    """Add custom pytest options."""
    parser.addoption(
        "--run-integration",
        action="store_true",
        default=False,
        help="Run integration tests that require network access and real API keys"
    )


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "integration: mark test as integration test (requires network and API keys)"
    )


def pytest_collection_modifyitems(config, items):
    if config.getoption("--run-integration"):
        return
    skip_integration = pytest.mark.skip(reason="needs --run-integration")
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_integration)
