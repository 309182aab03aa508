"""
Tests for the Celery tasks: source sync, covers and match refresh.

Tasks are called directly (not through a broker) with the database session
factory and the services they call patched out.
"""

from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from app.models.media import MediaType
from app.models.source import Source, SourceName
from app.tasks.cover_tasks import update_missing_covers_task
from app.tasks.match_tasks import refresh_stale_matches
from app.tasks.source_tasks import sync_all_sources, sync_source_task


# ========================================
# Fixtures
# ========================================

@pytest.fixture
def session():
    """Stand-in AsyncSession; execute() results are set per test."""
    db = MagicMock()
    db.execute = AsyncMock()
    return db


@pytest.fixture
def session_factory(session):
    @asynccontextmanager
    async def factory():
        yield session

    return factory


def query_result(value):
    result = MagicMock()
    result.scalar_one_or_none.return_value = value
    return result


# ========================================
# sync_source_task
# ========================================

def test_sync_source_task_runs_importer(session, session_factory):
    source = Source(user_id=7, source_name=SourceName.LETTERBOXD, source_user_id="cinephile")
    session.execute.return_value = query_result(source)

    with patch("app.tasks.source_tasks.AsyncSessionLocal", session_factory), \
         patch("app.tasks.source_tasks.sync_source", AsyncMock(return_value={"imported": 12})) as sync:
        result = sync_source_task.run(7, "letterboxd")

    assert result == {"success": True, "user_id": 7, "source": "letterboxd", "imported": 12}
    sync.assert_awaited_once_with(session, source)


def test_sync_source_task_missing_source(session, session_factory):
    session.execute.return_value = query_result(None)

    with patch("app.tasks.source_tasks.AsyncSessionLocal", session_factory), \
         patch("app.tasks.source_tasks.sync_source", AsyncMock()) as sync:
        result = sync_source_task.run(7, "goodreads")

    assert result == {"success": False, "error": "Source not connected"}
    sync.assert_not_awaited()


# ========================================
# sync_all_sources
# ========================================

def test_sync_all_sources_staggers_tasks(session_factory):
    due = [
        Source(user_id=1, source_name=SourceName.GOODREADS, source_user_id="777"),
        Source(user_id=2, source_name=SourceName.SPOTIFY, refresh_token="r"),
    ]

    with patch("app.tasks.source_tasks.AsyncSessionLocal", session_factory), \
         patch("app.tasks.source_tasks.find_due_sources", AsyncMock(return_value=due)), \
         patch("app.tasks.source_tasks.sync_source_task.apply_async") as apply_async:
        apply_async.side_effect = [MagicMock(id="t1"), MagicMock(id="t2")]

        result = sync_all_sources.run()

    assert result == {"success": True, "sources_queued": 2, "task_ids": ["t1", "t2"]}
    assert apply_async.call_args_list[0].kwargs == {"args": [1, "goodreads"], "countdown": 0}
    assert apply_async.call_args_list[1].kwargs == {"args": [2, "spotify"], "countdown": 5}


def test_sync_all_sources_nothing_due(session_factory):
    with patch("app.tasks.source_tasks.AsyncSessionLocal", session_factory), \
         patch("app.tasks.source_tasks.find_due_sources", AsyncMock(return_value=[])), \
         patch("app.tasks.source_tasks.sync_source_task.apply_async") as apply_async:
        result = sync_all_sources.run()

    assert result["sources_queued"] == 0
    apply_async.assert_not_called()


# ========================================
# Covers and matches
# ========================================

def test_update_missing_covers_task(session, session_factory):
    summary = {"updated": 3, "failed": 1, "total": 4}

    with patch("app.tasks.cover_tasks.AsyncSessionLocal", session_factory), \
         patch("app.tasks.cover_tasks.update_missing_covers", AsyncMock(return_value=summary)) as update:
        result = update_missing_covers_task.run("book", limit=10)

    assert result == summary
    update.assert_awaited_once_with(session, media_type=MediaType.BOOK, limit=10)


def test_refresh_stale_matches(session_factory):
    with patch("app.tasks.match_tasks.AsyncSessionLocal", session_factory), \
         patch("app.tasks.match_tasks.MatchingService") as service:
        service.return_value.refresh_stale_matches = AsyncMock(return_value=4)

        result = refresh_stale_matches.run(limit=50)

    assert result == {"success": True, "refreshed": 4}
    service.return_value.refresh_stale_matches.assert_awaited_once_with(50)
