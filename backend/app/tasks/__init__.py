"""
Celery tasks for background processing.
"""

from app.tasks.cover_tasks import update_missing_covers_task
from app.tasks.match_tasks import refresh_stale_matches
from app.tasks.source_tasks import sync_all_sources, sync_source_task

__all__ = [
    "refresh_stale_matches",
    "sync_all_sources",
    "sync_source_task",
    "update_missing_covers_task",
]
