"""
Celery tasks for re-importing connected sources.

This module contains background tasks for:
- Syncing one connected source (queued by POST /integrations/{source}/sync)
- Scheduled sync of every source that is due
"""

from celery import Task
from sqlalchemy import select

from app.core.logging import get_logger
from app.db.session import AsyncSessionLocal
from app.models.source import Source, SourceName
from app.services.integrations.sync import find_due_sources, sync_source
from app.tasks.helpers import RETRYABLE_ERRORS, run_async
from app.workers.celery_app import celery_app

logger = get_logger(__name__)


class SourceSyncTask(Task):
    """Base task class with retry logic and error handling."""

    autoretry_for = RETRYABLE_ERRORS
    retry_kwargs = {'max_retries': 3}
    retry_backoff = True
    retry_backoff_max = 600  # 10 minutes
    retry_jitter = True


@celery_app.task(
    base=SourceSyncTask,
    name='sources.sync_source',
    bind=True,
    max_retries=3
)
def sync_source_task(self, user_id: int, source_name: str) -> dict:
    """
    Re-import one of a user's connected sources.

    Returns:
        The importer's summary, plus {"user_id", "source"}; or
        {"success": False, "error": ...} when the source is not connected.
    """

    async def _sync():
        async with AsyncSessionLocal() as db:
            result = await db.execute(
                select(Source).where(
                    Source.user_id == user_id,
                    Source.source_name == SourceName(source_name),
                )
            )
            source = result.scalar_one_or_none()
            if source is None:
                logger.warning("source_sync_missing_source", user_id=user_id, source=source_name)
                return {"success": False, "error": "Source not connected"}

            summary = await sync_source(db, source)
            logger.info("source_sync_task_completed", user_id=user_id, source=source_name)
            return {"success": True, "user_id": user_id, "source": source_name, **summary}

    return run_async(_sync())


@celery_app.task(
    name='sources.sync_all',
    bind=True
)
def sync_all_sources(self) -> dict:
    """
    Periodic task: queue a sync for every source not synced within
    SOURCE_SYNC_INTERVAL_HOURS.
    """

    async def _sync_all():
        async with AsyncSessionLocal() as db:
            sources = await find_due_sources(db)

        task_ids = []
        for index, source in enumerate(sources):
            task = sync_source_task.apply_async(
                args=[source.user_id, source.source_name.value],
                countdown=index * 5  # Stagger tasks
            )
            task_ids.append(task.id)

        logger.info("source_sync_all_queued", sources=len(sources))
        return {"success": True, "sources_queued": len(sources), "task_ids": task_ids}

    return run_async(_sync_all())
