"""
Celery task for filling in missing book covers and movie posters.
"""

from typing import Optional

from celery import Task

from app.core.logging import get_logger
from app.db.session import AsyncSessionLocal
from app.models.media import MediaType
from app.services.covers import update_missing_covers
from app.tasks.helpers import RETRYABLE_ERRORS, run_async
from app.workers.celery_app import celery_app

logger = get_logger(__name__)


class CoverTask(Task):
    autoretry_for = RETRYABLE_ERRORS
    retry_kwargs = {'max_retries': 3}
    retry_backoff = True
    retry_backoff_max = 600
    retry_jitter = True


@celery_app.task(
    base=CoverTask,
    name='covers.update_missing',
    bind=True
)
def update_missing_covers_task(self, media_type: Optional[str] = None, limit: int = 50) -> dict:
    """Daily pass over books/movies without a poster_url. Returns {updated, failed, total}."""

    async def _update():
        async with AsyncSessionLocal() as db:
            result = await update_missing_covers(
                db,
                media_type=MediaType(media_type) if media_type else None,
                limit=limit,
            )
        logger.info("cover_update_task_completed", **result)
        return result

    return run_async(_update())
