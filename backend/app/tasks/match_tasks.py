"""
Celery task keeping stored MashScores fresh.
"""

from app.core.logging import get_logger
from app.db.session import AsyncSessionLocal
from app.services.matching import MatchingService
from app.tasks.helpers import run_async
from app.workers.celery_app import celery_app

logger = get_logger(__name__)


@celery_app.task(
    name='matching.refresh_stale_matches',
    bind=True
)
def refresh_stale_matches(self, limit: int = 200) -> dict:
    """Recompute matches older than MATCH_CACHE_HOURS (every 6 hours via Celery Beat)."""

    async def _refresh():
        async with AsyncSessionLocal() as db:
            refreshed = await MatchingService(db).refresh_stale_matches(limit)
        return {"success": True, "refreshed": refreshed}

    return run_async(_refresh())
