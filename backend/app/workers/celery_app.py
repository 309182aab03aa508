"""
Celery application instance and configuration.
"""

from celery import Celery
from celery.schedules import crontab
from app.core.config import settings

celery_app = Celery(
    "kindred",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
)

celery_app.conf.update(
    task_serializer=settings.CELERY_TASK_SERIALIZER,
    result_serializer=settings.CELERY_RESULT_SERIALIZER,
    accept_content=settings.celery_accept_content_list,
    timezone=settings.CELERY_TIMEZONE,
    enable_utc=settings.CELERY_ENABLE_UTC,
    task_track_started=True,
    task_time_limit=30 * 60,  # 30 minutes
    task_soft_time_limit=25 * 60,  # 25 minutes
    result_expires=3600,  # 1 hour
)

# Celery Beat Schedule (Periodic Tasks)
celery_app.conf.beat_schedule = {
    'sync-connected-sources': {
        'task': 'sources.sync_all',
        'schedule': crontab(minute='0', hour=f'*/{settings.SOURCE_SYNC_INTERVAL_HOURS}'),
        'options': {'queue': 'sources'},
    },
    'update-missing-covers': {
        'task': 'covers.update_missing',
        'schedule': crontab(minute='30', hour='4'),  # Daily at 4:30 AM
        'options': {'queue': 'covers'},
    },
    'refresh-stale-matches': {
        'task': 'matching.refresh_stale_matches',
        'schedule': crontab(minute='0', hour='*/6'),  # Every 6 hours
        'options': {'queue': 'matching'},
    },
}

# Task routing
celery_app.conf.task_routes = {
    'sources.*': {'queue': 'sources'},
    'covers.*': {'queue': 'covers'},
    'matching.*': {'queue': 'matching'},
}

celery_app.autodiscover_tasks(['app.tasks'])
