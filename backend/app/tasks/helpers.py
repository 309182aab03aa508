"""
Shared helpers for Celery tasks.
"""

import asyncio

import nest_asyncio

from app.core.errors import ExternalServiceError

# Allow nested event loops in Celery workers
nest_asyncio.apply()


def run_async(coro):
    """
    Run async coroutine in Celery task context.

    Uses asyncio.run() with nest_asyncio applied at import time to handle
    potential nested event loop scenarios.
    """
    return asyncio.run(coro)


# Errors worth retrying: upstream APIs and scraped sites being unavailable
RETRYABLE_ERRORS = (ExternalServiceError,)
