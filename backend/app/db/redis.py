"""
Redis connection management.

Provides async Redis connection for:
- Rate limiting
- Response/data caching (app.services.cache)

Celery talks to Redis through its own broker connection.
"""

import time
from typing import Optional

from redis.asyncio import Redis, ConnectionPool

from app.core.config import settings
from app.core.logging import get_logger

logger = get_logger(__name__)

_redis_pool: Optional[ConnectionPool] = None
_redis_client: Optional[Redis] = None


async def init_redis() -> Redis:
    """Create the shared connection pool and verify it with PING."""
    global _redis_pool, _redis_client

    if _redis_pool is None:
        logger.info("initializing_redis_pool", url=settings.REDIS_URL)

        _redis_pool = ConnectionPool.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            max_connections=20,
            socket_connect_timeout=5,
            socket_keepalive=True,
        )
        _redis_client = Redis(connection_pool=_redis_pool)

        try:
            await _redis_client.ping()
            logger.info("redis_connection_successful")
        except Exception as e:
            logger.error("redis_connection_failed", error=str(e))
            # Reset so the next caller retries instead of reusing a dead pool
            await _redis_pool.disconnect()
            _redis_pool = None
            _redis_client = None
            raise

    return _redis_client


async def get_redis() -> Redis:
    """Return the shared client, initialising it on first use."""
    if _redis_client is None:
        return await init_redis()
    return _redis_client


async def close_redis() -> None:
    """Close the connection pool on shutdown."""
    global _redis_pool, _redis_client

    if _redis_client is not None:
        logger.info("closing_redis_connection")
        await _redis_client.aclose()
        _redis_client = None

    if _redis_pool is not None:
        await _redis_pool.disconnect()
        _redis_pool = None


# ================================
# Rate limiting
# ================================

class RedisRateLimiter:
    """
    Sliding-window rate limiter.

    Each request is a member of a sorted set scored by its timestamp; entries
    older than the window are trimmed before counting.
    """

    def __init__(self, redis: Redis):
        self.redis = redis

    async def is_allowed(
        self,
        key: str,
        max_requests: int,
        window_seconds: int
    ) -> tuple[bool, int]:
        """Record the request if allowed. Returns (is_allowed, current_count)."""
        now = time.time()
        rate_key = f"rate_limit:{key}"

        await self.redis.zremrangebyscore(rate_key, 0, now - window_seconds)
        current_count = await self.redis.zcard(rate_key)

        if current_count < max_requests:
            await self.redis.zadd(rate_key, {str(now): now})
            await self.redis.expire(rate_key, window_seconds)
            return True, current_count + 1

        return False, current_count


async def check_redis_health() -> bool:
    try:
        redis = await get_redis()
        return bool(await redis.ping())
    except Exception as e:
        logger.error("redis_health_check_failed", error=str(e))
        return False
