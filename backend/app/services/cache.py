"""
Redis-backed JSON cache.

Values are stored as JSON strings. Every operation fails open: if Redis is
down or a value cannot be decoded, the error is logged and the call behaves
like a cache miss, so callers never need their own error handling.

Key helpers keep the key layout in one place:

    mal:user:{username}:anime | :manga
    user:{id}:library | :recommendations | :matches
"""

import json
from typing import Any, Awaitable, Callable, Optional

from app.core.config import settings
from app.core.logging import get_logger
from app.db.redis import get_redis

logger = get_logger(__name__)


# ================================
# Key helpers
# ================================

def mal_user_list_key(username: str, list_type: str) -> str:
    return f"mal:user:{username}:{list_type}"


def user_library_key(user_id: int) -> str:
    return f"user:{user_id}:library"


def user_recommendations_key(user_id: int) -> str:
    return f"user:{user_id}:recommendations"


def user_matches_key(user_id: int) -> str:
    return f"user:{user_id}:matches"


def user_cache_keys(user_id: int) -> list[str]:
    """Every per-user key that must be dropped when the library changes."""
    return [
        user_library_key(user_id),
        user_recommendations_key(user_id),
        user_matches_key(user_id),
    ]


# ================================
# Cache operations
# ================================

class CacheService:
    """Thin JSON wrapper over redis.asyncio with fail-open semantics."""

    def __init__(self, default_ttl: Optional[int] = None):
        self.default_ttl = default_ttl or settings.CACHE_DEFAULT_TTL_SECONDS

    async def get(self, key: str) -> Any:
        try:
            redis = await get_redis()
            raw = await redis.get(key)
            if raw is None:
                return None
            return json.loads(raw)
        except Exception as e:
            logger.warning("cache_get_failed", key=key, error=str(e))
            return None

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        try:
            redis = await get_redis()
            await redis.set(key, json.dumps(value, default=str), ex=ttl or self.default_ttl)
            return True
        except Exception as e:
            logger.warning("cache_set_failed", key=key, error=str(e))
            return False

    async def delete(self, key: str) -> bool:
        try:
            redis = await get_redis()
            await redis.delete(key)
            return True
        except Exception as e:
            logger.warning("cache_delete_failed", key=key, error=str(e))
            return False

    async def invalidate(self, key_or_pattern: str) -> int:
        """
        Drop an exact key, or every key matching a glob pattern ("user:7:*").

        Returns the number of keys removed.
        """
        try:
            redis = await get_redis()
            if not any(ch in key_or_pattern for ch in "*?["):
                return int(await redis.delete(key_or_pattern))

            removed = 0
            async for key in redis.scan_iter(match=key_or_pattern, count=100):
                removed += int(await redis.delete(key))
            return removed
        except Exception as e:
            logger.warning("cache_invalidate_failed", pattern=key_or_pattern, error=str(e))
            return 0

    async def invalidate_user(self, user_id: int) -> None:
        for key in user_cache_keys(user_id):
            await self.invalidate(key)

    async def clear(self) -> bool:
        """Flush the whole cache database. Only meant for tests and admin scripts."""
        try:
            redis = await get_redis()
            await redis.flushdb()
            return True
        except Exception as e:
            logger.warning("cache_clear_failed", error=str(e))
            return False

    async def cached_fetch(
        self,
        key: str,
        fetcher: Callable[[], Awaitable[Any]],
        ttl: Optional[int] = None,
    ) -> Any:
        """Return the cached value, or await fetcher(), cache its result and return it."""
        cached = await self.get(key)
        if cached is not None:
            logger.debug("cache_hit", key=key)
            return cached

        value = await fetcher()
        if value is not None:
            await self.set(key, value, ttl)
        return value


cache = CacheService()
