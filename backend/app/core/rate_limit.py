"""
Rate Limiting Middleware

Per-minute request limits backed by the Redis sliding window in
app.db.redis. Authenticated callers (valid bearer token) are keyed by the
token subject; everyone else by client IP.

Redis being unavailable never blocks traffic: the request goes through
unlimited and the failure is logged.
"""

from typing import Optional

from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from app.core.config import settings
from app.core.logging import get_logger
from app.core.security import decode_access_token
from app.db.redis import RedisRateLimiter, get_redis

logger = get_logger(__name__)

EXEMPT_PATHS = {"/", "/health", "/docs", "/redoc", "/openapi.json"}


def _client_ip(request: Request) -> str:
    """Client IP, honouring proxy headers."""
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip

    if request.client:
        return request.client.host

    return "unknown"


def _token_subject(request: Request) -> Optional[str]:
    auth_header = request.headers.get("Authorization", "")
    scheme, _, token = auth_header.partition(" ")
    if scheme.lower() != "bearer" or not token:
        return None
    payload = decode_access_token(token)
    if payload is None:
        return None
    return payload.get("sub")


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Sliding-window limiter with separate anonymous/authenticated budgets."""

    def __init__(self, app, **kwargs):
        super().__init__(app)
        self.rate_limiter: Optional[RedisRateLimiter] = None

        self.anonymous_limit = settings.RATE_LIMIT_ANONYMOUS
        self.authenticated_limit = settings.RATE_LIMIT_AUTHENTICATED
        self.window_seconds = 60

    async def dispatch(self, request: Request, call_next):
        if not settings.RATE_LIMIT_ENABLED or request.url.path in EXEMPT_PATHS:
            return await call_next(request)

        if self.rate_limiter is None:
            try:
                self.rate_limiter = RedisRateLimiter(await get_redis())
            except Exception as e:
                logger.error("rate_limit_redis_unavailable", error=str(e))
                return await call_next(request)

        subject = _token_subject(request)
        if subject:
            rate_key = f"user:{subject}"
            max_requests = self.authenticated_limit
        else:
            rate_key = f"ip:{_client_ip(request)}"
            max_requests = self.anonymous_limit

        try:
            is_allowed, current_count = await self.rate_limiter.is_allowed(
                rate_key,
                max_requests,
                self.window_seconds
            )
            remaining = max(0, max_requests - current_count)
        except Exception as e:
            logger.error("rate_limit_check_failed", error=str(e), key=rate_key)
            return await call_next(request)

        if not is_allowed:
            logger.warning(
                "rate_limit_exceeded",
                key=rate_key,
                count=current_count,
                limit=max_requests,
                window_seconds=self.window_seconds,
            )
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={
                    "error": {
                        "code": "RATE_LIMITED",
                        "message": "Rate limit exceeded. Please try again later.",
                        "details": {
                            "limit": max_requests,
                            "window_seconds": self.window_seconds,
                        },
                    }
                },
                headers={
                    "X-RateLimit-Limit": str(max_requests),
                    "X-RateLimit-Remaining": "0",
                    "X-RateLimit-Reset": str(self.window_seconds),
                    "Retry-After": str(self.window_seconds),
                }
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(max_requests)
        response.headers["X-RateLimit-Remaining"] = str(remaining)
        response.headers["X-RateLimit-Reset"] = str(self.window_seconds)
        return response


# ========================================
# Endpoint-Specific Rate Limiting
# ========================================

async def check_rate_limit(
    request: Request,
    max_requests: int = 10,
    window_seconds: int = 60,
    key_prefix: str = "endpoint"
) -> None:
    """
    Tighter per-endpoint limit, used as a dependency on expensive routes
    (LLM calls, scrapes):

        @router.post("/chat", dependencies=[Depends(chat_rate_limit)])
    """
    if not settings.RATE_LIMIT_ENABLED:
        return

    subject = _token_subject(request)
    rate_key = (
        f"{key_prefix}:user:{subject}" if subject
        else f"{key_prefix}:ip:{_client_ip(request)}"
    )

    try:
        rate_limiter = RedisRateLimiter(await get_redis())
        is_allowed, _ = await rate_limiter.is_allowed(rate_key, max_requests, window_seconds)
    except Exception as e:
        logger.error("endpoint_rate_limit_failed", error=str(e), key=rate_key)
        return

    if not is_allowed:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Rate limit exceeded for this endpoint",
            headers={
                "X-RateLimit-Limit": str(max_requests),
                "X-RateLimit-Remaining": "0",
                "Retry-After": str(window_seconds),
            }
        )


async def chat_rate_limit(request: Request) -> None:
    await check_rate_limit(request, max_requests=20, window_seconds=60, key_prefix="chat")


async def scrape_rate_limit(request: Request) -> None:
    await check_rate_limit(request, max_requests=5, window_seconds=60, key_prefix="scrape")
