"""
Application error types and helpers.

Services raise AppError subclasses; the handlers registered in
register_exception_handlers() turn them into the JSON error envelope:

    {"error": {"code": "NOT_FOUND", "message": "User with id alice not found"}}
"""

import asyncio
from typing import Any, Awaitable, Callable, Optional, TypeVar

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from app.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class AppError(Exception):
    """Base exception for errors that map onto an HTTP response."""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        code: str = "INTERNAL_ERROR",
        details: Optional[Any] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code
        self.details = details


class ValidationError(AppError):
    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message, status.HTTP_400_BAD_REQUEST, "VALIDATION_ERROR", details)


class UnauthorizedError(AppError):
    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message, status.HTTP_401_UNAUTHORIZED, "UNAUTHORIZED")


class ForbiddenError(AppError):
    def __init__(self, message: str = "Forbidden"):
        super().__init__(message, status.HTTP_403_FORBIDDEN, "FORBIDDEN")


class NotFoundError(AppError):
    def __init__(self, resource: str, identifier: Any = None):
        if identifier is None:
            message = f"{resource} not found"
        else:
            message = f"{resource} with id {identifier} not found"
        super().__init__(message, status.HTTP_404_NOT_FOUND, "NOT_FOUND")
        self.resource = resource
        self.identifier = identifier


class ConflictError(AppError):
    def __init__(self, message: str):
        super().__init__(message, status.HTTP_409_CONFLICT, "CONFLICT")


class ExternalServiceError(AppError):
    """An upstream API (MAL, Spotify, Goodreads, ...) failed or was unreachable."""

    def __init__(self, service: str, message: str, details: Optional[Any] = None):
        super().__init__(
            f"{service}: {message}",
            status.HTTP_502_BAD_GATEWAY,
            "EXTERNAL_SERVICE_ERROR",
            details,
        )
        self.service = service


def format_error_response(exc: BaseException) -> dict[str, Any]:
    """Build the JSON error envelope for any exception."""
    if isinstance(exc, AppError):
        body: dict[str, Any] = {"code": exc.code, "message": exc.message}
        if exc.details is not None:
            body["details"] = exc.details
        return {"error": body}

    return {
        "error": {
            "code": "INTERNAL_ERROR",
            "message": "An unexpected error occurred",
        }
    }


def _is_client_error(exc: BaseException) -> bool:
    return isinstance(exc, AppError) and 400 <= exc.status_code < 500


async def with_retry(
    fn: Callable[[], Awaitable[T]],
    max_retries: int = 3,
    delay_seconds: float = 1.0,
) -> T:
    """
    Await fn(), retrying transient failures with linear backoff.

    Client errors (AppError with a 4xx status) are raised immediately since
    retrying them cannot succeed.
    """
    last_error: Optional[BaseException] = None

    for attempt in range(1, max_retries + 1):
        try:
            return await fn()
        except Exception as e:
            if _is_client_error(e):
                raise
            last_error = e
            if attempt < max_retries:
                logger.warning(
                    "retrying_after_error",
                    attempt=attempt,
                    max_retries=max_retries,
                    error=str(e),
                )
                await asyncio.sleep(delay_seconds * attempt)

    assert last_error is not None
    raise last_error


def register_exception_handlers(app: FastAPI) -> None:
    """Install the AppError handler and the catch-all 500 handler."""

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        log = logger.warning if exc.status_code < 500 else logger.error
        log(
            "application_error",
            code=exc.code,
            error=exc.message,
            path=request.url.path,
            method=request.method,
        )
        return JSONResponse(status_code=exc.status_code, content=format_error_response(exc))

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "unhandled_exception",
            error=str(exc),
            path=request.url.path,
            method=request.method,
            exc_info=True,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=format_error_response(exc),
        )
