"""
Database dependencies for FastAPI routes.

    @router.get("/library")
    async def get_library(db: DBSession, current_user: CurrentUser):
        ...

Tests swap the session by overriding get_db in app.dependency_overrides.
"""

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_session


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Provide one database session per request.

    Handlers commit explicitly; the session is rolled back and closed if the
    handler raises.
    """
    async for session in get_session():
        yield session


DBSession = Annotated[AsyncSession, Depends(get_db)]
