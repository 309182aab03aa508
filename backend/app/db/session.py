"""
Database Session Management

Application Start → Create Engine → Connection Pool Ready
API Request → Get Session → Execute Queries → Commit/Rollback → Close Session
Application Shutdown → Dispose Engine → Close All Connections

Learning Resources:
- Async Sessions: https://docs.sqlalchemy.org/en/20/orm/extensions/asyncio.html
"""

from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import AsyncAdaptedQueuePool, NullPool

from app.core.config import settings
from app.core.logging import get_logger

logger = get_logger(__name__)


# ================================
# Engine Configuration
# ================================

def get_engine_config() -> dict[str, Any]:
    """
    Engine options per environment.

    development/production use a queue pool (DB_POOL_SIZE + DB_MAX_OVERFLOW
    connections). Every other environment (testing, staging jobs) uses
    NullPool so each checkout is a fresh connection.
    """
    config: dict[str, Any] = {
        "echo": settings.DB_ECHO,
        "pool_pre_ping": True,
    }

    if settings.DATABASE_URL.startswith("postgresql+asyncpg"):
        config["connect_args"] = {
            "server_settings": {"application_name": settings.APP_NAME},
        }

    if settings.is_development or settings.is_production:
        config.update({
            "poolclass": AsyncAdaptedQueuePool,
            "pool_size": settings.DB_POOL_SIZE,
            "max_overflow": settings.DB_MAX_OVERFLOW,
            "pool_timeout": 30,
            "pool_recycle": 7200 if settings.is_production else 3600,
        })
        logger.info(
            "configuring_database_engine",
            environment=settings.APP_ENV,
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
        )
    else:
        config["poolclass"] = NullPool
        logger.info(
            "configuring_database_engine",
            environment=settings.APP_ENV,
            pool_type="NullPool",
        )

    return config


def create_engine() -> AsyncEngine:
    """Create the async database engine from settings."""
    engine_config = get_engine_config()

    engine = create_async_engine(settings.DATABASE_URL, **engine_config)

    logger.info(
        "database_engine_created",
        pool_size=engine_config.get("pool_size", "NullPool"),
    )

    return engine


engine: AsyncEngine = create_engine()


# ================================
# Session Factory
# ================================

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    autoflush=False,
    autocommit=False,
    # Objects stay usable after commit (response serialisation happens later)
    expire_on_commit=False,
)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Yield a session for a single request; roll back if the handler raises.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception as e:
            logger.error(
                "database_session_error",
                error=str(e),
                error_type=type(e).__name__,
            )
            await session.rollback()
            raise


# ================================
# Lifecycle
# ================================

async def init_db() -> None:
    """
    Verify connectivity on startup; in development also create missing tables.

    Production schema changes go through Alembic.
    """
    logger.info("initializing_database")

    try:
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))

        logger.info("database_connection_successful")

        if settings.is_development:
            from app.db.base import Base
            import app.models  # noqa: F401  (register tables)

            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)

            logger.info("database_tables_created")

    except Exception as e:
        logger.error(
            "database_initialization_failed",
            error=str(e),
            error_type=type(e).__name__,
        )
        raise


async def close_db() -> None:
    """Dispose the connection pool on shutdown."""
    logger.info("closing_database_connections")

    try:
        await engine.dispose()
        logger.info("database_connections_closed")
    except Exception as e:
        logger.error(
            "database_closure_failed",
            error=str(e),
            error_type=type(e).__name__,
        )


async def check_db_health() -> bool:
    """Return True when a trivial query succeeds."""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(
            "database_health_check_failed",
            error=str(e),
            error_type=type(e).__name__,
        )
        return False
