"""
Database Connection Management

One async engine per process, built from WorkflowSettings. The workflow
service commits its own units of work, so sessions never expire loaded
reimbursements on commit and never autoflush half-applied updates.
"""

from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy import make_url, text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from reimbursement.core.config import WorkflowSettings, get_settings
from reimbursement.models import Base
from reimbursement.utils.logging import get_logger

logger = get_logger(__name__)

# Seconds a SQLite writer waits on a locked database before failing
SQLITE_BUSY_TIMEOUT = 15

_engine: AsyncEngine | None = None
_async_session_maker: async_sessionmaker[AsyncSession] | None = None


def engine_options(settings: WorkflowSettings) -> dict[str, Any]:
    """
    Keyword arguments for create_async_engine.

    Tests get no pooling at all. SQLite gets a busy timeout instead of pool
    sizing, which its driver rejects. Server backends get a sized,
    pre-pinged pool.
    """
    options: dict[str, Any] = {"echo": settings.DEBUG}
    if settings.is_testing:
        options["poolclass"] = NullPool
    if settings.is_sqlite:
        options["connect_args"] = {"timeout": SQLITE_BUSY_TIMEOUT}
    elif not settings.is_testing:
        options.update(
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            pool_timeout=settings.DB_POOL_TIMEOUT,
            pool_pre_ping=True,
        )
    return options


def build_session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory for workflow units of work on the given engine."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


def get_engine() -> AsyncEngine:
    """Get or create the process-wide async engine."""
    global _engine

    if _engine is None:
        settings = get_settings()
        url = make_url(settings.DATABASE_URL)
        logger.info(f"Creating database engine: {url.render_as_string(hide_password=True)}")
        _engine = create_async_engine(url, **engine_options(settings))

    return _engine


def get_session_maker() -> async_sessionmaker[AsyncSession]:
    """Get or create the session factory bound to the process-wide engine."""
    global _async_session_maker

    if _async_session_maker is None:
        _async_session_maker = build_session_maker(get_engine())

    return _async_session_maker


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency for getting database sessions.

    The workflow service commits its own units of work; anything left
    open when the request ends is rolled back.

    Yields:
        AsyncSession instance
    """
    session_maker = get_session_maker()

    async with session_maker() as session:
        try:
            yield session
        except Exception as e:
            await session.rollback()
            logger.error(f"Database session error: {e}")
            raise


async def init_models() -> None:
    """Create missing tables. Development convenience, not a migration tool."""
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables ensured")


async def close_db_connection() -> None:
    """Dispose of the connection pool on shutdown."""
    global _engine, _async_session_maker

    if _engine is not None:
        logger.info("Closing database connection pool...")
        await _engine.dispose()
        _engine = None
        _async_session_maker = None
        logger.info("Database connection pool closed")


async def check_db_connection() -> bool:
    """
    Check if database connection is healthy.

    Returns:
        True if connection is healthy, False otherwise
    """
    try:
        async with get_engine().connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database connection check failed: {e}")
        return False
