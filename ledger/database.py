"""Database configuration and session management."""

from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from ledger.config import settings


class Base(DeclarativeBase):
    """SQLAlchemy declarative base."""

    pass


def _engine_options(database_url: str) -> dict[str, Any]:
    options: dict[str, Any] = {"echo": settings.debug, "pool_pre_ping": True}
    if not database_url.startswith("sqlite"):
        options.update(
            pool_size=10,  # Max persistent connections
            max_overflow=20,  # Additional transient connections under load
            pool_recycle=3600,  # Recycle connections after 1 hour
        )
    return options


engine = create_async_engine(settings.database_url, **_engine_options(settings.database_url))

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

# Test hook to override session maker
_test_session_maker: async_sessionmaker[AsyncSession] | None = None


def set_test_session_maker(
    maker: async_sessionmaker[AsyncSession] | None,
) -> async_sessionmaker[AsyncSession] | None:
    """Set test session maker and return the previous value.

    Args:
        maker: New session maker to use for tests, or None to clear

    Returns:
        Previous session maker value
    """
    global _test_session_maker
    previous = _test_session_maker
    _test_session_maker = maker
    return previous


def get_test_session_maker() -> async_sessionmaker[AsyncSession] | None:
    return _test_session_maker


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency for database session."""
    maker = _test_session_maker or async_session_maker
    async with maker() as session:
        try:
            yield session
        finally:
            await session.close()


async def init_db() -> None:
    """
    Database initialization is handled by Alembic migrations
    (`alembic upgrade head`), so the application never creates tables itself.
    """
    from ledger.logger import get_logger

    logger = get_logger(__name__)
    logger.info("Database initialized (schema managed by migrations)")
