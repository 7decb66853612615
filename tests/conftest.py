"""Test fixtures and configuration."""

import logging
import os
import sys
from uuid import uuid4

import pytest
import pytest_asyncio
import structlog
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

# Set ENVIRONMENT for pydantic settings before the app is imported
os.environ["ENVIRONMENT"] = "testing"


def get_test_db_url(tmp_path) -> str:
    """SQLite file per test unless TEST_DATABASE_URL points at a real server."""
    return os.environ.get("TEST_DATABASE_URL") or f"sqlite+aiosqlite:///{tmp_path}/ledger_test.db"


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


# --- Structlog Configuration for Tests ---
@pytest.fixture(autouse=True, scope="session")
def configure_structlog_for_tests():
    """Configure structlog for proper capsys capture in tests."""
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.format_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
    ]

    structlog.configure(
        processors=processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processor=structlog.dev.ConsoleRenderer(colors=False),
        foreign_pre_chain=processors[:-1],
    )

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    root_logger.addHandler(handler)
    root_logger.setLevel(logging.DEBUG)

    yield

    structlog.reset_defaults()


@pytest_asyncio.fixture
async def db_engine(tmp_path):
    """Fresh schema per test, wired into the app's session dependency.

    Uses NullPool so every session gets its own connection, which lets tests
    open several independent sessions against the same database.
    """
    from ledger import database
    from ledger.database import Base
    from ledger.models import Account, JournalEntry, Transaction  # noqa: F401

    url = get_test_db_url(tmp_path)
    engine = create_async_engine(url, echo=False, poolclass=NullPool)
    if engine.dialect.name == "sqlite":
        event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    previous = database.set_test_session_maker(session_maker)

    yield engine

    database.set_test_session_maker(previous)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_maker(db_engine):
    """Session factory bound to the test engine, for multi-session tests."""
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_maker):
    """Database session for service-level tests. Changes are flushed, not committed."""
    async with session_maker() as session:
        yield session
        await session.rollback()


@pytest.fixture
def entity_id() -> str:
    return f"entity-{uuid4().hex[:12]}"


@pytest.fixture
def auth_headers(entity_id):
    from ledger.security import create_access_token

    token = create_access_token({"sub": entity_id})
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def client(db_engine, auth_headers):
    """Authenticated HTTP client for the ASGI app."""
    from ledger.main import app

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test", headers=auth_headers) as ac:
        yield ac


@pytest_asyncio.fixture
async def anonymous_client(db_engine):
    from ledger.main import app

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
