"""
Bookshelf API — Database Engine and Sessions
=============================================

What:  The async engine, one session per request, and the startup probes.
How:   get_db_session() is a FastAPI dependency wrapping the whole request in
       one transaction: repositories only flush, this module commits once
       the handler returns and rolls back if anything raised.
Who:   bookshelf.dependencies (sessions), main.lifespan (wait/dispose),
       routes/health.py (ping).

Pool sizing (PostgreSQL):
    DB_POOL_SIZE persistent connections plus DB_MAX_OVERFLOW burst
    connections; pre-ping drops connections the server closed, and every
    connection is recycled after an hour.

    SQLite (tests, local runs) keeps the dialect's own pool; it does not
    accept the sizing options.
"""

import logging
from typing import Any, AsyncGenerator, Dict

from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from bookshelf.config import settings

logger = logging.getLogger(__name__)


def _engine_options() -> Dict[str, Any]:
    """Engine keyword arguments for the configured dialect."""
    options: Dict[str, Any] = {
        # Echo SQL queries in DEBUG mode for development visibility
        "echo": settings.log_level == "DEBUG",
    }
    if not settings.is_sqlite:
        options.update(
            pool_size=settings.db_pool_size,          # Persistent connections (default: 20)
            max_overflow=settings.db_max_overflow,    # Burst connections above pool_size (default: 10)
            pool_pre_ping=settings.db_pool_pre_ping,  # SELECT 1 before handing out a connection
            pool_recycle=3600,                        # Seconds; older connections are reopened
        )
    return options


# ── Engine Configuration ──────────────────────────────────────────────────
# What: One engine per process; owns the connection pool
# When: Built at import time, disposed by main.lifespan on shutdown
engine = create_async_engine(settings.database_url, **_engine_options())

# ── Session Factory ───────────────────────────────────────────────────────
# expire_on_commit=False: attributes stay loaded after commit, so response
# schemas can be built from ORM objects without another round trip
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


# ── Base Model ────────────────────────────────────────────────────────────
# Every model in bookshelf.models subclasses this; Alembic autogenerate and
# create_schema() both read Base.metadata
class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.

    Shares a single metadata object used by Alembic and create_schema().
    """
    pass


# ── Session Dependency ────────────────────────────────────────────────────
async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    One session, one transaction, per request.

    Commit when the handler returns normally; roll back and re-raise when
    anything in the request raised. A handler's side effects and its
    idempotency record are written together, so either both persist or
    neither does.
    """
    async with async_session_factory() as session:
        try:
            yield session
            # Handler returned normally: persist everything it flushed
            await session.commit()
        except Exception:
            # Any failure, database or not, discards the whole request's writes
            await session.rollback()
            raise  # The exception handlers in main.py build the response
        finally:
            # Returns the connection to the pool
            await session.close()


# ── Lifecycle Helpers ─────────────────────────────────────────────────────
async def wait_for_database() -> None:
    """
    Block until the database answers `SELECT 1`.

    When:  Application startup, before the server accepts traffic.
    How:   tenacity retries OperationalError with exponential backoff
           (1s, 2s, 4s ... capped at 10s) up to DB_CONNECT_ATTEMPTS times,
           then re-raises the last error so startup fails loudly.
    """

    # Defined inside so stop_after_attempt reads the current settings value
    @retry(
        stop=stop_after_attempt(settings.db_connect_attempts),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type((OperationalError, OSError)),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    async def _ping() -> None:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))

    await _ping()
    logger.info("Database connection established")


async def ping_database() -> bool:
    """Single connectivity probe used by the health endpoint."""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        # Health reports "unhealthy"; it never raises
        logger.warning("Database ping failed: %s", str(e))
        return False


async def create_schema() -> None:
    """
    Create all tables from model metadata.

    For local development and tests only; deployed databases are managed by
    Alembic migrations.
    """
    # Import models so every table is registered on Base.metadata
    from bookshelf import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def dispose_engine() -> None:
    """Gracefully closes all connections in the pool (application shutdown)."""
    await engine.dispose()
