"""
Bookshelf API — Test Configuration (conftest.py)
=================================================

What:  Shared pytest fixtures for the entire test suite.
Why:   Unit tests get mocked sessions and repositories; API tests get a real
       FastAPI app on a throwaway SQLite database.
How:   Environment variables are set BEFORE anything from `bookshelf` is
       imported, because settings and the engine are built at import time.

Fixture Hierarchy:
    Function-scoped (created fresh for each test):
    ├── mock_db_session: Mock AsyncSession (no real DB needed)
    ├── book_repo / user_repo / idempotency_repo: AsyncMock repositories
    ├── sample_user_id / sample_book: Consistent test data
    ├── database: Creates all tables, drops them afterwards
    ├── test_client: HTTPX AsyncClient on the app (depends on database)
    ├── login: Factory that registers a user and returns Bearer headers
    └── auth_headers / other_auth_headers: Bearer headers for two users
"""

import os
import tempfile

# ══════════════════════════════════════════════════════════════════════════
# Environment Setup
# ══════════════════════════════════════════════════════════════════════════

# Must run before any bookshelf import: the engine reads DATABASE_URL once
_TEST_DIR = tempfile.mkdtemp(prefix="bookshelf_test_")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TEST_DIR}/test.db"
os.environ["JWT_SECRET"] = "test-secret-0123456789abcdef0123456789abcdef"
os.environ["RATE_LIMIT_REQUESTS"] = "100000"
os.environ["LOG_LEVEL"] = "WARNING"

from datetime import datetime, timezone  # noqa: E402
from unittest.mock import AsyncMock, MagicMock  # noqa: E402
from uuid import uuid4  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from bookshelf.database import Base, engine  # noqa: E402
from bookshelf.models.book import Book  # noqa: E402


# ══════════════════════════════════════════════════════════════════════════
# Unit Test Fixtures (no database)
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def mock_db_session():
    """
    Provides a mock async database session.

    Usage:
        async def test_get(mock_db_session):
            mock_db_session.execute.return_value.scalar_one_or_none.return_value = book
    """
    session = AsyncMock()
    session.execute = AsyncMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.delete = AsyncMock()
    session.add = MagicMock()
    return session


def _persist(entity):
    """Mimic a flush: fill in the defaults the database layer would set."""
    now = datetime.now(timezone.utc)
    if getattr(entity, "id", None) is None:
        entity.id = uuid4()
    if hasattr(entity, "created_at") and entity.created_at is None:
        entity.created_at = now
    if hasattr(entity, "updated_at") and entity.updated_at is None:
        entity.updated_at = now
    return entity


@pytest.fixture
def book_repo():
    repo = AsyncMock()
    repo.get = AsyncMock(return_value=None)
    repo.get_by_isbn = AsyncMock(return_value=None)
    repo.list = AsyncMock(return_value=[])
    repo.count = AsyncMock(return_value=0)
    repo.add = AsyncMock(side_effect=_persist)
    repo.save = AsyncMock(side_effect=lambda book: book)
    repo.delete = AsyncMock(return_value=None)
    return repo


@pytest.fixture
def user_repo():
    repo = AsyncMock()
    repo.get = AsyncMock(return_value=None)
    repo.get_by_email = AsyncMock(return_value=None)
    repo.add = AsyncMock(side_effect=_persist)
    return repo


@pytest.fixture
def idempotency_repo():
    repo = AsyncMock()
    repo.get = AsyncMock(return_value=None)
    repo.add = AsyncMock(side_effect=lambda record: record)
    repo.delete = AsyncMock(return_value=None)
    repo.purge_expired = AsyncMock(return_value=0)
    return repo


@pytest.fixture
def sample_user_id():
    return uuid4()


@pytest.fixture
def sample_book(sample_user_id):
    """A persisted-looking Book owned by sample_user_id."""
    now = datetime.now(timezone.utc)
    return Book(
        id=uuid4(),
        title="The Left Hand of Darkness",
        author="Ursula K. Le Guin",
        isbn="9780441478125",
        published_year=1969,
        owner_id=sample_user_id,
        created_at=now,
        updated_at=now,
    )


# ══════════════════════════════════════════════════════════════════════════
# API Test Fixtures (SQLite database)
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def database():
    """Fresh tables for each test."""
    from bookshelf import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def test_client(database):
    """
    Provides an async HTTP test client for endpoint testing.

    ASGITransport does not run the lifespan, so the `database` fixture
    creates the schema instead.

    Usage:
        async def test_health(test_client):
            response = await test_client.get("/health")
            assert response.status_code == 200
    """
    from bookshelf.main import app

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


async def register_and_login(client: AsyncClient, email: str, password: str = "correct-horse-1") -> dict:
    """Register a user, obtain a token, and return Authorization headers."""
    response = await client.post(
        "/api/v1/users",
        json={"email": email, "display_name": email.split("@")[0], "password": password},
    )
    assert response.status_code == 201, response.text
    response = await client.post(
        "/api/v1/auth/token",
        json={"email": email, "password": password},
    )
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


@pytest.fixture
def login(test_client):
    """Returns an async callable: `headers = await login("a@example.com")`."""

    async def _login(email: str, password: str = "correct-horse-1") -> dict:
        return await register_and_login(test_client, email, password)

    return _login


@pytest_asyncio.fixture
async def auth_headers(test_client):
    return await register_and_login(test_client, "reader@example.com")


@pytest_asyncio.fixture
async def other_auth_headers(test_client):
    return await register_and_login(test_client, "someone.else@example.com")
