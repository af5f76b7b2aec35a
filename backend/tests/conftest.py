"""
TallyHub Backend — Test Configuration (conftest.py)
=====================================================

What:  Shared pytest fixtures for the entire test suite.
How:   Every test that touches storage gets its own SQLite file (aiosqlite),
       built with Database.create_all(). API tests build a fresh application
       around that database with create_app(), so no state leaks between tests.

Fixture Hierarchy:
    test_settings   Settings tuned for tests (bcrypt cost 4, generous rate limits)
    database        Database handle on a temp SQLite file, tables created
    ├── db_session  AsyncSession committed/rolled back like a request session
    └── app         FastAPI app with test_settings + database injected
        └── test_client  HTTPX AsyncClient over ASGITransport
    mock_db_session AsyncMock session for failure-path unit tests

Note: ASGITransport does not run the lifespan. The database is injected and
already connected, which is what the lifespan would have done.
"""

import os
import tempfile
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient


# ══════════════════════════════════════════════════════════════════════════
# Environment Setup
# ══════════════════════════════════════════════════════════════════════════

# Must run BEFORE any tallyhub import: tallyhub.config builds its settings
# singleton at import time and tallyhub.main builds `app` from it.
_TEST_DB_DIR = tempfile.mkdtemp(prefix="tallyhub_test_")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TEST_DB_DIR}/default.db"
os.environ["JWT_SECRET"] = "test-secret-not-real"
os.environ["ENVIRONMENT"] = "test"
os.environ["LOG_LEVEL"] = "WARNING"

from tallyhub.config import Settings  # noqa: E402
from tallyhub.database import Database  # noqa: E402
from tallyhub.main import create_app  # noqa: E402


def make_settings(database_url: str, **overrides) -> Settings:
    values = {
        "environment": "test",
        "database_url": database_url,
        "jwt_secret": "test-secret-not-real",
        "bcrypt_rounds": 4,
        "rate_limit_requests": 10000,
        "user_creation_rate_limit_requests": 10000,
        "db_connect_attempts": 1,
        "db_connect_wait": 0,
        "log_level": "WARNING",
    }
    values.update(overrides)
    return Settings(**values)


# ══════════════════════════════════════════════════════════════════════════
# Function-Scoped Fixtures (created fresh for each test)
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def database_url(tmp_path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'tallyhub.db'}"


@pytest.fixture
def test_settings(database_url) -> Settings:
    return make_settings(database_url)


@pytest_asyncio.fixture
async def database(test_settings):
    """A Database on a throwaway SQLite file with every table created."""
    db = Database.from_settings(test_settings)
    await db.create_all()
    yield db
    await db.dispose()


@pytest_asyncio.fixture
async def db_session(database):
    """
    A session scoped like a request: committed when the test body returns.

    Usage:
        async def test_create(db_session):
            user = await user_service.create_user(db_session, ...)
    """
    async with database.session() as session:
        yield session


@pytest.fixture
def app(test_settings, database):
    return create_app(settings=test_settings, database=database)


@pytest_asyncio.fixture
async def test_client(app):
    """
    HTTPX AsyncClient talking to the app in-process.

    Usage:
        async def test_health(test_client):
            response = await test_client.get("/health")
            assert response.status_code == 200
    """
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def mock_db_session():
    """
    A mock AsyncSession for driving error paths without a real database.

    Usage:
        mock_db_session.execute.side_effect = OperationalError("SELECT", {}, Exception())
        with pytest.raises(DatabaseError):
            await user_service.list_users(mock_db_session)
    """
    session = AsyncMock()
    session.execute = AsyncMock()
    session.scalar = AsyncMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.add = MagicMock()
    session.bind = MagicMock()
    session.bind.dialect.name = "sqlite"
    return session


@pytest.fixture
def user_payload():
    return {"name": "Maria Silva", "email": "maria@example.com", "password": "Secret123"}
