"""
TallyHub Backend — Database Session Management
================================================

What:  Async SQLAlchemy engine, session factory, and FastAPI dependency.
Why:   Centralizes all database connection logic in one place.
How:   A `Database` handle owns one pooled async engine and its session factory.
       The application factory stores the handle on `app.state`; the request
       dependency borrows a session from it, commits on success and rolls back
       on error.
Who:   Used by route handlers via FastAPI's dependency injection system, by the
       lifespan (connect/dispose) and by the test suite (create_all).
When:  The handle is built once per application; sessions are created per request.

Connection Pooling Strategy (PostgreSQL):
    pool_size / max_overflow: from settings (defaults 10 + 10)
    pool_pre_ping:    Validates connections before use (catches stale connections)
    pool_recycle=3600: Recycles connections every hour

    SQLite (tests) gets none of the pool sizing arguments; its dialect picks
    its own pool class.
"""

import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncGenerator, Optional

from fastapi import Request
from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    stop_after_attempt,
    wait_fixed,
)

from tallyhub.config import Settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.

    Every model registers on this metadata, which Alembic autogenerate and
    `Database.create_all()` both read.
    """
    pass


def utcnow() -> datetime:
    """Timezone-aware current UTC time. All stored timestamps come from here."""
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Attach UTC to naive datetimes read back from the database.

    PostgreSQL TIMESTAMPTZ round-trips with tzinfo; SQLite returns naive values
    for the same column. Both hold UTC because every write goes through utcnow().
    """
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


class Database:
    """
    Owns the async engine and session factory for one application instance.

    Usage:
        database = Database.from_settings(settings)
        await database.connect(attempts=5, wait=5)
        async with database.session() as db:
            ...
        await database.dispose()
    """

    def __init__(
        self,
        url: str,
        *,
        pool_size: int = 10,
        max_overflow: int = 10,
        pool_pre_ping: bool = True,
        echo: bool = False,
    ):
        engine_kwargs = {"echo": echo, "pool_pre_ping": pool_pre_ping}
        if not url.startswith("sqlite"):
            engine_kwargs.update(
                pool_size=pool_size,
                max_overflow=max_overflow,
                pool_recycle=3600,
            )

        self.url = url
        self.engine: AsyncEngine = create_async_engine(url, **engine_kwargs)
        # expire_on_commit=False: objects stay readable after the request commits
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        return cls(
            settings.database_url,
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_pre_ping=settings.db_pool_pre_ping,
            echo=settings.log_level == "DEBUG",
        )

    @property
    def dialect_name(self) -> str:
        return self.engine.dialect.name

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Session scope: commit on success, roll back on any error, always close.

        The rollback covers non-database failures too (e.g. a serialization bug
        after a write) so no half-finished request is ever committed.
        """
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise
            finally:
                await session.close()

    async def ping(self) -> float:
        """Run SELECT 1 and return the round trip in milliseconds. Raises on failure."""
        started = time.perf_counter()
        async with self.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return (time.perf_counter() - started) * 1000

    async def connect(self, attempts: int = 5, wait: float = 5.0) -> None:
        """
        Verify the database is reachable, retrying with a fixed wait.

        What:    Startup connectivity gate used by the lifespan.
        How:     tenacity AsyncRetrying around ping(); every failed attempt is
                 logged at WARNING before sleeping.
        Raises:  The last connection error once `attempts` is exhausted.
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(attempts),
            wait=wait_fixed(wait),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                elapsed = await self.ping()
        logger.info("Database connected (%s, %.1fms)", self.dialect_name, elapsed)

    async def create_all(self) -> None:
        """Create every mapped table. Used by tests; deployments run Alembic."""
        # Model modules register their tables on Base.metadata at import time
        from tallyhub.models import access_counter, user  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def drop_all(self) -> None:
        from tallyhub.models import access_counter, user  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    async def dispose(self) -> None:
        """Close every pooled connection. Called during application shutdown."""
        await self.engine.dispose()


# ── Session Dependency ────────────────────────────────────────────────────
async def get_db_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides a database session per request.

    The database handle comes from the application that is serving the request
    (`request.app.state.database`), never from a module global, so a test can
    build an app around its own throwaway database.

    Recent FastAPI releases run the teardown after the response has been sent,
    so the commit here is only a backstop. Services commit their writes
    themselves before returning.

    Example usage in a route:
        @router.get("/users")
        async def list_users(db: AsyncSession = Depends(get_db_session)):
            ...
    """
    database: Database = request.app.state.database
    async with database.session() as session:
        yield session
