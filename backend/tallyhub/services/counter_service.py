"""
TallyHub Backend — Access Counter Service
===========================================

What:  Business logic for the singleton access counter.
Why:   The counter must stay exact under concurrent increments without any
       in-process lock.
How:   Every mutation is one `INSERT ... ON CONFLICT (singleton_key) DO UPDATE
       ... RETURNING` statement. The database serializes concurrent upserts on
       the same row, so N concurrent increments from a starting value C always
       end at C + N. There is no read-modify-write anywhere in this module.
       Each upsert is committed before the method returns.
Supported dialects:
    postgresql (asyncpg) in deployments, sqlite (aiosqlite) in tests. Both
    ship an `insert()` construct with on_conflict_do_update().

Design Decision:
    CounterService is stateless, like the other services: the session is
    passed to every call.
"""

import logging
import math
import uuid
from datetime import timedelta
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from tallyhub.database import ensure_utc, utcnow
from tallyhub.exceptions import DatabaseError, ForbiddenError
from tallyhub.models.access_counter import SINGLETON_KEY, AccessCounter
from tallyhub.schemas.access import CounterResponse, CounterStatistics

logger = logging.getLogger(__name__)

_UPSERT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class CounterService:
    """
    Operations on the access counter.

    Responsibilities:
        - increment():          atomic +1, creates the row on first use
        - current_count():      read without creating
        - reset():              atomic set to 0, refused in production
        - statistics():         count plus average accesses per day
        - validate_integrity(): at most one row, never negative
    """

    def _upsert(self, db: AsyncSession, count_on_insert: int, count_on_conflict: Any):
        dialect = db.bind.dialect.name
        insert = _UPSERT_INSERTS.get(dialect)
        if insert is None:
            raise DatabaseError(
                message="Counter storage is not available.",
                context={"dialect": dialect},
            )

        now = utcnow()
        stmt = insert(AccessCounter).values(
            id=uuid.uuid4(),
            singleton_key=SINGLETON_KEY,
            count=count_on_insert,
            last_updated=now,
            created_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[AccessCounter.singleton_key],
            set_={"count": count_on_conflict, "last_updated": now},
        )
        return stmt.returning(AccessCounter.count, AccessCounter.last_updated)

    async def _execute_upsert(self, db: AsyncSession, stmt, operation: str) -> CounterResponse:
        try:
            count, last_updated = (await db.execute(stmt)).one()
            await db.commit()
        except SQLAlchemyError as e:
            logger.error("Counter %s failed: %s", operation, str(e), exc_info=True)
            raise DatabaseError(
                message="Could not update the access counter. Please try again.",
                context={"operation": operation, "error_type": type(e).__name__},
            )
        return CounterResponse(count=count, last_updated=ensure_utc(last_updated))

    async def increment(self, db: AsyncSession) -> CounterResponse:
        """
        Atomically add one to the counter, creating it with count=1 if absent.

        Returns:
            Post-increment count and last_updated
        """
        stmt = self._upsert(db, count_on_insert=1, count_on_conflict=AccessCounter.count + 1)
        result = await self._execute_upsert(db, stmt, "increment")
        logger.debug("Counter incremented to %d", result.count)
        return result

    async def current_count(self, db: AsyncSession) -> CounterResponse:
        """Read the counter. Never creates the row; an absent row reads as zero."""
        counter = await self._get(db)
        if counter is None:
            return CounterResponse(count=0, last_updated=utcnow())
        return CounterResponse(count=counter.count, last_updated=ensure_utc(counter.last_updated))

    async def reset(self, db: AsyncSession, environment: str) -> CounterResponse:
        """
        Atomically set the counter to zero, creating the row if absent.

        Args:
            environment: runtime mode of the current request's application.
                         Read per call so a mode change takes effect immediately.
        Raises:
            ForbiddenError: when environment is "production"; nothing is written
        """
        if environment == "production":
            logger.warning("Counter reset refused in production")
            raise ForbiddenError(
                message="Operation not allowed in production",
                context={"operation": "counter_reset"},
            )

        stmt = self._upsert(db, count_on_insert=0, count_on_conflict=0)
        result = await self._execute_upsert(db, stmt, "reset")
        logger.info("Counter reset (environment=%s)", environment)
        return result

    async def statistics(self, db: AsyncSession) -> CounterStatistics:
        """
        Counter value with usage statistics.

        average_accesses_per_day = count / max(1, whole days since creation)
        """
        counter = await self._get(db)
        if counter is None:
            return CounterStatistics(count=0, last_updated=utcnow())

        created_at = ensure_utc(counter.created_at)
        days = math.floor((utcnow() - created_at) / timedelta(days=1))
        return CounterStatistics(
            count=counter.count,
            last_updated=ensure_utc(counter.last_updated),
            average_accesses_per_day=counter.count / max(1, days),
            created_at=created_at,
        )

    async def validate_integrity(self, db: AsyncSession) -> bool:
        """
        Check the counter invariants.

        Returns:
            False if more than one counter row exists or any count is negative,
            True otherwise (including when no row exists yet). A failure while
            checking is logged and reported as False.
        """
        try:
            rows = await db.scalar(select(func.count()).select_from(AccessCounter))
            if rows > 1:
                logger.error("Counter integrity violated: %d rows found", rows)
                return False

            negatives = await db.scalar(
                select(func.count()).select_from(AccessCounter).where(AccessCounter.count < 0)
            )
            if negatives:
                logger.error("Counter integrity violated: negative count")
                return False
            return True
        except SQLAlchemyError as e:
            logger.error("Counter integrity check failed: %s", str(e), exc_info=True)
            return False

    async def _get(self, db: AsyncSession) -> AccessCounter | None:
        try:
            result = await db.execute(
                select(AccessCounter).where(AccessCounter.singleton_key == SINGLETON_KEY)
            )
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error("Database error reading counter: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not read the access counter. Please try again.",
                context={"error_type": type(e).__name__},
            )


counter_service = CounterService()
