"""
TallyHub Backend — Counter Service Tests
==========================================

What:  CounterService against a real (SQLite) database, plus mocked failure paths.

What we test:
    ✅ First increment creates the row with count 1
    ✅ Concurrent increments are never lost
    ✅ Reading the count never creates the row
    ✅ Reset is refused in production and leaves the count untouched
    ✅ Statistics: average per day over whole days since creation
    ✅ Integrity: a second row or a negative count is reported
    ✅ Driver errors surface as DatabaseError
"""

import asyncio
import uuid
from datetime import timedelta

import pytest
from sqlalchemy import func, select, update
from sqlalchemy.exc import OperationalError

from tallyhub.database import utcnow
from tallyhub.exceptions import DatabaseError, ForbiddenError
from tallyhub.models.access_counter import SINGLETON_KEY, AccessCounter
from tallyhub.services.counter_service import CounterService


async def _row_count(database) -> int:
    async with database.session() as db:
        return await db.scalar(select(func.count()).select_from(AccessCounter))


class TestIncrement:

    def setup_method(self):
        self.service = CounterService()

    @pytest.mark.asyncio
    async def test_first_increment_creates_counter(self, database):
        async with database.session() as db:
            result = await self.service.increment(db)

        assert result.count == 1
        assert result.last_updated.tzinfo is not None
        assert await _row_count(database) == 1

    @pytest.mark.asyncio
    async def test_sequential_increments(self, database):
        for expected in range(1, 4):
            async with database.session() as db:
                result = await self.service.increment(db)
            assert result.count == expected

    @pytest.mark.asyncio
    async def test_concurrent_increments_are_not_lost(self, database):
        async def one_increment():
            async with database.session() as db:
                return (await self.service.increment(db)).count

        counts = await asyncio.gather(*(one_increment() for _ in range(25)))

        # Every caller saw a distinct post-increment value
        assert sorted(counts) == list(range(1, 26))
        async with database.session() as db:
            assert (await self.service.current_count(db)).count == 25
        assert await _row_count(database) == 1


class TestRead:

    def setup_method(self):
        self.service = CounterService()

    @pytest.mark.asyncio
    async def test_count_without_row_is_zero_and_creates_nothing(self, database):
        async with database.session() as db:
            result = await self.service.current_count(db)

        assert result.count == 0
        assert await _row_count(database) == 0

    @pytest.mark.asyncio
    async def test_statistics_without_row(self, db_session):
        stats = await self.service.statistics(db_session)

        assert stats.count == 0
        assert stats.average_accesses_per_day is None
        assert stats.created_at is None

    @pytest.mark.asyncio
    async def test_statistics_same_day_divides_by_one(self, database):
        for _ in range(3):
            async with database.session() as db:
                await self.service.increment(db)

        async with database.session() as db:
            stats = await self.service.statistics(db)

        assert stats.count == 3
        assert stats.average_accesses_per_day == 3
        assert stats.created_at is not None

    @pytest.mark.asyncio
    async def test_statistics_average_over_whole_days(self, database):
        async with database.session() as db:
            for _ in range(20):
                await self.service.increment(db)
            await db.execute(
                update(AccessCounter)
                .where(AccessCounter.singleton_key == SINGLETON_KEY)
                .values(created_at=utcnow() - timedelta(days=10, hours=5))
            )

        async with database.session() as db:
            stats = await self.service.statistics(db)

        assert stats.average_accesses_per_day == pytest.approx(2.0)


class TestReset:

    def setup_method(self):
        self.service = CounterService()

    @pytest.mark.asyncio
    async def test_reset_sets_zero(self, database):
        async with database.session() as db:
            await self.service.increment(db)
            await self.service.increment(db)

        async with database.session() as db:
            result = await self.service.reset(db, environment="development")

        assert result.count == 0
        async with database.session() as db:
            assert (await self.service.current_count(db)).count == 0

    @pytest.mark.asyncio
    async def test_reset_without_row_creates_it_at_zero(self, database):
        async with database.session() as db:
            result = await self.service.reset(db, environment="test")

        assert result.count == 0
        assert await _row_count(database) == 1

    @pytest.mark.asyncio
    async def test_reset_refused_in_production(self, database):
        async with database.session() as db:
            await self.service.increment(db)

        with pytest.raises(ForbiddenError) as exc_info:
            async with database.session() as db:
                await self.service.reset(db, environment="production")

        assert exc_info.value.status_code == 403
        assert exc_info.value.message == "Operation not allowed in production"
        async with database.session() as db:
            assert (await self.service.current_count(db)).count == 1


class TestIntegrity:

    def setup_method(self):
        self.service = CounterService()

    @pytest.mark.asyncio
    async def test_no_row_is_consistent(self, db_session):
        assert await self.service.validate_integrity(db_session) is True

    @pytest.mark.asyncio
    async def test_single_row_is_consistent(self, database):
        async with database.session() as db:
            await self.service.increment(db)
        async with database.session() as db:
            assert await self.service.validate_integrity(db) is True

    @pytest.mark.asyncio
    async def test_second_row_is_inconsistent(self, database):
        async with database.session() as db:
            await self.service.increment(db)
            now = utcnow()
            db.add(AccessCounter(
                id=uuid.uuid4(),
                singleton_key="stray",
                count=4,
                last_updated=now,
                created_at=now,
            ))

        async with database.session() as db:
            assert await self.service.validate_integrity(db) is False

    @pytest.mark.asyncio
    async def test_negative_count_is_inconsistent(self, database):
        async with database.session() as db:
            await self.service.increment(db)
            await db.execute(update(AccessCounter).values(count=-1))

        async with database.session() as db:
            assert await self.service.validate_integrity(db) is False


class TestFailures:

    def setup_method(self):
        self.service = CounterService()

    @pytest.mark.asyncio
    async def test_increment_wraps_driver_errors(self, mock_db_session):
        mock_db_session.execute.side_effect = OperationalError("INSERT", {}, Exception("disk I/O error"))

        with pytest.raises(DatabaseError) as exc_info:
            await self.service.increment(mock_db_session)

        assert exc_info.value.status_code == 500
        assert "disk I/O error" not in exc_info.value.message

    @pytest.mark.asyncio
    async def test_unsupported_dialect(self, mock_db_session):
        mock_db_session.bind.dialect.name = "mysql"

        with pytest.raises(DatabaseError):
            await self.service.increment(mock_db_session)
        mock_db_session.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_integrity_check_failure_reads_as_inconsistent(self, mock_db_session):
        mock_db_session.scalar.side_effect = OperationalError("SELECT", {}, Exception("gone"))

        assert await self.service.validate_integrity(mock_db_session) is False
