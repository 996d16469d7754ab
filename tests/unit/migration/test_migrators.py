"""
Unit tests for JobMigrator, LogMigrator and their dry-run variants.

Tests cover:
- Moving a job with its final status and log lines
- Removing broken jobs instead of copying them
- Falling back to marking a job migrated when it cannot be removed
- Dry runs leaving both stores untouched
"""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import text

from jobsched.exceptions import MigrationError, SourceJobRemovalError
from jobsched.jobs import JobStatus, ScheduledJob, format_timestamp
from jobsched.migration.migrators import (
    DryRunJobMigrator,
    DryRunLogMigrator,
    JobMigrator,
    LogMigrator,
)
from jobsched.stores.legacy import RECORD_TYPE


@pytest.fixture
def log_migrator(legacy_logger, db_logger):
    return LogMigrator(legacy_logger, db_logger)


@pytest.fixture
def migrator(legacy_store, db_store_migrator, log_migrator):
    return JobMigrator(legacy_store, db_store_migrator, log_migrator, enable_tracing=False)


@pytest.fixture
def dry_run_migrator(legacy_store, db_store_migrator, legacy_logger, db_logger):
    return DryRunJobMigrator(
        legacy_store,
        db_store_migrator,
        DryRunLogMigrator(legacy_logger, db_logger),
        enable_tracing=False,
    )


class TestLogMigrator:
    @pytest.mark.asyncio
    async def test_copies_entries_with_timestamps(
        self, log_migrator, legacy_logger, db_logger, now
    ):
        await legacy_logger.log(1, "queued", date=now - timedelta(minutes=2))
        await legacy_logger.log(1, "ran", date=now)

        assert await log_migrator.migrate(1, 50) == 2

        entries = await db_logger.get_logs(50)
        assert [(e.message, e.logged_at) for e in entries] == [
            ("queued", now - timedelta(minutes=2)),
            ("ran", now),
        ]

    @pytest.mark.asyncio
    async def test_dry_run_copies_nothing(self, legacy_logger, db_logger):
        await legacy_logger.log(1, "queued")

        assert await DryRunLogMigrator(legacy_logger, db_logger).migrate(1, 50) == 0
        assert await db_logger.get_logs(50) == []


class TestJobMigrator:
    """Tests for moving single jobs."""

    @pytest.mark.asyncio
    async def test_moves_pending_job(self, migrator, legacy_store, db_store_migrator, make_job):
        job = make_job(args=[42], group="billing")
        source_id = await legacy_store.save_job(job)

        destination_id = await migrator.migrate(source_id)

        assert destination_id
        assert await db_store_migrator.fetch_job(destination_id) == job
        assert await db_store_migrator.get_status(destination_id) is JobStatus.PENDING
        assert await legacy_store.fetch_job(source_id) is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("mark", "expected"),
        [
            ("mark_complete", JobStatus.COMPLETE),
            ("mark_failure", JobStatus.FAILED),
            ("cancel_job", JobStatus.CANCELED),
        ],
    )
    async def test_replays_final_status(
        self, migrator, legacy_store, db_store_migrator, make_job, mark, expected
    ):
        source_id = await legacy_store.save_job(make_job())
        await getattr(legacy_store, mark)(source_id)
        source_date = await legacy_store.get_date(source_id)

        destination_id = await migrator.migrate(source_id)

        assert await db_store_migrator.get_status(destination_id) is expected
        assert await db_store_migrator.get_date(destination_id) == source_date

    @pytest.mark.asyncio
    async def test_running_job_arrives_pending(
        self, migrator, engine, legacy_store, db_store_migrator, make_job
    ):
        source_id = await legacy_store.save_job(make_job())
        async with engine.begin() as conn:
            await conn.execute(
                text("UPDATE records SET status = 'in-progress' WHERE id = :id"), {"id": source_id}
            )

        destination_id = await migrator.migrate(source_id)

        assert await db_store_migrator.get_status(destination_id) is JobStatus.PENDING

    @pytest.mark.asyncio
    async def test_moves_log_lines(
        self, migrator, legacy_store, legacy_logger, db_logger, make_job
    ):
        source_id = await legacy_store.save_job(make_job())
        await legacy_logger.log(source_id, "attempted")

        destination_id = await migrator.migrate(source_id)

        assert [e.message for e in await db_logger.get_logs(destination_id)] == ["attempted"]
        assert await legacy_logger.get_logs(source_id) == []


class TestBrokenJobs:
    """Jobs that cannot be read are removed, not copied."""

    @pytest.mark.asyncio
    async def test_job_without_date(self, migrator, legacy_store, db_store_migrator, make_job):
        source_id = await legacy_store.save_job(make_job(scheduled_at=None))

        assert await migrator.migrate(source_id) == 0
        assert await legacy_store.fetch_job(source_id) is None
        assert sum((await db_store_migrator.job_counts()).values()) == 0

    @pytest.mark.asyncio
    async def test_missing_job(self, migrator):
        assert await migrator.migrate(404) == 0

    @pytest.mark.asyncio
    async def test_unknown_status(self, migrator, engine, legacy_store):
        async with engine.begin() as conn:
            result = await conn.execute(
                text("""
                    INSERT INTO records (record_type, status, title, record_date, created_at)
                    VALUES (:record_type, 'draft', 'orders/sync', :date, :date)
                    RETURNING id
                """),
                {"record_type": RECORD_TYPE, "date": format_timestamp(datetime.now(UTC))},
            )
            source_id = int(result.scalar_one())

        assert await migrator.migrate(source_id) == 0
        assert await legacy_store.max_record_id() == 0


class TestDestinationFailures:
    @pytest.mark.asyncio
    async def test_destination_refuses_job(self, legacy_store, log_migrator, make_job):
        destination = AsyncMock()
        destination.save_job.return_value = 0
        source_id = await legacy_store.save_job(make_job())
        migrator = JobMigrator(legacy_store, destination, log_migrator, enable_tracing=False)

        with pytest.raises(MigrationError, match=str(source_id)):
            await migrator.migrate(source_id)

        assert await legacy_store.fetch_job(source_id) is not None


class TestSourceRemoval:
    """Tests for jobs the source store fails to delete."""

    @pytest.mark.asyncio
    async def test_falls_back_to_mark_migrated(self, migrator, legacy_store, make_job):
        source_id = await legacy_store.save_job(make_job())

        with patch.object(legacy_store, "delete_job", AsyncMock()):
            destination_id = await migrator.migrate(source_id)

        assert destination_id
        assert await legacy_store.fetch_job(source_id) is None
        assert await legacy_store.max_record_id() == source_id

    @pytest.mark.asyncio
    async def test_raises_without_mark_migrated(self, db_store_migrator, log_migrator, now):
        source = AsyncMock(spec=["fetch_job", "get_status", "delete_job"])
        source.fetch_job.return_value = ScheduledJob(hook="orders/sync", scheduled_at=now)
        source.get_status.return_value = JobStatus.PENDING
        migrator = JobMigrator(source, db_store_migrator, log_migrator, enable_tracing=False)

        with pytest.raises(SourceJobRemovalError) as exc_info:
            await migrator.migrate(9)

        assert exc_info.value.job_id == 9
        source.delete_job.assert_awaited_once_with(9)


class TestDryRunJobMigrator:
    @pytest.mark.asyncio
    async def test_returns_source_id_without_writing(
        self, dry_run_migrator, legacy_store, db_store_migrator, make_job
    ):
        source_id = await legacy_store.save_job(make_job())

        assert await dry_run_migrator.migrate(source_id) == source_id
        assert await legacy_store.fetch_job(source_id) is not None
        assert sum((await db_store_migrator.job_counts()).values()) == 0

    @pytest.mark.asyncio
    async def test_broken_job_is_kept(self, dry_run_migrator, legacy_store, make_job):
        source_id = await legacy_store.save_job(make_job(scheduled_at=None))

        assert await dry_run_migrator.migrate(source_id) == 0
        assert await legacy_store.fetch_job(source_id) is not None
