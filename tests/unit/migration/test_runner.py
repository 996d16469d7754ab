"""
Unit tests for MigrationRunner.

Tests cover:
- Batches moving jobs until the source is exhausted
- The log line written for every moved job
- Progress reporting per batch
- Dry runs paging through the source without writing
"""

from unittest.mock import MagicMock

import pytest

from jobsched.exceptions import MigrationConfigError
from jobsched.jobs import JobStatus
from jobsched.migration.config import MigrationConfig
from jobsched.migration.progress import ProgressReporter
from jobsched.migration.runner import MigrationRunner
from jobsched.schema import CANONICAL_TABLES, create_schema, has_tables
from jobsched.stores.db import DBLogger, DBStoreMigrator
from jobsched.stores.legacy import LegacyLogger, LegacyStore


@pytest.fixture
def config(legacy_store, legacy_logger, db_store_migrator, db_logger):
    return (
        MigrationConfig()
        .set_source_store(legacy_store)
        .set_source_logger(legacy_logger)
        .set_destination_store(db_store_migrator)
        .set_destination_logger(db_logger)
    )


async def _seed(store, make_job, count: int) -> list[int]:
    return [await store.save_job(make_job(args=[i])) for i in range(count)]


class TestRun:
    """Tests for run()."""

    @pytest.mark.asyncio
    async def test_batches_until_exhausted(self, config, legacy_store, db_store, make_job):
        await _seed(legacy_store, make_job, 5)
        runner = MigrationRunner(config, enable_tracing=False)

        assert await runner.run(3) == 3
        assert await runner.run(3) == 2
        assert await runner.run(3) == 0

        assert (await db_store.job_counts())[JobStatus.PENDING] == 5
        assert sum((await legacy_store.job_counts()).values()) == 0

    @pytest.mark.asyncio
    async def test_empty_source(self, config):
        assert await MigrationRunner(config, enable_tracing=False).run() == 0

    @pytest.mark.asyncio
    async def test_reports_progress(self, config, legacy_store, make_job):
        await _seed(legacy_store, make_job, 2)
        reporter = MagicMock(spec=ProgressReporter)
        runner = MigrationRunner(config.set_progress_reporter(reporter), enable_tracing=False)

        await runner.run(10)

        reporter.start.assert_called_once_with("Migrating 2 jobs", 2)
        assert reporter.tick.call_count == 2
        reporter.finish.assert_called_once()

    @pytest.mark.asyncio
    async def test_no_progress_for_empty_batch(self, config):
        reporter = MagicMock(spec=ProgressReporter)
        runner = MigrationRunner(config.set_progress_reporter(reporter), enable_tracing=False)

        await runner.run(10)

        reporter.start.assert_not_called()


class TestMigrateJobs:
    @pytest.mark.asyncio
    async def test_maps_source_to_destination_ids(
        self, config, legacy_store, db_logger, make_job
    ):
        good = await legacy_store.save_job(make_job())
        broken = await legacy_store.save_job(make_job(scheduled_at=None))
        runner = MigrationRunner(config, enable_tracing=False)

        migrated = await runner.migrate_jobs([good, broken])

        assert migrated[broken] == 0
        destination_id = migrated[good]
        assert [entry.message for entry in await db_logger.get_logs(destination_id)] == [
            f"Migrated job with ID {good} in LegacyStore to ID {destination_id} in DBStoreMigrator"
        ]


class TestDryRun:
    """Dry runs walk the source once and change nothing."""

    @pytest.mark.asyncio
    async def test_pages_through_source(self, config, legacy_store, db_store, make_job):
        await _seed(legacy_store, make_job, 5)
        runner = MigrationRunner(config.set_dry_run(True), enable_tracing=False)

        assert runner.dry_run is True
        assert [await runner.run(2) for _ in range(4)] == [2, 2, 1, 0]
        assert (await legacy_store.job_counts())[JobStatus.PENDING] == 5
        assert sum((await db_store.job_counts()).values()) == 0

    @pytest.mark.asyncio
    async def test_writes_no_log_lines(self, config, legacy_store, db_logger, make_job):
        (source_id,) = await _seed(legacy_store, make_job, 1)
        runner = MigrationRunner(config.set_dry_run(True), enable_tracing=False)

        assert await runner.migrate_jobs([source_id]) == {source_id: source_id}
        assert await db_logger.get_logs(source_id) == []


class TestRunnerSetup:
    def test_incomplete_config(self):
        with pytest.raises(MigrationConfigError):
            MigrationRunner(MigrationConfig().set_source_store(MagicMock()))

    @pytest.mark.asyncio
    async def test_init_destination_creates_tables(self, bare_engine):
        await create_schema(bare_engine, groups=("legacy",))
        config = (
            MigrationConfig()
            .set_source_store(LegacyStore(bare_engine, enable_tracing=False))
            .set_source_logger(LegacyLogger(bare_engine, enable_tracing=False))
            .set_destination_store(DBStoreMigrator(bare_engine, enable_tracing=False))
            .set_destination_logger(DBLogger(bare_engine, enable_tracing=False))
        )

        await MigrationRunner(config, enable_tracing=False).init_destination()

        assert await has_tables(bare_engine, CANONICAL_TABLES)
