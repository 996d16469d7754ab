"""
Unit tests for the ``migrate`` command.

Tests cover:
- Running batches until the source is exhausted
- Batch limits and pauses between batches
- Dry runs
- Option parsing and error reporting through click
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from click.testing import CliRunner

from jobsched.exceptions import MigrationError
from jobsched.jobs import JobStatus
from jobsched.migration.command import (
    MigrationCommandResult,
    create_migrate_command,
    run_migration_command,
)
from jobsched.migration.coordinator import MigrationCoordinator


@pytest.fixture
def coordinator(scheduler, selector):
    return MigrationCoordinator(scheduler, selector, enable_tracing=False)


@pytest.fixture
def echoed():
    return []


async def _seed(legacy_store, make_job, count: int) -> None:
    for i in range(count):
        await legacy_store.save_job(make_job(args=[i]))


class TestRunMigrationCommand:
    """Tests for run_migration_command()."""

    @pytest.mark.asyncio
    async def test_runs_until_exhausted(
        self, coordinator, legacy_store, db_store, make_job, echoed
    ):
        await _seed(legacy_store, make_job, 5)

        result = await run_migration_command(coordinator, batch_size=2, echo=echoed.append)

        assert result == MigrationCommandResult(
            processed=5, batches=3, exhausted=True, marked_complete=True
        )
        assert echoed == [
            "Batch 1: 2 jobs processed",
            "Batch 2: 2 jobs processed",
            "Batch 3: 1 jobs processed",
            "5 jobs migrated in 3 batch(es)",
            "Migration complete",
        ]
        assert await coordinator.scheduler.is_complete() is True
        assert (await db_store.job_counts())[JobStatus.PENDING] == 5

    @pytest.mark.asyncio
    async def test_batch_limit(self, coordinator, legacy_store, make_job, echoed):
        await _seed(legacy_store, make_job, 5)

        result = await run_migration_command(
            coordinator, batch_size=2, batches=1, echo=echoed.append
        )

        assert (result.processed, result.batches) == (2, 1)
        assert result.exhausted is False
        assert result.marked_complete is False
        assert await coordinator.scheduler.is_complete() is False
        assert (await legacy_store.job_counts())[JobStatus.PENDING] == 3

    @pytest.mark.asyncio
    async def test_empty_source_completes(self, coordinator, echoed):
        result = await run_migration_command(coordinator, echo=echoed.append)

        assert result.marked_complete is True
        assert echoed == ["0 jobs migrated in 0 batch(es)", "Migration complete"]

    @pytest.mark.asyncio
    async def test_dry_run_changes_nothing(
        self, coordinator, legacy_store, db_store, make_job, echoed
    ):
        await _seed(legacy_store, make_job, 5)

        result = await run_migration_command(
            coordinator, batch_size=2, dry_run=True, echo=echoed.append
        )

        assert (result.processed, result.exhausted, result.marked_complete) == (5, True, False)
        assert echoed[-1] == "5 jobs checked in 3 batch(es)"
        assert (await legacy_store.job_counts())[JobStatus.PENDING] == 5
        assert sum((await db_store.job_counts()).values()) == 0
        assert await coordinator.scheduler.is_complete() is False

    @pytest.mark.asyncio
    async def test_pauses_between_batches(self, coordinator, legacy_store, make_job, echoed):
        await _seed(legacy_store, make_job, 3)

        with patch("jobsched.migration.command.asyncio.sleep", AsyncMock()) as sleep:
            await run_migration_command(
                coordinator, batch_size=2, pause=0.5, echo=echoed.append
            )

        assert sleep.await_count == 2
        sleep.assert_awaited_with(0.5)


@pytest.fixture
def mock_coordinator():
    coordinator = MagicMock(spec=MigrationCoordinator)
    coordinator.close = AsyncMock()
    return coordinator


class TestMigrateCommand:
    """The click command wrapping run_migration_command()."""

    def test_passes_options(self, mock_coordinator):
        command = create_migrate_command(mock_coordinator)
        result_value = MigrationCommandResult(3, 1, True, True)

        with patch(
            "jobsched.migration.command.run_migration_command",
            AsyncMock(return_value=result_value),
        ) as run:
            result = CliRunner().invoke(
                command, ["--batch-size", "50", "--batches", "2", "--pause", "1.5", "--dry-run"]
            )

        assert result.exit_code == 0, result.output
        run.assert_awaited_once_with(
            mock_coordinator, batch_size=50, batches=2, pause=1.5, dry_run=True
        )
        mock_coordinator.close.assert_awaited_once()

    def test_defaults(self, mock_coordinator):
        command = create_migrate_command(mock_coordinator)

        with patch("jobsched.migration.command.run_migration_command", AsyncMock()) as run:
            result = CliRunner().invoke(command, [])

        assert result.exit_code == 0, result.output
        run.assert_awaited_once_with(
            mock_coordinator, batch_size=100, batches=0, pause=0.0, dry_run=False
        )

    def test_rejects_zero_batch_size(self, mock_coordinator):
        result = CliRunner().invoke(create_migrate_command(mock_coordinator), ["--batch-size", "0"])

        assert result.exit_code == 2
        assert "--batch-size" in result.output

    def test_failure_becomes_click_error(self, mock_coordinator):
        command = create_migrate_command(mock_coordinator)

        with patch(
            "jobsched.migration.command.run_migration_command",
            AsyncMock(side_effect=MigrationError("destination unavailable")),
        ):
            result = CliRunner().invoke(command, [])

        assert result.exit_code == 1
        assert "Error: destination unavailable" in result.output
        mock_coordinator.close.assert_awaited_once()
