"""
Background scheduling of the migration.

The migration runs as an ordinary scheduled job of the host: a pending job
for MIGRATION_HOOK means a batch is queued. Each batch run either schedules
the next one or, once the source is exhausted, records the migration as
complete in the options table, where every process can see it.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import TYPE_CHECKING

from jobsched.exceptions import MigrationError
from jobsched.hooks import HookRegistry
from jobsched.jobs import JobStatus, ScheduledJob
from jobsched.migration.fetcher import MIGRATION_GROUP, MIGRATION_HOOK
from jobsched.migration.runner import MigrationRunner
from jobsched.observability import (
    ATTR_JOB_COUNT,
    ATTR_MIGRATION_BATCH_SIZE,
    Tracer,
    create_tracer,
)
from jobsched.schema import CANONICAL_TABLES, OPTIONS_TABLES, has_tables

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

    from jobsched.migration.config import MigrationConfig
    from jobsched.repositories.options import OptionsRepository
    from jobsched.stores.interface import JobStore

logger = logging.getLogger(__name__)

STATUS_OPTION = "jobsched_migration_status"
STATUS_COMPLETE = "complete"
MIGRATION_COMPLETE_HOOK = "jobsched/migration_complete"

StoreProvider = Callable[[], Awaitable["JobStore"]]
ConfigProvider = Callable[[], Awaitable["MigrationConfig"]]
DependencyCheck = Callable[[], Awaitable[bool]]


class MigrationState(Enum):
    """
    Phase of the migration as seen from one process.

    Attributes:
        DEPENDENCIES_NOT_MET: Required tables are missing; nothing may run.
        ELIGIBLE: Ready to migrate but no batch is queued.
        SCHEDULED: A batch job is pending.
        COMPLETE: Every job has been migrated. Terminal.
    """

    DEPENDENCIES_NOT_MET = "dependencies_not_met"
    ELIGIBLE = "eligible"
    SCHEDULED = "scheduled"
    COMPLETE = "complete"


@dataclass(frozen=True)
class MigrationSettings:
    """
    Tuning for the background migration.

    Attributes:
        batch_size: Jobs moved per background batch
        schedule_interval: Seconds between one batch and the next
        first_run_delay: Seconds before the first batch when scheduling
    """

    batch_size: int = 250
    schedule_interval: float = 0.0
    first_run_delay: float = 60.0

    def __post_init__(self) -> None:
        """Validate settings values."""
        if self.batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {self.batch_size}")
        if self.schedule_interval < 0:
            raise ValueError(f"schedule_interval must be >= 0, got {self.schedule_interval}")
        if self.first_run_delay < 0:
            raise ValueError(f"first_run_delay must be >= 0, got {self.first_run_delay}")


class MigrationScheduler:
    """
    Owns the migration's state transitions and its background batches.

    Example:
        >>> scheduler = MigrationScheduler(
        ...     options,
        ...     selector.store,
        ...     conn=engine,
        ...     config_provider=coordinator.build_default_config,
        ...     hooks=hooks,
        ... )
        >>> if await scheduler.dependencies_met() and not await scheduler.is_complete():
        ...     await scheduler.schedule_migration()
    """

    def __init__(
        self,
        options: OptionsRepository,
        store_provider: StoreProvider,
        *,
        conn: AsyncConnection | AsyncEngine | None = None,
        settings: MigrationSettings | None = None,
        config_provider: ConfigProvider | None = None,
        hooks: HookRegistry | None = None,
        dependency_checks: Sequence[DependencyCheck] | None = None,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        """
        Initialize the scheduler.

        Args:
            options: Options repository holding the migration status
            store_provider: Returns the host's job store, where the batch job is queued
            conn: Database holding the dedicated tables; enables the default
                table check
            settings: Batch size and timing
            config_provider: Builds a fresh MigrationConfig for each batch
            hooks: Hook registry the batch handler is registered on
            dependency_checks: Replace the default checks (options storage
                ready, dedicated tables present)
            tracer: Optional tracer for tracing (if not provided, one will be created)
            enable_tracing: Whether to enable OpenTelemetry tracing (default True)
        """
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._enable_tracing = self._tracer.enabled
        self._options = options
        self._store_provider = store_provider
        self.settings = settings or MigrationSettings()
        self._config_provider = config_provider
        self.hooks = hooks or HookRegistry(tracer=self._tracer)
        self._complete = False

        checks: list[DependencyCheck] = [self._options_ready]
        if conn is not None:
            checks.append(self._tables_check(conn))
        self._dependency_checks = checks if dependency_checks is None else list(dependency_checks)

    @property
    def config_provider(self) -> ConfigProvider | None:
        return self._config_provider

    def set_config_provider(self, provider: ConfigProvider | None) -> None:
        self._config_provider = provider

    async def _options_ready(self) -> bool:
        return await self._options.is_ready()

    @staticmethod
    def _tables_check(conn: AsyncConnection | AsyncEngine) -> DependencyCheck:
        async def _tables_exist() -> bool:
            return await has_tables(conn, (*CANONICAL_TABLES, *OPTIONS_TABLES))

        return _tables_exist

    async def dependencies_met(self) -> bool:
        """
        Check that everything the migration needs is in place.

        Returns:
            True only if every dependency check passes
        """
        for check in self._dependency_checks:
            if not await check():
                name = getattr(check, "__name__", check)
                logger.debug("Migration dependency check %s failed", name)
                return False
        return True

    async def is_complete(self) -> bool:
        """
        Check whether the migration has finished.

        Once observed as complete the answer is cached; completion never
        reverts.
        """
        if not self._complete:
            status = await self._options.get(STATUS_OPTION)
            self._complete = status == STATUS_COMPLETE
        return self._complete

    async def is_scheduled(self) -> bool:
        """Check whether a migration batch job is pending."""
        store = await self._store_provider()
        return await store.find_job(MIGRATION_HOOK, status=JobStatus.PENDING) is not None

    async def schedule_migration(self, when: datetime | None = None) -> datetime:
        """
        Queue the next migration batch.

        If a batch is already pending nothing is added.

        Args:
            when: When the batch should run (default: now + first_run_delay)

        Returns:
            When the pending batch is due
        """
        with self._tracer.span("jobsched.migration_scheduler.schedule_migration"):
            store = await self._store_provider()
            existing = await store.find_job(MIGRATION_HOOK, status=JobStatus.PENDING)
            if existing is not None:
                due = await store.get_date(existing)
                logger.debug("Migration batch already scheduled as job %s", existing)
                return due or datetime.now(UTC)

            if when is None:
                when = datetime.now(UTC) + timedelta(seconds=self.settings.first_run_delay)
            job_id = await store.save_job(
                ScheduledJob(hook=MIGRATION_HOOK, group=MIGRATION_GROUP, scheduled_at=when)
            )
            logger.info("Scheduled migration batch job %s for %s", job_id, when.isoformat())
            return when

    async def unschedule_migration(self) -> int:
        """
        Cancel every pending migration batch.

        Returns:
            Number of jobs canceled
        """
        store = await self._store_provider()
        canceled = 0
        while True:
            job_id = await store.find_job(MIGRATION_HOOK, status=JobStatus.PENDING)
            if job_id is None:
                break
            await store.cancel_job(job_id)
            canceled += 1
        if canceled:
            logger.info("Unscheduled %s migration batch job(s)", canceled)
        return canceled

    async def mark_complete(self) -> None:
        """Record the migration as complete and stop scheduling batches."""
        await self.unschedule_migration()
        await self._options.set(STATUS_OPTION, STATUS_COMPLETE)
        self._complete = True
        logger.info("Job store migration complete")
        await self.hooks.dispatch(MIGRATION_COMPLETE_HOOK)

    def activate_hooks(self) -> bool:
        """
        Register the batch handler for the migration hook.

        Returns:
            False if it was already registered
        """
        return self.hooks.add(MIGRATION_HOOK, self.run_migration)

    async def run_migration(self) -> int:
        """
        Run one background batch.

        Schedules the next batch, or marks the migration complete when the
        batch found nothing to move.

        Returns:
            Number of jobs in the batch

        Raises:
            MigrationError: If no config provider is set
        """
        if self._config_provider is None:
            raise MigrationError("No migration config provider is set")

        batch_size = self.settings.batch_size
        with self._tracer.span(
            "jobsched.migration_scheduler.run_migration",
            {ATTR_MIGRATION_BATCH_SIZE: batch_size},
        ) as span:
            config = await self._config_provider()
            runner = MigrationRunner(config, tracer=self._tracer)
            count = await runner.run(batch_size)
            if span is not None:
                span.set_attribute(ATTR_JOB_COUNT, count)

            if count == 0:
                await self.mark_complete()
            else:
                next_run = datetime.now(UTC) + timedelta(seconds=self.settings.schedule_interval)
                await self.schedule_migration(next_run)
            return count

    async def get_state(self) -> MigrationState:
        """Get the current phase of the migration."""
        if not await self.dependencies_met():
            state = MigrationState.DEPENDENCIES_NOT_MET
        elif await self.is_complete():
            state = MigrationState.COMPLETE
        elif await self.is_scheduled():
            state = MigrationState.SCHEDULED
        else:
            state = MigrationState.ELIGIBLE
        logger.debug("Migration state: %s", state.value)
        return state


__all__ = [
    "MigrationScheduler",
    "MigrationSettings",
    "MigrationState",
    "STATUS_OPTION",
    "STATUS_COMPLETE",
    "MIGRATION_HOOK",
    "MIGRATION_GROUP",
    "MIGRATION_COMPLETE_HOOK",
]
