"""
Migration runner.

Runs a migration one batch at a time. Each call to run() moves the next
batch picked by the BatchFetcher and reports how many jobs it handled, so
both the background scheduler and the command line can drive it until it
returns 0.
"""

from __future__ import annotations

import logging

from jobsched.migration.config import MigrationConfig
from jobsched.migration.fetcher import BatchFetcher
from jobsched.migration.migrators import (
    DryRunJobMigrator,
    DryRunLogMigrator,
    JobMigrator,
    LogMigrator,
)
from jobsched.migration.progress import NullProgressReporter, ProgressReporter
from jobsched.observability import (
    ATTR_JOB_COUNT,
    ATTR_MIGRATION_BATCH_SIZE,
    ATTR_MIGRATION_DRY_RUN,
    Tracer,
    create_tracer,
)

logger = logging.getLogger(__name__)


class MigrationRunner:
    """
    Moves jobs from the source to the destination of a MigrationConfig.

    Example:
        >>> runner = MigrationRunner(config)
        >>> await runner.init_destination()
        >>> while await runner.run(250):
        ...     pass
    """

    def __init__(
        self,
        config: MigrationConfig,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        """
        Initialize the runner.

        Args:
            config: Source and destination backends
            tracer: Optional tracer for tracing (if not provided, one will be created)
            enable_tracing: Whether to enable OpenTelemetry tracing (default True)

        Raises:
            MigrationConfigError: If a required part of the config is unset
        """
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._enable_tracing = self._tracer.enabled

        self._source_store = config.source_store
        self._destination_store = config.destination_store
        self._destination_logger = config.destination_logger
        self._dry_run = config.dry_run
        self._progress: ProgressReporter = config.progress_reporter or NullProgressReporter()
        self._fetcher = BatchFetcher(self._source_store)
        self._offset = 0

        if self._dry_run:
            log_migrator: LogMigrator = DryRunLogMigrator(
                config.source_logger, self._destination_logger
            )
            self._job_migrator: JobMigrator = DryRunJobMigrator(
                self._source_store, self._destination_store, log_migrator, tracer=self._tracer
            )
        else:
            log_migrator = LogMigrator(config.source_logger, self._destination_logger)
            self._job_migrator = JobMigrator(
                self._source_store, self._destination_store, log_migrator, tracer=self._tracer
            )

    @property
    def dry_run(self) -> bool:
        return self._dry_run

    async def init_destination(self) -> None:
        """Prepare the destination store and logger (create their tables)."""
        await self._destination_store.init()
        await self._destination_logger.init()

    async def run(self, batch_size: int = 10) -> int:
        """
        Migrate the next batch.

        Args:
            batch_size: Maximum number of jobs to move

        Returns:
            Number of jobs in the batch; 0 means the source is exhausted
        """
        with self._tracer.span(
            "jobsched.migration_runner.run",
            {ATTR_MIGRATION_BATCH_SIZE: batch_size, ATTR_MIGRATION_DRY_RUN: self._dry_run},
        ):
            if self._dry_run:
                batch = await self._fetcher.fetch_page(batch_size, self._offset)
                self._offset += len(batch)
            else:
                batch = await self._fetcher.fetch(batch_size)

            count = len(batch)
            if count == 0:
                return 0

            self._progress.start(f"Migrating {count} jobs", count)
            try:
                await self.migrate_jobs(batch)
            finally:
                self._progress.finish()

            logger.info("Migration batch handled %s jobs", count)
            return count

    async def migrate_jobs(self, job_ids: list[int]) -> dict[int, int]:
        """
        Migrate the given source jobs.

        Args:
            job_ids: Source job ids

        Returns:
            Mapping of source id to destination id (0 for broken jobs)
        """
        with self._tracer.span(
            "jobsched.migration_runner.migrate_jobs",
            {ATTR_JOB_COUNT: len(job_ids)},
        ):
            migrated: dict[int, int] = {}
            for source_id in job_ids:
                destination_id = await self._job_migrator.migrate(source_id)
                migrated[source_id] = destination_id
                if destination_id and not self._dry_run:
                    await self._destination_logger.log(
                        destination_id,
                        f"Migrated job with ID {source_id} in "
                        f"{type(self._source_store).__name__} to ID {destination_id} in "
                        f"{type(self._destination_store).__name__}",
                    )
                self._progress.tick()
            return migrated


__all__ = ["MigrationRunner"]
