"""
Per-job migration steps.

JobMigrator moves one job (and, through LogMigrator, its log lines) from
the source store to the destination store. The dry-run variants read the
source the same way but write nothing.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from jobsched.exceptions import (
    JobNotFoundError,
    MigrationError,
    SourceJobRemovalError,
    StoreError,
)
from jobsched.jobs import JobStatus, ScheduledJob
from jobsched.observability import (
    ATTR_MIGRATION_DESTINATION_JOB_ID,
    ATTR_MIGRATION_SOURCE_JOB_ID,
    Tracer,
    create_tracer,
)

if TYPE_CHECKING:
    from jobsched.stores.interface import JobLogger, JobStore

logger = logging.getLogger(__name__)


class LogMigrator:
    """Copies the log lines of a job onto its new id, keeping their timestamps."""

    def __init__(self, source_logger: JobLogger, destination_logger: JobLogger) -> None:
        self._source = source_logger
        self._destination = destination_logger

    async def migrate(self, source_job_id: int, destination_job_id: int) -> int:
        """
        Copy every log entry of a job.

        Args:
            source_job_id: Job id in the source store
            destination_job_id: Job id in the destination store

        Returns:
            Number of entries copied
        """
        entries = await self._source.get_logs(source_job_id)
        for entry in entries:
            await self._destination.log(destination_job_id, entry.message, entry.logged_at)
        return len(entries)


class DryRunLogMigrator(LogMigrator):
    """Log migrator that copies nothing."""

    async def migrate(self, source_job_id: int, destination_job_id: int) -> int:
        return 0


class JobMigrator:
    """
    Moves single jobs from a source store to a destination store.

    Steps for each job:
    1. Read it from the source. A job that cannot be read, has an unknown
       status or has no schedule date is broken: it is deleted from the
       source and not copied.
    2. Save it into the destination.
    3. Replay a final status (complete, canceled, failed).
    4. Copy its log lines.
    5. Delete it from the source. If the source still holds it afterwards
       it is marked migrated instead, which hides it from every read.

    Example:
        >>> migrator = JobMigrator(legacy_store, db_store, LogMigrator(legacy_logger, db_logger))
        >>> new_id = await migrator.migrate(42)
    """

    def __init__(
        self,
        source_store: JobStore,
        destination_store: JobStore,
        log_migrator: LogMigrator,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._enable_tracing = self._tracer.enabled
        self._source = source_store
        self._destination = destination_store
        self._log_migrator = log_migrator

    async def migrate(self, source_job_id: int) -> int:
        """
        Move one job.

        Args:
            source_job_id: Job id in the source store

        Returns:
            The job's id in the destination store, or 0 if it was broken

        Raises:
            MigrationError: If the destination refused the job
        """
        with self._tracer.span(
            "jobsched.job_migrator.migrate",
            {ATTR_MIGRATION_SOURCE_JOB_ID: source_job_id},
        ) as span:
            loaded = await self._load(source_job_id)
            if loaded is None:
                logger.warning("Removing broken job %s from the source store", source_job_id)
                await self._source.delete_job(source_job_id)
                return 0

            job, status = loaded
            destination_job_id = await self._destination.save_job(job)
            if not destination_job_id:
                raise MigrationError(
                    f"Unable to save job {source_job_id} to the destination store"
                )

            await self._replay_status(destination_job_id, status)
            await self._log_migrator.migrate(source_job_id, destination_job_id)

            try:
                await self._remove_source(source_job_id)
            except SourceJobRemovalError as e:
                mark_migrated = getattr(self._source, "mark_migrated", None)
                if mark_migrated is None:
                    raise
                logger.warning("%s; marking it migrated instead", e)
                await mark_migrated(source_job_id)

            if span is not None:
                span.set_attribute(ATTR_MIGRATION_DESTINATION_JOB_ID, destination_job_id)
            logger.debug("Migrated job %s to %s", source_job_id, destination_job_id)
            return destination_job_id

    async def _load(self, job_id: int) -> tuple[ScheduledJob, JobStatus] | None:
        try:
            job = await self._source.fetch_job(job_id)
            status = await self._source.get_status(job_id)
        except (JobNotFoundError, StoreError) as e:
            logger.debug("Could not read job %s: %s", job_id, e)
            return None
        if job is None or job.scheduled_at is None:
            return None
        return job, status

    async def _replay_status(self, job_id: int, status: JobStatus) -> None:
        if status == JobStatus.COMPLETE:
            await self._destination.mark_complete(job_id)
        elif status == JobStatus.CANCELED:
            await self._destination.cancel_job(job_id)
        elif status == JobStatus.FAILED:
            await self._destination.mark_failure(job_id)

    async def _remove_source(self, job_id: int) -> None:
        await self._source.delete_job(job_id)
        try:
            await self._source.get_status(job_id)
        except JobNotFoundError:
            return
        raise SourceJobRemovalError(job_id)


class DryRunJobMigrator(JobMigrator):
    """
    Job migrator that only checks jobs could be moved.

    Returns the source id for every job that would be copied and 0 for
    broken ones. Neither store is modified.
    """

    async def migrate(self, source_job_id: int) -> int:
        with self._tracer.span(
            "jobsched.job_migrator.dry_run",
            {ATTR_MIGRATION_SOURCE_JOB_ID: source_job_id},
        ):
            loaded = await self._load(source_job_id)
            if loaded is None:
                logger.info("Dry run: job %s is broken and would be removed", source_job_id)
                return 0
            return source_job_id


__all__ = [
    "LogMigrator",
    "DryRunLogMigrator",
    "JobMigrator",
    "DryRunJobMigrator",
]
