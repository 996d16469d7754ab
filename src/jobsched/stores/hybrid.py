"""
Hybrid job store used while a migration is under way.

The hybrid store lets the host keep scheduling and running jobs while they
move from the legacy tables to the dedicated ones:

- New jobs always go to the dedicated store.
- Lookups by hook, group or status first migrate any matching legacy jobs,
  then answer from the dedicated store, so callers never see a job twice.
- Lookups by id are routed by the demarcation id. When the hybrid store is
  first initialized it moves the dedicated id sequence past the highest
  legacy id, so an id below the demarcation can only be a legacy id.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Self

from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from jobsched.exceptions import JobNotFoundError
from jobsched.jobs import JobStatus, ScheduledJob
from jobsched.migration.config import MigrationConfig
from jobsched.migration.runner import MigrationRunner
from jobsched.observability import ATTR_JOB_COUNT, ATTR_JOB_ID, Tracer, create_tracer
from jobsched.repositories.options import OptionsRepository
from jobsched.stores.db import DBLogger, DBStore, DBStoreMigrator
from jobsched.stores.interface import BackendContext, JobQuery, JobStore
from jobsched.stores.legacy import LegacyLogger, LegacyStore

logger = logging.getLogger(__name__)

DEMARCATION_OPTION = "jobsched_hybrid_store_demarcation"


class HybridStore(JobStore):
    """
    Job store spanning the legacy and dedicated tables.

    Example:
        >>> store = HybridStore(engine, options)
        >>> await store.init()
        >>> job_id = await store.find_job("orders/sync")  # migrates it first if needed
    """

    def __init__(
        self,
        conn: AsyncConnection | AsyncEngine,
        options: OptionsRepository,
        config: MigrationConfig | None = None,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        """
        Initialize the hybrid store.

        Args:
            conn: Database connection or engine
            options: Options repository holding the demarcation id
            config: Source (legacy) and destination (dedicated) backends.
                Defaults to LegacyStore/LegacyLogger into DBStoreMigrator/DBLogger.
            tracer: Optional tracer for tracing (if not provided, one will be created)
            enable_tracing: Whether to enable OpenTelemetry tracing (default True)
        """
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._enable_tracing = self._tracer.enabled
        self.conn = conn
        self._options = options

        if config is None:
            config = (
                MigrationConfig()
                .set_source_store(LegacyStore(conn, tracer=self._tracer))
                .set_source_logger(LegacyLogger(conn, tracer=self._tracer))
                .set_destination_store(DBStoreMigrator(conn, tracer=self._tracer))
                .set_destination_logger(DBLogger(conn, tracer=self._tracer))
            )
        self._secondary = config.source_store
        self._primary = config.destination_store
        self._runner = MigrationRunner(config, tracer=self._tracer)
        self._demarcation: int | None = None

    @classmethod
    def from_context(cls, context: BackendContext) -> Self:
        return cls(context.conn, context.options)

    async def init(self) -> None:
        """
        Create both table sets and fix the demarcation id on first use.

        The demarcation is stored as an option so every process and every
        later request routes ids the same way.
        """
        await self._secondary.init()
        await self._runner.init_destination()

        stored = await self._options.get(DEMARCATION_OPTION)
        if stored is not None:
            self._demarcation = int(stored)
            return

        demarcation = await self._legacy_max_id() + 1
        if isinstance(self._primary, DBStore):
            await self._primary.ensure_next_id(demarcation)
        await self._options.set(DEMARCATION_OPTION, str(demarcation))
        self._demarcation = demarcation
        logger.info("Hybrid store demarcation set at job id %s", demarcation)

    async def _legacy_max_id(self) -> int:
        if isinstance(self._secondary, LegacyStore):
            return await self._secondary.max_record_id()
        newest = await self._secondary.query_jobs(JobQuery(order_by="id", order="DESC", per_page=1))
        return newest[0] if newest else 0

    async def demarcation_id(self) -> int:
        """
        Get the first id that belongs to the dedicated store.

        Returns:
            Demarcation id, or 0 if no demarcation was ever recorded
        """
        if self._demarcation is None:
            stored = await self._options.get(DEMARCATION_OPTION)
            self._demarcation = int(stored) if stored is not None else 0
        return self._demarcation

    async def _candidates(self, job_id: int) -> list[JobStore]:
        if job_id < await self.demarcation_id():
            return [self._secondary, self._primary]
        return [self._primary]

    async def _store_holding(self, job_id: int) -> JobStore | None:
        for store in await self._candidates(job_id):
            if await store.fetch_job(job_id) is not None:
                return store
        return None

    async def _migrate(self, job_ids: list[int]) -> None:
        with self._tracer.span("jobsched.hybrid_store.migrate", {ATTR_JOB_COUNT: len(job_ids)}):
            await self._runner.migrate_jobs(job_ids)

    async def save_job(self, job: ScheduledJob, scheduled_at: datetime | None = None) -> int:
        return await self._primary.save_job(job, scheduled_at)

    async def query_jobs(self, query: JobQuery) -> list[int]:
        unmigrated = await self._secondary.query_jobs(query)
        if unmigrated:
            await self._migrate(unmigrated)
        return await self._primary.query_jobs(query)

    async def fetch_job(self, job_id: int) -> ScheduledJob | None:
        with self._tracer.span("jobsched.hybrid_store.fetch_job", {ATTR_JOB_ID: job_id}):
            for store in await self._candidates(job_id):
                job = await store.fetch_job(job_id)
                if job is not None:
                    return job
            return None

    async def get_status(self, job_id: int) -> JobStatus:
        for store in await self._candidates(job_id):
            try:
                return await store.get_status(job_id)
            except JobNotFoundError:
                continue
        raise JobNotFoundError(job_id)

    async def get_date(self, job_id: int) -> datetime | None:
        for store in await self._candidates(job_id):
            try:
                return await store.get_date(job_id)
            except JobNotFoundError:
                continue
        raise JobNotFoundError(job_id)

    async def cancel_job(self, job_id: int) -> None:
        store = await self._store_holding(job_id)
        if store is None:
            raise JobNotFoundError(job_id)
        await store.cancel_job(job_id)

    async def delete_job(self, job_id: int) -> None:
        store = await self._store_holding(job_id)
        if store is not None:
            await store.delete_job(job_id)

    async def mark_complete(self, job_id: int) -> None:
        store = await self._store_holding(job_id)
        if store is None:
            raise JobNotFoundError(job_id)
        await store.mark_complete(job_id)

    async def mark_failure(self, job_id: int) -> None:
        store = await self._store_holding(job_id)
        if store is None:
            raise JobNotFoundError(job_id)
        await store.mark_failure(job_id)

    async def job_counts(self) -> dict[JobStatus, int]:
        primary = await self._primary.job_counts()
        secondary = await self._secondary.job_counts()
        return {status: primary.get(status, 0) + secondary.get(status, 0) for status in JobStatus}


__all__ = ["HybridStore", "DEMARCATION_OPTION"]
