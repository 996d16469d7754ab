"""
Batch selection for migrations.

Jobs are migrated in an order that keeps the host working while the
migration is under way: jobs that are due soonest move first, and history
(complete, canceled, failed jobs) follows.
"""

from __future__ import annotations

from datetime import UTC, datetime

from jobsched.jobs import JobStatus
from jobsched.stores.interface import JobQuery, JobStore

MIGRATION_HOOK = "jobsched/migration_hook"
MIGRATION_GROUP = "jobsched-migration"

STATUS_PRIORITY: tuple[JobStatus | None, ...] = (
    JobStatus.PENDING,
    JobStatus.FAILED,
    JobStatus.CANCELED,
    JobStatus.COMPLETE,
    JobStatus.RUNNING,
    None,
)
"""Statuses in the order they are migrated. None matches any status."""


class BatchFetcher:
    """
    Picks the next batch of job ids to migrate from a source store.

    Every status in STATUS_PRIORITY is tried with jobs already due first and
    future jobs second. The first query returning anything wins. A last
    query without status or date catches jobs that have no schedule date
    at all.

    Jobs for MIGRATION_HOOK are the migration's own batch jobs. When the
    host runs a custom store they live in the store being drained, and are
    never part of a batch.

    Example:
        >>> fetcher = BatchFetcher(LegacyStore(engine))
        >>> job_ids = await fetcher.fetch(100)
    """

    def __init__(
        self,
        source_store: JobStore,
        exclude_hooks: tuple[str, ...] = (MIGRATION_HOOK,),
    ) -> None:
        self._store = source_store
        self.exclude_hooks = exclude_hooks

    async def fetch(self, count: int = 10) -> list[int]:
        """
        Get up to count job ids to migrate next.

        Args:
            count: Maximum batch size

        Returns:
            Job ids, empty when the source store holds no more jobs
        """
        for query in self.get_query_strategies(count):
            job_ids = await self._store.query_jobs(query)
            if job_ids:
                return job_ids
        return []

    async def fetch_page(self, count: int, offset: int) -> list[int]:
        """
        Get a page of every job in id order without regard to priority.

        Used by dry runs, which leave the source untouched and so cannot
        rely on migrated jobs dropping out of the priority queries.

        Args:
            count: Page size
            offset: Number of jobs to skip

        Returns:
            Job ids on the page
        """
        return await self._store.query_jobs(
            JobQuery(
                exclude_hooks=self.exclude_hooks,
                order_by="id",
                order="ASC",
                per_page=count,
                offset=offset,
            )
        )

    def get_query_strategies(self, count: int) -> list[JobQuery]:
        now = datetime.now(UTC)
        strategies = [
            JobQuery(
                exclude_hooks=self.exclude_hooks,
                status=status,
                date=now,
                date_compare=compare,
                order_by="date",
                order="ASC",
                per_page=count,
            )
            for status in STATUS_PRIORITY
            for compare in ("<=", ">=")
        ]
        strategies.append(
            JobQuery(exclude_hooks=self.exclude_hooks, order_by="id", order="ASC", per_page=count)
        )
        return strategies


__all__ = ["BatchFetcher", "STATUS_PRIORITY", "MIGRATION_HOOK", "MIGRATION_GROUP"]
