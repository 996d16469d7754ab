"""
Job store and job logger interfaces.

A job store persists scheduled jobs and their status; a job logger keeps
the log lines written while jobs run. The host picks both by registered
class name, which is what lets the migration coordinator swap backends
underneath a running application.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any, Literal, Self

from jobsched.jobs import JobLogEntry, JobStatus, ScheduledJob

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

    from jobsched.repositories.options import OptionsRepository

DEFAULT_STORE_CLASS = "LegacyStore"
"""Store class name the host requests unless it configured its own backend."""

DEFAULT_LOGGER_CLASS = "LegacyLogger"
"""Logger class name the host requests unless it configured its own backend."""

DateCompare = Literal["<=", ">=", "<", ">", "="]
OrderBy = Literal["date", "id"]
SortOrder = Literal["ASC", "DESC"]


@dataclass(frozen=True)
class BackendContext:
    """
    Shared resources handed to store and logger classes when they are built.

    Attributes:
        conn: Database engine or connection holding the job tables
        options: Durable options repository
    """

    conn: AsyncConnection | AsyncEngine
    options: OptionsRepository


@dataclass(frozen=True)
class JobQuery:
    """
    Filter, ordering and paging options for JobStore.query_jobs().

    Attributes:
        hook: Only jobs dispatching to this hook
        exclude_hooks: Leave out jobs dispatching to any of these hooks
        args: Only jobs with exactly these arguments (requires hook)
        group: Only jobs in this group
        status: Only jobs in this status (None means any status)
        date: Compare the scheduled date against this moment
        date_compare: Comparison applied with date
        order_by: Sort by scheduled date or by id
        order: Sort direction
        per_page: Maximum number of ids returned
        offset: Number of matching ids skipped

    Example:
        >>> query = JobQuery(status=JobStatus.PENDING, date=now, per_page=25)
        >>> job_ids = await store.query_jobs(query)
    """

    hook: str | None = None
    args: list[Any] | None = None
    exclude_hooks: tuple[str, ...] = ()
    group: str | None = None
    status: JobStatus | None = None
    date: datetime | None = None
    date_compare: DateCompare = "<="
    order_by: OrderBy = "date"
    order: SortOrder = "ASC"
    per_page: int = 5
    offset: int = 0

    def __post_init__(self) -> None:
        """Validate paging and comparison values."""
        if self.per_page < 1:
            raise ValueError(f"per_page must be >= 1, got {self.per_page}")
        if self.offset < 0:
            raise ValueError(f"offset must be >= 0, got {self.offset}")
        if self.date_compare not in ("<=", ">=", "<", ">", "="):
            raise ValueError(f"Unsupported date_compare '{self.date_compare}'")
        if self.order not in ("ASC", "DESC"):
            raise ValueError(f"order must be 'ASC' or 'DESC', got '{self.order}'")


class JobStore(ABC):
    """
    Abstract base class for job stores.

    Concrete implementations:
    - LegacyStore: Jobs as generic rows in the shared records table
    - DBStore: Jobs in the dedicated scheduled_jobs table
    - DBStoreMigrator: DBStore variant used as a migration destination
    - HybridStore: Spans both while a migration is under way
    """

    @classmethod
    def from_context(cls, context: BackendContext) -> Self:
        """
        Build a store from the shared backend resources.

        The registry calls this for every store it creates. Subclasses that
        need more than a connection override it.

        Args:
            context: Shared backend resources

        Returns:
            New store instance
        """
        return cls(context.conn)  # type: ignore[call-arg]

    async def init(self) -> None:
        """Prepare the store for use (create tables, load settings)."""
        return None

    @abstractmethod
    async def save_job(self, job: ScheduledJob, scheduled_at: datetime | None = None) -> int:
        """
        Persist a new pending job.

        Args:
            job: The job to store
            scheduled_at: Overrides job.scheduled_at when given

        Returns:
            Id assigned to the job
        """
        pass

    @abstractmethod
    async def fetch_job(self, job_id: int) -> ScheduledJob | None:
        """
        Load a job by id.

        Args:
            job_id: Job identifier

        Returns:
            The job, or None if the store does not hold it
        """
        pass

    @abstractmethod
    async def get_status(self, job_id: int) -> JobStatus:
        """
        Get the status of a job.

        Raises:
            JobNotFoundError: If the store does not hold the job
        """
        pass

    @abstractmethod
    async def query_jobs(self, query: JobQuery) -> list[int]:
        """
        Find ids of jobs matching a query.

        Args:
            query: Filter, ordering and paging options

        Returns:
            Matching job ids in the requested order
        """
        pass

    @abstractmethod
    async def get_date(self, job_id: int) -> datetime | None:
        """
        Get the date a job is (or was) due.

        Raises:
            JobNotFoundError: If the store does not hold the job
        """
        pass

    @abstractmethod
    async def cancel_job(self, job_id: int) -> None:
        """Mark a job as canceled."""
        pass

    @abstractmethod
    async def delete_job(self, job_id: int) -> None:
        """Remove a job. Deleting a missing job is a no-op."""
        pass

    @abstractmethod
    async def mark_complete(self, job_id: int) -> None:
        """Mark a job as complete and record the attempt time."""
        pass

    @abstractmethod
    async def mark_failure(self, job_id: int) -> None:
        """Mark a job as failed and record the attempt time."""
        pass

    @abstractmethod
    async def job_counts(self) -> dict[JobStatus, int]:
        """
        Count jobs per status.

        Returns:
            Mapping of every status to the number of jobs in it
        """
        pass

    async def find_job(
        self,
        hook: str,
        *,
        args: list[Any] | None = None,
        group: str | None = None,
        status: JobStatus | None = JobStatus.PENDING,
    ) -> int | None:
        """
        Find the earliest-due job for a hook.

        Args:
            hook: Hook name
            args: Only match jobs with exactly these arguments
            group: Only match jobs in this group
            status: Only match jobs in this status (default: pending)

        Returns:
            Job id, or None if nothing matches
        """
        found = await self.query_jobs(
            JobQuery(
                hook=hook,
                args=args,
                group=group,
                status=status,
                order_by="date",
                order="ASC",
                per_page=1,
            )
        )
        return found[0] if found else None


class JobLogger(ABC):
    """
    Abstract base class for job loggers.

    Concrete implementations:
    - LegacyLogger: Log lines as comments on the shared records table
    - DBLogger: Log lines in the dedicated scheduled_job_logs table
    """

    @classmethod
    def from_context(cls, context: BackendContext) -> Self:
        """
        Build a logger from the shared backend resources.

        Args:
            context: Shared backend resources

        Returns:
            New logger instance
        """
        return cls(context.conn)  # type: ignore[call-arg]

    async def init(self) -> None:
        """Prepare the logger for use."""
        return None

    @abstractmethod
    async def log(self, job_id: int, message: str, date: datetime | None = None) -> int:
        """
        Attach a log line to a job.

        Args:
            job_id: Job the line belongs to
            message: Log message
            date: When it happened (default: now)

        Returns:
            Id of the new log entry
        """
        pass

    @abstractmethod
    async def get_logs(self, job_id: int) -> list[JobLogEntry]:
        """
        Get every log line of a job, oldest first.

        Args:
            job_id: Job identifier

        Returns:
            Log entries in chronological order
        """
        pass


__all__ = [
    "DEFAULT_STORE_CLASS",
    "DEFAULT_LOGGER_CLASS",
    "BackendContext",
    "JobQuery",
    "JobStore",
    "JobLogger",
]
