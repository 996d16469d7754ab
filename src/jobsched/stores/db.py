"""
Dedicated-table job store and logger.

DBStore keeps jobs in ``scheduled_jobs`` and DBLogger keeps their log lines
in ``scheduled_job_logs``. Once a migration completes these are the only
backends the host resolves to.

DBStoreMigrator is the variant used as a migration destination: it keeps
the last-attempt date of copied jobs instead of starting them fresh.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from jobsched._connection import dialect_name, execute_with_connection
from jobsched.exceptions import JobNotFoundError
from jobsched.jobs import (
    JobLogEntry,
    JobStatus,
    ScheduledJob,
    format_timestamp,
    parse_timestamp,
)
from jobsched.observability import (
    ATTR_JOB_HOOK,
    ATTR_JOB_ID,
    ATTR_JOB_STATUS,
    Tracer,
    create_tracer,
)
from jobsched.schema import create_schema
from jobsched.stores._sql import (
    JobColumns,
    build_job_query,
    decode_args,
    empty_counts,
    encode_args,
)
from jobsched.stores.interface import JobLogger, JobQuery, JobStore

logger = logging.getLogger(__name__)

_COLUMNS = JobColumns(
    id="id",
    hook="hook",
    args="args",
    group="group_name",
    status="status",
    date="scheduled_at",
)


def _encode_status(status: JobStatus) -> str:
    return status.value


class DBStore(JobStore):
    """
    Job store backed by the dedicated ``scheduled_jobs`` table.

    Example:
        >>> store = DBStore(engine)
        >>> await store.init()
        >>> job_id = await store.save_job(ScheduledJob(hook="orders/sync", scheduled_at=now))
        >>> await store.get_status(job_id)
        <JobStatus.PENDING: 'pending'>
    """

    def __init__(
        self,
        conn: AsyncConnection | AsyncEngine,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        """
        Initialize the store.

        Args:
            conn: Database connection or engine
            tracer: Optional tracer for tracing (if not provided, one will be created)
            enable_tracing: Whether to enable OpenTelemetry tracing (default True)
        """
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._enable_tracing = self._tracer.enabled
        self.conn = conn

    async def init(self) -> None:
        """Create the dedicated tables if they are missing."""
        await create_schema(self.conn, groups=("canonical",))

    async def save_job(self, job: ScheduledJob, scheduled_at: datetime | None = None) -> int:
        return await self._insert(job, scheduled_at=scheduled_at)

    async def _insert(
        self,
        job: ScheduledJob,
        *,
        scheduled_at: datetime | None = None,
        last_attempt_at: datetime | None = None,
    ) -> int:
        with self._tracer.span("jobsched.db_store.save_job", {ATTR_JOB_HOOK: job.hook}):
            query = text("""
                INSERT INTO scheduled_jobs
                    (hook, status, args, group_name, priority,
                     scheduled_at, last_attempt_at, created_at)
                VALUES
                    (:hook, :status, :args, :group_name, :priority,
                     :scheduled_at, :last_attempt_at, :created_at)
                RETURNING id
            """)
            params = {
                "hook": job.hook,
                "status": JobStatus.PENDING.value,
                "args": encode_args(job.args),
                "group_name": job.group,
                "priority": job.priority,
                "scheduled_at": format_timestamp(scheduled_at or job.scheduled_at),
                "last_attempt_at": format_timestamp(last_attempt_at),
                "created_at": format_timestamp(datetime.now(UTC)),
            }
            async with execute_with_connection(self.conn, transactional=True) as conn:
                result = await conn.execute(query, params)
                job_id = int(result.scalar_one())
            logger.debug("Stored job %s for hook %s", job_id, job.hook)
            return job_id

    async def fetch_job(self, job_id: int) -> ScheduledJob | None:
        with self._tracer.span("jobsched.db_store.fetch_job", {ATTR_JOB_ID: job_id}):
            query = text("""
                SELECT hook, args, group_name, priority, scheduled_at, last_attempt_at
                FROM scheduled_jobs
                WHERE id = :id
            """)
            async with execute_with_connection(self.conn, transactional=False) as conn:
                result = await conn.execute(query, {"id": job_id})
                row = result.fetchone()
            if row is None:
                return None
            return ScheduledJob(
                hook=row[0],
                args=decode_args(row[1]),
                group=row[2] or "",
                priority=row[3],
                scheduled_at=parse_timestamp(row[4]),
                last_attempt_at=parse_timestamp(row[5]),
            )

    async def get_status(self, job_id: int) -> JobStatus:
        row = await self._fetch_columns(job_id, "status")
        return JobStatus(row[0])

    async def get_date(self, job_id: int) -> datetime | None:
        row = await self._fetch_columns(job_id, "status, scheduled_at, last_attempt_at")
        status = JobStatus(row[0])
        if status.is_final and row[2]:
            return parse_timestamp(row[2])
        return parse_timestamp(row[1])

    async def _fetch_columns(self, job_id: int, columns: str) -> Any:
        query = text(f"SELECT {columns} FROM scheduled_jobs WHERE id = :id")
        async with execute_with_connection(self.conn, transactional=False) as conn:
            result = await conn.execute(query, {"id": job_id})
            row = result.fetchone()
        if row is None:
            raise JobNotFoundError(job_id)
        return row

    async def query_jobs(self, query: JobQuery) -> list[int]:
        sql, params = build_job_query("scheduled_jobs", query, _COLUMNS, _encode_status)
        async with execute_with_connection(self.conn, transactional=False) as conn:
            result = await conn.execute(text(sql), params)
            return [int(row[0]) for row in result.fetchall()]

    async def cancel_job(self, job_id: int) -> None:
        await self._set_status(job_id, JobStatus.CANCELED, attempted=False)

    async def mark_complete(self, job_id: int) -> None:
        await self._set_status(job_id, JobStatus.COMPLETE, attempted=True)

    async def mark_failure(self, job_id: int) -> None:
        await self._set_status(job_id, JobStatus.FAILED, attempted=True)

    async def _set_status(self, job_id: int, status: JobStatus, *, attempted: bool) -> None:
        with self._tracer.span(
            "jobsched.db_store.set_status",
            {ATTR_JOB_ID: job_id, ATTR_JOB_STATUS: status.value},
        ):
            if attempted:
                query = text("""
                    UPDATE scheduled_jobs
                    SET status = :status, last_attempt_at = :now
                    WHERE id = :id
                """)
                params = {
                    "status": status.value,
                    "now": format_timestamp(datetime.now(UTC)),
                    "id": job_id,
                }
            else:
                query = text("UPDATE scheduled_jobs SET status = :status WHERE id = :id")
                params = {"status": status.value, "id": job_id}
            async with execute_with_connection(self.conn, transactional=True) as conn:
                result = await conn.execute(query, params)
            if result.rowcount == 0:
                raise JobNotFoundError(job_id)

    async def delete_job(self, job_id: int) -> None:
        with self._tracer.span("jobsched.db_store.delete_job", {ATTR_JOB_ID: job_id}):
            query = text("DELETE FROM scheduled_jobs WHERE id = :id")
            async with execute_with_connection(self.conn, transactional=True) as conn:
                await conn.execute(query, {"id": job_id})

    async def job_counts(self) -> dict[JobStatus, int]:
        query = text("SELECT status, COUNT(*) FROM scheduled_jobs GROUP BY status")
        async with execute_with_connection(self.conn, transactional=False) as conn:
            result = await conn.execute(query)
            rows = result.fetchall()
        counts = empty_counts()
        for status, count in rows:
            counts[JobStatus(status)] = int(count)
        return counts

    async def ensure_next_id(self, next_id: int) -> None:
        """
        Make sure ids handed out from now on are at least next_id.

        Never lowers the id sequence.

        Args:
            next_id: Smallest id the next insert may receive
        """
        if next_id <= 1:
            return
        floor = next_id - 1
        async with execute_with_connection(self.conn, transactional=True) as conn:
            if dialect_name(conn) == "postgresql":
                await conn.execute(
                    text("""
                        SELECT setval(
                            pg_get_serial_sequence('scheduled_jobs', 'id'),
                            GREATEST(:floor, (SELECT COALESCE(MAX(id), 0) FROM scheduled_jobs))
                        )
                    """),
                    {"floor": floor},
                )
                return

            result = await conn.execute(
                text("SELECT seq FROM sqlite_sequence WHERE name = 'scheduled_jobs'")
            )
            row = result.fetchone()
            if row is None:
                await conn.execute(
                    text(
                        "INSERT INTO sqlite_sequence (name, seq) "
                        "VALUES ('scheduled_jobs', :floor)"
                    ),
                    {"floor": floor},
                )
            elif int(row[0]) < floor:
                await conn.execute(
                    text("UPDATE sqlite_sequence SET seq = :floor WHERE name = 'scheduled_jobs'"),
                    {"floor": floor},
                )
        logger.info("Job ids in scheduled_jobs now start at %s or later", next_id)


class DBStoreMigrator(DBStore):
    """
    DBStore used as the destination of a migration.

    Jobs copied from another store keep their last-attempt date so the
    history of completed and failed jobs survives the move. Replaying a
    final status does not count as a new attempt.
    """

    async def save_job(
        self,
        job: ScheduledJob,
        scheduled_at: datetime | None = None,
        last_attempt_at: datetime | None = None,
    ) -> int:
        return await self._insert(
            job,
            scheduled_at=scheduled_at,
            last_attempt_at=last_attempt_at or job.last_attempt_at,
        )

    async def mark_complete(self, job_id: int) -> None:
        await self._set_status(job_id, JobStatus.COMPLETE, attempted=False)

    async def mark_failure(self, job_id: int) -> None:
        await self._set_status(job_id, JobStatus.FAILED, attempted=False)


class DBLogger(JobLogger):
    """
    Job logger backed by the dedicated ``scheduled_job_logs`` table.

    Example:
        >>> job_logger = DBLogger(engine)
        >>> await job_logger.log(job_id, "job started")
    """

    def __init__(
        self,
        conn: AsyncConnection | AsyncEngine,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._enable_tracing = self._tracer.enabled
        self.conn = conn

    async def init(self) -> None:
        await create_schema(self.conn, groups=("canonical",))

    async def log(self, job_id: int, message: str, date: datetime | None = None) -> int:
        with self._tracer.span("jobsched.db_logger.log", {ATTR_JOB_ID: job_id}):
            query = text("""
                INSERT INTO scheduled_job_logs (job_id, message, logged_at)
                VALUES (:job_id, :message, :logged_at)
                RETURNING id
            """)
            params = {
                "job_id": job_id,
                "message": message,
                "logged_at": format_timestamp(date or datetime.now(UTC)),
            }
            async with execute_with_connection(self.conn, transactional=True) as conn:
                result = await conn.execute(query, params)
                return int(result.scalar_one())

    async def get_logs(self, job_id: int) -> list[JobLogEntry]:
        query = text("""
            SELECT id, job_id, message, logged_at
            FROM scheduled_job_logs
            WHERE job_id = :job_id
            ORDER BY logged_at ASC, id ASC
        """)
        async with execute_with_connection(self.conn, transactional=False) as conn:
            result = await conn.execute(query, {"job_id": job_id})
            rows = result.fetchall()
        return [
            JobLogEntry(
                log_id=row[0],
                job_id=row[1],
                message=row[2],
                logged_at=parse_timestamp(row[3]),
            )
            for row in rows
        ]


__all__ = [
    "DBStore",
    "DBStoreMigrator",
    "DBLogger",
]
