"""
Legacy job store and logger on the shared generic tables.

Before the dedicated tables existed, jobs were kept as ``records`` rows with
``record_type = 'scheduled_job'`` and their log lines as ``record_comments``
rows. The mapping is:

- hook -> ``title``
- JSON arguments -> ``content``
- group -> ``category``
- scheduled date -> ``record_date``
- last attempt -> ``modified_date``

Job statuses are stored with the generic record status names. Rows in the
``migrated`` status have been copied to the dedicated tables but could not
be removed; every read ignores them.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from jobsched._connection import execute_with_connection
from jobsched.exceptions import JobNotFoundError, StoreError
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

RECORD_TYPE = "scheduled_job"
COMMENT_TYPE = "job_log"
MIGRATED_STATUS = "migrated"

_RECORD_STATUS: dict[JobStatus, str] = {
    JobStatus.PENDING: "pending",
    JobStatus.RUNNING: "in-progress",
    JobStatus.COMPLETE: "publish",
    JobStatus.FAILED: "failed",
    JobStatus.CANCELED: "trash",
}
_JOB_STATUS = {value: key for key, value in _RECORD_STATUS.items()}

_COLUMNS = JobColumns(
    id="id",
    hook="title",
    args="content",
    group="category",
    status="status",
    date="record_date",
)

_VISIBLE = "record_type = :record_type AND status <> :migrated"
_VISIBLE_PARAMS = {"record_type": RECORD_TYPE, "migrated": MIGRATED_STATUS}


def _encode_status(status: JobStatus) -> str:
    return _RECORD_STATUS[status]


def _decode_status(value: str) -> JobStatus:
    try:
        return _JOB_STATUS[value]
    except KeyError:
        raise StoreError(f"Unknown legacy record status '{value}'") from None


class LegacyStore(JobStore):
    """
    Job store on the shared ``records`` table.

    This is the store the host uses by default. It stays readable and
    writable for the whole migration window.

    Example:
        >>> store = LegacyStore(engine)
        >>> job_id = await store.save_job(ScheduledJob(hook="orders/sync", scheduled_at=now))
        >>> await store.mark_complete(job_id)
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
        await create_schema(self.conn, groups=("legacy",))

    async def save_job(self, job: ScheduledJob, scheduled_at: datetime | None = None) -> int:
        with self._tracer.span("jobsched.legacy_store.save_job", {ATTR_JOB_HOOK: job.hook}):
            now = format_timestamp(datetime.now(UTC))
            query = text("""
                INSERT INTO records
                    (record_type, status, title, content, category,
                     record_date, modified_date, created_at)
                VALUES
                    (:record_type, :status, :title, :content, :category,
                     :record_date, :modified_date, :created_at)
                RETURNING id
            """)
            params = {
                "record_type": RECORD_TYPE,
                "status": _encode_status(JobStatus.PENDING),
                "title": job.hook,
                "content": encode_args(job.args),
                "category": job.group,
                "record_date": format_timestamp(scheduled_at or job.scheduled_at),
                "modified_date": format_timestamp(job.last_attempt_at),
                "created_at": now,
            }
            async with execute_with_connection(self.conn, transactional=True) as conn:
                result = await conn.execute(query, params)
                job_id = int(result.scalar_one())
            logger.debug("Stored legacy job %s for hook %s", job_id, job.hook)
            return job_id

    async def fetch_job(self, job_id: int) -> ScheduledJob | None:
        with self._tracer.span("jobsched.legacy_store.fetch_job", {ATTR_JOB_ID: job_id}):
            row = await self._fetch_row(
                job_id, "title, content, category, record_date, modified_date"
            )
            if row is None:
                return None
            return ScheduledJob(
                hook=row[0],
                args=decode_args(row[1]),
                group=row[2] or "",
                scheduled_at=parse_timestamp(row[3]),
                last_attempt_at=parse_timestamp(row[4]),
            )

    async def get_status(self, job_id: int) -> JobStatus:
        row = await self._fetch_row(job_id, "status")
        if row is None:
            raise JobNotFoundError(job_id)
        return _decode_status(row[0])

    async def get_date(self, job_id: int) -> datetime | None:
        row = await self._fetch_row(job_id, "status, record_date, modified_date")
        if row is None:
            raise JobNotFoundError(job_id)
        if _decode_status(row[0]).is_final and row[2]:
            return parse_timestamp(row[2])
        return parse_timestamp(row[1])

    async def _fetch_row(self, job_id: int, columns: str) -> Any:
        query = text(f"SELECT {columns} FROM records WHERE id = :id AND {_VISIBLE}")
        async with execute_with_connection(self.conn, transactional=False) as conn:
            result = await conn.execute(query, {"id": job_id, **_VISIBLE_PARAMS})
            return result.fetchone()

    async def query_jobs(self, query: JobQuery) -> list[int]:
        sql, params = build_job_query(
            "records",
            query,
            _COLUMNS,
            _encode_status,
            base_conditions=[_VISIBLE],
            base_params=_VISIBLE_PARAMS,
        )
        async with execute_with_connection(self.conn, transactional=False) as conn:
            result = await conn.execute(text(sql), params)
            return [int(row[0]) for row in result.fetchall()]

    async def cancel_job(self, job_id: int) -> None:
        await self._set_status(job_id, _encode_status(JobStatus.CANCELED), attempted=False)

    async def mark_complete(self, job_id: int) -> None:
        await self._set_status(job_id, _encode_status(JobStatus.COMPLETE), attempted=True)

    async def mark_failure(self, job_id: int) -> None:
        await self._set_status(job_id, _encode_status(JobStatus.FAILED), attempted=True)

    async def mark_migrated(self, job_id: int) -> None:
        """
        Hide a job that was copied to another store but could not be deleted.

        Args:
            job_id: Legacy job id

        Raises:
            JobNotFoundError: If the job is not (or no longer) visible
        """
        await self._set_status(job_id, MIGRATED_STATUS, attempted=False)
        logger.info("Marked legacy job %s as migrated", job_id)

    async def _set_status(self, job_id: int, status: str, *, attempted: bool) -> None:
        with self._tracer.span(
            "jobsched.legacy_store.set_status",
            {ATTR_JOB_ID: job_id, ATTR_JOB_STATUS: status},
        ):
            params: dict[str, Any] = {"status": status, "id": job_id, **_VISIBLE_PARAMS}
            assignments = "status = :status"
            if attempted:
                assignments += ", modified_date = :now"
                params["now"] = format_timestamp(datetime.now(UTC))
            query = text(f"UPDATE records SET {assignments} WHERE id = :id AND {_VISIBLE}")
            async with execute_with_connection(self.conn, transactional=True) as conn:
                result = await conn.execute(query, params)
            if result.rowcount == 0:
                raise JobNotFoundError(job_id)

    async def delete_job(self, job_id: int) -> None:
        with self._tracer.span("jobsched.legacy_store.delete_job", {ATTR_JOB_ID: job_id}):
            async with execute_with_connection(self.conn, transactional=True) as conn:
                await conn.execute(
                    text("""
                        DELETE FROM record_comments
                        WHERE record_id = :id AND comment_type = :comment_type
                    """),
                    {"id": job_id, "comment_type": COMMENT_TYPE},
                )
                await conn.execute(
                    text("DELETE FROM records WHERE id = :id AND record_type = :record_type"),
                    {"id": job_id, "record_type": RECORD_TYPE},
                )

    async def job_counts(self) -> dict[JobStatus, int]:
        query = text(f"SELECT status, COUNT(*) FROM records WHERE {_VISIBLE} GROUP BY status")
        async with execute_with_connection(self.conn, transactional=False) as conn:
            result = await conn.execute(query, _VISIBLE_PARAMS)
            rows = result.fetchall()
        counts = empty_counts()
        for status, count in rows:
            counts[_decode_status(status)] = int(count)
        return counts

    async def max_record_id(self) -> int:
        """
        Get the highest id in the ``records`` table, whatever the record type.

        Returns:
            Highest id, or 0 for an empty table
        """
        async with execute_with_connection(self.conn, transactional=False) as conn:
            result = await conn.execute(text("SELECT COALESCE(MAX(id), 0) FROM records"))
            return int(result.scalar_one())


class LegacyLogger(JobLogger):
    """Job logger on the shared ``record_comments`` table."""

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
        await create_schema(self.conn, groups=("legacy",))

    async def log(self, job_id: int, message: str, date: datetime | None = None) -> int:
        with self._tracer.span("jobsched.legacy_logger.log", {ATTR_JOB_ID: job_id}):
            query = text("""
                INSERT INTO record_comments (record_id, comment_type, content, created_at)
                VALUES (:record_id, :comment_type, :content, :created_at)
                RETURNING id
            """)
            params = {
                "record_id": job_id,
                "comment_type": COMMENT_TYPE,
                "content": message,
                "created_at": format_timestamp(date or datetime.now(UTC)),
            }
            async with execute_with_connection(self.conn, transactional=True) as conn:
                result = await conn.execute(query, params)
                return int(result.scalar_one())

    async def get_logs(self, job_id: int) -> list[JobLogEntry]:
        query = text("""
            SELECT id, record_id, content, created_at
            FROM record_comments
            WHERE record_id = :record_id AND comment_type = :comment_type
            ORDER BY created_at ASC, id ASC
        """)
        async with execute_with_connection(self.conn, transactional=False) as conn:
            result = await conn.execute(
                query, {"record_id": job_id, "comment_type": COMMENT_TYPE}
            )
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
    "LegacyStore",
    "LegacyLogger",
    "RECORD_TYPE",
    "COMMENT_TYPE",
    "MIGRATED_STATUS",
]
