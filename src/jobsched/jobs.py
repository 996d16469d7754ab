"""
Scheduled job models.

A scheduled job is a hook name plus arguments that the host's job runner
dispatches at (or after) a scheduled time. Jobs are immutable values; the
store that holds a job owns its id and its status.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class JobStatus(Enum):
    """
    Lifecycle status of a scheduled job inside a store.

    Attributes:
        PENDING: Waiting for its scheduled time.
        RUNNING: Claimed and currently executing.
        COMPLETE: Finished successfully.
        FAILED: Finished with an error.
        CANCELED: Cancelled before it ran.
    """

    PENDING = "pending"
    RUNNING = "in-progress"
    COMPLETE = "complete"
    FAILED = "failed"
    CANCELED = "canceled"

    @property
    def is_final(self) -> bool:
        """Check if the job will never run again in this status."""
        return self in (JobStatus.COMPLETE, JobStatus.FAILED, JobStatus.CANCELED)


def ensure_utc(value: datetime | None) -> datetime | None:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%f"


def format_timestamp(value: datetime | None) -> str | None:
    """
    Format a datetime as fixed-width UTC text for storage.

    The fixed width keeps lexical and chronological ordering identical.
    """
    value = ensure_utc(value)
    if value is None:
        return None
    return value.strftime(TIMESTAMP_FORMAT)


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse text written by format_timestamp back into an aware UTC datetime."""
    if not value:
        return None
    return datetime.strptime(value, TIMESTAMP_FORMAT).replace(tzinfo=UTC)


class ScheduledJob(BaseModel):
    """
    A job waiting to be (or already) dispatched by the job runner.

    Attributes:
        hook: Name of the hook the job dispatches to
        args: Positional arguments passed to the hook handlers
        group: Optional group slug for bulk lookups (empty when ungrouped)
        scheduled_at: When the job is due (UTC). None means the schedule
            data is missing, which the migration treats as a broken record.
        priority: Lower runs first, 0-255
        last_attempt_at: When the runner last tried the job (UTC)

    Example:
        >>> job = ScheduledJob(
        ...     hook="orders/send_receipt",
        ...     args=[1234],
        ...     scheduled_at=datetime.now(UTC),
        ... )
    """

    model_config = ConfigDict(frozen=True)

    hook: str = Field(..., min_length=1, description="Hook name to dispatch")
    args: list[Any] = Field(default_factory=list, description="Hook arguments")
    group: str = Field(default="", description="Group slug")
    scheduled_at: datetime | None = Field(default=None, description="Due date (UTC)")
    priority: int = Field(default=10, ge=0, le=255, description="Lower runs first")
    last_attempt_at: datetime | None = Field(
        default=None,
        description="Last time the runner attempted the job (UTC)",
    )

    @field_validator("scheduled_at", "last_attempt_at")
    @classmethod
    def _normalize_timezone(cls, value: datetime | None) -> datetime | None:
        return ensure_utc(value)


class JobLogEntry(BaseModel):
    """
    A single log line attached to a scheduled job.

    Attributes:
        log_id: Identifier assigned by the logger backend
        job_id: Job the entry belongs to
        message: Log message
        logged_at: When the entry was written (UTC)
    """

    model_config = ConfigDict(frozen=True)

    log_id: int
    job_id: int
    message: str
    logged_at: datetime

    @field_validator("logged_at")
    @classmethod
    def _normalize_timezone(cls, value: datetime) -> datetime:
        return ensure_utc(value)  # type: ignore[return-value]


__all__ = [
    "JobStatus",
    "ScheduledJob",
    "JobLogEntry",
    "ensure_utc",
    "format_timestamp",
    "parse_timestamp",
]
