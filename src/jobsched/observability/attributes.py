"""
Standard span attributes for jobsched.

Attribute constants shared by stores, the migration runner and the
coordinator so spans from different components can be correlated.

Example:
    >>> from jobsched.observability.attributes import ATTR_JOB_ID
    >>>
    >>> with tracer.span("jobsched.db_store.fetch_job", {ATTR_JOB_ID: job_id}):
    ...     pass
"""

# =============================================================================
# Job Attributes
# =============================================================================

ATTR_JOB_ID = "jobsched.job.id"
"""Identifier of the scheduled job (integer)."""

ATTR_JOB_HOOK = "jobsched.job.hook"
"""Hook name the job dispatches to."""

ATTR_JOB_GROUP = "jobsched.job.group"
"""Group slug of the job (empty string when ungrouped)."""

ATTR_JOB_STATUS = "jobsched.job.status"
"""Job status value (e.g., 'pending', 'complete')."""

ATTR_JOB_COUNT = "jobsched.job.count"
"""Number of jobs touched by an operation (integer)."""

# =============================================================================
# Backend Attributes
# =============================================================================

ATTR_STORE_CLASS = "jobsched.store.class"
"""Registered name of the job store class handling an operation."""

ATTR_LOGGER_CLASS = "jobsched.logger.class"
"""Registered name of the job logger class handling an operation."""

ATTR_REQUESTED_CLASS = "jobsched.backend.requested_class"
"""Backend class name the host asked for before resolution."""

ATTR_OPTION_NAME = "jobsched.option.name"
"""Name of the durable option being read or written."""

# =============================================================================
# Migration Attributes
# =============================================================================

ATTR_MIGRATION_BATCH_SIZE = "jobsched.migration.batch_size"
"""Maximum number of jobs fetched for one migration batch (integer)."""

ATTR_MIGRATION_SOURCE_JOB_ID = "jobsched.migration.source_job_id"
"""Job id in the source store."""

ATTR_MIGRATION_DESTINATION_JOB_ID = "jobsched.migration.destination_job_id"
"""Job id assigned by the destination store."""

ATTR_MIGRATION_DRY_RUN = "jobsched.migration.dry_run"
"""Whether the migration run is a dry run (boolean)."""

ATTR_MIGRATION_STATE = "jobsched.migration.state"
"""Observed migration state (e.g., 'eligible', 'complete')."""


__all__ = [
    "ATTR_JOB_ID",
    "ATTR_JOB_HOOK",
    "ATTR_JOB_GROUP",
    "ATTR_JOB_STATUS",
    "ATTR_JOB_COUNT",
    "ATTR_STORE_CLASS",
    "ATTR_LOGGER_CLASS",
    "ATTR_REQUESTED_CLASS",
    "ATTR_OPTION_NAME",
    "ATTR_MIGRATION_BATCH_SIZE",
    "ATTR_MIGRATION_SOURCE_JOB_ID",
    "ATTR_MIGRATION_DESTINATION_JOB_ID",
    "ATTR_MIGRATION_DRY_RUN",
    "ATTR_MIGRATION_STATE",
]
