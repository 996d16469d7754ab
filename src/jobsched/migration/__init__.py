"""
Live migration of scheduled jobs from the legacy tables to the dedicated tables.

Components:
    - MigrationScheduler: migration state and background batches
    - MigrationRunner: moves one batch at a time
    - JobMigrator / LogMigrator: move a single job and its log lines
    - BatchFetcher: picks which jobs move next
    - MigrationConfig: pairs source and destination backends

The coordinator (``jobsched.migration.coordinator``) and the ``migrate``
command (``jobsched.migration.command``) sit on top of the stores, which
themselves use the runner, so they are imported from their modules or from
the top-level ``jobsched`` package.

Usage:
    >>> from jobsched.migration import MigrationConfig, MigrationRunner
    >>>
    >>> runner = MigrationRunner(config)
    >>> while await runner.run(250):
    ...     pass
"""

from jobsched.migration.config import MigrationConfig
from jobsched.migration.fetcher import STATUS_PRIORITY, BatchFetcher
from jobsched.migration.migrators import (
    DryRunJobMigrator,
    DryRunLogMigrator,
    JobMigrator,
    LogMigrator,
)
from jobsched.migration.progress import (
    NullProgressReporter,
    ProgressReporter,
    TqdmProgressReporter,
)
from jobsched.migration.runner import MigrationRunner
from jobsched.migration.scheduler import (
    MIGRATION_COMPLETE_HOOK,
    MIGRATION_GROUP,
    MIGRATION_HOOK,
    STATUS_COMPLETE,
    STATUS_OPTION,
    MigrationScheduler,
    MigrationSettings,
    MigrationState,
)

__all__ = [
    # Scheduler
    "MigrationScheduler",
    "MigrationSettings",
    "MigrationState",
    "STATUS_OPTION",
    "STATUS_COMPLETE",
    "MIGRATION_HOOK",
    "MIGRATION_GROUP",
    "MIGRATION_COMPLETE_HOOK",
    # Runner and collaborators
    "MigrationRunner",
    "MigrationConfig",
    "BatchFetcher",
    "STATUS_PRIORITY",
    "JobMigrator",
    "DryRunJobMigrator",
    "LogMigrator",
    "DryRunLogMigrator",
    "ProgressReporter",
    "TqdmProgressReporter",
    "NullProgressReporter",
]
