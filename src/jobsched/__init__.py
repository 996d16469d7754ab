"""
jobsched - Live, zero-downtime migration of a job-scheduling store.

This library provides:
- Job stores and loggers on the legacy shared tables and on dedicated tables
- A hybrid store that serves the host while jobs move between the two
- A migration coordinator that routes the host's backend selection, queues
  the background migration and gates its side effects
- A batch migration runner, background scheduler and ``migrate`` command
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("jobsched-py")
except PackageNotFoundError:
    # Package not installed (running from source without install)
    __version__ = "0.0.0.dev0"

# Backend selection
from jobsched.backends import BackendResolver, BackendSelector

# Exceptions
from jobsched.exceptions import (
    BackendNotRegisteredError,
    JobNotFoundError,
    JobschedError,
    MigrationConfigError,
    MigrationError,
    SourceJobRemovalError,
    StoreError,
)

# Host integration
from jobsched.hooks import HookRegistry

# Jobs
from jobsched.jobs import JobLogEntry, JobStatus, ScheduledJob

# Migration
from jobsched.migration import (
    MigrationConfig,
    MigrationRunner,
    MigrationScheduler,
    MigrationSettings,
    MigrationState,
)
from jobsched.migration.command import create_migrate_command
from jobsched.migration.coordinator import (
    MigrationCoordinator,
    OverrideState,
    create_default_coordinator,
)
from jobsched.notices import OperatorNotices

# Options
from jobsched.repositories import (
    InMemoryOptionsRepository,
    OptionsRepository,
    SQLOptionsRepository,
)

# Schema
from jobsched.schema import create_schema

# Stores
from jobsched.stores import (
    DEFAULT_LOGGER_CLASS,
    DEFAULT_STORE_CLASS,
    BackendContext,
    DBLogger,
    DBStore,
    DBStoreMigrator,
    JobLogger,
    JobQuery,
    JobStore,
    LegacyLogger,
    LegacyStore,
)
from jobsched.stores.hybrid import HybridStore
from jobsched.stores.registry import BackendRegistry, create_default_registry

__all__ = [
    "__version__",
    # Exceptions
    "JobschedError",
    "JobNotFoundError",
    "BackendNotRegisteredError",
    "StoreError",
    "MigrationError",
    "MigrationConfigError",
    "SourceJobRemovalError",
    # Jobs
    "JobStatus",
    "ScheduledJob",
    "JobLogEntry",
    # Stores
    "DEFAULT_STORE_CLASS",
    "DEFAULT_LOGGER_CLASS",
    "BackendContext",
    "JobQuery",
    "JobStore",
    "JobLogger",
    "LegacyStore",
    "LegacyLogger",
    "DBStore",
    "DBStoreMigrator",
    "DBLogger",
    "HybridStore",
    "BackendRegistry",
    "create_default_registry",
    # Backend selection
    "BackendResolver",
    "BackendSelector",
    # Options
    "OptionsRepository",
    "SQLOptionsRepository",
    "InMemoryOptionsRepository",
    # Schema
    "create_schema",
    # Host integration
    "HookRegistry",
    "OperatorNotices",
    # Migration
    "MigrationCoordinator",
    "OverrideState",
    "create_default_coordinator",
    "MigrationScheduler",
    "MigrationSettings",
    "MigrationState",
    "MigrationConfig",
    "MigrationRunner",
    "create_migrate_command",
]
