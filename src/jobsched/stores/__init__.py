"""
Job stores and job loggers.

- LegacyStore / LegacyLogger: jobs and log lines on the shared generic tables
- DBStore / DBStoreMigrator / DBLogger: the dedicated tables

The hybrid store and the backend registry build on the migration runner
and live in ``jobsched.stores.hybrid`` and ``jobsched.stores.registry``.
"""

from jobsched.stores.db import DBLogger, DBStore, DBStoreMigrator
from jobsched.stores.interface import (
    DEFAULT_LOGGER_CLASS,
    DEFAULT_STORE_CLASS,
    BackendContext,
    JobLogger,
    JobQuery,
    JobStore,
)
from jobsched.stores.legacy import LegacyLogger, LegacyStore

__all__ = [
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
]
