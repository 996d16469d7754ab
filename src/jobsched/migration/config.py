"""
Migration configuration.

A MigrationConfig pairs the store and logger jobs are read from with the
store and logger they are copied to. It is assembled fresh for every run
and never persisted.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from jobsched.exceptions import MigrationConfigError

if TYPE_CHECKING:
    from jobsched.migration.progress import ProgressReporter
    from jobsched.stores.interface import JobLogger, JobStore


class MigrationConfig:
    """
    Source and destination backends for one migration run.

    Setters return the config so calls can be chained. Reading a required
    part that was never set raises MigrationConfigError.

    Example:
        >>> config = (
        ...     MigrationConfig()
        ...     .set_source_store(LegacyStore(engine))
        ...     .set_source_logger(LegacyLogger(engine))
        ...     .set_destination_store(DBStoreMigrator(engine))
        ...     .set_destination_logger(DBLogger(engine))
        ... )
        >>> runner = MigrationRunner(config)
    """

    def __init__(self) -> None:
        self._source_store: JobStore | None = None
        self._source_logger: JobLogger | None = None
        self._destination_store: JobStore | None = None
        self._destination_logger: JobLogger | None = None
        self._progress_reporter: ProgressReporter | None = None
        self._dry_run = False

    def set_source_store(self, store: JobStore) -> MigrationConfig:
        self._source_store = store
        return self

    def set_source_logger(self, job_logger: JobLogger) -> MigrationConfig:
        self._source_logger = job_logger
        return self

    def set_destination_store(self, store: JobStore) -> MigrationConfig:
        self._destination_store = store
        return self

    def set_destination_logger(self, job_logger: JobLogger) -> MigrationConfig:
        self._destination_logger = job_logger
        return self

    def set_progress_reporter(self, reporter: ProgressReporter | None) -> MigrationConfig:
        self._progress_reporter = reporter
        return self

    def set_dry_run(self, dry_run: bool) -> MigrationConfig:
        self._dry_run = bool(dry_run)
        return self

    @property
    def source_store(self) -> JobStore:
        if self._source_store is None:
            raise MigrationConfigError("source_store")
        return self._source_store

    @property
    def source_logger(self) -> JobLogger:
        if self._source_logger is None:
            raise MigrationConfigError("source_logger")
        return self._source_logger

    @property
    def destination_store(self) -> JobStore:
        if self._destination_store is None:
            raise MigrationConfigError("destination_store")
        return self._destination_store

    @property
    def destination_logger(self) -> JobLogger:
        if self._destination_logger is None:
            raise MigrationConfigError("destination_logger")
        return self._destination_logger

    @property
    def progress_reporter(self) -> ProgressReporter | None:
        """Optional progress reporter; None outside the command line."""
        return self._progress_reporter

    @property
    def dry_run(self) -> bool:
        """Whether the run only reads the source and writes nothing."""
        return self._dry_run

    def __repr__(self) -> str:
        parts = {
            "source_store": self._source_store,
            "source_logger": self._source_logger,
            "destination_store": self._destination_store,
            "destination_logger": self._destination_logger,
        }
        described = ", ".join(
            f"{name}={type(value).__name__ if value is not None else None}"
            for name, value in parts.items()
        )
        return f"MigrationConfig({described}, dry_run={self._dry_run})"


__all__ = ["MigrationConfig"]
