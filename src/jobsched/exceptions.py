"""Library exceptions for the jobsched package."""


class JobschedError(Exception):
    """Base exception for jobsched library."""

    pass


class JobNotFoundError(JobschedError):
    """Raised when a scheduled job cannot be found in a store."""

    def __init__(self, job_id: int) -> None:
        self.job_id = job_id
        super().__init__(f"Scheduled job not found: {job_id}")


class BackendNotRegisteredError(JobschedError, KeyError):
    """
    Raised when a store or logger class name is not in the backend registry.

    Provides the list of registered names to make typos easy to spot.
    """

    def __init__(self, name: str, kind: str, available: list[str]) -> None:
        self.name = name
        self.kind = kind
        self.available = available
        registered = ", ".join(sorted(available)) if available else "none"
        super().__init__(
            f"Unknown {kind} class: '{name}'. "
            f"Registered {kind} classes: {registered}. "
            f"Did you forget to register it?"
        )

    def __str__(self) -> str:
        # KeyError.__str__ would repr() the message
        return str(self.args[0])


class StoreError(JobschedError):
    """Raised when a job store or logger fails to read or write."""

    pass


class MigrationError(JobschedError):
    """Base exception for migration errors."""

    pass


class MigrationConfigError(MigrationError):
    """Raised when a required part of a migration config has not been set."""

    def __init__(self, field: str) -> None:
        self.field = field
        label = field.replace("_", " ").capitalize()
        super().__init__(f"{label} must be configured before running a migration")


class SourceJobRemovalError(MigrationError):
    """Raised when a migrated job is still present in the source store after deletion."""

    def __init__(self, job_id: int) -> None:
        self.job_id = job_id
        super().__init__(f"Unable to remove source job {job_id} after migration")


__all__ = [
    "JobschedError",
    "JobNotFoundError",
    "BackendNotRegisteredError",
    "StoreError",
    "MigrationError",
    "MigrationConfigError",
    "SourceJobRemovalError",
]
