"""
Progress reporting for migration batches.

Progress is only shown when a migration runs from the command line; the
background run reports nothing.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from tqdm import tqdm


@runtime_checkable
class ProgressReporter(Protocol):
    """Protocol for reporting progress through a batch of jobs."""

    def start(self, message: str, count: int) -> None:
        """
        Begin a new batch.

        Args:
            message: Description shown next to the progress bar
            count: Number of jobs in the batch
        """
        ...

    def tick(self, count: int = 1) -> None:
        """Advance by count jobs."""
        ...

    def finish(self) -> None:
        """End the current batch."""
        ...


class TqdmProgressReporter:
    """
    Progress reporter drawing a tqdm bar per batch.

    Example:
        >>> reporter = TqdmProgressReporter()
        >>> reporter.start("Migrating 100 jobs", 100)
        >>> reporter.tick()
        >>> reporter.finish()
    """

    def __init__(self, *, disable: bool = False, leave: bool = True) -> None:
        self._disable = disable
        self._leave = leave
        self._bar: tqdm | None = None

    def start(self, message: str, count: int) -> None:
        self.finish()
        self._bar = tqdm(
            total=count,
            desc=message,
            unit="job",
            disable=self._disable,
            leave=self._leave,
        )

    def tick(self, count: int = 1) -> None:
        if self._bar is not None:
            self._bar.update(count)

    def finish(self) -> None:
        if self._bar is not None:
            self._bar.close()
            self._bar = None


class NullProgressReporter:
    """Progress reporter that reports nothing."""

    def start(self, message: str, count: int) -> None:
        pass

    def tick(self, count: int = 1) -> None:
        pass

    def finish(self) -> None:
        pass


__all__ = [
    "ProgressReporter",
    "TqdmProgressReporter",
    "NullProgressReporter",
]
