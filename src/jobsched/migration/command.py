"""Command-line ``migrate`` command for running the whole migration at once."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

import click

from jobsched.exceptions import JobschedError
from jobsched.migration.runner import MigrationRunner

if TYPE_CHECKING:
    from jobsched.migration.coordinator import MigrationCoordinator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MigrationCommandResult:
    """
    Outcome of a command-line migration.

    Attributes:
        processed: Jobs handled across every batch
        batches: Batches that handled at least one job
        exhausted: Whether the source ran out of jobs
        marked_complete: Whether the migration was recorded as complete
    """

    processed: int
    batches: int
    exhausted: bool
    marked_complete: bool


async def run_migration_command(
    coordinator: MigrationCoordinator,
    *,
    batch_size: int = 100,
    batches: int = 0,
    pause: float = 0.0,
    dry_run: bool = False,
    echo: Callable[[str], None] = click.echo,
) -> MigrationCommandResult:
    """
    Migrate batches until the source is exhausted or the batch limit is hit.

    Args:
        coordinator: Coordinator providing the migration config and scheduler
        batch_size: Jobs per batch
        batches: Maximum number of batches; 0 runs until done
        pause: Seconds to wait between batches
        dry_run: Only check jobs, write nothing
        echo: Output function for progress lines

    Returns:
        What the run did
    """
    config = await coordinator.build_default_config()
    config.set_dry_run(dry_run)
    runner = MigrationRunner(config)
    if not dry_run:
        await runner.init_destination()

    processed = 0
    completed_batches = 0
    exhausted = False
    while True:
        count = await runner.run(batch_size)
        if count == 0:
            exhausted = True
            break
        processed += count
        completed_batches += 1
        echo(f"Batch {completed_batches}: {count} jobs processed")
        if batches and completed_batches >= batches:
            break
        if pause:
            await asyncio.sleep(pause)

    marked_complete = False
    if exhausted and not dry_run:
        await coordinator.scheduler.mark_complete()
        marked_complete = True

    verb = "checked" if dry_run else "migrated"
    echo(f"{processed} jobs {verb} in {completed_batches} batch(es)")
    if marked_complete:
        echo("Migration complete")
    return MigrationCommandResult(processed, completed_batches, exhausted, marked_complete)


def create_migrate_command(coordinator: MigrationCoordinator) -> click.Command:
    """
    Build the ``migrate`` click command bound to a coordinator.

    Args:
        coordinator: Coordinator the command runs the migration for

    Returns:
        Click command ready to add to a group
    """

    @click.command(name="migrate")
    @click.option(
        "--batch-size",
        default=100,
        show_default=True,
        type=click.IntRange(min=1),
        help="Number of jobs to migrate per batch",
    )
    @click.option(
        "--batches",
        default=0,
        show_default=True,
        type=click.IntRange(min=0),
        help="Number of batches to run (0 runs until every job is migrated)",
    )
    @click.option(
        "--pause",
        default=0.0,
        show_default=True,
        type=click.FloatRange(min=0),
        help="Seconds to wait between batches",
    )
    @click.option(
        "--dry-run",
        is_flag=True,
        default=False,
        help="Check every job without changing either store",
    )
    def migrate(batch_size: int, batches: int, pause: float, dry_run: bool) -> None:
        """Migrate scheduled jobs from the legacy tables to the dedicated tables."""

        async def _run() -> MigrationCommandResult:
            try:
                return await run_migration_command(
                    coordinator,
                    batch_size=batch_size,
                    batches=batches,
                    pause=pause,
                    dry_run=dry_run,
                )
            finally:
                await coordinator.close()

        try:
            asyncio.run(_run())
        except JobschedError as e:
            logger.exception("Migration command failed")
            raise click.ClickException(str(e)) from e

    return migrate


__all__ = [
    "MigrationCommandResult",
    "create_migrate_command",
    "run_migration_command",
]
