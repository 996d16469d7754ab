"""
Command-line interface.

Usage:
    jobsched create-schema
    jobsched status
    jobsched migrate --batch-size 500

The ``migrate`` command is only available while the migration is eligible:
the dedicated tables exist and the migration has not completed.
"""

from __future__ import annotations

import asyncio
import logging
import sys

import click
from sqlalchemy.exc import SQLAlchemyError

from jobsched import __version__
from jobsched.jobs import JobStatus
from jobsched.migration.coordinator import MigrationCoordinator, create_default_coordinator
from jobsched.schema import ALL_GROUPS, CANONICAL_TABLES, LEGACY_TABLES, create_schema, has_tables
from jobsched.stores.db import DBStore
from jobsched.stores.hybrid import DEMARCATION_OPTION
from jobsched.stores.legacy import LegacyStore

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(version=__version__, prog_name="jobsched")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    default=False,
    help="Enable verbose console logging (shows DEBUG level messages)",
)
def cli(verbose: bool) -> None:
    """Manage the scheduled job store and its migration."""
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)


@cli.command(name="create-schema")
@click.option(
    "--group",
    "groups",
    multiple=True,
    type=click.Choice(list(ALL_GROUPS)),
    help="Table group to create (repeatable; default: all)",
)
def create_schema_command(groups: tuple[str, ...]) -> None:
    """Create the job tables if they do not exist."""
    coordinator = MigrationCoordinator.instance()
    selected = groups or ALL_GROUPS

    async def _run() -> None:
        try:
            conn = coordinator.selector.registry.context.conn
            await create_schema(conn, selected)  # type: ignore[arg-type]
        finally:
            await coordinator.close()

    asyncio.run(_run())
    click.echo(f"Created table groups: {', '.join(selected)}")


@cli.command()
def status() -> None:
    """Show the migration state and job counts."""
    coordinator = MigrationCoordinator.instance()

    async def _run() -> list[str]:
        conn = coordinator.selector.registry.context.conn
        options = coordinator.selector.registry.context.options
        try:
            state = await coordinator.scheduler.get_state()
            lines = [f"Migration state: {state.value}"]
            if await options.is_ready():
                demarcation = await options.get(DEMARCATION_OPTION)
            else:
                demarcation = None
            if demarcation is not None:
                lines.append(f"Hybrid store demarcation: job id {demarcation}")
            if await has_tables(conn, LEGACY_TABLES):
                lines.append(_format_counts("Legacy jobs", await LegacyStore(conn).job_counts()))
            if await has_tables(conn, CANONICAL_TABLES):
                lines.append(_format_counts("Dedicated jobs", await DBStore(conn).job_counts()))
            return lines
        finally:
            await coordinator.close()

    for line in asyncio.run(_run()):
        click.echo(line)


def _format_counts(label: str, counts: dict[JobStatus, int]) -> str:
    total = sum(counts.values())
    details = ", ".join(f"{status.value}={count}" for status, count in counts.items() if count)
    return f"{label}: {total}" + (f" ({details})" if details else "")


def main() -> None:
    """Entry point: bootstrap the coordinator for the command line and run the CLI."""
    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)

    coordinator = create_default_coordinator(cli_context=True)
    MigrationCoordinator.set_instance(coordinator)

    async def _bootstrap() -> None:
        try:
            await coordinator.start(command_group=cli)
        finally:
            await coordinator.close()

    try:
        asyncio.run(_bootstrap())
    except SQLAlchemyError as e:
        logger.error("Database unavailable: %s", e)
        sys.exit(1)

    cli()


__all__ = ["cli", "main"]
