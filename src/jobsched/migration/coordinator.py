"""
MigrationCoordinator - Routes the host through a live job store migration.

The coordinator is the single object the host talks to while jobs move
from the legacy tables to the dedicated ones. It never moves data itself.

Responsibilities:
    - Resolve which store and logger class the host uses on every access:
      the hybrid store while migrating, the dedicated store afterwards, and
      the host's own classes when it configured a custom backend
    - Queue the background migration at the end of a request, at most once
      per eligible window
    - Gate the hook activation, the ``migrate`` command and the operator
      notice behind the dependency and opt-in checks
    - Assemble the MigrationConfig pairing source and destination backends

Usage:
    >>> coordinator = MigrationCoordinator(scheduler, selector)
    >>> await coordinator.start()              # bootstrap
    >>> store = await selector.store()         # HybridStore while migrating
    >>> await coordinator.on_request_end()     # queues the migration if needed

    >>> # or the process-wide default
    >>> await MigrationCoordinator.init()
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, ClassVar

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from jobsched.backends import BackendSelector
from jobsched.migration.config import MigrationConfig
from jobsched.migration.progress import TqdmProgressReporter
from jobsched.migration.scheduler import (
    MIGRATION_COMPLETE_HOOK,
    MigrationScheduler,
    MigrationSettings,
)
from jobsched.notices import OperatorNotices
from jobsched.observability import (
    ATTR_LOGGER_CLASS,
    ATTR_REQUESTED_CLASS,
    ATTR_STORE_CLASS,
    Tracer,
    create_tracer,
)
from jobsched.repositories.options import SQLOptionsRepository
from jobsched.stores.db import DBLogger, DBStoreMigrator
from jobsched.stores.interface import (
    DEFAULT_LOGGER_CLASS,
    DEFAULT_STORE_CLASS,
    BackendContext,
)
from jobsched.stores.legacy import LegacyLogger, LegacyStore
from jobsched.stores.registry import create_default_registry

if TYPE_CHECKING:
    import click

logger = logging.getLogger(__name__)

HYBRID_STORE_CLASS = "HybridStore"
DB_STORE_CLASS = "DBStore"
DB_LOGGER_CLASS = "DBLogger"

DATABASE_URL_ENV = "JOBSCHED_DATABASE_URL"
DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///jobsched.db"

NOTICE_SCREENS = ("scheduled-jobs", "system-status")
"""Operator screens that show the migration notice."""

MIGRATION_NOTICE = (
    "Job scheduler migration in progress. The list of scheduled jobs may be incomplete."
)

ConfigFinalizer = Callable[[MigrationConfig], MigrationConfig]
CustomMigrationOptIn = bool | Callable[[], bool]


def render_migration_notice() -> str:
    """Render the operator notice shown while the migration is under way."""
    return MIGRATION_NOTICE


@dataclass
class OverrideState:
    """
    Backend classes the host asked for instead of the defaults.

    Attributes:
        store_class: First non-default store class requested
        logger_class: Logger class requested alongside a custom store
        allow_custom_migration: Cached opt-in for migrating a custom store
    """

    store_class: str | None = None
    logger_class: str | None = None
    allow_custom_migration: bool | None = None


class MigrationCoordinator:
    """
    Coordinates the live migration of the job store for one process.

    Construct one directly for an explicit context (tests, embedded hosts)
    or use the lazily built process-wide instance().

    Example:
        >>> coordinator = MigrationCoordinator(scheduler, selector, cli_context=True)
        >>> await coordinator.start(command_group=cli)
        >>> await coordinator.resolve_store("LegacyStore")
        'HybridStore'
    """

    _instance: ClassVar[MigrationCoordinator | None] = None

    def __init__(
        self,
        scheduler: MigrationScheduler,
        selector: BackendSelector,
        *,
        notices: OperatorNotices | None = None,
        cli_context: bool = False,
        migrate_custom_store: CustomMigrationOptIn = False,
        config_finalizer: ConfigFinalizer | None = None,
        default_store_class: str = DEFAULT_STORE_CLASS,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        """
        Initialize the coordinator.

        Args:
            scheduler: Migration scheduler. If it has no config provider yet
                it is given build_default_config.
            selector: The host's backend selector
            notices: Operator notices the migration notice is registered on
            cli_context: Whether the process runs from the command line
            migrate_custom_store: Opt-in (or zero-argument callable returning
                it) for migrating a store the host configured itself
            config_finalizer: Adjusts every assembled MigrationConfig
            default_store_class: Store class name that means "no override"
            tracer: Optional tracer for tracing (if not provided, one will be created)
            enable_tracing: Whether to enable OpenTelemetry tracing (default True)
        """
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._enable_tracing = self._tracer.enabled

        self.scheduler = scheduler
        self.selector = selector
        self.notices = notices or OperatorNotices()
        self.cli_context = cli_context
        self.overrides = OverrideState()

        self._migrate_custom_store = migrate_custom_store
        self._config_finalizer = config_finalizer
        self._default_store_class = default_store_class
        self._command_group: click.Group | None = None
        self._command_registered = False
        self._started = False

        if scheduler.config_provider is None:
            scheduler.set_config_provider(self.build_default_config)

    @property
    def started(self) -> bool:
        """Whether start() found the dependencies met and wired the coordinator in."""
        return self._started

    # -- resolution -----------------------------------------------------------

    async def resolve_store(self, requested: str) -> str:
        """
        Map the store class the host asks for to the one it gets.

        - Migration complete: the dedicated store, whatever was requested
        - A non-default class: remembered as the override and used unchanged
        - The default class: the hybrid store

        Args:
            requested: Store class name configured by the host

        Returns:
            Store class name to build
        """
        with self._tracer.span(
            "jobsched.coordinator.resolve_store",
            {ATTR_REQUESTED_CLASS: requested},
        ):
            if await self.scheduler.is_complete():
                return DB_STORE_CLASS
            if requested != self._default_store_class:
                if self.overrides.store_class != requested:
                    logger.info("Host configured custom store class %s", requested)
                self.overrides.store_class = requested
                return requested
            return HYBRID_STORE_CLASS

    async def resolve_logger(self, requested: str, store_class: str | None = None) -> str:
        """
        Map the logger class the host asks for to the one it gets.

        Store resolution must run first so a custom store override has been
        captured. When store_class is not passed the selector's store
        resolution is forced before deciding.

        Args:
            requested: Logger class name configured by the host
            store_class: Result of store resolution, when already known

        Returns:
            Logger class name to build
        """
        if store_class is None:
            if self.selector.resolver is self:
                store_class = await self.selector.store_class()
            else:
                store_class = await self.resolve_store(self.selector.requested_store_class)

        with self._tracer.span(
            "jobsched.coordinator.resolve_logger",
            {ATTR_REQUESTED_CLASS: requested, ATTR_STORE_CLASS: store_class},
        ):
            if await self.scheduler.is_complete():
                return DB_LOGGER_CLASS
            if self.overrides.store_class is not None:
                self.overrides.logger_class = requested
                return requested
            return DB_LOGGER_CLASS

    # -- gating ---------------------------------------------------------------

    def allow_custom_migration(self) -> bool:
        """
        Check whether the migration may run for the configured store.

        The default store always may. A custom store may only when the host
        opted in; the opt-in is read once and cached.
        """
        if self.overrides.allow_custom_migration is None:
            opt_in = self._migrate_custom_store
            self.overrides.allow_custom_migration = bool(opt_in() if callable(opt_in) else opt_in)
        return self.overrides.store_class is None or self.overrides.allow_custom_migration

    async def eligible(self) -> bool:
        """Check that the migration is allowed and not yet complete."""
        return self.allow_custom_migration() and not await self.scheduler.is_complete()

    # -- scheduling and activation -------------------------------------------

    async def schedule_migration_if_needed(self) -> bool:
        """
        Queue the background migration unless it is complete or already queued.

        Returns:
            True if a batch was scheduled by this call
        """
        if await self.scheduler.is_complete() or await self.scheduler.is_scheduled():
            return False
        await self.scheduler.schedule_migration()
        return True

    async def maybe_activate(self) -> bool:
        """
        Activate the migration hooks and command when eligible.

        Returns:
            True if the hooks were activated
        """
        if not await self.eligible():
            logger.debug("Migration not eligible; hooks stay inactive")
            return False
        self.scheduler.activate_hooks()
        await self.maybe_register_command()
        return True

    async def maybe_register_command(self, group: click.Group | None = None) -> bool:
        """
        Register the ``migrate`` command on a click group.

        Only in a command-line context, only when eligible and only once.

        Args:
            group: Click group (default: the one given to start())

        Returns:
            True if the command was registered by this call
        """
        if group is not None:
            self._command_group = group
        if not self.cli_context or self._command_group is None or self._command_registered:
            return False
        if not await self.eligible() or not await self.scheduler.dependencies_met():
            return False

        from jobsched.migration.command import create_migrate_command

        self._command_group.add_command(create_migrate_command(self), name="migrate")
        self._command_registered = True
        logger.debug("Registered migrate command")
        return True

    async def maybe_show_notice(self) -> bool:
        """
        Register the migration notice with the operator notices when eligible.

        Returns:
            True if the notice was registered by this call
        """
        if not await self.eligible():
            return False
        return self.notices.register(render_migration_notice)

    # -- configuration --------------------------------------------------------

    async def build_default_config(self) -> MigrationConfig:
        """
        Assemble a fresh MigrationConfig.

        The source is the host's custom store and logger when an override
        was captured, the legacy ones otherwise. The destination is always
        the dedicated store and logger. A progress bar is attached only on
        the command line. The config_finalizer, if any, gets the last word.

        Returns:
            New MigrationConfig
        """
        registry = self.selector.registry
        context = registry.context

        if self.overrides.store_class is not None:
            source_store = registry.create_store(self.overrides.store_class)
        else:
            source_store = LegacyStore.from_context(context)

        if self.overrides.logger_class is not None:
            source_logger = registry.create_logger(self.overrides.logger_class)
        else:
            source_logger = LegacyLogger.from_context(context)

        config = (
            MigrationConfig()
            .set_source_store(source_store)
            .set_source_logger(source_logger)
            .set_destination_store(DBStoreMigrator.from_context(context))
            .set_destination_logger(DBLogger.from_context(context))
        )
        if self.cli_context:
            config.set_progress_reporter(TqdmProgressReporter())

        if self._config_finalizer is not None:
            config = self._config_finalizer(config)
        return config

    # -- lifecycle ------------------------------------------------------------

    async def start(self, command_group: click.Group | None = None) -> bool:
        """
        Bootstrap the coordinator.

        Does nothing unless the scheduler's dependencies are met; the
        coordinator then stays inert for its lifetime.

        Args:
            command_group: Click group the ``migrate`` command may be added to

        Returns:
            True if the coordinator was wired into the selector
        """
        if command_group is not None:
            self._command_group = command_group
        if self._started:
            return True
        if not await self.scheduler.dependencies_met():
            logger.info("Job store migration dependencies not met; coordinator inactive")
            return False

        self.selector.set_resolver(self)
        self.scheduler.hooks.add(MIGRATION_COMPLETE_HOOK, self._on_migration_complete)
        self._started = True
        logger.info("Job store migration coordinator started")
        await self.maybe_activate()
        return True

    async def on_request_end(self) -> bool:
        """
        Host teardown hook: schedule the migration if needed.

        Returns:
            True if a batch was scheduled
        """
        if not self._started:
            return False
        return await self.schedule_migration_if_needed()

    async def on_operator_screen_load(self, screen_id: str) -> bool:
        """
        Host hook for operator screens: show the notice on NOTICE_SCREENS.

        Returns:
            True if the notice was registered
        """
        if not self._started or screen_id not in NOTICE_SCREENS:
            return False
        return await self.maybe_show_notice()

    async def _on_migration_complete(self) -> None:
        self.selector.reset()
        with self._tracer.span(
            "jobsched.coordinator.migration_complete",
            {ATTR_STORE_CLASS: DB_STORE_CLASS, ATTR_LOGGER_CLASS: DB_LOGGER_CLASS},
        ):
            logger.info("Host backends switch to the dedicated store")

    async def close(self) -> None:
        """Dispose of the database engine if this coordinator's context owns one."""
        conn = self.selector.registry.context.conn
        if isinstance(conn, AsyncEngine):
            await conn.dispose()

    # -- process-wide instance -----------------------------------------------

    @classmethod
    def instance(cls) -> MigrationCoordinator:
        """
        Get the process-wide coordinator, building it on first use.

        Returns:
            The shared MigrationCoordinator
        """
        if cls._instance is None:
            cls._instance = create_default_coordinator()
        return cls._instance

    @classmethod
    def set_instance(cls, coordinator: MigrationCoordinator | None) -> None:
        """Install (or with None, clear) the process-wide coordinator."""
        cls._instance = coordinator

    @classmethod
    def reset_instance(cls) -> None:
        """
        Forget the process-wide coordinator.

        Useful for testing to ensure fresh state.
        """
        cls._instance = None

    @classmethod
    async def init(cls, command_group: click.Group | None = None) -> MigrationCoordinator:
        """
        Start the process-wide coordinator.

        Args:
            command_group: Click group the ``migrate`` command may be added to

        Returns:
            The shared MigrationCoordinator
        """
        coordinator = cls.instance()
        await coordinator.start(command_group)
        return coordinator


def create_default_coordinator(
    database_url: str | None = None,
    *,
    cli_context: bool = False,
    settings: MigrationSettings | None = None,
    store_class: str = DEFAULT_STORE_CLASS,
    logger_class: str = DEFAULT_LOGGER_CLASS,
    migrate_custom_store: CustomMigrationOptIn = False,
    config_finalizer: ConfigFinalizer | None = None,
    enable_tracing: bool = True,
) -> MigrationCoordinator:
    """
    Build a coordinator with the built-in backends on one database.

    Args:
        database_url: SQLAlchemy async URL (default: $JOBSCHED_DATABASE_URL,
            then a local SQLite file)
        cli_context: Whether the process runs from the command line
        settings: Background migration tuning
        store_class: Store class name the host is configured with
        logger_class: Logger class name the host is configured with
        migrate_custom_store: Opt-in for migrating a custom store
        config_finalizer: Adjusts every assembled MigrationConfig
        enable_tracing: Whether to enable OpenTelemetry tracing

    Returns:
        New, not yet started, MigrationCoordinator
    """
    url = database_url or os.environ.get(DATABASE_URL_ENV, DEFAULT_DATABASE_URL)
    engine = create_async_engine(url)
    options = SQLOptionsRepository(engine, enable_tracing=enable_tracing)
    registry = create_default_registry(BackendContext(engine, options))
    selector = BackendSelector(
        registry,
        store_class=store_class,
        logger_class=logger_class,
        enable_tracing=enable_tracing,
    )
    scheduler = MigrationScheduler(
        options,
        selector.store,
        conn=engine,
        settings=settings,
        enable_tracing=enable_tracing,
    )
    return MigrationCoordinator(
        scheduler,
        selector,
        cli_context=cli_context,
        migrate_custom_store=migrate_custom_store,
        config_finalizer=config_finalizer,
        enable_tracing=enable_tracing,
    )


__all__ = [
    "MigrationCoordinator",
    "OverrideState",
    "create_default_coordinator",
    "render_migration_notice",
    "NOTICE_SCREENS",
    "MIGRATION_NOTICE",
    "HYBRID_STORE_CLASS",
    "DB_STORE_CLASS",
    "DB_LOGGER_CLASS",
    "DATABASE_URL_ENV",
    "DEFAULT_DATABASE_URL",
]
