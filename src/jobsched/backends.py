"""
Host-side selection of the job store and job logger.

The host asks a BackendSelector for "the" store and logger. The selector
starts from the configured class names and lets one installed resolver
replace them. The migration coordinator installs itself as that resolver
to route the host to the hybrid store during a migration and to the
dedicated store afterwards.
"""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

from jobsched.observability import (
    ATTR_LOGGER_CLASS,
    ATTR_REQUESTED_CLASS,
    ATTR_STORE_CLASS,
    Tracer,
    create_tracer,
)
from jobsched.stores.interface import (
    DEFAULT_LOGGER_CLASS,
    DEFAULT_STORE_CLASS,
    JobLogger,
    JobStore,
)
from jobsched.stores.registry import BackendRegistry

logger = logging.getLogger(__name__)


@runtime_checkable
class BackendResolver(Protocol):
    """
    Protocol for replacing the store and logger class names the host asks for.

    Implementations:
    - MigrationCoordinator: routes the host through a live migration
    """

    async def resolve_store(self, requested: str) -> str:
        """
        Map the requested store class name to the one to use.

        Args:
            requested: Store class name configured by the host

        Returns:
            Store class name to build
        """
        ...

    async def resolve_logger(self, requested: str, store_class: str | None = None) -> str:
        """
        Map the requested logger class name to the one to use.

        Args:
            requested: Logger class name configured by the host
            store_class: Result of store resolution, when already known

        Returns:
            Logger class name to build
        """
        ...


class BackendSelector:
    """
    Resolves and builds the job store and job logger the host uses.

    With no resolver installed the configured class names are used as is.
    Store resolution always runs before logger resolution.

    Example:
        >>> selector = BackendSelector(registry)
        >>> selector.set_resolver(coordinator)
        >>> store = await selector.store()
    """

    def __init__(
        self,
        registry: BackendRegistry,
        store_class: str = DEFAULT_STORE_CLASS,
        logger_class: str = DEFAULT_LOGGER_CLASS,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        """
        Initialize the selector.

        Args:
            registry: Registry used to build instances
            store_class: Store class name the host is configured with
            logger_class: Logger class name the host is configured with
            tracer: Optional tracer for tracing (if not provided, one will be created)
            enable_tracing: Whether to enable OpenTelemetry tracing (default True)
        """
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._enable_tracing = self._tracer.enabled
        self.registry = registry
        self.requested_store_class = store_class
        self.requested_logger_class = logger_class
        self._resolver: BackendResolver | None = None
        self._store: JobStore | None = None
        self._store_name: str | None = None
        self._logger: JobLogger | None = None
        self._logger_name: str | None = None

    @property
    def resolver(self) -> BackendResolver | None:
        return self._resolver

    def set_resolver(self, resolver: BackendResolver | None) -> None:
        """
        Install (or with None, remove) the resolver.

        Instances already built are dropped so the next store()/logger()
        call resolves again.
        """
        self._resolver = resolver
        self.reset()

    async def store_class(self) -> str:
        """Get the store class name to use after resolution."""
        requested = self.requested_store_class
        with self._tracer.span(
            "jobsched.backend_selector.store_class",
            {ATTR_REQUESTED_CLASS: requested},
        ):
            if self._resolver is None:
                return requested
            resolved = await self._resolver.resolve_store(requested)
            if resolved != requested:
                logger.debug("Store class %s resolved to %s", requested, resolved)
            return resolved

    async def logger_class(self) -> str:
        """Get the logger class name to use; resolves the store class first."""
        store_class = await self.store_class()
        requested = self.requested_logger_class
        with self._tracer.span(
            "jobsched.backend_selector.logger_class",
            {ATTR_REQUESTED_CLASS: requested, ATTR_STORE_CLASS: store_class},
        ):
            if self._resolver is None:
                return requested
            resolved = await self._resolver.resolve_logger(requested, store_class)
            if resolved != requested:
                logger.debug("Logger class %s resolved to %s", requested, resolved)
            return resolved

    async def store(self) -> JobStore:
        """
        Get the host's job store.

        The class name is resolved on every call. The instance is built and
        initialized on first use and rebuilt whenever the resolved name
        changes, so a migration completed by another process is picked up
        here as well.

        Raises:
            BackendNotRegisteredError: If the resolved name is not registered
        """
        name = await self.store_class()
        if self._store is None or self._store_name != name:
            with self._tracer.span("jobsched.backend_selector.store", {ATTR_STORE_CLASS: name}):
                store = self.registry.create_store(name)
                await store.init()
            if self._store_name is None:
                logger.info("Using job store %s", name)
            else:
                logger.info("Switching job store from %s to %s", self._store_name, name)
            self._store = store
            self._store_name = name
        return self._store

    async def logger(self) -> JobLogger:
        """
        Get the host's job logger, rebuilt whenever its resolved name changes.

        Raises:
            BackendNotRegisteredError: If the resolved name is not registered
        """
        name = await self.logger_class()
        if self._logger is None or self._logger_name != name:
            with self._tracer.span("jobsched.backend_selector.logger", {ATTR_LOGGER_CLASS: name}):
                job_logger = self.registry.create_logger(name)
                await job_logger.init()
            if self._logger_name is None:
                logger.info("Using job logger %s", name)
            else:
                logger.info("Switching job logger from %s to %s", self._logger_name, name)
            self._logger = job_logger
            self._logger_name = name
        return self._logger

    def reset(self) -> None:
        """Forget built instances so the next call builds them again."""
        self._store = None
        self._store_name = None
        self._logger = None
        self._logger_name = None


__all__ = [
    "BackendResolver",
    "BackendSelector",
]
