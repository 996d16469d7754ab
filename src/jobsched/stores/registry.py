"""
Backend registry mapping class names to store and logger classes.

The host asks for its job store and job logger by class name, and the
migration coordinator answers with class names too. The registry turns
those names into instances built from a shared BackendContext.

Usage:
    registry = create_default_registry(BackendContext(engine, options))
    registry.register_store(MyCustomStore)

    store = registry.create_store("HybridStore")
    job_logger = registry.create_logger("DBLogger")
"""

from __future__ import annotations

import logging
import threading

from jobsched.exceptions import BackendNotRegisteredError
from jobsched.stores.db import DBLogger, DBStore, DBStoreMigrator
from jobsched.stores.hybrid import HybridStore
from jobsched.stores.interface import BackendContext, JobLogger, JobStore
from jobsched.stores.legacy import LegacyLogger, LegacyStore

logger = logging.getLogger(__name__)


class BackendRegistry:
    """
    Registry of job store and job logger classes by name.

    Every create_* call builds a fresh instance through the class's
    from_context() method.

    Thread-Safety:
        Registration and lookup use an internal lock.

    Example:
        >>> registry = BackendRegistry(BackendContext(engine, options))
        >>> registry.register_store(DBStore)
        >>> store = registry.create_store("DBStore")
    """

    def __init__(self, context: BackendContext) -> None:
        self.context = context
        self._stores: dict[str, type[JobStore]] = {}
        self._loggers: dict[str, type[JobLogger]] = {}
        self._lock = threading.RLock()

    def register_store(
        self, store_class: type[JobStore], name: str | None = None
    ) -> type[JobStore]:
        """
        Register a job store class.

        Args:
            store_class: Class to register
            name: Registered name (default: the class name)

        Returns:
            The registered class (enables use as decorator)

        Raises:
            ValueError: If the name is already taken by a different class
        """
        resolved = name or store_class.__name__
        with self._lock:
            existing = self._stores.get(resolved)
            if existing is not None and existing is not store_class:
                raise ValueError(
                    f"Store class name '{resolved}' is already registered to "
                    f"{existing.__name__}. Cannot register {store_class.__name__}."
                )
            self._stores[resolved] = store_class
        logger.debug("Registered store class '%s' -> %s", resolved, store_class.__name__)
        return store_class

    def register_logger(
        self, logger_class: type[JobLogger], name: str | None = None
    ) -> type[JobLogger]:
        """
        Register a job logger class.

        Args:
            logger_class: Class to register
            name: Registered name (default: the class name)

        Returns:
            The registered class

        Raises:
            ValueError: If the name is already taken by a different class
        """
        resolved = name or logger_class.__name__
        with self._lock:
            existing = self._loggers.get(resolved)
            if existing is not None and existing is not logger_class:
                raise ValueError(
                    f"Logger class name '{resolved}' is already registered to "
                    f"{existing.__name__}. Cannot register {logger_class.__name__}."
                )
            self._loggers[resolved] = logger_class
        logger.debug("Registered logger class '%s' -> %s", resolved, logger_class.__name__)
        return logger_class

    def get_store_class(self, name: str) -> type[JobStore]:
        with self._lock:
            if name not in self._stores:
                raise BackendNotRegisteredError(name, "store", list(self._stores))
            return self._stores[name]

    def get_logger_class(self, name: str) -> type[JobLogger]:
        with self._lock:
            if name not in self._loggers:
                raise BackendNotRegisteredError(name, "logger", list(self._loggers))
            return self._loggers[name]

    def create_store(self, name: str) -> JobStore:
        """
        Build a new store instance.

        Args:
            name: Registered store class name

        Returns:
            New, uninitialized store

        Raises:
            BackendNotRegisteredError: If no store class has that name
        """
        return self.get_store_class(name).from_context(self.context)

    def create_logger(self, name: str) -> JobLogger:
        """
        Build a new logger instance.

        Args:
            name: Registered logger class name

        Returns:
            New, uninitialized logger

        Raises:
            BackendNotRegisteredError: If no logger class has that name
        """
        return self.get_logger_class(name).from_context(self.context)

    def has_store(self, name: str) -> bool:
        with self._lock:
            return name in self._stores

    def has_logger(self, name: str) -> bool:
        with self._lock:
            return name in self._loggers

    def store_names(self) -> list[str]:
        """Sorted list of registered store class names."""
        with self._lock:
            return sorted(self._stores)

    def logger_names(self) -> list[str]:
        """Sorted list of registered logger class names."""
        with self._lock:
            return sorted(self._loggers)


def create_default_registry(context: BackendContext) -> BackendRegistry:
    """
    Create a registry holding every built-in store and logger class.

    Args:
        context: Shared backend resources

    Returns:
        Registry with LegacyStore, HybridStore, DBStore, DBStoreMigrator,
        LegacyLogger and DBLogger registered
    """
    registry = BackendRegistry(context)
    for store_class in (LegacyStore, HybridStore, DBStore, DBStoreMigrator):
        registry.register_store(store_class)
    for logger_class in (LegacyLogger, DBLogger):
        registry.register_logger(logger_class)
    return registry


__all__ = [
    "BackendRegistry",
    "create_default_registry",
]
