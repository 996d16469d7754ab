"""
Shared pytest fixtures for the jobsched tests.

This module provides:
- SQLite engines (in-memory, shared through a StaticPool) with and without tables
- Options repositories (in-memory and SQL)
- Store and logger fixtures for the legacy and dedicated tables
- A backend registry, selector and scheduler wired to one engine
- A job factory
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Callable
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import StaticPool

from jobsched.backends import BackendSelector
from jobsched.hooks import HookRegistry
from jobsched.jobs import ScheduledJob
from jobsched.migration.scheduler import MigrationScheduler, MigrationSettings
from jobsched.repositories.options import InMemoryOptionsRepository, SQLOptionsRepository
from jobsched.schema import create_schema
from jobsched.stores.db import DBLogger, DBStore, DBStoreMigrator
from jobsched.stores.interface import BackendContext
from jobsched.stores.legacy import LegacyLogger, LegacyStore
from jobsched.stores.registry import BackendRegistry, create_default_registry

SQLITE_MEMORY_URL = "sqlite+aiosqlite://"


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers for tests."""
    config.addinivalue_line("markers", "sqlite: marks tests that require SQLite (aiosqlite)")


# =============================================================================
# Engines
# =============================================================================


def _memory_engine() -> AsyncEngine:
    return create_async_engine(
        SQLITE_MEMORY_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )


@pytest_asyncio.fixture
async def bare_engine() -> AsyncGenerator[AsyncEngine, None]:
    """
    Provide an in-memory SQLite engine without any tables.

    The StaticPool keeps every connection on the same in-memory database.
    """
    engine = _memory_engine()
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def engine(bare_engine: AsyncEngine) -> AsyncEngine:
    """Provide an in-memory SQLite engine with every jobsched table created."""
    await create_schema(bare_engine)
    return bare_engine


# =============================================================================
# Options
# =============================================================================


@pytest.fixture
def memory_options() -> InMemoryOptionsRepository:
    """Provide an empty in-memory options repository."""
    return InMemoryOptionsRepository()


@pytest.fixture
def sql_options(engine: AsyncEngine) -> SQLOptionsRepository:
    """Provide an options repository on the test engine."""
    return SQLOptionsRepository(engine, enable_tracing=False)


# =============================================================================
# Stores and loggers
# =============================================================================


@pytest.fixture
def legacy_store(engine: AsyncEngine) -> LegacyStore:
    return LegacyStore(engine, enable_tracing=False)


@pytest.fixture
def legacy_logger(engine: AsyncEngine) -> LegacyLogger:
    return LegacyLogger(engine, enable_tracing=False)


@pytest.fixture
def db_store(engine: AsyncEngine) -> DBStore:
    return DBStore(engine, enable_tracing=False)


@pytest.fixture
def db_store_migrator(engine: AsyncEngine) -> DBStoreMigrator:
    return DBStoreMigrator(engine, enable_tracing=False)


@pytest.fixture
def db_logger(engine: AsyncEngine) -> DBLogger:
    return DBLogger(engine, enable_tracing=False)


# =============================================================================
# Wiring
# =============================================================================


@pytest.fixture
def backend_context(engine: AsyncEngine, sql_options: SQLOptionsRepository) -> BackendContext:
    return BackendContext(engine, sql_options)


@pytest.fixture
def registry(backend_context: BackendContext) -> BackendRegistry:
    """Provide a registry with every built-in backend registered."""
    return create_default_registry(backend_context)


@pytest.fixture
def selector(registry: BackendRegistry) -> BackendSelector:
    """Provide a selector configured with the default class names."""
    return BackendSelector(registry, enable_tracing=False)


@pytest.fixture
def hooks() -> HookRegistry:
    return HookRegistry(enable_tracing=False)


@pytest.fixture
def scheduler(
    engine: AsyncEngine,
    sql_options: SQLOptionsRepository,
    selector: BackendSelector,
    hooks: HookRegistry,
) -> MigrationScheduler:
    """Provide a scheduler on the test engine that queues batches through the selector."""
    return MigrationScheduler(
        sql_options,
        selector.store,
        conn=engine,
        settings=MigrationSettings(batch_size=10, first_run_delay=60.0),
        hooks=hooks,
        enable_tracing=False,
    )


# =============================================================================
# Jobs
# =============================================================================


@pytest.fixture
def now() -> datetime:
    """Provide the current time in UTC."""
    return datetime.now(UTC)


@pytest.fixture
def make_job(now: datetime) -> Callable[..., ScheduledJob]:
    """
    Provide a factory for scheduled jobs.

    Defaults to a job due one hour ago; pass ``offset`` (a timedelta added to
    now) or any ScheduledJob field to change it.
    """

    def _make(
        hook: str = "orders/sync",
        offset: timedelta = timedelta(hours=-1),
        **fields: Any,
    ) -> ScheduledJob:
        fields.setdefault("scheduled_at", now + offset)
        return ScheduledJob(hook=hook, **fields)

    return _make
