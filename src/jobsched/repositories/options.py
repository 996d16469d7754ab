"""
Options repository for durable, process-shared state.

The migration keeps its authoritative state here: whether it has completed
and where the hybrid store's id demarcation lies. Every process serving
requests reads the same rows, so no in-memory state has to be shared.
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime
from typing import Protocol, runtime_checkable

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from jobsched._connection import execute_with_connection
from jobsched.jobs import format_timestamp
from jobsched.observability import ATTR_OPTION_NAME, Tracer, create_tracer
from jobsched.schema import OPTIONS_TABLES, has_tables


@runtime_checkable
class OptionsRepository(Protocol):
    """
    Protocol for name/value option storage.

    Values are strings; callers encode anything richer themselves.
    """

    async def get(self, name: str, default: str | None = None) -> str | None:
        """
        Get the value of an option.

        Args:
            name: Option name
            default: Value returned when the option is not set

        Returns:
            The stored value, or default
        """
        ...

    async def set(self, name: str, value: str) -> None:
        """
        Create or replace an option.

        Args:
            name: Option name
            value: New value
        """
        ...

    async def delete(self, name: str) -> None:
        """
        Remove an option. Removing a missing option is a no-op.

        Args:
            name: Option name
        """
        ...

    async def is_ready(self) -> bool:
        """
        Check that the backing storage exists and can be used.

        Returns:
            True if options can be read and written
        """
        ...


class SQLOptionsRepository:
    """
    SQLAlchemy implementation of the options repository.

    Stores options in the `jobsched_options` table. Works with SQLite
    (aiosqlite driver) and PostgreSQL engines.

    Example:
        >>> engine = create_async_engine("sqlite+aiosqlite:///jobsched.db")
        >>> options = SQLOptionsRepository(engine)
        >>> await options.set("jobsched_migration_status", "complete")
    """

    def __init__(
        self,
        conn: AsyncConnection | AsyncEngine,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        """
        Initialize the options repository.

        Args:
            conn: Database connection or engine
            tracer: Optional tracer for tracing (if not provided, one will be created)
            enable_tracing: Whether to enable OpenTelemetry tracing (default True)
        """
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._enable_tracing = self._tracer.enabled
        self.conn = conn

    async def get(self, name: str, default: str | None = None) -> str | None:
        with self._tracer.span("jobsched.options.get", {ATTR_OPTION_NAME: name}):
            query = text("SELECT value FROM jobsched_options WHERE name = :name")
            async with execute_with_connection(self.conn, transactional=False) as conn:
                result = await conn.execute(query, {"name": name})
                row = result.fetchone()
            return row[0] if row else default

    async def set(self, name: str, value: str) -> None:
        with self._tracer.span("jobsched.options.set", {ATTR_OPTION_NAME: name}):
            query = text("""
                INSERT INTO jobsched_options (name, value, updated_at)
                VALUES (:name, :value, :now)
                ON CONFLICT (name) DO UPDATE
                SET value = excluded.value,
                    updated_at = excluded.updated_at
            """)
            params = {
                "name": name,
                "value": value,
                "now": format_timestamp(datetime.now(UTC)),
            }
            async with execute_with_connection(self.conn, transactional=True) as conn:
                await conn.execute(query, params)

    async def delete(self, name: str) -> None:
        with self._tracer.span("jobsched.options.delete", {ATTR_OPTION_NAME: name}):
            query = text("DELETE FROM jobsched_options WHERE name = :name")
            async with execute_with_connection(self.conn, transactional=True) as conn:
                await conn.execute(query, {"name": name})

    async def is_ready(self) -> bool:
        return await has_tables(self.conn, OPTIONS_TABLES)


class InMemoryOptionsRepository:
    """
    In-memory implementation of the options repository for testing.

    All data is lost when the process terminates, so it cannot coordinate
    more than one process.

    Example:
        >>> options = InMemoryOptionsRepository()
        >>> await options.set("jobsched_migration_status", "complete")
        >>> await options.get("jobsched_migration_status")
        'complete'
    """

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._options: dict[str, str] = dict(initial or {})
        self._lock = asyncio.Lock()

    async def get(self, name: str, default: str | None = None) -> str | None:
        async with self._lock:
            return self._options.get(name, default)

    async def set(self, name: str, value: str) -> None:
        async with self._lock:
            self._options[name] = value

    async def delete(self, name: str) -> None:
        async with self._lock:
            self._options.pop(name, None)

    async def is_ready(self) -> bool:
        return True

    async def clear(self) -> None:
        """Remove every option. Useful between tests."""
        async with self._lock:
            self._options.clear()


__all__ = [
    "OptionsRepository",
    "SQLOptionsRepository",
    "InMemoryOptionsRepository",
]
