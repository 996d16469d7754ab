"""
SQL schema for the jobsched tables.

Three groups of tables exist side by side in one database:

- legacy: ``records`` and ``record_comments``, the shared generic tables
  the legacy store keeps jobs and log lines in
- canonical: ``scheduled_jobs`` and ``scheduled_job_logs``, the dedicated
  tables of the DB store
- options: ``jobsched_options``, durable name/value state shared by every
  process (migration status, hybrid store demarcation)

Timestamps are stored as UTC text (``YYYY-MM-DDTHH:MM:SS.ffffff``) in both
dialects so the same queries and orderings work everywhere.

Supported backends:
    - sqlite (default)
    - postgresql

Usage:
    from jobsched.schema import create_schema

    async with engine.begin() as conn:
        await create_schema(conn)
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Literal

from sqlalchemy import inspect, text
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from jobsched._connection import dialect_name, execute_with_connection

SchemaGroup = Literal["legacy", "canonical", "options"]
BackendName = Literal["sqlite", "postgresql"]

ALL_GROUPS: tuple[SchemaGroup, ...] = ("legacy", "canonical", "options")

LEGACY_TABLES = ("records", "record_comments")
CANONICAL_TABLES = ("scheduled_jobs", "scheduled_job_logs")
OPTIONS_TABLES = ("jobsched_options",)

_ID_COLUMN: dict[BackendName, str] = {
    "sqlite": "id INTEGER PRIMARY KEY AUTOINCREMENT",
    "postgresql": "id BIGSERIAL PRIMARY KEY",
}

_REF_TYPE: dict[BackendName, str] = {
    "sqlite": "INTEGER",
    "postgresql": "BIGINT",
}


def _legacy_statements(backend: BackendName) -> list[str]:
    return [
        f"""
        CREATE TABLE IF NOT EXISTS records (
            {_ID_COLUMN[backend]},
            record_type TEXT NOT NULL,
            status TEXT NOT NULL,
            title TEXT NOT NULL DEFAULT '',
            content TEXT NOT NULL DEFAULT '',
            category TEXT NOT NULL DEFAULT '',
            record_date TEXT,
            modified_date TEXT,
            created_at TEXT NOT NULL
        )
        """,
        "CREATE INDEX IF NOT EXISTS idx_records_type_status ON records (record_type, status)",
        f"""
        CREATE TABLE IF NOT EXISTS record_comments (
            {_ID_COLUMN[backend]},
            record_id {_REF_TYPE[backend]} NOT NULL,
            comment_type TEXT NOT NULL,
            content TEXT NOT NULL,
            created_at TEXT NOT NULL
        )
        """,
        "CREATE INDEX IF NOT EXISTS idx_record_comments_record ON record_comments (record_id)",
    ]


def _canonical_statements(backend: BackendName) -> list[str]:
    return [
        f"""
        CREATE TABLE IF NOT EXISTS scheduled_jobs (
            {_ID_COLUMN[backend]},
            hook TEXT NOT NULL,
            status TEXT NOT NULL,
            args TEXT NOT NULL DEFAULT '[]',
            group_name TEXT NOT NULL DEFAULT '',
            priority INTEGER NOT NULL DEFAULT 10,
            scheduled_at TEXT,
            last_attempt_at TEXT,
            created_at TEXT NOT NULL
        )
        """,
        "CREATE INDEX IF NOT EXISTS idx_scheduled_jobs_hook_status "
        "ON scheduled_jobs (hook, status)",
        "CREATE INDEX IF NOT EXISTS idx_scheduled_jobs_status_date "
        "ON scheduled_jobs (status, scheduled_at)",
        f"""
        CREATE TABLE IF NOT EXISTS scheduled_job_logs (
            {_ID_COLUMN[backend]},
            job_id {_REF_TYPE[backend]} NOT NULL,
            message TEXT NOT NULL,
            logged_at TEXT NOT NULL
        )
        """,
        "CREATE INDEX IF NOT EXISTS idx_scheduled_job_logs_job ON scheduled_job_logs (job_id)",
    ]


def _options_statements(backend: BackendName) -> list[str]:
    return [
        """
        CREATE TABLE IF NOT EXISTS jobsched_options (
            name TEXT PRIMARY KEY,
            value TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
        """,
    ]


_BUILDERS = {
    "legacy": _legacy_statements,
    "canonical": _canonical_statements,
    "options": _options_statements,
}


def get_statements(group: SchemaGroup, backend: BackendName = "sqlite") -> list[str]:
    """
    Get the DDL statements for one table group.

    Args:
        group: "legacy", "canonical" or "options"
        backend: "sqlite" (default) or "postgresql"

    Returns:
        List of SQL statements, each safe to run repeatedly

    Raises:
        ValueError: If the group or backend is unknown
    """
    if backend not in _ID_COLUMN:
        raise ValueError(f"Unsupported backend '{backend}'. Supported: {sorted(_ID_COLUMN)}")
    try:
        builder = _BUILDERS[group]
    except KeyError:
        raise ValueError(f"Unknown schema group '{group}'. Available: {list(ALL_GROUPS)}") from None
    return [statement.strip() for statement in builder(backend)]


def _backend_for(conn: AsyncConnection | AsyncEngine) -> BackendName:
    name = dialect_name(conn)
    if name == "postgresql":
        return "postgresql"
    if name == "sqlite":
        return "sqlite"
    raise ValueError(f"Unsupported database dialect '{name}'")


async def create_schema(
    conn: AsyncConnection | AsyncEngine,
    groups: Iterable[SchemaGroup] = ALL_GROUPS,
) -> None:
    """
    Create the tables of the given groups if they do not exist yet.

    Args:
        conn: Database connection or engine
        groups: Table groups to create (default: all of them)
    """
    backend = _backend_for(conn)
    async with execute_with_connection(conn, transactional=True) as connection:
        for group in groups:
            for statement in get_statements(group, backend):
                await connection.execute(text(statement))


async def has_tables(conn: AsyncConnection | AsyncEngine, tables: Iterable[str]) -> bool:
    """
    Check whether every named table exists.

    Args:
        conn: Database connection or engine
        tables: Table names to look for

    Returns:
        True if all tables exist
    """
    wanted = list(tables)
    async with execute_with_connection(conn, transactional=False) as connection:
        existing = await connection.run_sync(
            lambda sync_conn: set(inspect(sync_conn).get_table_names())
        )
    return all(table in existing for table in wanted)


__all__ = [
    "ALL_GROUPS",
    "LEGACY_TABLES",
    "CANONICAL_TABLES",
    "OPTIONS_TABLES",
    "SchemaGroup",
    "BackendName",
    "get_statements",
    "create_schema",
    "has_tables",
]
