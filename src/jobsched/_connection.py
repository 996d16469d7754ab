"""
Connection helpers shared by the SQL stores, repositories and schema code.

Every SQL component is built with either an AsyncEngine (it opens its own
connection per call) or an AsyncConnection (the host's, inside the host's
transaction). Query sites go through execute_with_connection so both cases
read the same.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

Connectable = AsyncConnection | AsyncEngine


@asynccontextmanager
async def execute_with_connection(
    conn: Connectable,
    transactional: bool = True,
) -> AsyncIterator[AsyncConnection]:
    """
    Yield a connection to run statements on.

    Args:
        conn: Engine or open connection
        transactional: For an engine, commit on exit (begin) or only read
            (connect). Ignored for a connection, whose owner controls the
            transaction.

    Example:
        >>> async with execute_with_connection(self.conn, transactional=False) as conn:
        ...     result = await conn.execute(text("SELECT COUNT(*) FROM scheduled_jobs"))
    """
    if isinstance(conn, AsyncConnection):
        yield conn
        return
    opener = conn.begin() if transactional else conn.connect()
    async with opener as connection:
        yield connection


def dialect_name(conn: Connectable) -> str:
    """SQLAlchemy dialect name of the engine or connection ("sqlite", "postgresql")."""
    return conn.dialect.name


__all__ = ["Connectable", "execute_with_connection", "dialect_name"]
