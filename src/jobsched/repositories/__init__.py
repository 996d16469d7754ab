"""
Repository implementations for the jobsched library.

- **Options**: durable name/value state shared between processes

Each repository type provides:
- A Protocol (interface) defining the contract
- A SQLAlchemy implementation (SQLite or PostgreSQL)
- An in-memory implementation for testing
"""

from jobsched._connection import execute_with_connection
from jobsched.repositories.options import (
    InMemoryOptionsRepository,
    OptionsRepository,
    SQLOptionsRepository,
)

__all__ = [
    "execute_with_connection",
    "OptionsRepository",
    "SQLOptionsRepository",
    "InMemoryOptionsRepository",
]
