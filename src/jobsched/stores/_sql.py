"""
Shared SQL building for the table-backed job stores.

The legacy and DB stores keep the same job data under different column
names. Both translate a JobQuery through build_job_query with their own
column mapping and status encoding.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from jobsched.jobs import JobStatus, format_timestamp
from jobsched.stores.interface import JobQuery


@dataclass(frozen=True)
class JobColumns:
    """Column names a store uses for the queryable job fields."""

    id: str
    hook: str
    args: str
    group: str
    status: str
    date: str


def encode_args(args: list[Any]) -> str:
    """Encode job arguments canonically so equal arguments compare equal in SQL."""
    return json.dumps(args, sort_keys=True, separators=(",", ":"), default=str)


def decode_args(raw: str | None) -> list[Any]:
    """Decode job arguments written by encode_args."""
    if not raw:
        return []
    decoded = json.loads(raw)
    return decoded if isinstance(decoded, list) else [decoded]


def build_job_query(
    table: str,
    query: JobQuery,
    columns: JobColumns,
    encode_status: Callable[[JobStatus], str],
    base_conditions: list[str] | None = None,
    base_params: dict[str, Any] | None = None,
) -> tuple[str, dict[str, Any]]:
    """
    Translate a JobQuery into a SELECT of job ids.

    Args:
        table: Table to select from
        query: Filter, ordering and paging options
        columns: Column mapping of the store
        encode_status: Maps a JobStatus to the value stored in the status column
        base_conditions: Conditions every query of the store must include
        base_params: Parameters used by base_conditions

    Returns:
        SQL text and bound parameters
    """
    conditions = list(base_conditions or [])
    params: dict[str, Any] = dict(base_params or {})

    if query.hook is not None:
        conditions.append(f"{columns.hook} = :hook")
        params["hook"] = query.hook
        if query.args is not None:
            conditions.append(f"{columns.args} = :args")
            params["args"] = encode_args(query.args)

    if query.exclude_hooks:
        names = [f"exclude_hook_{i}" for i in range(len(query.exclude_hooks))]
        placeholders = ", ".join(f":{name}" for name in names)
        conditions.append(f"{columns.hook} NOT IN ({placeholders})")
        params.update(zip(names, query.exclude_hooks, strict=True))

    if query.group is not None:
        conditions.append(f"{columns.group} = :group_name")
        params["group_name"] = query.group

    if query.status is not None:
        conditions.append(f"{columns.status} = :status")
        params["status"] = encode_status(query.status)

    if query.date is not None:
        conditions.append(f"{columns.date} {query.date_compare} :date")
        params["date"] = format_timestamp(query.date)

    where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
    order_column = columns.date if query.order_by == "date" else columns.id
    order_clause = f"ORDER BY {order_column} {query.order}"
    if order_column != columns.id:
        order_clause += f", {columns.id} {query.order}"

    params["limit"] = query.per_page
    params["offset"] = query.offset

    sql = (
        f"SELECT {columns.id} FROM {table} {where} {order_clause} "
        "LIMIT :limit OFFSET :offset"
    )
    return sql, params


def empty_counts() -> dict[JobStatus, int]:
    """Get a per-status count mapping with every status at zero."""
    return dict.fromkeys(JobStatus, 0)


__all__ = [
    "JobColumns",
    "encode_args",
    "decode_args",
    "build_job_query",
    "empty_counts",
]
