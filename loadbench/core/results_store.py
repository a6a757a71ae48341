"""
Postgres Results Store

Append-only persistence of one MetricRecord per benchmark run into the
`load_stats` table. The store assigns `id` and `created_at`.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from loadbench.config import settings
from loadbench.connectors import postgres_pool
from loadbench.core.errors import ResultStoreError
from loadbench.models import NUMERIC_FIELDS, MetricRecord

logger = logging.getLogger(__name__)

_INSERT_COLUMNS: tuple[str, ...] = ("database", "transaction_type", *NUMERIC_FIELDS)


def _table() -> str:
    return settings.RESULTS_TABLE


async def ensure_schema() -> None:
    """Create the results table if it does not exist yet."""
    pool = postgres_pool.get_default_pool()
    metric_columns = ",\n        ".join(f"{name} INTEGER" for name in NUMERIC_FIELDS)
    await pool.execute_query(
        f"""
        CREATE TABLE IF NOT EXISTS {_table()} (
        id SERIAL PRIMARY KEY,
        database TEXT,
        transaction_type TEXT,
        {metric_columns},
        created_at TIMESTAMPTZ DEFAULT now()
        )
        """
    )
    logger.info("Results table %s ready", _table())


def _row_to_record(row: Any) -> MetricRecord:
    values = dict(row)
    # Rows written by older clients may carry NULLs for metrics they never set.
    for name in NUMERIC_FIELDS:
        if values.get(name) is None:
            values[name] = 0
    return MetricRecord(**values)


async def insert_record(record: MetricRecord) -> MetricRecord:
    """
    Persist one record and return the stored copy with `id` and `created_at`.

    Raises:
        ResultStoreError: the insert failed or returned no row
    """
    pool = postgres_pool.get_default_pool()
    placeholders = ", ".join(f"${i}" for i in range(1, len(_INSERT_COLUMNS) + 1))
    query = f"""
    INSERT INTO {_table()} ({", ".join(_INSERT_COLUMNS)})
    VALUES ({placeholders})
    RETURNING id, created_at
    """
    params = [getattr(record, name) for name in _INSERT_COLUMNS]

    try:
        row = await pool.fetch_one(query, *params)
    except Exception as e:
        raise ResultStoreError(f"Failed to persist metric record: {e}") from e
    if row is None or row["id"] is None:
        raise ResultStoreError("Insert returned no record id")

    return record.model_copy(update={"id": row["id"], "created_at": row["created_at"]})


async def list_records(limit: Optional[int] = None) -> list[MetricRecord]:
    """All persisted records, newest first."""
    pool = postgres_pool.get_default_pool()
    query = f"SELECT * FROM {_table()} ORDER BY id DESC"
    args: list[Any] = []
    if limit is not None:
        query += " LIMIT $1"
        args.append(int(limit))
    try:
        rows = await pool.fetch_all(query, *args)
    except Exception as e:
        raise ResultStoreError(f"Failed to list metric records: {e}") from e
    return [_row_to_record(r) for r in rows]


async def get_record(record_id: int) -> Optional[MetricRecord]:
    pool = postgres_pool.get_default_pool()
    try:
        row = await pool.fetch_one(f"SELECT * FROM {_table()} WHERE id = $1", record_id)
    except Exception as e:
        raise ResultStoreError(f"Failed to load metric record {record_id}: {e}") from e
    return _row_to_record(row) if row is not None else None
