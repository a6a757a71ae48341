from __future__ import annotations

from datetime import UTC, datetime

import pytest

from loadbench.core import results_store
from loadbench.core.errors import ResultStoreError
from loadbench.models import NUMERIC_FIELDS, MetricRecord


class _FakePool:
    def __init__(self, *, row=None, rows=None, error: Exception | None = None):
        self.row = row
        self.rows = rows or []
        self.error = error
        self.calls: list[tuple[str, tuple]] = []

    async def execute_query(self, query: str, *args):
        self.calls.append((query, args))
        return "CREATE TABLE"

    async def fetch_one(self, query: str, *args):
        self.calls.append((query, args))
        if self.error is not None:
            raise self.error
        return self.row

    async def fetch_all(self, query: str, *args):
        self.calls.append((query, args))
        if self.error is not None:
            raise self.error
        return self.rows


def _record(**overrides) -> MetricRecord:
    values = {
        "database": "postgresql",
        "transaction_type": "tpc-b-like",
        "clients": 10,
        "threads": 2,
        "scaling_factor": 100,
        "tps": 80,
        "transactions": 4821,
    }
    values.update(overrides)
    return MetricRecord(**values)


@pytest.mark.asyncio
async def test_insert_record_returns_copy_with_id(monkeypatch):
    created = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)
    pool = _FakePool(row={"id": 42, "created_at": created})
    monkeypatch.setattr(results_store.postgres_pool, "get_default_pool", lambda: pool)

    record = _record()
    stored = await results_store.insert_record(record)

    assert stored.id == 42
    assert stored.created_at == created
    assert record.id is None
    assert stored.transactions == 4821

    query, args = pool.calls[0]
    assert "INSERT INTO load_stats" in query
    assert "RETURNING id, created_at" in query
    assert len(args) == 2 + len(NUMERIC_FIELDS)
    assert args[:2] == ("postgresql", "tpc-b-like")


@pytest.mark.asyncio
async def test_insert_record_wraps_driver_errors(monkeypatch):
    pool = _FakePool(error=OSError("connection refused"))
    monkeypatch.setattr(results_store.postgres_pool, "get_default_pool", lambda: pool)

    with pytest.raises(ResultStoreError, match="connection refused"):
        await results_store.insert_record(_record())


@pytest.mark.asyncio
async def test_insert_record_without_returned_id_fails(monkeypatch):
    pool = _FakePool(row=None)
    monkeypatch.setattr(results_store.postgres_pool, "get_default_pool", lambda: pool)

    with pytest.raises(ResultStoreError):
        await results_store.insert_record(_record())


@pytest.mark.asyncio
async def test_list_records_newest_first_and_null_metrics(monkeypatch):
    rows = [
        {"id": 2, "database": "mysql", "transaction_type": "oltp_read_write", "tps": None},
        {"id": 1, "database": "postgresql", "transaction_type": "tpc-b-like", "tps": 80},
    ]
    pool = _FakePool(rows=rows)
    monkeypatch.setattr(results_store.postgres_pool, "get_default_pool", lambda: pool)

    records = await results_store.list_records(limit=5)

    assert [r.id for r in records] == [2, 1]
    assert records[0].tps == 0
    query, args = pool.calls[0]
    assert "ORDER BY id DESC" in query
    assert "LIMIT $1" in query
    assert args == (5,)


@pytest.mark.asyncio
async def test_get_record_missing_returns_none(monkeypatch):
    pool = _FakePool(row=None)
    monkeypatch.setattr(results_store.postgres_pool, "get_default_pool", lambda: pool)

    assert await results_store.get_record(99) is None
    assert pool.calls[0][1] == (99,)


@pytest.mark.asyncio
async def test_ensure_schema_creates_all_metric_columns(monkeypatch):
    pool = _FakePool()
    monkeypatch.setattr(results_store.postgres_pool, "get_default_pool", lambda: pool)

    await results_store.ensure_schema()

    query, _ = pool.calls[0]
    assert "CREATE TABLE IF NOT EXISTS load_stats" in query
    for name in NUMERIC_FIELDS:
        assert f"{name} INTEGER" in query
    assert "created_at TIMESTAMPTZ" in query
