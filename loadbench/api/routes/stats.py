"""
API routes for persisted benchmark results (the `load_stats` history).
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter, HTTPException, Query

from loadbench.core import results_store
from loadbench.core.errors import ResultStoreError

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("")
async def list_stats(
    limit: Optional[int] = Query(None, ge=1, le=10_000),
) -> list[dict[str, Any]]:
    """All persisted records, newest first."""
    try:
        records = await results_store.list_records(limit=limit)
    except ResultStoreError as e:
        logger.error("Failed to list stats: %s", e)
        raise HTTPException(status_code=500, detail=str(e))
    return [r.model_dump(mode="json", by_alias=True) for r in records]


@router.get("/{record_id}")
async def get_stat(record_id: str) -> dict[str, Any]:
    try:
        rid = int(record_id)
    except ValueError:
        raise HTTPException(status_code=400, detail="Record id must be an integer")

    try:
        record = await results_store.get_record(rid)
    except ResultStoreError as e:
        logger.error("Failed to load stat %s: %s", rid, e)
        raise HTTPException(status_code=500, detail=str(e))
    if record is None:
        raise HTTPException(status_code=404, detail="Record not found")
    return record.model_dump(mode="json", by_alias=True)
