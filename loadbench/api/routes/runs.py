"""
API routes for launching benchmark runs.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel

from loadbench.core.run_coordinator import coordinator
from loadbench.models import BenchmarkFormat, RunParams

logger = logging.getLogger(__name__)

router = APIRouter()


class RunAcceptedResponse(BaseModel):
    message: str
    format: BenchmarkFormat
    run_id: str


@router.post(
    "/{fmt}",
    response_model=RunAcceptedResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def start_run(fmt: str, params: RunParams) -> RunAcceptedResponse:
    """
    Start one benchmark run in the background.

    The result arrives over `/ws/results` once it is persisted.
    """
    try:
        benchmark_format = BenchmarkFormat(fmt)
    except ValueError:
        allowed = ", ".join(f.value for f in BenchmarkFormat)
        raise HTTPException(
            status_code=400,
            detail=f"Unknown benchmark format '{fmt}' (expected one of: {allowed})",
        )

    run_id = coordinator.start(benchmark_format, params)
    logger.info("📥 Accepted %s run %s", benchmark_format.value, run_id)
    return RunAcceptedResponse(
        message=f"{benchmark_format.value} benchmark started",
        format=benchmark_format,
        run_id=run_id,
    )
