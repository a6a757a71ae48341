"""
Run Request Models

Benchmark formats and the parameters accepted for a single run.
"""

from enum import Enum

from pydantic import BaseModel, Field

from loadbench.config import settings


class BenchmarkFormat(str, Enum):
    """Which workload is launched, and therefore which report format is parsed."""

    PGBENCH = "pgbench"
    SYSBENCH = "sysbench"
    MONGO_TPCB = "mongo_tpcb"


class RunParams(BaseModel):
    """Parameters for one benchmark run."""

    clients: int = Field(
        default_factory=lambda: settings.DEFAULT_CLIENTS,
        ge=1,
        description="Concurrent clients",
    )
    threads: int = Field(
        default_factory=lambda: settings.DEFAULT_THREADS,
        ge=1,
        description="Worker threads (informational for the TPC-B generator)",
    )
    scale: int = Field(
        default_factory=lambda: settings.DEFAULT_SCALE,
        ge=1,
        description="Dataset scale factor",
    )
    duration_seconds: int = Field(
        default_factory=lambda: settings.DEFAULT_DURATION_SECONDS,
        ge=1,
        description="Measured run duration",
    )
