"""
Metric Record Models

Defines the canonical result schema every benchmark run is normalized into,
plus the notification envelope broadcast to observers when a run finishes.
"""

from datetime import datetime
from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class RunStatus(str, Enum):
    """Terminal run status carried by notifications."""

    COMPLETED = "completed"
    FAILED = "failed"


# Every integer metric on the record, in persistence column order.
NUMERIC_FIELDS: tuple[str, ...] = (
    "scaling_factor",
    "clients",
    "threads",
    "tps",
    "latency_avg",
    "latency_min",
    "latency_max",
    "latency_p95",
    "transactions",
    "read_operations",
    "write_operations",
    "other_operations",
    "total_operations",
    "time_taken",
    "estimated_updates",
    "estimated_inserts",
    "error",
)


class MetricRecord(BaseModel):
    """
    Normalized result of one benchmark run.

    Built once by the canonicalizer and never mutated afterwards. The result
    sink returns a copy with `id` and `created_at` filled in.
    """

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )

    # Identity
    id: Optional[int] = Field(None, description="Assigned by the result sink")
    database: str = Field(..., description="Target kind (postgresql, mysql, mongodb)")
    transaction_type: str = Field(..., description="Workload label")

    # Run parameters
    scaling_factor: int = Field(0, ge=0, description="Dataset scale factor")
    clients: int = Field(0, ge=0, description="Concurrent clients")
    threads: int = Field(0, ge=0, description="Worker threads")

    # Throughput / latency (milliseconds)
    tps: int = Field(0, ge=0, description="Transactions per second")
    latency_avg: int = Field(0, ge=0, description="Average latency (ms)")
    latency_min: int = Field(0, ge=0, description="Min latency (ms)")
    latency_max: int = Field(0, ge=0, description="Max latency (ms)")
    latency_p95: int = Field(0, ge=0, description="95th percentile latency (ms)")

    # Volume
    transactions: int = Field(0, ge=0, description="Committed transactions")
    read_operations: int = Field(0, ge=0)
    write_operations: int = Field(0, ge=0)
    other_operations: int = Field(0, ge=0)
    total_operations: int = Field(0, ge=0)
    estimated_updates: int = Field(0, ge=0)
    estimated_inserts: int = Field(0, ge=0)

    # Timing
    time_taken: int = Field(0, ge=0, description="Run duration (seconds)")

    # Outcome
    error: Literal[0, 1] = Field(0, description="1 if the run produced no metrics")
    created_at: Optional[datetime] = Field(None, description="Set by the result sink")

    @property
    def status(self) -> RunStatus:
        return RunStatus.FAILED if self.error == 1 else RunStatus.COMPLETED

    def numeric_values(self) -> dict[str, int]:
        return {name: int(getattr(self, name)) for name in NUMERIC_FIELDS}


class NotificationData(BaseModel):
    raw: str = ""
    parsed: MetricRecord


class BenchmarkNotification(BaseModel):
    """
    Real-time completion/failure event for one persisted run.

    Serialize with `to_wire()` so the parsed record uses its camelCase names.
    """

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    type: Literal["benchmark_result"] = "benchmark_result"
    status: RunStatus
    timestamp: datetime
    record_id: int
    data: NotificationData

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)
