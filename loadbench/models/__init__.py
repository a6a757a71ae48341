"""
Data models for LoadBench.
"""

from loadbench.models.metric_record import (
    NUMERIC_FIELDS,
    BenchmarkNotification,
    MetricRecord,
    NotificationData,
    RunStatus,
)
from loadbench.models.run_request import BenchmarkFormat, RunParams

__all__ = [
    "NUMERIC_FIELDS",
    "BenchmarkFormat",
    "BenchmarkNotification",
    "MetricRecord",
    "NotificationData",
    "RunParams",
    "RunStatus",
]
