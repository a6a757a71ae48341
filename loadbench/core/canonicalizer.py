"""
Report Canonicalizer

Turns the raw text report of one benchmark run into a MetricRecord.

Three report formats are supported, one per launched workload:
- pgbench (PostgreSQL, TPC-B-like)
- sysbench oltp_read_write (MySQL)
- the in-process TPC-B generator (MongoDB replica set)

Each format scans for fixed labels, then fills whatever the tool did not print
using the same ordered estimation rules:
  1. time taken from transactions / tps
  2. min/max/p95 latency as fixed multiples of the average
  3. read/write/other operation counts from a per-format multiplier table
  4. a per-format update/insert split of the write operations

Everything here is a pure function of its inputs: no I/O, clock or randomness.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, fields, replace
from typing import Callable, Optional, Pattern

from loadbench.models import BenchmarkFormat, MetricRecord, RunParams

# Latency multipliers applied to the average when a tool omits a field.
LATENCY_MIN_FACTOR = 0.5
LATENCY_MAX_FACTOR = 2.0
LATENCY_P95_FACTOR = 1.6


@dataclass(frozen=True)
class ExtractedMetrics:
    """Values scanned from a report, before estimation. Zero means absent."""

    transactions: int = 0
    tps: float = 0.0
    latency_avg: float = 0.0
    latency_min: float = 0.0
    latency_max: float = 0.0
    latency_p95: float = 0.0
    time_taken: float = 0.0


@dataclass(frozen=True)
class OperationMix:
    """Operations per transaction for a workload."""

    read: int
    write: int
    other: float


@dataclass(frozen=True)
class _LabelRule:
    label: str
    patterns: tuple[Pattern[str], ...]


SplitRule = Callable[[int, int], tuple[float, float]]


@dataclass(frozen=True)
class FormatProfile:
    database: str
    transaction_type: str
    rules: tuple[_LabelRule, ...]
    mix: OperationMix
    split: SplitRule


@dataclass(frozen=True)
class CanonicalizedReport:
    record: MetricRecord
    raw: str


def _rule(label: str, *patterns: str) -> _LabelRule:
    return _LabelRule(label, tuple(re.compile(p) for p in patterns))


def _updates_only(transactions: int, write_ops: int) -> tuple[float, float]:
    return float(write_ops), 0.0


def _oltp_split(transactions: int, write_ops: int) -> tuple[float, float]:
    # 60% updates / 40% inserts
    return write_ops * 0.6, write_ops * 0.4


def _history_insert_split(transactions: int, write_ops: int) -> tuple[float, float]:
    # One history insert per transaction; the rest are balance updates.
    return float(write_ops - transactions), float(transactions)


PROFILES: dict[BenchmarkFormat, FormatProfile] = {
    BenchmarkFormat.PGBENCH: FormatProfile(
        database="postgresql",
        transaction_type="tpc-b-like",
        rules=(
            _rule(
                "number of transactions actually processed:",
                r"number of transactions actually processed:\s*(?P<transactions>\d+)",
            ),
            _rule("tps =", r"tps = (?P<tps>[\d.]+)"),
            _rule("latency average =", r"latency average = (?P<latency_avg>[\d.]+)"),
            _rule("latency min =", r"latency min = (?P<latency_min>[\d.]+)"),
            _rule("latency max =", r"latency max = (?P<latency_max>[\d.]+)"),
            _rule(
                "latency percentile 95 =",
                r"latency percentile 95 = (?P<latency_p95>[\d.]+)",
            ),
            _rule("total time:", r"total time: (?P<time_taken>[\d.]+)"),
        ),
        mix=OperationMix(read=1, write=3, other=0.5),
        split=_updates_only,
    ),
    BenchmarkFormat.SYSBENCH: FormatProfile(
        database="mysql",
        transaction_type="oltp_read_write",
        rules=(
            _rule(
                "transactions:",
                r"transactions:\s+(?P<transactions>\d+)",
                r"\((?P<tps>[\d.]+)\s+per\s+sec\.\)",
            ),
            _rule("avg:", r"avg:\s+(?P<latency_avg>[\d.]+)"),
            _rule("min:", r"min:\s+(?P<latency_min>[\d.]+)"),
            _rule("max:", r"max:\s+(?P<latency_max>[\d.]+)"),
            _rule("95th percentile:", r"95th percentile:\s+(?P<latency_p95>[\d.]+)"),
            _rule("total time:", r"total time:\s+(?P<time_taken>[\d.]+)s"),
        ),
        mix=OperationMix(read=10, write=4, other=1),
        split=_oltp_split,
    ),
    BenchmarkFormat.MONGO_TPCB: FormatProfile(
        database="mongodb",
        transaction_type="TPC-B",
        rules=(
            _rule(
                "Total Transactions Processed:",
                r"Total Transactions Processed:\s*(?P<transactions>\d+)",
            ),
            _rule("TPS =", r"TPS = (?P<tps>[\d.]+)"),
            _rule("Latency Average =", r"Latency Average = (?P<latency_avg>[\d.]+)"),
            _rule("Duration:", r"Duration: (?P<time_taken>[\d.]+)"),
        ),
        mix=OperationMix(read=1, write=4, other=0.5),
        split=_history_insert_split,
    ),
}


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero (values are non-negative)."""
    return int(math.floor(value + 0.5))


def _to_number(field_name: str, text: str) -> float:
    try:
        value = float(text)
    except ValueError:
        return 0
    if math.isnan(value) or math.isinf(value):
        return 0
    return int(value) if field_name == "transactions" else value


def extract_metrics(fmt: BenchmarkFormat, text: str) -> ExtractedMetrics:
    """
    Scan report lines for the format's labels.

    The first rule whose label appears on a line handles that line. When a label
    appears on several lines the last value wins.
    """
    profile = PROFILES[fmt]
    found: dict[str, float] = {}
    for line in text.splitlines():
        for rule in profile.rules:
            if rule.label not in line:
                continue
            for pattern in rule.patterns:
                match = pattern.search(line)
                if match is None:
                    continue
                for name, value in match.groupdict().items():
                    if value is not None:
                        found[name] = _to_number(name, value)
            break
    known = {f.name for f in fields(ExtractedMetrics)}
    return ExtractedMetrics(**{k: v for k, v in found.items() if k in known})


def apply_estimations(metrics: ExtractedMetrics) -> ExtractedMetrics:
    """Estimation rules 1 and 2, in order, for fields still at zero."""
    time_taken = metrics.time_taken
    if not time_taken and metrics.tps > 0:
        time_taken = metrics.transactions / metrics.tps

    avg = metrics.latency_avg
    return replace(
        metrics,
        time_taken=time_taken,
        latency_min=metrics.latency_min or avg * LATENCY_MIN_FACTOR,
        latency_max=metrics.latency_max or avg * LATENCY_MAX_FACTOR,
        latency_p95=metrics.latency_p95 or avg * LATENCY_P95_FACTOR,
    )


def failed_record(fmt: BenchmarkFormat) -> MetricRecord:
    """All-zero record for a run that produced no usable report."""
    profile = PROFILES[fmt]
    return MetricRecord(
        database=profile.database,
        transaction_type=profile.transaction_type,
        error=1,
    )


def build_record(
    fmt: BenchmarkFormat, metrics: ExtractedMetrics, params: RunParams
) -> MetricRecord:
    profile = PROFILES[fmt]
    estimated = apply_estimations(metrics)

    transactions = estimated.transactions
    read_ops = transactions * profile.mix.read
    write_ops = transactions * profile.mix.write
    other_ops = round_half_up(transactions * profile.mix.other)
    total_ops = read_ops + write_ops + other_ops

    updates, inserts = profile.split(transactions, write_ops)

    return MetricRecord(
        database=profile.database,
        transaction_type=profile.transaction_type,
        scaling_factor=params.scale,
        clients=params.clients,
        threads=params.threads,
        tps=round_half_up(estimated.tps),
        latency_avg=round_half_up(estimated.latency_avg),
        latency_min=round_half_up(estimated.latency_min),
        latency_max=round_half_up(estimated.latency_max),
        latency_p95=round_half_up(estimated.latency_p95),
        transactions=transactions,
        read_operations=read_ops,
        write_operations=write_ops,
        other_operations=other_ops,
        total_operations=total_ops,
        time_taken=round_half_up(estimated.time_taken),
        estimated_updates=round_half_up(updates),
        estimated_inserts=round_half_up(inserts),
        error=0,
    )


def _failure_reason(raw_text: Optional[str], exit_status: int) -> Optional[str]:
    if exit_status != 0:
        return f"Script failed with exit code {exit_status}"
    if raw_text is None:
        return "Report artifact not found"
    if not raw_text.strip():
        return "Report artifact is empty"
    return None


def canonicalize(
    fmt: BenchmarkFormat,
    raw_text: Optional[str],
    exit_status: int,
    params: RunParams,
    *,
    diagnostics: str = "",
) -> CanonicalizedReport:
    """
    Convert one run's report into exactly one MetricRecord.

    A non-zero exit status or a missing/empty report skips extraction and yields
    the all-zero `error=1` record. `diagnostics` (captured stderr/stdout) is
    kept as the raw lineage in that case.
    """
    reason = _failure_reason(raw_text, exit_status)
    if reason is not None or raw_text is None:
        raw = f"Error: {reason}"
        if diagnostics:
            raw = f"{raw}\n{diagnostics}"
        return CanonicalizedReport(record=failed_record(fmt), raw=raw)

    record = build_record(fmt, extract_metrics(fmt, raw_text), params)
    return CanonicalizedReport(record=record, raw=raw_text)
