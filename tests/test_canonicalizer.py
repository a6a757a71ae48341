from __future__ import annotations

import pytest

from loadbench.core.canonicalizer import (
    PROFILES,
    apply_estimations,
    canonicalize,
    extract_metrics,
    round_half_up,
)
from loadbench.models import NUMERIC_FIELDS, BenchmarkFormat, RunParams, RunStatus

PARAMS = RunParams(clients=10, threads=2, scale=100, duration_seconds=60)

PGBENCH_REPORT = """\
pgbench (14.10 (Debian 14.10-1.pgdg120+1))
starting vacuum...end.
progress: 10.0 s, 79.9 tps, lat 124.812 ms stddev 40.113
progress: 20.0 s, 81.2 tps, lat 123.001 ms stddev 38.561
transaction type: <builtin: TPC-B (sort of)>
scaling factor: 100
query mode: simple
number of clients: 10
number of threads: 2
duration: 60 s
number of transactions actually processed: 4821
latency average = 124.447 ms
latency stddev = 39.870 ms
initial connection time = 12.412 ms
tps = 80.353718 (without initial connection time)
"""

SYSBENCH_REPORT = """\
SQL statistics:
    queries performed:
        read:                            140000
        write:                           40000
        other:                           20000
        total:                           200000
    transactions:                        10000  (166.64 per sec.)
    queries:                             200000 (3332.80 per sec.)
    ignored errors:                      0      (0.00 per sec.)
    reconnects:                          0      (0.00 per sec.)

General statistics:
    total time:                          60.0080s
    total number of events:              10000

Latency (ms):
         min:                                    4.12
         avg:                                   11.99
         max:                                  145.37
         95th percentile:                       20.37
         sum:                               119936.04
"""

MONGO_REPORT = """\
MongoDB Benchmark Results:
Transaction Type: TPC-B (Sort of)
Scaling Factor: 100
Query Mode: Simple
Number of Clients: 10
Number of Threads: 2
Duration: 60 s
Total Transactions Processed: 1200
Total Transactions Attempted: 1250
Total Transactions Aborted: 50
Total Queries Executed: 1230
Total Updates Executed: 3650
Total Inserts Executed: 1200
Latency Average = 25.400 ms
Latency Stddev = 3.100 ms
TPS = 20.000000 (Including Connection Time)
Statement Latencies:
  Statement begin: avg = 0.120 ms, stddev = 0.010 ms, count = 1250
"""


def test_pgbench_report_is_parsed_and_estimated():
    report = canonicalize(BenchmarkFormat.PGBENCH, PGBENCH_REPORT, 0, PARAMS)
    r = report.record

    assert r.database == "postgresql"
    assert r.transaction_type == "tpc-b-like"
    assert (r.clients, r.threads, r.scaling_factor) == (10, 2, 100)
    assert r.transactions == 4821
    assert r.tps == 80
    assert r.latency_avg == 124
    # min/max/p95 are never printed by pgbench and come from the average
    assert r.latency_min == 62
    assert r.latency_max == 249
    assert r.latency_p95 == 199
    assert r.time_taken == 60
    assert r.read_operations == 4821
    assert r.write_operations == 14463
    assert r.other_operations == 2411
    assert r.total_operations == 4821 + 14463 + 2411
    assert r.estimated_updates == 14463
    assert r.estimated_inserts == 0
    assert r.error == 0
    assert r.status == RunStatus.COMPLETED
    assert report.raw == PGBENCH_REPORT


def test_pgbench_transactions_and_tps_only():
    text = "number of transactions actually processed: 4821\ntps = 80.35\n"
    r = canonicalize(BenchmarkFormat.PGBENCH, text, 0, PARAMS).record

    assert r.transactions == 4821
    assert r.tps == 80
    assert r.time_taken == 60
    assert (r.latency_avg, r.latency_min, r.latency_max, r.latency_p95) == (0, 0, 0, 0)


def test_sysbench_report_is_parsed():
    r = canonicalize(BenchmarkFormat.SYSBENCH, SYSBENCH_REPORT, 0, PARAMS).record

    assert r.database == "mysql"
    assert r.transaction_type == "oltp_read_write"
    assert r.transactions == 10000
    assert r.tps == 167
    assert r.time_taken == 60
    assert (r.latency_min, r.latency_avg, r.latency_max, r.latency_p95) == (4, 12, 145, 20)
    assert r.read_operations == 100000
    assert r.write_operations == 40000
    assert r.other_operations == 10000
    assert r.total_operations == 150000
    assert r.estimated_updates == 24000
    assert r.estimated_inserts == 16000


def test_mongo_report_is_parsed():
    r = canonicalize(BenchmarkFormat.MONGO_TPCB, MONGO_REPORT, 0, PARAMS).record

    assert r.database == "mongodb"
    assert r.transaction_type == "TPC-B"
    # "processed" is the committed count; attempted/aborted are informational
    assert r.transactions == 1200
    assert r.tps == 20
    assert r.time_taken == 60
    assert r.latency_avg == 25
    assert (r.latency_min, r.latency_max, r.latency_p95) == (13, 51, 41)
    assert r.read_operations == 1200
    assert r.write_operations == 4800
    assert r.other_operations == 600
    assert r.total_operations == 6600
    assert r.estimated_updates == 3600
    assert r.estimated_inserts == 1200


@pytest.mark.parametrize(
    "fmt,text",
    [
        (BenchmarkFormat.PGBENCH, PGBENCH_REPORT),
        (BenchmarkFormat.SYSBENCH, SYSBENCH_REPORT),
        (BenchmarkFormat.MONGO_TPCB, MONGO_REPORT),
    ],
)
def test_record_consistency(fmt, text):
    r = canonicalize(fmt, text, 0, PARAMS).record

    assert r.total_operations == r.read_operations + r.write_operations + r.other_operations
    if r.latency_avg:
        assert r.latency_min <= r.latency_avg <= r.latency_max
        assert r.latency_p95 <= r.latency_max
    assert all(value >= 0 for value in r.numeric_values().values())


@pytest.mark.parametrize("fmt", list(BenchmarkFormat))
def test_canonicalize_is_idempotent(fmt):
    text = {
        BenchmarkFormat.PGBENCH: PGBENCH_REPORT,
        BenchmarkFormat.SYSBENCH: SYSBENCH_REPORT,
        BenchmarkFormat.MONGO_TPCB: MONGO_REPORT,
    }[fmt]
    first = canonicalize(fmt, text, 0, PARAMS)
    second = canonicalize(fmt, text, 0, PARAMS)
    assert first == second


def test_split_formulas_per_format():
    t = 1000
    pg = PROFILES[BenchmarkFormat.PGBENCH]
    sb = PROFILES[BenchmarkFormat.SYSBENCH]
    mg = PROFILES[BenchmarkFormat.MONGO_TPCB]

    assert pg.split(t, t * pg.mix.write) == (3000.0, 0.0)
    assert sb.split(t, t * sb.mix.write) == pytest.approx((2400.0, 1600.0))
    assert mg.split(t, t * mg.mix.write) == (3000.0, 1000.0)


def test_nonzero_exit_yields_failed_record_with_diagnostics():
    report = canonicalize(
        BenchmarkFormat.PGBENCH,
        None,
        1,
        PARAMS,
        diagnostics="STDERR: docker: not found\nSTDOUT: ",
    )
    r = report.record

    assert r.error == 1
    assert r.status == RunStatus.FAILED
    assert r.database == "postgresql"
    for name in NUMERIC_FIELDS:
        if name != "error":
            assert getattr(r, name) == 0, name
    assert report.raw.startswith("Error: Script failed with exit code 1")
    assert "docker: not found" in report.raw


def test_nonzero_exit_ignores_a_present_artifact():
    r = canonicalize(BenchmarkFormat.PGBENCH, PGBENCH_REPORT, 2, PARAMS).record
    assert r.error == 1
    assert r.transactions == 0


@pytest.mark.parametrize(
    "text,reason",
    [(None, "Report artifact not found"), ("   \n", "Report artifact is empty")],
)
def test_missing_or_empty_artifact_is_failure(text, reason):
    report = canonicalize(
        BenchmarkFormat.SYSBENCH,
        text,
        0,
        PARAMS,
        diagnostics="STDERR: connection refused\nSTDOUT: ",
    )
    assert report.record.error == 1
    assert report.raw == f"Error: {reason}\nSTDERR: connection refused\nSTDOUT: "


def test_failure_without_diagnostics_keeps_reason_only():
    report = canonicalize(BenchmarkFormat.SYSBENCH, None, 0, PARAMS)
    assert report.raw == "Error: Report artifact not found"


def test_unlabelled_text_is_not_an_error():
    r = canonicalize(BenchmarkFormat.SYSBENCH, "nothing useful here\n", 0, PARAMS).record
    assert r.error == 0
    assert r.transactions == 0
    assert r.total_operations == 0


def test_last_occurrence_of_a_label_wins():
    text = "tps = 10.0 (including connections establishing)\ntps = 12.6 (excluding)\n"
    assert extract_metrics(BenchmarkFormat.PGBENCH, text).tps == 12.6


def test_estimations_keep_printed_values():
    metrics = extract_metrics(BenchmarkFormat.SYSBENCH, SYSBENCH_REPORT)
    estimated = apply_estimations(metrics)
    assert estimated.latency_min == metrics.latency_min
    assert estimated.time_taken == metrics.time_taken


def test_time_taken_not_estimated_without_tps():
    text = "number of transactions actually processed: 100\n"
    r = canonicalize(BenchmarkFormat.PGBENCH, text, 0, PARAMS).record
    assert r.time_taken == 0
    assert r.transactions == 100


@pytest.mark.parametrize("value,expected", [(0.5, 1), (1.49, 1), (2.5, 3), (80.35, 80)])
def test_round_half_up(value, expected):
    assert round_half_up(value) == expected
