"""
TPC-B-like Workload Generator

Drives a fixed multi-statement banking transaction against a transactional
store that has no native benchmarking tool (a MongoDB replica set).

Manages:
- a pool of concurrent simulated clients sharing one deadline
- per-client latency sample sets and statement counters
- a single reduction of all samples into the textual report that the
  canonicalizer parses

Each client accumulates into its own LatencySampleSet; the sets are merged
only after every client has finished (asyncio.gather is the join barrier).
"""

from __future__ import annotations

import asyncio
import logging
import math
import random
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Iterator, Optional, Protocol

logger = logging.getLogger(__name__)

ACCOUNTS_PER_SCALE = 100_000
TELLERS_PER_SCALE = 10
MAX_DELTA = 5000

STATEMENT_ROLES: tuple[str, ...] = (
    "begin",
    "updateAccount",
    "selectAccount",
    "updateTeller",
    "updateBranch",
    "insertHistory",
    "commit",
)


class TpcbTransaction(Protocol):
    async def update_account(self, aid: int, delta: int) -> None: ...

    async def select_account(self, aid: int) -> Any: ...

    async def update_teller(self, tid: int, delta: int) -> None: ...

    async def update_branch(self, bid: int, delta: int) -> None: ...

    async def insert_history(self, tid: int, bid: int, aid: int, delta: int) -> None: ...

    async def commit(self) -> None: ...

    async def abort(self) -> None: ...

    async def close(self) -> None: ...


class TpcbTarget(Protocol):
    async def check_ready(self) -> None: ...

    async def begin(self) -> TpcbTransaction: ...


@dataclass
class LatencySampleSet:
    """Elapsed times in milliseconds, per statement role and per transaction."""

    statements: dict[str, list[float]] = field(
        default_factory=lambda: {role: [] for role in STATEMENT_ROLES}
    )
    transactions: list[float] = field(default_factory=list)

    def record(self, role: str, elapsed_ms: float) -> None:
        self.statements[role].append(elapsed_ms)

    def record_transaction(self, elapsed_ms: float) -> None:
        self.transactions.append(elapsed_ms)

    def merge(self, other: "LatencySampleSet") -> None:
        for role, samples in other.statements.items():
            self.statements[role].extend(samples)
        self.transactions.extend(other.transactions)


@dataclass
class ClientTally:
    """Everything one client observed; owned by that client until the join."""

    samples: LatencySampleSet = field(default_factory=LatencySampleSet)
    committed: int = 0
    aborted: int = 0
    queries: int = 0
    updates: int = 0
    inserts: int = 0

    @property
    def attempted(self) -> int:
        return self.committed + self.aborted

    def merge(self, other: "ClientTally") -> None:
        self.samples.merge(other.samples)
        self.committed += other.committed
        self.aborted += other.aborted
        self.queries += other.queries
        self.updates += other.updates
        self.inserts += other.inserts


@dataclass(frozen=True)
class LatencyStats:
    avg: float
    stddev: float
    count: int


def reduce_samples(samples: list[float]) -> LatencyStats:
    """Mean and population standard deviation; zeros for an empty set."""
    if not samples:
        return LatencyStats(avg=0.0, stddev=0.0, count=0)
    n = len(samples)
    avg = sum(samples) / n
    variance = sum((x - avg) ** 2 for x in samples) / n
    return LatencyStats(avg=avg, stddev=math.sqrt(variance), count=n)


@dataclass
class TpcbResult:
    """Merged outcome of one generator run."""

    clients: int
    threads: int
    scale: int
    duration_seconds: int
    tally: ClientTally
    transaction_stats: LatencyStats
    statement_stats: dict[str, LatencyStats]

    @property
    def tps(self) -> float:
        return self.tally.committed / self.duration_seconds

    def render_report(self) -> str:
        """Plain-text report; label strings are parsed by the canonicalizer."""
        t = self.tally
        lines = [
            "MongoDB Benchmark Results:",
            "Transaction Type: TPC-B (Sort of)",
            f"Scaling Factor: {self.scale}",
            "Query Mode: Simple",
            f"Number of Clients: {self.clients}",
            f"Number of Threads: {self.threads}",
            f"Duration: {self.duration_seconds} s",
            f"Total Transactions Processed: {t.committed}",
            f"Total Transactions Attempted: {t.attempted}",
            f"Total Transactions Aborted: {t.aborted}",
            f"Total Queries Executed: {t.queries}",
            f"Total Updates Executed: {t.updates}",
            f"Total Inserts Executed: {t.inserts}",
            f"Latency Average = {self.transaction_stats.avg:.3f} ms",
            f"Latency Stddev = {self.transaction_stats.stddev:.3f} ms",
            f"TPS = {self.tps:.6f} (Including Connection Time)",
            "Statement Latencies:",
        ]
        for role in STATEMENT_ROLES:
            s = self.statement_stats[role]
            lines.append(
                f"  Statement {role}: avg = {s.avg:.3f} ms, "
                f"stddev = {s.stddev:.3f} ms, count = {s.count}"
            )
        return "\n".join(lines) + "\n"


class TpcbWorkloadGenerator:
    """
    Runs `clients` concurrent TPC-B-like transaction loops until a shared deadline.
    """

    def __init__(
        self,
        target: TpcbTarget,
        *,
        clients: int,
        threads: int,
        duration_seconds: int,
        scale: int,
        rng: Optional[random.Random] = None,
    ):
        """
        Args:
            target: Store that can begin atomic transactions
            clients: Number of concurrent simulated clients (>= 1)
            threads: Reported only; scheduling is one task per client
            duration_seconds: Wall-clock run length (>= 1)
            scale: Scale factor sizing the account/teller/branch key spaces (>= 1)
            rng: Random source for key and delta selection
        """
        if clients < 1:
            raise ValueError("clients must be >= 1")
        if duration_seconds < 1:
            raise ValueError("duration_seconds must be >= 1")
        if scale < 1:
            raise ValueError("scale must be >= 1")

        self.target = target
        self.clients = clients
        self.threads = threads
        self.duration_seconds = duration_seconds
        self.scale = scale
        self._rng = rng or random.Random()

    async def run(self) -> TpcbResult:
        """
        Check the target, run every client to the deadline, then reduce once.

        Raises:
            ConfigurationError: the target failed its readiness check; no client
                was started
        """
        logger.info("🚀 Checking replica set...")
        await self.target.check_ready()

        logger.info(
            "📊 Starting TPC-B run: %d clients, %ds, scale %d",
            self.clients,
            self.duration_seconds,
            self.scale,
        )
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.duration_seconds

        tallies = await asyncio.gather(
            *(self._client(client_id, deadline) for client_id in range(self.clients))
        )

        merged = ClientTally()
        for tally in tallies:
            merged.merge(tally)

        result = TpcbResult(
            clients=self.clients,
            threads=self.threads,
            scale=self.scale,
            duration_seconds=self.duration_seconds,
            tally=merged,
            transaction_stats=reduce_samples(merged.samples.transactions),
            statement_stats={
                role: reduce_samples(merged.samples.statements[role])
                for role in STATEMENT_ROLES
            },
        )
        logger.info(
            "✅ TPC-B run finished: %d committed, %d aborted, %.2f tps",
            merged.committed,
            merged.aborted,
            result.tps,
        )
        return result

    async def _client(self, client_id: int, deadline: float) -> ClientTally:
        loop = asyncio.get_running_loop()
        tally = ClientTally()
        while loop.time() < deadline:
            await self._run_transaction(client_id, tally)
        return tally

    @staticmethod
    @contextmanager
    def _timed(samples: LatencySampleSet, role: str) -> Iterator[None]:
        start = time.perf_counter()
        try:
            yield
        finally:
            samples.record(role, (time.perf_counter() - start) * 1000.0)

    async def _run_transaction(self, client_id: int, tally: ClientTally) -> None:
        rng = self._rng
        aid = rng.randint(1, ACCOUNTS_PER_SCALE * self.scale)
        bid = rng.randint(1, self.scale)
        tid = rng.randint(1, TELLERS_PER_SCALE * self.scale)
        delta = rng.randint(-MAX_DELTA, MAX_DELTA)

        samples = tally.samples
        txn: Optional[TpcbTransaction] = None
        in_transaction = False
        txn_start = time.perf_counter()

        try:
            with self._timed(samples, "begin"):
                txn = await self.target.begin()
            in_transaction = True

            with self._timed(samples, "updateAccount"):
                await txn.update_account(aid, delta)
            tally.updates += 1

            with self._timed(samples, "selectAccount"):
                await txn.select_account(aid)
            tally.queries += 1

            with self._timed(samples, "updateTeller"):
                await txn.update_teller(tid, delta)
            tally.updates += 1

            with self._timed(samples, "updateBranch"):
                await txn.update_branch(bid, delta)
            tally.updates += 1

            with self._timed(samples, "insertHistory"):
                await txn.insert_history(tid, bid, aid, delta)
            tally.inserts += 1

            with self._timed(samples, "commit"):
                await txn.commit()
            in_transaction = False

            samples.record_transaction((time.perf_counter() - txn_start) * 1000.0)
            tally.committed += 1
        except Exception as e:
            tally.aborted += 1
            logger.warning("❌ Client %d transaction error: %s", client_id, e)
            if txn is not None and in_transaction:
                try:
                    await txn.abort()
                except Exception as abort_error:
                    logger.debug(
                        "Client %d abort failed: %s", client_id, abort_error
                    )
        finally:
            if txn is not None:
                try:
                    await txn.close()
                except Exception as close_error:
                    logger.debug("Client %d session close failed: %s", client_id, close_error)
