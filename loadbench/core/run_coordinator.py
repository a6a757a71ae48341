"""
Run Coordinator

Orchestrates one benchmark run end-to-end:

    launch -> wait -> canonicalize -> persist -> notify observers

pgbench and sysbench are external scripts driven through the process runner;
the MongoDB TPC-B workload runs in-process through the workload generator but
is reported through the same exit-status/artifact contract.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Optional

from loadbench.config import settings
from loadbench.connectors import mongo_target
from loadbench.core import process_runner, results_store
from loadbench.core.canonicalizer import canonicalize
from loadbench.core.errors import ResultStoreError
from loadbench.core.observer_hub import ObserverHub, hub
from loadbench.core.process_runner import ProcessOutcome
from loadbench.core.tpcb_generator import TpcbWorkloadGenerator
from loadbench.models import (
    BenchmarkFormat,
    BenchmarkNotification,
    MetricRecord,
    NotificationData,
    RunParams,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RunOutcome:
    run_id: str
    fmt: BenchmarkFormat
    record: MetricRecord
    notification: BenchmarkNotification
    delivered: int


class RunCoordinator:
    def __init__(
        self,
        *,
        observer_hub: Optional[ObserverHub] = None,
        reports_dir: Optional[Path] = None,
    ) -> None:
        self._hub = observer_hub or hub
        self._reports_dir = reports_dir
        self._background_tasks: set[asyncio.Task] = set()

    @property
    def reports_dir(self) -> Path:
        return self._reports_dir or Path(settings.REPORTS_DIR)

    def report_path(self, fmt: BenchmarkFormat, run_id: str) -> Path:
        return self.reports_dir / f"{fmt.value}_{run_id}.log"

    def _script_command(self, fmt: BenchmarkFormat) -> str:
        if fmt == BenchmarkFormat.PGBENCH:
            return settings.PGBENCH_COMMAND
        return settings.SYSBENCH_COMMAND

    async def launch(
        self, fmt: BenchmarkFormat, params: RunParams, run_id: str
    ) -> ProcessOutcome:
        """Run the workload for `fmt` and return its exit status and artifact."""
        if fmt == BenchmarkFormat.MONGO_TPCB:
            return await self._launch_mongo(params, run_id)

        return await process_runner.run_script(
            self._script_command(fmt),
            [
                params.clients,
                params.threads,
                params.scale,
                params.duration_seconds,
                self.report_path(fmt, run_id),
            ],
            run_id=run_id,
            report_path=self.report_path(fmt, run_id),
        )

    async def _launch_mongo(self, params: RunParams, run_id: str) -> ProcessOutcome:
        report_path = self.report_path(BenchmarkFormat.MONGO_TPCB, run_id)

        if settings.MONGO_PROVISION_COMMAND.strip():
            provision_path = self.reports_dir / f"mongo_provision_{run_id}.log"
            provisioned = await process_runner.run_script(
                settings.MONGO_PROVISION_COMMAND,
                [],
                run_id=run_id,
                report_path=provision_path,
            )
            if provisioned.exit_status != 0:
                return ProcessOutcome(
                    exit_status=provisioned.exit_status,
                    stdout=provisioned.stdout,
                    stderr=provisioned.stderr,
                    artifact=None,
                )

        target = mongo_target.get_target(max_pool_size=max(100, params.clients))
        try:
            await target.initialize()
            if settings.MONGO_INITIALIZE_DATASET:
                logger.info("[%s] Initializing TPC-B dataset (scale %d)", run_id, params.scale)
                await target.initialize_dataset(
                    params.scale, batch_size=settings.MONGO_INIT_BATCH_SIZE
                )
            generator = TpcbWorkloadGenerator(
                target,
                clients=params.clients,
                threads=params.threads,
                duration_seconds=params.duration_seconds,
                scale=params.scale,
            )
            result = await generator.run()
            report = result.render_report()
            report_path.parent.mkdir(parents=True, exist_ok=True)
            report_path.write_text(report, encoding="utf-8")
        except Exception as e:
            logger.error("❌ [%s] MongoDB benchmark failed: %s", run_id, e)
            return ProcessOutcome(exit_status=1, stdout="", stderr=str(e), artifact=None)
        finally:
            await target.close()

        return ProcessOutcome(exit_status=0, stdout="", stderr="", artifact=report)

    async def run(
        self,
        fmt: BenchmarkFormat,
        params: RunParams,
        *,
        run_id: Optional[str] = None,
    ) -> RunOutcome:
        """
        Execute one run and notify observers of its persisted record.

        Raises:
            ResultStoreError: the record could not be persisted; nothing is
                broadcast
        """
        run_id = run_id or uuid.uuid4().hex[:12]
        logger.info(
            "🚀 [%s] Starting %s run (clients=%d, threads=%d, scale=%d, %ds)",
            run_id,
            fmt.value,
            params.clients,
            params.threads,
            params.scale,
            params.duration_seconds,
        )

        outcome = await self.launch(fmt, params, run_id)
        report = canonicalize(
            fmt,
            outcome.artifact,
            outcome.exit_status,
            params,
            diagnostics=outcome.diagnostics(),
        )

        try:
            record = await results_store.insert_record(report.record)
        except ResultStoreError as e:
            logger.error("❌ [%s] Could not persist %s result: %s", run_id, fmt.value, e)
            raise

        if record.id is None:
            raise ResultStoreError("Persisted record has no id")

        notification = BenchmarkNotification(
            status=record.status,
            timestamp=datetime.now(UTC),
            record_id=record.id,
            data=NotificationData(raw=report.raw, parsed=record),
        )
        delivered = await self._hub.broadcast(notification.to_wire())

        logger.info(
            "✅ [%s] %s run %s (record %d, tps=%d)",
            run_id,
            fmt.value,
            record.status.value,
            record.id,
            record.tps,
        )
        return RunOutcome(
            run_id=run_id,
            fmt=fmt,
            record=record,
            notification=notification,
            delivered=delivered,
        )

    def _track_task(self, task: asyncio.Task) -> None:
        self._background_tasks.add(task)

        def _done(t: asyncio.Task) -> None:
            self._background_tasks.discard(t)
            try:
                exc = t.exception()
            except asyncio.CancelledError:
                return
            if exc is not None:
                logger.error("Background run failed: %s", exc, exc_info=exc)

        task.add_done_callback(_done)

    def start(self, fmt: BenchmarkFormat, params: RunParams) -> str:
        """Schedule a run in the background and return its run id."""
        run_id = uuid.uuid4().hex[:12]
        task = asyncio.create_task(
            self.run(fmt, params, run_id=run_id), name=f"run-{fmt.value}-{run_id}"
        )
        self._track_task(task)
        return run_id

    @property
    def active_runs(self) -> int:
        return len(self._background_tasks)

    async def shutdown(self, *, timeout_seconds: float = 5.0) -> None:
        """Cancel in-flight runs so the server can stop promptly."""
        tasks = list(self._background_tasks)
        if not tasks:
            return
        logger.info("🛑 Cancelling %d in-flight run(s)", len(tasks))
        for task in tasks:
            task.cancel()
        try:
            await asyncio.wait_for(
                asyncio.gather(*tasks, return_exceptions=True), timeout=timeout_seconds
            )
        except TimeoutError:
            logger.warning(
                "Run shutdown timed out after %.1fs; forcing continuation",
                timeout_seconds,
            )
        self._background_tasks.clear()


coordinator = RunCoordinator()
