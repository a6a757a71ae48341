from __future__ import annotations

import shlex
import sys

import pytest

from loadbench.core import process_runner

SCRIPT = """\
import sys
clients, threads, scale, duration, report = sys.argv[1:6]
print("starting", clients, threads, flush=True)
print("warning on stderr", file=sys.stderr, flush=True)
if clients != "0":
    with open(report, "w") as fh:
        fh.write(f"tps = {scale}.5\\n")
sys.exit(0 if clients != "0" else 4)
"""


@pytest.fixture
def command(tmp_path):
    script = tmp_path / "fake_bench.py"
    script.write_text(SCRIPT)
    return f"{shlex.quote(sys.executable)} {shlex.quote(str(script))}"


@pytest.mark.asyncio
async def test_run_script_captures_output_and_artifact(command, tmp_path):
    report = tmp_path / "reports" / "pgbench_r1.log"

    outcome = await process_runner.run_script(
        command, [10, 2, 100, 60, report], run_id="r1", report_path=report
    )

    assert outcome.exit_status == 0
    assert "starting 10 2" in outcome.stdout
    assert "warning on stderr" in outcome.stderr
    assert outcome.artifact == "tps = 100.5\n"


@pytest.mark.asyncio
async def test_stale_artifact_is_not_reused(command, tmp_path):
    report = tmp_path / "sysbench_r2.log"
    report.write_text("transactions: 999 (1.0 per sec.)\n")

    outcome = await process_runner.run_script(
        command, [0, 1, 1, 1, report], run_id="r2", report_path=report
    )

    assert outcome.exit_status == 4
    assert outcome.artifact is None
    assert "STDERR: warning on stderr" in outcome.diagnostics()


@pytest.mark.asyncio
async def test_launch_failure_maps_to_127(tmp_path):
    report = tmp_path / "missing.log"

    outcome = await process_runner.run_script(
        "/nonexistent/loadbench-tool", [1], run_id="r3", report_path=report
    )

    assert outcome.exit_status == process_runner.LAUNCH_FAILED_EXIT_STATUS
    assert outcome.artifact is None
    assert outcome.stderr
