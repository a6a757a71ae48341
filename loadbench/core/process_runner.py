"""
External benchmark process launcher.

Runs a provisioning/benchmark script as a black box and reports its exit code,
captured stdout/stderr, and the report artifact it leaves behind.
"""

from __future__ import annotations

import asyncio
import logging
import os
import shlex
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

logger = logging.getLogger(__name__)

LAUNCH_FAILED_EXIT_STATUS = 127


@dataclass(frozen=True)
class ProcessOutcome:
    exit_status: int
    stdout: str
    stderr: str
    artifact: Optional[str]

    def diagnostics(self) -> str:
        return f"STDERR: {self.stderr}\nSTDOUT: {self.stdout}"


async def _stream_pipe(
    stream: Optional[asyncio.StreamReader], run_id: str, sink: list[str]
) -> None:
    if stream is None:
        return
    while True:
        line = await stream.readline()
        if not line:
            break
        text = line.decode(errors="replace")
        sink.append(text)
        text = text.rstrip()
        if text:
            logger.info("[%s] %s", run_id, text)


def read_artifact(path: Path) -> Optional[str]:
    """Report contents, or None when the script left no file behind."""
    try:
        return path.read_text(encoding="utf-8", errors="replace")
    except FileNotFoundError:
        return None


async def run_script(
    command: str,
    args: Sequence[str],
    *,
    run_id: str,
    report_path: Path,
) -> ProcessOutcome:
    """
    Launch `command args...`, stream its output into the log, wait for exit.

    Any stale report at `report_path` is removed first so a failed run can never
    pick up a previous run's artifact. There is no timeout: a hung script blocks
    until it exits.
    """
    report_path.parent.mkdir(parents=True, exist_ok=True)
    report_path.unlink(missing_ok=True)

    cmd = [*shlex.split(command), *[str(a) for a in args]]
    env = dict(os.environ)
    env["PYTHONUNBUFFERED"] = "1"

    logger.info("⚡ [%s] Launching: %s", run_id, " ".join(cmd))
    try:
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            env=env,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        logger.error("[%s] Failed to launch %s: %s", run_id, cmd[0] if cmd else "", e)
        return ProcessOutcome(
            exit_status=LAUNCH_FAILED_EXIT_STATUS,
            stdout="",
            stderr=str(e),
            artifact=None,
        )

    out: list[str] = []
    err: list[str] = []
    await asyncio.gather(
        _stream_pipe(proc.stdout, run_id, out),
        _stream_pipe(proc.stderr, run_id, err),
    )
    exit_status = await proc.wait()
    logger.info("[%s] Process exit code: %s", run_id, exit_status)

    return ProcessOutcome(
        exit_status=exit_status,
        stdout="".join(out),
        stderr="".join(err),
        artifact=read_artifact(report_path),
    )
