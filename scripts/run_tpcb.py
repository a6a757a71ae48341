#!/usr/bin/env python3
"""Run the TPC-B-like workload against a MongoDB replica set and write the report."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from loadbench.config import settings
from loadbench.connectors.mongo_target import MongoTarget
from loadbench.core.errors import ConfigurationError
from loadbench.core.tpcb_generator import TpcbWorkloadGenerator

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Run the TPC-B-like MongoDB workload and write its text report."
    )
    parser.add_argument("--uri", default=settings.MONGO_URI, help="MongoDB connection string.")
    parser.add_argument(
        "--database", default=settings.MONGO_DATABASE, help="Database holding the collections."
    )
    parser.add_argument("--clients", type=int, default=settings.DEFAULT_CLIENTS)
    parser.add_argument("--threads", type=int, default=settings.DEFAULT_THREADS)
    parser.add_argument("--scale", type=int, default=settings.DEFAULT_SCALE)
    parser.add_argument(
        "--duration",
        type=int,
        default=settings.DEFAULT_DURATION_SECONDS,
        help="Run length in seconds.",
    )
    parser.add_argument(
        "--init",
        action="store_true",
        help="Drop and repopulate the TPC-B collections before running.",
    )
    parser.add_argument(
        "--report",
        type=Path,
        default=Path("mongobench_results.log"),
        help="Where to write the report artifact.",
    )
    return parser


async def _run(args: argparse.Namespace) -> int:
    target = MongoTarget(
        args.uri,
        args.database,
        server_selection_timeout_ms=settings.MONGO_SERVER_SELECTION_TIMEOUT_MS,
        socket_timeout_ms=settings.MONGO_SOCKET_TIMEOUT_MS,
        max_pool_size=max(100, args.clients),
    )
    try:
        await target.initialize()
        if args.init:
            await target.initialize_dataset(
                args.scale, batch_size=settings.MONGO_INIT_BATCH_SIZE
            )
        generator = TpcbWorkloadGenerator(
            target,
            clients=args.clients,
            threads=args.threads,
            duration_seconds=args.duration,
            scale=args.scale,
        )
        result = await generator.run()
    except (ConfigurationError, ValueError) as e:
        logger.error("❌ %s", e)
        return 1
    finally:
        await target.close()

    report = result.render_report()
    args.report.parent.mkdir(parents=True, exist_ok=True)
    args.report.write_text(report, encoding="utf-8")
    print(report, end="")
    logger.info("✅ Report written to %s", args.report)
    return 0


def main() -> int:
    parser = _build_parser()
    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO)
    try:
        return asyncio.run(_run(args))
    except KeyboardInterrupt:
        print("[tpcb] interrupted", file=sys.stderr)
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
