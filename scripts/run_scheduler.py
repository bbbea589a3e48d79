#!/usr/bin/env python3
"""
Run the Moneyball scraper scheduler.

Commands:
    serve               Run the admin API (scheduler starts with the app)
    worker              Run the scheduler headless until interrupted
    trigger NAME        Fire one trigger now, optionally draining the queue
    init-db             Create any missing database tables

Usage:
    python scripts/run_scheduler.py serve
    python scripts/run_scheduler.py worker
    python scripts/run_scheduler.py trigger team_update --drain
    python scripts/run_scheduler.py init-db
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import signal
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from moneyball.config import settings
from moneyball.logging_setup import setup_logging

logger = logging.getLogger("run_scheduler")

TRIGGER_NAMES = (
    "basic_data_refresh",
    "detailed_player_update",
    "team_update",
    "tournament_update",
    "earnings_update",
)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Run the Moneyball scraper scheduler.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--log-level",
        default=settings.log_level,
        help="Logging level (default from LOG_LEVEL)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the admin API with uvicorn")
    serve.add_argument("--host", default=settings.api_host)
    serve.add_argument("--port", type=int, default=settings.api_port)
    serve.add_argument("--reload", action="store_true", default=settings.api_reload)

    sub.add_parser("worker", help="Run the scheduler without the API")

    trigger = sub.add_parser("trigger", help="Fire one trigger immediately")
    trigger.add_argument("name", choices=TRIGGER_NAMES)
    trigger.add_argument(
        "--drain",
        action="store_true",
        help="Process queued tasks until the queue is empty",
    )

    sub.add_parser("init-db", help="Create missing database tables")
    return parser


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run(
        "moneyball.web.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=args.log_level.lower(),
    )
    return 0


async def _worker() -> int:
    from moneyball.runtime import scheduler_runtime

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            # Windows event loops do not support signal handlers
            pass

    async with scheduler_runtime(settings) as scheduler:
        scheduler.init()
        logger.info("Scheduler worker running, press Ctrl+C to stop")
        try:
            await stop_event.wait()
        finally:
            scheduler.stop()
    return 0


async def _trigger(name: str, drain: bool) -> int:
    from moneyball.runtime import scheduler_runtime

    async with scheduler_runtime(settings) as scheduler:
        result = await scheduler.run_trigger(name)
        print(json.dumps({"trigger": name, "result": result}, default=str))

        if drain:
            processed = await scheduler.drain()
            logger.info("Drained %d tasks", processed)
        print(json.dumps(scheduler.get_queue_status()))
    return 0


def _init_db() -> int:
    from moneyball.db import create_tables

    create_tables()
    logger.info("Database tables created")
    return 0


def main() -> int:
    args = _build_parser().parse_args()
    setup_logging(args.log_level)

    if args.command == "serve":
        return _serve(args)
    if args.command == "worker":
        return asyncio.run(_worker())
    if args.command == "trigger":
        return asyncio.run(_trigger(args.name, args.drain))
    if args.command == "init-db":
        return _init_db()
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
