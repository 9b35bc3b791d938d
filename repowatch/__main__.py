"""Process entry point: python -m repowatch"""

from __future__ import annotations

import argparse
import asyncio
import signal

import structlog
from dotenv import load_dotenv

from repowatch.core.logging import setup_logging
from repowatch.deps import build_pr_sync_runner, create_schema, dispose_engine, init_session_factory
from repowatch.scheduler import create_scheduler

log = structlog.get_logger("repowatch")


async def _serve(*, once: bool, create: bool) -> None:
    factory = init_session_factory()
    if create:
        await create_schema()

    runner, trigger = build_pr_sync_runner(factory)
    scheduler = create_scheduler(factory, pr_sync_runner=runner)
    try:
        if once:
            processed = await scheduler.run_once()
            await trigger.drain()
            log.info("repowatch.once", **processed)
            return

        stop = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, stop.set)

        await scheduler.start()
        await stop.wait()
        await scheduler.stop()
        await trigger.cancel_all()
    finally:
        await dispose_engine()


def main() -> None:
    parser = argparse.ArgumentParser(description="Mirror open GitHub pull requests")
    parser.add_argument("--once", action="store_true", help="Run a single sync tick and exit")
    parser.add_argument(
        "--create-schema", action="store_true", help="Create missing tables before starting"
    )
    parser.add_argument("--log-level", help="Override REPOWATCH_LOG_LEVEL")
    args = parser.parse_args()

    load_dotenv()
    setup_logging(level=args.log_level)
    asyncio.run(_serve(once=args.once, create=args.create_schema))


if __name__ == "__main__":
    main()
