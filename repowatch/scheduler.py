"""Scheduler: periodic engine ticks, woken early by an explicit trigger."""

from __future__ import annotations

import asyncio
import os
import time
from collections.abc import Awaitable, Callable

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from repowatch.engines.pr_sync.runner import PRSyncRunner

logger = structlog.get_logger("repowatch.scheduler")


class EngineLoop:
    """One engine ticking every *interval* seconds, or sooner when triggered.

    ``run_fn`` returns how many items it processed; a raised exception is
    logged and the loop keeps going.
    """

    def __init__(
        self,
        name: str,
        run_fn: Callable[[], Awaitable[int]],
        interval: float,
    ) -> None:
        self.name = name
        self.run_fn = run_fn
        self.interval = interval
        self.trigger = asyncio.Event()
        self.ticks = 0
        self.last_processed: int | None = None

    async def tick(self) -> int:
        """Run the engine once; a failure counts as 0 processed."""
        self.ticks += 1
        started = time.monotonic()
        try:
            processed = await self.run_fn()
        except Exception:
            logger.exception("engine.error", engine=self.name)
            processed = 0
        else:
            logger.info(
                "engine.cycle",
                engine=self.name,
                processed=processed,
                duration_ms=int((time.monotonic() - started) * 1000),
            )
        self.last_processed = processed
        return processed

    async def loop(self) -> None:
        while True:
            try:
                await asyncio.wait_for(self.trigger.wait(), timeout=self.interval)
                self.trigger.clear()
            except asyncio.TimeoutError:
                pass
            await self.tick()


class Scheduler:
    """Owns the asyncio tasks of every EngineLoop."""

    def __init__(self, loops: list[EngineLoop]) -> None:
        self._loops = loops
        self._tasks: list[asyncio.Task[None]] = []

    @property
    def loops(self) -> list[EngineLoop]:
        return list(self._loops)

    async def start(self) -> None:
        """Start all loops; the first one runs immediately."""
        self._tasks = [
            asyncio.create_task(loop.loop(), name=f"engine-{loop.name}") for loop in self._loops
        ]
        if self._loops:
            self._loops[0].trigger.set()
        logger.info("scheduler.started", engines=[loop.name for loop in self._loops])

    async def run_once(self) -> dict[str, int]:
        """Tick every loop once, in order, without starting background tasks."""
        return {loop.name: await loop.tick() for loop in self._loops}

    async def stop(self) -> None:
        """Cancel all loops and wait for them to exit."""
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()
        logger.info("scheduler.stopped")


def _env_float(key: str, default: float) -> float:
    return float(os.environ.get(key, default))


def create_scheduler(
    session_factory: async_sessionmaker[AsyncSession],
    *,
    pr_sync_runner: PRSyncRunner,
) -> Scheduler:
    """Build the scheduler: one ``pr_sync`` loop over every linked repository.

    The loop reports the number of repositories whose open-PR set changed.
    """
    sync_interval = _env_float("REPOWATCH_SYNC_INTERVAL", 60)

    async def _sync_repositories() -> int:
        results = await pr_sync_runner.run_all(session_factory)
        return sum(1 for r in results if r.changed)

    return Scheduler([EngineLoop("pr_sync", _sync_repositories, sync_interval)])
