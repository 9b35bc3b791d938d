"""AnalysisTrigger: fire-and-forget, single-flight analysis scheduling."""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import Awaitable, Callable

import structlog

log = structlog.get_logger("repowatch.engine.analysis")


class AnalysisTrigger:
    """Schedule an analysis workflow per repository without awaiting it.

    At most one workflow runs per repository. Requests that arrive while
    one is running are coalesced into a single follow-up run, so a burst of
    changes costs at most two runs.
    """

    def __init__(self, workflow: Callable[[uuid.UUID], Awaitable[object]]) -> None:
        self._workflow = workflow
        self._running: dict[uuid.UUID, asyncio.Task[None]] = {}
        self._rerun: set[uuid.UUID] = set()

    def is_running(self, repository_id: uuid.UUID) -> bool:
        return repository_id in self._running

    def request(self, repository_id: uuid.UUID) -> bool:
        """Ask for an analysis of *repository_id*.

        Returns True if a run was started or a follow-up run was queued,
        False if scheduling failed (logged, never raised).
        """
        if repository_id in self._running:
            self._rerun.add(repository_id)
            log.info("analysis.coalesced", repository_id=str(repository_id))
            return True
        try:
            task = asyncio.get_running_loop().create_task(
                self._drive(repository_id), name=f"analysis-{repository_id}"
            )
        except RuntimeError:
            log.exception("analysis.schedule_failed", repository_id=str(repository_id))
            return False
        self._running[repository_id] = task
        return True

    async def drain(self) -> None:
        """Wait until every scheduled run, follow-ups included, has finished."""
        while self._running:
            await asyncio.gather(*list(self._running.values()), return_exceptions=True)

    async def cancel_all(self) -> None:
        for task in list(self._running.values()):
            task.cancel()
        await asyncio.gather(*list(self._running.values()), return_exceptions=True)
        self._running.clear()
        self._rerun.clear()

    async def _drive(self, repository_id: uuid.UUID) -> None:
        try:
            while True:
                self._rerun.discard(repository_id)
                try:
                    await self._workflow(repository_id)
                except Exception:
                    log.exception("analysis.workflow_failed", repository_id=str(repository_id))
                if repository_id not in self._rerun:
                    break
        finally:
            self._running.pop(repository_id, None)
