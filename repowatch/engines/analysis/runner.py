"""AnalysisRunner: one analysis pass over a repository's mirrored pull requests."""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import Awaitable, Callable

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from repowatch.models.analysis_session import AnalysisSession
from repowatch.models.pull_request import PullRequest
from repowatch.services import ConflictError
from repowatch.services.analysis_service import AnalysisService
from repowatch.services.pull_request_service import PullRequestService

log = structlog.get_logger("repowatch.engine.analysis")

# Per-PR analysis hook: returns a short summary (or None).
PullRequestAnalyzer = Callable[[PullRequest], Awaitable["str | None"]]


class AnalysisRunner:
    """Create an analysis session, run the analyzer over every stored PR, record the outcome."""

    def __init__(
        self,
        analysis_service: AnalysisService,
        pull_request_service: PullRequestService,
        analyzer: PullRequestAnalyzer | None = None,
    ) -> None:
        self._analysis_service = analysis_service
        self._pr_service = pull_request_service
        self._analyzer = analyzer

    async def run(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        repository_id: uuid.UUID,
    ) -> AnalysisSession | None:
        """Run one ``pr_auto`` session; returns None if one is already running.

        A failing analyzer marks its PR and the session ``failed`` and
        re-raises so the caller can log it. Cancellation (shutdown) also
        finishes the session as ``failed`` before propagating.
        """
        try:
            async with session_factory() as session:
                async with session.begin():
                    prs = await self._pr_service.list_for_repository(session, repository_id)
                    analysis = await self._analysis_service.start_session(
                        session,
                        repository_id,
                        pull_request_ids=[pr.id for pr in prs],
                        config={"pull_requests": [pr.number for pr in prs]},
                    )
        except ConflictError:
            log.info("analysis.already_running", repository_id=str(repository_id))
            return None

        log.info(
            "analysis.started",
            repository_id=str(repository_id),
            analysis_session_id=str(analysis.id),
            pull_requests=len(prs),
        )

        current: PullRequest | None = None
        try:
            summaries = []
            for current in prs:
                summary = await self._analyzer(current) if self._analyzer else None
                async with session_factory() as session:
                    async with session.begin():
                        await self._analysis_service.record_pull_request(
                            session,
                            analysis.id,
                            current.id,
                            status="completed",
                            summary=summary,
                        )
                if summary:
                    summaries.append(f"#{current.number}: {summary}")
            current = None
            async with session_factory() as session:
                async with session.begin():
                    analysis = await self._analysis_service.finish_session(
                        session,
                        analysis.id,
                        status="completed",
                        summary="\n".join(summaries) or None,
                    )
        except (Exception, asyncio.CancelledError) as exc:
            # cancellation included: the session must end in a terminal status
            await asyncio.shield(self._fail(session_factory, analysis.id, current, exc))
            raise

        log.info(
            "analysis.completed",
            repository_id=str(repository_id),
            analysis_session_id=str(analysis.id),
        )
        return analysis

    async def _fail(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        analysis_id: uuid.UUID,
        current: PullRequest | None,
        exc: BaseException,
    ) -> None:
        if isinstance(exc, asyncio.CancelledError):
            error = "cancelled before completion"
        else:
            error = f"{type(exc).__name__}: {exc}"
        async with session_factory() as session:
            async with session.begin():
                if current is not None:
                    await self._analysis_service.record_pull_request(
                        session, analysis_id, current.id, status="failed"
                    )
                await self._analysis_service.finish_session(
                    session, analysis_id, status="failed", error=error
                )
        log.warning("analysis.failed", analysis_session_id=str(analysis_id), error=error)
