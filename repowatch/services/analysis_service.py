"""AnalysisService: analysis session lifecycle."""

from __future__ import annotations

import os
import uuid
from datetime import datetime, timedelta

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from repowatch.core.database import utcnow
from repowatch.dao.analysis_session_dao import AnalysisSessionDAO
from repowatch.models.analysis_session import AnalysisSession, AnalysisSessionPR
from repowatch.services import ConflictError, NotFoundError, ValidationError

log = structlog.get_logger("repowatch.service")

_TERMINAL = {"completed", "failed"}


class AnalysisService:
    """Stateless service for analysis sessions and their pull requests.

    A session still ``running`` after *stale_after* seconds (default
    ``REPOWATCH_ANALYSIS_STALE_AFTER``, one hour) belongs to a process that
    died mid-run; it no longer blocks new sessions and is closed as
    ``failed`` when the next one starts.
    """

    def __init__(
        self, analysis_session_dao: AnalysisSessionDAO, *, stale_after: float | None = None
    ) -> None:
        self._dao = analysis_session_dao
        self._stale_after = stale_after

    def _stale_cutoff(self) -> datetime:
        seconds = self._stale_after
        if seconds is None:
            seconds = float(os.environ.get("REPOWATCH_ANALYSIS_STALE_AFTER", "3600"))
        return utcnow() - timedelta(seconds=seconds)

    async def has_running(self, session: AsyncSession, repository_id: uuid.UUID) -> bool:
        """True while a live (not abandoned) session runs for the repository."""
        return await self._dao.has_running(
            session, repository_id, started_after=self._stale_cutoff()
        )

    async def list_for_repository(
        self, session: AsyncSession, repository_id: uuid.UUID
    ) -> list[AnalysisSession]:
        """Sessions of a repository, newest first."""
        return await self._dao.list_by_repository(session, repository_id)

    async def list_pull_requests(
        self, session: AsyncSession, analysis_session_id: uuid.UUID
    ) -> list[AnalysisSessionPR]:
        return await self._dao.list_pull_requests(session, analysis_session_id)

    async def start_session(
        self,
        session: AsyncSession,
        repository_id: uuid.UUID,
        *,
        pull_request_ids: list[uuid.UUID],
        session_type: str = "pr_auto",
        config: dict | None = None,
    ) -> AnalysisSession:
        """Create a running session with its pull requests attached as pending.

        Abandoned running sessions are failed first. Raises
        :class:`ConflictError` if a live one remains.
        """
        cutoff = self._stale_cutoff()
        abandoned = await self._dao.fail_running(
            session,
            repository_id,
            started_before=cutoff,
            error="abandoned: still running past the staleness cutoff",
        )
        if abandoned:
            log.warning(
                "analysis.abandoned",
                repository_id=str(repository_id),
                sessions=[str(a) for a in abandoned],
            )
        if await self._dao.has_running(session, repository_id, started_after=cutoff):
            raise ConflictError("an analysis session is already running for this repository")
        analysis = await self._dao.create(
            session,
            repository_id=repository_id,
            session_type=session_type,
            status="running",
            config=config,
            started_at=utcnow(),
        )
        await self._dao.add_pull_requests(session, analysis.id, pull_request_ids)
        return analysis

    async def record_pull_request(
        self,
        session: AsyncSession,
        analysis_session_id: uuid.UUID,
        pull_request_id: uuid.UUID,
        *,
        status: str,
        summary: str | None = None,
    ) -> None:
        await self._dao.update_pull_request(
            session, analysis_session_id, pull_request_id, status=status, summary=summary
        )

    async def finish_session(
        self,
        session: AsyncSession,
        analysis_session_id: uuid.UUID,
        *,
        status: str,
        summary: str | None = None,
        error: str | None = None,
    ) -> AnalysisSession:
        """Move a session to a terminal status.

        Raises :class:`ValidationError` for non-terminal target statuses and
        :class:`NotFoundError` for unknown sessions.
        """
        if status not in _TERMINAL:
            raise ValidationError(f"cannot finish session with status {status!r}")
        analysis = await self._dao.update(
            session,
            analysis_session_id,
            status=status,
            summary=summary,
            error=error,
            completed_at=utcnow(),
        )
        if analysis is None:
            raise NotFoundError("analysis session not found")
        return analysis
