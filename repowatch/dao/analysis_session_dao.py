"""AnalysisSessionDAO: analysis_sessions + analysis_session_prs operations."""

import uuid
from datetime import datetime

from sqlalchemy import exists, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from repowatch.core.database import utcnow
from repowatch.dao.base import BaseDAO
from repowatch.models.analysis_session import AnalysisSession, AnalysisSessionPR


class AnalysisSessionDAO(BaseDAO[AnalysisSession]):
    model = AnalysisSession

    async def has_running(
        self,
        session: AsyncSession,
        repository_id: uuid.UUID,
        *,
        started_after: datetime | None = None,
    ) -> bool:
        conditions = [
            AnalysisSession.repository_id == repository_id,
            AnalysisSession.status == "running",
        ]
        if started_after is not None:
            conditions.append(AnalysisSession.started_at >= started_after)
        result = await session.execute(select(exists().where(*conditions)))
        return result.scalar_one()

    async def fail_running(
        self,
        session: AsyncSession,
        repository_id: uuid.UUID,
        *,
        started_before: datetime,
        error: str,
    ) -> list[uuid.UUID]:
        """Mark ``running`` sessions started before the cutoff as failed."""
        stmt = select(AnalysisSession).where(
            AnalysisSession.repository_id == repository_id,
            AnalysisSession.status == "running",
            or_(AnalysisSession.started_at.is_(None), AnalysisSession.started_at < started_before),
        )
        rows = list((await session.execute(stmt)).scalars().all())
        now = utcnow()
        for row in rows:
            self._patch(row, {"status": "failed", "error": error, "completed_at": now})
        await session.flush()
        return [row.id for row in rows]

    async def list_by_repository(
        self, session: AsyncSession, repository_id: uuid.UUID
    ) -> list[AnalysisSession]:
        stmt = (
            select(AnalysisSession)
            .where(AnalysisSession.repository_id == repository_id)
            .order_by(AnalysisSession.created_at.desc())
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    # ── session PRs ───────────────────────────────────────────────────────

    async def add_pull_requests(
        self,
        session: AsyncSession,
        analysis_session_id: uuid.UUID,
        pull_request_ids: list[uuid.UUID],
    ) -> list[AnalysisSessionPR]:
        rows = [
            AnalysisSessionPR(
                analysis_session_id=analysis_session_id,
                pull_request_id=pr_id,
                status="pending",
            )
            for pr_id in pull_request_ids
        ]
        session.add_all(rows)
        await session.flush()
        return rows

    async def list_pull_requests(
        self, session: AsyncSession, analysis_session_id: uuid.UUID
    ) -> list[AnalysisSessionPR]:
        stmt = select(AnalysisSessionPR).where(
            AnalysisSessionPR.analysis_session_id == analysis_session_id
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    async def update_pull_request(
        self,
        session: AsyncSession,
        analysis_session_id: uuid.UUID,
        pull_request_id: uuid.UUID,
        *,
        status: str,
        summary: str | None = None,
    ) -> None:
        stmt = select(AnalysisSessionPR).where(
            AnalysisSessionPR.analysis_session_id == analysis_session_id,
            AnalysisSessionPR.pull_request_id == pull_request_id,
        )
        row = (await session.execute(stmt)).scalars().first()
        if row is None:
            return
        row.status = status
        if summary is not None:
            row.summary = summary
        await session.flush()
