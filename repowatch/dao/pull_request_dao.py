"""PullRequestDAO: pull_requests table operations."""

import uuid
from collections.abc import Iterable

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from repowatch.dao.base import BaseDAO
from repowatch.models.pull_request import PullRequest


class PullRequestDAO(BaseDAO[PullRequest]):
    model = PullRequest

    # ── read ──────────────────────────────────────────────────────────────

    async def get_by_number(
        self, session: AsyncSession, repository_id: uuid.UUID, number: int
    ) -> PullRequest | None:
        return await self.get_by_field(session, repository_id=repository_id, number=number)

    async def list_by_repository(
        self,
        session: AsyncSession,
        repository_id: uuid.UUID,
        status: str | None = None,
    ) -> list[PullRequest]:
        """PRs of a repository ordered by number, optionally filtered by status."""
        stmt = select(PullRequest).where(PullRequest.repository_id == repository_id)
        if status is not None:
            stmt = stmt.where(PullRequest.status == status)
        stmt = stmt.order_by(PullRequest.number)
        result = await session.execute(stmt)
        return list(result.scalars().all())

    async def list_numbers(
        self,
        session: AsyncSession,
        repository_id: uuid.UUID,
        status: str | None = None,
    ) -> set[int]:
        """Return the stored PR numbers of a repository."""
        stmt = select(PullRequest.number).where(PullRequest.repository_id == repository_id)
        if status is not None:
            stmt = stmt.where(PullRequest.status == status)
        result = await session.execute(stmt)
        return set(result.scalars().all())

    async def aggregate_for_author(
        self,
        session: AsyncSession,
        repository_id: uuid.UUID,
        author_id: uuid.UUID,
    ) -> tuple[int, int]:
        """Return ``(pr_count, lines_changed)`` over the author's stored PRs.

        O(PRs by author in repository), served by the (repository_id,
        author_id) index.
        """
        stmt = select(
            func.count(PullRequest.id),
            func.coalesce(func.sum(PullRequest.additions + PullRequest.deletions), 0),
        ).where(
            PullRequest.repository_id == repository_id,
            PullRequest.author_id == author_id,
        )
        result = await session.execute(stmt)
        count, lines = result.one()
        return int(count), int(lines)

    # ── write ─────────────────────────────────────────────────────────────

    async def delete_not_in(
        self,
        session: AsyncSession,
        repository_id: uuid.UUID,
        keep_numbers: Iterable[int],
    ) -> list[tuple[int, uuid.UUID]]:
        """Delete every PR of the repository whose number is not in *keep_numbers*.

        Returns ``(number, author_id)`` for each deleted row.
        """
        keep = set(keep_numbers)
        stmt = select(PullRequest.id, PullRequest.number, PullRequest.author_id).where(
            PullRequest.repository_id == repository_id
        )
        result = await session.execute(stmt)
        doomed = [row for row in result.all() if row.number not in keep]
        if not doomed:
            return []

        await session.execute(
            delete(PullRequest)
            .where(PullRequest.id.in_([row.id for row in doomed]))
            .execution_options(synchronize_session="fetch")
        )
        return [(row.number, row.author_id) for row in doomed]
