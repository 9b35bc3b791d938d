"""RepoContributorDAO: repo_contributors table operations."""

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from repowatch.dao.base import BaseDAO
from repowatch.models.contributor import Contributor
from repowatch.models.repo_contributor import RepoContributor


class RepoContributorDAO(BaseDAO[RepoContributor]):
    model = RepoContributor

    async def get_pair(
        self,
        session: AsyncSession,
        repository_id: uuid.UUID,
        contributor_id: uuid.UUID,
    ) -> RepoContributor | None:
        return await self.get_by_field(
            session, repository_id=repository_id, contributor_id=contributor_id
        )

    async def list_by_repository(
        self, session: AsyncSession, repository_id: uuid.UUID
    ) -> list[tuple[RepoContributor, Contributor]]:
        """Link rows joined with contributor identity, busiest first."""
        stmt = (
            select(RepoContributor, Contributor)
            .join(Contributor, Contributor.id == RepoContributor.contributor_id)
            .where(RepoContributor.repository_id == repository_id)
            .order_by(RepoContributor.pr_count.desc(), Contributor.login)
        )
        result = await session.execute(stmt)
        return [(row[0], row[1]) for row in result.all()]

    async def set_aggregates(
        self,
        session: AsyncSession,
        repository_id: uuid.UUID,
        contributor_id: uuid.UUID,
        *,
        pr_count: int,
        lines_changed: int,
    ) -> tuple[RepoContributor, bool]:
        """Create the link on first sight or overwrite its aggregates.

        Returns ``(row, created)``.
        """
        link = await self.get_pair(session, repository_id, contributor_id)
        if link is None:
            link = await self.create(
                session,
                repository_id=repository_id,
                contributor_id=contributor_id,
                pr_count=pr_count,
                lines_changed=lines_changed,
            )
            return link, True

        self._patch(link, {"pr_count": pr_count, "lines_changed": lines_changed})
        await session.flush()
        return link, False
