"""ContributorDAO: contributors table operations."""

from sqlalchemy.ext.asyncio import AsyncSession

from repowatch.dao.base import BaseDAO
from repowatch.models.contributor import Contributor


class ContributorDAO(BaseDAO[Contributor]):
    model = Contributor

    async def get_by_github_id(
        self, session: AsyncSession, github_user_id: str
    ) -> Contributor | None:
        return await self.get_by_field(session, github_user_id=github_user_id)

    async def upsert(
        self,
        session: AsyncSession,
        *,
        github_user_id: str,
        login: str,
        name: str | None = None,
        avatar_url: str | None = None,
    ) -> Contributor:
        """Insert a contributor if absent, then patch its identity fields.

        Contributors are shared across repositories, so two concurrent
        repository cycles may race on the same author; ``ON CONFLICT DO
        NOTHING`` lets the loser fall through to the patch path.

        ``login`` is always refreshed. ``name`` and ``avatar_url`` are only
        overwritten with non-empty values.
        """
        await self.insert_ignore(
            session,
            ["github_user_id"],
            github_user_id=github_user_id,
            login=login,
            name=name or None,
            avatar_url=avatar_url or None,
        )

        contributor = await self.get_by_github_id(session, github_user_id)
        if contributor is None:
            raise RuntimeError(f"contributor {github_user_id} vanished after upsert")

        patch: dict = {"login": login}
        if name:
            patch["name"] = name
        if avatar_url:
            patch["avatar_url"] = avatar_url
        self._patch(contributor, patch)
        await session.flush()
        return contributor
