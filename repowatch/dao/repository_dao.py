"""RepositoryDAO: repositories table operations."""

import uuid
from datetime import datetime

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from repowatch.dao.base import BaseDAO
from repowatch.models.repository import Repository

_SENTINEL = object()  # distinguish "not passed" from explicit None


class RepositoryDAO(BaseDAO[Repository]):
    model = Repository

    # ── read ──────────────────────────────────────────────────────────────

    async def get_by_github_id(
        self, session: AsyncSession, github_repo_id: str
    ) -> Repository | None:
        return await self.get_by_field(session, github_repo_id=github_repo_id)

    async def list_all(self, session: AsyncSession) -> list[Repository]:
        """Return every linked repository ordered by owner/name."""
        stmt = select(Repository).order_by(Repository.owner, Repository.name)
        result = await session.execute(stmt)
        return list(result.scalars().all())

    # ── write ─────────────────────────────────────────────────────────────

    async def upsert_metadata(
        self,
        session: AsyncSession,
        *,
        github_repo_id: str,
        owner: str,
        name: str,
        url: str,
        default_branch: str,
        description: str | None = None,
    ) -> tuple[Repository, bool]:
        """Insert a repository or patch the metadata of an existing one.

        A known description is kept when upstream reports none, and the
        stored access token is never touched. Returns ``(row, created)``.
        """
        existing = await self.get_by_github_id(session, github_repo_id)
        if existing is None:
            repo = await self.create(
                session,
                github_repo_id=github_repo_id,
                owner=owner,
                name=name,
                url=url,
                default_branch=default_branch,
                description=description,
            )
            return repo, True

        self._patch(
            existing,
            {
                "owner": owner,
                "name": name,
                "url": url,
                "default_branch": default_branch,
                "description": description or existing.description,
            },
        )
        await session.flush()
        return existing, False

    async def update_sync_pointers(
        self,
        session: AsyncSession,
        pk: uuid.UUID,
        *,
        last_synced_at: datetime | None = None,
        sync_status: str | None = None,
        sync_error: str | None = _SENTINEL,
    ) -> None:
        """Update sync bookkeeping using COALESCE to skip None values.

        ``sync_status`` is set directly when provided. Pass
        ``sync_error=None`` explicitly to clear the error.
        """
        self._require_pk(pk)
        table = Repository.__table__
        values: dict = {
            "last_synced_at": func.coalesce(last_synced_at, table.c.last_synced_at),
            "updated_at": func.now(),
        }
        if sync_status is not None:
            values["sync_status"] = sync_status
        if sync_error is not _SENTINEL:
            values["sync_error"] = sync_error
        stmt = update(Repository).where(table.c.id == pk).values(**values)
        await session.execute(stmt)
