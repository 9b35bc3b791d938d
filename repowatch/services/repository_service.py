"""RepositoryService: linking, metadata refresh and sync bookkeeping."""

from __future__ import annotations

import uuid
from datetime import datetime

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from repowatch.dao.repo_contributor_dao import RepoContributorDAO
from repowatch.dao.repository_dao import RepositoryDAO
from repowatch.models.repository import Repository
from repowatch.services import NotFoundError, ValidationError

log = structlog.get_logger("repowatch.service")


class RepositoryService:
    """Stateless service for repository CRUD and idempotent linking."""

    def __init__(
        self,
        repository_dao: RepositoryDAO,
        repo_contributor_dao: RepoContributorDAO,
    ) -> None:
        self._repository_dao = repository_dao
        self._link_dao = repo_contributor_dao

    # ── read ──────────────────────────────────────────────────────────────

    async def get_by_id(self, session: AsyncSession, repository_id: uuid.UUID) -> Repository | None:
        """Return raw Repository model or None."""
        return await self._repository_dao.get_by_id(session, repository_id)

    async def get(self, session: AsyncSession, repository_id: uuid.UUID) -> Repository:
        """Return the repository.

        Raises :class:`NotFoundError` if it does not exist.
        """
        repo = await self._repository_dao.get_by_id(session, repository_id)
        if repo is None:
            raise NotFoundError("repository not found")
        return repo

    async def get_by_github_id(
        self, session: AsyncSession, github_repo_id: str
    ) -> Repository | None:
        return await self._repository_dao.get_by_github_id(session, github_repo_id)

    async def list_all(self, session: AsyncSession) -> list[Repository]:
        return await self._repository_dao.list_all(session)

    async def list_contributors(
        self, session: AsyncSession, repository_id: uuid.UUID
    ) -> list[dict]:
        """Contributor aggregates of a repository, busiest first."""
        rows = await self._link_dao.list_by_repository(session, repository_id)
        return [
            {
                "contributor_id": contributor.id,
                "login": contributor.login,
                "name": contributor.name,
                "avatar_url": contributor.avatar_url,
                "pr_count": link.pr_count,
                "lines_changed": link.lines_changed,
                "role": link.role,
                "seniority": link.seniority,
                "main_areas": link.main_areas,
            }
            for link, contributor in rows
        ]

    # ── write ─────────────────────────────────────────────────────────────

    async def link(
        self,
        session: AsyncSession,
        *,
        github_repo_id: str,
        owner: str,
        name: str,
        url: str,
        default_branch: str,
        description: str | None = None,
    ) -> Repository:
        """Idempotent repository registration keyed by the GitHub repository id."""
        repo, created = await self._repository_dao.upsert_metadata(
            session,
            github_repo_id=github_repo_id,
            owner=owner,
            name=name,
            url=url,
            default_branch=default_branch,
            description=description,
        )
        log.info(
            "repository.linked",
            repository_id=str(repo.id),
            full_name=repo.full_name,
            created=created,
        )
        return repo

    async def refresh_metadata(
        self,
        session: AsyncSession,
        repository_id: uuid.UUID,
        *,
        owner: str,
        name: str,
        url: str,
        default_branch: str,
        description: str | None = None,
    ) -> Repository | None:
        """Patch metadata of an existing repository; never creates one."""
        repo = await self._repository_dao.get_by_id(session, repository_id)
        if repo is None:
            return None
        return await self._repository_dao.patch(
            session,
            repo,
            owner=owner,
            name=name,
            url=url,
            default_branch=default_branch,
            description=description or repo.description,
        )

    async def set_access_token(
        self, session: AsyncSession, repository_id: uuid.UUID, token: str | None
    ) -> Repository:
        """Store (or clear, with ``None``) the per-repository sync credential.

        Raises :class:`NotFoundError` for unknown repositories and
        :class:`ValidationError` for blank tokens.
        """
        if token is not None and not token.strip():
            raise ValidationError("access token must not be blank")
        repo = await self.get(session, repository_id)
        return await self._repository_dao.patch(
            session, repo, access_token=token.strip() if token else None
        )

    async def delete(self, session: AsyncSession, repository_id: uuid.UUID) -> None:
        """Delete a repository and everything scoped under it.

        Raises :class:`NotFoundError` if it does not exist.
        """
        if not await self._repository_dao.delete(session, repository_id):
            raise NotFoundError("repository not found")
        log.info("repository.deleted", repository_id=str(repository_id))

    async def update_sync_pointers(
        self,
        session: AsyncSession,
        repository_id: uuid.UUID,
        *,
        last_synced_at: datetime | None = None,
        sync_status: str | None = None,
        sync_error: str | None = None,
    ) -> None:
        """Record the outcome of a sync cycle."""
        await self._repository_dao.update_sync_pointers(
            session,
            repository_id,
            last_synced_at=last_synced_at,
            sync_status=sync_status,
            sync_error=sync_error,
        )
