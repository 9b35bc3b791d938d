"""PullRequestService: reconcile fetched pull requests and prune closed ones."""

from __future__ import annotations

import uuid
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from repowatch.dao.contributor_dao import ContributorDAO
from repowatch.dao.pull_request_dao import PullRequestDAO
from repowatch.dao.repo_contributor_dao import RepoContributorDAO
from repowatch.dao.repository_dao import RepositoryDAO
from repowatch.models.pull_request import PullRequest

log = structlog.get_logger("repowatch.service")


@dataclass(frozen=True)
class PullRequestSync:
    """One fetched pull request, flattened for reconciliation.

    Pure data, built by the sync engine from validated GitHub payloads.
    """

    github_repo_id: str
    author_github_id: str
    author_login: str
    github_pr_id: str
    number: int
    title: str
    state: str  # raw upstream state: "open" | "closed"
    opened_at: datetime
    synced_at: datetime
    author_name: str | None = None
    author_avatar_url: str | None = None
    body: str | None = None
    merged_at: datetime | None = None
    closed_at: datetime | None = None
    additions: int = 0
    deletions: int = 0
    changed_files: int = 0


@dataclass(frozen=True)
class SyncedIds:
    """Surrogate ids touched by one reconcile."""

    pull_request_id: uuid.UUID
    contributor_id: uuid.UUID
    repository_id: uuid.UUID
    created: bool


def derive_status(state: str, merged_at: datetime | None) -> str:
    """Map upstream state to local status; a merge timestamp wins over state."""
    if merged_at is not None:
        return "merged"
    return "open" if state == "open" else "closed"


class PullRequestService:
    """Stateless service for the local pull-request mirror and its aggregates."""

    def __init__(
        self,
        repository_dao: RepositoryDAO,
        contributor_dao: ContributorDAO,
        pull_request_dao: PullRequestDAO,
        repo_contributor_dao: RepoContributorDAO,
    ) -> None:
        self._repository_dao = repository_dao
        self._contributor_dao = contributor_dao
        self._pr_dao = pull_request_dao
        self._link_dao = repo_contributor_dao

    # ── read ──────────────────────────────────────────────────────────────

    async def list_for_repository(
        self,
        session: AsyncSession,
        repository_id: uuid.UUID,
        status: str | None = None,
    ) -> list[PullRequest]:
        return await self._pr_dao.list_by_repository(session, repository_id, status=status)

    async def list_open_numbers(self, session: AsyncSession, repository_id: uuid.UUID) -> set[int]:
        """Locally known open PR numbers: the pre-cycle snapshot for change detection."""
        return await self._pr_dao.list_numbers(session, repository_id, status="open")

    # ── reconcile ─────────────────────────────────────────────────────────

    async def sync_pull_request(
        self, session: AsyncSession, item: PullRequestSync
    ) -> SyncedIds | None:
        """Upsert contributor, pull request and repo-contributor link for *item*.

        Returns ``None`` without writing anything when the repository is not
        linked locally; a sync never creates repositories. The caller owns the
        transaction, so the three upserts commit or roll back together.
        """
        repo = await self._repository_dao.get_by_github_id(session, item.github_repo_id)
        if repo is None:
            log.info(
                "pr_sync.unknown_repository",
                github_repo_id=item.github_repo_id,
                number=item.number,
            )
            return None

        contributor = await self._contributor_dao.upsert(
            session,
            github_user_id=item.author_github_id,
            login=item.author_login,
            name=item.author_name,
            avatar_url=item.author_avatar_url,
        )

        values = {
            "author_id": contributor.id,
            "github_pr_id": item.github_pr_id,
            "title": item.title,
            "body": item.body,
            "status": derive_status(item.state, item.merged_at),
            "opened_at": item.opened_at,
            "merged_at": item.merged_at,
            "closed_at": item.closed_at,
            "additions": item.additions,
            "deletions": item.deletions,
            "changed_files": item.changed_files,
            "last_synced_at": item.synced_at,
        }
        pr = await self._pr_dao.get_by_number(session, repo.id, item.number)
        created = pr is None
        if pr is None:
            pr = await self._pr_dao.create(
                session, repository_id=repo.id, number=item.number, **values
            )
        else:
            previous_author = pr.author_id
            await self._pr_dao.patch(session, pr, **values)
            if previous_author != contributor.id:
                # Authorship moved (e.g. upstream account merge); fix the old link too.
                await self._refresh_aggregates(session, repo.id, previous_author)

        await self._refresh_aggregates(session, repo.id, contributor.id)

        return SyncedIds(
            pull_request_id=pr.id,
            contributor_id=contributor.id,
            repository_id=repo.id,
            created=created,
        )

    # ── prune ─────────────────────────────────────────────────────────────

    async def prune_closed(
        self,
        session: AsyncSession,
        repository_id: uuid.UUID,
        open_numbers: Iterable[int],
    ) -> list[int]:
        """Delete stored PRs of the repository that are not in *open_numbers*.

        Idempotent. Aggregates of every author who lost rows are recomputed
        so their link rows keep matching the stored PRs. Returns the deleted
        numbers, sorted.
        """
        deleted = await self._pr_dao.delete_not_in(session, repository_id, open_numbers)
        for author_id in {author_id for _, author_id in deleted}:
            await self._refresh_aggregates(session, repository_id, author_id)
        return sorted(number for number, _ in deleted)

    # ── internal ──────────────────────────────────────────────────────────

    async def _refresh_aggregates(
        self,
        session: AsyncSession,
        repository_id: uuid.UUID,
        contributor_id: uuid.UUID,
    ) -> None:
        """Recompute pr_count / lines_changed from the stored PR rows."""
        pr_count, lines_changed = await self._pr_dao.aggregate_for_author(
            session, repository_id, contributor_id
        )
        await self._link_dao.set_aggregates(
            session,
            repository_id,
            contributor_id,
            pr_count=pr_count,
            lines_changed=lines_changed,
        )
