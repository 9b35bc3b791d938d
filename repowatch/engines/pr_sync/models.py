"""Data models for the pull-request sync engine."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime

from repowatch.engines.pr_sync.payloads import GitHubPullRequestPayload, GitHubRepoPayload
from repowatch.services.pull_request_service import PullRequestSync


@dataclass
class RepoSnapshot:
    """Upstream view of one repository at fetch time.

    This is a pure data structure with no DB dependencies.
    """

    repo: GitHubRepoPayload
    # numbers the list endpoint reported as open; authoritative for pruning
    open_numbers: set[int] = field(default_factory=set)
    pull_requests: list[GitHubPullRequestPayload] = field(default_factory=list)

    def to_sync_inputs(self, synced_at: datetime) -> list[PullRequestSync]:
        return [to_sync_input(self.repo, pr, synced_at) for pr in self.pull_requests]


@dataclass
class SyncResult:
    """Summary of a single repository sync cycle."""

    repository_id: uuid.UUID
    fetched: int = 0
    created: int = 0
    updated: int = 0
    pruned: list[int] = field(default_factory=list)
    changed: bool = False
    triggered: bool = False
    skipped: str | None = None  # "not_found" | "no_credential" | "in_flight"
    errors: list[str] = field(default_factory=list)


def to_sync_input(
    repo: GitHubRepoPayload,
    pr: GitHubPullRequestPayload,
    synced_at: datetime,
) -> PullRequestSync:
    """Flatten validated payloads into the reconciler's input."""
    return PullRequestSync(
        github_repo_id=str(repo.id),
        author_github_id=str(pr.user.id),
        author_login=pr.user.login,
        author_name=pr.user.name,
        author_avatar_url=pr.user.avatar_url,
        github_pr_id=str(pr.id),
        number=pr.number,
        title=pr.title,
        body=pr.body,
        state=pr.state,
        opened_at=pr.created_at,
        merged_at=pr.merged_at,
        closed_at=pr.closed_at,
        additions=pr.additions,
        deletions=pr.deletions,
        changed_files=pr.changed_files,
        synced_at=synced_at,
    )
