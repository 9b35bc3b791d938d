"""Pull-request sync engine: keeps the local open-PR mirror in step with GitHub."""

from repowatch.engines.pr_sync.change_detector import open_set_changed
from repowatch.engines.pr_sync.fetcher import fetch_snapshot
from repowatch.engines.pr_sync.github_client import GitHubClient, RateLimitError
from repowatch.engines.pr_sync.models import RepoSnapshot, SyncResult
from repowatch.engines.pr_sync.payloads import GitHubPayloadError
from repowatch.engines.pr_sync.runner import PRSyncRunner
from repowatch.services import RepositoryIdentityError

__all__ = [
    "GitHubClient",
    "GitHubPayloadError",
    "PRSyncRunner",
    "RateLimitError",
    "RepoSnapshot",
    "RepositoryIdentityError",
    "SyncResult",
    "fetch_snapshot",
    "open_set_changed",
]
