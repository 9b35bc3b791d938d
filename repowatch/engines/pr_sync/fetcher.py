"""Snapshot fetcher: pure API collection, no DB access."""

from __future__ import annotations

import asyncio

import structlog

from repowatch.engines.pr_sync.github_client import GitHubClient
from repowatch.engines.pr_sync.models import RepoSnapshot
from repowatch.engines.pr_sync.payloads import (
    GitHubPullRequestPayload,
    GitHubPullRequestSummary,
    GitHubRepoPayload,
    parse_payload,
)

log = structlog.get_logger("repowatch.engine")

_DETAIL_CONCURRENCY = 5


async def fetch_snapshot(client: GitHubClient, owner: str, name: str) -> RepoSnapshot:
    """Fetch repository metadata and every currently open PR with full detail.

    The PR list is requested with ``state=all`` and filtered locally; each
    open PR is then re-read individually because only the single-PR endpoint
    carries diff stats. Detail requests run with bounded concurrency and the
    result keeps list order. A PR whose detail shows it closed or merged is
    left out of both ``open_numbers`` and ``pull_requests``.

    Raises :class:`GitHubPayloadError` on unexpected response shapes and
    lets transport errors (``httpx.HTTPError``, ``RateLimitError``)
    propagate unchanged.
    """
    full_name = f"{owner}/{name}"
    repo = parse_payload(GitHubRepoPayload, await client.get_repo(owner, name), full_name)

    listed = await client.list_pull_requests(owner, name, state="all")
    summaries = [
        parse_payload(GitHubPullRequestSummary, item, f"{full_name} pull list")
        for item in listed
    ]
    open_numbers = [s.number for s in summaries if s.state == "open"]

    sem = asyncio.Semaphore(_DETAIL_CONCURRENCY)

    async def _detail(number: int) -> GitHubPullRequestPayload:
        async with sem:
            data = await client.get_pull_request(owner, name, number)
        return parse_payload(GitHubPullRequestPayload, data, f"{full_name}#{number}")

    details = await asyncio.gather(*(_detail(n) for n in open_numbers))

    # The detail read is newer than the list: a PR closed or merged in between
    # is not open any more.
    still_open = [pr for pr in details if pr.state == "open" and pr.merged_at is None]
    if len(still_open) != len(details):
        log.info(
            "pr_sync.closed_during_fetch",
            repository=full_name,
            numbers=sorted({pr.number for pr in details} - {pr.number for pr in still_open}),
        )

    log.info(
        "pr_sync.fetched",
        repository=full_name,
        listed=len(summaries),
        open=len(still_open),
    )
    return RepoSnapshot(
        repo=repo,
        open_numbers={pr.number for pr in still_open},
        pull_requests=still_open,
    )
