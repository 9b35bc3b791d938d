"""PRSyncRunner: orchestrates fetch engine + Service-layer DB writes per repository."""

from __future__ import annotations

import asyncio
import os
import uuid
from collections.abc import Callable

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from repowatch.core.database import utcnow
from repowatch.core.logging import repository_context
from repowatch.engines.analysis.trigger import AnalysisTrigger
from repowatch.engines.pr_sync.change_detector import open_set_changed
from repowatch.engines.pr_sync.fetcher import fetch_snapshot
from repowatch.engines.pr_sync.github_client import GitHubClient
from repowatch.engines.pr_sync.models import SyncResult
from repowatch.services import RepositoryIdentityError
from repowatch.services.pull_request_service import PullRequestService
from repowatch.services.repository_service import RepositoryService

log = structlog.get_logger("repowatch.engine")


class PRSyncRunner:
    """Orchestration layer: pure fetch engine → Service-layer DB writes.

    One cycle per repository: fetch → reconcile each PR (own transaction)
    → prune → detect change → trigger analysis. At most one cycle per
    repository runs at a time within this process.
    """

    def __init__(
        self,
        repository_service: RepositoryService,
        pull_request_service: PullRequestService,
        trigger: AnalysisTrigger | None = None,
        *,
        client_factory: Callable[[str], GitHubClient] = GitHubClient,
        max_concurrency: int | None = None,
        cycle_timeout: float | None = None,
    ) -> None:
        self._repository_service = repository_service
        self._pr_service = pull_request_service
        self._trigger = trigger
        self._client_factory = client_factory
        if max_concurrency is None:
            max_concurrency = int(os.environ.get("REPOWATCH_SYNC_CONCURRENCY", "5"))
        if cycle_timeout is None:
            cycle_timeout = float(os.environ.get("REPOWATCH_SYNC_CYCLE_TIMEOUT", "300"))
        self._max_concurrency = max(1, max_concurrency)
        self._cycle_timeout = cycle_timeout
        self._in_flight: dict[uuid.UUID, asyncio.Lock] = {}

    async def run(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        repository_id: uuid.UUID,
    ) -> SyncResult:
        """Run one sync cycle for a repository unless one is already in flight.

        The in-flight marker is released when the cycle finishes, fails, or
        exceeds the cycle deadline (``asyncio.TimeoutError`` propagates), and
        is then forgotten so removed repositories leave nothing behind.
        """
        lock = self._in_flight.setdefault(repository_id, asyncio.Lock())
        with repository_context(repository_id):
            if lock.locked():
                log.info("pr_sync.in_flight")
                return SyncResult(repository_id=repository_id, skipped="in_flight")

            try:
                async with lock:
                    return await asyncio.wait_for(
                        self._cycle(session_factory, repository_id), timeout=self._cycle_timeout
                    )
            finally:
                # overlapping calls skip instead of waiting, so nobody else holds it
                if not lock.locked() and self._in_flight.get(repository_id) is lock:
                    del self._in_flight[repository_id]

    async def run_all(
        self,
        session_factory: async_sessionmaker[AsyncSession],
    ) -> list[SyncResult]:
        """Sync every linked repository with bounded concurrency.

        Failures are contained per repository: logged, recorded on the
        repository row, and returned as an error result.
        """
        async with session_factory() as session:
            async with session.begin():
                repositories = await self._repository_service.list_all(session)

        if not repositories:
            return []

        sem = asyncio.Semaphore(self._max_concurrency)

        async def _run_one(repo_id: uuid.UUID) -> SyncResult:
            async with sem:
                try:
                    return await self.run(session_factory, repo_id)
                except Exception as exc:
                    err = f"{type(exc).__name__}: {exc}"
                    log.error("pr_sync.failed", repository_id=str(repo_id), error=err)
                    try:
                        async with session_factory() as err_session:
                            async with err_session.begin():
                                await self._repository_service.update_sync_pointers(
                                    err_session,
                                    repo_id,
                                    sync_status="unhealthy",
                                    sync_error=err,
                                )
                    except Exception:
                        log.warning("pr_sync.status_update_failed", repository_id=str(repo_id))
                    r = SyncResult(repository_id=repo_id)
                    r.errors.append(err)
                    return r

        tasks = [_run_one(repo.id) for repo in repositories]
        return list(await asyncio.gather(*tasks))

    # ── internal ──────────────────────────────────────────────────────────

    async def _cycle(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        repository_id: uuid.UUID,
    ) -> SyncResult:
        result = SyncResult(repository_id=repository_id)

        # 1. Load repository and capture the pre-cycle open set
        async with session_factory() as session:
            async with session.begin():
                repo = await self._repository_service.get_by_id(session, repository_id)
                if repo is None:
                    result.skipped = "not_found"
                    return result
                if not repo.access_token:
                    log.info("pr_sync.no_credential", repository=repo.full_name)
                    result.skipped = "no_credential"
                    return result
                owner, name = repo.owner, repo.name
                github_repo_id, token = repo.github_repo_id, repo.access_token
                previous = await self._pr_service.list_open_numbers(session, repository_id)

        # 2. Fetch (read-only, no transaction held)
        async with self._client_factory(token) as client:
            snapshot = await fetch_snapshot(client, owner, name)
        if str(snapshot.repo.id) != github_repo_id:
            raise RepositoryIdentityError(
                f"{owner}/{name} now resolves to GitHub repository {snapshot.repo.id}, "
                f"expected {github_repo_id}"
            )
        result.fetched = len(snapshot.pull_requests)
        synced_at = utcnow()

        async with session_factory() as session:
            async with session.begin():
                await self._repository_service.refresh_metadata(
                    session,
                    repository_id,
                    owner=snapshot.repo.owner.login,
                    name=snapshot.repo.name,
                    url=snapshot.repo.html_url,
                    default_branch=snapshot.repo.default_branch,
                    description=snapshot.repo.description,
                )

        # 3. Reconcile sequentially, one transaction per PR
        for item in snapshot.to_sync_inputs(synced_at):
            async with session_factory() as session:
                async with session.begin():
                    ids = await self._pr_service.sync_pull_request(session, item)
            if ids is None:
                continue
            if ids.created:
                result.created += 1
            else:
                result.updated += 1

        # 4. Prune only after every open PR has been upserted
        async with session_factory() as session:
            async with session.begin():
                result.pruned = await self._pr_service.prune_closed(
                    session, repository_id, snapshot.open_numbers
                )

        # 5. Detect against the snapshot taken before any write
        result.changed = open_set_changed(previous, snapshot.open_numbers)

        async with session_factory() as session:
            async with session.begin():
                await self._repository_service.update_sync_pointers(
                    session,
                    repository_id,
                    last_synced_at=synced_at,
                    sync_status="healthy",
                    sync_error=None,
                )

        # 6. Fire-and-forget downstream analysis
        if result.changed:
            result.triggered = self._request_analysis(repository_id)

        log.info(
            "pr_sync.cycle",
            repository=f"{owner}/{name}",
            fetched=result.fetched,
            created=result.created,
            updated=result.updated,
            pruned=len(result.pruned),
            changed=result.changed,
        )
        return result

    def _request_analysis(self, repository_id: uuid.UUID) -> bool:
        if self._trigger is None:
            return False
        try:
            return self._trigger.request(repository_id)
        except Exception:
            log.exception("pr_sync.trigger_failed", repository_id=str(repository_id))
            return False
