"""Tests for AnalysisRunner and AnalysisService against a real database."""

from __future__ import annotations

import asyncio
import uuid
from datetime import datetime, timedelta, timezone

import pytest

from repowatch.dao.analysis_session_dao import AnalysisSessionDAO
from repowatch.dao.contributor_dao import ContributorDAO
from repowatch.dao.pull_request_dao import PullRequestDAO
from repowatch.dao.repo_contributor_dao import RepoContributorDAO
from repowatch.dao.repository_dao import RepositoryDAO
from repowatch.core.database import utcnow
from repowatch.engines.analysis.runner import AnalysisRunner
from repowatch.engines.analysis.trigger import AnalysisTrigger
from repowatch.services import ConflictError, NotFoundError, ValidationError
from repowatch.services.analysis_service import AnalysisService
from repowatch.services.pull_request_service import PullRequestService, PullRequestSync

T0 = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def analysis_service():
    return AnalysisService(AnalysisSessionDAO())


@pytest.fixture
def pr_service():
    return PullRequestService(
        RepositoryDAO(), ContributorDAO(), PullRequestDAO(), RepoContributorDAO()
    )


async def _seed(session_factory, pr_service, numbers=(1, 2)) -> uuid.UUID:
    async with session_factory() as session:
        async with session.begin():
            repo = await RepositoryDAO().create(
                session,
                github_repo_id="555",
                owner="acme",
                name="widgets",
                url="https://github.com/acme/widgets",
                default_branch="main",
            )
            for n in numbers:
                await pr_service.sync_pull_request(
                    session,
                    PullRequestSync(
                        github_repo_id="555",
                        author_github_id="7",
                        author_login="octo",
                        github_pr_id=f"555-{n}",
                        number=n,
                        title=f"PR {n}",
                        state="open",
                        opened_at=T0,
                        synced_at=T0,
                    ),
                )
    return repo.id


async def _sessions(session_factory, analysis_service, repo_id):
    async with session_factory() as session:
        return await analysis_service.list_for_repository(session, repo_id)


async def _session_prs(session_factory, analysis_service, analysis_id):
    async with session_factory() as session:
        return await analysis_service.list_pull_requests(session, analysis_id)


class TestAnalysisRunner:
    async def test_completes_with_summaries(self, session_factory, analysis_service, pr_service):
        repo_id = await _seed(session_factory, pr_service)

        async def analyzer(pr):
            return f"looks fine ({pr.title})"

        runner = AnalysisRunner(analysis_service, pr_service, analyzer)
        analysis = await runner.run(session_factory, repo_id)

        assert analysis.status == "completed"
        assert analysis.session_type == "pr_auto"
        assert analysis.summary == "#1: looks fine (PR 1)\n#2: looks fine (PR 2)"
        rows = await _session_prs(session_factory, analysis_service, analysis.id)
        assert len(rows) == 2
        assert {r.status for r in rows} == {"completed"}

    async def test_without_analyzer(self, session_factory, analysis_service, pr_service):
        repo_id = await _seed(session_factory, pr_service)

        analysis = await AnalysisRunner(analysis_service, pr_service).run(
            session_factory, repo_id
        )

        assert analysis.status == "completed"
        assert analysis.summary is None
        assert analysis.config == {"pull_requests": [1, 2]}

    async def test_skips_when_already_running(
        self, session_factory, analysis_service, pr_service
    ):
        repo_id = await _seed(session_factory, pr_service)
        async with session_factory() as session:
            async with session.begin():
                await analysis_service.start_session(session, repo_id, pull_request_ids=[])

        result = await AnalysisRunner(analysis_service, pr_service).run(session_factory, repo_id)

        assert result is None
        assert len(await _sessions(session_factory, analysis_service, repo_id)) == 1

    async def test_analyzer_failure_marks_session_failed(
        self, session_factory, analysis_service, pr_service
    ):
        repo_id = await _seed(session_factory, pr_service)

        async def analyzer(pr):
            if pr.number == 2:
                raise RuntimeError("model unavailable")
            return "ok"

        runner = AnalysisRunner(analysis_service, pr_service, analyzer)
        with pytest.raises(RuntimeError):
            await runner.run(session_factory, repo_id)

        (analysis,) = await _sessions(session_factory, analysis_service, repo_id)
        assert analysis.status == "failed"
        assert "model unavailable" in analysis.error
        rows = await _session_prs(session_factory, analysis_service, analysis.id)
        assert sorted(r.status for r in rows) == ["completed", "failed"]

        # a failed session no longer blocks the next run
        async def healthy(pr):
            return None

        again = await AnalysisRunner(analysis_service, pr_service, healthy).run(
            session_factory, repo_id
        )
        assert again.status == "completed"

    async def test_shutdown_mid_run_fails_the_session(
        self, session_factory, analysis_service, pr_service
    ):
        repo_id = await _seed(session_factory, pr_service)
        entered = asyncio.Event()

        async def slow(pr):
            entered.set()
            await asyncio.Event().wait()

        runner = AnalysisRunner(analysis_service, pr_service, slow)
        trigger = AnalysisTrigger(lambda rid: runner.run(session_factory, rid))
        trigger.request(repo_id)
        await asyncio.wait_for(entered.wait(), timeout=2)

        await trigger.cancel_all()

        (analysis,) = await _sessions(session_factory, analysis_service, repo_id)
        assert analysis.status == "failed"
        assert analysis.error == "cancelled before completion"
        assert analysis.completed_at is not None
        rows = await _session_prs(session_factory, analysis_service, analysis.id)
        assert sorted(r.status for r in rows) == ["failed", "pending"]

        again = await AnalysisRunner(analysis_service, pr_service).run(session_factory, repo_id)
        assert again.status == "completed"


class TestAnalysisService:
    async def test_start_conflict(self, session, analysis_service):
        repo = await RepositoryDAO().create(
            session,
            github_repo_id="1",
            owner="a",
            name="b",
            url="https://github.com/a/b",
            default_branch="main",
        )
        await analysis_service.start_session(session, repo.id, pull_request_ids=[])
        assert await analysis_service.has_running(session, repo.id)

        with pytest.raises(ConflictError):
            await analysis_service.start_session(session, repo.id, pull_request_ids=[])

    async def test_finish_requires_terminal_status(self, session, analysis_service):
        with pytest.raises(ValidationError):
            await analysis_service.finish_session(session, uuid.uuid4(), status="running")

    async def test_finish_unknown(self, session, analysis_service):
        with pytest.raises(NotFoundError):
            await analysis_service.finish_session(session, uuid.uuid4(), status="completed")

    async def test_abandoned_session_does_not_block(self, session, analysis_service):
        repo = await RepositoryDAO().create(
            session,
            github_repo_id="1",
            owner="a",
            name="b",
            url="https://github.com/a/b",
            default_branch="main",
        )
        dao = AnalysisSessionDAO()
        stale = await dao.create(
            session,
            repository_id=repo.id,
            session_type="pr_auto",
            status="running",
            started_at=utcnow() - timedelta(hours=2),
        )

        assert not await analysis_service.has_running(session, repo.id)

        fresh = await analysis_service.start_session(session, repo.id, pull_request_ids=[])

        await session.refresh(stale)
        assert stale.status == "failed"
        assert stale.error.startswith("abandoned")
        assert fresh.status == "running"
        assert await analysis_service.has_running(session, repo.id)

    async def test_stale_cutoff_from_environment(self, session, monkeypatch):
        monkeypatch.setenv("REPOWATCH_ANALYSIS_STALE_AFTER", "60")
        service = AnalysisService(AnalysisSessionDAO())
        repo = await RepositoryDAO().create(
            session,
            github_repo_id="1",
            owner="a",
            name="b",
            url="https://github.com/a/b",
            default_branch="main",
        )
        await AnalysisSessionDAO().create(
            session,
            repository_id=repo.id,
            session_type="pr_auto",
            status="running",
            started_at=utcnow() - timedelta(minutes=5),
        )

        assert not await service.has_running(session, repo.id)
