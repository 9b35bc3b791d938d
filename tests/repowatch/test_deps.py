"""Tests for dependency wiring in repowatch.deps."""

from __future__ import annotations

import pytest

from repowatch import deps
from repowatch.dao.repository_dao import RepositoryDAO
from repowatch.engines.analysis.trigger import AnalysisTrigger
from repowatch.engines.pr_sync.runner import PRSyncRunner


@pytest.fixture
async def factory(tmp_path):
    f = deps.init_session_factory(f"sqlite+aiosqlite:///{tmp_path / 'deps.db'}")
    await deps.create_schema()
    yield f
    await deps.dispose_engine()


async def test_session_factory_is_shared(factory):
    assert deps.get_session_factory() is factory


async def test_create_schema_builds_tables(factory):
    async with factory() as session:
        assert await RepositoryDAO().count(session) == 0


async def test_build_pr_sync_runner(factory):
    runner, trigger = deps.build_pr_sync_runner(factory)

    assert isinstance(runner, PRSyncRunner)
    assert isinstance(trigger, AnalysisTrigger)
    assert runner._trigger is trigger
    assert await runner.run_all(factory) == []


async def test_trigger_runs_analysis_for_linked_repository(factory):
    async with factory() as session:
        async with session.begin():
            repo = await deps.get_repository_service().link(
                session,
                github_repo_id="555",
                owner="acme",
                name="widgets",
                url="https://github.com/acme/widgets",
                default_branch="main",
            )
    _, trigger = deps.build_pr_sync_runner(factory)

    trigger.request(repo.id)
    await trigger.drain()

    async with factory() as session:
        sessions = await deps.get_analysis_service().list_for_repository(session, repo.id)
    assert [s.status for s in sessions] == ["completed"]


async def test_requires_init():
    await deps.dispose_engine()
    with pytest.raises(RuntimeError):
        await deps.create_schema()
