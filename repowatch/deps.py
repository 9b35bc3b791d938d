"""Dependency wiring: engine/session factory plus DAO, service and runner singletons."""

from __future__ import annotations

import os

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from repowatch.core.database import Base
from repowatch.dao.analysis_session_dao import AnalysisSessionDAO
from repowatch.dao.contributor_dao import ContributorDAO
from repowatch.dao.pull_request_dao import PullRequestDAO
from repowatch.dao.repo_contributor_dao import RepoContributorDAO
from repowatch.dao.repository_dao import RepositoryDAO
from repowatch.engines.analysis.runner import AnalysisRunner
from repowatch.engines.analysis.trigger import AnalysisTrigger
from repowatch.engines.pr_sync.runner import PRSyncRunner
from repowatch.services.analysis_service import AnalysisService
from repowatch.services.pull_request_service import PullRequestService
from repowatch.services.repository_service import RepositoryService

# ---------------------------------------------------------------------------
# DAO singletons
# ---------------------------------------------------------------------------
_repository_dao = RepositoryDAO()
_contributor_dao = ContributorDAO()
_pull_request_dao = PullRequestDAO()
_repo_contributor_dao = RepoContributorDAO()
_analysis_session_dao = AnalysisSessionDAO()

# ---------------------------------------------------------------------------
# Service singletons
# ---------------------------------------------------------------------------
_repository_service = RepositoryService(_repository_dao, _repo_contributor_dao)
_pull_request_service = PullRequestService(
    _repository_dao, _contributor_dao, _pull_request_dao, _repo_contributor_dao
)
_analysis_service = AnalysisService(_analysis_session_dao)

# ---------------------------------------------------------------------------
# Engine / session factory (initialised once at startup)
# ---------------------------------------------------------------------------
_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def init_session_factory(database_url: str | None = None) -> async_sessionmaker[AsyncSession]:
    """Create the async engine and session factory. Called once at startup."""
    global _engine, _session_factory  # noqa: PLW0603
    url = database_url or os.environ.get(
        "REPOWATCH_DATABASE_URL", "postgresql+asyncpg://localhost/repowatch"
    )
    if url.startswith("sqlite"):
        _engine = create_async_engine(url)
    else:
        _engine = create_async_engine(
            url,
            pool_pre_ping=True,
            pool_size=10,
            max_overflow=20,
            pool_recycle=1800,
        )
    _session_factory = async_sessionmaker(_engine, expire_on_commit=False)
    return _session_factory


async def create_schema() -> None:
    """Create all tables that do not exist yet."""
    if _engine is None:
        raise RuntimeError("call init_session_factory() first")
    async with _engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def dispose_engine() -> None:
    """Dispose the async engine, closing all pooled connections."""
    global _engine  # noqa: PLW0603
    if _engine is not None:
        await _engine.dispose()
        _engine = None


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    if _session_factory is None:
        raise RuntimeError("call init_session_factory() first")
    return _session_factory


# ---------------------------------------------------------------------------
# Service / runner accessors
# ---------------------------------------------------------------------------


def get_repository_service() -> RepositoryService:
    return _repository_service


def get_pull_request_service() -> PullRequestService:
    return _pull_request_service


def get_analysis_service() -> AnalysisService:
    return _analysis_service


def build_pr_sync_runner(
    session_factory: async_sessionmaker[AsyncSession],
) -> tuple[PRSyncRunner, AnalysisTrigger]:
    """Wire the sync runner to an analysis trigger bound to *session_factory*."""
    analysis_runner = AnalysisRunner(_analysis_service, _pull_request_service)

    async def _workflow(repository_id):
        await analysis_runner.run(session_factory, repository_id)

    trigger = AnalysisTrigger(_workflow)
    runner = PRSyncRunner(_repository_service, _pull_request_service, trigger)
    return runner, trigger
