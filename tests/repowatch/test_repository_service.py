"""Tests for RepositoryService and RepositoryDAO bookkeeping."""

import uuid
from datetime import datetime, timezone

import pytest

from repowatch.dao.contributor_dao import ContributorDAO
from repowatch.dao.pull_request_dao import PullRequestDAO
from repowatch.dao.repo_contributor_dao import RepoContributorDAO
from repowatch.dao.repository_dao import RepositoryDAO
from repowatch.services import NotFoundError, ValidationError
from repowatch.services.pull_request_service import PullRequestService, PullRequestSync
from repowatch.services.repository_service import RepositoryService

T0 = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def service():
    return RepositoryService(RepositoryDAO(), RepoContributorDAO())


async def _link(service, session, github_repo_id="1296269", **overrides):
    values = {
        "github_repo_id": github_repo_id,
        "owner": "acme",
        "name": "widgets",
        "url": "https://github.com/acme/widgets",
        "default_branch": "main",
        "description": "Widgets",
    }
    values.update(overrides)
    return await service.link(session, **values)


class TestLink:
    async def test_creates(self, service, session):
        repo = await _link(service, session)
        assert repo.full_name == "acme/widgets"
        assert repo.sync_status == "healthy"
        assert repo.access_token is None

    async def test_relink_is_idempotent(self, service, session):
        first = await _link(service, session)
        second = await _link(service, session, name="widgets-renamed", description=None)

        assert second.id == first.id
        assert second.name == "widgets-renamed"
        assert second.description == "Widgets"
        assert await RepositoryDAO().count(session) == 1

    async def test_relink_keeps_access_token(self, service, session):
        repo = await _link(service, session)
        await service.set_access_token(session, repo.id, "ghp_secret")

        again = await _link(service, session)
        assert again.access_token == "ghp_secret"


class TestAccessToken:
    async def test_set_and_clear(self, service, session):
        repo = await _link(service, session)

        await service.set_access_token(session, repo.id, "  ghp_x ")
        assert repo.access_token == "ghp_x"

        await service.set_access_token(session, repo.id, None)
        assert repo.access_token is None

    async def test_blank_rejected(self, service, session):
        repo = await _link(service, session)
        with pytest.raises(ValidationError):
            await service.set_access_token(session, repo.id, "   ")

    async def test_unknown_repository(self, service, session):
        with pytest.raises(NotFoundError):
            await service.set_access_token(session, uuid.uuid4(), "ghp_x")


class TestRefreshMetadata:
    async def test_patches_existing(self, service, session):
        repo = await _link(service, session)
        updated = await service.refresh_metadata(
            session,
            repo.id,
            owner="acme-org",
            name="widgets",
            url="https://github.com/acme-org/widgets",
            default_branch="trunk",
            description="",
        )
        assert updated.full_name == "acme-org/widgets"
        assert updated.default_branch == "trunk"
        assert updated.description == "Widgets"

    async def test_never_creates(self, service, session):
        result = await service.refresh_metadata(
            session,
            uuid.uuid4(),
            owner="a",
            name="b",
            url="https://github.com/a/b",
            default_branch="main",
        )
        assert result is None
        assert await RepositoryDAO().count(session) == 0


class TestSyncPointers:
    async def test_healthy_then_unhealthy(self, service, session):
        repo = await _link(service, session)

        await service.update_sync_pointers(
            session, repo.id, last_synced_at=T0, sync_status="healthy", sync_error=None
        )
        await service.update_sync_pointers(
            session, repo.id, sync_status="unhealthy", sync_error="HTTPStatusError: 502"
        )
        await session.refresh(repo)

        assert repo.sync_status == "unhealthy"
        assert repo.sync_error == "HTTPStatusError: 502"
        assert repo.last_synced_at is not None

    async def test_success_clears_error(self, service, session):
        repo = await _link(service, session)
        await service.update_sync_pointers(
            session, repo.id, sync_status="unhealthy", sync_error="x"
        )

        await service.update_sync_pointers(
            session, repo.id, last_synced_at=T0, sync_status="healthy", sync_error=None
        )
        await session.refresh(repo)

        assert repo.sync_status == "healthy"
        assert repo.sync_error is None


class TestContributorsAndDelete:
    async def _sync(self, session, repo, number, author_id, login, additions):
        prs = PullRequestService(
            RepositoryDAO(), ContributorDAO(), PullRequestDAO(), RepoContributorDAO()
        )
        return await prs.sync_pull_request(
            session,
            PullRequestSync(
                github_repo_id=repo.github_repo_id,
                author_github_id=author_id,
                author_login=login,
                github_pr_id=f"{repo.github_repo_id}-{number}",
                number=number,
                title=f"PR {number}",
                state="open",
                opened_at=T0,
                synced_at=T0,
                additions=additions,
            ),
        )

    async def test_list_contributors_busiest_first(self, service, session):
        repo = await _link(service, session)
        await self._sync(session, repo, 1, "1", "alice", 5)
        await self._sync(session, repo, 2, "2", "bob", 1)
        await self._sync(session, repo, 3, "2", "bob", 1)

        rows = await service.list_contributors(session, repo.id)

        assert [r["login"] for r in rows] == ["bob", "alice"]
        assert rows[0]["pr_count"] == 2
        assert rows[1]["lines_changed"] == 5

    async def test_delete_cascades(self, service, session):
        repo = await _link(service, session)
        await self._sync(session, repo, 1, "1", "alice", 5)

        await service.delete(session, repo.id)

        assert await PullRequestDAO().count(session) == 0
        assert await RepoContributorDAO().count(session) == 0
        # contributors are shared and survive
        assert await ContributorDAO().count(session) == 1

    async def test_delete_unknown(self, service, session):
        with pytest.raises(NotFoundError):
            await service.delete(session, uuid.uuid4())
