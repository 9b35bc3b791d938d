"""Tests for BaseDAO: reads, patch guards and insert_ignore."""

import uuid

import pytest

from repowatch.dao.contributor_dao import ContributorDAO


@pytest.fixture
def dao():
    return ContributorDAO()


async def _contributor(dao, session, github_user_id="1", login="octocat"):
    return await dao.create(session, github_user_id=github_user_id, login=login)


# ── read ──────────────────────────────────────────────────────────────────


class TestRead:
    async def test_get_by_id(self, dao, session):
        c = await _contributor(dao, session)
        assert (await dao.get_by_id(session, c.id)).login == "octocat"

    async def test_get_by_id_missing(self, dao, session):
        assert await dao.get_by_id(session, uuid.uuid4()) is None

    async def test_get_by_id_rejects_none(self, dao, session):
        with pytest.raises(ValueError):
            await dao.get_by_id(session, None)

    async def test_get_by_field_matches_all_filters(self, dao, session):
        await _contributor(dao, session, "1", "octocat")
        await _contributor(dao, session, "2", "hubot")

        found = await dao.get_by_field(session, github_user_id="2", login="hubot")
        assert found.github_user_id == "2"
        assert await dao.get_by_field(session, github_user_id="2", login="octocat") is None

    async def test_get_by_field_requires_filters(self, dao, session):
        with pytest.raises(ValueError):
            await dao.get_by_field(session)

    async def test_count(self, dao, session):
        await _contributor(dao, session, "1", "octocat")
        await _contributor(dao, session, "2", "hubot")

        assert await dao.count(session) == 2
        assert await dao.count(session, login="hubot") == 1
        assert await dao.count(session, login="nobody") == 0


# ── write ─────────────────────────────────────────────────────────────────


class TestWrite:
    async def test_create_populates_defaults(self, dao, session):
        c = await _contributor(dao, session)
        assert c.id is not None
        assert c.created_at is not None

    async def test_update(self, dao, session):
        c = await _contributor(dao, session)
        updated = await dao.update(session, c.id, name="The Octocat")
        assert updated.name == "The Octocat"

    async def test_update_missing_returns_none(self, dao, session):
        assert await dao.update(session, uuid.uuid4(), name="x") is None

    async def test_patch_rejects_immutable_column(self, dao, session):
        c = await _contributor(dao, session)
        with pytest.raises(AttributeError, match="immutable"):
            await dao.patch(session, c, id=uuid.uuid4())

    async def test_patch_rejects_unknown_column(self, dao, session):
        c = await _contributor(dao, session)
        with pytest.raises(AttributeError, match="no column"):
            await dao.patch(session, c, nickname="cat")

    async def test_delete(self, dao, session):
        c = await _contributor(dao, session)
        assert await dao.delete(session, c.id) is True
        assert await dao.delete(session, c.id) is False


# ── insert_ignore ─────────────────────────────────────────────────────────


class TestInsertIgnore:
    async def test_inserts_when_absent(self, dao, session):
        await dao.insert_ignore(session, ["github_user_id"], github_user_id="9", login="new")
        assert (await dao.get_by_github_id(session, "9")).login == "new"

    async def test_conflict_keeps_existing_row(self, dao, session):
        await _contributor(dao, session, "9", "first")

        await dao.insert_ignore(session, ["github_user_id"], github_user_id="9", login="second")

        assert await dao.count(session, github_user_id="9") == 1
        row = await dao.get_by_github_id(session, "9")
        await session.refresh(row)
        assert row.login == "first"

    async def test_upsert_refreshes_login_and_keeps_known_name(self, dao, session):
        await dao.upsert(session, github_user_id="9", login="old", name="Ada")

        c = await dao.upsert(session, github_user_id="9", login="renamed", name="")

        assert c.login == "renamed"
        assert c.name == "Ada"
        assert await dao.count(session) == 1
