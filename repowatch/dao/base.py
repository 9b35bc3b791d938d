"""Generic base DAO: ORM CRUD plus insert-if-absent for shared rows."""

import uuid
from typing import Any, Generic, TypeVar

from sqlalchemy import func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from repowatch.core.database import Base

ModelT = TypeVar("ModelT", bound=Base)

# Never written through patch/update.
_IMMUTABLE = frozenset({"id", "created_at", "updated_at"})


class BaseDAO(Generic[ModelT]):
    """Base data-access object. Subclasses set ``model`` class attribute.

    DAOs never commit; the caller owns the transaction.
    """

    model: type[ModelT]

    @staticmethod
    def _require_pk(pk: uuid.UUID) -> None:
        if pk is None:
            raise ValueError("pk must not be None")

    # ── read ──────────────────────────────────────────────────────────────

    async def get_by_id(self, session: AsyncSession, pk: uuid.UUID) -> ModelT | None:
        self._require_pk(pk)
        return await session.get(self.model, pk)

    async def get_by_field(self, session: AsyncSession, **filters: Any) -> ModelT | None:
        """Return the first row matching all *filters*, or None.

        Usage::

            pr = await dao.get_by_field(session, repository_id=repo.id, number=42)

        Raises ``ValueError`` if called without any filters.
        """
        if not filters:
            raise ValueError("get_by_field() requires at least one filter")
        stmt = select(self.model).filter_by(**filters).limit(1)
        result = await session.execute(stmt)
        return result.scalars().first()

    async def count(self, session: AsyncSession, **filters: Any) -> int:
        """Number of rows matching *filters* (all rows when none are given)."""
        stmt = select(func.count()).select_from(self.model)
        if filters:
            stmt = stmt.filter_by(**filters)
        result = await session.execute(stmt)
        return result.scalar_one()

    # ── write ─────────────────────────────────────────────────────────────

    async def create(self, session: AsyncSession, **values: Any) -> ModelT:
        """Insert a row and reload it so server defaults are populated."""
        obj = self.model(**values)
        session.add(obj)
        await session.flush()
        await session.refresh(obj)
        return obj

    async def update(self, session: AsyncSession, pk: uuid.UUID, **values: Any) -> ModelT | None:
        """Patch the row with primary key *pk*; None if it does not exist."""
        self._require_pk(pk)
        obj = await session.get(self.model, pk)
        if obj is None:
            return None
        self._patch(obj, values)
        await session.flush()
        await session.refresh(obj)
        return obj

    async def patch(self, session: AsyncSession, obj: ModelT, **values: Any) -> ModelT:
        """Apply *values* to an already-loaded row and flush."""
        self._patch(obj, values)
        await session.flush()
        return obj

    async def delete(self, session: AsyncSession, pk: uuid.UUID) -> bool:
        self._require_pk(pk)
        obj = await session.get(self.model, pk)
        if obj is None:
            return False
        await session.delete(obj)
        await session.flush()
        return True

    async def insert_ignore(
        self, session: AsyncSession, conflict_columns: list[str], **values: Any
    ) -> None:
        """``INSERT ... ON CONFLICT (conflict_columns) DO NOTHING``.

        Rows shared between repositories (contributors) can be inserted by
        two concurrent sync cycles; the loser's insert becomes a no-op and
        it reads the winner's row afterwards.
        """
        dialect = session.get_bind().dialect.name
        insert = sqlite.insert if dialect == "sqlite" else postgresql.insert
        stmt = (
            insert(self.model)
            .values(**values)
            .on_conflict_do_nothing(index_elements=conflict_columns)
        )
        await session.execute(stmt)

    # ── helpers ───────────────────────────────────────────────────────────

    def _patch(self, obj: ModelT, values: dict[str, Any]) -> None:
        """Set *values* on a loaded row, rejecting unknown or immutable keys."""
        column_keys = set(self.model.__mapper__.column_attrs.keys())
        for key in values:
            if key in _IMMUTABLE:
                raise AttributeError(f"'{key}' is immutable and cannot be updated")
            if key not in column_keys:
                raise AttributeError(f"{self.model.__name__} has no column '{key}'")
        for key, val in values.items():
            setattr(obj, key, val)
