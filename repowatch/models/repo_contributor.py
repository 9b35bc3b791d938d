"""repo_contributors table."""

import uuid
from typing import Optional

from sqlalchemy import BigInteger, Enum, ForeignKey, Index, Integer, Text, UniqueConstraint, text
from sqlalchemy.orm import Mapped, mapped_column

from repowatch.core.database import Base, JSONType, TimestampMixin, UUIDPrimaryKeyMixin

contributor_role_enum = Enum(
    "frontend",
    "backend",
    "fullstack",
    "infra",
    "data",
    "other",
    name="contributor_role",
)
contributor_seniority_enum = Enum(
    "junior",
    "mid",
    "senior",
    "lead",
    "principal",
    "other",
    name="contributor_seniority",
)


class RepoContributor(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """(repository, contributor) link carrying denormalized aggregates."""

    __tablename__ = "repo_contributors"

    repository_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("repositories.id", ondelete="CASCADE"), nullable=False
    )
    contributor_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("contributors.id", ondelete="CASCADE"), nullable=False
    )

    # aggregates, recomputed from pull_requests on every touch
    pr_count: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"))
    lines_changed: Mapped[int] = mapped_column(BigInteger, nullable=False, server_default=text("0"))

    # inferred annotations (written by analysis, never by sync)
    role: Mapped[Optional[str]] = mapped_column(contributor_role_enum)
    seniority: Mapped[Optional[str]] = mapped_column(contributor_seniority_enum)
    main_areas: Mapped[Optional[list]] = mapped_column(JSONType)
    notes: Mapped[Optional[str]] = mapped_column(Text)

    __table_args__ = (
        UniqueConstraint("repository_id", "contributor_id", name="uq_repo_contributors_pair"),
        Index("idx_repo_contributors_contributor", "contributor_id"),
    )
