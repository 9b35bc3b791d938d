"""pull_requests table."""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    BigInteger,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from repowatch.core.database import Base, TimestampMixin, UUIDPrimaryKeyMixin

pull_request_status_enum = Enum(
    "open",
    "closed",
    "merged",
    name="pull_request_status",
)


class PullRequest(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "pull_requests"

    repository_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("repositories.id", ondelete="CASCADE"), nullable=False
    )
    author_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("contributors.id", ondelete="CASCADE"), nullable=False
    )
    github_pr_id: Mapped[str] = mapped_column(Text, nullable=False)
    number: Mapped[int] = mapped_column(Integer, nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    body: Mapped[Optional[str]] = mapped_column(Text)
    status: Mapped[str] = mapped_column(pull_request_status_enum, nullable=False)

    # upstream lifecycle timestamps
    opened_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    merged_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    closed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    # diff stats
    additions: Mapped[int] = mapped_column(BigInteger, nullable=False, server_default=text("0"))
    deletions: Mapped[int] = mapped_column(BigInteger, nullable=False, server_default=text("0"))
    changed_files: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"))

    last_synced_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint("repository_id", "number", name="uq_pull_requests_repository_number"),
        Index("idx_pull_requests_repository_author", "repository_id", "author_id"),
        Index("idx_pull_requests_author", "author_id"),
    )
