"""analysis_sessions + analysis_session_prs tables."""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Enum, ForeignKey, Index, Text, UniqueConstraint, desc
from sqlalchemy.orm import Mapped, mapped_column

from repowatch.core.database import Base, JSONType, TimestampMixin, UUIDPrimaryKeyMixin

analysis_session_type_enum = Enum(
    "pr_auto",
    "manual_snapshot",
    "full_repo",
    "other",
    name="analysis_session_type",
)
analysis_status_enum = Enum(
    "pending",
    "running",
    "completed",
    "failed",
    name="analysis_status",
)


class AnalysisSession(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """One analysis pass over a repository."""

    __tablename__ = "analysis_sessions"

    repository_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("repositories.id", ondelete="CASCADE"), nullable=False
    )
    session_type: Mapped[str] = mapped_column(analysis_session_type_enum, nullable=False)
    status: Mapped[str] = mapped_column(analysis_status_enum, nullable=False)
    config: Mapped[Optional[dict]] = mapped_column(JSONType)
    summary: Mapped[Optional[str]] = mapped_column(Text)
    error: Mapped[Optional[str]] = mapped_column(Text)
    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    __table_args__ = (
        Index("idx_analysis_sessions_repository", "repository_id", "status"),
        Index("idx_analysis_sessions_created", desc("created_at")),
    )


class AnalysisSessionPR(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A pull request included in an analysis session."""

    __tablename__ = "analysis_session_prs"

    analysis_session_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("analysis_sessions.id", ondelete="CASCADE"), nullable=False
    )
    pull_request_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("pull_requests.id", ondelete="CASCADE"), nullable=False
    )
    status: Mapped[str] = mapped_column(analysis_status_enum, nullable=False)
    summary: Mapped[Optional[str]] = mapped_column(Text)

    __table_args__ = (
        UniqueConstraint(
            "analysis_session_id", "pull_request_id", name="uq_analysis_session_prs_pair"
        ),
        Index("idx_analysis_session_prs_pull_request", "pull_request_id"),
    )
