"""repositories table."""

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Index, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from repowatch.core.database import Base, TimestampMixin, UUIDPrimaryKeyMixin


class Repository(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "repositories"

    github_repo_id: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    owner: Mapped[str] = mapped_column(Text, nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    url: Mapped[str] = mapped_column(Text, nullable=False)
    default_branch: Mapped[str] = mapped_column(Text, nullable=False, server_default=text("'main'"))

    # Per-repository credential used by background syncs. NULL means the
    # repository is linked but not yet configured for syncing.
    access_token: Mapped[Optional[str]] = mapped_column(Text)

    last_synced_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    sync_status: Mapped[str] = mapped_column(
        Text, nullable=False, server_default=text("'healthy'")
    )
    sync_error: Mapped[Optional[str]] = mapped_column(Text)

    __table_args__ = (Index("idx_repositories_owner_name", "owner", "name"),)

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"
