"""contributors table."""

from typing import Optional

from sqlalchemy import Index, Text
from sqlalchemy.orm import Mapped, mapped_column

from repowatch.core.database import Base, TimestampMixin, UUIDPrimaryKeyMixin


class Contributor(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A GitHub user seen as a pull-request author; shared across repositories."""

    __tablename__ = "contributors"

    github_user_id: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    login: Mapped[str] = mapped_column(Text, nullable=False)
    name: Mapped[Optional[str]] = mapped_column(Text)
    avatar_url: Mapped[Optional[str]] = mapped_column(Text)

    __table_args__ = (Index("idx_contributors_login", "login"),)
