"""
UserBadge model.

Badges earned by users; each badge is awarded at most once per user.
"""

from datetime import UTC, datetime

from sqlalchemy import DateTime, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base


class UserBadge(Base):
    """UserBadge entity."""

    __tablename__ = "user_badges"
    __table_args__ = (
        UniqueConstraint("user_id", "slug", name="uq_user_badges_user_slug"),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    user_id: Mapped[int] = mapped_column(
        Integer, nullable=False, index=True
    )
    slug: Mapped[str] = mapped_column(String(64), nullable=False)
    earned_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    def __repr__(self) -> str:
        """String representation."""
        return f"<UserBadge(user_id={self.user_id}, slug={self.slug!r})>"
