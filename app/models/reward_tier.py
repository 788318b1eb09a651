"""
RewardTier model.

Referral reward tiers by completed-referral count.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import CheckConstraint, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base
from app.models.types import MoneyType


class RewardTier(Base):
    """
    RewardTier entity.

    A tier covers min_referrals..max_referrals completed referrals,
    both ends inclusive; a NULL max_referrals leaves the tier open-ended.

    Attributes:
        id: Primary key
        name: Display name (e.g. "Silver")
        min_referrals: Lowest completed count in the tier
        max_referrals: Highest completed count in the tier, None if open
        bonus_amount: Tier bonus (USD)
        created_at: Creation timestamp
    """

    __tablename__ = "reward_tiers"
    __table_args__ = (
        CheckConstraint("min_referrals >= 1", name="check_reward_tier_min"),
        CheckConstraint(
            "max_referrals IS NULL OR max_referrals >= min_referrals",
            name="check_reward_tier_range",
        ),
        CheckConstraint("bonus_amount >= 0", name="check_reward_tier_bonus"),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    name: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    min_referrals: Mapped[int] = mapped_column(
        Integer, nullable=False, unique=True
    )
    max_referrals: Mapped[int | None] = mapped_column(Integer, nullable=True)
    bonus_amount: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    def __repr__(self) -> str:
        """String representation."""
        upper = self.max_referrals if self.max_referrals is not None else "+"
        return f"<RewardTier({self.name!r}, {self.min_referrals}..{upper})>"
