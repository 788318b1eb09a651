"""
BonusTransaction model.

Append-only ledger of bonuses credited to users.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base
from app.models.enums import BonusType
from app.models.types import MoneyType


class BonusTransaction(Base):
    """
    BonusTransaction entity.

    Rows are never updated after insert.

    Attributes:
        id: Primary key
        user_id: User credited
        amount: Bonus amount (USD)
        type: referral_bonus, welcome_bonus, milestone_bonus or tier_bonus
        reason: Human readable reason
        referral_id: Referral that produced the bonus (if any)
        created_at: When the bonus was credited
    """

    __tablename__ = "bonus_transactions"
    __table_args__ = (
        CheckConstraint("amount > 0", name="check_bonus_amount_positive"),
        CheckConstraint(
            "type IN (" + ", ".join(f"'{t.value}'" for t in BonusType) + ")",
            name="check_bonus_type",
        ),
        Index("idx_bonus_transactions_user_type", "user_id", "type"),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    user_id: Mapped[int] = mapped_column(
        Integer, nullable=False, index=True
    )
    amount: Mapped[Decimal] = mapped_column(
        MoneyType, nullable=False, comment="Bonus amount in USD"
    )
    type: Mapped[str] = mapped_column(String(32), nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    referral_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("referrals.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<BonusTransaction(id={self.id}, user_id={self.user_id}, "
            f"amount={self.amount}, type={self.type})>"
        )
