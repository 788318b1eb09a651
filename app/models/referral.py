"""
Referral models.

ReferralCode holds the one shareable code per user; Referral links a
referrer to the user who signed up with that code.
"""

from datetime import UTC, datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Index,
    Integer,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base
from app.models.enums import ReferralStatus


class ReferralCode(Base):
    """
    ReferralCode entity.

    Attributes:
        id: Primary key
        user_id: Owner of the code (one code per user)
        code: Shareable referral code
        is_active: Inactive codes cannot be used for new referrals
        created_at: Creation timestamp
    """

    __tablename__ = "referral_codes"

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    user_id: Mapped[int] = mapped_column(
        Integer, nullable=False, unique=True, index=True
    )
    code: Mapped[str] = mapped_column(
        String(32), nullable=False, unique=True, index=True
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<ReferralCode(id={self.id}, user_id={self.user_id}, "
            f"code={self.code!r}, active={self.is_active})>"
        )


class Referral(Base):
    """
    Referral entity.

    A user may be referred at most once (unique referred_id) and
    cannot refer themselves (check constraint).

    Attributes:
        id: Primary key
        referrer_id: User who owns the referral code
        referred_id: User who signed up with the code
        referral_code: Code used
        status: pending or completed
        created_at: When the referral was tracked
        completed_at: When bonuses were paid
    """

    __tablename__ = "referrals"
    __table_args__ = (
        CheckConstraint(
            "referrer_id <> referred_id", name="check_referral_not_self"
        ),
        Index("idx_referrals_referrer_status", "referrer_id", "status"),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    referrer_id: Mapped[int] = mapped_column(
        Integer, nullable=False, index=True
    )
    referred_id: Mapped[int] = mapped_column(
        Integer, nullable=False, unique=True
    )
    referral_code: Mapped[str] = mapped_column(
        String(32), nullable=False
    )
    status: Mapped[str] = mapped_column(
        String(20),
        default=ReferralStatus.PENDING.value,
        nullable=False,
        index=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<Referral(id={self.id}, referrer_id={self.referrer_id}, "
            f"referred_id={self.referred_id}, status={self.status})>"
        )

    @property
    def is_completed(self) -> bool:
        """Check if referral bonuses were already paid."""
        return self.status == ReferralStatus.COMPLETED.value
