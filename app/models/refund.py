"""
Refund model.

Refund requests against payments, at most one per payment.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base
from app.models.enums import RefundStatus
from app.models.types import MoneyType


class Refund(Base):
    """
    Refund entity.

    Timeline:
    - request: status = pending
    - review: approved or rejected (terminal)
    - payout sent: processed (terminal), payment marked refunded

    Attributes:
        id: Primary key
        payment_id: Refunded payment (unique)
        requester_id: Payment participant asking for the refund
        amount: Amount to refund (crypto)
        cryptocurrency: Coin of the payment
        usd_equivalent: USD value of the payment at initiation
        reason: Why the refund was requested
        status: pending, approved, rejected or processed
        admin_notes: Reviewer notes
        refund_transaction_hash: Outgoing transaction of the payout
        created_at: Request timestamp
        processed_at: When the payout was recorded
    """

    __tablename__ = "refunds"
    __table_args__ = (
        CheckConstraint("amount > 0", name="check_refund_amount_positive"),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    payment_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("payments.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    )
    requester_id: Mapped[int] = mapped_column(
        Integer, nullable=False, index=True
    )
    amount: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    cryptocurrency: Mapped[str] = mapped_column(String(10), nullable=False)
    usd_equivalent: Mapped[Decimal | None] = mapped_column(
        MoneyType, nullable=True
    )
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20),
        default=RefundStatus.PENDING.value,
        nullable=False,
        index=True,
    )
    admin_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    refund_transaction_hash: Mapped[str | None] = mapped_column(
        String(255), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )
    processed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<Refund(id={self.id}, payment_id={self.payment_id}, "
            f"status={self.status})>"
        )
