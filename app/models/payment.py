"""
Payment model.

Tracks a crypto payment from address creation to on-chain confirmation,
together with its commission split.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Integer,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base
from app.models.enums import PaymentStatus
from app.models.types import MoneyType, RateType


class Payment(Base):
    """
    Payment entity.

    Timeline:
    - initiate: forwarding address created, status = pending
    - webhook with pending == 0 and confirmations >= 1: status = confirmed
    - refund processed: refunded = True (status unchanged)

    Attributes:
        id: Primary key
        job_id: Marketplace job/test/homework being paid for
        payer_id: User paying
        recipient_id: Service provider receiving the payout
        service_type: Service type used for the commission tier
        cryptocurrency: Coin code (BTC, ETH, DOGE, SOL)
        amount: Amount in crypto
        usd_equivalent: Amount in USD at initiation
        commission_rate: Commission fraction applied
        commission_amount: Platform share
        recipient_amount: Provider share
        payment_address: Provider-generated address the payer sends to
        recipient_wallet: Provider wallet receiving the forwarded funds
        platform_wallet_address: Wallet receiving the commission
        status: pending or confirmed
        transaction_hash: Incoming transaction hash
        confirmations: Latest confirmation count
        value_received: Amount reported by the webhook (crypto)
        refunded: A refund was paid out
        refunded_at: When the refund was paid out
    """

    __tablename__ = "payments"
    __table_args__ = (
        CheckConstraint("amount > 0", name="check_payment_amount_positive"),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    job_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    payer_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    recipient_id: Mapped[int] = mapped_column(
        Integer, nullable=False, index=True
    )
    service_type: Mapped[str | None] = mapped_column(
        String(64), nullable=True
    )
    cryptocurrency: Mapped[str] = mapped_column(String(10), nullable=False)

    amount: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    usd_equivalent: Mapped[Decimal | None] = mapped_column(
        MoneyType, nullable=True
    )

    commission_rate: Mapped[Decimal] = mapped_column(
        RateType, nullable=False
    )
    commission_amount: Mapped[Decimal] = mapped_column(
        MoneyType, nullable=False
    )
    recipient_amount: Mapped[Decimal] = mapped_column(
        MoneyType, nullable=False
    )

    payment_address: Mapped[str] = mapped_column(
        String(255), nullable=False, unique=True, index=True
    )
    recipient_wallet: Mapped[str] = mapped_column(String(255), nullable=False)
    platform_wallet_address: Mapped[str] = mapped_column(
        String(255), nullable=False
    )

    status: Mapped[str] = mapped_column(
        String(20),
        default=PaymentStatus.PENDING.value,
        nullable=False,
        index=True,
    )
    transaction_hash: Mapped[str | None] = mapped_column(
        String(255), nullable=True
    )
    confirmations: Mapped[int] = mapped_column(
        Integer, default=0, nullable=False
    )
    value_received: Mapped[Decimal | None] = mapped_column(
        MoneyType, nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )
    confirmed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    refunded: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    refunded_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<Payment(id={self.id}, {self.amount} {self.cryptocurrency}, "
            f"status={self.status})>"
        )

    @property
    def is_confirmed(self) -> bool:
        """Check if payment reached its terminal state."""
        return self.status == PaymentStatus.CONFIRMED.value
