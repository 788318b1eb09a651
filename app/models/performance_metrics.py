"""
PerformanceMetrics model.

Per-user aggregate counters and the reputation score derived from them.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import DateTime, Integer
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base
from app.models.types import MoneyType, PercentType, RatingType


class PerformanceMetrics(Base):
    """
    PerformanceMetrics entity.

    reputation_score is recomputed from the counters on every update,
    never incremented in place.

    Attributes:
        id: Primary key
        user_id: User the counters belong to
        reputation_score: Derived score
        total_services_completed: Completed services
        total_earnings: Lifetime earnings (USD)
        average_rating: Average rating (0-5)
        total_ratings: Number of ratings received
        average_response_time_minutes: Average first response time
        response_time_samples: Completions that reported a response time
        success_rate: Successful services (percent)
        on_time_delivery_rate: On-time deliveries (percent)
        updated_at: Last update timestamp
    """

    __tablename__ = "user_metrics"

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    user_id: Mapped[int] = mapped_column(
        Integer, nullable=False, unique=True, index=True
    )
    reputation_score: Mapped[int] = mapped_column(
        Integer, default=0, nullable=False, index=True
    )
    total_services_completed: Mapped[int] = mapped_column(
        Integer, default=0, nullable=False
    )
    total_earnings: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    average_rating: Mapped[Decimal] = mapped_column(
        RatingType, default=Decimal("0"), nullable=False
    )
    total_ratings: Mapped[int] = mapped_column(
        Integer, default=0, nullable=False
    )
    average_response_time_minutes: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    response_time_samples: Mapped[int] = mapped_column(
        Integer, default=0, nullable=False
    )
    success_rate: Mapped[Decimal] = mapped_column(
        PercentType, default=Decimal("0"), nullable=False
    )
    on_time_delivery_rate: Mapped[Decimal] = mapped_column(
        PercentType, default=Decimal("0"), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False,
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<PerformanceMetrics(user_id={self.user_id}, "
            f"score={self.reputation_score}, "
            f"services={self.total_services_completed})>"
        )
