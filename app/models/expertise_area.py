"""
ExpertiseArea model.

Per-user track record in one subject of one service type.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import DateTime, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base
from app.models.types import MoneyType, RatingType


class ExpertiseArea(Base):
    """
    ExpertiseArea entity.

    Attributes:
        id: Primary key
        user_id: Service provider
        service_type: Service type slug (e.g. "programming_help")
        subject: Subject name as entered by the provider
        services_completed: Services completed in this subject
        rated_services: Services that came with a rating
        average_rating: Average over rated services (0-5)
        total_earnings: Earnings in this subject (USD)
        created_at: First completion in the subject
        updated_at: Last update timestamp
    """

    __tablename__ = "expertise_areas"
    __table_args__ = (
        UniqueConstraint(
            "user_id", "service_type", "subject",
            name="uq_expertise_areas_user_type_subject",
        ),
        Index(
            "idx_expertise_areas_type_services",
            "service_type", "services_completed",
        ),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    user_id: Mapped[int] = mapped_column(
        Integer, nullable=False, index=True
    )
    service_type: Mapped[str] = mapped_column(String(64), nullable=False)
    subject: Mapped[str] = mapped_column(String(128), nullable=False)
    services_completed: Mapped[int] = mapped_column(
        Integer, default=0, nullable=False
    )
    rated_services: Mapped[int] = mapped_column(
        Integer, default=0, nullable=False
    )
    average_rating: Mapped[Decimal] = mapped_column(
        RatingType, default=Decimal("0"), nullable=False
    )
    total_earnings: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
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
            f"<ExpertiseArea(user_id={self.user_id}, "
            f"service_type={self.service_type!r}, subject={self.subject!r}, "
            f"services={self.services_completed})>"
        )
