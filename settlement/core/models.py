"""Pydantic models for settlement calculations."""

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class CommissionSplit(BaseModel):
    """Result of splitting a gross amount into commission and payout.

    The two parts are rounded independently, so their sum may differ
    from total_amount by up to one unit of crypto precision.
    """

    model_config = ConfigDict(frozen=True)

    total_amount: Decimal = Field(..., gt=0, description="Gross payment amount")
    commission_amount: Decimal = Field(..., ge=0, description="Platform commission")
    recipient_amount: Decimal = Field(..., ge=0, description="Amount paid to the service provider")
    rate: Decimal = Field(..., ge=0, le=1, description="Commission rate applied (0.03 = 3%)")
    service_type: str | None = Field(default=None, description="Service type used for rate lookup")


class UserMetrics(BaseModel):
    """Per-user performance counters used for reputation scoring.

    Built from a database row (``from_attributes``) or from plain
    keyword arguments. Out-of-range values fail at construction.
    """

    model_config = ConfigDict(
        from_attributes=True,
        validate_assignment=True,
    )

    total_services_completed: int = Field(default=0, ge=0)
    average_rating: Decimal = Field(default=Decimal("0"), ge=0, le=5)
    success_rate: Decimal = Field(default=Decimal("0"), ge=0, le=100)
    on_time_delivery_rate: Decimal = Field(default=Decimal("0"), ge=0, le=100)
    average_response_time_minutes: Decimal = Field(default=Decimal("0"), ge=0)
    total_ratings: int = Field(default=0, ge=0)


class ReputationBreakdown(BaseModel):
    """Weighted components of a reputation score."""

    model_config = ConfigDict(frozen=True)

    services_points: Decimal
    rating_points: Decimal
    success_points: Decimal
    on_time_points: Decimal
    response_time_points: Decimal

    @property
    def total(self) -> Decimal:
        """Unrounded sum of all components."""
        return (
            self.services_points
            + self.rating_points
            + self.success_points
            + self.on_time_points
            + self.response_time_points
        )


class BonusAward(BaseModel):
    """A bonus to be written to the ledger for one side of a referral."""

    model_config = ConfigDict(frozen=True)

    role: str = Field(..., description="referrer or referred")
    amount: Decimal = Field(..., gt=0)
    bonus_type: str
    reason: str
