"""
Status and type enums for database models.
"""

from enum import StrEnum


class ReferralStatus(StrEnum):
    """Referral lifecycle: pending -> completed (terminal)."""

    PENDING = "pending"
    COMPLETED = "completed"


class BonusType(StrEnum):
    """Bonus ledger entry types."""

    REFERRAL_BONUS = "referral_bonus"
    WELCOME_BONUS = "welcome_bonus"
    MILESTONE_BONUS = "milestone_bonus"
    TIER_BONUS = "tier_bonus"


class PaymentStatus(StrEnum):
    """Payment lifecycle: pending -> confirmed (terminal)."""

    PENDING = "pending"
    CONFIRMED = "confirmed"


class RefundStatus(StrEnum):
    """Refund lifecycle: pending -> approved -> processed, or rejected."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    PROCESSED = "processed"
