"""
Database models.

Exports all SQLAlchemy models for easy imports.
"""

from app.models.base import Base

# Referrals
from app.models.bonus_transaction import BonusTransaction
from app.models.enums import (
    BonusType,
    PaymentStatus,
    ReferralStatus,
    RefundStatus,
)

# Reputation
from app.models.expertise_area import ExpertiseArea

# Payments
from app.models.payment import Payment
from app.models.performance_metrics import PerformanceMetrics
from app.models.referral import Referral, ReferralCode
from app.models.refund import Refund
from app.models.reward_tier import RewardTier
from app.models.user_badge import UserBadge


__all__ = [
    "Base",
    "BonusTransaction",
    "BonusType",
    "ExpertiseArea",
    "Payment",
    "PaymentStatus",
    "PerformanceMetrics",
    "Referral",
    "ReferralCode",
    "ReferralStatus",
    "Refund",
    "RefundStatus",
    "RewardTier",
    "UserBadge",
]
