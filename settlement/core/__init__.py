"""
Core settlement functionality.

Calculators and data models for commission, conversion, reputation
and referral bonuses.
"""

from settlement.core.commission import CommissionCalculator
from settlement.core.conversion import (
    convert_from_usd,
    convert_to_usd,
    round_crypto,
    round_fiat,
    to_decimal,
)
from settlement.core.models import (
    BonusAward,
    CommissionSplit,
    ReputationBreakdown,
    UserMetrics,
)
from settlement.core.referral import ReferralBonusCalculator
from settlement.core.reputation import ReputationScorer, running_average

__all__ = [
    "CommissionCalculator",
    "ReputationScorer",
    "ReferralBonusCalculator",
    "running_average",
    "convert_to_usd",
    "convert_from_usd",
    "round_crypto",
    "round_fiat",
    "to_decimal",
    "CommissionSplit",
    "UserMetrics",
    "ReputationBreakdown",
    "BonusAward",
]
