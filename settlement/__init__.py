"""
Marketplace settlement calculators.

Standalone package for commission splitting, crypto/USD conversion,
reputation scoring and referral bonus rules.

Example:
    >>> from decimal import Decimal
    >>> from settlement import CommissionCalculator
    >>>
    >>> calc = CommissionCalculator()
    >>> split = calc.split_by_service_type(Decimal("100"), "programming_help")
    >>> print(f"Commission: {split.commission_amount}")
    Commission: 20.00000000
"""

from settlement.constants import (
    DEFAULT_COMMISSION_RATE,
    SERVICE_COMMISSION_RATES,
    SUPPORTED_CRYPTOCURRENCIES,
    get_commission_rate,
    get_milestone_bonus,
    get_supported_cryptocurrencies,
    is_supported_cryptocurrency,
)
from settlement.core import (
    BonusAward,
    CommissionCalculator,
    CommissionSplit,
    ReferralBonusCalculator,
    ReputationBreakdown,
    ReputationScorer,
    UserMetrics,
    convert_from_usd,
    convert_to_usd,
    round_crypto,
    round_fiat,
    running_average,
    to_decimal,
)
from settlement.exceptions import (
    InvalidAmountError,
    InvalidBonusAmountError,
    InvalidBonusTypeError,
    InvalidRateError,
    InvalidRoleError,
    SettlementError,
    UnsupportedCurrencyError,
)
from settlement.utils import (
    format_commission_split,
    format_crypto_amount,
    format_currency,
    format_rate,
)


__version__ = "1.0.0"
__all__ = [
    # Core
    "CommissionCalculator",
    "ReputationScorer",
    "ReferralBonusCalculator",
    "convert_to_usd",
    "convert_from_usd",
    "round_crypto",
    "round_fiat",
    "running_average",
    "to_decimal",
    # Models
    "CommissionSplit",
    "UserMetrics",
    "ReputationBreakdown",
    "BonusAward",
    # Constants
    "DEFAULT_COMMISSION_RATE",
    "SERVICE_COMMISSION_RATES",
    "SUPPORTED_CRYPTOCURRENCIES",
    "get_commission_rate",
    "get_milestone_bonus",
    "get_supported_cryptocurrencies",
    "is_supported_cryptocurrency",
    # Errors
    "SettlementError",
    "InvalidAmountError",
    "InvalidRateError",
    "UnsupportedCurrencyError",
    "InvalidBonusAmountError",
    "InvalidBonusTypeError",
    "InvalidRoleError",
    # Formatters
    "format_currency",
    "format_crypto_amount",
    "format_rate",
    "format_commission_split",
]
