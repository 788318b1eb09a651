"""
Calculation errors.

Raised synchronously by the settlement calculators when an input
falls outside its contract. All of them are ValueError subclasses so
callers that only care about "bad input" can catch ValueError.
"""


class SettlementError(ValueError):
    """Base class for settlement calculation errors."""


class InvalidAmountError(SettlementError):
    """Amount is missing, not a number, or out of range."""


class InvalidRateError(SettlementError):
    """Commission or exchange rate is out of range."""


class UnsupportedCurrencyError(SettlementError):
    """Cryptocurrency code is not in the supported set."""


class InvalidBonusAmountError(SettlementError):
    """Bonus amount is not positive."""


class InvalidBonusTypeError(SettlementError):
    """Bonus type is not one of the known ledger types."""


class InvalidRoleError(SettlementError):
    """Referral role is neither referrer nor referred."""
