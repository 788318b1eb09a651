"""
Utility functions for settlement.

Formatting helpers for amounts, rates and commission splits.
"""

from settlement.utils.formatters import (
    format_commission_split,
    format_crypto_amount,
    format_currency,
    format_rate,
)

__all__ = [
    "format_currency",
    "format_crypto_amount",
    "format_rate",
    "format_commission_split",
]
