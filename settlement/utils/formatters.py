"""
Formatting utilities for amounts, rates and splits.

Functions that turn settlement numbers into display strings.
"""

from decimal import Decimal
from typing import Union

from settlement.constants import CRYPTO_PRECISION, FIAT_PRECISION
from settlement.core.conversion import round_crypto, to_decimal
from settlement.core.models import CommissionSplit


def format_currency(
    amount: Union[float, Decimal],
    currency: str = "USD",
    decimals: int = FIAT_PRECISION,
) -> str:
    """
    Format an amount with thousands separators and a currency.

    Args:
        amount: Amount to format
        currency: Currency code or symbol (symbols like "$" are prefixed)
        decimals: Digits after the decimal point

    Returns:
        Formatted string

    Example:
        >>> format_currency(1234.5)
        '1,234.50 USD'
        >>> format_currency(1000, currency="$", decimals=0)
        '$1,000'
    """
    formatted = f"{to_decimal(amount):,.{decimals}f}"
    if currency.startswith("$") or currency.startswith("€"):
        return f"{currency}{formatted}"
    return f"{formatted} {currency}"


def format_crypto_amount(
    amount: Union[float, Decimal, str],
    cryptocurrency: str,
) -> str:
    """
    Format a crypto amount at full precision.

    Example:
        >>> format_crypto_amount(Decimal("0.01234567"), "btc")
        '0.01234567 BTC'
    """
    rounded = round_crypto(to_decimal(amount))
    return f"{rounded:.{CRYPTO_PRECISION}f} {cryptocurrency.upper()}"


def format_rate(rate: Decimal) -> str:
    """Format a commission rate fraction as a percentage ("0.03" -> "3%")."""
    percent = (to_decimal(rate) * 100).normalize()
    return f"{percent:f}%"


def format_commission_split(
    split: CommissionSplit,
    cryptocurrency: str,
) -> str:
    """
    Format a commission split as a multi-line summary.

    Args:
        split: Calculated split
        cryptocurrency: Coin code used for the amounts

    Returns:
        Human readable summary
    """
    lines = [
        f"Total: {format_crypto_amount(split.total_amount, cryptocurrency)}",
        (
            f"Commission ({format_rate(split.rate)}): "
            f"{format_crypto_amount(split.commission_amount, cryptocurrency)}"
        ),
        f"Recipient: {format_crypto_amount(split.recipient_amount, cryptocurrency)}",
    ]
    if split.service_type:
        lines.insert(0, f"Service: {split.service_type}")
    return "\n".join(lines)
