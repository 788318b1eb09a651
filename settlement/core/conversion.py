"""
Rounding and crypto/USD conversion.

Crypto amounts are kept at 8 decimal places, fiat at 2. Rounding is
half away from zero (ROUND_HALF_UP on Decimal).
"""

import math
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from settlement.constants import CRYPTO_QUANT, FIAT_QUANT
from settlement.exceptions import InvalidAmountError, InvalidRateError


def to_decimal(value: Decimal | int | float | str, field: str = "Amount") -> Decimal:
    """
    Coerce a numeric input to Decimal.

    Floats go through str() so 0.1 becomes Decimal("0.1") rather than
    its binary expansion.

    Args:
        value: Number or numeric string
        field: Field name used in the error message

    Returns:
        Decimal value

    Raises:
        InvalidAmountError: If value is None, bool, NaN, infinite or not numeric
    """
    if value is None or isinstance(value, bool):
        raise InvalidAmountError(f"{field} is required")

    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            raise InvalidAmountError(f"{field} must be a finite number")
        result = Decimal(str(value))
    else:
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError) as exc:
            raise InvalidAmountError(f"{field} must be a number") from exc

    if not result.is_finite():
        raise InvalidAmountError(f"{field} must be a finite number")
    return result


def round_crypto(value: Decimal) -> Decimal:
    """Round to cryptocurrency precision (8 places)."""
    return value.quantize(CRYPTO_QUANT, rounding=ROUND_HALF_UP)


def round_fiat(value: Decimal) -> Decimal:
    """Round to fiat precision (2 places)."""
    return value.quantize(FIAT_QUANT, rounding=ROUND_HALF_UP)


def convert_to_usd(
    amount: Decimal | int | float | str,
    rate_to_usd: Decimal | int | float | str,
) -> Decimal:
    """
    Convert a crypto amount to USD.

    Formula: round2(amount * rate_to_usd)

    Args:
        amount: Crypto amount (>= 0)
        rate_to_usd: Price of one coin in USD (> 0)

    Returns:
        USD value rounded to 2 places

    Raises:
        InvalidAmountError: If amount is negative
        InvalidRateError: If rate is not positive

    Example:
        >>> convert_to_usd(Decimal("0.01234"), Decimal("65000.123"))
        Decimal('802.10')
    """
    crypto_amount = to_decimal(amount)
    if crypto_amount < 0:
        raise InvalidAmountError("Amount must be positive")

    rate = _validate_rate(rate_to_usd)
    return round_fiat(crypto_amount * rate)


def convert_from_usd(
    usd_amount: Decimal | int | float | str,
    rate_to_usd: Decimal | int | float | str,
) -> Decimal:
    """
    Convert a USD amount to crypto.

    Formula: round8(usd_amount / rate_to_usd)

    Raises:
        InvalidAmountError: If amount is negative
        InvalidRateError: If rate is not positive
    """
    usd = to_decimal(usd_amount)
    if usd < 0:
        raise InvalidAmountError("Amount must be positive")

    rate = _validate_rate(rate_to_usd)
    return round_crypto(usd / rate)


def _validate_rate(rate_to_usd: Decimal | int | float | str) -> Decimal:
    try:
        rate = to_decimal(rate_to_usd, field="Exchange rate")
    except InvalidAmountError as exc:
        raise InvalidRateError(str(exc)) from exc
    if rate <= 0:
        raise InvalidRateError("Exchange rate must be positive")
    return rate
