"""
Commission calculator.

Pure business logic for splitting a gross payment into the platform
commission and the service provider payout. No database or HTTP
dependencies.
"""

from decimal import Decimal

from settlement.constants import (
    DEFAULT_COMMISSION_RATE,
    SERVICE_COMMISSION_RATES,
)
from settlement.core.conversion import round_crypto, to_decimal
from settlement.core.models import CommissionSplit
from settlement.exceptions import InvalidAmountError, InvalidRateError


class CommissionCalculator:
    """
    Commission splitting at a fixed or service-type dependent rate.

    Rates are fractions in [0, 1]. Both parts of the split are rounded
    to crypto precision independently; the rounding remainder is not
    redistributed.
    """

    def __init__(
        self,
        default_rate: Decimal = DEFAULT_COMMISSION_RATE,
        service_rates: dict[str, Decimal] | None = None,
    ) -> None:
        """
        Initialize calculator.

        Args:
            default_rate: Rate used when none is given or the service type is unknown
            service_rates: Per service type overrides (defaults to the platform table)
        """
        self.default_rate = self._validate_rate(default_rate)
        self.service_rates = dict(
            SERVICE_COMMISSION_RATES if service_rates is None else service_rates
        )

    def split(
        self,
        total_amount: Decimal | int | float | str,
        rate: Decimal | int | float | str | None = None,
    ) -> CommissionSplit:
        """
        Split a gross amount into commission and recipient parts.

        Formula:
            commission = round8(total * rate)
            recipient = round8(total * (1 - rate))

        Args:
            total_amount: Gross amount (> 0)
            rate: Commission rate in [0, 1] (default 0.03)

        Returns:
            CommissionSplit

        Raises:
            InvalidAmountError: If total_amount <= 0
            InvalidRateError: If rate is outside [0, 1]

        Example:
            >>> calc = CommissionCalculator()
            >>> result = calc.split(Decimal("100"))
            >>> result.commission_amount, result.recipient_amount
            (Decimal('3.00000000'), Decimal('97.00000000'))
        """
        total = to_decimal(total_amount)
        if total <= 0:
            raise InvalidAmountError("Amount must be greater than 0")

        applied_rate = self.default_rate if rate is None else self._validate_rate(rate)

        return CommissionSplit(
            total_amount=total,
            commission_amount=round_crypto(total * applied_rate),
            recipient_amount=round_crypto(total * (1 - applied_rate)),
            rate=applied_rate,
        )

    def split_by_service_type(
        self,
        amount: Decimal | int | float | str,
        service_type: str | None,
    ) -> CommissionSplit:
        """
        Split using the commission tier of a service type.

        Unknown service types use the default rate; this is not an error.
        """
        rate = self.rate_for_service_type(service_type)
        result = self.split(amount, rate)
        return result.model_copy(update={"service_type": service_type})

    def rate_for_service_type(self, service_type: str | None) -> Decimal:
        """Look up the commission rate for a service type."""
        if not service_type:
            return self.default_rate
        return self.service_rates.get(service_type, self.default_rate)

    def commission_rates(self) -> list[tuple[str, Decimal]]:
        """List configured service-type rates sorted by service type."""
        return sorted(self.service_rates.items())

    @staticmethod
    def _validate_rate(rate: Decimal | int | float | str) -> Decimal:
        try:
            value = to_decimal(rate, field="Commission rate")
        except InvalidAmountError as exc:
            raise InvalidRateError(str(exc)) from exc
        if value < 0 or value > 1:
            raise InvalidRateError("Commission rate must be between 0 and 1")
        return value
