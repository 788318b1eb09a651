"""
Exchange rate service.

Rate lookup with caching plus crypto/USD conversion helpers.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from loguru import logger

from app.services.exchange_rate.cache import ExchangeRateCache
from app.services.exchange_rate.client import TatumRateClient
from app.utils.exceptions import ServiceError, ValidationError
from settlement.constants import (
    FIAT_CURRENCY,
    SUPPORTED_CRYPTOCURRENCIES,
    is_supported_cryptocurrency,
)
from settlement.core.conversion import convert_from_usd, convert_to_usd
from settlement.exceptions import UnsupportedCurrencyError


@dataclass(frozen=True)
class ExchangeRate:
    """Rate of one coin in USD."""

    currency_code: str
    rate_to_usd: Decimal
    fetched_at: datetime
    cached: bool
    fiat_currency: str = FIAT_CURRENCY


class ExchangeRateService:
    """
    Service for crypto to USD rates.

    Concurrent misses for the same coin may both hit the provider; the
    last response wins.
    """

    def __init__(
        self,
        client: TatumRateClient,
        cache: ExchangeRateCache | None = None,
    ) -> None:
        """
        Initialize exchange rate service.

        Args:
            client: Rate provider client
            cache: Rate cache (a fresh one with default TTL if omitted)
        """
        self.client = client
        self.cache = cache if cache is not None else ExchangeRateCache()
        self.logger = logger.bind(service=self.__class__.__name__)

    @staticmethod
    def normalize_currency_code(currency_code: str | None) -> str:
        """
        Validate and uppercase a coin code.

        Raises:
            ValidationError: If code is empty
            UnsupportedCurrencyError: If coin is not supported
        """
        if currency_code is None or not str(currency_code).strip():
            raise ValidationError("Currency code is required")

        code = str(currency_code).strip().upper()
        if not is_supported_cryptocurrency(code):
            raise UnsupportedCurrencyError(
                f"Unsupported cryptocurrency: {currency_code}. "
                f"Supported: {', '.join(SUPPORTED_CRYPTOCURRENCIES)}"
            )
        return code

    async def get_rate(
        self, currency_code: str, use_cache: bool = True
    ) -> ExchangeRate:
        """
        Get USD rate of a coin.

        Args:
            currency_code: Coin code (case-insensitive)
            use_cache: Serve a valid cached entry instead of fetching

        Returns:
            ExchangeRate

        Raises:
            ValidationError: If code is empty
            UnsupportedCurrencyError: If coin is not supported
            ConfigurationError: If the provider key is missing
            UpstreamRateError: If the provider fails (cache untouched)
        """
        code = self.normalize_currency_code(currency_code)

        if use_cache:
            entry = self.cache.get(code)
            if entry is not None:
                self.logger.debug(f"Rate cache hit for {code}")
                return ExchangeRate(
                    currency_code=code,
                    rate_to_usd=entry.rate_to_usd,
                    fetched_at=entry.fetched_at,
                    cached=True,
                )

        rate = await self.client.fetch_rate(code)
        entry = self.cache.set(code, rate)
        self.logger.info(f"Fetched {code} rate: {rate} {FIAT_CURRENCY}")

        return ExchangeRate(
            currency_code=code,
            rate_to_usd=entry.rate_to_usd,
            fetched_at=entry.fetched_at,
            cached=False,
        )

    async def get_all_rates(
        self, use_cache: bool = True
    ) -> dict[str, Decimal | None]:
        """
        Get rates of all supported coins concurrently.

        A coin whose lookup fails for any service reason (provider
        failure, missing credential) maps to None; programming errors
        still propagate.

        Returns:
            Dict of coin code to rate
        """
        results = await asyncio.gather(
            *(
                self.get_rate(code, use_cache=use_cache)
                for code in SUPPORTED_CRYPTOCURRENCIES
            ),
            return_exceptions=True,
        )

        rates: dict[str, Decimal | None] = {}
        for code, result in zip(SUPPORTED_CRYPTOCURRENCIES, results):
            if isinstance(result, ServiceError):
                self.logger.warning(f"Rate for {code} unavailable: {result}")
                rates[code] = None
            elif isinstance(result, BaseException):
                raise result
            else:
                rates[code] = result.rate_to_usd

        return rates

    @staticmethod
    def convert(
        amount: Decimal | int | float | str,
        rate_to_usd: Decimal | int | float | str,
    ) -> Decimal:
        """
        Convert a crypto amount with a known rate.

        Returns:
            USD value rounded to 2 places

        Raises:
            InvalidAmountError: If amount is negative
            InvalidRateError: If rate is not positive
        """
        return convert_to_usd(amount, rate_to_usd)

    async def convert_to_usd(
        self, amount: Decimal | int | float | str, currency_code: str
    ) -> Decimal:
        """Convert a crypto amount to USD at the current rate."""
        rate = await self.get_rate(currency_code)
        return convert_to_usd(amount, rate.rate_to_usd)

    async def convert_from_usd(
        self, usd_amount: Decimal | int | float | str, currency_code: str
    ) -> Decimal:
        """Convert a USD amount to crypto (8 places) at the current rate."""
        rate = await self.get_rate(currency_code)
        return convert_from_usd(usd_amount, rate.rate_to_usd)

    def clear_cache(self) -> None:
        """Drop all cached rates."""
        self.cache.clear()

    async def close(self) -> None:
        """Release the provider client."""
        await self.client.close()
