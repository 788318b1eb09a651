"""
Tatum exchange rate client.

Fetches the USD price of a coin:
    GET {base}/tatum/rate/{COIN}?basePair=USD  (x-api-key header)
    -> {"value": "<decimal string>", ...}
"""

import asyncio
from decimal import Decimal

import aiohttp
from loguru import logger

from app.utils.exceptions import ConfigurationError, UpstreamRateError
from settlement.constants import FIAT_CURRENCY
from settlement.core.conversion import to_decimal
from settlement.exceptions import InvalidAmountError


class TatumRateClient:
    """
    HTTP client for the Tatum rate endpoint.

    A session passed in by the caller is used as-is and never closed by
    the client; otherwise the client creates and owns one.
    """

    def __init__(
        self,
        api_key: str | None,
        base_url: str = "https://api.tatum.io/v3",
        timeout_seconds: float = 10.0,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        """
        Initialize client.

        Args:
            api_key: Tatum API key (None when not configured)
            base_url: API base URL without trailing slash
            timeout_seconds: Total request timeout
            session: Optional shared aiohttp session
        """
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self._session = session
        self._owns_session = session is None

    @property
    def is_configured(self) -> bool:
        """Check if an API key is available."""
        return bool(self.api_key)

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
            self._owns_session = True
        return self._session

    async def fetch_rate(self, currency_code: str) -> Decimal:
        """
        Fetch the USD rate of a coin.

        Args:
            currency_code: Uppercase coin code

        Returns:
            Positive rate

        Raises:
            ConfigurationError: If no API key is configured (no request made)
            UpstreamRateError: On HTTP, transport or payload errors
        """
        if not self.is_configured:
            raise ConfigurationError(
                "Exchange rate API key is not configured (set TATUM_API_KEY)"
            )

        url = f"{self.base_url}/tatum/rate/{currency_code}"
        session = await self._get_session()

        try:
            async with session.get(
                url,
                params={"basePair": FIAT_CURRENCY},
                headers={"x-api-key": self.api_key},
                timeout=self.timeout,
            ) as response:
                if response.status != 200:
                    raise UpstreamRateError(
                        f"Rate provider returned HTTP {response.status} "
                        f"for {currency_code}"
                    )
                data = await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise UpstreamRateError(
                f"Rate request for {currency_code} failed: {e}"
            ) from e
        except ValueError as e:
            raise UpstreamRateError(
                f"Rate provider sent malformed JSON for {currency_code}"
            ) from e

        return self._parse_rate(currency_code, data)

    @staticmethod
    def _parse_rate(currency_code: str, data: object) -> Decimal:
        if not isinstance(data, dict) or data.get("value") is None:
            raise UpstreamRateError(
                f"Rate provider response for {currency_code} has no value"
            )

        try:
            rate = to_decimal(data["value"], field="Exchange rate")
        except InvalidAmountError as e:
            raise UpstreamRateError(
                f"Rate provider sent invalid value for {currency_code}: "
                f"{data['value']!r}"
            ) from e

        if rate <= 0:
            raise UpstreamRateError(
                f"Rate provider sent non-positive rate for {currency_code}"
            )

        logger.debug(f"Fetched {currency_code}/{FIAT_CURRENCY} rate {rate}")
        return rate

    async def close(self) -> None:
        """Close the session if this client created it."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()
        self._session = None
