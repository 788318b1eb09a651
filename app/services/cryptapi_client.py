"""
CryptAPI client.

Creates forwarding payment addresses with an automatic commission split:
the payer sends to address_in, the provider forwards the commission
share to the platform wallet and the rest to the recipient wallet.
"""

import asyncio
from dataclasses import dataclass
from decimal import Decimal

import aiohttp
from loguru import logger

from app.utils.exceptions import PaymentProviderError, ValidationError
from settlement.constants import is_supported_cryptocurrency
from settlement.exceptions import UnsupportedCurrencyError


@dataclass(frozen=True)
class PaymentAddress:
    """Forwarding address returned by the provider."""

    address_in: str
    callback_url: str
    qr_code_url: str


class CryptApiClient:
    """HTTP client for CryptAPI address creation."""

    def __init__(
        self,
        base_url: str = "https://api.cryptapi.io",
        timeout_seconds: float = 10.0,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        """
        Initialize client.

        Args:
            base_url: API base URL without trailing slash
            timeout_seconds: Total request timeout
            session: Optional shared aiohttp session (not closed by the client)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self._session = session
        self._owns_session = session is None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
            self._owns_session = True
        return self._session

    async def create_payment_address(
        self,
        cryptocurrency: str,
        recipient_wallet: str,
        platform_wallet: str,
        commission_percentage: Decimal,
        callback_url: str,
        amount: Decimal | None = None,
    ) -> PaymentAddress:
        """
        Create a forwarding address.

        Args:
            cryptocurrency: Coin code
            recipient_wallet: Wallet receiving the recipient share
            platform_wallet: Wallet receiving the commission
            commission_percentage: Commission in percent (3 for 3%)
            callback_url: Webhook URL
            amount: Expected amount, used for the QR code link

        Returns:
            PaymentAddress

        Raises:
            ValidationError: If a required parameter is missing
            UnsupportedCurrencyError: If coin is not supported
            PaymentProviderError: On HTTP, transport or payload errors
        """
        if not cryptocurrency:
            raise ValidationError("Cryptocurrency is required")
        if not recipient_wallet or not recipient_wallet.strip():
            raise ValidationError("Recipient wallet address is required")
        if not platform_wallet or not platform_wallet.strip():
            raise ValidationError("Platform wallet address is required")
        if not callback_url:
            raise ValidationError("Callback URL is required")
        if not is_supported_cryptocurrency(cryptocurrency):
            raise UnsupportedCurrencyError(
                f"Unsupported cryptocurrency: {cryptocurrency}"
            )

        coin = cryptocurrency.strip().lower()
        url = f"{self.base_url}/{coin}/create/"
        payload = {
            "callback": callback_url,
            "address": recipient_wallet.strip(),
            "pending": 0,
            "confirmations": 1,
            "post": 1,
            "commission": {
                "address": platform_wallet.strip(),
                "percentage": float(commission_percentage),
            },
        }

        session = await self._get_session()
        try:
            async with session.post(
                url,
                json=payload,
                timeout=self.timeout,
                headers={"Content-Type": "application/json"},
            ) as response:
                if response.status != 200:
                    raise PaymentProviderError(
                        f"CryptAPI error: HTTP {response.status}"
                    )
                data = await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise PaymentProviderError(
                f"Failed to create payment address: {e}"
            ) from e
        except ValueError as e:
            raise PaymentProviderError("CryptAPI sent malformed JSON") from e

        if not isinstance(data, dict) or not data.get("address_in"):
            raise PaymentProviderError(
                "CryptAPI did not return a payment address"
            )

        address_in = data["address_in"]
        qr_code_url = f"{self.base_url}/{coin}/qrcode/?address={address_in}"
        if amount is not None:
            qr_code_url += f"&value={amount}"

        logger.info(f"Created {coin.upper()} payment address {address_in}")

        return PaymentAddress(
            address_in=address_in,
            callback_url=data.get("callback_url") or callback_url,
            qr_code_url=qr_code_url,
        )

    async def close(self) -> None:
        """Close the session if this client created it."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()
        self._session = None
