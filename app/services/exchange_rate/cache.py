"""
In-memory exchange rate cache.

Entries expire after a fixed TTL measured with an injectable clock, so
tests can move time forward without sleeping.
"""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from loguru import logger

from app.utils.datetime_utils import seconds_since, utc_now
from settlement.constants import RATE_CACHE_TTL_SECONDS


@dataclass(frozen=True)
class RateCacheEntry:
    """Cached rate of one coin."""

    currency_code: str
    rate_to_usd: Decimal
    fetched_at: datetime


class ExchangeRateCache:
    """
    Rate cache keyed by uppercase currency code.

    An entry is valid while now - fetched_at <= ttl_seconds. Expired
    entries are evicted when looked up.
    """

    def __init__(
        self,
        ttl_seconds: int = RATE_CACHE_TTL_SECONDS,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """
        Initialize cache.

        Args:
            ttl_seconds: Entry lifetime in seconds
            clock: Returns the current timezone-aware datetime
        """
        if ttl_seconds <= 0:
            raise ValueError("Cache TTL must be positive")
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, RateCacheEntry] = {}

    def get(self, currency_code: str) -> RateCacheEntry | None:
        """
        Get a valid entry.

        Args:
            currency_code: Uppercase coin code

        Returns:
            Entry or None if missing or expired
        """
        entry = self._entries.get(currency_code)
        if entry is None:
            return None

        age = seconds_since(entry.fetched_at, self._clock())
        if age > self.ttl_seconds:
            logger.debug(f"Rate cache entry for {currency_code} expired ({age:.0f}s)")
            del self._entries[currency_code]
            return None

        return entry

    def set(self, currency_code: str, rate_to_usd: Decimal) -> RateCacheEntry:
        """Store a freshly fetched rate, replacing any previous entry."""
        entry = RateCacheEntry(
            currency_code=currency_code,
            rate_to_usd=rate_to_usd,
            fetched_at=self._clock(),
        )
        self._entries[currency_code] = entry
        return entry

    def invalidate(self, currency_code: str) -> None:
        """Drop the entry of one coin."""
        self._entries.pop(currency_code, None)

    def clear(self) -> None:
        """Drop all entries."""
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, currency_code: object) -> bool:
        return currency_code in self._entries
