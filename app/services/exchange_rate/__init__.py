"""
Exchange rate package.

Tatum-backed crypto to USD rates with an in-memory TTL cache.
"""

import aiohttp

from app.config.settings import Settings, settings as default_settings
from app.services.exchange_rate.cache import ExchangeRateCache, RateCacheEntry
from app.services.exchange_rate.client import TatumRateClient
from app.services.exchange_rate.service import ExchangeRate, ExchangeRateService


def create_exchange_rate_service(
    config: Settings | None = None,
    session: aiohttp.ClientSession | None = None,
) -> ExchangeRateService:
    """
    Build an exchange rate service from settings.

    Args:
        config: Settings (module settings if omitted)
        session: Optional shared aiohttp session

    Returns:
        ExchangeRateService with its own cache
    """
    config = config or default_settings
    client = TatumRateClient(
        api_key=config.tatum_api_key,
        base_url=config.tatum_api_base,
        timeout_seconds=config.http_timeout_seconds,
        session=session,
    )
    cache = ExchangeRateCache(ttl_seconds=config.exchange_rate_cache_ttl_seconds)
    return ExchangeRateService(client=client, cache=cache)


__all__ = [
    "ExchangeRate",
    "ExchangeRateCache",
    "ExchangeRateService",
    "RateCacheEntry",
    "TatumRateClient",
    "create_exchange_rate_service",
]
