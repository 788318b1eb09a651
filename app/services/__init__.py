"""
Services.

Business logic layer.
"""

# Base Service Infrastructure
from app.services.base_service import (
    BaseService,
    log_operation,
    transaction,
)

# External providers
from app.services.cryptapi_client import CryptApiClient, PaymentAddress
from app.services.exchange_rate import (
    ExchangeRate,
    ExchangeRateCache,
    ExchangeRateService,
    TatumRateClient,
    create_exchange_rate_service,
)

# Core Services
from app.services.payment_service import PaymentService
from app.services.referral_service import ReferralService, ReferralStats
from app.services.reputation_service import ReputationService


__all__ = [
    # Base
    "BaseService",
    "log_operation",
    "transaction",
    # Providers
    "CryptApiClient",
    "PaymentAddress",
    "ExchangeRate",
    "ExchangeRateCache",
    "ExchangeRateService",
    "TatumRateClient",
    "create_exchange_rate_service",
    # Core
    "PaymentService",
    "ReferralService",
    "ReferralStats",
    "ReputationService",
]
