"""
Exception handling utilities.

Defines the service error taxonomy and categorized exception types for
proper error handling.
"""

from sqlalchemy.exc import SQLAlchemyError

from settlement.exceptions import SettlementError


class ServiceError(Exception):
    """Base class for service-level errors with a user-facing message."""


class ValidationError(ServiceError, ValueError):
    """Required field missing or malformed. Checked before external calls."""


class NotFoundError(ServiceError):
    """Lookup miss on a mutate path."""


class ConflictError(ServiceError):
    """Uniqueness violation or invalid state transition."""


class AuthorizationError(ServiceError):
    """Actor does not own the resource."""


class UpstreamError(ServiceError):
    """Third-party HTTP failure or malformed response."""


class ConfigurationError(ServiceError):
    """Required external credential or setting is missing."""


# Exchange rates / payments
class UpstreamRateError(UpstreamError):
    """Exchange rate provider failed or returned an unusable rate."""


class PaymentProviderError(UpstreamError):
    """Payment address provider failed."""


class PaymentNotFoundError(NotFoundError):
    """Payment does not exist."""


class InvalidStatusTransitionError(ConflictError):
    """Requested status change is not allowed from the current status."""


# Refunds
class RefundNotFoundError(NotFoundError):
    """Refund does not exist."""


class DuplicateRefundError(ConflictError):
    """Payment already has a refund request."""


# Referrals
class InvalidReferralCodeError(ValidationError):
    """Referral code is unknown or inactive."""


class SelfReferralError(ValidationError):
    """User tried to use their own referral code."""


class AlreadyReferredError(ConflictError):
    """User already has a referral record."""


class ReferralNotFoundError(NotFoundError):
    """Referral does not exist."""


class ReferralAlreadyCompletedError(ConflictError):
    """Referral was already completed; bonuses are not paid twice."""


# Exception categories based on handling strategy

# Caller mistakes - surface message, log as warning
CLIENT_ERRORS = (
    ValidationError,
    NotFoundError,
    ConflictError,
    AuthorizationError,
    SettlementError,
)

# Infrastructure failures - log with traceback
MUST_LOG = (
    UpstreamError,
    ConfigurationError,
    SQLAlchemyError,
)


def is_client_error(exc: Exception) -> bool:
    """
    Check if exception is caused by caller input.

    Args:
        exc: Exception to check

    Returns:
        True if exception is a client error
    """
    return isinstance(exc, CLIENT_ERRORS)


def must_log(exc: Exception) -> bool:
    """
    Check if exception must be logged with traceback.

    Args:
        exc: Exception to check

    Returns:
        True if exception must be logged
    """
    return isinstance(exc, MUST_LOG)
