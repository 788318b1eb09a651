"""
Default constants for settlement calculations.

Commission tiers, supported cryptocurrencies, referral bonus table and
reputation weights used across the marketplace.
"""

from decimal import Decimal


# Precision (decimal places)
CRYPTO_PRECISION = 8
FIAT_PRECISION = 2

CRYPTO_QUANT = Decimal("0.00000001")
FIAT_QUANT = Decimal("0.01")

FIAT_CURRENCY = "USD"
SUPPORTED_CRYPTOCURRENCIES: tuple[str, ...] = ("BTC", "ETH", "DOGE", "SOL")

# Commission
DEFAULT_COMMISSION_RATE = Decimal("0.03")
SERVICE_COMMISSION_RATES: dict[str, Decimal] = {
    "homework_help": Decimal("0.15"),
    "programming_help": Decimal("0.20"),
    "assignment_writing": Decimal("0.15"),
    "test_taking": Decimal("0.25"),
}

# Exchange rates
RATE_CACHE_TTL_SECONDS = 300

# Referral bonuses
REFERRER_BONUS = Decimal("10.00")
WELCOME_BONUS = Decimal("5.00")
MILESTONE_BONUSES: dict[int, Decimal] = {
    5: Decimal("25.00"),
    10: Decimal("50.00"),
    25: Decimal("100.00"),
    50: Decimal("250.00"),
}

BONUS_TYPE_REFERRAL = "referral_bonus"
BONUS_TYPE_WELCOME = "welcome_bonus"
BONUS_TYPE_MILESTONE = "milestone_bonus"
BONUS_TYPE_TIER = "tier_bonus"
BONUS_TYPES: tuple[str, ...] = (
    BONUS_TYPE_REFERRAL,
    BONUS_TYPE_WELCOME,
    BONUS_TYPE_MILESTONE,
    BONUS_TYPE_TIER,
)

ROLE_REFERRER = "referrer"
ROLE_REFERRED = "referred"

# Reputation weights (points per unit)
POINTS_PER_SERVICE = Decimal("2")
POINTS_PER_RATING_STAR = Decimal("100")
POINTS_PER_SUCCESS_PERCENT = Decimal("3")
POINTS_PER_ON_TIME_PERCENT = Decimal("2")

# (max average response minutes, bonus points), checked in order
RESPONSE_TIME_BONUS_TIERS: tuple[tuple[int, int], ...] = (
    (30, 100),
    (60, 75),
    (120, 50),
    (240, 25),
)

# Badge criteria
BADGE_RELIABLE = "reliable"
BADGE_QUICK_RESPONDER = "quick-responder"
BADGE_PERFECT_SCORE = "perfect-score"
BADGE_SUBJECT_MASTER = "subject-master"

RELIABLE_MIN_SERVICES = 100
QUICK_RESPONDER_MAX_MINUTES = 60
QUICK_RESPONDER_MIN_SERVICES = 10
PERFECT_SCORE_MIN_RATING = Decimal("4.95")
PERFECT_SCORE_MIN_RATINGS = 10
SUBJECT_MASTER_MIN_SERVICES = 50


def get_commission_rate(service_type: str | None) -> Decimal:
    """
    Get commission rate for a service type.

    Unknown or missing service types fall back to the default tier.

    Args:
        service_type: Service type slug (e.g. "programming_help")

    Returns:
        Commission rate as a fraction

    Example:
        >>> get_commission_rate("test_taking")
        Decimal('0.25')
        >>> get_commission_rate("unknown_type")
        Decimal('0.03')
    """
    if not service_type:
        return DEFAULT_COMMISSION_RATE
    return SERVICE_COMMISSION_RATES.get(service_type, DEFAULT_COMMISSION_RATE)


def is_supported_cryptocurrency(code: str | None) -> bool:
    """Check whether a cryptocurrency code is supported (case-insensitive)."""
    if not code or not isinstance(code, str):
        return False
    return code.strip().upper() in SUPPORTED_CRYPTOCURRENCIES


def get_supported_cryptocurrencies() -> list[str]:
    """Get a copy of the supported cryptocurrency codes."""
    return list(SUPPORTED_CRYPTOCURRENCIES)


def get_milestone_bonus(completed_count: int) -> Decimal | None:
    """
    Get milestone bonus for an exact completed-referral count.

    Returns None when the count is not a milestone.
    """
    return MILESTONE_BONUSES.get(completed_count)
