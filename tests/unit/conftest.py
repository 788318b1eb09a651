"""
Shared fixtures for unit tests.

This module provides common fixtures used across multiple test modules:
- Settlement calculators
- UserMetrics samples
"""

from decimal import Decimal

import pytest

from settlement import (
    CommissionCalculator,
    ReferralBonusCalculator,
    ReputationScorer,
    UserMetrics,
)


@pytest.fixture
def commission_calculator():
    """CommissionCalculator with the default rate table."""
    return CommissionCalculator()


@pytest.fixture
def scorer():
    """ReputationScorer instance."""
    return ReputationScorer()


@pytest.fixture
def bonus_calculator():
    """ReferralBonusCalculator instance."""
    return ReferralBonusCalculator()


@pytest.fixture
def veteran_metrics():
    """
    Experienced provider.

    - 100 services completed
    - 4.9 average rating
    - 98% success, 95% on time
    - 30 minute average response
    """
    return UserMetrics(
        total_services_completed=100,
        average_rating=Decimal("4.9"),
        success_rate=Decimal("98"),
        on_time_delivery_rate=Decimal("95"),
        average_response_time_minutes=Decimal("30"),
        total_ratings=80,
    )


@pytest.fixture
def newcomer_metrics():
    """New provider with a perfect but short record."""
    return UserMetrics(
        total_services_completed=5,
        average_rating=Decimal("5.0"),
        success_rate=Decimal("100"),
        on_time_delivery_rate=Decimal("100"),
        average_response_time_minutes=Decimal("30"),
        total_ratings=5,
    )
