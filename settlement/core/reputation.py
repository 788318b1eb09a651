"""
Reputation scorer.

Computes a composite reputation score from a user's performance
counters. The score is always recomputed from the current counters.
"""

from decimal import ROUND_HALF_UP, Decimal

from settlement.constants import (
    BADGE_PERFECT_SCORE,
    BADGE_QUICK_RESPONDER,
    BADGE_RELIABLE,
    BADGE_SUBJECT_MASTER,
    PERFECT_SCORE_MIN_RATING,
    PERFECT_SCORE_MIN_RATINGS,
    POINTS_PER_ON_TIME_PERCENT,
    POINTS_PER_RATING_STAR,
    POINTS_PER_SERVICE,
    POINTS_PER_SUCCESS_PERCENT,
    QUICK_RESPONDER_MAX_MINUTES,
    QUICK_RESPONDER_MIN_SERVICES,
    RELIABLE_MIN_SERVICES,
    RESPONSE_TIME_BONUS_TIERS,
    SUBJECT_MASTER_MIN_SERVICES,
)
from settlement.core.models import ReputationBreakdown, UserMetrics


class ReputationScorer:
    """
    Weighted reputation scoring.

    Formula:
        2 * services completed
        + 100 * average rating
        + 3 * success rate %
        + 2 * on-time delivery %
        + response time bonus (100 / 75 / 50 / 25 / 0)

    Rating and percentages are bounded by UserMetrics validation, but
    the formula itself applies no caps.
    """

    def score(self, metrics: UserMetrics) -> int:
        """
        Calculate reputation score.

        Args:
            metrics: Current user counters

        Returns:
            Score rounded to the nearest integer (halves round up)

        Example:
            >>> scorer = ReputationScorer()
            >>> scorer.score(UserMetrics())
            0
        """
        total = self.breakdown(metrics).total
        return int(total.quantize(Decimal("1"), rounding=ROUND_HALF_UP))

    def breakdown(self, metrics: UserMetrics) -> ReputationBreakdown:
        """Calculate each weighted component of the score."""
        return ReputationBreakdown(
            services_points=POINTS_PER_SERVICE * metrics.total_services_completed,
            rating_points=POINTS_PER_RATING_STAR * metrics.average_rating,
            success_points=POINTS_PER_SUCCESS_PERCENT * metrics.success_rate,
            on_time_points=POINTS_PER_ON_TIME_PERCENT * metrics.on_time_delivery_rate,
            response_time_points=Decimal(
                self.response_time_bonus(metrics.average_response_time_minutes)
            ),
        )

    @staticmethod
    def response_time_bonus(average_response_time_minutes: Decimal | int) -> int:
        """
        Bonus points for fast responses.

        Zero or negative response time means "no data" and earns nothing.
        """
        if average_response_time_minutes <= 0:
            return 0
        for max_minutes, points in RESPONSE_TIME_BONUS_TIERS:
            if average_response_time_minutes <= max_minutes:
                return points
        return 0

    @staticmethod
    def eligible_badges(
        metrics: UserMetrics, services_in_top_subject: int = 0
    ) -> list[str]:
        """
        Get badge slugs the metrics qualify for.

        Args:
            metrics: Current user counters
            services_in_top_subject: Services completed in the user's
                busiest subject

        Returns:
            Badge slugs in a stable order
        """
        badges = []

        if metrics.total_services_completed >= RELIABLE_MIN_SERVICES:
            badges.append(BADGE_RELIABLE)

        if (
            0 < metrics.average_response_time_minutes <= QUICK_RESPONDER_MAX_MINUTES
            and metrics.total_services_completed >= QUICK_RESPONDER_MIN_SERVICES
        ):
            badges.append(BADGE_QUICK_RESPONDER)

        if (
            metrics.average_rating >= PERFECT_SCORE_MIN_RATING
            and metrics.total_ratings >= PERFECT_SCORE_MIN_RATINGS
        ):
            badges.append(BADGE_PERFECT_SCORE)

        if services_in_top_subject >= SUBJECT_MASTER_MIN_SERVICES:
            badges.append(BADGE_SUBJECT_MASTER)

        return badges


def running_average(
    current_average: Decimal,
    count: int,
    new_value: Decimal,
) -> Decimal:
    """
    Fold one more observation into an average.

    Args:
        current_average: Average over `count` observations
        count: Observations already included
        new_value: New observation

    Returns:
        Average over count + 1 observations, rounded to 2 places

    Example:
        >>> running_average(Decimal("4"), 1, Decimal("5"))
        Decimal('4.50')
    """
    if count <= 0:
        return new_value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    total = current_average * count + new_value
    return (total / (count + 1)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
