"""
Reputation service.

Maintains per-user performance counters, keeps the stored reputation
score in sync with them, tracks per-subject expertise and awards badges.
"""

from decimal import Decimal
from typing import Any

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.expertise_area import ExpertiseArea
from app.models.performance_metrics import PerformanceMetrics
from app.models.user_badge import UserBadge
from app.repositories.expertise_area_repository import ExpertiseAreaRepository
from app.repositories.performance_metrics_repository import (
    PerformanceMetricsRepository,
)
from app.repositories.user_badge_repository import UserBadgeRepository
from app.services.base_service import BaseService, transaction
from app.utils.exceptions import ValidationError
from settlement.core.conversion import to_decimal
from settlement.core.models import UserMetrics
from settlement.core.reputation import ReputationScorer, running_average
from settlement.exceptions import InvalidAmountError

# Row counters that do not feed the score directly
ROW_ONLY_FIELDS = frozenset({"total_earnings", "response_time_samples"})

# Counters callers may set directly; reputation_score is always derived
UPDATABLE_FIELDS = frozenset(UserMetrics.model_fields) | ROW_ONLY_FIELDS

MIN_RATING = Decimal("1")
MAX_RATING = Decimal("5")
PERCENT_SUCCESS = Decimal("100")
PERCENT_FAILURE = Decimal("0")
DEFAULT_MIN_SPECIALIST_SERVICES = 5


def _parse_decimal(value: Any, field: str) -> Decimal:
    """Convert input to a non-negative Decimal or raise ValidationError."""
    try:
        number = to_decimal(value, field=field)
    except InvalidAmountError as e:
        raise ValidationError(str(e)) from e
    if number < 0:
        raise ValidationError(f"{field} cannot be negative")
    return number


def _parse_rating(value: Any) -> Decimal:
    rating = _parse_decimal(value, "Rating")
    if not MIN_RATING <= rating <= MAX_RATING:
        raise ValidationError("Rating must be between 1 and 5")
    return rating


class ReputationService(BaseService):
    """Reputation service for metrics, scores, expertise and badges."""

    def __init__(
        self,
        session: AsyncSession,
        scorer: ReputationScorer | None = None,
    ) -> None:
        """Initialize reputation service."""
        super().__init__(session)
        self.metrics_repo = PerformanceMetricsRepository(session)
        self.badge_repo = UserBadgeRepository(session)
        self.expertise_repo = ExpertiseAreaRepository(session)
        self.scorer = scorer or ReputationScorer()

    @staticmethod
    def to_user_metrics(row: PerformanceMetrics) -> UserMetrics:
        """Build the scoring record from a metrics row."""
        return UserMetrics.model_validate(row)

    async def _get_or_create(self, user_id: int) -> PerformanceMetrics:
        row = await self.metrics_repo.get_by_user(user_id, for_update=True)
        if row is None:
            row = await self.metrics_repo.create(
                user_id=user_id,
                reputation_score=0,
                total_services_completed=0,
                total_earnings=Decimal("0"),
                average_rating=Decimal("0"),
                total_ratings=0,
                average_response_time_minutes=Decimal("0"),
                response_time_samples=0,
                success_rate=Decimal("0"),
                on_time_delivery_rate=Decimal("0"),
            )
            self.logger.info(f"Metrics initialized for user {user_id}")
        return row

    async def _apply(
        self, row: PerformanceMetrics, updates: dict[str, Any]
    ) -> PerformanceMetrics:
        """Validate updates, write them and recompute the score."""
        unknown = set(updates) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(
                f"Unknown metrics fields: {', '.join(sorted(unknown))}"
            )

        current = self.to_user_metrics(row).model_dump()
        scoring_updates = {
            k: v for k, v in updates.items() if k in UserMetrics.model_fields
        }
        try:
            metrics = UserMetrics(**{**current, **scoring_updates})
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid metrics: {e}") from e

        if "total_earnings" in updates:
            row.total_earnings = _parse_decimal(updates["total_earnings"], "Earnings")

        if "response_time_samples" in updates:
            samples = updates["response_time_samples"]
            if isinstance(samples, bool) or not isinstance(samples, int) or samples < 0:
                raise ValidationError("response_time_samples must be a non-negative integer")
            row.response_time_samples = samples

        for field, value in metrics.model_dump().items():
            setattr(row, field, value)
        row.reputation_score = self.scorer.score(metrics)

        await self.session.flush()
        return row

    @transaction
    async def initialize_user_metrics(self, user_id: int) -> PerformanceMetrics:
        """Get the metrics row of a user, creating a zeroed one if missing."""
        return await self._get_or_create(user_id)

    async def get_user_metrics(self, user_id: int) -> PerformanceMetrics | None:
        """Get the metrics row of a user, None if never initialized."""
        return await self.metrics_repo.get_by_user(user_id)

    @transaction
    async def update_user_metrics(
        self, user_id: int, **updates: Any
    ) -> PerformanceMetrics:
        """
        Overwrite metrics counters and recompute the score.

        Args:
            user_id: User ID
            **updates: Counter values (total_services_completed,
                average_rating, success_rate, on_time_delivery_rate,
                average_response_time_minutes, response_time_samples,
                total_ratings, total_earnings)

        Returns:
            Updated metrics row

        Raises:
            ValidationError: On unknown fields or out-of-range values
        """
        row = await self._get_or_create(user_id)
        row = await self._apply(row, updates)
        self.logger.info(
            f"Metrics updated for user {user_id}",
            extra={"user_id": user_id, "fields": sorted(updates)},
        )
        return row

    @transaction
    async def record_service_completion(
        self,
        user_id: int,
        earnings: Decimal | int | float | str,
        success: bool,
        on_time: bool,
        response_time_minutes: Decimal | int | float | None = None,
    ) -> PerformanceMetrics:
        """
        Fold one finished service into the counters.

        Success and on-time rates are running percentages over all
        completed services. The response time average only counts
        completions that reported a response time.

        Args:
            user_id: Service provider
            earnings: Amount earned (USD, >= 0)
            success: Service was accepted by the client
            on_time: Service was delivered before the deadline
            response_time_minutes: First response time, if measured

        Returns:
            Updated metrics row
        """
        earned = _parse_decimal(earnings, "Earnings")
        minutes = None
        if response_time_minutes is not None:
            minutes = _parse_decimal(response_time_minutes, "Response time")

        row = await self._get_or_create(user_id)
        count = row.total_services_completed

        updates: dict[str, Any] = {
            "total_services_completed": count + 1,
            "total_earnings": row.total_earnings + earned,
            "success_rate": running_average(
                row.success_rate, count,
                PERCENT_SUCCESS if success else PERCENT_FAILURE,
            ),
            "on_time_delivery_rate": running_average(
                row.on_time_delivery_rate, count,
                PERCENT_SUCCESS if on_time else PERCENT_FAILURE,
            ),
        }

        if minutes is not None:
            samples = row.response_time_samples or 0
            updates["average_response_time_minutes"] = running_average(
                row.average_response_time_minutes, samples, minutes
            )
            updates["response_time_samples"] = samples + 1

        row = await self._apply(row, updates)
        self.logger.info(
            f"Service completion recorded for user {user_id}",
            extra={"user_id": user_id, "success": success, "on_time": on_time},
        )
        return row

    @transaction
    async def record_rating(
        self, user_id: int, rating: Decimal | int | float | str
    ) -> PerformanceMetrics:
        """
        Fold one client rating (1-5) into the average.

        Raises:
            ValidationError: If rating is outside 1..5
        """
        value = _parse_rating(rating)

        row = await self._get_or_create(user_id)
        return await self._apply(
            row,
            {
                "average_rating": running_average(
                    row.average_rating, row.total_ratings, value
                ),
                "total_ratings": row.total_ratings + 1,
            },
        )

    @transaction
    async def track_expertise(
        self,
        user_id: int,
        service_type: str,
        subject: str,
        rating: Decimal | int | float | str | None = None,
        earnings: Decimal | int | float | str = 0,
    ) -> ExpertiseArea:
        """
        Fold one finished service into the user's record for a subject.

        The record is created on the first service in the subject. The
        subject average only counts services that came with a rating.

        Args:
            user_id: Service provider
            service_type: Service type slug
            subject: Subject name
            rating: Client rating (1-5), if given
            earnings: Amount earned (USD, >= 0)

        Returns:
            Updated expertise area

        Raises:
            ValidationError: On empty service type/subject or bad values
        """
        service_type = (service_type or "").strip()
        subject = (subject or "").strip()
        if not service_type:
            raise ValidationError("Service type is required")
        if not subject:
            raise ValidationError("Subject is required")

        earned = _parse_decimal(earnings, "Earnings")
        value = _parse_rating(rating) if rating is not None else None

        area = await self.expertise_repo.get_area(
            user_id, service_type, subject, for_update=True
        )
        if area is None:
            area = await self.expertise_repo.create(
                user_id=user_id,
                service_type=service_type,
                subject=subject,
                services_completed=0,
                rated_services=0,
                average_rating=Decimal("0"),
                total_earnings=Decimal("0"),
            )

        area.services_completed += 1
        area.total_earnings += earned
        if value is not None:
            area.average_rating = running_average(
                area.average_rating, area.rated_services, value
            )
            area.rated_services += 1

        await self.session.flush()
        self.logger.info(
            f"Expertise updated for user {user_id}: "
            f"{service_type}/{subject} ({area.services_completed} services)"
        )
        return area

    async def get_specialists(
        self,
        service_type: str,
        min_services: int = DEFAULT_MIN_SPECIALIST_SERVICES,
        limit: int = 20,
    ) -> list[ExpertiseArea]:
        """Get the best-rated subject records of a service type."""
        if not service_type:
            raise ValidationError("Service type is required")
        return await self.expertise_repo.get_specialists(
            service_type, min_services=min_services, limit=limit
        )

    async def calculate_reputation_score(self, user_id: int) -> int:
        """Calculate the score from current counters (0 without metrics)."""
        row = await self.metrics_repo.get_by_user(user_id)
        if row is None:
            return 0
        return self.scorer.score(self.to_user_metrics(row))

    async def get_top_performers(
        self, limit: int = 20, service_type: str | None = None
    ) -> list[PerformanceMetrics]:
        """
        Get metrics rows ordered by reputation score.

        With service_type, only users with a record in that service type
        are listed.
        """
        return await self.metrics_repo.get_top(limit, service_type=service_type)

    @transaction
    async def check_and_award_badges(self, user_id: int) -> list[str]:
        """
        Award every badge the user qualifies for and does not hold yet.

        Returns:
            Slugs awarded by this call
        """
        row = await self.metrics_repo.get_by_user(user_id)
        if row is None:
            return []

        top_subject = await self.expertise_repo.get_max_services(user_id)
        eligible = self.scorer.eligible_badges(
            self.to_user_metrics(row), services_in_top_subject=top_subject
        )
        held = await self.badge_repo.get_slugs_by_user(user_id)

        awarded = []
        for slug in eligible:
            if slug in held:
                continue
            await self.badge_repo.create(user_id=user_id, slug=slug)
            awarded.append(slug)

        if awarded:
            self.logger.info(
                f"Badges awarded to user {user_id}: {', '.join(awarded)}"
            )
        return awarded

    async def get_user_badges(self, user_id: int) -> list[UserBadge]:
        """Get badges earned by a user."""
        return await self.badge_repo.find_by(user_id=user_id)
