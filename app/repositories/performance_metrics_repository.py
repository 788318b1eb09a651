"""
PerformanceMetrics repository.

Data access layer for per-user reputation counters.
"""

from sqlalchemy import and_, exists, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.expertise_area import ExpertiseArea
from app.models.performance_metrics import PerformanceMetrics
from app.repositories.base import BaseRepository


class PerformanceMetricsRepository(BaseRepository[PerformanceMetrics]):
    """PerformanceMetrics repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize performance metrics repository."""
        super().__init__(PerformanceMetrics, session)

    async def get_by_user(
        self, user_id: int, for_update: bool = False
    ) -> PerformanceMetrics | None:
        """
        Get metrics row of a user.

        Args:
            user_id: User ID
            for_update: Lock the row for a read-modify-write

        Returns:
            PerformanceMetrics or None
        """
        stmt = select(PerformanceMetrics).where(
            PerformanceMetrics.user_id == user_id
        )
        if for_update:
            stmt = stmt.with_for_update()

        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_top(
        self, limit: int = 20, service_type: str | None = None
    ) -> list[PerformanceMetrics]:
        """
        Get users ordered by reputation score, highest first.

        Args:
            limit: Max number of results
            service_type: Only users with a track record in this service type

        Returns:
            List of metrics rows
        """
        stmt = select(PerformanceMetrics)
        if service_type:
            stmt = stmt.where(
                exists().where(
                    and_(
                        ExpertiseArea.user_id == PerformanceMetrics.user_id,
                        ExpertiseArea.service_type == service_type,
                    )
                )
            )

        stmt = stmt.order_by(
            PerformanceMetrics.reputation_score.desc(),
            PerformanceMetrics.user_id.asc(),
        ).limit(limit)

        result = await self.session.execute(stmt)
        return list(result.scalars().all())
