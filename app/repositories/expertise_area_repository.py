"""
ExpertiseArea repository.

Data access layer for per-subject track records.
"""

from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.expertise_area import ExpertiseArea
from app.repositories.base import BaseRepository


class ExpertiseAreaRepository(BaseRepository[ExpertiseArea]):
    """ExpertiseArea repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize expertise area repository."""
        super().__init__(ExpertiseArea, session)

    async def get_area(
        self,
        user_id: int,
        service_type: str,
        subject: str,
        for_update: bool = False,
    ) -> ExpertiseArea | None:
        """
        Get the track record of a user in one subject.

        Args:
            user_id: Service provider
            service_type: Service type slug
            subject: Subject name
            for_update: Lock the row for a read-modify-write

        Returns:
            ExpertiseArea or None
        """
        stmt = select(ExpertiseArea).where(
            and_(
                ExpertiseArea.user_id == user_id,
                ExpertiseArea.service_type == service_type,
                ExpertiseArea.subject == subject,
            )
        )
        if for_update:
            stmt = stmt.with_for_update()

        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_specialists(
        self,
        service_type: str,
        min_services: int = 5,
        limit: int = 20,
    ) -> list[ExpertiseArea]:
        """
        Get the strongest subject records for a service type.

        Ordered by average rating, then volume, highest first.
        """
        stmt = (
            select(ExpertiseArea)
            .where(
                and_(
                    ExpertiseArea.service_type == service_type,
                    ExpertiseArea.services_completed >= min_services,
                )
            )
            .order_by(
                ExpertiseArea.average_rating.desc(),
                ExpertiseArea.services_completed.desc(),
                ExpertiseArea.user_id.asc(),
            )
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_max_services(self, user_id: int) -> int:
        """Get the highest services_completed over a user's subjects."""
        stmt = select(
            func.coalesce(func.max(ExpertiseArea.services_completed), 0)
        ).where(ExpertiseArea.user_id == user_id)
        result = await self.session.execute(stmt)
        return int(result.scalar() or 0)
