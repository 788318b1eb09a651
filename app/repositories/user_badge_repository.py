"""
UserBadge repository.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.user_badge import UserBadge
from app.repositories.base import BaseRepository


class UserBadgeRepository(BaseRepository[UserBadge]):
    """UserBadge repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize user badge repository."""
        super().__init__(UserBadge, session)

    async def get_slugs_by_user(self, user_id: int) -> set[str]:
        """Get slugs of badges the user already holds."""
        stmt = select(UserBadge.slug).where(UserBadge.user_id == user_id)
        result = await self.session.execute(stmt)
        return set(result.scalars().all())
