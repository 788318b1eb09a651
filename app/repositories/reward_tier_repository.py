"""
RewardTier repository.
"""

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.reward_tier import RewardTier
from app.repositories.base import BaseRepository


class RewardTierRepository(BaseRepository[RewardTier]):
    """RewardTier repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize reward tier repository."""
        super().__init__(RewardTier, session)

    async def get_all(self) -> list[RewardTier]:
        """Get all tiers, lowest first."""
        stmt = select(RewardTier).order_by(RewardTier.min_referrals.asc())
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_for_count(self, completed_count: int) -> RewardTier | None:
        """
        Get the tier covering a completed-referral count.

        When tiers overlap, the one with the highest minimum wins.

        Args:
            completed_count: Completed referrals

        Returns:
            RewardTier or None if no tier covers the count
        """
        stmt = (
            select(RewardTier)
            .where(
                and_(
                    RewardTier.min_referrals <= completed_count,
                    or_(
                        RewardTier.max_referrals.is_(None),
                        RewardTier.max_referrals >= completed_count,
                    ),
                )
            )
            .order_by(RewardTier.min_referrals.desc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()
