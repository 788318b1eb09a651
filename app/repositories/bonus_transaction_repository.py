"""
BonusTransaction repository.

Data access layer for the bonus ledger.
"""

from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.bonus_transaction import BonusTransaction
from app.repositories.base import BaseRepository


class BonusTransactionRepository(BaseRepository[BonusTransaction]):
    """BonusTransaction repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize bonus transaction repository."""
        super().__init__(BonusTransaction, session)

    async def get_by_user(
        self,
        user_id: int,
        bonus_type: str | None = None,
        limit: int = 50,
    ) -> list[BonusTransaction]:
        """
        Get bonus transactions of a user, newest first.

        Args:
            user_id: User ID
            bonus_type: Optional type filter
            limit: Max number of results

        Returns:
            List of bonus transactions
        """
        stmt = select(BonusTransaction).where(
            BonusTransaction.user_id == user_id
        )
        if bonus_type:
            stmt = stmt.where(BonusTransaction.type == bonus_type)

        stmt = stmt.order_by(BonusTransaction.created_at.desc()).limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_total_by_user(self, user_id: int) -> Decimal:
        """Sum of all bonuses credited to a user."""
        stmt = select(
            func.coalesce(func.sum(BonusTransaction.amount), 0)
        ).where(BonusTransaction.user_id == user_id)
        result = await self.session.execute(stmt)
        return Decimal(str(result.scalar() or 0))
