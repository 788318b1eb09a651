"""
Referral repositories.

Data access layer for Referral and ReferralCode models.
"""

from datetime import datetime

from sqlalchemy import and_, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.enums import ReferralStatus
from app.models.referral import Referral, ReferralCode
from app.repositories.base import BaseRepository


class ReferralCodeRepository(BaseRepository[ReferralCode]):
    """Referral code repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize referral code repository."""
        super().__init__(ReferralCode, session)

    async def get_by_user(
        self, user_id: int, for_update: bool = False
    ) -> ReferralCode | None:
        """
        Get the referral code owned by a user.

        Args:
            user_id: Code owner
            for_update: Lock the row; serializes work done per referrer

        Returns:
            ReferralCode or None
        """
        if not for_update:
            return await self.get_by(user_id=user_id)

        stmt = (
            select(ReferralCode)
            .where(ReferralCode.user_id == user_id)
            .with_for_update()
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_active_by_code(self, code: str) -> ReferralCode | None:
        """
        Get an active referral code.

        Args:
            code: Referral code

        Returns:
            ReferralCode or None if unknown or inactive
        """
        return await self.get_by(code=code, is_active=True)

    async def code_exists(self, code: str) -> bool:
        """Check if a code is already taken (active or not)."""
        return await self.exists(code=code)


class ReferralRepository(BaseRepository[Referral]):
    """Referral repository with specific queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize referral repository."""
        super().__init__(Referral, session)

    async def get_by_referred(self, referred_id: int) -> Referral | None:
        """
        Get the referral record of a referred user.

        Args:
            referred_id: Referred user ID

        Returns:
            Referral or None if the user was never referred
        """
        return await self.get_by(referred_id=referred_id)

    async def mark_completed(
        self, referral_id: int, completed_at: datetime
    ) -> bool:
        """
        Move a referral from pending to completed.

        The update only matches pending rows, so of two concurrent
        callers exactly one sees a flipped row.

        Args:
            referral_id: Referral ID
            completed_at: Completion timestamp

        Returns:
            True if this call performed the transition
        """
        stmt = (
            update(Referral)
            .where(
                and_(
                    Referral.id == referral_id,
                    Referral.status == ReferralStatus.PENDING.value,
                )
            )
            .values(
                status=ReferralStatus.COMPLETED.value,
                completed_at=completed_at,
            )
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0

    async def count_completed(self, referrer_id: int) -> int:
        """Count completed referrals of a referrer."""
        return await self.count(
            referrer_id=referrer_id, status=ReferralStatus.COMPLETED.value
        )

    async def get_status_counts(self, referrer_id: int) -> dict[str, int]:
        """
        Get referral counts per status in a single query.

        Args:
            referrer_id: Referrer user ID

        Returns:
            Dict mapping status to count, every status present
        """
        stmt = (
            select(
                Referral.status,
                func.count(Referral.id).label("count"),
            )
            .where(Referral.referrer_id == referrer_id)
            .group_by(Referral.status)
        )

        result = await self.session.execute(stmt)
        rows = result.all()

        counts = {status.value: 0 for status in ReferralStatus}
        for row in rows:
            counts[row.status] = row.count

        return counts

    async def get_history(
        self,
        referrer_id: int,
        status: str | None = None,
        limit: int = 50,
    ) -> list[Referral]:
        """
        Get referrals made by a user, newest first.

        Args:
            referrer_id: Referrer user ID
            status: Optional status filter
            limit: Max number of results

        Returns:
            List of referrals
        """
        conditions = [Referral.referrer_id == referrer_id]
        if status:
            conditions.append(Referral.status == status)

        stmt = (
            select(Referral)
            .where(and_(*conditions))
            .order_by(Referral.created_at.desc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
