"""
Payment repository.

Data access layer for Payment model.
"""

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.payment import Payment
from app.repositories.base import BaseRepository


class PaymentRepository(BaseRepository[Payment]):
    """Payment repository with specific queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize payment repository."""
        super().__init__(Payment, session)

    async def get_by_address(
        self, payment_address: str, for_update: bool = False
    ) -> Payment | None:
        """
        Get payment by its forwarding address.

        Args:
            payment_address: Address generated by the payment provider
            for_update: Lock the row while applying a webhook

        Returns:
            Payment or None
        """
        stmt = select(Payment).where(Payment.payment_address == payment_address)
        if for_update:
            stmt = stmt.with_for_update()

        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_user(
        self,
        user_id: int,
        status: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Payment]:
        """
        Get payments where the user is payer or recipient, newest first.

        Args:
            user_id: User ID
            status: Optional status filter
            limit: Max number of results
            offset: Number of results to skip

        Returns:
            List of payments
        """
        stmt = select(Payment).where(
            or_(Payment.payer_id == user_id, Payment.recipient_id == user_id)
        )
        if status:
            stmt = stmt.where(Payment.status == status)

        stmt = (
            stmt.order_by(Payment.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
