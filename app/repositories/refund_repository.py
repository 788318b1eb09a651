"""
Refund repository.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.refund import Refund
from app.repositories.base import BaseRepository


class RefundRepository(BaseRepository[Refund]):
    """Refund repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize refund repository."""
        super().__init__(Refund, session)

    async def get_by_payment(self, payment_id: int) -> Refund | None:
        """Get the refund request of a payment."""
        return await self.get_by(payment_id=payment_id)
