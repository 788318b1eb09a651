"""
Referral service.

Manages referral codes, referral tracking and the bonus ledger.
"""

import secrets
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.bonus_transaction import BonusTransaction
from app.models.referral import Referral, ReferralCode
from app.models.reward_tier import RewardTier
from app.repositories.bonus_transaction_repository import (
    BonusTransactionRepository,
)
from app.repositories.referral_repository import (
    ReferralCodeRepository,
    ReferralRepository,
)
from app.repositories.reward_tier_repository import RewardTierRepository
from app.services.base_service import BaseService, transaction
from app.utils.datetime_utils import utc_now
from app.utils.exceptions import (
    AlreadyReferredError,
    ConflictError,
    InvalidReferralCodeError,
    ReferralAlreadyCompletedError,
    ReferralNotFoundError,
    SelfReferralError,
)
from settlement.constants import ROLE_REFERRER
from settlement.core.referral import ReferralBonusCalculator

# No 0/O or 1/I so codes survive being read aloud or retyped
REFERRAL_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
REFERRAL_CODE_LENGTH = 8
MAX_CODE_ATTEMPTS = 5


@dataclass
class ReferralStats:
    """Aggregated referral statistics of a referrer."""

    total_referrals: int
    completed_referrals: int
    pending_referrals: int
    total_bonus_earned: Decimal


def generate_code(length: int = REFERRAL_CODE_LENGTH) -> str:
    """Generate a random referral code."""
    return "".join(secrets.choice(REFERRAL_CODE_ALPHABET) for _ in range(length))


class ReferralService(BaseService):
    """Referral service for codes, referral tracking and bonuses."""

    def __init__(
        self,
        session: AsyncSession,
        calculator: ReferralBonusCalculator | None = None,
    ) -> None:
        """Initialize referral service."""
        super().__init__(session)
        self.code_repo = ReferralCodeRepository(session)
        self.referral_repo = ReferralRepository(session)
        self.bonus_repo = BonusTransactionRepository(session)
        self.tier_repo = RewardTierRepository(session)
        self.calculator = calculator or ReferralBonusCalculator()

    # === Referral codes ===

    @transaction
    async def generate_referral_code(self, user_id: int) -> ReferralCode:
        """
        Get or create the referral code of a user.

        Args:
            user_id: Code owner

        Returns:
            Existing code, or a newly created one

        Raises:
            ConflictError: If no free code was found
        """
        existing = await self.code_repo.get_by_user(user_id)
        if existing:
            return existing

        for _ in range(MAX_CODE_ATTEMPTS):
            code = generate_code()
            if await self.code_repo.code_exists(code):
                self.logger.debug(f"Referral code collision on {code}, retrying")
                continue

            referral_code = await self.code_repo.create(
                user_id=user_id, code=code, is_active=True
            )
            self.logger.info(
                f"Referral code created for user {user_id}",
                extra={"user_id": user_id, "code": code},
            )
            return referral_code

        raise ConflictError("Failed to generate a unique referral code")

    async def get_referral_code(self, user_id: int) -> ReferralCode | None:
        """Get the referral code of a user, None if they have none."""
        return await self.code_repo.get_by_user(user_id)

    # === Referrals ===

    @transaction
    async def track_referral(
        self, referral_code: str, referred_user_id: int
    ) -> Referral:
        """
        Record that a user signed up with a referral code.

        Args:
            referral_code: Code entered by the new user
            referred_user_id: New user ID

        Returns:
            Pending referral

        Raises:
            InvalidReferralCodeError: If code is unknown or inactive
            SelfReferralError: If the code belongs to the user
            AlreadyReferredError: If the user was referred before
        """
        code = (referral_code or "").strip().upper()
        if not code:
            raise InvalidReferralCodeError("Invalid referral code")

        code_row = await self.code_repo.get_active_by_code(code)
        if code_row is None:
            raise InvalidReferralCodeError("Invalid referral code")

        if code_row.user_id == referred_user_id:
            raise SelfReferralError("You cannot refer yourself")

        if await self.referral_repo.get_by_referred(referred_user_id):
            raise AlreadyReferredError("This user has already been referred")

        try:
            referral = await self.referral_repo.create(
                referrer_id=code_row.user_id,
                referred_id=referred_user_id,
                referral_code=code,
            )
        except IntegrityError as e:
            # Concurrent signup with the same user won the insert
            raise AlreadyReferredError(
                "This user has already been referred"
            ) from e

        self.logger.info(
            "Referral tracked",
            extra={
                "referral_id": referral.id,
                "referrer_id": code_row.user_id,
                "referred_id": referred_user_id,
            },
        )
        return referral

    @transaction
    async def complete_referral(self, referral_id: int) -> Referral:
        """
        Complete a referral and pay its bonuses.

        Pays the referrer bonus, the welcome bonus and, when the
        referrer's completed count hits a milestone exactly, the
        milestone bonus. Everything happens in one transaction, holding a
        lock on the referrer's code row.

        Args:
            referral_id: Referral ID

        Returns:
            Completed referral

        Raises:
            ReferralNotFoundError: If referral does not exist
            ReferralAlreadyCompletedError: If it was completed before
        """
        referral = await self.referral_repo.get_by_id(referral_id)
        if referral is None:
            raise ReferralNotFoundError("Referral not found")

        # Completions of one referrer run one at a time, so the count
        # below sees every earlier completion and a milestone pays once
        await self.code_repo.get_by_user(referral.referrer_id, for_update=True)

        flipped = await self.referral_repo.mark_completed(
            referral_id, completed_at=utc_now()
        )
        if not flipped:
            raise ReferralAlreadyCompletedError(
                "Referral has already been completed"
            )

        completed_count = await self.referral_repo.count_completed(
            referral.referrer_id
        )
        awards = self.calculator.completion_awards(completed_count)

        for award in awards:
            user_id = (
                referral.referrer_id
                if award.role == ROLE_REFERRER
                else referral.referred_id
            )
            await self._create_bonus(
                user_id=user_id,
                amount=award.amount,
                bonus_type=award.bonus_type,
                reason=award.reason,
                referral_id=referral.id,
            )

        await self.session.refresh(referral)

        self.logger.info(
            f"Referral {referral_id} completed, {len(awards)} bonuses paid",
            extra={
                "referral_id": referral_id,
                "referrer_id": referral.referrer_id,
                "completed_count": completed_count,
            },
        )
        return referral

    # === Bonuses ===

    def calculate_bonus(self, role: str) -> Decimal:
        """
        Get the fixed bonus amount for a referral role.

        Raises:
            InvalidRoleError: If role is not referrer or referred
        """
        return self.calculator.bonus_for_role(role).amount

    @transaction
    async def award_bonus(
        self,
        user_id: int,
        amount: Decimal | int | float | str,
        bonus_type: str,
        reason: str,
        referral_id: int | None = None,
    ) -> BonusTransaction:
        """
        Credit a bonus to a user.

        Args:
            user_id: User to credit
            amount: Positive amount (USD)
            bonus_type: One of the ledger bonus types
            reason: Human readable reason
            referral_id: Related referral (optional)

        Returns:
            Created bonus transaction

        Raises:
            InvalidBonusAmountError: If amount is not positive
            InvalidBonusTypeError: If type is unknown
        """
        return await self._create_bonus(
            user_id=user_id,
            amount=amount,
            bonus_type=bonus_type,
            reason=reason,
            referral_id=referral_id,
        )

    async def _create_bonus(
        self,
        user_id: int,
        amount: Decimal | int | float | str,
        bonus_type: str,
        reason: str,
        referral_id: int | None,
    ) -> BonusTransaction:
        value = self.calculator.validate_bonus(amount, bonus_type)
        bonus = await self.bonus_repo.create(
            user_id=user_id,
            amount=value,
            type=bonus_type,
            reason=reason,
            referral_id=referral_id,
        )
        self.logger.info(
            f"Bonus {bonus_type} of {value} credited to user {user_id}",
            extra={"user_id": user_id, "referral_id": referral_id},
        )
        return bonus

    async def get_bonus_transactions(
        self,
        user_id: int,
        bonus_type: str | None = None,
        limit: int = 50,
    ) -> list[BonusTransaction]:
        """Get bonus transactions of a user, newest first."""
        return await self.bonus_repo.get_by_user(
            user_id, bonus_type=bonus_type, limit=limit
        )

    # === Statistics ===

    async def get_referral_stats(self, user_id: int) -> ReferralStats:
        """
        Get referral statistics of a referrer.

        Args:
            user_id: Referrer user ID

        Returns:
            ReferralStats
        """
        counts = await self.referral_repo.get_status_counts(user_id)
        total_bonus = await self.bonus_repo.get_total_by_user(user_id)

        completed = counts.get("completed", 0)
        pending = counts.get("pending", 0)

        return ReferralStats(
            total_referrals=completed + pending,
            completed_referrals=completed,
            pending_referrals=pending,
            total_bonus_earned=total_bonus,
        )

    async def get_referral_history(
        self,
        user_id: int,
        status: str | None = None,
        limit: int = 50,
    ) -> list[Referral]:
        """Get referrals made by a user, newest first."""
        return await self.referral_repo.get_history(
            user_id, status=status, limit=limit
        )

    # === Reward tiers ===

    async def get_reward_tier(self, user_id: int) -> RewardTier | None:
        """
        Get the reward tier a referrer has reached.

        Returns:
            Tier covering the user's completed referrals, None when the
            user has none or no tier covers the count
        """
        completed = await self.referral_repo.count_completed(user_id)
        if completed == 0:
            return None
        return await self.tier_repo.get_for_count(completed)

    async def get_reward_tiers(self) -> list[RewardTier]:
        """Get all reward tiers, lowest first."""
        return await self.tier_repo.get_all()
