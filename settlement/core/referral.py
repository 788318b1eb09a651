"""
Referral bonus rules.

Static lookup tables for the fixed per-referral bonuses and the
milestone bonuses paid at exact completed-referral counts.
"""

from decimal import Decimal

from settlement.constants import (
    BONUS_TYPE_MILESTONE,
    BONUS_TYPE_REFERRAL,
    BONUS_TYPE_WELCOME,
    BONUS_TYPES,
    REFERRER_BONUS,
    ROLE_REFERRED,
    ROLE_REFERRER,
    WELCOME_BONUS,
    get_milestone_bonus,
)
from settlement.core.conversion import to_decimal
from settlement.core.models import BonusAward
from settlement.exceptions import (
    InvalidAmountError,
    InvalidBonusAmountError,
    InvalidBonusTypeError,
    InvalidRoleError,
)


class ReferralBonusCalculator:
    """Decides which bonuses a referral event produces."""

    def bonus_for_role(self, role: str) -> BonusAward:
        """
        Get the fixed bonus for one side of a completed referral.

        Args:
            role: "referrer" or "referred"

        Returns:
            BonusAward for that role

        Raises:
            InvalidRoleError: For any other role
        """
        if role == ROLE_REFERRER:
            return BonusAward(
                role=ROLE_REFERRER,
                amount=REFERRER_BONUS,
                bonus_type=BONUS_TYPE_REFERRAL,
                reason="Referral bonus for successful referral",
            )
        if role == ROLE_REFERRED:
            return BonusAward(
                role=ROLE_REFERRED,
                amount=WELCOME_BONUS,
                bonus_type=BONUS_TYPE_WELCOME,
                reason="Welcome bonus for joining via referral",
            )
        raise InvalidRoleError("Invalid role specified")

    def milestone_award(self, completed_count: int) -> BonusAward | None:
        """
        Get the milestone bonus for an exact completed count.

        Only exact matches pay out; a count that skips a milestone
        never earns it later.
        """
        amount = get_milestone_bonus(completed_count)
        if amount is None:
            return None
        return BonusAward(
            role=ROLE_REFERRER,
            amount=amount,
            bonus_type=BONUS_TYPE_MILESTONE,
            reason=f"Milestone bonus for reaching {completed_count} referrals",
        )

    def completion_awards(self, completed_count: int) -> list[BonusAward]:
        """
        Get every bonus produced by completing a referral.

        Args:
            completed_count: Referrer's completed referrals, including this one

        Returns:
            Referrer bonus, welcome bonus and an optional milestone bonus
        """
        awards = [
            self.bonus_for_role(ROLE_REFERRER),
            self.bonus_for_role(ROLE_REFERRED),
        ]
        milestone = self.milestone_award(completed_count)
        if milestone is not None:
            awards.append(milestone)
        return awards

    @staticmethod
    def validate_bonus(
        amount: Decimal | int | float | str,
        bonus_type: str,
    ) -> Decimal:
        """
        Validate a bonus ledger entry.

        Returns:
            Amount as Decimal

        Raises:
            InvalidBonusAmountError: If amount is not positive
            InvalidBonusTypeError: If type is unknown
        """
        try:
            value = to_decimal(amount, field="Bonus amount")
        except InvalidAmountError as exc:
            raise InvalidBonusAmountError(str(exc)) from exc
        if value <= 0:
            raise InvalidBonusAmountError("Bonus amount must be positive")
        if bonus_type not in BONUS_TYPES:
            raise InvalidBonusTypeError("Invalid bonus type")
        return value
