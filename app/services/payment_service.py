"""
Payment service.

Creates crypto payments with a commission split and applies the
provider's confirmation webhooks. Refund requests are reviewed here too.
"""

from decimal import Decimal
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config.settings import Settings, settings as default_settings
from app.models.enums import PaymentStatus, RefundStatus
from app.models.payment import Payment
from app.models.refund import Refund
from app.repositories.payment_repository import PaymentRepository
from app.repositories.refund_repository import RefundRepository
from app.services.base_service import BaseService, log_operation, transaction
from app.services.cryptapi_client import CryptApiClient
from app.services.exchange_rate import ExchangeRateService
from app.utils.datetime_utils import utc_now
from app.utils.exceptions import (
    AuthorizationError,
    ConfigurationError,
    DuplicateRefundError,
    InvalidStatusTransitionError,
    PaymentNotFoundError,
    RefundNotFoundError,
    ValidationError,
)
from settlement.core.commission import CommissionCalculator
from settlement.core.conversion import to_decimal
from settlement.exceptions import InvalidAmountError

MIN_CONFIRMATIONS = 1

# Allowed refund status changes; rejected and processed are terminal
REFUND_TRANSITIONS: dict[str, frozenset[str]] = {
    RefundStatus.PENDING.value: frozenset({
        RefundStatus.APPROVED.value,
        RefundStatus.REJECTED.value,
        RefundStatus.PROCESSED.value,
    }),
    RefundStatus.APPROVED.value: frozenset({
        RefundStatus.REJECTED.value,
        RefundStatus.PROCESSED.value,
    }),
}


class PaymentService(BaseService):
    """Payment service for crypto payments, webhooks and refunds."""

    def __init__(
        self,
        session: AsyncSession,
        rate_service: ExchangeRateService,
        cryptapi_client: CryptApiClient,
        calculator: CommissionCalculator | None = None,
        config: Settings | None = None,
    ) -> None:
        """
        Initialize payment service.

        Args:
            session: Async database session
            rate_service: Exchange rate service for USD conversion
            cryptapi_client: Payment address provider client
            calculator: Commission calculator
            config: Settings (module settings if omitted)
        """
        super().__init__(session)
        self.payment_repo = PaymentRepository(session)
        self.refund_repo = RefundRepository(session)
        self.rate_service = rate_service
        self.cryptapi = cryptapi_client
        self.calculator = calculator or CommissionCalculator()
        self.config = config or default_settings

    @transaction
    @log_operation
    async def initiate_payment(
        self,
        job_id: int,
        payer_id: int,
        recipient_id: int,
        amount_usd: Decimal | int | float | str,
        cryptocurrency: str,
        recipient_wallet: str,
        service_type: str | None = None,
    ) -> Payment:
        """
        Create a pending payment with a forwarding address.

        All input is validated before the rate provider or the payment
        provider is called.

        Args:
            job_id: Job being paid for
            payer_id: Paying user
            recipient_id: Service provider
            amount_usd: Price in USD
            cryptocurrency: Coin code
            recipient_wallet: Provider wallet for the payout
            service_type: Service type for the commission tier

        Returns:
            Pending payment

        Raises:
            ValidationError: On missing parameters
            InvalidAmountError: If amount is not positive
            UnsupportedCurrencyError: If coin is not supported
            ConfigurationError: If no platform wallet is set for the coin
            UpstreamRateError: If the rate lookup fails
            PaymentProviderError: If address creation fails
        """
        if not job_id:
            raise ValidationError("Job ID is required")
        if not payer_id:
            raise ValidationError("Payer ID is required")
        if not recipient_id:
            raise ValidationError("Recipient ID is required")

        usd = to_decimal(amount_usd)
        if usd <= 0:
            raise InvalidAmountError("Amount must be greater than 0")

        code = self.rate_service.normalize_currency_code(cryptocurrency)

        if not recipient_wallet or not recipient_wallet.strip():
            raise ValidationError("Recipient wallet address is required")

        platform_wallet = self.config.get_platform_wallet(code)
        if not platform_wallet:
            raise ConfigurationError(f"Platform wallet not configured for {code}")

        crypto_amount = await self.rate_service.convert_from_usd(usd, code)
        if crypto_amount <= 0:
            raise InvalidAmountError(
                f"Amount {usd} USD is below the smallest {code} unit"
            )

        split = self.calculator.split_by_service_type(crypto_amount, service_type)

        address = await self.cryptapi.create_payment_address(
            cryptocurrency=code,
            recipient_wallet=recipient_wallet,
            platform_wallet=platform_wallet,
            commission_percentage=split.rate * 100,
            callback_url=self.config.webhook_callback_url,
            amount=crypto_amount,
        )

        payment = await self.payment_repo.create(
            job_id=job_id,
            payer_id=payer_id,
            recipient_id=recipient_id,
            service_type=service_type,
            cryptocurrency=code,
            amount=crypto_amount,
            usd_equivalent=usd,
            commission_rate=split.rate,
            commission_amount=split.commission_amount,
            recipient_amount=split.recipient_amount,
            payment_address=address.address_in,
            recipient_wallet=recipient_wallet.strip(),
            platform_wallet_address=platform_wallet,
            status=PaymentStatus.PENDING.value,
            confirmations=0,
        )

        self.logger.info(
            f"Payment {payment.id} initiated: {crypto_amount} {code} "
            f"({usd} USD)",
            extra={
                "payment_id": payment.id,
                "job_id": job_id,
                "service_type": service_type,
            },
        )
        return payment

    @transaction
    async def split_payment(self, payment_id: int) -> Payment:
        """
        Recompute and store the commission split of a payment.

        The split is taken on the crypto amount with the rate of the
        payment's service type, so the stored parts are in the same unit
        as the amount the provider forwards.

        Raises:
            PaymentNotFoundError: If payment does not exist
        """
        payment = await self.payment_repo.get_by_id(payment_id)
        if payment is None:
            raise PaymentNotFoundError("Payment not found")

        split = self.calculator.split_by_service_type(
            payment.amount, payment.service_type
        )

        payment.commission_rate = split.rate
        payment.commission_amount = split.commission_amount
        payment.recipient_amount = split.recipient_amount
        await self.session.flush()

        self.logger.info(
            f"Payment {payment_id} split at {split.rate}: "
            f"{split.commission_amount} / {split.recipient_amount}"
        )
        return payment

    @transaction
    async def process_webhook(self, payload: dict[str, Any]) -> Payment:
        """
        Apply a payment provider callback.

        Payload fields: address_in, txid_in, value_coin (or value),
        confirmations, pending. A callback with pending == 0 and at
        least one confirmation confirms the payment; a confirmed payment
        is never changed again.

        Raises:
            ValidationError: If address_in is missing or fields are malformed
            PaymentNotFoundError: If no payment uses the address
        """
        address = payload.get("address_in")
        if not address:
            raise ValidationError("Missing required field: address_in")

        try:
            confirmations = int(payload.get("confirmations") or 0)
            pending = int(payload.get("pending") or 0)
        except (TypeError, ValueError) as e:
            raise ValidationError("Malformed webhook counters") from e

        payment = await self.payment_repo.get_by_address(address, for_update=True)
        if payment is None:
            raise PaymentNotFoundError(f"No payment for address {address}")

        if payment.is_confirmed:
            self.logger.debug(f"Payment {payment.id} already confirmed, ignoring callback")
            return payment

        payment.confirmations = max(payment.confirmations or 0, confirmations)
        if payload.get("txid_in"):
            payment.transaction_hash = payload["txid_in"]

        value = payload.get("value_coin", payload.get("value"))
        if value is not None:
            try:
                payment.value_received = to_decimal(value, field="Value")
            except InvalidAmountError as e:
                raise ValidationError(str(e)) from e

        if pending == 0 and confirmations >= MIN_CONFIRMATIONS:
            payment.status = PaymentStatus.CONFIRMED.value
            payment.confirmed_at = utc_now()
            self.logger.info(
                f"Payment {payment.id} confirmed",
                extra={
                    "payment_id": payment.id,
                    "transaction_hash": payment.transaction_hash,
                },
            )

        await self.session.flush()
        return payment

    @transaction
    async def update_payment_status(
        self,
        payment_id: int,
        status: str,
        transaction_hash: str | None = None,
    ) -> Payment:
        """
        Set the status of a payment outside the webhook flow.

        Confirming stamps confirmed_at unless it is already set. A
        confirmed payment cannot go back to pending.

        Raises:
            ValidationError: If status is unknown
            PaymentNotFoundError: If payment does not exist
            InvalidStatusTransitionError: If payment is already confirmed
        """
        valid = {s.value for s in PaymentStatus}
        if status not in valid:
            raise ValidationError(
                f"Invalid payment status: {status}. "
                f"Must be one of: {', '.join(sorted(valid))}"
            )

        payment = await self.payment_repo.get_by_id(payment_id, for_update=True)
        if payment is None:
            raise PaymentNotFoundError("Payment not found")

        if payment.is_confirmed and status != PaymentStatus.CONFIRMED.value:
            raise InvalidStatusTransitionError(
                f"Payment {payment_id} is already confirmed"
            )

        payment.status = status
        if transaction_hash:
            payment.transaction_hash = transaction_hash
        if status == PaymentStatus.CONFIRMED.value and payment.confirmed_at is None:
            payment.confirmed_at = utc_now()

        await self.session.flush()
        self.logger.info(f"Payment {payment_id} status set to {status}")
        return payment

    async def get_payment(self, payment_id: int, user_id: int) -> Payment:
        """
        Get a payment visible to a user.

        Raises:
            PaymentNotFoundError: If payment does not exist
            AuthorizationError: If user is neither payer nor recipient
        """
        payment = await self.payment_repo.get_by_id(payment_id)
        if payment is None:
            raise PaymentNotFoundError("Payment not found")

        if user_id not in (payment.payer_id, payment.recipient_id):
            raise AuthorizationError("Not allowed to view this payment")

        return payment

    async def get_payment_history(
        self,
        user_id: int,
        status: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Payment]:
        """Get payments of a user (as payer or recipient), newest first."""
        return await self.payment_repo.get_by_user(
            user_id, status=status, limit=limit, offset=offset
        )

    # === Refunds ===

    @transaction
    async def request_refund(
        self,
        payment_id: int,
        requester_id: int,
        reason: str,
        amount: Decimal | int | float | str | None = None,
    ) -> Refund:
        """
        Open a refund request for a payment.

        Args:
            payment_id: Payment to refund
            requester_id: Payer or recipient of the payment
            reason: Why the refund is requested
            amount: Crypto amount to refund (full payment if omitted)

        Returns:
            Pending refund

        Raises:
            ValidationError: On missing parameters
            PaymentNotFoundError: If payment does not exist
            AuthorizationError: If requester is not a participant
            InvalidAmountError: If amount is not positive or exceeds the payment
            DuplicateRefundError: If the payment already has a refund request
        """
        if not payment_id:
            raise ValidationError("Payment ID is required")
        if not requester_id:
            raise ValidationError("Requester ID is required")
        reason = (reason or "").strip()
        if not reason:
            raise ValidationError("Reason is required")

        payment = await self.payment_repo.get_by_id(payment_id)
        if payment is None:
            raise PaymentNotFoundError("Payment not found")

        if requester_id not in (payment.payer_id, payment.recipient_id):
            raise AuthorizationError("Not allowed to refund this payment")

        refund_amount = payment.amount if amount is None else to_decimal(amount)
        if refund_amount <= 0:
            raise InvalidAmountError("Refund amount must be greater than 0")
        if refund_amount > payment.amount:
            raise InvalidAmountError("Refund cannot exceed the payment amount")

        if await self.refund_repo.get_by_payment(payment_id):
            raise DuplicateRefundError("Refund request already exists for this payment")

        try:
            refund = await self.refund_repo.create(
                payment_id=payment_id,
                requester_id=requester_id,
                amount=refund_amount,
                cryptocurrency=payment.cryptocurrency,
                usd_equivalent=payment.usd_equivalent,
                reason=reason,
                status=RefundStatus.PENDING.value,
            )
        except IntegrityError as e:
            # Concurrent request for the same payment won the insert
            raise DuplicateRefundError(
                "Refund request already exists for this payment"
            ) from e

        self.logger.info(
            f"Refund {refund.id} requested for payment {payment_id}",
            extra={"payment_id": payment_id, "requester_id": requester_id},
        )
        return refund

    async def get_refund_status(self, refund_id: int) -> Refund | None:
        """Get a refund request, None if it does not exist."""
        if not refund_id:
            raise ValidationError("Refund ID is required")
        return await self.refund_repo.get_by_id(refund_id)

    @transaction
    async def process_refund(
        self,
        refund_id: int,
        status: str,
        admin_notes: str | None = None,
        refund_transaction_hash: str | None = None,
    ) -> Refund:
        """
        Move a refund request through review.

        Processing records the payout transaction and marks the payment
        refunded in the same transaction.

        Args:
            refund_id: Refund ID
            status: approved, rejected or processed
            admin_notes: Reviewer notes
            refund_transaction_hash: Payout transaction (required to process)

        Returns:
            Updated refund

        Raises:
            ValidationError: On unknown status or missing payout hash
            RefundNotFoundError: If refund does not exist
            InvalidStatusTransitionError: If the refund is already final
        """
        targets = {s.value for s in RefundStatus} - {RefundStatus.PENDING.value}
        if status not in targets:
            raise ValidationError(
                f"Invalid refund status: {status}. "
                f"Must be one of: {', '.join(sorted(targets))}"
            )

        processing = status == RefundStatus.PROCESSED.value
        if processing and not refund_transaction_hash:
            raise ValidationError("Refund transaction hash is required")

        refund = await self.refund_repo.get_by_id(refund_id, for_update=True)
        if refund is None:
            raise RefundNotFoundError("Refund not found")

        if status not in REFUND_TRANSITIONS.get(refund.status, frozenset()):
            raise InvalidStatusTransitionError(
                f"Refund {refund_id} cannot move from {refund.status} to {status}"
            )

        refund.status = status
        if admin_notes is not None:
            refund.admin_notes = admin_notes

        if processing:
            now = utc_now()
            refund.processed_at = now
            refund.refund_transaction_hash = refund_transaction_hash

            payment = await self.payment_repo.get_by_id(
                refund.payment_id, for_update=True
            )
            if payment is not None:
                payment.refunded = True
                payment.refunded_at = now

        await self.session.flush()
        self.logger.info(
            f"Refund {refund_id} {status}",
            extra={"refund_id": refund_id, "payment_id": refund.payment_id},
        )
        return refund
