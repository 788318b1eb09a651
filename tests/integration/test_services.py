"""Integration tests for services (repositories and session mocked)."""

from datetime import UTC, datetime
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import IntegrityError

from app.config.settings import Settings
from app.models import (
    ExpertiseArea,
    Payment,
    PerformanceMetrics,
    Referral,
    Refund,
    RewardTier,
)
from app.services.cryptapi_client import PaymentAddress
from app.services.exchange_rate import ExchangeRateCache, ExchangeRateService
from app.services.payment_service import PaymentService
from app.services.referral_service import (
    REFERRAL_CODE_ALPHABET,
    ReferralService,
)
from app.services.reputation_service import ReputationService
from app.utils.exceptions import (
    AlreadyReferredError,
    AuthorizationError,
    ConfigurationError,
    ConflictError,
    DuplicateRefundError,
    InvalidReferralCodeError,
    InvalidStatusTransitionError,
    PaymentNotFoundError,
    PaymentProviderError,
    ReferralAlreadyCompletedError,
    ReferralNotFoundError,
    RefundNotFoundError,
    SelfReferralError,
    ValidationError,
)
from settlement.exceptions import (
    InvalidAmountError,
    InvalidBonusAmountError,
    InvalidBonusTypeError,
    InvalidRoleError,
    UnsupportedCurrencyError,
)


def make_referral(**overrides) -> Referral:
    data = {
        "id": 10,
        "referrer_id": 1,
        "referred_id": 2,
        "referral_code": "ABCD2345",
        "status": "pending",
    }
    data.update(overrides)
    return Referral(**data)


def make_metrics(**overrides) -> PerformanceMetrics:
    data = {
        "id": 1,
        "user_id": 7,
        "reputation_score": 0,
        "total_services_completed": 0,
        "total_earnings": Decimal("0"),
        "average_rating": Decimal("0"),
        "total_ratings": 0,
        "average_response_time_minutes": Decimal("0"),
        "response_time_samples": 0,
        "success_rate": Decimal("0"),
        "on_time_delivery_rate": Decimal("0"),
    }
    data.update(overrides)
    return PerformanceMetrics(**data)


class TestReferralService:
    """Integration tests for ReferralService."""

    @pytest.fixture
    def service(self, mock_session) -> ReferralService:
        """ReferralService with mocked repositories."""
        service = ReferralService(mock_session)
        service.code_repo = AsyncMock()
        service.referral_repo = AsyncMock()
        service.bonus_repo = AsyncMock()
        service.bonus_repo.create.side_effect = lambda **kw: SimpleNamespace(**kw)
        service.tier_repo = AsyncMock()
        return service

    # === Tracking ===

    @pytest.mark.asyncio
    async def test_track_referral(self, service, mock_session) -> None:
        """Valid code creates a pending referral."""
        service.code_repo.get_active_by_code.return_value = SimpleNamespace(user_id=1)
        service.referral_repo.get_by_referred.return_value = None
        service.referral_repo.create.return_value = make_referral()

        referral = await service.track_referral(" abcd2345 ", 2)

        assert referral.status == "pending"
        service.code_repo.get_active_by_code.assert_awaited_once_with("ABCD2345")
        service.referral_repo.create.assert_awaited_once_with(
            referrer_id=1, referred_id=2, referral_code="ABCD2345"
        )
        mock_session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("code", ["", "   ", None])
    async def test_empty_code(self, service, code) -> None:
        """Empty code is invalid without a lookup."""
        with pytest.raises(InvalidReferralCodeError):
            await service.track_referral(code, 2)
        service.code_repo.get_active_by_code.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unknown_code(self, service, mock_session) -> None:
        """Unknown or inactive code is invalid."""
        service.code_repo.get_active_by_code.return_value = None

        with pytest.raises(InvalidReferralCodeError):
            await service.track_referral("NOPE2345", 2)
        mock_session.rollback.assert_awaited_once()
        mock_session.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_self_referral(self, service) -> None:
        """Own code is rejected."""
        service.code_repo.get_active_by_code.return_value = SimpleNamespace(user_id=2)

        with pytest.raises(SelfReferralError):
            await service.track_referral("ABCD2345", 2)
        service.referral_repo.create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_double_referral(self, service) -> None:
        """Second referral of the same user is rejected."""
        service.code_repo.get_active_by_code.return_value = SimpleNamespace(user_id=1)
        service.referral_repo.get_by_referred.return_value = make_referral()

        with pytest.raises(AlreadyReferredError):
            await service.track_referral("ABCD2345", 2)
        service.referral_repo.create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_concurrent_double_referral(self, service, mock_session) -> None:
        """Unique constraint violation maps to AlreadyReferredError."""
        service.code_repo.get_active_by_code.return_value = SimpleNamespace(user_id=1)
        service.referral_repo.get_by_referred.return_value = None
        service.referral_repo.create.side_effect = IntegrityError(
            "INSERT INTO referrals", {}, Exception("duplicate key")
        )

        with pytest.raises(AlreadyReferredError):
            await service.track_referral("ABCD2345", 2)
        mock_session.rollback.assert_awaited_once()

    # === Completion ===

    async def _complete_with_count(self, service, completed_count: int) -> list:
        service.referral_repo.get_by_id.return_value = make_referral()
        service.referral_repo.mark_completed.return_value = True
        service.referral_repo.count_completed.return_value = completed_count

        await service.complete_referral(10)
        return [call.kwargs for call in service.bonus_repo.create.await_args_list]

    @pytest.mark.asyncio
    async def test_complete_pays_both_sides(self, service, mock_session) -> None:
        """Completion credits referrer and referred user."""
        bonuses = await self._complete_with_count(service, 1)

        assert [(b["user_id"], b["amount"], b["type"]) for b in bonuses] == [
            (1, Decimal("10.00"), "referral_bonus"),
            (2, Decimal("5.00"), "welcome_bonus"),
        ]
        assert all(b["referral_id"] == 10 for b in bonuses)
        mock_session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_fifth_completion_pays_milestone(self, service) -> None:
        """Exactly the 5th completed referral adds 25.00."""
        bonuses = await self._complete_with_count(service, 5)

        assert len(bonuses) == 3
        assert bonuses[2]["user_id"] == 1
        assert bonuses[2]["amount"] == Decimal("25.00")
        assert bonuses[2]["type"] == "milestone_bonus"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("count", [4, 6])
    async def test_no_milestone_around_fifth(self, service, count: int) -> None:
        """4th and 6th completions pay no milestone."""
        bonuses = await self._complete_with_count(service, count)
        assert [b["type"] for b in bonuses] == ["referral_bonus", "welcome_bonus"]

    @pytest.mark.asyncio
    async def test_double_completion_pays_nothing(self, service, mock_session) -> None:
        """Already completed referral raises and awards nothing."""
        service.referral_repo.get_by_id.return_value = make_referral(status="completed")
        service.referral_repo.mark_completed.return_value = False

        with pytest.raises(ReferralAlreadyCompletedError):
            await service.complete_referral(10)
        service.bonus_repo.create.assert_not_awaited()
        mock_session.rollback.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_complete_unknown_referral(self, service) -> None:
        """Unknown id raises ReferralNotFoundError."""
        service.referral_repo.get_by_id.return_value = None

        with pytest.raises(ReferralNotFoundError):
            await service.complete_referral(999)
        service.referral_repo.mark_completed.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_completion_locks_referrer_first(self, service) -> None:
        """Referrer row is locked before the flip and the milestone count."""
        calls = []
        service.code_repo.get_by_user.side_effect = (
            lambda user_id, for_update=False: calls.append(("lock", user_id, for_update))
        )
        service.referral_repo.mark_completed.side_effect = (
            lambda *args, **kwargs: calls.append(("flip",)) or True
        )
        service.referral_repo.count_completed.side_effect = (
            lambda referrer_id: calls.append(("count",)) or 5
        )
        service.referral_repo.get_by_id.return_value = make_referral()

        await service.complete_referral(10)

        assert calls == [("lock", 1, True), ("flip",), ("count",)]

    # === Reward tiers ===

    @pytest.mark.asyncio
    async def test_reward_tier_without_completions(self, service) -> None:
        """No completed referrals means no tier and no tier lookup."""
        service.referral_repo.count_completed.return_value = 0

        assert await service.get_reward_tier(1) is None
        service.tier_repo.get_for_count.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_reward_tier_for_completed_count(self, service) -> None:
        """Tier lookup uses the completed referral count."""
        silver = RewardTier(name="Silver", min_referrals=5, max_referrals=9, bonus_amount=Decimal("20"))
        service.referral_repo.count_completed.return_value = 7
        service.tier_repo.get_for_count.return_value = silver

        assert await service.get_reward_tier(1) is silver
        service.tier_repo.get_for_count.assert_awaited_once_with(7)

    @pytest.mark.asyncio
    async def test_reward_tiers(self, service) -> None:
        """All tiers come from the repository."""
        service.tier_repo.get_all.return_value = []
        assert await service.get_reward_tiers() == []
        service.tier_repo.get_all.assert_awaited_once()

    # === Bonuses ===

    @pytest.mark.asyncio
    async def test_award_bonus(self, service) -> None:
        """Valid bonus is written to the ledger."""
        bonus = await service.award_bonus(3, "12.5", "tier_bonus", "Silver tier")

        assert bonus.amount == Decimal("12.5")
        assert bonus.type == "tier_bonus"
        assert bonus.referral_id is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", [0, Decimal("-1")])
    async def test_award_bonus_invalid_amount(self, service, amount) -> None:
        """Non-positive amounts are rejected."""
        with pytest.raises(InvalidBonusAmountError):
            await service.award_bonus(3, amount, "tier_bonus", "x")
        service.bonus_repo.create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_award_bonus_invalid_type(self, service) -> None:
        """Unknown bonus types are rejected."""
        with pytest.raises(InvalidBonusTypeError):
            await service.award_bonus(3, Decimal("5"), "cashback", "x")

    def test_calculate_bonus(self, service) -> None:
        """Role lookup returns the fixed amounts."""
        assert service.calculate_bonus("referrer") == Decimal("10.00")
        assert service.calculate_bonus("referred") == Decimal("5.00")
        with pytest.raises(InvalidRoleError):
            service.calculate_bonus("someone")

    # === Codes and stats ===

    @pytest.mark.asyncio
    async def test_generate_code_idempotent(self, service) -> None:
        """Existing code is returned unchanged."""
        existing = SimpleNamespace(user_id=1, code="ABCD2345")
        service.code_repo.get_by_user.return_value = existing

        assert await service.generate_referral_code(1) is existing
        service.code_repo.create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_generate_code_retries_collision(self, service) -> None:
        """Taken codes are skipped."""
        service.code_repo.get_by_user.return_value = None
        service.code_repo.code_exists.side_effect = [True, False]
        service.code_repo.create.side_effect = lambda **kw: SimpleNamespace(**kw)

        created = await service.generate_referral_code(1)

        assert service.code_repo.code_exists.await_count == 2
        assert len(created.code) == 8
        assert set(created.code) <= set(REFERRAL_CODE_ALPHABET)
        assert created.is_active is True

    @pytest.mark.asyncio
    async def test_generate_code_gives_up(self, service) -> None:
        """Persistent collisions raise ConflictError."""
        service.code_repo.get_by_user.return_value = None
        service.code_repo.code_exists.return_value = True

        with pytest.raises(ConflictError):
            await service.generate_referral_code(1)

    @pytest.mark.asyncio
    async def test_referral_stats(self, service) -> None:
        """Stats come from the aggregate queries."""
        service.referral_repo.get_status_counts.return_value = {"pending": 2, "completed": 3}
        service.bonus_repo.get_total_by_user.return_value = Decimal("55.00")

        stats = await service.get_referral_stats(1)

        assert stats.total_referrals == 5
        assert stats.completed_referrals == 3
        assert stats.pending_referrals == 2
        assert stats.total_bonus_earned == Decimal("55.00")

    @pytest.mark.asyncio
    async def test_history_passes_filters(self, service) -> None:
        """History and ledger queries forward their filters."""
        await service.get_referral_history(1, status="completed")
        await service.get_bonus_transactions(1, bonus_type="welcome_bonus", limit=10)

        service.referral_repo.get_history.assert_awaited_once_with(1, status="completed", limit=50)
        service.bonus_repo.get_by_user.assert_awaited_once_with(1, bonus_type="welcome_bonus", limit=10)


class TestReputationService:
    """Integration tests for ReputationService."""

    @pytest.fixture
    def service(self, mock_session) -> ReputationService:
        """ReputationService with mocked repositories."""
        service = ReputationService(mock_session)
        service.metrics_repo = AsyncMock()
        service.badge_repo = AsyncMock()
        service.expertise_repo = AsyncMock()
        service.expertise_repo.get_max_services.return_value = 0
        return service

    @pytest.mark.asyncio
    async def test_update_recomputes_score(self, service, mock_session) -> None:
        """Stored score always matches the counters."""
        row = make_metrics()
        service.metrics_repo.get_by_user.return_value = row

        await service.update_user_metrics(
            7,
            total_services_completed=100,
            average_rating=Decimal("4.9"),
            success_rate=Decimal("98"),
            on_time_delivery_rate=Decimal("95"),
            average_response_time_minutes=Decimal("30"),
        )

        assert row.total_services_completed == 100
        assert row.reputation_score == 1274
        mock_session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_update_creates_missing_row(self, service) -> None:
        """First update initializes the metrics row."""
        row = make_metrics()
        service.metrics_repo.get_by_user.return_value = None
        service.metrics_repo.create.return_value = row

        await service.update_user_metrics(7, total_services_completed=3)

        service.metrics_repo.create.assert_awaited_once()
        assert row.reputation_score == 6

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "updates",
        [
            {"average_rating": Decimal("6")},
            {"success_rate": Decimal("120")},
            {"total_earnings": Decimal("-1")},
            {"reputation_score": 9999},
            {"response_time_samples": -1},
        ],
    )
    async def test_update_rejects_bad_values(self, service, mock_session, updates) -> None:
        """Out-of-range and derived fields are rejected."""
        service.metrics_repo.get_by_user.return_value = make_metrics()

        with pytest.raises(ValidationError):
            await service.update_user_metrics(7, **updates)
        mock_session.rollback.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_record_service_completion(self, service) -> None:
        """Completion updates running percentages and earnings."""
        row = make_metrics(
            total_services_completed=1,
            total_earnings=Decimal("100"),
            success_rate=Decimal("100"),
            on_time_delivery_rate=Decimal("100"),
            average_response_time_minutes=Decimal("20"),
            response_time_samples=1,
        )
        service.metrics_repo.get_by_user.return_value = row

        await service.record_service_completion(
            7, earnings=Decimal("50"), success=False, on_time=True,
            response_time_minutes=40,
        )

        assert row.total_services_completed == 2
        assert row.total_earnings == Decimal("150")
        assert row.success_rate == Decimal("50.00")
        assert row.on_time_delivery_rate == Decimal("100.00")
        assert row.average_response_time_minutes == Decimal("30.00")
        assert row.response_time_samples == 2
        # 4 + 0 + 150 + 200 + 100
        assert row.reputation_score == 454

    @pytest.mark.asyncio
    async def test_response_average_ignores_unmeasured_completions(self, service) -> None:
        """Completions without a response time do not dilute the average."""
        row = make_metrics(
            total_services_completed=3,
            success_rate=Decimal("100"),
            on_time_delivery_rate=Decimal("100"),
        )
        service.metrics_repo.get_by_user.return_value = row

        await service.record_service_completion(
            7, earnings=0, success=True, on_time=True, response_time_minutes=20
        )

        assert row.total_services_completed == 4
        assert row.average_response_time_minutes == Decimal("20.00")
        assert row.response_time_samples == 1

    @pytest.mark.asyncio
    async def test_unmeasured_completion_keeps_response_average(self, service) -> None:
        """No response time leaves average and sample count untouched."""
        row = make_metrics(
            total_services_completed=2,
            average_response_time_minutes=Decimal("45"),
            response_time_samples=2,
        )
        service.metrics_repo.get_by_user.return_value = row

        await service.record_service_completion(7, earnings=10, success=True, on_time=False)

        assert row.average_response_time_minutes == Decimal("45")
        assert row.response_time_samples == 2

    @pytest.mark.asyncio
    async def test_record_rating(self, service) -> None:
        """Rating folds into the running average."""
        row = make_metrics(average_rating=Decimal("4"), total_ratings=1)
        service.metrics_repo.get_by_user.return_value = row

        await service.record_rating(7, 5)

        assert row.average_rating == Decimal("4.50")
        assert row.total_ratings == 2
        assert row.reputation_score == 450

    @pytest.mark.asyncio
    @pytest.mark.parametrize("rating", [0, 6, "x"])
    async def test_record_rating_out_of_range(self, service, rating) -> None:
        """Ratings must be between 1 and 5."""
        with pytest.raises(ValidationError):
            await service.record_rating(7, rating)

    @pytest.mark.asyncio
    async def test_score_without_metrics(self, service) -> None:
        """Users without metrics score 0."""
        service.metrics_repo.get_by_user.return_value = None
        assert await service.calculate_reputation_score(7) == 0

    @pytest.mark.asyncio
    async def test_badges_awarded_once(self, service) -> None:
        """Only badges not yet held are created."""
        service.metrics_repo.get_by_user.return_value = make_metrics(
            total_services_completed=120,
            average_response_time_minutes=Decimal("20"),
        )
        service.badge_repo.get_slugs_by_user.return_value = {"reliable"}

        awarded = await service.check_and_award_badges(7)

        assert awarded == ["quick-responder"]
        service.badge_repo.create.assert_awaited_once_with(user_id=7, slug="quick-responder")

    @pytest.mark.asyncio
    async def test_top_performers(self, service) -> None:
        """Leaderboard limit and service type filter are forwarded."""
        await service.get_top_performers(limit=5)
        await service.get_top_performers(service_type="programming_help")

        assert service.metrics_repo.get_top.await_args_list[0].args == (5,)
        assert service.metrics_repo.get_top.await_args_list[0].kwargs == {"service_type": None}
        assert service.metrics_repo.get_top.await_args_list[1].kwargs == {
            "service_type": "programming_help"
        }

    # === Expertise ===

    @pytest.mark.asyncio
    async def test_track_expertise_creates_area(self, service, mock_session) -> None:
        """First service in a subject creates its record."""
        service.expertise_repo.get_area.return_value = None
        service.expertise_repo.create.side_effect = lambda **kw: ExpertiseArea(**kw)

        area = await service.track_expertise(
            7, " programming_help ", " Python ", rating=5, earnings="40"
        )

        service.expertise_repo.get_area.assert_awaited_once_with(
            7, "programming_help", "Python", for_update=True
        )
        assert area.services_completed == 1
        assert area.rated_services == 1
        assert area.average_rating == Decimal("5.00")
        assert area.total_earnings == Decimal("40")
        mock_session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_track_expertise_folds_ratings(self, service) -> None:
        """Unrated services count but leave the subject average alone."""
        area = ExpertiseArea(
            user_id=7,
            service_type="homework_help",
            subject="Algebra",
            services_completed=2,
            rated_services=2,
            average_rating=Decimal("4.00"),
            total_earnings=Decimal("50"),
        )
        service.expertise_repo.get_area.return_value = area

        await service.track_expertise(7, "homework_help", "Algebra", earnings=10)
        assert area.services_completed == 3
        assert area.average_rating == Decimal("4.00")

        await service.track_expertise(7, "homework_help", "Algebra", rating=5)
        assert area.services_completed == 4
        assert area.rated_services == 3
        assert area.average_rating == Decimal("4.33")
        assert area.total_earnings == Decimal("60")

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "service_type,subject,rating,earnings",
        [
            ("", "Python", None, 0),
            ("programming_help", "  ", None, 0),
            ("programming_help", "Python", 7, 0),
            ("programming_help", "Python", None, -5),
        ],
    )
    async def test_track_expertise_rejects_bad_input(
        self, service, service_type, subject, rating, earnings
    ) -> None:
        """Bad input is rejected before any lookup."""
        with pytest.raises(ValidationError):
            await service.track_expertise(7, service_type, subject, rating, earnings)
        service.expertise_repo.get_area.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_get_specialists(self, service) -> None:
        """Specialist query defaults to five services minimum."""
        await service.get_specialists("test_taking")
        service.expertise_repo.get_specialists.assert_awaited_once_with(
            "test_taking", min_services=5, limit=20
        )
        with pytest.raises(ValidationError):
            await service.get_specialists("")

    @pytest.mark.asyncio
    async def test_subject_master_badge(self, service) -> None:
        """Fifty services in one subject earn subject-master."""
        service.metrics_repo.get_by_user.return_value = make_metrics(
            total_services_completed=60
        )
        service.badge_repo.get_slugs_by_user.return_value = set()
        service.expertise_repo.get_max_services.return_value = 50

        awarded = await service.check_and_award_badges(7)

        assert awarded == ["subject-master"]
        service.expertise_repo.get_max_services.assert_awaited_once_with(7)

    @pytest.mark.asyncio
    async def test_no_subject_master_below_threshold(self, service) -> None:
        """Services spread over subjects do not earn subject-master."""
        service.metrics_repo.get_by_user.return_value = make_metrics(
            total_services_completed=60
        )
        service.badge_repo.get_slugs_by_user.return_value = set()
        service.expertise_repo.get_max_services.return_value = 49

        assert await service.check_and_award_badges(7) == []


class TestPaymentService:
    """Integration tests for PaymentService."""

    @pytest.fixture
    def config(self) -> Settings:
        """Settings with a BTC platform wallet only."""
        return Settings(
            _env_file=None,
            btc_platform_wallet="bc1qplatform",
            eth_platform_wallet=None,
            doge_platform_wallet=None,
            public_url="https://market.example.com",
        )

    @pytest.fixture
    def rate_client(self):
        """Rate client returning 65000."""
        client = MagicMock()
        client.fetch_rate = AsyncMock(return_value=Decimal("65000"))
        return client

    @pytest.fixture
    def cryptapi(self):
        """CryptAPI client double."""
        client = MagicMock()
        client.create_payment_address = AsyncMock(
            return_value=PaymentAddress(
                address_in="bc1qforward",
                callback_url="https://market.example.com/api/webhooks/cryptapi",
                qr_code_url="https://api.cryptapi.io/btc/qrcode/?address=bc1qforward",
            )
        )
        return client

    @pytest.fixture
    def service(self, mock_session, config, rate_client, cryptapi, fake_clock) -> PaymentService:
        """PaymentService with mocked repository and providers."""
        rate_service = ExchangeRateService(
            client=rate_client, cache=ExchangeRateCache(clock=fake_clock)
        )
        service = PaymentService(
            mock_session, rate_service=rate_service, cryptapi_client=cryptapi, config=config
        )
        service.payment_repo = AsyncMock()
        service.payment_repo.create.side_effect = lambda **kw: Payment(id=1, **kw)
        service.refund_repo = AsyncMock()
        service.refund_repo.create.side_effect = lambda **kw: Refund(id=5, **kw)
        return service

    def _pending_payment(self, **overrides) -> Payment:
        data = {
            "id": 1,
            "job_id": 42,
            "payer_id": 100,
            "recipient_id": 200,
            "service_type": "test_taking",
            "cryptocurrency": "BTC",
            "amount": Decimal("0.01"),
            "usd_equivalent": Decimal("650"),
            "commission_rate": Decimal("0.25"),
            "commission_amount": Decimal("0.0025"),
            "recipient_amount": Decimal("0.0075"),
            "payment_address": "bc1qforward",
            "recipient_wallet": "bc1qrecipient",
            "platform_wallet_address": "bc1qplatform",
            "status": "pending",
            "confirmations": 0,
        }
        data.update(overrides)
        return Payment(**data)

    # === Initiation ===

    @pytest.mark.asyncio
    async def test_initiate_payment(self, service, cryptapi, mock_session) -> None:
        """USD price becomes a pending crypto payment with its split."""
        payment = await service.initiate_payment(
            job_id=42,
            payer_id=100,
            recipient_id=200,
            amount_usd=Decimal("650"),
            cryptocurrency="btc",
            recipient_wallet="bc1qrecipient",
            service_type="programming_help",
        )

        assert payment.status == "pending"
        assert payment.cryptocurrency == "BTC"
        assert payment.amount == Decimal("0.01")
        assert payment.usd_equivalent == Decimal("650")
        assert payment.commission_rate == Decimal("0.20")
        assert payment.commission_amount == Decimal("0.002")
        assert payment.recipient_amount == Decimal("0.008")
        assert payment.payment_address == "bc1qforward"

        kwargs = cryptapi.create_payment_address.await_args.kwargs
        assert kwargs["commission_percentage"] == Decimal("20")
        assert kwargs["platform_wallet"] == "bc1qplatform"
        assert kwargs["callback_url"] == "https://market.example.com/api/webhooks/cryptapi"
        mock_session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "overrides,error",
        [
            ({"amount_usd": 0}, InvalidAmountError),
            ({"amount_usd": "-5"}, InvalidAmountError),
            ({"cryptocurrency": "XRP"}, UnsupportedCurrencyError),
            ({"cryptocurrency": ""}, ValidationError),
            ({"recipient_wallet": " "}, ValidationError),
            ({"job_id": None}, ValidationError),
            ({"cryptocurrency": "DOGE"}, ConfigurationError),
        ],
    )
    async def test_initiate_validates_before_external_calls(
        self, service, rate_client, cryptapi, overrides, error
    ) -> None:
        """Bad input never reaches the rate or payment provider."""
        params = {
            "job_id": 42,
            "payer_id": 100,
            "recipient_id": 200,
            "amount_usd": Decimal("650"),
            "cryptocurrency": "BTC",
            "recipient_wallet": "bc1qrecipient",
        }
        params.update(overrides)

        with pytest.raises(error):
            await service.initiate_payment(**params)

        rate_client.fetch_rate.assert_not_awaited()
        cryptapi.create_payment_address.assert_not_awaited()
        service.payment_repo.create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_provider_failure_stores_nothing(self, service, cryptapi, mock_session) -> None:
        """Payment is not stored when address creation fails."""
        cryptapi.create_payment_address.side_effect = PaymentProviderError("HTTP 500")

        with pytest.raises(PaymentProviderError):
            await service.initiate_payment(42, 100, 200, Decimal("650"), "BTC", "bc1qrecipient")

        service.payment_repo.create.assert_not_awaited()
        mock_session.rollback.assert_awaited_once()

    # === Split ===

    @pytest.mark.asyncio
    async def test_split_payment_stays_in_crypto_units(self, service) -> None:
        """Recomputed split is taken on the crypto amount, not the USD price."""
        payment = self._pending_payment(service_type="programming_help")
        service.payment_repo.get_by_id.return_value = payment

        await service.split_payment(1)

        assert payment.commission_rate == Decimal("0.20")
        assert payment.commission_amount == Decimal("0.002")
        assert payment.recipient_amount == Decimal("0.008")
        assert payment.commission_amount + payment.recipient_amount <= payment.amount
        assert payment.usd_equivalent == Decimal("650")

    @pytest.mark.asyncio
    async def test_split_payment_matches_initiation(self, service) -> None:
        """Splitting a freshly initiated payment leaves its split unchanged."""
        payment = await service.initiate_payment(
            42, 100, 200, Decimal("650"), "BTC", "bc1qrecipient", "test_taking"
        )
        stored = (payment.commission_amount, payment.recipient_amount)
        service.payment_repo.get_by_id.return_value = payment

        await service.split_payment(1)

        assert (payment.commission_amount, payment.recipient_amount) == stored

    @pytest.mark.asyncio
    async def test_split_unknown_payment(self, service) -> None:
        """Unknown payment raises PaymentNotFoundError."""
        service.payment_repo.get_by_id.return_value = None
        with pytest.raises(PaymentNotFoundError):
            await service.split_payment(1)

    # === Webhooks ===

    @pytest.mark.asyncio
    async def test_webhook_confirms_payment(self, service) -> None:
        """Settled callback with a confirmation confirms the payment."""
        payment = self._pending_payment()
        service.payment_repo.get_by_address.return_value = payment

        await service.process_webhook({
            "address_in": "bc1qforward",
            "txid_in": "abc123",
            "value_coin": "0.01",
            "confirmations": "1",
            "pending": "0",
        })

        assert payment.is_confirmed
        assert payment.transaction_hash == "abc123"
        assert payment.value_received == Decimal("0.01")
        assert isinstance(payment.confirmed_at, datetime)
        assert payment.confirmed_at.tzinfo == UTC

    @pytest.mark.asyncio
    async def test_webhook_pending_keeps_status(self, service) -> None:
        """Pending callbacks only record progress."""
        payment = self._pending_payment()
        service.payment_repo.get_by_address.return_value = payment

        await service.process_webhook({
            "address_in": "bc1qforward",
            "txid_in": "abc123",
            "confirmations": 0,
            "pending": 1,
        })

        assert payment.status == "pending"
        assert payment.transaction_hash == "abc123"
        assert payment.confirmed_at is None

    @pytest.mark.asyncio
    async def test_webhook_confirmed_is_terminal(self, service) -> None:
        """Later callbacks do not change a confirmed payment."""
        confirmed_at = datetime(2025, 1, 1, tzinfo=UTC)
        payment = self._pending_payment(
            status="confirmed", confirmations=3, confirmed_at=confirmed_at
        )
        service.payment_repo.get_by_address.return_value = payment

        await service.process_webhook({"address_in": "bc1qforward", "confirmations": 0, "pending": 1})

        assert payment.status == "confirmed"
        assert payment.confirmations == 3
        assert payment.confirmed_at == confirmed_at

    @pytest.mark.asyncio
    async def test_webhook_missing_address(self, service) -> None:
        """address_in is required."""
        with pytest.raises(ValidationError, match="address_in"):
            await service.process_webhook({"confirmations": 1})

    @pytest.mark.asyncio
    async def test_webhook_unknown_address(self, service) -> None:
        """Unknown address raises PaymentNotFoundError."""
        service.payment_repo.get_by_address.return_value = None
        with pytest.raises(PaymentNotFoundError):
            await service.process_webhook({"address_in": "bc1qother"})

    # === Access ===

    @pytest.mark.asyncio
    @pytest.mark.parametrize("user_id", [100, 200])
    async def test_get_payment_for_participants(self, service, user_id: int) -> None:
        """Payer and recipient can view the payment."""
        payment = self._pending_payment()
        service.payment_repo.get_by_id.return_value = payment
        assert await service.get_payment(1, user_id) is payment

    @pytest.mark.asyncio
    async def test_get_payment_forbidden(self, service) -> None:
        """Other users are refused."""
        service.payment_repo.get_by_id.return_value = self._pending_payment()
        with pytest.raises(AuthorizationError):
            await service.get_payment(1, 300)

    @pytest.mark.asyncio
    async def test_get_payment_missing(self, service) -> None:
        """Unknown payment raises PaymentNotFoundError."""
        service.payment_repo.get_by_id.return_value = None
        with pytest.raises(PaymentNotFoundError):
            await service.get_payment(1, 100)

    # === Status ===

    @pytest.mark.asyncio
    async def test_update_status_confirms(self, service) -> None:
        """Manual confirmation stamps confirmed_at and the hash."""
        payment = self._pending_payment()
        service.payment_repo.get_by_id.return_value = payment

        await service.update_payment_status(1, "confirmed", transaction_hash="tx9")

        service.payment_repo.get_by_id.assert_awaited_once_with(1, for_update=True)
        assert payment.is_confirmed
        assert payment.transaction_hash == "tx9"
        assert payment.confirmed_at is not None

    @pytest.mark.asyncio
    async def test_update_status_keeps_confirmed(self, service) -> None:
        """A confirmed payment cannot return to pending."""
        service.payment_repo.get_by_id.return_value = self._pending_payment(status="confirmed")

        with pytest.raises(InvalidStatusTransitionError):
            await service.update_payment_status(1, "pending")

    @pytest.mark.asyncio
    async def test_update_status_unknown(self, service) -> None:
        """Unknown statuses are rejected before the lookup."""
        with pytest.raises(ValidationError):
            await service.update_payment_status(1, "lost")
        service.payment_repo.get_by_id.assert_not_awaited()

    # === Refunds ===

    def _refund(self, **overrides) -> Refund:
        data = {
            "id": 5,
            "payment_id": 1,
            "requester_id": 100,
            "amount": Decimal("0.01"),
            "cryptocurrency": "BTC",
            "reason": "Work not delivered",
            "status": "pending",
        }
        data.update(overrides)
        return Refund(**data)

    @pytest.mark.asyncio
    async def test_request_refund_full_amount(self, service, mock_session) -> None:
        """Refund defaults to the whole payment."""
        service.payment_repo.get_by_id.return_value = self._pending_payment()
        service.refund_repo.get_by_payment.return_value = None

        refund = await service.request_refund(1, 100, " Work not delivered ")

        assert refund.status == "pending"
        assert refund.amount == Decimal("0.01")
        assert refund.cryptocurrency == "BTC"
        assert refund.usd_equivalent == Decimal("650")
        assert refund.reason == "Work not delivered"
        mock_session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_request_refund_duplicate(self, service, mock_session) -> None:
        """Second request for a payment is a conflict."""
        service.payment_repo.get_by_id.return_value = self._pending_payment()
        service.refund_repo.get_by_payment.return_value = self._refund()

        with pytest.raises(DuplicateRefundError):
            await service.request_refund(1, 100, "again")
        service.refund_repo.create.assert_not_awaited()
        mock_session.rollback.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_request_refund_concurrent_duplicate(self, service) -> None:
        """Unique constraint violation maps to DuplicateRefundError."""
        service.payment_repo.get_by_id.return_value = self._pending_payment()
        service.refund_repo.get_by_payment.return_value = None
        service.refund_repo.create.side_effect = IntegrityError(
            "INSERT INTO refunds", {}, Exception("duplicate key")
        )

        with pytest.raises(DuplicateRefundError) as exc_info:
            await service.request_refund(1, 100, "Work not delivered")
        assert isinstance(exc_info.value, ConflictError)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "requester_id,amount,error",
        [
            (300, None, AuthorizationError),
            (100, Decimal("0.02"), InvalidAmountError),
            (100, 0, InvalidAmountError),
        ],
    )
    async def test_request_refund_rejected(self, service, requester_id, amount, error) -> None:
        """Outsiders and impossible amounts are refused."""
        service.payment_repo.get_by_id.return_value = self._pending_payment()
        service.refund_repo.get_by_payment.return_value = None

        with pytest.raises(error):
            await service.request_refund(1, requester_id, "reason", amount)
        service.refund_repo.create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_request_refund_requires_reason(self, service) -> None:
        """Reason is required."""
        with pytest.raises(ValidationError):
            await service.request_refund(1, 100, "  ")
        service.payment_repo.get_by_id.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_get_refund_status(self, service) -> None:
        """Missing refunds come back as None."""
        service.refund_repo.get_by_id.return_value = None
        assert await service.get_refund_status(5) is None

    @pytest.mark.asyncio
    async def test_process_refund_marks_payment_refunded(self, service) -> None:
        """Processing records the payout and flags the payment."""
        refund = self._refund(status="approved")
        payment = self._pending_payment(status="confirmed")
        service.refund_repo.get_by_id.return_value = refund
        service.payment_repo.get_by_id.return_value = payment

        await service.process_refund(5, "processed", admin_notes="paid", refund_transaction_hash="out1")

        assert refund.status == "processed"
        assert refund.refund_transaction_hash == "out1"
        assert refund.admin_notes == "paid"
        assert refund.processed_at is not None
        assert payment.refunded is True
        assert payment.refunded_at == refund.processed_at

    @pytest.mark.asyncio
    async def test_process_refund_reject(self, service) -> None:
        """Rejection leaves the payment alone."""
        refund = self._refund()
        service.refund_repo.get_by_id.return_value = refund

        await service.process_refund(5, "rejected", admin_notes="delivered on time")

        assert refund.status == "rejected"
        assert refund.processed_at is None
        service.payment_repo.get_by_id.assert_not_awaited()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("current", ["rejected", "processed"])
    async def test_process_refund_final_states(self, service, current: str) -> None:
        """Rejected and processed refunds do not change again."""
        service.refund_repo.get_by_id.return_value = self._refund(status=current)

        with pytest.raises(InvalidStatusTransitionError):
            await service.process_refund(5, "processed", refund_transaction_hash="out1")

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status,tx_hash",
        [("pending", None), ("lost", None), ("processed", None)],
    )
    async def test_process_refund_bad_input(self, service, status, tx_hash) -> None:
        """Unknown status or a payout without hash is rejected."""
        with pytest.raises(ValidationError):
            await service.process_refund(5, status, refund_transaction_hash=tx_hash)
        service.refund_repo.get_by_id.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_process_unknown_refund(self, service) -> None:
        """Unknown refund raises RefundNotFoundError."""
        service.refund_repo.get_by_id.return_value = None
        with pytest.raises(RefundNotFoundError):
            await service.process_refund(5, "approved")
