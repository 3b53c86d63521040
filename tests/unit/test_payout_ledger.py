"""Unit tests for PayoutLedger: creation rules, retry/cancel and scout withdrawals."""

import logging
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock

import pytest

from src.cm_common.enums import OrderStatus, PayoutStatus, PayoutType
from src.cm_common.errors import (
    InsufficientEarningsError,
    NonPositiveAmountError,
    OrderNotFoundError,
    PayoutInvalidStateError,
    PayoutNotFoundError,
    RefundedOrderPayoutError,
    ScoutAccessForbiddenError,
    ScoutNotFoundError,
    ScoutOwnershipError,
    UserNotFoundError,
)
from src.cm_order.domain.models import Order
from src.cm_payment.domain.models import SettlementResult
from src.cm_payout.application.ledger import REFUND_CANCEL_REASON, PayoutLedger
from src.cm_payout.domain.models import Payout
from tests.unit.fakes import (
    FakeOrderRepository,
    FakePayoutRepository,
    FakeScoutRepository,
    FakeUserLookup,
)

_T0 = datetime(2026, 3, 1, tzinfo=UTC)


class _Env:
    def __init__(self) -> None:
        self.users = FakeUserLookup()
        for uid in ("seller", "buyer", "scout_user", "other"):
            self.users.add(uid)
        self.orders = FakeOrderRepository()
        self.orders.put(
            Order(
                id="ord_1", listing_id="lst_1", buyer_id="buyer", seller_id="seller",
                item_price=50000, platform_fee=5000, gateway_fee=825, total=55825,
                status=OrderStatus.COMPLETED,
            )
        )
        self.scouts = FakeScoutRepository(self.users)
        self.scouts.add("sct_1", "scout_user", earnings=3000)
        self.payouts = FakePayoutRepository()
        self.ledger = PayoutLedger(
            repo=self.payouts, order_repo=self.orders, scout_repo=self.scouts, users=self.users
        )
        self.db = AsyncMock()

    def put(self, payout_id: str, status: PayoutStatus, **kw: object) -> Payout:
        payout = Payout(
            id=payout_id,
            user_id=kw.pop("user_id", "seller"),  # type: ignore[arg-type]
            payout_type=kw.pop("payout_type", PayoutType.SELLER_PAYOUT),  # type: ignore[arg-type]
            amount=kw.pop("amount", 50000),  # type: ignore[arg-type]
            status=status,
            created_at=kw.pop("created_at", _T0),  # type: ignore[arg-type]
            **kw,  # type: ignore[arg-type]
        )
        self.payouts.payouts[payout_id] = payout
        return payout


@pytest.fixture
def env() -> _Env:
    return _Env()


class TestCreatePayoutRequest:
    async def test_seller_payout_is_payable(self, env: _Env) -> None:
        payout = await env.ledger.create_payout_request(
            env.db, "seller", 50000, PayoutType.SELLER_PAYOUT, order_id="ord_1"
        )
        assert payout.status == PayoutStatus.PAYABLE
        assert payout.id.startswith("pay_")

    async def test_immediate_is_pending(self, env: _Env) -> None:
        payout = await env.ledger.create_payout_request(
            env.db, "scout_user", 500, PayoutType.REFERRAL_BOUNTY, scout_id="sct_1", immediate=True
        )
        assert payout.status == PayoutStatus.PENDING

    async def test_second_seller_payout_for_order_returns_existing(self, env: _Env) -> None:
        first = await env.ledger.create_payout_request(
            env.db, "seller", 50000, PayoutType.SELLER_PAYOUT, order_id="ord_1"
        )
        second = await env.ledger.create_payout_request(
            env.db, "seller", 50000, PayoutType.SELLER_PAYOUT, order_id="ord_1"
        )
        assert second.id == first.id
        assert len(env.payouts.payouts) == 1

    @pytest.mark.parametrize("amount", [0, -100])
    async def test_rejects_non_positive_amount(self, env: _Env, amount: int) -> None:
        with pytest.raises(NonPositiveAmountError):
            await env.ledger.create_payout_request(env.db, "seller", amount, PayoutType.SELLER_PAYOUT)
        assert env.payouts.payouts == {}

    async def test_unknown_user(self, env: _Env) -> None:
        with pytest.raises(UserNotFoundError):
            await env.ledger.create_payout_request(env.db, "ghost", 100, PayoutType.SELLER_PAYOUT)

    async def test_unknown_scout(self, env: _Env) -> None:
        with pytest.raises(ScoutNotFoundError):
            await env.ledger.create_payout_request(
                env.db, "scout_user", 100, PayoutType.REFERRAL_BOUNTY, scout_id="sct_missing"
            )

    async def test_scout_must_belong_to_user(self, env: _Env) -> None:
        with pytest.raises(ScoutOwnershipError):
            await env.ledger.create_payout_request(
                env.db, "other", 100, PayoutType.REFERRAL_BOUNTY, scout_id="sct_1"
            )

    async def test_unknown_order(self, env: _Env) -> None:
        with pytest.raises(OrderNotFoundError):
            await env.ledger.create_payout_request(
                env.db, "seller", 100, PayoutType.SELLER_PAYOUT, order_id="ord_missing"
            )


class TestTransitions:
    async def test_processing_then_success(self, env: _Env) -> None:
        env.put("pay_1", PayoutStatus.PAYABLE)
        processing = await env.ledger.transition_to_processing(env.db, "pay_1", _T0)
        assert processing.status == PayoutStatus.PROCESSING
        assert processing.processed_at == _T0

        done = await env.ledger.finalize(env.db, "pay_1", SettlementResult(True, reference="REF-9"))
        assert done.status == PayoutStatus.COMPLETED
        assert done.payment_reference == "REF-9"
        assert done.completed_at is not None

    async def test_failure_records_reason(self, env: _Env) -> None:
        env.put("pay_1", PayoutStatus.PROCESSING)
        failed = await env.ledger.finalize(
            env.db, "pay_1", SettlementResult(False, failure_reason="Payment processing failed")
        )
        assert failed.status == PayoutStatus.FAILED
        assert failed.failure_reason == "Payment processing failed"

    async def test_cannot_start_failed_payout(self, env: _Env) -> None:
        env.put("pay_1", PayoutStatus.FAILED)
        with pytest.raises(PayoutInvalidStateError):
            await env.ledger.transition_to_processing(env.db, "pay_1")

    async def test_refunded_order_blocks_processing(self, env: _Env) -> None:
        env.orders.orders["ord_1"].status = OrderStatus.REFUNDED
        env.put("pay_1", PayoutStatus.PAYABLE, order_id="ord_1")
        with pytest.raises(RefundedOrderPayoutError):
            await env.ledger.transition_to_processing(env.db, "pay_1")
        assert env.payouts.payouts["pay_1"].status == PayoutStatus.PAYABLE

    async def test_cannot_finalize_twice(self, env: _Env) -> None:
        env.put("pay_1", PayoutStatus.PROCESSING)
        await env.ledger.finalize(env.db, "pay_1", SettlementResult(True, reference="R"))
        with pytest.raises(PayoutInvalidStateError):
            await env.ledger.finalize(env.db, "pay_1", SettlementResult(True, reference="R"))

    async def test_bounty_success_debits_scout(self, env: _Env) -> None:
        env.put(
            "pay_b", PayoutStatus.PROCESSING, user_id="scout_user",
            payout_type=PayoutType.REFERRAL_BOUNTY, amount=1000, scout_id="sct_1",
        )
        await env.ledger.finalize(env.db, "pay_b", SettlementResult(True, reference="R"))

        assert env.scouts.scouts["sct_1"].earnings == 2000
        [entry] = env.scouts.entries
        assert entry.amount == -1000
        assert entry.earnings_after == 2000
        assert entry.reference_id == "pay_b"

    async def test_bounty_failure_leaves_earnings(self, env: _Env) -> None:
        env.put(
            "pay_b", PayoutStatus.PROCESSING, user_id="scout_user",
            payout_type=PayoutType.REFERRAL_BOUNTY, amount=1000, scout_id="sct_1",
        )
        await env.ledger.finalize(env.db, "pay_b", SettlementResult(False, failure_reason="x"))
        assert env.scouts.scouts["sct_1"].earnings == 3000
        assert env.scouts.entries == []


class TestRefundWhileProcessing:
    async def test_failure_cancels_instead_of_failing(self, env: _Env) -> None:
        env.put("pay_1", PayoutStatus.PROCESSING, order_id="ord_1")
        env.orders.orders["ord_1"].status = OrderStatus.REFUNDED

        result = await env.ledger.finalize(
            env.db, "pay_1", SettlementResult(False, failure_reason="bank down")
        )

        assert result.status == PayoutStatus.CANCELLED
        assert result.failure_reason == REFUND_CANCEL_REASON

    async def test_success_is_recorded_and_flagged(
        self, env: _Env, caplog: pytest.LogCaptureFixture
    ) -> None:
        env.put("pay_1", PayoutStatus.PROCESSING, order_id="ord_1")
        env.orders.orders["ord_1"].status = OrderStatus.REFUNDED

        with caplog.at_level(logging.WARNING, logger="src.cm_payout.application.ledger"):
            result = await env.ledger.finalize(env.db, "pay_1", SettlementResult(True, reference="R"))

        assert result.status == PayoutStatus.COMPLETED
        assert result.payment_reference == "R"
        assert "completed after its order was refunded" in caplog.text

    async def test_no_warning_for_unrefunded_order(
        self, env: _Env, caplog: pytest.LogCaptureFixture
    ) -> None:
        env.put("pay_1", PayoutStatus.PROCESSING, order_id="ord_1")
        with caplog.at_level(logging.WARNING, logger="src.cm_payout.application.ledger"):
            await env.ledger.finalize(env.db, "pay_1", SettlementResult(True, reference="R"))
        assert "refunded" not in caplog.text


class TestRetryAndCancel:
    async def test_retry_failed_clears_settlement_fields(self, env: _Env) -> None:
        env.put("pay_1", PayoutStatus.FAILED, failure_reason="bank down", processed_at=_T0)

        item = await env.ledger.retry(env.db, "pay_1")

        assert item.status == "PENDING"
        assert item.failure_reason is None
        assert item.processed_at is None
        env.db.commit.assert_awaited_once()

    @pytest.mark.parametrize(
        "status",
        [PayoutStatus.PAYABLE, PayoutStatus.PENDING, PayoutStatus.PROCESSING,
         PayoutStatus.COMPLETED, PayoutStatus.CANCELLED],
    )
    async def test_retry_only_failed(self, env: _Env, status: PayoutStatus) -> None:
        env.put("pay_1", status)
        with pytest.raises(PayoutInvalidStateError):
            await env.ledger.retry(env.db, "pay_1")
        assert env.payouts.payouts["pay_1"].status == status
        env.db.rollback.assert_awaited()

    async def test_cancel_then_retry_is_rejected(self, env: _Env) -> None:
        env.put("pay_1", PayoutStatus.FAILED)
        cancelled = await env.ledger.cancel(env.db, "pay_1")
        assert cancelled.status == "CANCELLED"
        assert cancelled.failure_reason == "Cancelled by admin"

        with pytest.raises(PayoutInvalidStateError) as exc_info:
            await env.ledger.retry(env.db, "pay_1")
        assert exc_info.value.current_status == "CANCELLED"

    async def test_cannot_cancel_completed(self, env: _Env) -> None:
        env.put("pay_1", PayoutStatus.COMPLETED)
        with pytest.raises(PayoutInvalidStateError):
            await env.ledger.cancel(env.db, "pay_1")
        assert env.payouts.payouts["pay_1"].status == PayoutStatus.COMPLETED

    async def test_cannot_cancel_cancelled(self, env: _Env) -> None:
        env.put("pay_1", PayoutStatus.CANCELLED)
        with pytest.raises(PayoutInvalidStateError):
            await env.ledger.cancel(env.db, "pay_1")

    async def test_cancel_unknown(self, env: _Env) -> None:
        with pytest.raises(PayoutNotFoundError):
            await env.ledger.cancel(env.db, "pay_missing")


class TestRequestPayout:
    async def test_withdraws_available_by_default(self, env: _Env) -> None:
        env.put(
            "pay_open", PayoutStatus.PAYABLE, user_id="scout_user",
            payout_type=PayoutType.REFERRAL_BOUNTY, amount=1000, scout_id="sct_1",
        )

        item = await env.ledger.request_payout(env.db, "sct_1", "scout_user")

        assert item.amount_paise == 2000
        assert item.status == "PENDING"
        assert item.payout_type == "REFERRAL_BOUNTY"
        assert item.scout_id == "sct_1"
        env.db.commit.assert_awaited_once()

    async def test_explicit_amount(self, env: _Env) -> None:
        item = await env.ledger.request_payout(env.db, "sct_1", "scout_user", 1200)
        assert item.amount_paise == 1200
        assert await env.ledger.available_earnings(env.db, "sct_1", 3000) == 1800

    async def test_more_than_available(self, env: _Env) -> None:
        with pytest.raises(InsufficientEarningsError):
            await env.ledger.request_payout(env.db, "sct_1", "scout_user", 3001)
        assert env.payouts.payouts == {}

    async def test_nothing_available(self, env: _Env) -> None:
        env.scouts.scouts["sct_1"].earnings = 0
        with pytest.raises(NonPositiveAmountError):
            await env.ledger.request_payout(env.db, "sct_1", "scout_user")

    async def test_zero_amount(self, env: _Env) -> None:
        with pytest.raises(NonPositiveAmountError):
            await env.ledger.request_payout(env.db, "sct_1", "scout_user", 0)

    async def test_only_owner(self, env: _Env) -> None:
        with pytest.raises(ScoutAccessForbiddenError):
            await env.ledger.request_payout(env.db, "sct_1", "other")

    async def test_unknown_scout(self, env: _Env) -> None:
        with pytest.raises(ScoutNotFoundError):
            await env.ledger.request_payout(env.db, "sct_missing", "scout_user")

    async def test_cancelled_bounty_frees_earnings(self, env: _Env) -> None:
        env.put(
            "pay_c", PayoutStatus.CANCELLED, user_id="scout_user",
            payout_type=PayoutType.REFERRAL_BOUNTY, amount=1000, scout_id="sct_1",
        )
        assert await env.ledger.available_earnings(env.db, "sct_1", 3000) == 3000


class TestQueries:
    async def test_user_totals(self, env: _Env) -> None:
        env.put("pay_1", PayoutStatus.COMPLETED, amount=10000)
        env.put("pay_2", PayoutStatus.PAYABLE, amount=20000, created_at=_T0 + timedelta(seconds=1))
        env.put("pay_3", PayoutStatus.PENDING, amount=300, created_at=_T0 + timedelta(seconds=2))
        env.put("pay_4", PayoutStatus.PROCESSING, amount=700, created_at=_T0 + timedelta(seconds=3))
        env.put("pay_x", PayoutStatus.PAYABLE, amount=999, user_id="other")

        result = await env.ledger.list_payouts_for_user(env.db, "seller", 50)

        assert [i.id for i in result.items] == ["pay_4", "pay_3", "pay_2", "pay_1"]
        assert result.total_paid_paise == 10000
        assert result.total_paid_display == "₹100.00"
        assert result.payable_paise == 20000
        assert result.pending_paise == 1000

    async def test_admin_list_with_summary(self, env: _Env) -> None:
        for i in range(5):
            env.put(f"pay_{i}", PayoutStatus.PAYABLE, amount=100, created_at=_T0 + timedelta(seconds=i))
        env.put("pay_f", PayoutStatus.FAILED, amount=50)

        page = await env.ledger.admin_list_payouts(env.db, None, page=2, limit=2)

        assert page.total == 6
        assert page.total_pages == 3
        assert len(page.items) == 2
        assert page.summary is not None
        assert page.summary["PAYABLE"].count == 5
        assert page.summary["PAYABLE"].amount_paise == 500
        assert page.summary["FAILED"].count == 1

    async def test_admin_list_filtered_has_no_summary(self, env: _Env) -> None:
        env.put("pay_f", PayoutStatus.FAILED, amount=50)
        env.put("pay_p", PayoutStatus.PAYABLE, amount=50)
        page = await env.ledger.admin_list_payouts(env.db, PayoutStatus.FAILED, page=1, limit=20)
        assert [i.id for i in page.items] == ["pay_f"]
        assert page.summary is None
