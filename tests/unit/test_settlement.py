"""Unit tests for SettlementService: maturation window, refund safety, isolation, timeouts."""

import asyncio
from datetime import UTC, datetime, timedelta

import pytest

from src.cm_common.datetime_utils import utc_now
from src.cm_common.enums import EarningEntryType, OrderStatus, PayoutStatus, PayoutType
from src.cm_common.errors import (
    PayoutInvalidStateError,
    PayoutNotFoundError,
    RefundedOrderPayoutError,
    SettlementError,
)
from src.cm_order.domain.models import Order
from src.cm_payment.domain.models import SettlementResult
from src.cm_payout.application.ledger import REFUND_CANCEL_REASON, PayoutLedger
from src.cm_payout.application.settlement import UNKNOWN_OUTCOME_REASON, SettlementService
from src.cm_payout.domain.models import Payout
from tests.unit.fakes import (
    FakeOrderRepository,
    FakePayoutRail,
    FakePayoutRepository,
    FakeScoutRepository,
    FakeUserLookup,
    make_session_factory,
)

_NOW = datetime(2026, 3, 16, 0, 0, tzinfo=UTC)


class _Env:
    def __init__(self) -> None:
        self.users = FakeUserLookup()
        self.users.add("seller")
        self.users.add("scout_user")
        self.orders = FakeOrderRepository()
        self.scouts = FakeScoutRepository(self.users)
        self.scouts.add("sct_1", "scout_user", earnings=1000)
        self.payouts = FakePayoutRepository()
        self.ledger = PayoutLedger(
            repo=self.payouts, order_repo=self.orders, scout_repo=self.scouts, users=self.users
        )
        self.rail = FakePayoutRail()
        factory, self.session = make_session_factory()
        self.svc = SettlementService(
            session_factory=factory,
            ledger=self.ledger,
            rail=self.rail,
            repo=self.payouts,
            batch_size=2,
            maturation_days=14,
            timeout_seconds=0.05,
        )

    def put(
        self,
        payout_id: str,
        status: PayoutStatus = PayoutStatus.PAYABLE,
        age: timedelta = timedelta(days=20),
        **kw: object,
    ) -> Payout:
        payout = Payout(
            id=payout_id,
            user_id=kw.pop("user_id", "seller"),  # type: ignore[arg-type]
            payout_type=kw.pop("payout_type", PayoutType.SELLER_PAYOUT),  # type: ignore[arg-type]
            amount=kw.pop("amount", 50000),  # type: ignore[arg-type]
            status=status,
            created_at=_NOW - age,
            **kw,  # type: ignore[arg-type]
        )
        self.payouts.payouts[payout_id] = payout
        return payout

    def order(self, order_id: str, status: OrderStatus) -> None:
        self.orders.put(
            Order(
                id=order_id, listing_id="lst", buyer_id="buyer", seller_id="seller",
                item_price=50000, platform_fee=5000, gateway_fee=825, total=55825, status=status,
            )
        )

    def status(self, payout_id: str) -> PayoutStatus:
        return self.payouts.payouts[payout_id].status


@pytest.fixture
def env() -> _Env:
    return _Env()


class TestPayableRun:
    async def test_maturation_boundary(self, env: _Env) -> None:
        env.put("pay_young", age=timedelta(days=13))
        env.put("pay_mature", age=timedelta(days=14))

        report = await env.svc.run_payable_batch(now=_NOW)

        assert report.selected == 1
        assert report.completed == 1
        assert env.rail.calls == ["pay_mature"]
        assert env.status("pay_mature") == PayoutStatus.COMPLETED
        assert env.payouts.payouts["pay_mature"].payment_reference == "REF-pay_mature"
        assert env.status("pay_young") == PayoutStatus.PAYABLE

    async def test_pending_payouts_are_not_part_of_payable_run(self, env: _Env) -> None:
        env.put("pay_pending", status=PayoutStatus.PENDING)
        report = await env.svc.run_payable_batch(now=_NOW)
        assert report.selected == 0
        assert env.status("pay_pending") == PayoutStatus.PENDING

    async def test_refunded_order_is_cancelled_not_paid(self, env: _Env) -> None:
        env.order("ord_r", OrderStatus.REFUNDED)
        env.put("pay_r", order_id="ord_r")

        report = await env.svc.run_payable_batch(now=_NOW)

        assert report.cancelled == 1
        assert env.rail.calls == []
        assert env.status("pay_r") == PayoutStatus.CANCELLED
        assert env.payouts.payouts["pay_r"].failure_reason == REFUND_CANCEL_REASON

    async def test_one_failure_does_not_stop_the_run(self, env: _Env) -> None:
        env.put("pay_a", age=timedelta(days=30))
        env.put("pay_b", age=timedelta(days=29))
        env.put("pay_c", age=timedelta(days=28))
        env.put("pay_d", age=timedelta(days=27))
        env.rail.outcomes["pay_b"] = SettlementResult(False, failure_reason="Payment processing failed")
        env.rail.outcomes["pay_c"] = RuntimeError("rail exploded")
        env.rail.outcomes["pay_d"] = SettlementError("bank rejected account")

        report = await env.svc.run_payable_batch(now=_NOW)

        assert report.selected == 4
        assert report.completed == 1
        assert report.failed == 2
        assert report.errors == 1
        assert env.status("pay_a") == PayoutStatus.COMPLETED
        assert env.status("pay_b") == PayoutStatus.FAILED
        assert env.payouts.payouts["pay_b"].failure_reason == "Payment processing failed"
        # Outcome unknown: left for reconciliation
        assert env.status("pay_c") == PayoutStatus.PROCESSING
        assert env.status("pay_d") == PayoutStatus.FAILED
        assert "bank rejected account" in (env.payouts.payouts["pay_d"].failure_reason or "")

    async def test_oldest_first(self, env: _Env) -> None:
        env.put("pay_new", age=timedelta(days=15))
        env.put("pay_old", age=timedelta(days=40))
        await env.svc.run_payable_batch(now=_NOW)
        assert env.rail.calls == ["pay_old", "pay_new"]

    async def test_bounty_settlement_debits_scout(self, env: _Env) -> None:
        env.put(
            "pay_b", user_id="scout_user", payout_type=PayoutType.REFERRAL_BOUNTY,
            amount=1000, scout_id="sct_1",
        )
        await env.svc.run_payable_batch(now=_NOW)

        assert env.status("pay_b") == PayoutStatus.COMPLETED
        assert env.scouts.scouts["sct_1"].earnings == 0
        [entry] = env.scouts.entries
        assert entry.entry_type == EarningEntryType.PAYOUT_DEBIT
        assert entry.amount == -1000


class TestPendingRun:
    async def test_processes_all_pending_in_batches(self, env: _Env) -> None:
        for i in range(5):
            env.put(f"pay_{i}", status=PayoutStatus.PENDING, age=timedelta(minutes=5 - i))

        report = await env.svc.run_pending_batches()

        assert report.selected == 5
        assert report.completed == 5
        assert sorted(env.rail.calls) == [f"pay_{i}" for i in range(5)]
        assert all(p.status == PayoutStatus.COMPLETED for p in env.payouts.payouts.values())

    async def test_failure_retry_success_completes_once(self, env: _Env) -> None:
        env.put("pay_1", status=PayoutStatus.PENDING)
        env.rail.outcomes["pay_1"] = SettlementResult(False, failure_reason="Payment processing failed")
        await env.svc.run_pending_batches()
        assert env.status("pay_1") == PayoutStatus.FAILED

        await env.ledger.retry(env.session, "pay_1")
        del env.rail.outcomes["pay_1"]
        report = await env.svc.run_pending_batches()
        again = await env.svc.run_pending_batches()

        assert report.completed == 1
        assert again.selected == 0
        assert env.status("pay_1") == PayoutStatus.COMPLETED
        assert env.rail.calls == ["pay_1", "pay_1"]

    async def test_overlapping_runs_settle_once(self, env: _Env) -> None:
        env.put("pay_1", status=PayoutStatus.PENDING)

        first, second = await asyncio.gather(
            env.svc.run_pending_batches(), env.svc.run_pending_batches()
        )

        assert env.rail.calls == ["pay_1"]
        assert env.status("pay_1") == PayoutStatus.COMPLETED
        assert first.completed + second.completed == 1
        assert first.skipped + second.skipped == 1


class TestTimeoutAndReconcile:
    async def test_timeout_leaves_processing(self, env: _Env) -> None:
        env.put("pay_1", status=PayoutStatus.PENDING)
        env.rail.hang.add("pay_1")

        report = await env.svc.run_pending_batches()

        assert report.skipped == 1
        assert env.status("pay_1") == PayoutStatus.PROCESSING

    async def test_reconcile_unknown_outcome_fails(self, env: _Env) -> None:
        env.put("pay_1", status=PayoutStatus.PENDING)
        env.rail.hang.add("pay_1")
        await env.svc.run_pending_batches()

        report = await env.svc.reconcile_processing(now=utc_now() + timedelta(minutes=31))

        assert report.failed == 1
        assert env.status("pay_1") == PayoutStatus.FAILED
        assert env.payouts.payouts["pay_1"].failure_reason == UNKNOWN_OUTCOME_REASON

    async def test_reconcile_known_success_completes(self, env: _Env) -> None:
        env.put("pay_1", status=PayoutStatus.PENDING)
        env.rail.hang.add("pay_1")
        await env.svc.run_pending_batches()
        env.rail.known["pay_1"] = SettlementResult(True, reference="REF-late")

        report = await env.svc.reconcile_processing(now=utc_now() + timedelta(minutes=31))

        assert report.completed == 1
        assert env.payouts.payouts["pay_1"].payment_reference == "REF-late"

    async def test_recent_processing_is_left_alone(self, env: _Env) -> None:
        env.put("pay_1", status=PayoutStatus.PENDING)
        env.rail.hang.add("pay_1")
        await env.svc.run_pending_batches()

        report = await env.svc.reconcile_processing(now=utc_now())

        assert report.selected == 0
        assert env.status("pay_1") == PayoutStatus.PROCESSING


class TestAdminProcess:
    async def test_ignores_maturation_window(self, env: _Env) -> None:
        env.put("pay_1", age=timedelta(hours=1))
        item = await env.svc.admin_process_payout("pay_1")
        assert item.status == "COMPLETED"

    async def test_rejects_completed(self, env: _Env) -> None:
        env.put("pay_1", status=PayoutStatus.COMPLETED)
        with pytest.raises(PayoutInvalidStateError):
            await env.svc.admin_process_payout("pay_1")
        assert env.rail.calls == []

    async def test_rejects_refunded_order(self, env: _Env) -> None:
        env.order("ord_r", OrderStatus.REFUNDED)
        env.put("pay_r", order_id="ord_r")
        with pytest.raises(RefundedOrderPayoutError):
            await env.svc.admin_process_payout("pay_r")
        assert env.status("pay_r") == PayoutStatus.PAYABLE
        env.session.rollback.assert_awaited()

    async def test_unknown(self, env: _Env) -> None:
        with pytest.raises(PayoutNotFoundError):
            await env.svc.admin_process_payout("pay_missing")

    async def test_timeout_returns_processing(self, env: _Env) -> None:
        env.put("pay_1")
        env.rail.hang.add("pay_1")
        item = await env.svc.admin_process_payout("pay_1")
        assert item.status == "PROCESSING"
