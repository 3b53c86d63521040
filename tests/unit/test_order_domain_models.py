"""Unit tests for order, payout and scout domain dataclasses."""

import pytest

from src.cm_common.enums import OrderStatus, PayoutStatus, PayoutType, ScoutStatus
from src.cm_order.domain.models import Order, OrderCompletionEvent
from src.cm_payout.domain.models import Payout, SettlementReport
from src.cm_scout.domain.models import Scout


def _order(**overrides: object) -> Order:
    fields: dict[str, object] = {
        "id": "ord_1",
        "listing_id": "lst_1",
        "buyer_id": "buyer",
        "seller_id": "seller",
        "item_price": 50000,
        "platform_fee": 5000,
        "gateway_fee": 825,
        "total": 55825,
    }
    fields.update(overrides)
    return Order(**fields)  # type: ignore[arg-type]


class TestOrder:
    def test_defaults(self) -> None:
        order = _order()
        assert order.status == OrderStatus.PENDING
        assert order.payment_reference is None
        assert order.completed_at is None

    def test_status_coerced_from_string(self) -> None:
        assert _order(status="ESCROWED").status is OrderStatus.ESCROWED

    def test_total_must_equal_sum(self) -> None:
        with pytest.raises(ValueError, match="total"):
            _order(total=55824)

    def test_negative_money_rejected(self) -> None:
        with pytest.raises(ValueError):
            _order(platform_fee=-1, total=50824)

    def test_buyer_and_seller_must_differ(self) -> None:
        with pytest.raises(ValueError, match="differ"):
            _order(seller_id="buyer")

    def test_seller_payout_amount_excludes_fees(self) -> None:
        assert _order().seller_payout_amount == 50000

    def test_is_party(self) -> None:
        order = _order()
        assert order.is_party("buyer")
        assert order.is_party("seller")
        assert not order.is_party("stranger")


class TestOrderCompletionEvent:
    def test_first_sale(self) -> None:
        assert OrderCompletionEvent("ord_1", "seller", 50000, 1).is_first_sale
        assert not OrderCompletionEvent("ord_2", "seller", 50000, 2).is_first_sale


class TestPayout:
    def test_defaults_to_payable(self) -> None:
        payout = Payout(id="pay_1", user_id="u1", payout_type=PayoutType.SELLER_PAYOUT, amount=100)
        assert payout.status == PayoutStatus.PAYABLE
        assert not payout.is_bounty

    def test_coerces_enums(self) -> None:
        payout = Payout(
            id="pay_1", user_id="u1", payout_type="REFERRAL_BOUNTY", amount=1000, status="PENDING"  # type: ignore[arg-type]
        )
        assert payout.payout_type is PayoutType.REFERRAL_BOUNTY
        assert payout.status is PayoutStatus.PENDING
        assert payout.is_bounty

    @pytest.mark.parametrize("amount", [0, -100, 10.5, True])
    def test_rejects_bad_amount(self, amount: object) -> None:
        with pytest.raises(ValueError):
            Payout(id="pay_1", user_id="u1", payout_type=PayoutType.SELLER_PAYOUT, amount=amount)  # type: ignore[arg-type]

    def test_rejects_unknown_status(self) -> None:
        with pytest.raises(ValueError):
            Payout(id="pay_1", user_id="u1", payout_type=PayoutType.SELLER_PAYOUT, amount=1, status="PAID")  # type: ignore[arg-type]


class TestSettlementReport:
    def test_merge_adds_counts_and_ids(self) -> None:
        total = SettlementReport(selected=2)
        total.merge(SettlementReport(completed=1, payout_ids=["a"]))
        total.merge(SettlementReport(failed=1, errors=1, payout_ids=["b"]))
        assert total.selected == 2
        assert total.completed == 1
        assert total.failed == 1
        assert total.errors == 1
        assert total.payout_ids == ["a", "b"]


class TestScout:
    def test_active_by_default(self) -> None:
        scout = Scout(id="sct_1", user_id="u1")
        assert scout.is_active
        assert scout.earnings == 0

    def test_inactive(self) -> None:
        assert not Scout(id="sct_1", user_id="u1", status="INACTIVE").is_active  # type: ignore[arg-type]
        assert Scout(id="sct_1", user_id="u1", status="INACTIVE").status is ScoutStatus.INACTIVE  # type: ignore[arg-type]
