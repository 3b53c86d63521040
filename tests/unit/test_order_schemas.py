"""Unit tests for API schemas: cursor helpers and paise display fields."""

from datetime import UTC, datetime

from src.cm_common.enums import PayoutStatus, PayoutType
from src.cm_order.application.schemas import OrderDetail, cursor_decode, cursor_encode
from src.cm_order.domain.models import Order
from src.cm_payout.application.schemas import PayoutItem, UserPayoutsResponse
from src.cm_payout.domain.models import Payout


class TestCursor:
    def test_round_trip(self) -> None:
        assert cursor_decode(cursor_encode("ord_00000000000000000042")) == "ord_00000000000000000042"

    def test_none(self) -> None:
        assert cursor_decode(None) is None

    def test_garbage(self) -> None:
        assert cursor_decode("%%%") is None


class TestOrderDetail:
    def test_every_amount_has_display(self) -> None:
        order = Order(
            id="ord_1", listing_id="lst_1", buyer_id="b", seller_id="s",
            item_price=999, platform_fee=99, gateway_fee=16, total=1114,
            created_at=datetime(2026, 1, 1, tzinfo=UTC),
        )
        detail = OrderDetail.from_order(order)
        assert detail.item_price_display == "₹9.99"
        assert detail.platform_fee_display == "₹0.99"
        assert detail.gateway_fee_display == "₹0.16"
        assert detail.total_display == "₹11.14"
        assert detail.created_at.startswith("2026-01-01")
        assert detail.completed_at is None


class TestUserPayoutsResponse:
    def test_pending_includes_processing(self) -> None:
        totals = {
            PayoutStatus.COMPLETED: 1000,
            PayoutStatus.PAYABLE: 200,
            PayoutStatus.PENDING: 30,
            PayoutStatus.PROCESSING: 4,
            PayoutStatus.CANCELLED: 99999,
        }
        resp = UserPayoutsResponse.from_totals([], totals)
        assert resp.total_paid_paise == 1000
        assert resp.payable_paise == 200
        assert resp.pending_paise == 34
        assert resp.pending_display == "₹0.34"

    def test_empty(self) -> None:
        resp = UserPayoutsResponse.from_totals([], {})
        assert resp.total_paid_display == "₹0.00"

    def test_payout_item(self) -> None:
        item = PayoutItem.from_payout(
            Payout(id="pay_1", user_id="u", payout_type=PayoutType.REFERRAL_BOUNTY, amount=1000, scout_id="sct_1")
        )
        assert item.amount_display == "₹10.00"
        assert item.payout_type == "REFERRAL_BOUNTY"
        assert item.created_at == ""
