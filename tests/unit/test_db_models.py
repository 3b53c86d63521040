"""ORM tables must carry every field of the matching domain dataclass."""

from dataclasses import fields

from src.cm_order.domain.models import Order, OrderCompletionEvent
from src.cm_order.infrastructure.db_models import (
    OrderCompletionEventORM,
    OrderORM,
    SellerSalesCounterORM,
)
from src.cm_payout.domain.models import Payout
from src.cm_payout.infrastructure.db_models import PayoutORM
from src.cm_scout.domain.models import Scout, ScoutEarningEntry
from src.cm_scout.infrastructure.db_models import ScoutEarningEntryORM, ScoutORM


def _columns(orm: type) -> set[str]:
    return {c.name for c in orm.__table__.columns}


def _fields(model: type) -> set[str]:
    return {f.name for f in fields(model)}


class TestColumnsMatchDomain:
    def test_orders(self) -> None:
        assert _columns(OrderORM) == _fields(Order)

    def test_completion_events(self) -> None:
        assert _columns(OrderCompletionEventORM) == _fields(OrderCompletionEvent)

    def test_payouts(self) -> None:
        assert _columns(PayoutORM) == _fields(Payout)

    def test_scouts(self) -> None:
        assert _columns(ScoutORM) == _fields(Scout)

    def test_scout_earning_entries(self) -> None:
        assert _columns(ScoutEarningEntryORM) == _fields(ScoutEarningEntry)


class TestTableConstraints:
    def test_seller_sales_counter_keyed_by_seller(self) -> None:
        pk = [c.name for c in SellerSalesCounterORM.__table__.primary_key.columns]
        assert pk == ["seller_id"]

    def test_money_columns_are_bigint(self) -> None:
        for name in ("item_price", "platform_fee", "gateway_fee", "total"):
            assert OrderORM.__table__.c[name].type.__class__.__name__ == "BigInteger"
        assert PayoutORM.__table__.c["amount"].type.__class__.__name__ == "BigInteger"

    def test_seller_payout_unique_per_order(self) -> None:
        index = next(i for i in PayoutORM.__table__.indexes if i.name == "uq_payouts_seller_order")
        assert index.unique
        assert [c.name for c in index.columns] == ["order_id"]

    def test_earning_entry_reference_unique(self) -> None:
        names = {c.name for c in ScoutEarningEntryORM.__table__.constraints}
        assert "uq_scout_entries_reference" in names

    def test_scout_user_unique(self) -> None:
        assert ScoutORM.__table__.c["user_id"].unique
