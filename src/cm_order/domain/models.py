"""Order domain models — pure dataclasses, no SQLAlchemy dependency."""
from dataclasses import dataclass
from datetime import datetime

from src.cm_common.enums import OrderStatus


@dataclass
class Order:
    id: str
    listing_id: str
    buyer_id: str
    seller_id: str
    # Money, all paise
    item_price: int
    platform_fee: int
    gateway_fee: int
    total: int
    status: OrderStatus = OrderStatus.PENDING
    payment_reference: str | None = None  # gateway transaction id, set on escrow
    meeting_location: str = ""
    meeting_time: datetime | None = None
    created_at: datetime | None = None
    completed_at: datetime | None = None
    updated_at: datetime | None = None

    def __post_init__(self) -> None:
        self.status = OrderStatus(self.status)
        if min(self.item_price, self.platform_fee, self.gateway_fee, self.total) < 0:
            raise ValueError(f"Order {self.id}: monetary fields must be non-negative")
        if self.total != self.item_price + self.platform_fee + self.gateway_fee:
            raise ValueError(f"Order {self.id}: total does not equal item price plus fees")
        if self.buyer_id == self.seller_id:
            raise ValueError(f"Order {self.id}: buyer and seller must differ")

    @property
    def seller_payout_amount(self) -> int:
        return self.item_price

    def is_party(self, user_id: str) -> bool:
        return user_id in (self.buyer_id, self.seller_id)


@dataclass
class OrderCompletionEvent:
    """Outbox row written with the COMPLETED transition, dispatched after commit."""

    order_id: str
    seller_id: str
    item_price: int
    seller_sale_number: int  # seller's completed-sale count including this order
    processed_at: datetime | None = None
    attempts: int = 0
    last_error: str | None = None
    created_at: datetime | None = None

    @property
    def is_first_sale(self) -> bool:
        return self.seller_sale_number == 1
