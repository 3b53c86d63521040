"""Order fee calculation — platform fee on the item, gateway fee on the subtotal.

All integer paise with floor division (the buyer is never over-charged a
fractional paisa):

    platform_fee = floor(item_price * 10%)
    subtotal     = item_price + platform_fee
    gateway_fee  = floor(subtotal * 1.5%)
    total        = subtotal + gateway_fee

Example: item ₹500.00 (50000) → platform 5000, subtotal 55000, gateway 825, total 55825.
"""

from dataclasses import dataclass

from src.cm_common.errors import InvalidItemPriceError
from src.cm_common.paise import apply_bps_floor, require_positive_paise

PLATFORM_FEE_BPS = 1000  # 10%
GATEWAY_FEE_BPS = 150  # 1.5%


@dataclass(frozen=True)
class FeeBreakdown:
    item_price: int
    platform_fee: int
    gateway_fee: int
    total: int

    @property
    def seller_proceeds(self) -> int:
        # Fees are carried by the buyer; the seller receives the item price
        return self.item_price


def compute_fees(item_price: int) -> FeeBreakdown:
    try:
        require_positive_paise(item_price)
    except ValueError:
        raise InvalidItemPriceError(item_price) from None

    platform_fee = apply_bps_floor(item_price, PLATFORM_FEE_BPS)
    subtotal = item_price + platform_fee
    gateway_fee = apply_bps_floor(subtotal, GATEWAY_FEE_BPS)
    return FeeBreakdown(
        item_price=item_price,
        platform_fee=platform_fee,
        gateway_fee=gateway_fee,
        total=subtotal + gateway_fee,
    )
