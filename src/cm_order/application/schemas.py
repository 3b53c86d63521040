"""Pydantic schemas and cursor utilities for cm_order API."""

import base64
import json
from datetime import datetime

from pydantic import BaseModel, Field

from src.cm_common.paise import paise_to_display
from src.cm_order.domain.models import Order

# ---------------------------------------------------------------------------
# Cursor-based pagination utilities
# ---------------------------------------------------------------------------


def cursor_encode(last_id: str) -> str:
    """Encode the last order id of a page into an opaque Base64 cursor string."""
    payload = json.dumps({"id": last_id})
    return base64.b64encode(payload.encode()).decode()


def cursor_decode(cursor: str | None) -> str | None:
    """Decode a cursor string back to the last seen id. Returns None on error."""
    if cursor is None:
        return None
    try:
        payload = json.loads(base64.b64decode(cursor.encode()).decode())
        return str(payload["id"])
    except Exception:
        return None


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class CreateOrderRequest(BaseModel):
    listing_id: str = Field(..., min_length=1)
    meeting_location: str = Field(..., min_length=1, max_length=255)
    meeting_time: datetime | None = None


class CompleteOrderRequest(BaseModel):
    meeting_time: datetime | None = None


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class CreateOrderResponse(BaseModel):
    order_id: str
    status: str
    item_price_paise: int
    platform_fee_paise: int
    gateway_fee_paise: int
    total_paise: int
    total_display: str

    @classmethod
    def from_order(cls, o: Order) -> "CreateOrderResponse":
        return cls(
            order_id=o.id,
            status=o.status.value,
            item_price_paise=o.item_price,
            platform_fee_paise=o.platform_fee,
            gateway_fee_paise=o.gateway_fee,
            total_paise=o.total,
            total_display=paise_to_display(o.total),
        )


class OrderDetail(BaseModel):
    id: str
    listing_id: str
    buyer_id: str
    seller_id: str
    item_price_paise: int
    item_price_display: str
    platform_fee_paise: int
    platform_fee_display: str
    gateway_fee_paise: int
    gateway_fee_display: str
    total_paise: int
    total_display: str
    status: str
    payment_reference: str | None
    meeting_location: str
    meeting_time: str | None
    created_at: str
    completed_at: str | None
    updated_at: str

    @classmethod
    def from_order(cls, o: Order) -> "OrderDetail":
        return cls(
            id=o.id,
            listing_id=o.listing_id,
            buyer_id=o.buyer_id,
            seller_id=o.seller_id,
            item_price_paise=o.item_price,
            item_price_display=paise_to_display(o.item_price),
            platform_fee_paise=o.platform_fee,
            platform_fee_display=paise_to_display(o.platform_fee),
            gateway_fee_paise=o.gateway_fee,
            gateway_fee_display=paise_to_display(o.gateway_fee),
            total_paise=o.total,
            total_display=paise_to_display(o.total),
            status=o.status.value,
            payment_reference=o.payment_reference,
            meeting_location=o.meeting_location,
            meeting_time=o.meeting_time.isoformat() if o.meeting_time else None,
            created_at=o.created_at.isoformat() if o.created_at else "",
            completed_at=o.completed_at.isoformat() if o.completed_at else None,
            updated_at=o.updated_at.isoformat() if o.updated_at else "",
        )


class OrderListResponse(BaseModel):
    items: list[OrderDetail]
    next_cursor: str | None
    has_more: bool


class OrderStatusResponse(BaseModel):
    order_id: str
    status: str


class PaymentInitiationResponse(BaseModel):
    order_id: str
    payment_url: str


class PaymentResultResponse(BaseModel):
    order_id: str
    success: bool
    status: str
