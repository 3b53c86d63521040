# src/cm_order/infrastructure/persistence.py
"""OrderRepository and CompletionOutbox — raw SQL persistence implementations.

Status changes are compare-and-set: ``UPDATE ... WHERE id = :id AND status = :from_status``.
Zero returned rows means a concurrent transaction already moved the order.
"""
from datetime import datetime
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_common.enums import OrderStatus
from src.cm_order.domain.models import Order, OrderCompletionEvent

# ---------------------------------------------------------------------------
# SQL statements: orders
# ---------------------------------------------------------------------------

_SELECT_COLUMNS = """
    id, listing_id, buyer_id, seller_id,
    item_price, platform_fee, gateway_fee, total,
    status, payment_reference, meeting_location, meeting_time,
    created_at, completed_at, updated_at
"""

_INSERT_ORDER_SQL = text(f"""
    INSERT INTO orders (id, listing_id, buyer_id, seller_id,
        item_price, platform_fee, gateway_fee, total,
        status, meeting_location, meeting_time)
    VALUES (:id, :listing_id, :buyer_id, :seller_id,
        :item_price, :platform_fee, :gateway_fee, :total,
        :status, :meeting_location, :meeting_time)
    RETURNING {_SELECT_COLUMNS}
""")

_GET_ORDER_BY_ID_SQL = text(f"""
    SELECT {_SELECT_COLUMNS}
    FROM orders WHERE id = :id
""")

_GET_ORDER_FOR_UPDATE_SQL = text(f"""
    SELECT {_SELECT_COLUMNS}
    FROM orders WHERE id = :id
    FOR UPDATE
""")

_TRANSITION_ORDER_SQL = text(f"""
    UPDATE orders
    SET status = :to_status,
        payment_reference = COALESCE(:payment_reference, payment_reference),
        completed_at = COALESCE(:completed_at, completed_at),
        meeting_time = COALESCE(:meeting_time, meeting_time),
        updated_at = NOW()
    WHERE id = :id AND status = :from_status
    RETURNING {_SELECT_COLUMNS}
""")

_LIST_ORDERS_FOR_USER_SQL = text(f"""
    SELECT {_SELECT_COLUMNS}
    FROM orders
    WHERE (buyer_id = :user_id OR seller_id = :user_id)
      AND (CAST(:cursor_id AS TEXT) IS NULL OR id < :cursor_id)
    ORDER BY id DESC
    LIMIT :limit
""")

_INCREMENT_SELLER_SALES_SQL = text("""
    INSERT INTO seller_sales_counters (seller_id, completed_sales)
    VALUES (:seller_id, 1)
    ON CONFLICT (seller_id) DO UPDATE
        SET completed_sales = seller_sales_counters.completed_sales + 1,
            updated_at = NOW()
    RETURNING completed_sales
""")

_COUNT_COMPLETED_FOR_USER_SQL = text("""
    SELECT COUNT(*) AS n
    FROM orders
    WHERE (buyer_id = :user_id OR seller_id = :user_id)
      AND status = 'COMPLETED'
""")

# ---------------------------------------------------------------------------
# SQL statements: completion outbox
# ---------------------------------------------------------------------------

_EVENT_COLUMNS = """
    order_id, seller_id, item_price, seller_sale_number,
    processed_at, attempts, last_error, created_at
"""

_INSERT_EVENT_SQL = text("""
    INSERT INTO order_completion_events (order_id, seller_id, item_price, seller_sale_number)
    VALUES (:order_id, :seller_id, :item_price, :seller_sale_number)
    ON CONFLICT (order_id) DO NOTHING
""")

_GET_EVENT_SQL = text(f"""
    SELECT {_EVENT_COLUMNS}
    FROM order_completion_events WHERE order_id = :order_id
""")

_MARK_EVENT_PROCESSED_SQL = text("""
    UPDATE order_completion_events
    SET processed_at = :at, attempts = attempts + 1, last_error = NULL
    WHERE order_id = :order_id AND processed_at IS NULL
""")

_RECORD_EVENT_FAILURE_SQL = text("""
    UPDATE order_completion_events
    SET attempts = attempts + 1, last_error = :error
    WHERE order_id = :order_id AND processed_at IS NULL
""")

_LIST_UNPROCESSED_EVENTS_SQL = text(f"""
    SELECT {_EVENT_COLUMNS}
    FROM order_completion_events
    WHERE processed_at IS NULL AND attempts < :max_attempts
    ORDER BY created_at ASC
    LIMIT :limit
""")


# ---------------------------------------------------------------------------
# Row mappers
# ---------------------------------------------------------------------------


def _row_to_order(row: Any) -> Order:
    """Convert a DB result row to an Order domain object."""
    return Order(
        id=row.id,
        listing_id=row.listing_id,
        buyer_id=row.buyer_id,
        seller_id=row.seller_id,
        item_price=row.item_price,
        platform_fee=row.platform_fee,
        gateway_fee=row.gateway_fee,
        total=row.total,
        status=OrderStatus(row.status),
        payment_reference=row.payment_reference,
        meeting_location=row.meeting_location,
        meeting_time=row.meeting_time,
        created_at=row.created_at,
        completed_at=row.completed_at,
        updated_at=row.updated_at,
    )


def _row_to_event(row: Any) -> OrderCompletionEvent:
    return OrderCompletionEvent(
        order_id=row.order_id,
        seller_id=row.seller_id,
        item_price=row.item_price,
        seller_sale_number=row.seller_sale_number,
        processed_at=row.processed_at,
        attempts=row.attempts,
        last_error=row.last_error,
        created_at=row.created_at,
    )


# ---------------------------------------------------------------------------
# Repositories
# ---------------------------------------------------------------------------


class OrderRepository:
    """Concrete implementation of OrderRepositoryProtocol using raw SQL."""

    async def save(self, db: AsyncSession, order: Order) -> None:
        result = await db.execute(
            _INSERT_ORDER_SQL,
            {
                "id": order.id,
                "listing_id": order.listing_id,
                "buyer_id": order.buyer_id,
                "seller_id": order.seller_id,
                "item_price": order.item_price,
                "platform_fee": order.platform_fee,
                "gateway_fee": order.gateway_fee,
                "total": order.total,
                "status": order.status.value,
                "meeting_location": order.meeting_location,
                "meeting_time": order.meeting_time,
            },
        )
        row = result.fetchone()
        if row is not None:
            order.created_at = row.created_at
            order.updated_at = row.updated_at

    async def get_by_id(
        self, db: AsyncSession, order_id: str, for_update: bool = False
    ) -> Order | None:
        sql = _GET_ORDER_FOR_UPDATE_SQL if for_update else _GET_ORDER_BY_ID_SQL
        result = await db.execute(sql, {"id": order_id})
        row = result.fetchone()
        return _row_to_order(row) if row else None

    async def transition_status(
        self,
        db: AsyncSession,
        order_id: str,
        from_status: OrderStatus,
        to_status: OrderStatus,
        payment_reference: str | None = None,
        completed_at: datetime | None = None,
        meeting_time: datetime | None = None,
    ) -> Order | None:
        result = await db.execute(
            _TRANSITION_ORDER_SQL,
            {
                "id": order_id,
                "from_status": OrderStatus(from_status).value,
                "to_status": OrderStatus(to_status).value,
                "payment_reference": payment_reference,
                "completed_at": completed_at,
                "meeting_time": meeting_time,
            },
        )
        row = result.fetchone()
        return _row_to_order(row) if row else None

    async def list_for_user(
        self, db: AsyncSession, user_id: str, cursor_id: str | None, limit: int
    ) -> list[Order]:
        result = await db.execute(
            _LIST_ORDERS_FOR_USER_SQL,
            {"user_id": user_id, "cursor_id": cursor_id, "limit": limit},
        )
        return [_row_to_order(row) for row in result.fetchall()]

    async def increment_seller_sales(self, db: AsyncSession, seller_id: str) -> int:
        result = await db.execute(_INCREMENT_SELLER_SALES_SQL, {"seller_id": seller_id})
        return int(result.scalar_one())

    async def count_completed_for_user(self, db: AsyncSession, user_id: str) -> int:
        result = await db.execute(_COUNT_COMPLETED_FOR_USER_SQL, {"user_id": user_id})
        return int(result.scalar_one())


class CompletionOutbox:
    """Concrete implementation of CompletionOutboxProtocol using raw SQL."""

    async def add(self, db: AsyncSession, event: OrderCompletionEvent) -> None:
        await db.execute(
            _INSERT_EVENT_SQL,
            {
                "order_id": event.order_id,
                "seller_id": event.seller_id,
                "item_price": event.item_price,
                "seller_sale_number": event.seller_sale_number,
            },
        )

    async def get(self, db: AsyncSession, order_id: str) -> OrderCompletionEvent | None:
        result = await db.execute(_GET_EVENT_SQL, {"order_id": order_id})
        row = result.fetchone()
        return _row_to_event(row) if row else None

    async def mark_processed(self, db: AsyncSession, order_id: str, at: datetime) -> None:
        await db.execute(_MARK_EVENT_PROCESSED_SQL, {"order_id": order_id, "at": at})

    async def record_failure(self, db: AsyncSession, order_id: str, error: str) -> None:
        await db.execute(
            _RECORD_EVENT_FAILURE_SQL, {"order_id": order_id, "error": error[:500]}
        )

    async def list_unprocessed(
        self, db: AsyncSession, limit: int, max_attempts: int
    ) -> list[OrderCompletionEvent]:
        result = await db.execute(
            _LIST_UNPROCESSED_EVENTS_SQL, {"limit": limit, "max_attempts": max_attempts}
        )
        return [_row_to_event(row) for row in result.fetchall()]
