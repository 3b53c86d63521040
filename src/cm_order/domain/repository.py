# src/cm_order/domain/repository.py
"""Order repository Protocols — interface contracts for the persistence layer.

Transaction ownership: the CALLER (application service) commits or rolls back.
"""
from datetime import datetime
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_common.enums import OrderStatus
from src.cm_order.domain.models import Order, OrderCompletionEvent


class OrderRepositoryProtocol(Protocol):
    async def save(self, db: AsyncSession, order: Order) -> None: ...

    async def get_by_id(
        self, db: AsyncSession, order_id: str, for_update: bool = False
    ) -> Order | None: ...

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
        """Compare-and-set on status. Returns the updated order, or None if status moved."""
        ...

    async def list_for_user(
        self, db: AsyncSession, user_id: str, cursor_id: str | None, limit: int
    ) -> list[Order]: ...

    async def increment_seller_sales(self, db: AsyncSession, seller_id: str) -> int:
        """Atomically bump the seller's completed-sale counter and return the new value."""
        ...

    async def count_completed_for_user(self, db: AsyncSession, user_id: str) -> int: ...


class CompletionOutboxProtocol(Protocol):
    async def add(self, db: AsyncSession, event: OrderCompletionEvent) -> None: ...

    async def get(self, db: AsyncSession, order_id: str) -> OrderCompletionEvent | None: ...

    async def mark_processed(self, db: AsyncSession, order_id: str, at: datetime) -> None: ...

    async def record_failure(self, db: AsyncSession, order_id: str, error: str) -> None: ...

    async def list_unprocessed(
        self, db: AsyncSession, limit: int, max_attempts: int
    ) -> list[OrderCompletionEvent]: ...
