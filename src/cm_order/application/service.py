"""OrderApplicationService — the order ledger.

Writes lock the order row (SELECT ... FOR UPDATE) and move status with a
compare-and-set UPDATE, then commit; any error rolls back and re-raises.
Side effects of completion are dispatched after the commit (see completion.py).
"""

import asyncio
import logging
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.cm_common.datetime_utils import utc_now
from src.cm_common.enums import OrderEvent, OrderStatus
from src.cm_common.errors import (
    OrderAccessForbiddenError,
    OrderInvalidStateError,
    OrderNotFoundError,
    PaymentInitiationError,
    SelfPurchaseError,
)
from src.cm_common.id_generator import generate_id
from src.cm_directory.domain.repository import ListingLookupProtocol, get_purchasable_listing
from src.cm_directory.infrastructure.persistence import ListingLookup
from src.cm_order.application.completion import CompletionDispatcher
from src.cm_order.application.schemas import (
    CreateOrderResponse,
    OrderDetail,
    OrderListResponse,
    OrderStatusResponse,
    PaymentInitiationResponse,
    PaymentResultResponse,
    cursor_decode,
    cursor_encode,
)
from src.cm_order.domain.fees import compute_fees
from src.cm_order.domain.models import Order, OrderCompletionEvent
from src.cm_order.domain.repository import CompletionOutboxProtocol, OrderRepositoryProtocol
from src.cm_order.domain.state_machine import next_order_status
from src.cm_order.infrastructure.persistence import CompletionOutbox, OrderRepository
from src.cm_payment.domain.gateway import PaymentGatewayProtocol
from src.cm_payment.domain.models import NotificationCredentials
from src.cm_payment.infrastructure.http_gateway import get_payment_gateway

logger = logging.getLogger(__name__)


class OrderApplicationService:
    def __init__(
        self,
        repo: OrderRepositoryProtocol | None = None,
        outbox: CompletionOutboxProtocol | None = None,
        listings: ListingLookupProtocol | None = None,
        gateway: PaymentGatewayProtocol | None = None,
        dispatcher: CompletionDispatcher | None = None,
    ) -> None:
        self._repo: OrderRepositoryProtocol = repo or OrderRepository()
        self._outbox: CompletionOutboxProtocol = outbox or CompletionOutbox()
        self._listings: ListingLookupProtocol = listings or ListingLookup()
        self._gateway = gateway
        self._dispatcher = dispatcher

    @property
    def gateway(self) -> PaymentGatewayProtocol:
        if self._gateway is None:
            self._gateway = get_payment_gateway()
        return self._gateway

    @property
    def dispatcher(self) -> CompletionDispatcher:
        if self._dispatcher is None:
            self._dispatcher = CompletionDispatcher(outbox=self._outbox)
        return self._dispatcher

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def create_order(
        self,
        db: AsyncSession,
        listing_id: str,
        buyer_id: str,
        meeting_location: str,
        meeting_time: datetime | None = None,
    ) -> CreateOrderResponse:
        try:
            listing = await get_purchasable_listing(self._listings, db, listing_id)
            if listing.seller_id == buyer_id:
                raise SelfPurchaseError()

            fees = compute_fees(listing.price)
            order = Order(
                id=generate_id("ord_"),
                listing_id=listing.id,
                buyer_id=buyer_id,
                seller_id=listing.seller_id,
                item_price=fees.item_price,
                platform_fee=fees.platform_fee,
                gateway_fee=fees.gateway_fee,
                total=fees.total,
                status=OrderStatus.PENDING,
                meeting_location=meeting_location,
                meeting_time=meeting_time,
            )
            await self._repo.save(db, order)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info(
            "Order created: id=%s listing=%s buyer=%s total=%d",
            order.id, listing_id, buyer_id, order.total,
        )
        return CreateOrderResponse.from_order(order)

    async def initiate_payment(
        self, db: AsyncSession, order_id: str, caller_id: str
    ) -> PaymentInitiationResponse:
        """Ask the gateway for a checkout redirect. Never changes the order's status."""
        order = await self._get_or_404(db, order_id)
        if order.buyer_id != caller_id:
            raise OrderAccessForbiddenError(order_id)
        if order.status != OrderStatus.PENDING:
            raise OrderInvalidStateError(order_id, "pay for", order.status.value)

        return_target = f"{settings.APP_BASE_URL}/orders/callback?order_id={order_id}"
        try:
            redirect_url = await asyncio.wait_for(
                self.gateway.initiate(order.id, order.total, return_target),
                settings.GATEWAY_TIMEOUT_SECONDS,
            )
        except asyncio.TimeoutError as e:
            logger.warning("Payment initiation timed out: order=%s", order_id)
            raise PaymentInitiationError("request timed out") from e
        return PaymentInitiationResponse(order_id=order.id, payment_url=redirect_url)

    async def apply_payment_result(
        self, db: AsyncSession, raw_body: bytes, credentials: NotificationCredentials
    ) -> PaymentResultResponse:
        """Apply an authenticated gateway notification.

        Success on a PENDING order escrows it; a repeated success is a no-op;
        a failure leaves the order as it is and reports success=False.
        """
        event = self.gateway.authenticate_notification(raw_body, credentials)
        try:
            order = await self._repo.get_by_id(db, event.order_id, for_update=True)
            if order is None:
                raise OrderNotFoundError(event.order_id)

            if not event.succeeded:
                await db.rollback()
                logger.info(
                    "Payment not successful: order=%s state=%s code=%s",
                    order.id, event.state, event.response_code,
                )
                return PaymentResultResponse(order_id=order.id, success=False, status=order.status.value)

            if order.status != OrderStatus.PENDING:
                await db.rollback()
                logger.info("Duplicate payment notification: order=%s status=%s", order.id, order.status.value)
                return PaymentResultResponse(order_id=order.id, success=True, status=order.status.value)

            target = next_order_status(order.status, OrderEvent.PAYMENT_CONFIRMED)
            updated = await self._repo.transition_status(
                db,
                order.id,
                OrderStatus.PENDING,
                target,
                payment_reference=event.transaction_id,
            )
            if updated is None:
                raise OrderInvalidStateError(order.id, "escrow", await self._current_status(db, order.id))
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Order escrowed: id=%s reference=%s", updated.id, updated.payment_reference)
        return PaymentResultResponse(order_id=updated.id, success=True, status=updated.status.value)

    async def complete_order(
        self,
        db: AsyncSession,
        order_id: str,
        caller_id: str,
        meeting_time: datetime | None = None,
    ) -> OrderDetail:
        """Buyer confirms the hand-over: ESCROWED -> COMPLETED, then dispatch side effects."""
        try:
            order = await self._repo.get_by_id(db, order_id, for_update=True)
            if order is None:
                raise OrderNotFoundError(order_id)
            if order.buyer_id != caller_id:
                raise OrderAccessForbiddenError(order_id)
            target = next_order_status(order.status, OrderEvent.BUYER_CONFIRMED)
            if target is None:
                raise OrderInvalidStateError(order_id, "complete", order.status.value)

            updated = await self._repo.transition_status(
                db,
                order_id,
                order.status,
                target,
                completed_at=utc_now(),
                meeting_time=meeting_time,
            )
            if updated is None:
                raise OrderInvalidStateError(order_id, "complete", await self._current_status(db, order_id))

            sale_number = await self._repo.increment_seller_sales(db, updated.seller_id)
            event = OrderCompletionEvent(
                order_id=updated.id,
                seller_id=updated.seller_id,
                item_price=updated.seller_payout_amount,
                seller_sale_number=sale_number,
            )
            await self._outbox.add(db, event)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            "Order completed: id=%s seller=%s sale_number=%d",
            updated.id, updated.seller_id, sale_number,
        )
        await self.dispatcher.dispatch(event)
        return OrderDetail.from_order(updated)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_order(
        self, db: AsyncSession, order_id: str, caller_id: str, is_admin: bool = False
    ) -> OrderDetail:
        order = await self._get_or_404(db, order_id)
        if not order.is_party(caller_id) and not is_admin:
            raise OrderAccessForbiddenError(order_id)
        return OrderDetail.from_order(order)

    async def get_order_status(self, db: AsyncSession, order_id: str) -> OrderStatusResponse:
        order = await self._get_or_404(db, order_id)
        return OrderStatusResponse(order_id=order.id, status=order.status.value)

    async def list_orders(
        self, db: AsyncSession, user_id: str, cursor: str | None, limit: int
    ) -> OrderListResponse:
        cursor_id = cursor_decode(cursor)
        # Fetch limit+1 to detect has_more without a COUNT(*) query
        orders = await self._repo.list_for_user(db, user_id, cursor_id, limit + 1)
        has_more = len(orders) > limit
        page = orders[:limit]
        next_cursor = cursor_encode(page[-1].id) if has_more and page else None
        return OrderListResponse(
            items=[OrderDetail.from_order(o) for o in page],
            next_cursor=next_cursor,
            has_more=has_more,
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _get_or_404(self, db: AsyncSession, order_id: str) -> Order:
        order = await self._repo.get_by_id(db, order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    async def _current_status(self, db: AsyncSession, order_id: str) -> str:
        order = await self._repo.get_by_id(db, order_id)
        return order.status.value if order else "UNKNOWN"
