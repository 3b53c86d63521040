"""PayoutLedger — creation, state transitions and queries for payouts.

Building blocks (``create_payout_request``, ``transition_to_processing``,
``finalize``, ``cancel_for_refund``) run inside the caller's transaction and
never commit. Endpoint-level operations (``retry``, ``cancel``,
``request_payout``) own their transaction: commit on success, rollback + re-raise
on any error.
"""

import logging
import math
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_common.datetime_utils import utc_now
from src.cm_common.enums import (
    EarningEntryType,
    PayoutEvent,
    PayoutStatus,
    PayoutType,
)
from src.cm_common.errors import (
    InsufficientEarningsError,
    NonPositiveAmountError,
    OrderNotFoundError,
    PayoutInvalidStateError,
    PayoutNotFoundError,
    RefundedOrderPayoutError,
    ScoutAccessForbiddenError,
    ScoutNotFoundError,
    ScoutOwnershipError,
    UserNotFoundError,
)
from src.cm_common.id_generator import generate_id
from src.cm_directory.domain.repository import UserLookupProtocol
from src.cm_directory.infrastructure.persistence import UserLookup
from src.cm_order.domain.repository import OrderRepositoryProtocol
from src.cm_order.domain.state_machine import is_payable_order_status
from src.cm_order.infrastructure.persistence import OrderRepository
from src.cm_payment.domain.models import SettlementResult
from src.cm_payout.application.schemas import (
    AdminPayoutListResponse,
    PayoutItem,
    StatusSummaryItem,
    UserPayoutsResponse,
)
from src.cm_payout.domain.models import Payout
from src.cm_payout.domain.repository import PayoutRepositoryProtocol
from src.cm_payout.domain.state_machine import next_payout_status
from src.cm_payout.infrastructure.persistence import PayoutRepository
from src.cm_scout.domain.models import REF_PAYOUT, ScoutEarningEntry
from src.cm_scout.domain.repository import ScoutRepositoryProtocol
from src.cm_scout.infrastructure.persistence import ScoutRepository

logger = logging.getLogger(__name__)

REFUND_CANCEL_REASON = "Order was refunded"


class PayoutLedger:
    def __init__(
        self,
        repo: PayoutRepositoryProtocol | None = None,
        order_repo: OrderRepositoryProtocol | None = None,
        scout_repo: ScoutRepositoryProtocol | None = None,
        users: UserLookupProtocol | None = None,
    ) -> None:
        self._repo: PayoutRepositoryProtocol = repo or PayoutRepository()
        self._orders: OrderRepositoryProtocol = order_repo or OrderRepository()
        self._scouts: ScoutRepositoryProtocol = scout_repo or ScoutRepository()
        self._users: UserLookupProtocol = users or UserLookup()

    # ------------------------------------------------------------------
    # Building blocks (caller owns the transaction)
    # ------------------------------------------------------------------

    async def create_payout_request(
        self,
        db: AsyncSession,
        user_id: str,
        amount: int,
        payout_type: PayoutType,
        scout_id: str | None = None,
        order_id: str | None = None,
        immediate: bool = False,
    ) -> Payout:
        """Record a payout owed to ``user_id``. PAYABLE, or PENDING when ``immediate``.

        A second SELLER_PAYOUT request for the same order returns the existing payout.
        """
        payout_type = PayoutType(payout_type)
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise NonPositiveAmountError(amount)

        if await self._users.get_user(db, user_id) is None:
            raise UserNotFoundError(user_id)
        if scout_id is not None:
            scout = await self._scouts.get_by_id(db, scout_id)
            if scout is None:
                raise ScoutNotFoundError(scout_id)
            if scout.user_id != user_id:
                raise ScoutOwnershipError(scout_id, user_id)
        if order_id is not None and await self._orders.get_by_id(db, order_id) is None:
            raise OrderNotFoundError(order_id)

        payout = Payout(
            id=generate_id("pay_"),
            user_id=user_id,
            payout_type=payout_type,
            amount=amount,
            status=PayoutStatus.PENDING if immediate else PayoutStatus.PAYABLE,
            order_id=order_id,
            scout_id=scout_id,
        )
        inserted = await self._repo.insert(db, payout)
        if not inserted:
            existing = await self._repo.get_seller_payout_for_order(db, order_id or "")
            if existing is None:
                raise PayoutNotFoundError(f"seller payout for order {order_id}")
            logger.info("Seller payout already exists: order=%s payout=%s", order_id, existing.id)
            return existing

        logger.info(
            "Payout requested: id=%s user=%s type=%s amount=%d status=%s",
            payout.id, user_id, payout_type.value, amount, payout.status.value,
        )
        return payout

    async def transition_to_processing(
        self, db: AsyncSession, payout_id: str, now: datetime | None = None
    ) -> Payout:
        """Lock the payout and move it PAYABLE|PENDING -> PROCESSING."""
        payout = await self._lock(db, payout_id)
        target = next_payout_status(payout.status, PayoutEvent.START)
        if target is None:
            raise PayoutInvalidStateError(payout_id, "process", payout.status.value)
        if await self._order_is_refunded(db, payout):
            raise RefundedOrderPayoutError(payout_id, payout.order_id or "")

        updated = await self._repo.transition_status(
            db, payout_id, payout.status, target, processed_at=now or utc_now()
        )
        if updated is None:
            raise PayoutInvalidStateError(payout_id, "process", await self._current_status(db, payout_id))
        return updated

    async def finalize(
        self,
        db: AsyncSession,
        payout_id: str,
        outcome: SettlementResult,
        now: datetime | None = None,
    ) -> Payout:
        """Apply a settlement outcome to a PROCESSING payout.

        Success debits the scout's earnings for REFERRAL_BOUNTY payouts in the same
        transaction; failure records the reason and leaves earnings untouched.
        If the order was refunded while the payout was PROCESSING, a failure
        cancels the payout instead, and a success is recorded but logged as a warning.
        """
        payout = await self._lock(db, payout_id)
        event = PayoutEvent.SUCCEED if outcome.succeeded else PayoutEvent.FAIL
        target = next_payout_status(payout.status, event)
        if target is None:
            raise PayoutInvalidStateError(payout_id, "finalize", payout.status.value)

        if outcome.succeeded:
            updated = await self._repo.transition_status(
                db,
                payout_id,
                PayoutStatus.PROCESSING,
                target,
                completed_at=now or utc_now(),
                payment_reference=outcome.reference,
            )
            if updated is not None and updated.is_bounty and updated.scout_id:
                await self._debit_scout(db, updated)
            if updated is not None and await self._order_is_refunded(db, updated):
                # The rail has already paid; the completion stands
                logger.warning(
                    "Payout completed after its order was refunded: id=%s order=%s reference=%s",
                    payout_id, updated.order_id, updated.payment_reference,
                )
        elif await self._order_is_refunded(db, payout):
            updated = await self.cancel_for_refund(db, payout)
        else:
            updated = await self._repo.transition_status(
                db,
                payout_id,
                PayoutStatus.PROCESSING,
                target,
                failure_reason=outcome.failure_reason or "Settlement failed",
            )
        if updated is None:
            raise PayoutInvalidStateError(payout_id, "finalize", await self._current_status(db, payout_id))

        logger.info(
            "Payout finalized: id=%s status=%s reference=%s reason=%s",
            payout_id, updated.status.value, updated.payment_reference, updated.failure_reason,
        )
        return updated

    async def cancel_for_refund(self, db: AsyncSession, payout: Payout) -> Payout | None:
        """CAS the payout to CANCELLED because its order was refunded. None if it moved."""
        updated = await self._repo.transition_status(
            db, payout.id, payout.status, PayoutStatus.CANCELLED, failure_reason=REFUND_CANCEL_REASON
        )
        if updated is not None:
            logger.info("Payout cancelled for refunded order: id=%s order=%s", payout.id, payout.order_id)
        return updated

    async def order_is_refunded(self, db: AsyncSession, payout: Payout) -> bool:
        return await self._order_is_refunded(db, payout)

    # ------------------------------------------------------------------
    # Endpoint-level operations (own their transaction)
    # ------------------------------------------------------------------

    async def retry(self, db: AsyncSession, payout_id: str) -> PayoutItem:
        try:
            payout = await self._lock(db, payout_id)
            if next_payout_status(payout.status, PayoutEvent.RETRY) is None:
                raise PayoutInvalidStateError(payout_id, "retry", payout.status.value)
            updated = await self._repo.reset_for_retry(db, payout_id)
            if updated is None:
                raise PayoutInvalidStateError(payout_id, "retry", await self._current_status(db, payout_id))
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Payout reset for retry: id=%s", payout_id)
        return PayoutItem.from_payout(updated)

    async def cancel(self, db: AsyncSession, payout_id: str) -> PayoutItem:
        try:
            payout = await self._lock(db, payout_id)
            target = next_payout_status(payout.status, PayoutEvent.CANCEL)
            if target is None:
                raise PayoutInvalidStateError(payout_id, "cancel", payout.status.value)
            updated = await self._repo.transition_status(
                db, payout_id, payout.status, target, failure_reason="Cancelled by admin"
            )
            if updated is None:
                raise PayoutInvalidStateError(payout_id, "cancel", await self._current_status(db, payout_id))
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Payout cancelled: id=%s previous=%s", payout_id, payout.status.value)
        return PayoutItem.from_payout(updated)

    async def request_payout(
        self, db: AsyncSession, scout_id: str, caller_id: str, amount: int | None = None
    ) -> PayoutItem:
        """Scout-initiated withdrawal of available earnings as an immediate REFERRAL_BOUNTY payout.

        available = earnings - open REFERRAL_BOUNTY payouts. The scout row is locked so
        concurrent requests for the same scout cannot both pass the check.
        """
        try:
            scout = await self._scouts.get_by_id(db, scout_id, for_update=True)
            if scout is None:
                raise ScoutNotFoundError(scout_id)
            if scout.user_id != caller_id:
                raise ScoutAccessForbiddenError(scout_id)

            available = await self.available_earnings(db, scout_id, scout.earnings)
            requested = available if amount is None else amount
            if isinstance(requested, bool) or not isinstance(requested, int) or requested <= 0:
                raise NonPositiveAmountError(requested)
            if requested > available:
                raise InsufficientEarningsError(requested, available)

            payout = await self.create_payout_request(
                db,
                user_id=caller_id,
                amount=requested,
                payout_type=PayoutType.REFERRAL_BOUNTY,
                scout_id=scout_id,
                immediate=True,
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return PayoutItem.from_payout(payout)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def available_earnings(
        self, db: AsyncSession, scout_id: str, earnings: int
    ) -> int:
        reserved = await self._repo.open_bounty_total(db, scout_id)
        return max(earnings - reserved, 0)

    async def list_payouts_for_user(
        self, db: AsyncSession, user_id: str, limit: int
    ) -> UserPayoutsResponse:
        payouts = await self._repo.list_for_user(db, user_id, limit)
        totals = await self._repo.totals_for_user(db, user_id)
        return UserPayoutsResponse.from_totals(
            [PayoutItem.from_payout(p) for p in payouts], totals
        )

    async def admin_list_payouts(
        self,
        db: AsyncSession,
        status: PayoutStatus | None,
        page: int,
        limit: int,
    ) -> AdminPayoutListResponse:
        offset = (page - 1) * limit
        payouts = await self._repo.list_all(db, status, offset, limit)
        total = await self._repo.count_all(db, status)
        summary = None
        if status is None:
            by_status = await self._repo.summary_by_status(db)
            summary = {
                s.value: StatusSummaryItem.from_summary(by_status[s])
                for s in PayoutStatus
                if s in by_status
            }
        return AdminPayoutListResponse(
            items=[PayoutItem.from_payout(p) for p in payouts],
            total=total,
            page=page,
            limit=limit,
            total_pages=math.ceil(total / limit) if limit else 0,
            summary=summary,
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _lock(self, db: AsyncSession, payout_id: str) -> Payout:
        payout = await self._repo.get_by_id(db, payout_id, for_update=True)
        if payout is None:
            raise PayoutNotFoundError(payout_id)
        return payout

    async def _current_status(self, db: AsyncSession, payout_id: str) -> str:
        payout = await self._repo.get_by_id(db, payout_id)
        return payout.status.value if payout else "UNKNOWN"

    async def _order_is_refunded(self, db: AsyncSession, payout: Payout) -> bool:
        if payout.order_id is None:
            return False
        order = await self._orders.get_by_id(db, payout.order_id)
        return order is not None and not is_payable_order_status(order.status)

    async def _debit_scout(self, db: AsyncSession, payout: Payout) -> None:
        scout_id = payout.scout_id or ""
        scout = await self._scouts.get_by_id(db, scout_id, for_update=True)
        if scout is None:
            raise ScoutNotFoundError(scout_id)
        after = max(scout.earnings - payout.amount, 0)
        entry = ScoutEarningEntry(
            scout_id=scout_id,
            entry_type=EarningEntryType.PAYOUT_DEBIT,
            amount=after - scout.earnings,
            earnings_after=after,
            reference_type=REF_PAYOUT,
            reference_id=payout.id,
        )
        if not await self._scouts.add_earning_entry(db, entry):
            logger.warning("Payout debit already recorded: payout=%s", payout.id)
            return
        await self._scouts.debit_earnings(db, scout_id, payout.amount)
        logger.info(
            "Scout earnings debited: scout=%s payout=%s amount=%d earnings_after=%d",
            scout_id, payout.id, payout.amount, after,
        )
