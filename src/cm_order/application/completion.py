"""CompletionDispatcher — runs the side effects of a completed order.

The COMPLETED transition commits together with an order_completion_events row.
Dispatch happens after that commit: the referral bounty and the seller payout
each get their own session and transaction, so a failure in one never touches
the other or the completed order. Both side effects are idempotent (unique
bounty entry per seller, unique seller payout per order), which makes
re-dispatching an unprocessed event safe. An event that keeps failing is
retried until OUTBOX_MAX_ATTEMPTS, then left unprocessed as dead-lettered
for manual follow-up.
"""

import logging

from config.settings import settings
from src.cm_common.database import SessionFactory, async_session_factory
from src.cm_common.datetime_utils import utc_now
from src.cm_common.enums import PayoutType
from src.cm_order.domain.models import OrderCompletionEvent
from src.cm_order.domain.repository import CompletionOutboxProtocol
from src.cm_order.infrastructure.persistence import CompletionOutbox
from src.cm_payout.application.ledger import PayoutLedger
from src.cm_scout.application.bounty import BountyTrigger

logger = logging.getLogger(__name__)

REDISPATCH_BATCH_LIMIT = 100


class CompletionDispatcher:
    def __init__(
        self,
        session_factory: SessionFactory | None = None,
        outbox: CompletionOutboxProtocol | None = None,
        bounty: BountyTrigger | None = None,
        ledger: PayoutLedger | None = None,
        max_attempts: int | None = None,
    ) -> None:
        self._sessions: SessionFactory = session_factory or async_session_factory
        self._outbox: CompletionOutboxProtocol = outbox or CompletionOutbox()
        self._ledger = ledger or PayoutLedger()
        self._bounty = bounty or BountyTrigger(ledger=self._ledger)
        self._max_attempts = max_attempts or settings.OUTBOX_MAX_ATTEMPTS

    async def dispatch(self, event: OrderCompletionEvent) -> bool:
        """Run both side effects. True if both succeeded and the event is marked processed."""
        errors: list[str] = []

        try:
            async with self._sessions() as db:
                try:
                    await self._bounty.on_order_completed(
                        db, event.seller_id, event.item_price, event.seller_sale_number
                    )
                    await db.commit()
                except Exception:
                    await db.rollback()
                    raise
        except Exception as e:
            logger.exception("Bounty dispatch failed: order=%s seller=%s", event.order_id, event.seller_id)
            errors.append(f"bounty: {e!r}")

        try:
            async with self._sessions() as db:
                try:
                    await self._ledger.create_payout_request(
                        db,
                        user_id=event.seller_id,
                        amount=event.item_price,
                        payout_type=PayoutType.SELLER_PAYOUT,
                        order_id=event.order_id,
                    )
                    await db.commit()
                except Exception:
                    await db.rollback()
                    raise
        except Exception as e:
            logger.exception("Seller payout dispatch failed: order=%s", event.order_id)
            errors.append(f"seller_payout: {e!r}")

        try:
            async with self._sessions() as db:
                try:
                    if errors:
                        await self._outbox.record_failure(db, event.order_id, "; ".join(errors))
                    else:
                        await self._outbox.mark_processed(db, event.order_id, utc_now())
                    await db.commit()
                except Exception:
                    await db.rollback()
                    raise
        except Exception:
            logger.exception("Could not update completion event: order=%s", event.order_id)
            return False

        if errors and event.attempts + 1 >= self._max_attempts:
            logger.error(
                "Completion event dead-lettered after %d attempts: order=%s last_error=%s",
                event.attempts + 1, event.order_id, "; ".join(errors),
            )
        return not errors

    async def redispatch_pending(self, limit: int = REDISPATCH_BATCH_LIMIT) -> int:
        """Re-dispatch unprocessed completion events. Returns how many now succeeded."""
        async with self._sessions() as db:
            events = await self._outbox.list_unprocessed(db, limit, self._max_attempts)
        if not events:
            return 0

        succeeded = 0
        for event in events:
            if await self.dispatch(event):
                succeeded += 1
        logger.info("Outbox re-dispatch: pending=%d succeeded=%d", len(events), succeeded)
        return succeeded
