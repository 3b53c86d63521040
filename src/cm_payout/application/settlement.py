"""SettlementService — moves payouts through the payout rail.

Every payout is its own unit of work in three steps:

  1. tx: lock, cancel if the linked order was refunded, else -> PROCESSING; commit
  2. rail.settle() outside any transaction, bounded by GATEWAY_TIMEOUT_SECONDS
  3. tx: finalize -> COMPLETED | FAILED; commit

A timeout in step 2 leaves the payout PROCESSING; ``reconcile_processing``
resolves it later. An error in one payout's unit of work is logged and counted,
never propagated to the rest of the run.
"""

import asyncio
import logging
from datetime import datetime, timedelta

from config.settings import settings
from src.cm_common.database import SessionFactory, async_session_factory
from src.cm_common.datetime_utils import days_before, utc_now
from src.cm_common.enums import PayoutStatus
from src.cm_common.errors import GatewayError, PayoutInvalidStateError, PayoutNotFoundError
from src.cm_payment.domain.gateway import PayoutRailProtocol
from src.cm_payment.domain.models import SettlementResult
from src.cm_payment.infrastructure.simulated_rail import get_payout_rail
from src.cm_payout.application.ledger import PayoutLedger
from src.cm_payout.application.schemas import PayoutItem
from src.cm_payout.domain.models import Payout, SettlementReport
from src.cm_payout.domain.repository import PayoutRepositoryProtocol
from src.cm_payout.infrastructure.persistence import PayoutRepository

logger = logging.getLogger(__name__)

UNKNOWN_OUTCOME_REASON = "settlement outcome unknown after timeout"
_STARTABLE = (PayoutStatus.PAYABLE, PayoutStatus.PENDING)


class SettlementService:
    def __init__(
        self,
        session_factory: SessionFactory | None = None,
        ledger: PayoutLedger | None = None,
        rail: PayoutRailProtocol | None = None,
        repo: PayoutRepositoryProtocol | None = None,
        batch_size: int | None = None,
        maturation_days: int | None = None,
        timeout_seconds: float | None = None,
    ) -> None:
        self._sessions: SessionFactory = session_factory or async_session_factory
        self._repo: PayoutRepositoryProtocol = repo or PayoutRepository()
        self._ledger = ledger or PayoutLedger(repo=self._repo)
        self._rail: PayoutRailProtocol = rail or get_payout_rail()
        self._batch_size = batch_size or settings.PAYOUT_BATCH_SIZE
        self._maturation_days = (
            settings.PAYOUT_MATURATION_DAYS if maturation_days is None else maturation_days
        )
        self._timeout = timeout_seconds or settings.GATEWAY_TIMEOUT_SECONDS

    # ------------------------------------------------------------------
    # Scheduled runs
    # ------------------------------------------------------------------

    async def run_payable_batch(self, now: datetime | None = None) -> SettlementReport:
        """Settle every PAYABLE payout older than the maturation window, oldest first."""
        now = now or utc_now()
        cutoff = days_before(now, self._maturation_days)
        async with self._sessions() as db:
            payouts = await self._repo.list_matured_payable(db, cutoff)

        report = SettlementReport(selected=len(payouts))
        if not payouts:
            logger.info("Payable run: no payouts matured before %s", cutoff.isoformat())
            return report

        for payout in payouts:
            report.merge(await self._settle_isolated(payout.id, now))
        self._log_report("Payable run", report)
        return report

    async def run_pending_batches(self) -> SettlementReport:
        """Settle PENDING payouts in fixed-size batches, concurrently within a batch."""
        async with self._sessions() as db:
            payout_ids = await self._repo.list_ids_by_status(db, PayoutStatus.PENDING)

        report = SettlementReport(selected=len(payout_ids))
        for start in range(0, len(payout_ids), self._batch_size):
            chunk = payout_ids[start:start + self._batch_size]
            results = await asyncio.gather(*(self._settle_isolated(pid) for pid in chunk))
            for r in results:
                report.merge(r)
        self._log_report("Pending run", report)
        return report

    async def reconcile_processing(self, now: datetime | None = None) -> SettlementReport:
        """Resolve payouts stuck in PROCESSING by asking the rail what happened."""
        now = now or utc_now()
        cutoff = now - timedelta(minutes=settings.SETTLEMENT_RECONCILE_AFTER_MINUTES)
        async with self._sessions() as db:
            stale = await self._repo.list_stale_processing(db, cutoff)

        report = SettlementReport(selected=len(stale))
        for payout in stale:
            try:
                outcome = await asyncio.wait_for(
                    self._rail.get_settlement_status(payout.id), self._timeout
                )
            except (asyncio.TimeoutError, GatewayError) as e:
                logger.warning("Reconcile lookup failed: payout=%s error=%r", payout.id, e)
                report.skipped += 1
                continue
            if outcome is None:
                outcome = SettlementResult(succeeded=False, failure_reason=UNKNOWN_OUTCOME_REASON)
            try:
                finalized = await self._finalize(payout.id, outcome, now)
            except PayoutInvalidStateError:
                report.skipped += 1
                continue
            except Exception:
                logger.exception("Reconcile finalize failed: payout=%s", payout.id)
                report.errors += 1
                continue
            report.payout_ids.append(payout.id)
            self._count(report, finalized.status)
        self._log_report("Reconcile run", report)
        return report

    # ------------------------------------------------------------------
    # Admin
    # ------------------------------------------------------------------

    async def admin_process_payout(self, payout_id: str) -> PayoutItem:
        """Settle one PAYABLE or PENDING payout now, ignoring the maturation window.

        Errors (not found, wrong state, refunded order) propagate to the caller.
        """
        payout = await self._settle(payout_id, utc_now(), strict=True)
        if payout is None:
            async with self._sessions() as db:
                payout = await self._repo.get_by_id(db, payout_id)
            if payout is None:
                raise PayoutNotFoundError(payout_id)
        return PayoutItem.from_payout(payout)

    # ------------------------------------------------------------------
    # Unit of work
    # ------------------------------------------------------------------

    async def _settle_isolated(
        self, payout_id: str, now: datetime | None = None
    ) -> SettlementReport:
        report = SettlementReport(payout_ids=[payout_id])
        try:
            payout = await self._settle(payout_id, now or utc_now(), strict=False)
        except Exception:
            logger.exception("Settlement unit of work failed: payout=%s", payout_id)
            report.errors += 1
            return report
        if payout is None:
            report.skipped += 1
        else:
            self._count(report, payout.status)
        return report

    async def _settle(self, payout_id: str, now: datetime, strict: bool) -> Payout | None:
        """Run the three steps for one payout.

        Returns the payout in its resulting status, or None when nothing was done
        (lost a race in lenient mode, or the rail timed out).
        """
        async with self._sessions() as db:
            try:
                payout = await self._repo.get_by_id(db, payout_id, for_update=True)
                if payout is None:
                    raise PayoutNotFoundError(payout_id)
                if payout.status not in _STARTABLE:
                    if strict:
                        raise PayoutInvalidStateError(payout_id, "process", payout.status.value)
                    await db.rollback()
                    logger.info("Payout no longer startable: id=%s status=%s", payout_id, payout.status.value)
                    return None
                if not strict and await self._ledger.order_is_refunded(db, payout):
                    cancelled = await self._ledger.cancel_for_refund(db, payout)
                    await db.commit()
                    return cancelled
                processing = await self._ledger.transition_to_processing(db, payout_id, now)
                await db.commit()
            except Exception:
                await db.rollback()
                raise

        try:
            outcome = await asyncio.wait_for(
                self._rail.settle(processing.id, processing.user_id, processing.amount),
                self._timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("Settlement timed out, left PROCESSING: payout=%s", payout_id)
            return processing if strict else None
        except GatewayError as e:
            outcome = SettlementResult(succeeded=False, failure_reason=e.message)

        return await self._finalize(payout_id, outcome, now)

    async def _finalize(
        self, payout_id: str, outcome: SettlementResult, now: datetime
    ) -> Payout:
        async with self._sessions() as db:
            try:
                payout = await self._ledger.finalize(db, payout_id, outcome, now)
                await db.commit()
            except Exception:
                await db.rollback()
                raise
        return payout

    @staticmethod
    def _count(report: SettlementReport, status: PayoutStatus) -> None:
        if status == PayoutStatus.COMPLETED:
            report.completed += 1
        elif status == PayoutStatus.FAILED:
            report.failed += 1
        elif status == PayoutStatus.CANCELLED:
            report.cancelled += 1
        else:
            report.skipped += 1

    @staticmethod
    def _log_report(label: str, report: SettlementReport) -> None:
        logger.info(
            "%s: selected=%d completed=%d failed=%d cancelled=%d skipped=%d errors=%d",
            label, report.selected, report.completed, report.failed,
            report.cancelled, report.skipped, report.errors,
        )
