"""Settlement scheduler — APScheduler jobs started and stopped by the FastAPI lifespan.

Jobs:
  payable_settlement   cron 00:00 UTC on the 1st and 16th: settle matured PAYABLE payouts
  reconcile_processing every 10 min: resolve payouts stuck in PROCESSING
  completion_outbox    every 5 min: re-dispatch unprocessed order completion events

Each job first claims a Redis run guard (SET NX EX) so that only one app
instance performs a given run; there is no lock across the run itself.
"""

import logging
from collections.abc import Awaitable, Callable

from apscheduler.executors.asyncio import AsyncIOExecutor
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from config.settings import settings
from src.cm_common.redis_client import acquire_run_guard, release_run_guard
from src.cm_order.application.completion import CompletionDispatcher
from src.cm_payout.application.settlement import SettlementService

logger = logging.getLogger(__name__)

RECONCILE_INTERVAL_MINUTES = 10
OUTBOX_INTERVAL_MINUTES = 5


class SettlementScheduler:
    def __init__(
        self,
        settlement: SettlementService | None = None,
        dispatcher: CompletionDispatcher | None = None,
        guard_ttl_seconds: int | None = None,
    ) -> None:
        self._settlement = settlement or SettlementService()
        self._dispatcher = dispatcher or CompletionDispatcher()
        self._guard_ttl = guard_ttl_seconds or settings.SCHEDULER_RUN_GUARD_SECONDS
        self.scheduler = AsyncIOScheduler(
            jobstores={"default": MemoryJobStore()},
            executors={"default": AsyncIOExecutor()},
            job_defaults={"coalesce": True, "max_instances": 1, "misfire_grace_time": 3600},
            timezone="UTC",
        )

    def setup_jobs(self) -> None:
        self.scheduler.add_job(
            self.run_payable_settlement,
            trigger=CronTrigger(day="1,16", hour=0, minute=0, timezone="UTC"),
            id="payable_settlement",
            name="Settle Matured Payable Payouts",
            replace_existing=True,
        )
        self.scheduler.add_job(
            self.run_reconciliation,
            trigger=IntervalTrigger(minutes=RECONCILE_INTERVAL_MINUTES),
            id="reconcile_processing",
            name="Reconcile Processing Payouts",
            replace_existing=True,
        )
        self.scheduler.add_job(
            self.run_outbox_redispatch,
            trigger=IntervalTrigger(minutes=OUTBOX_INTERVAL_MINUTES),
            id="completion_outbox",
            name="Re-dispatch Completion Events",
            replace_existing=True,
        )

    def start(self) -> None:
        self.setup_jobs()
        self.scheduler.start()
        logger.info("Settlement scheduler started: jobs=%s", [j.id for j in self.scheduler.get_jobs()])

    def shutdown(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Settlement scheduler stopped")

    async def run_payable_settlement(self) -> None:
        await self._guarded("payable_settlement", self._settlement.run_payable_batch)

    async def run_reconciliation(self) -> None:
        await self._guarded("reconcile_processing", self._settlement.reconcile_processing)

    async def run_outbox_redispatch(self) -> None:
        await self._guarded("completion_outbox", self._dispatcher.redispatch_pending)

    async def _guarded(self, name: str, job: Callable[[], Awaitable[object]]) -> None:
        if not await acquire_run_guard(name, self._guard_ttl):
            logger.info("Job %s already running on another instance, skipped", name)
            return
        try:
            await job()
        except Exception:
            logger.exception("Scheduled job %s failed", name)
        finally:
            await release_run_guard(name)
