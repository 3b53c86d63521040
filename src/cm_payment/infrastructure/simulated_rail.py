"""Simulated payout rail.

Stands in for a real disbursement provider. Outcomes are kept in process
memory keyed by payout id, so a repeated settle call for the same id returns
the first outcome and a restart forgets everything (reconciliation then sees
an unknown outcome).
"""

import asyncio
import logging
import random
import time

from config.settings import settings
from src.cm_payment.domain.models import SettlementResult

logger = logging.getLogger(__name__)


class SimulatedPayoutRail:
    def __init__(
        self,
        failure_rate: float | None = None,
        rng: random.Random | None = None,
        latency_seconds: float = 0.0,
    ) -> None:
        rate = settings.SIMULATED_PAYOUT_FAILURE_RATE if failure_rate is None else failure_rate
        if not 0.0 <= rate <= 1.0:
            raise ValueError(f"failure_rate must be within [0, 1], got {rate}")
        self._failure_rate = rate
        self._rng = rng or random.Random()
        self._latency = latency_seconds
        self._results: dict[str, SettlementResult] = {}

    async def settle(self, payout_id: str, user_id: str, amount: int) -> SettlementResult:
        if payout_id in self._results:
            return self._results[payout_id]
        if self._latency:
            await asyncio.sleep(self._latency)

        if self._rng.random() < self._failure_rate:
            result = SettlementResult(succeeded=False, failure_reason="Payment processing failed")
            logger.warning("Simulated settlement failed: payout=%s user=%s", payout_id, user_id)
        else:
            result = SettlementResult(
                succeeded=True,
                reference=f"PAY-{int(time.time() * 1000)}-{payout_id[-8:]}",
            )
            logger.info(
                "Simulated settlement ok: payout=%s user=%s amount=%d", payout_id, user_id, amount
            )
        self._results[payout_id] = result
        return result

    async def get_settlement_status(self, payout_id: str) -> SettlementResult | None:
        return self._results.get(payout_id)


_rail: SimulatedPayoutRail | None = None


def get_payout_rail() -> SimulatedPayoutRail:
    global _rail  # noqa: PLW0603
    if _rail is None:
        _rail = SimulatedPayoutRail()
    return _rail
