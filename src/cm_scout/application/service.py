"""ScoutApplicationService — registration, earnings breakdown and leaderboard."""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.cm_common.enums import ScoutStatus
from src.cm_common.errors import (
    ScoutAccessForbiddenError,
    ScoutAlreadyRegisteredError,
    ScoutNotEligibleError,
    ScoutNotFoundError,
)
from src.cm_common.id_generator import generate_id
from src.cm_common.paise import paise_to_display
from src.cm_order.domain.repository import OrderRepositoryProtocol
from src.cm_order.infrastructure.persistence import OrderRepository
from src.cm_payout.application.ledger import PayoutLedger
from src.cm_scout.application.schemas import (
    LeaderboardItem,
    RecruitBountyItem,
    RegisterScoutResponse,
    ScoutEarningsResponse,
)
from src.cm_scout.domain.models import Scout
from src.cm_scout.domain.repository import ScoutRepositoryProtocol
from src.cm_scout.infrastructure.persistence import ScoutRepository

logger = logging.getLogger(__name__)

MIN_COMPLETED_ORDERS_TO_REGISTER = 1


class ScoutApplicationService:
    def __init__(
        self,
        repo: ScoutRepositoryProtocol | None = None,
        order_repo: OrderRepositoryProtocol | None = None,
        ledger: PayoutLedger | None = None,
    ) -> None:
        self._repo: ScoutRepositoryProtocol = repo or ScoutRepository()
        self._orders: OrderRepositoryProtocol = order_repo or OrderRepository()
        self._ledger = ledger or PayoutLedger(scout_repo=self._repo, order_repo=self._orders)

    async def register(self, db: AsyncSession, user_id: str) -> RegisterScoutResponse:
        """Make the user a scout. Needs at least one completed order as buyer or seller."""
        try:
            if await self._repo.get_by_user(db, user_id) is not None:
                raise ScoutAlreadyRegisteredError()
            completed = await self._orders.count_completed_for_user(db, user_id)
            if completed < MIN_COMPLETED_ORDERS_TO_REGISTER:
                raise ScoutNotEligibleError()

            scout = Scout(id=generate_id("sct_"), user_id=user_id, status=ScoutStatus.ACTIVE)
            # Unique user_id catches a concurrent registration that passed the check above
            if not await self._repo.insert(db, scout):
                raise ScoutAlreadyRegisteredError()
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Scout registered: scout=%s user=%s", scout.id, user_id)
        return RegisterScoutResponse(scout_id=scout.id)

    async def get_earnings(
        self, db: AsyncSession, scout_id: str, caller_id: str, is_admin: bool = False
    ) -> ScoutEarningsResponse:
        scout = await self._repo.get_by_id(db, scout_id)
        if scout is None:
            raise ScoutNotFoundError(scout_id)
        if scout.user_id != caller_id and not is_admin:
            raise ScoutAccessForbiddenError(scout_id)

        bounties = await self._repo.list_recruit_bounties(db, scout_id)
        lifetime = sum(b.bounty_amount for b in bounties)
        available = await self._ledger.available_earnings(db, scout_id, scout.earnings)
        bounty = settings.SCOUT_BOUNTY_PAISE
        return ScoutEarningsResponse(
            scout_id=scout.id,
            status=scout.status.value,
            recruits_count=scout.recruits_count,
            earnings_paise=scout.earnings,
            earnings_display=paise_to_display(scout.earnings),
            available_paise=available,
            available_display=paise_to_display(available),
            lifetime_bounties_paise=lifetime,
            lifetime_bounties_display=paise_to_display(lifetime),
            bounty_per_recruit_paise=bounty,
            bounty_per_recruit_display=paise_to_display(bounty),
            breakdown=[RecruitBountyItem.from_bounty(b) for b in bounties],
        )

    async def leaderboard(self, db: AsyncSession, limit: int) -> list[LeaderboardItem]:
        rankings = await self._repo.leaderboard(db, limit)
        return [LeaderboardItem.from_ranking(i, r) for i, r in enumerate(rankings, start=1)]
