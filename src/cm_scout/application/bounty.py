"""BountyTrigger — credits a scout when a seller they recruited completes a first sale."""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.cm_common.enums import EarningEntryType, PayoutType
from src.cm_common.paise import paise_to_display
from src.cm_directory.domain.repository import UserLookupProtocol
from src.cm_directory.infrastructure.persistence import UserLookup
from src.cm_payout.application.ledger import PayoutLedger
from src.cm_payout.domain.models import Payout
from src.cm_scout.domain.models import REF_SELLER, ScoutEarningEntry
from src.cm_scout.domain.repository import ScoutRepositoryProtocol
from src.cm_scout.infrastructure.persistence import ScoutRepository

logger = logging.getLogger(__name__)


class BountyTrigger:
    def __init__(
        self,
        scout_repo: ScoutRepositoryProtocol | None = None,
        users: UserLookupProtocol | None = None,
        ledger: PayoutLedger | None = None,
        bounty_amount: int | None = None,
    ) -> None:
        self._scouts: ScoutRepositoryProtocol = scout_repo or ScoutRepository()
        self._users: UserLookupProtocol = users or UserLookup()
        self._ledger = ledger or PayoutLedger(scout_repo=self._scouts, users=self._users)
        self._amount = bounty_amount or settings.SCOUT_BOUNTY_PAISE

    async def on_order_completed(
        self,
        db: AsyncSession,
        seller_id: str,
        sale_amount: int,
        seller_sale_number: int,
    ) -> Payout | None:
        """Credit the seller's recruiter once, on the seller's first completed sale.

        Runs in the caller's transaction. Returns the REFERRAL_BOUNTY payout, or None
        when no bounty applies (not a first sale, no recruiter, recruiter is not an
        active scout, or the bounty for this seller was already credited).
        """
        if seller_sale_number != 1:
            return None

        recruiter_id = await self._users.get_referrer_of(db, seller_id)
        if recruiter_id is None:
            return None
        scout = await self._scouts.get_by_user(db, recruiter_id)
        if scout is None or not scout.is_active:
            return None

        # Lock so earnings_after on the entry matches the balance the credit produces
        scout = await self._scouts.get_by_id(db, scout.id, for_update=True)
        if scout is None:
            return None
        entry = ScoutEarningEntry(
            scout_id=scout.id,
            entry_type=EarningEntryType.BOUNTY_CREDIT,
            amount=self._amount,
            earnings_after=scout.earnings + self._amount,
            reference_type=REF_SELLER,
            reference_id=seller_id,
        )
        if not await self._scouts.add_earning_entry(db, entry):
            logger.info("Bounty already credited: scout=%s seller=%s", scout.id, seller_id)
            return None

        await self._scouts.credit_bounty(db, scout.id, self._amount)
        payout = await self._ledger.create_payout_request(
            db,
            user_id=scout.user_id,
            amount=self._amount,
            payout_type=PayoutType.REFERRAL_BOUNTY,
            scout_id=scout.id,
        )
        logger.info(
            "Bounty triggered: scout=%s earned %s for recruit %s's first sale of %s",
            scout.id, paise_to_display(self._amount), seller_id, paise_to_display(sale_amount),
        )
        return payout
