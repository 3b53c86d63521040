"""Payout repository Protocol.

Transaction ownership: the CALLER (application service) commits or rolls back.
"""

from datetime import datetime
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_common.enums import PayoutStatus
from src.cm_payout.domain.models import Payout, StatusSummary


class PayoutRepositoryProtocol(Protocol):
    async def insert(self, db: AsyncSession, payout: Payout) -> bool:
        """Insert the payout. False if a SELLER_PAYOUT for the same order already exists."""
        ...

    async def get_by_id(
        self, db: AsyncSession, payout_id: str, for_update: bool = False
    ) -> Payout | None: ...

    async def get_seller_payout_for_order(
        self, db: AsyncSession, order_id: str
    ) -> Payout | None: ...

    async def transition_status(
        self,
        db: AsyncSession,
        payout_id: str,
        from_status: PayoutStatus,
        to_status: PayoutStatus,
        processed_at: datetime | None = None,
        completed_at: datetime | None = None,
        payment_reference: str | None = None,
        failure_reason: str | None = None,
    ) -> Payout | None:
        """Compare-and-set on status. Returns the updated payout, or None if status moved."""
        ...

    async def reset_for_retry(self, db: AsyncSession, payout_id: str) -> Payout | None:
        """FAILED -> PENDING, clearing settlement fields. None if no longer FAILED."""
        ...

    async def list_matured_payable(
        self, db: AsyncSession, cutoff: datetime, limit: int | None = None
    ) -> list[Payout]:
        """PAYABLE payouts created at or before cutoff, oldest first."""
        ...

    async def list_ids_by_status(self, db: AsyncSession, status: PayoutStatus) -> list[str]: ...

    async def list_stale_processing(self, db: AsyncSession, cutoff: datetime) -> list[Payout]: ...

    async def list_for_user(self, db: AsyncSession, user_id: str, limit: int) -> list[Payout]: ...

    async def totals_for_user(self, db: AsyncSession, user_id: str) -> dict[PayoutStatus, int]: ...

    async def list_all(
        self, db: AsyncSession, status: PayoutStatus | None, offset: int, limit: int
    ) -> list[Payout]: ...

    async def count_all(self, db: AsyncSession, status: PayoutStatus | None) -> int: ...

    async def summary_by_status(self, db: AsyncSession) -> dict[PayoutStatus, StatusSummary]: ...

    async def open_bounty_total(self, db: AsyncSession, scout_id: str) -> int:
        """Sum of REFERRAL_BOUNTY amounts for the scout not yet COMPLETED or CANCELLED."""
        ...
