"""Scout repository Protocol.

Earnings move only through ``credit_bounty`` / ``debit_earnings`` (atomic
``earnings = earnings +/- :amount`` statements), each paired by the caller with
an earning entry in the same transaction.
"""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_scout.domain.models import RecruitBounty, Scout, ScoutEarningEntry, ScoutRanking


class ScoutRepositoryProtocol(Protocol):
    async def insert(self, db: AsyncSession, scout: Scout) -> bool:
        """Insert the scout. False if the user already has a scout record."""
        ...

    async def get_by_id(
        self, db: AsyncSession, scout_id: str, for_update: bool = False
    ) -> Scout | None: ...

    async def get_by_user(self, db: AsyncSession, user_id: str) -> Scout | None: ...

    async def add_earning_entry(self, db: AsyncSession, entry: ScoutEarningEntry) -> bool:
        """Append an entry. False if (entry_type, reference_type, reference_id) already exists."""
        ...

    async def credit_bounty(self, db: AsyncSession, scout_id: str, amount: int) -> int:
        """earnings += amount, recruits_count += 1. Returns earnings after."""
        ...

    async def debit_earnings(self, db: AsyncSession, scout_id: str, amount: int) -> int:
        """earnings = max(earnings - amount, 0). Returns earnings after."""
        ...

    async def list_recruit_bounties(
        self, db: AsyncSession, scout_id: str
    ) -> list[RecruitBounty]: ...

    async def leaderboard(self, db: AsyncSession, limit: int) -> list[ScoutRanking]: ...
