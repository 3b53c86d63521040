"""ScoutRepository — raw SQL persistence implementation."""

from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_common.enums import ScoutStatus
from src.cm_scout.domain.models import RecruitBounty, Scout, ScoutEarningEntry, ScoutRanking

_COLUMNS = "id, user_id, status, recruits_count, earnings, created_at, updated_at"

_INSERT_SCOUT_SQL = text(f"""
    INSERT INTO scouts (id, user_id, status, recruits_count, earnings)
    VALUES (:id, :user_id, :status, :recruits_count, :earnings)
    ON CONFLICT (user_id) DO NOTHING
    RETURNING {_COLUMNS}
""")

_GET_SCOUT_SQL = text(f"SELECT {_COLUMNS} FROM scouts WHERE id = :id")

_GET_SCOUT_FOR_UPDATE_SQL = text(f"SELECT {_COLUMNS} FROM scouts WHERE id = :id FOR UPDATE")

_GET_SCOUT_BY_USER_SQL = text(f"SELECT {_COLUMNS} FROM scouts WHERE user_id = :user_id")

_INSERT_ENTRY_SQL = text("""
    INSERT INTO scout_earning_entries
        (scout_id, entry_type, amount, earnings_after, reference_type, reference_id)
    VALUES (:scout_id, :entry_type, :amount, :earnings_after, :reference_type, :reference_id)
    ON CONFLICT (entry_type, reference_type, reference_id) DO NOTHING
    RETURNING id, created_at
""")

_CREDIT_BOUNTY_SQL = text("""
    UPDATE scouts
    SET earnings = earnings + :amount,
        recruits_count = recruits_count + 1,
        updated_at = NOW()
    WHERE id = :id
    RETURNING earnings
""")

_DEBIT_EARNINGS_SQL = text("""
    UPDATE scouts
    SET earnings = GREATEST(earnings - :amount, 0),
        updated_at = NOW()
    WHERE id = :id
    RETURNING earnings
""")

# First-sale amount comes from the recruit's completion event with sale number 1
_LIST_RECRUIT_BOUNTIES_SQL = text("""
    SELECT e.reference_id AS recruit_id, u.name, u.email,
           e.amount AS bounty_amount, e.created_at AS credited_at,
           ev.item_price AS first_sale_amount
    FROM scout_earning_entries e
    JOIN users u ON u.id = e.reference_id
    LEFT JOIN order_completion_events ev
        ON ev.seller_id = e.reference_id AND ev.seller_sale_number = 1
    WHERE e.scout_id = :scout_id
      AND e.entry_type = 'BOUNTY_CREDIT'
      AND e.reference_type = 'SELLER'
    ORDER BY e.created_at ASC, e.id ASC
""")

_LEADERBOARD_SQL = text("""
    SELECT s.id AS scout_id, s.user_id, u.name, u.email, s.recruits_count, s.earnings
    FROM scouts s
    JOIN users u ON u.id = s.user_id
    WHERE s.status = 'ACTIVE'
    ORDER BY s.earnings DESC, s.recruits_count DESC, s.created_at ASC
    LIMIT :limit
""")


def _row_to_scout(row: Any) -> Scout:
    return Scout(
        id=row.id,
        user_id=str(row.user_id),
        status=ScoutStatus(row.status),
        recruits_count=row.recruits_count,
        earnings=row.earnings,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


class ScoutRepository:
    """Concrete implementation of ScoutRepositoryProtocol using raw SQL."""

    async def insert(self, db: AsyncSession, scout: Scout) -> bool:
        result = await db.execute(
            _INSERT_SCOUT_SQL,
            {
                "id": scout.id,
                "user_id": scout.user_id,
                "status": scout.status.value,
                "recruits_count": scout.recruits_count,
                "earnings": scout.earnings,
            },
        )
        row = result.fetchone()
        if row is None:
            return False
        scout.created_at = row.created_at
        scout.updated_at = row.updated_at
        return True

    async def get_by_id(
        self, db: AsyncSession, scout_id: str, for_update: bool = False
    ) -> Scout | None:
        sql = _GET_SCOUT_FOR_UPDATE_SQL if for_update else _GET_SCOUT_SQL
        row = (await db.execute(sql, {"id": scout_id})).fetchone()
        return _row_to_scout(row) if row else None

    async def get_by_user(self, db: AsyncSession, user_id: str) -> Scout | None:
        row = (await db.execute(_GET_SCOUT_BY_USER_SQL, {"user_id": user_id})).fetchone()
        return _row_to_scout(row) if row else None

    async def add_earning_entry(self, db: AsyncSession, entry: ScoutEarningEntry) -> bool:
        result = await db.execute(
            _INSERT_ENTRY_SQL,
            {
                "scout_id": entry.scout_id,
                "entry_type": entry.entry_type.value,
                "amount": entry.amount,
                "earnings_after": entry.earnings_after,
                "reference_type": entry.reference_type,
                "reference_id": entry.reference_id,
            },
        )
        row = result.fetchone()
        if row is None:
            return False
        entry.id = row.id
        entry.created_at = row.created_at
        return True

    async def credit_bounty(self, db: AsyncSession, scout_id: str, amount: int) -> int:
        result = await db.execute(_CREDIT_BOUNTY_SQL, {"id": scout_id, "amount": amount})
        return int(result.scalar_one())

    async def debit_earnings(self, db: AsyncSession, scout_id: str, amount: int) -> int:
        result = await db.execute(_DEBIT_EARNINGS_SQL, {"id": scout_id, "amount": amount})
        return int(result.scalar_one())

    async def list_recruit_bounties(
        self, db: AsyncSession, scout_id: str
    ) -> list[RecruitBounty]:
        result = await db.execute(_LIST_RECRUIT_BOUNTIES_SQL, {"scout_id": scout_id})
        return [
            RecruitBounty(
                recruit_id=str(row.recruit_id),
                recruit_name=row.name,
                recruit_email=row.email,
                first_sale_amount=row.first_sale_amount,
                bounty_amount=row.bounty_amount,
                credited_at=row.credited_at,
            )
            for row in result.fetchall()
        ]

    async def leaderboard(self, db: AsyncSession, limit: int) -> list[ScoutRanking]:
        result = await db.execute(_LEADERBOARD_SQL, {"limit": limit})
        return [
            ScoutRanking(
                scout_id=row.scout_id,
                user_id=str(row.user_id),
                user_name=row.name,
                user_email=row.email,
                recruits_count=row.recruits_count,
                earnings=row.earnings,
            )
            for row in result.fetchall()
        ]
