"""PayoutRepository — raw SQL persistence implementation."""

from datetime import datetime
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_common.enums import PayoutStatus, PayoutType
from src.cm_payout.domain.models import Payout, StatusSummary
from src.cm_payout.domain.state_machine import OPEN_STATUSES

_COLUMNS = """
    id, user_id, payout_type, status, amount, order_id, scout_id,
    payment_reference, failure_reason, processed_at, completed_at,
    created_at, updated_at
"""

# The partial unique index uq_payouts_seller_order makes SELLER_PAYOUT unique per order
_INSERT_PAYOUT_SQL = text(f"""
    INSERT INTO payouts (id, user_id, payout_type, status, amount, order_id, scout_id)
    VALUES (:id, :user_id, :payout_type, :status, :amount, :order_id, :scout_id)
    ON CONFLICT (order_id) WHERE payout_type = 'SELLER_PAYOUT' DO NOTHING
    RETURNING {_COLUMNS}
""")

_GET_PAYOUT_SQL = text(f"SELECT {_COLUMNS} FROM payouts WHERE id = :id")

_GET_PAYOUT_FOR_UPDATE_SQL = text(f"SELECT {_COLUMNS} FROM payouts WHERE id = :id FOR UPDATE")

_GET_SELLER_PAYOUT_SQL = text(f"""
    SELECT {_COLUMNS} FROM payouts
    WHERE order_id = :order_id AND payout_type = 'SELLER_PAYOUT'
""")

_TRANSITION_PAYOUT_SQL = text(f"""
    UPDATE payouts
    SET status = :to_status,
        processed_at = COALESCE(:processed_at, processed_at),
        completed_at = COALESCE(:completed_at, completed_at),
        payment_reference = COALESCE(:payment_reference, payment_reference),
        failure_reason = COALESCE(:failure_reason, failure_reason),
        updated_at = NOW()
    WHERE id = :id AND status = :from_status
    RETURNING {_COLUMNS}
""")

_RESET_FOR_RETRY_SQL = text(f"""
    UPDATE payouts
    SET status = 'PENDING',
        failure_reason = NULL,
        processed_at = NULL,
        completed_at = NULL,
        payment_reference = NULL,
        updated_at = NOW()
    WHERE id = :id AND status = 'FAILED'
    RETURNING {_COLUMNS}
""")

_LIST_MATURED_PAYABLE_SQL = text(f"""
    SELECT {_COLUMNS} FROM payouts
    WHERE status = 'PAYABLE' AND created_at <= :cutoff
    ORDER BY created_at ASC, id ASC
    LIMIT :limit
""")

_LIST_IDS_BY_STATUS_SQL = text("""
    SELECT id FROM payouts
    WHERE status = :status
    ORDER BY created_at ASC, id ASC
""")

_LIST_STALE_PROCESSING_SQL = text(f"""
    SELECT {_COLUMNS} FROM payouts
    WHERE status = 'PROCESSING' AND processed_at <= :cutoff
    ORDER BY processed_at ASC
""")

_LIST_FOR_USER_SQL = text(f"""
    SELECT {_COLUMNS} FROM payouts
    WHERE user_id = :user_id
    ORDER BY created_at DESC, id DESC
    LIMIT :limit
""")

_TOTALS_FOR_USER_SQL = text("""
    SELECT status, COALESCE(SUM(amount), 0) AS total
    FROM payouts
    WHERE user_id = :user_id
    GROUP BY status
""")

_LIST_ALL_SQL = text(f"""
    SELECT {_COLUMNS} FROM payouts
    WHERE (CAST(:status AS TEXT) IS NULL OR status = :status)
    ORDER BY created_at DESC, id DESC
    OFFSET :offset LIMIT :limit
""")

_COUNT_ALL_SQL = text("""
    SELECT COUNT(*) FROM payouts
    WHERE (CAST(:status AS TEXT) IS NULL OR status = :status)
""")

_SUMMARY_BY_STATUS_SQL = text("""
    SELECT status, COUNT(*) AS n, COALESCE(SUM(amount), 0) AS total
    FROM payouts
    GROUP BY status
""")

_OPEN_BOUNTY_TOTAL_SQL = text("""
    SELECT COALESCE(SUM(amount), 0)
    FROM payouts
    WHERE scout_id = :scout_id
      AND payout_type = 'REFERRAL_BOUNTY'
      AND status = ANY(:statuses)
""")


def _row_to_payout(row: Any) -> Payout:
    return Payout(
        id=row.id,
        user_id=row.user_id,
        payout_type=PayoutType(row.payout_type),
        status=PayoutStatus(row.status),
        amount=row.amount,
        order_id=row.order_id,
        scout_id=row.scout_id,
        payment_reference=row.payment_reference,
        failure_reason=row.failure_reason,
        processed_at=row.processed_at,
        completed_at=row.completed_at,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


class PayoutRepository:
    """Concrete implementation of PayoutRepositoryProtocol using raw SQL."""

    async def insert(self, db: AsyncSession, payout: Payout) -> bool:
        result = await db.execute(
            _INSERT_PAYOUT_SQL,
            {
                "id": payout.id,
                "user_id": payout.user_id,
                "payout_type": payout.payout_type.value,
                "status": payout.status.value,
                "amount": payout.amount,
                "order_id": payout.order_id,
                "scout_id": payout.scout_id,
            },
        )
        row = result.fetchone()
        if row is None:
            return False
        payout.created_at = row.created_at
        payout.updated_at = row.updated_at
        return True

    async def get_by_id(
        self, db: AsyncSession, payout_id: str, for_update: bool = False
    ) -> Payout | None:
        sql = _GET_PAYOUT_FOR_UPDATE_SQL if for_update else _GET_PAYOUT_SQL
        row = (await db.execute(sql, {"id": payout_id})).fetchone()
        return _row_to_payout(row) if row else None

    async def get_seller_payout_for_order(
        self, db: AsyncSession, order_id: str
    ) -> Payout | None:
        row = (await db.execute(_GET_SELLER_PAYOUT_SQL, {"order_id": order_id})).fetchone()
        return _row_to_payout(row) if row else None

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
        result = await db.execute(
            _TRANSITION_PAYOUT_SQL,
            {
                "id": payout_id,
                "from_status": PayoutStatus(from_status).value,
                "to_status": PayoutStatus(to_status).value,
                "processed_at": processed_at,
                "completed_at": completed_at,
                "payment_reference": payment_reference,
                "failure_reason": failure_reason,
            },
        )
        row = result.fetchone()
        return _row_to_payout(row) if row else None

    async def reset_for_retry(self, db: AsyncSession, payout_id: str) -> Payout | None:
        row = (await db.execute(_RESET_FOR_RETRY_SQL, {"id": payout_id})).fetchone()
        return _row_to_payout(row) if row else None

    async def list_matured_payable(
        self, db: AsyncSession, cutoff: datetime, limit: int | None = None
    ) -> list[Payout]:
        result = await db.execute(_LIST_MATURED_PAYABLE_SQL, {"cutoff": cutoff, "limit": limit})
        return [_row_to_payout(row) for row in result.fetchall()]

    async def list_ids_by_status(self, db: AsyncSession, status: PayoutStatus) -> list[str]:
        result = await db.execute(_LIST_IDS_BY_STATUS_SQL, {"status": PayoutStatus(status).value})
        return [row.id for row in result.fetchall()]

    async def list_stale_processing(self, db: AsyncSession, cutoff: datetime) -> list[Payout]:
        result = await db.execute(_LIST_STALE_PROCESSING_SQL, {"cutoff": cutoff})
        return [_row_to_payout(row) for row in result.fetchall()]

    async def list_for_user(self, db: AsyncSession, user_id: str, limit: int) -> list[Payout]:
        result = await db.execute(_LIST_FOR_USER_SQL, {"user_id": user_id, "limit": limit})
        return [_row_to_payout(row) for row in result.fetchall()]

    async def totals_for_user(self, db: AsyncSession, user_id: str) -> dict[PayoutStatus, int]:
        result = await db.execute(_TOTALS_FOR_USER_SQL, {"user_id": user_id})
        return {PayoutStatus(row.status): int(row.total) for row in result.fetchall()}

    async def list_all(
        self, db: AsyncSession, status: PayoutStatus | None, offset: int, limit: int
    ) -> list[Payout]:
        result = await db.execute(
            _LIST_ALL_SQL,
            {
                "status": PayoutStatus(status).value if status else None,
                "offset": offset,
                "limit": limit,
            },
        )
        return [_row_to_payout(row) for row in result.fetchall()]

    async def count_all(self, db: AsyncSession, status: PayoutStatus | None) -> int:
        result = await db.execute(
            _COUNT_ALL_SQL, {"status": PayoutStatus(status).value if status else None}
        )
        return int(result.scalar_one())

    async def summary_by_status(self, db: AsyncSession) -> dict[PayoutStatus, StatusSummary]:
        result = await db.execute(_SUMMARY_BY_STATUS_SQL)
        return {
            PayoutStatus(row.status): StatusSummary(count=int(row.n), amount=int(row.total))
            for row in result.fetchall()
        }

    async def open_bounty_total(self, db: AsyncSession, scout_id: str) -> int:
        result = await db.execute(
            _OPEN_BOUNTY_TOTAL_SQL,
            {"scout_id": scout_id, "statuses": sorted(s.value for s in OPEN_STATUSES)},
        )
        return int(result.scalar_one())
