"""Pydantic schemas for cm_payout API."""

from datetime import date

from pydantic import BaseModel, Field

from src.cm_common.enums import PayoutStatus
from src.cm_common.paise import paise_to_display
from src.cm_payout.domain.models import Payout, SettlementReport, StatusSummary

# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class RequestPayoutRequest(BaseModel):
    # None = withdraw all available earnings; non-positive values are rejected by the ledger
    amount_paise: int | None = Field(None, description="Amount to withdraw in paise")


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class PayoutItem(BaseModel):
    id: str
    user_id: str
    payout_type: str
    status: str
    amount_paise: int
    amount_display: str
    order_id: str | None
    scout_id: str | None
    payment_reference: str | None
    failure_reason: str | None
    processed_at: str | None
    completed_at: str | None
    created_at: str

    @classmethod
    def from_payout(cls, p: Payout) -> "PayoutItem":
        return cls(
            id=p.id,
            user_id=p.user_id,
            payout_type=p.payout_type.value,
            status=p.status.value,
            amount_paise=p.amount,
            amount_display=paise_to_display(p.amount),
            order_id=p.order_id,
            scout_id=p.scout_id,
            payment_reference=p.payment_reference,
            failure_reason=p.failure_reason,
            processed_at=p.processed_at.isoformat() if p.processed_at else None,
            completed_at=p.completed_at.isoformat() if p.completed_at else None,
            created_at=p.created_at.isoformat() if p.created_at else "",
        )


class UserPayoutsResponse(BaseModel):
    items: list[PayoutItem]
    total_paid_paise: int
    total_paid_display: str
    payable_paise: int
    payable_display: str
    pending_paise: int
    pending_display: str

    @classmethod
    def from_totals(
        cls, items: list[PayoutItem], totals: dict[PayoutStatus, int]
    ) -> "UserPayoutsResponse":
        paid = totals.get(PayoutStatus.COMPLETED, 0)
        payable = totals.get(PayoutStatus.PAYABLE, 0)
        # In flight from the user's point of view
        pending = totals.get(PayoutStatus.PENDING, 0) + totals.get(PayoutStatus.PROCESSING, 0)
        return cls(
            items=items,
            total_paid_paise=paid,
            total_paid_display=paise_to_display(paid),
            payable_paise=payable,
            payable_display=paise_to_display(payable),
            pending_paise=pending,
            pending_display=paise_to_display(pending),
        )


class StatusSummaryItem(BaseModel):
    count: int
    amount_paise: int
    amount_display: str

    @classmethod
    def from_summary(cls, s: StatusSummary) -> "StatusSummaryItem":
        return cls(count=s.count, amount_paise=s.amount, amount_display=paise_to_display(s.amount))


class AdminPayoutListResponse(BaseModel):
    items: list[PayoutItem]
    total: int
    page: int
    limit: int
    total_pages: int
    summary: dict[str, StatusSummaryItem] | None = None


class NextPaymentDateResponse(BaseModel):
    next_payment_date: date
    maturation_days: int


class SettlementReportResponse(BaseModel):
    selected: int
    completed: int
    failed: int
    cancelled: int
    skipped: int
    errors: int
    payout_ids: list[str]

    @classmethod
    def from_report(cls, r: SettlementReport) -> "SettlementReportResponse":
        return cls(
            selected=r.selected,
            completed=r.completed,
            failed=r.failed,
            cancelled=r.cancelled,
            skipped=r.skipped,
            errors=r.errors,
            payout_ids=list(r.payout_ids),
        )
