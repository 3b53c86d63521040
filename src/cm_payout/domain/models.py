"""Payout domain models — pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass, field
from datetime import datetime

from src.cm_common.enums import PayoutStatus, PayoutType


@dataclass
class Payout:
    id: str
    user_id: str
    payout_type: PayoutType
    amount: int  # paise, always > 0
    status: PayoutStatus = PayoutStatus.PAYABLE
    order_id: str | None = None  # set for SELLER_PAYOUT and order-driven bounties
    scout_id: str | None = None  # set for REFERRAL_BOUNTY
    payment_reference: str | None = None
    failure_reason: str | None = None
    processed_at: datetime | None = None
    completed_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def __post_init__(self) -> None:
        self.payout_type = PayoutType(self.payout_type)
        self.status = PayoutStatus(self.status)
        if isinstance(self.amount, bool) or not isinstance(self.amount, int) or self.amount <= 0:
            raise ValueError(f"Payout {self.id}: amount must be a positive int, got {self.amount!r}")

    @property
    def is_bounty(self) -> bool:
        return self.payout_type == PayoutType.REFERRAL_BOUNTY


@dataclass
class StatusSummary:
    """Count and amount of payouts in one status."""

    count: int = 0
    amount: int = 0


@dataclass
class SettlementReport:
    """Aggregate outcome of one settlement run."""

    selected: int = 0
    completed: int = 0
    failed: int = 0
    cancelled: int = 0
    skipped: int = 0  # lost a race or left PROCESSING after a timeout
    errors: int = 0  # unit of work raised; payout left as it was
    payout_ids: list[str] = field(default_factory=list)

    def merge(self, other: "SettlementReport") -> None:
        self.selected += other.selected
        self.completed += other.completed
        self.failed += other.failed
        self.cancelled += other.cancelled
        self.skipped += other.skipped
        self.errors += other.errors
        self.payout_ids.extend(other.payout_ids)
