"""Scout domain models — pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass
from datetime import datetime

from src.cm_common.enums import EarningEntryType, ScoutStatus

# reference_type values on earning entries
REF_SELLER = "SELLER"  # bounty credit, reference_id = recruited seller's user id
REF_PAYOUT = "PAYOUT"  # payout debit, reference_id = payout id


@dataclass
class Scout:
    id: str
    user_id: str
    status: ScoutStatus = ScoutStatus.ACTIVE
    recruits_count: int = 0
    earnings: int = 0  # paise, materialized balance of the earning entries
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def __post_init__(self) -> None:
        self.status = ScoutStatus(self.status)

    @property
    def is_active(self) -> bool:
        return self.status == ScoutStatus.ACTIVE


@dataclass
class ScoutEarningEntry:
    scout_id: str
    entry_type: EarningEntryType
    amount: int  # paise, positive=credit negative=debit
    earnings_after: int  # paise, scout.earnings snapshot after this entry
    reference_type: str
    reference_id: str
    id: int | None = None  # BIGSERIAL, assigned on insert
    created_at: datetime | None = None


@dataclass
class RecruitBounty:
    """One recruit whose first completed sale earned the scout a bounty."""

    recruit_id: str
    recruit_name: str
    recruit_email: str
    first_sale_amount: int | None  # paise; None if the completion event is gone
    bounty_amount: int
    credited_at: datetime | None


@dataclass
class ScoutRanking:
    scout_id: str
    user_id: str
    user_name: str
    user_email: str
    recruits_count: int
    earnings: int
