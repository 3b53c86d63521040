"""Pydantic schemas for cm_scout API."""

from pydantic import BaseModel

from src.cm_common.paise import paise_to_display
from src.cm_scout.domain.models import RecruitBounty, ScoutRanking


class RegisterScoutResponse(BaseModel):
    scout_id: str
    message: str = "Successfully registered as scout"


class RecruitBountyItem(BaseModel):
    recruit_id: str
    recruit_name: str
    recruit_email: str
    first_sale_amount_paise: int | None
    first_sale_amount_display: str | None
    bounty_earned_paise: int
    bounty_earned_display: str
    credited_at: str | None

    @classmethod
    def from_bounty(cls, b: RecruitBounty) -> "RecruitBountyItem":
        return cls(
            recruit_id=b.recruit_id,
            recruit_name=b.recruit_name,
            recruit_email=b.recruit_email,
            first_sale_amount_paise=b.first_sale_amount,
            first_sale_amount_display=(
                paise_to_display(b.first_sale_amount) if b.first_sale_amount is not None else None
            ),
            bounty_earned_paise=b.bounty_amount,
            bounty_earned_display=paise_to_display(b.bounty_amount),
            credited_at=b.credited_at.isoformat() if b.credited_at else None,
        )


class ScoutEarningsResponse(BaseModel):
    scout_id: str
    status: str
    recruits_count: int
    earnings_paise: int
    earnings_display: str
    available_paise: int
    available_display: str
    lifetime_bounties_paise: int
    lifetime_bounties_display: str
    bounty_per_recruit_paise: int
    bounty_per_recruit_display: str
    breakdown: list[RecruitBountyItem]


class LeaderboardItem(BaseModel):
    rank: int
    scout_id: str
    user_id: str
    user_name: str
    user_email: str
    recruits_count: int
    earnings_paise: int
    earnings_display: str

    @classmethod
    def from_ranking(cls, rank: int, r: ScoutRanking) -> "LeaderboardItem":
        return cls(
            rank=rank,
            scout_id=r.scout_id,
            user_id=r.user_id,
            user_name=r.user_name,
            user_email=r.user_email,
            recruits_count=r.recruits_count,
            earnings_paise=r.earnings,
            earnings_display=paise_to_display(r.earnings),
        )
