"""cm_scout REST API — registration, earnings, leaderboard and withdrawals."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_auth.dependencies import CallerIdentity, get_current_user
from src.cm_common.database import get_db_session
from src.cm_common.response import ApiResponse, success_response
from src.cm_payout.application.ledger import PayoutLedger
from src.cm_payout.application.schemas import RequestPayoutRequest
from src.cm_scout.application.service import ScoutApplicationService

router = APIRouter(prefix="/scouts", tags=["scouts"])

_service = ScoutApplicationService()
_ledger = PayoutLedger()


@router.post("/register", status_code=201)
async def register(
    caller: Annotated[CallerIdentity, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.register(db, caller.user_id)
    return success_response(data.model_dump(), request)


@router.get("/leaderboard")
async def leaderboard(
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    limit: int = Query(10, ge=1, le=100),
) -> ApiResponse:
    items = await _service.leaderboard(db, limit)
    return success_response([i.model_dump() for i in items], request)


@router.get("/{scout_id}/earnings")
async def earnings(
    scout_id: str,
    caller: Annotated[CallerIdentity, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.get_earnings(db, scout_id, caller.user_id, caller.is_admin)
    return success_response(data.model_dump(), request)


@router.post("/{scout_id}/request-payout", status_code=201)
async def request_payout(
    scout_id: str,
    caller: Annotated[CallerIdentity, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    body: RequestPayoutRequest | None = None,
) -> ApiResponse:
    amount = body.amount_paise if body else None
    data = await _ledger.request_payout(db, scout_id, caller.user_id, amount)
    return success_response(data.model_dump(), request)
