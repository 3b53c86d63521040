"""cm_payout REST API — payout history for users, settlement controls for admins."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.cm_auth.dependencies import CallerIdentity, get_current_user, require_admin
from src.cm_common.database import get_db_session
from src.cm_common.datetime_utils import next_payment_date, utc_now
from src.cm_common.enums import PayoutStatus
from src.cm_common.response import ApiResponse, success_response
from src.cm_payout.application.ledger import PayoutLedger
from src.cm_payout.application.schemas import NextPaymentDateResponse, SettlementReportResponse
from src.cm_payout.application.settlement import SettlementService

router = APIRouter(prefix="/payouts", tags=["payouts"])

_ledger = PayoutLedger()
_settlement = SettlementService(ledger=_ledger)


@router.get("/my-payouts")
async def my_payouts(
    caller: Annotated[CallerIdentity, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    limit: int = Query(20, ge=1, le=100, description="Items per page"),
) -> ApiResponse:
    data = await _ledger.list_payouts_for_user(db, caller.user_id, limit)
    return success_response(data.model_dump(), request)


@router.get("/next-payment-date")
async def get_next_payment_date(request: Request) -> ApiResponse:
    data = NextPaymentDateResponse(
        next_payment_date=next_payment_date(utc_now().date()),
        maturation_days=settings.PAYOUT_MATURATION_DAYS,
    )
    return success_response(data.model_dump(mode="json"), request)


@router.get("")
async def admin_list_payouts(
    _admin: Annotated[CallerIdentity, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    status: PayoutStatus | None = Query(None, description="Filter by payout status"),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
) -> ApiResponse:
    data = await _ledger.admin_list_payouts(db, status, page, limit)
    return success_response(data.model_dump(), request)


@router.post("/process-pending")
async def process_pending(
    _admin: Annotated[CallerIdentity, Depends(require_admin)],
    request: Request,
) -> ApiResponse:
    report = await _settlement.run_pending_batches()
    return success_response(SettlementReportResponse.from_report(report).model_dump(), request)


@router.post("/process/{payout_id}")
async def process_payout(
    payout_id: str,
    _admin: Annotated[CallerIdentity, Depends(require_admin)],
    request: Request,
) -> ApiResponse:
    data = await _settlement.admin_process_payout(payout_id)
    return success_response(data.model_dump(), request)


@router.post("/{payout_id}/retry")
async def retry_payout(
    payout_id: str,
    _admin: Annotated[CallerIdentity, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _ledger.retry(db, payout_id)
    return success_response(data.model_dump(), request)


@router.post("/{payout_id}/cancel")
async def cancel_payout(
    payout_id: str,
    _admin: Annotated[CallerIdentity, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _ledger.cancel(db, payout_id)
    return success_response(data.model_dump(), request)
