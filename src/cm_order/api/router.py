"""cm_order REST API — order lifecycle, payment initiation and the gateway webhook."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_auth.dependencies import CallerIdentity, get_current_user
from src.cm_common.database import get_db_session
from src.cm_common.response import ApiResponse, success_response
from src.cm_order.application.schemas import CompleteOrderRequest, CreateOrderRequest
from src.cm_order.application.service import OrderApplicationService
from src.cm_payment.domain.models import NotificationCredentials

router = APIRouter(prefix="/orders", tags=["orders"])

_service = OrderApplicationService()


@router.post("", status_code=201)
async def create_order(
    body: CreateOrderRequest,
    caller: Annotated[CallerIdentity, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.create_order(
        db, body.listing_id, caller.user_id, body.meeting_location, body.meeting_time
    )
    return success_response(data.model_dump(), request)


@router.get("")
async def list_orders(
    caller: Annotated[CallerIdentity, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    cursor: str | None = Query(None, description="Pagination cursor (opaque Base64)"),
    limit: int = Query(20, ge=1, le=100, description="Items per page"),
) -> ApiResponse:
    data = await _service.list_orders(db, caller.user_id, cursor, limit)
    return success_response(data.model_dump(), request)


@router.post("/webhook")
async def payment_webhook(
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    """Gateway callback. Authenticated by its own credentials, not by a user token."""
    raw_body = await request.body()
    credentials = NotificationCredentials(
        authorization=request.headers.get("authorization"),
        signature=request.headers.get("x-verify"),
    )
    data = await _service.apply_payment_result(db, raw_body, credentials)
    return success_response(data.model_dump(), request)


@router.get("/{order_id}")
async def get_order(
    order_id: str,
    caller: Annotated[CallerIdentity, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.get_order(db, order_id, caller.user_id, caller.is_admin)
    return success_response(data.model_dump(), request)


@router.get("/{order_id}/status")
async def get_order_status(
    order_id: str,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.get_order_status(db, order_id)
    return success_response(data.model_dump(), request)


@router.post("/{order_id}/payment")
async def initiate_payment(
    order_id: str,
    caller: Annotated[CallerIdentity, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.initiate_payment(db, order_id, caller.user_id)
    return success_response(data.model_dump(), request)


@router.patch("/{order_id}/complete")
async def complete_order(
    order_id: str,
    caller: Annotated[CallerIdentity, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    body: CompleteOrderRequest | None = None,
) -> ApiResponse:
    meeting_time = body.meeting_time if body else None
    data = await _service.complete_order(db, order_id, caller.user_id, meeting_time)
    return success_response(data.model_dump(), request)
