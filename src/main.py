"""FastAPI application entry point.

Run with: uvicorn src.main:app --reload --port 8000
"""

# ruff: noqa: E402  -- uvloop.install() must run before other imports

import uvloop

uvloop.install()

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text

from config.settings import settings
from src.cm_auth.middleware.request_log import RequestLogMiddleware
from src.cm_common.database import engine
from src.cm_common.errors import AppError
from src.cm_common.redis_client import close_redis, get_redis
from src.cm_common.response import error_response
from src.cm_order.api.router import router as order_router
from src.cm_payout.api.router import router as payout_router
from src.cm_payout.infrastructure.scheduler import SettlementScheduler
from src.cm_scout.api.router import router as scout_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup: verify DB + Redis connections, start the scheduler. Shutdown: reverse."""
    # Startup
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
    await get_redis()
    scheduler: SettlementScheduler | None = None
    if settings.SCHEDULER_ENABLED:
        scheduler = SettlementScheduler()
        scheduler.start()
    yield
    # Shutdown
    if scheduler is not None:
        scheduler.shutdown()
    await engine.dispose()
    await close_redis()


app = FastAPI(
    title=settings.APP_NAME,
    version="0.1.0",
    lifespan=lifespan,
)


app.add_middleware(RequestLogMiddleware)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.http_status >= 500:
        logger.error("AppError %d on %s: %s", exc.code, request.url.path, exc.message)
    resp = error_response(exc.code, exc.message)
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return JSONResponse(
        status_code=exc.http_status,
        content=resp.model_dump(),
    )


app.include_router(order_router, prefix="/api/v1")
app.include_router(payout_router, prefix="/api/v1")
app.include_router(scout_router, prefix="/api/v1")


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok", "version": "0.1.0"}
