"""FastAPI application entry point.

Run with: uvicorn src.main:app --reload --port 8000
"""

# ruff: noqa: E402  -- uvloop.install() must run before other imports

import uvloop

uvloop.install()

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text

from config.settings import settings
from src.cx_admin.api.router import router as admin_router
from src.cx_admin.application.sweeper import start_sweeper, stop_sweeper
from src.cx_auction.api.router import router as auction_router
from src.cx_catalog.api.router import items_router, listings_router
from src.cx_common.database import engine
from src.cx_common.errors import AppError
from src.cx_common.redis_client import check_redis, close_redis
from src.cx_common.response import error_response
from src.cx_gateway.middleware.request_log import RequestLogMiddleware
from src.cx_offer.api.router import router as offer_router
from src.cx_release.api.router import router as phase_router


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup: verify DB, ping Redis, start sweeper. Shutdown: dispose."""
    # Startup
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
    await check_redis()
    sweeper = start_sweeper(settings.SWEEP_INTERVAL_SECONDS)
    yield
    # Shutdown
    await stop_sweeper(sweeper)
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
    resp = error_response(exc.code, exc.message)
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return JSONResponse(
        status_code=exc.http_status,
        content=resp.model_dump(),
    )


app.include_router(phase_router, prefix="/api/v1")
app.include_router(items_router, prefix="/api/v1")
app.include_router(listings_router, prefix="/api/v1")
app.include_router(offer_router, prefix="/api/v1")
app.include_router(auction_router, prefix="/api/v1")
app.include_router(admin_router, prefix="/api/v1")


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok", "version": "0.1.0"}
