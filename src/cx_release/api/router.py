# src/cx_release/api/router.py
"""Release phase REST API.

Public: current phase, schedule, price quote.
Admin (X-Actor-Ref in ADMIN_ACTOR_REFS): pause/resume/advance/reset,
increase percent, per-phase duration, schedule creation.
"""
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.cx_common.database import get_db_session
from src.cx_common.response import ApiResponse, wrap
from src.cx_gateway.actor import require_admin
from src.cx_release.application.schemas import (
    CreateScheduleRequest,
    IncreasePercentRequest,
    PhaseDurationRequest,
)
from src.cx_release.application.service import ReleaseApplicationService

router = APIRouter(prefix="/phases", tags=["phases"])
_service = ReleaseApplicationService()


@router.get("/current")
async def get_current_phase(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    return wrap(request, await _service.get_current_phase(db))


@router.get("")
async def list_phases(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    return wrap(request, await _service.list_phases(db))


@router.get("/price-quote")
async def quote_price(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db_session)],
    score: int = Query(..., description="Collectible score, 0-500"),
) -> ApiResponse:
    return wrap(request, await _service.quote_price(db, score))


@router.post("/pause")
async def pause_phase(
    request: Request,
    admin_ref: Annotated[str, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    return wrap(request, await _service.pause(db, admin_ref))


@router.post("/resume")
async def resume_phase(
    request: Request,
    admin_ref: Annotated[str, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    return wrap(request, await _service.resume(db, admin_ref))


@router.post("/advance")
async def advance_phase(
    request: Request,
    admin_ref: Annotated[str, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    return wrap(request, await _service.advance(db, admin_ref))


@router.post("/reset")
async def reset_timer(
    request: Request,
    admin_ref: Annotated[str, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    return wrap(request, await _service.reset_timer(db, admin_ref))


@router.put("/increase-percent")
async def set_increase_percent(
    request: Request,
    body: IncreasePercentRequest,
    admin_ref: Annotated[str, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    return wrap(request, await _service.set_increase_rate(db, admin_ref, body.percent))


@router.put("/{index}/duration")
async def update_duration(
    request: Request,
    index: int,
    body: PhaseDurationRequest,
    admin_ref: Annotated[str, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    return wrap(
        request, await _service.update_duration(db, admin_ref, index, body.duration_seconds)
    )


@router.post("/schedule", status_code=201)
async def create_schedule(
    request: Request,
    body: CreateScheduleRequest,
    admin_ref: Annotated[str, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    return wrap(request, await _service.create_schedule(db, admin_ref, body))
