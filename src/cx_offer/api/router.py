# src/cx_offer/api/router.py
"""Offer negotiation REST API.

Each action returns the resulting offer, or the structured error envelope.
"""
from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.cx_common.database import get_db_session
from src.cx_common.response import ApiResponse, wrap
from src.cx_gateway.actor import get_actor_ref
from src.cx_offer.application.schemas import CounterOfferRequest, ProposeOfferRequest
from src.cx_offer.application.service import OfferApplicationService

router = APIRouter(prefix="/offers", tags=["offers"])
_service = OfferApplicationService()


@router.post("", status_code=201)
async def propose_offer(
    request: Request,
    body: ProposeOfferRequest,
    actor_ref: Annotated[str, Depends(get_actor_ref)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    return wrap(request, await _service.propose(db, actor_ref, body))


@router.get("/{offer_id}")
async def get_offer(
    request: Request,
    offer_id: str,
    actor_ref: Annotated[str, Depends(get_actor_ref)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    return wrap(request, await _service.get_offer(db, offer_id, actor_ref))


@router.post("/{offer_id}/counter")
async def counter_offer(
    request: Request,
    offer_id: str,
    body: CounterOfferRequest,
    actor_ref: Annotated[str, Depends(get_actor_ref)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    return wrap(
        request, await _service.counter(db, offer_id, actor_ref, body.counter_amount_cents)
    )


@router.post("/{offer_id}/accept")
async def accept_offer(
    request: Request,
    offer_id: str,
    actor_ref: Annotated[str, Depends(get_actor_ref)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    return wrap(request, await _service.accept(db, offer_id, actor_ref))


@router.post("/{offer_id}/reject")
async def reject_offer(
    request: Request,
    offer_id: str,
    actor_ref: Annotated[str, Depends(get_actor_ref)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    return wrap(request, await _service.reject(db, offer_id, actor_ref))


@router.post("/{offer_id}/cancel")
async def cancel_offer(
    request: Request,
    offer_id: str,
    actor_ref: Annotated[str, Depends(get_actor_ref)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    return wrap(request, await _service.cancel(db, offer_id, actor_ref))
