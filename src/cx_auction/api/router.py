# src/cx_auction/api/router.py
"""Auction REST API. Reads are public; opening and closing are admin-only."""
from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.cx_auction.application.schemas import CreateAuctionRequest, PlaceBidRequest
from src.cx_auction.application.service import AuctionApplicationService
from src.cx_common.database import get_db_session
from src.cx_common.response import ApiResponse, wrap
from src.cx_gateway.actor import get_actor_ref, require_admin

router = APIRouter(prefix="/auctions", tags=["auctions"])
_service = AuctionApplicationService()


@router.get("")
async def list_auctions(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    return wrap(request, await _service.list_active(db))


@router.get("/{auction_id}")
async def get_auction(
    request: Request,
    auction_id: str,
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    return wrap(request, await _service.get_auction(db, auction_id))


@router.post("", status_code=201)
async def create_auction(
    request: Request,
    body: CreateAuctionRequest,
    admin_ref: Annotated[str, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    return wrap(request, await _service.create(db, admin_ref, body))


@router.post("/{auction_id}/bid")
async def place_bid(
    request: Request,
    auction_id: str,
    body: PlaceBidRequest,
    actor_ref: Annotated[str, Depends(get_actor_ref)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    return wrap(request, await _service.place_bid(db, auction_id, actor_ref, body.amount_cents))


@router.post("/{auction_id}/finalize")
async def finalize_auction(
    request: Request,
    auction_id: str,
    admin_ref: Annotated[str, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    return wrap(request, await _service.finalize(db, auction_id))
