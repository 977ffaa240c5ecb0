# src/cx_catalog/api/router.py
"""Item and listing REST API."""
from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.cx_catalog.application.schemas import CreateListingRequest
from src.cx_catalog.application.service import CatalogApplicationService
from src.cx_common.database import get_db_session
from src.cx_common.response import ApiResponse, wrap
from src.cx_gateway.actor import get_actor_ref

items_router = APIRouter(prefix="/items", tags=["items"])
listings_router = APIRouter(prefix="/listings", tags=["listings"])
_service = CatalogApplicationService()


@items_router.get("/{item_id}")
async def get_item(
    request: Request,
    item_id: str,
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    return wrap(request, await _service.get_item(db, item_id))


@items_router.post("/{item_id}/reserve")
async def reserve_item(
    request: Request,
    item_id: str,
    actor_ref: Annotated[str, Depends(get_actor_ref)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    return wrap(request, await _service.reserve(db, item_id, actor_ref))


@items_router.post("/{item_id}/purchase", status_code=201)
async def purchase_item(
    request: Request,
    item_id: str,
    actor_ref: Annotated[str, Depends(get_actor_ref)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    return wrap(request, await _service.purchase(db, item_id, actor_ref))


@listings_router.post("", status_code=201)
async def create_listing(
    request: Request,
    body: CreateListingRequest,
    actor_ref: Annotated[str, Depends(get_actor_ref)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    return wrap(request, await _service.create_listing(db, actor_ref, body))


@listings_router.get("/{listing_id}")
async def get_listing(
    request: Request,
    listing_id: str,
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    return wrap(request, await _service.get_listing(db, listing_id))


@listings_router.post("/{listing_id}/cancel")
async def cancel_listing(
    request: Request,
    listing_id: str,
    actor_ref: Annotated[str, Depends(get_actor_ref)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    return wrap(request, await _service.cancel_listing(db, listing_id, actor_ref))


@listings_router.post("/{listing_id}/buy")
async def buy_listing(
    request: Request,
    listing_id: str,
    actor_ref: Annotated[str, Depends(get_actor_ref)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    return wrap(request, await _service.buy_listing(db, listing_id, actor_ref))
