# src/cx_admin/api/router.py
"""Admin REST API."""
from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.cx_admin.application.service import AdminService
from src.cx_common.database import get_db_session
from src.cx_common.response import ApiResponse, wrap
from src.cx_gateway.actor import require_admin

router = APIRouter(prefix="/admin", tags=["admin"])
_service = AdminService()


@router.post("/sweep")
async def sweep(
    request: Request,
    admin_ref: Annotated[str, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    return wrap(request, await _service.sweep(db))
