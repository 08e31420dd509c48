"""Audit router — read-only access to the audit trail."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from src.audit.service import list_audit_logs, audit_stats
from src.core.database import get_db
from src.core.schemas import StandardResponse, PaginatedResponse

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/admin/audit-logs",
    tags=["Audit"]
)


@router.get("", response_model=PaginatedResponse[dict], summary="List Audit Logs")
async def get_audit_logs(
    entity_type: Optional[str] = None,
    action: Optional[str] = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    session: AsyncSession = Depends(get_db),
):
    """Audit entries, newest first."""
    rows, total = await list_audit_logs(
        session, entity_type=entity_type, action=action, limit=limit, offset=offset
    )
    return PaginatedResponse(data=rows, total=total, limit=limit, offset=offset)


@router.get("/stats", response_model=StandardResponse[dict], summary="Audit Log Stats")
async def get_audit_stats(session: AsyncSession = Depends(get_db)):
    return StandardResponse(data=await audit_stats(session))
