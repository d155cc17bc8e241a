"""
Audit Log API Endpoints.

Read-only view of the fleet audit trail.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from fleet_backend.app.db.session import get_db
from fleet_backend.app.schemas.audit import AuditLogListResponse, AuditLogResponse
from fleet_backend.app.services.audit import get_audit_trail

router = APIRouter(prefix="/audit-logs", tags=["Audit"])


@router.get("", response_model=AuditLogListResponse)
async def list_audit_logs(
    entity_type: Optional[str] = Query(None, description="VEHICLE or DRIVER"),
    entity_id: Optional[int] = Query(None),
    action: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_db)
):
    """List audit events, most recent first."""
    logs, total = await get_audit_trail(
        db,
        entity_type=entity_type,
        entity_id=entity_id,
        action=action,
        limit=limit
    )
    return AuditLogListResponse(
        logs=[AuditLogResponse.model_validate(log) for log in logs],
        total=total
    )
