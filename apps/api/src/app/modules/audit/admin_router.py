"""
Audit Log Router

- GET /admin/audit-logs - Read the audit trail, newest first (super admin only)

Filter either by target (``target_type`` and ``target_id`` together) or by
``action_type``.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import Principal, get_current_super_admin
from app.core.database import get_db
from app.modules.audit import trail
from app.modules.audit.models import AuditActionType, AuditTargetType
from app.modules.audit.schemas import AuditEntryResponse, AuditLogResponse

router = APIRouter()


@router.get("", response_model=AuditLogResponse)
async def list_audit_logs(
    target_type: AuditTargetType | None = Query(None),
    target_id: UUID | None = Query(None),
    action_type: AuditActionType | None = Query(None),
    limit: int = Query(50, ge=1, le=trail.MAX_QUERY_LIMIT),
    principal: Principal = Depends(get_current_super_admin),
    db: AsyncSession = Depends(get_db),
) -> AuditLogResponse:
    if (target_type is None) != (target_id is None):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "error": "INVALID_FILTER",
                "message": "target_type and target_id must be given together.",
            },
        )

    if target_type is not None:
        entries = await trail.list_for_target(db, target_type, target_id, limit=limit)
    else:
        entries = await trail.list_recent(db, action_type=action_type, limit=limit)

    return AuditLogResponse(
        items=[AuditEntryResponse.model_validate(e) for e in entries],
        count=len(entries),
    )
