"""
Mosque Admin Management Router

Super admin endpoints for deciding on and managing mosque admins.

Endpoints:
- GET /admin/admins - List admins, optionally filtered by status
- POST /admin/admins/{id}/approve - Approve a pending admin
- POST /admin/admins/{id}/reject - Reject a pending admin
- POST /admin/admins/{id}/allow-reapply - Re-enable reapplication
- POST /admin/admins/{id}/remove - Remove an approved admin

All endpoints require a full-access super admin token. Action endpoints are
rate limited per super admin.
"""

import logging
import math
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import Principal, get_current_super_admin
from app.core.database import get_db
from app.core.rate_limit import RateLimitExceeded, check_rate_limit
from app.modules.admins import service
from app.modules.admins.models import AdminStatus
from app.modules.admins.schemas import (
    AdminDetailResponse,
    AdminListResponse,
    AllowReapplyRequest,
    ApproveRequest,
    RejectRequest,
    RemoveRequest,
)
from app.modules.audit.trail import Actor
from app.modules.shared.errors import ServiceError, to_http_exception

logger = logging.getLogger(__name__)

router = APIRouter()

RATE_LIMIT_APPROVE = (10, 60)  # 10 approvals per minute
RATE_LIMIT_REJECT = (10, 60)
RATE_LIMIT_REMOVE = (10, 60)
RATE_LIMIT_ALLOW_REAPPLY = (20, 60)


async def _check_super_admin_rate_limit(
    principal: Principal,
    action: str,
    limit: int,
    window_seconds: int,
) -> None:
    key = f"super_admin:{action}:{principal.id}"
    if not await check_rate_limit(key, limit, window_seconds):
        logger.warning(
            f"Rate limit exceeded for super admin {principal.id} on action '{action}': "
            f"{limit}/{window_seconds}s"
        )
        raise RateLimitExceeded(limit, window_seconds)


@router.get("", response_model=AdminListResponse)
async def list_admins(
    status: AdminStatus | None = Query(None, description="Filter by lifecycle status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    principal: Principal = Depends(get_current_super_admin),
    db: AsyncSession = Depends(get_db),
) -> AdminListResponse:
    admins, total = await service.list_admins(db, status, page=page, page_size=page_size)
    return AdminListResponse(
        items=[AdminDetailResponse.from_admin(a) for a in admins],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=math.ceil(total / page_size) if total else 0,
    )


@router.post("/{admin_id}/approve", response_model=AdminDetailResponse)
async def approve_admin(
    admin_id: UUID,
    data: ApproveRequest | None = None,
    principal: Principal = Depends(get_current_super_admin),
    db: AsyncSession = Depends(get_db),
) -> AdminDetailResponse:
    """
    Approve a pending admin for the mosque they registered with.

    Fails with ALREADY_APPROVED_FOR_MOSQUE if that mosque already has an
    approved admin.
    """
    await _check_super_admin_rate_limit(principal, "approve", *RATE_LIMIT_APPROVE)

    try:
        admin = await service.approve(
            db,
            admin_id,
            Actor.from_principal(principal),
            notes=data.notes if data else None,
        )
    except ServiceError as e:
        raise to_http_exception(e) from e

    logger.info(f"Super admin {principal.id} approved admin {admin_id}")
    return AdminDetailResponse.from_admin(admin)


@router.post("/{admin_id}/reject", response_model=AdminDetailResponse)
async def reject_admin(
    admin_id: UUID,
    data: RejectRequest,
    principal: Principal = Depends(get_current_super_admin),
    db: AsyncSession = Depends(get_db),
) -> AdminDetailResponse:
    await _check_super_admin_rate_limit(principal, "reject", *RATE_LIMIT_REJECT)

    try:
        admin = await service.reject(
            db,
            admin_id,
            Actor.from_principal(principal),
            reason=data.reason,
            can_reapply=data.can_reapply,
        )
    except ServiceError as e:
        raise to_http_exception(e) from e

    return AdminDetailResponse.from_admin(admin)


@router.post("/{admin_id}/allow-reapply", response_model=AdminDetailResponse)
async def allow_reapply(
    admin_id: UUID,
    data: AllowReapplyRequest | None = None,
    principal: Principal = Depends(get_current_super_admin),
    db: AsyncSession = Depends(get_db),
) -> AdminDetailResponse:
    """Re-enable reapplication for a rejected, removed or mosque-deleted admin."""
    await _check_super_admin_rate_limit(principal, "allow_reapply", *RATE_LIMIT_ALLOW_REAPPLY)

    try:
        admin = await service.allow_reapply(
            db,
            admin_id,
            Actor.from_principal(principal),
            notes=data.notes if data else None,
        )
    except ServiceError as e:
        raise to_http_exception(e) from e

    return AdminDetailResponse.from_admin(admin)


@router.post("/{admin_id}/remove", response_model=AdminDetailResponse)
async def remove_admin(
    admin_id: UUID,
    data: RemoveRequest,
    principal: Principal = Depends(get_current_super_admin),
    db: AsyncSession = Depends(get_db),
) -> AdminDetailResponse:
    """Remove an approved admin from their mosque."""
    await _check_super_admin_rate_limit(principal, "remove", *RATE_LIMIT_REMOVE)

    try:
        admin = await service.remove(
            db,
            admin_id,
            Actor.from_principal(principal),
            reason=data.reason,
            can_reapply=data.can_reapply,
        )
    except ServiceError as e:
        raise to_http_exception(e) from e

    return AdminDetailResponse.from_admin(admin)
