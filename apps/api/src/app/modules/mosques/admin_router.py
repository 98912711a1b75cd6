"""
Mosque Administration Router

Super admin endpoints for mosques and their verification codes.

Endpoints:
- POST /admin/mosques - Create a mosque and issue its first code
- GET /admin/mosques/expiring-codes - Codes expired or expiring soon
- GET /admin/mosques/{id}/verification - Current code, expiry and bound admins
- DELETE /admin/mosques/{id} - Delete a mosque (cascades to its admins)
- POST /admin/mosques/bulk-delete - Delete several mosques
- POST /admin/mosques/{id}/regenerate-code - Issue a new code
- POST /admin/mosques/regenerate-codes - Issue new codes for several mosques
- POST /admin/mosques/regenerate-expired-codes - Replace every expired code
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import Principal, get_current_super_admin
from app.core.database import get_db
from app.core.rate_limit import RateLimitExceeded, check_rate_limit
from app.modules.audit.trail import Actor
from app.modules.mosques import cascade, service
from app.modules.mosques.schemas import (
    BulkCodeRegenerationResult,
    BulkDeleteRequest,
    BulkMosqueDeletionResult,
    BulkRegenerateRequest,
    CodeRegenerationResult,
    DeleteMosqueRequest,
    ExpiringCodesReport,
    MosqueCreate,
    MosqueCreatedResponse,
    MosqueDeletionResult,
    MosqueResponse,
    MosqueVerificationInfo,
    RegenerateCodeRequest,
)
from app.modules.shared import as_utc
from app.modules.shared.errors import ServiceError, to_http_exception

logger = logging.getLogger(__name__)

router = APIRouter()

RATE_LIMIT_DELETE = (20, 60)
RATE_LIMIT_BULK = (5, 60)  # bulk operations per minute
RATE_LIMIT_REGENERATE = (30, 60)


async def _check_rate_limit(principal: Principal, action: str, limit: int, window: int) -> None:
    key = f"super_admin:{action}:{principal.id}"
    if not await check_rate_limit(key, limit, window):
        logger.warning(f"Rate limit exceeded for super admin {principal.id} on '{action}'")
        raise RateLimitExceeded(limit, window)


def _internal_error(action: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={
            "error": "INTERNAL_ERROR",
            "message": f"An unexpected error occurred while trying to {action}.",
        },
    )


@router.post("", response_model=MosqueCreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_mosque(
    data: MosqueCreate,
    principal: Principal = Depends(get_current_super_admin),
    db: AsyncSession = Depends(get_db),
) -> MosqueCreatedResponse:
    """Create a mosque. The response carries the code to hand to its future admin."""
    mosque = await service.create_mosque(db, data, Actor.from_principal(principal))
    return MosqueCreatedResponse(
        mosque=MosqueResponse.model_validate(mosque),
        verification_code=mosque.verification_code,
        verification_code_expires_at=as_utc(mosque.verification_code_expires_at),
    )


@router.get("/expiring-codes", response_model=ExpiringCodesReport)
async def list_expiring_codes(
    days_ahead: int | None = Query(None, ge=1, le=90),
    principal: Principal = Depends(get_current_super_admin),
    db: AsyncSession = Depends(get_db),
) -> ExpiringCodesReport:
    return await cascade.list_expiring_codes(db, days_ahead)


@router.get("/{mosque_id}/verification", response_model=MosqueVerificationInfo)
async def get_verification_info(
    mosque_id: UUID,
    principal: Principal = Depends(get_current_super_admin),
    db: AsyncSession = Depends(get_db),
) -> MosqueVerificationInfo:
    try:
        return await service.get_verification_info(db, mosque_id)
    except ServiceError as e:
        raise to_http_exception(e) from e


@router.delete("/{mosque_id}", response_model=MosqueDeletionResult)
async def delete_mosque(
    mosque_id: UUID,
    data: DeleteMosqueRequest | None = None,
    principal: Principal = Depends(get_current_super_admin),
    db: AsyncSession = Depends(get_db),
) -> MosqueDeletionResult:
    """
    Delete a mosque.

    Every admin bound to it is moved to mosque_deleted first, with the
    mosque's name and location recorded on their account. If any admin
    cannot be moved, the mosque is kept and the result lists the failures.
    """
    await _check_rate_limit(principal, "delete_mosque", *RATE_LIMIT_DELETE)
    data = data or DeleteMosqueRequest()

    try:
        return await cascade.delete_mosque(
            db,
            mosque_id,
            Actor.from_principal(principal),
            reason=data.reason,
            can_reapply=data.can_reapply,
        )
    except ServiceError as e:
        raise to_http_exception(e) from e
    except Exception as e:
        logger.exception(f"Unexpected error deleting mosque {mosque_id}: {e}")
        raise _internal_error("delete the mosque") from e


@router.post("/bulk-delete", response_model=BulkMosqueDeletionResult)
async def bulk_delete_mosques(
    data: BulkDeleteRequest,
    principal: Principal = Depends(get_current_super_admin),
    db: AsyncSession = Depends(get_db),
) -> BulkMosqueDeletionResult:
    """Delete several mosques. Each is handled independently."""
    await _check_rate_limit(principal, "bulk_delete", *RATE_LIMIT_BULK)
    return await cascade.bulk_delete_mosques(
        db,
        list(dict.fromkeys(data.mosque_ids)),
        Actor.from_principal(principal),
        reason=data.reason,
        can_reapply=data.can_reapply,
    )


@router.post("/{mosque_id}/regenerate-code", response_model=CodeRegenerationResult)
async def regenerate_code(
    mosque_id: UUID,
    data: RegenerateCodeRequest | None = None,
    principal: Principal = Depends(get_current_super_admin),
    db: AsyncSession = Depends(get_db),
) -> CodeRegenerationResult:
    """
    Issue a new verification code. The old code stops working immediately.

    An approved admin of this mosque stays approved but must re-verify with
    the new code before full access returns.
    """
    await _check_rate_limit(principal, "regenerate_code", *RATE_LIMIT_REGENERATE)

    try:
        return await cascade.regenerate_code(
            db,
            mosque_id,
            Actor.from_principal(principal),
            expiry_days=data.expiry_days if data else None,
        )
    except ServiceError as e:
        raise to_http_exception(e) from e


@router.post("/regenerate-codes", response_model=BulkCodeRegenerationResult)
async def bulk_regenerate_codes(
    data: BulkRegenerateRequest,
    principal: Principal = Depends(get_current_super_admin),
    db: AsyncSession = Depends(get_db),
) -> BulkCodeRegenerationResult:
    await _check_rate_limit(principal, "bulk_regenerate", *RATE_LIMIT_BULK)
    return await cascade.bulk_regenerate_codes(
        db,
        list(dict.fromkeys(data.mosque_ids)),
        Actor.from_principal(principal),
        expiry_days=data.expiry_days,
    )


@router.post("/regenerate-expired-codes", response_model=BulkCodeRegenerationResult)
async def regenerate_expired_codes(
    data: RegenerateCodeRequest | None = None,
    principal: Principal = Depends(get_current_super_admin),
    db: AsyncSession = Depends(get_db),
) -> BulkCodeRegenerationResult:
    await _check_rate_limit(principal, "bulk_regenerate", *RATE_LIMIT_BULK)
    return await cascade.regenerate_expired_codes(
        db,
        Actor.from_principal(principal),
        expiry_days=data.expiry_days if data else None,
    )
