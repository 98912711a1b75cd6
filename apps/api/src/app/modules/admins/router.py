"""
Mosque Admin Router

Public registration plus the self-service endpoints an admin uses to follow
their own account through its lifecycle.

Endpoints:
- POST /admins/register - Register as admin of a mosque (public)
- GET /admins/me - Own status and status details (full or status token)
- POST /admins/me/reapply - Reapply after rejection, removal or mosque deletion
- POST /admins/me/reverify - Re-verify with the mosque's new code
- GET /admins/me/mosque - The managed mosque (full access only)
"""

import logging

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import Principal, get_current_admin_self, get_current_mosque_admin
from app.core.database import get_db
from app.core.rate_limit import enforce_rate_limit
from app.modules.admins import service
from app.modules.admins.schemas import (
    AdminDetailResponse,
    AdminResponse,
    AdminRegistrationRequest,
    AdminStatusResponse,
    ManagedMosqueResponse,
    MosqueSummary,
    ReapplyRequest,
    RegistrationResponse,
    ReverifyRequest,
)
from app.modules.shared.errors import ServiceError, to_http_exception

logger = logging.getLogger(__name__)

router = APIRouter()

RATE_LIMIT_REGISTER = (5, 3600)  # 5 registrations per hour per client
RATE_LIMIT_CODE_ATTEMPTS = (5, 900)  # 5 code submissions per 15 minutes per admin


def _client_key(request: Request) -> str:
    return request.client.host if request.client else "unknown"


@router.post(
    "/register",
    response_model=RegistrationResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"description": "Invalid or expired verification code"},
        409: {"description": "An account with this email or phone already exists"},
        429: {"description": "Too many attempts"},
    },
)
async def register_admin(
    data: AdminRegistrationRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> RegistrationResponse:
    """
    Register as the admin of a mosque.

    Requires the mosque's current verification code, obtained from the
    super admin. The account starts as pending and cannot log in with full
    access until a super admin approves it.
    """
    await enforce_rate_limit(f"register:{_client_key(request)}", *RATE_LIMIT_REGISTER)

    try:
        admin = await service.register(
            db,
            mosque_id=data.mosque_id,
            verification_code=data.verification_code,
            name=data.name,
            email=data.email,
            phone=data.phone,
            password=data.password,
            application_notes=data.application_notes,
        )
    except ServiceError as e:
        raise to_http_exception(e) from e

    return RegistrationResponse(
        message="Registration submitted. A super admin will review your application.",
        admin=AdminResponse.model_validate(admin),
    )


@router.get("/me", response_model=AdminStatusResponse)
async def get_my_status(
    principal: Principal = Depends(get_current_admin_self),
    db: AsyncSession = Depends(get_db),
) -> AdminStatusResponse:
    """Own account status. Accepts the limited status token."""
    try:
        view = await service.get_own_status(db, principal.id)
    except ServiceError as e:
        raise to_http_exception(e) from e

    return AdminStatusResponse(
        admin=AdminDetailResponse.from_admin(view.admin),
        mosque=MosqueSummary.model_validate(view.mosque) if view.mosque else None,
        needs_new_code=view.needs_new_code,
        can_reapply=view.can_reapply,
        message=view.message,
    )


@router.post("/me/reapply", response_model=AdminDetailResponse)
async def reapply(
    data: ReapplyRequest,
    principal: Principal = Depends(get_current_admin_self),
    db: AsyncSession = Depends(get_db),
) -> AdminDetailResponse:
    """
    Reapply for a mosque after rejection, removal or mosque deletion.

    Needs a valid code for the target mosque, which may differ from the
    previous one. The account returns to pending.
    """
    await enforce_rate_limit(f"reapply:{principal.id}", *RATE_LIMIT_CODE_ATTEMPTS)

    try:
        admin = await service.reapply(
            db,
            principal.id,
            mosque_id=data.mosque_id,
            verification_code=data.verification_code,
            reason=data.reason_for_reapplication,
        )
    except ServiceError as e:
        raise to_http_exception(e) from e

    return AdminDetailResponse.from_admin(admin)


@router.post("/me/reverify", response_model=AdminDetailResponse)
async def reverify(
    data: ReverifyRequest,
    principal: Principal = Depends(get_current_admin_self),
    db: AsyncSession = Depends(get_db),
) -> AdminDetailResponse:
    """Present the mosque's new verification code to restore full access."""
    await enforce_rate_limit(f"reverify:{principal.id}", *RATE_LIMIT_CODE_ATTEMPTS)

    try:
        admin = await service.reverify(db, principal.id, data.verification_code)
    except ServiceError as e:
        raise to_http_exception(e) from e

    return AdminDetailResponse.from_admin(admin)


@router.get("/me/mosque", response_model=ManagedMosqueResponse)
async def get_my_mosque(
    principal: Principal = Depends(get_current_mosque_admin),
    db: AsyncSession = Depends(get_db),
) -> ManagedMosqueResponse:
    """The mosque this admin manages. Requires a full-access token and live approval."""
    try:
        admin, mosque = await service.get_managed_mosque(db, principal.id)
    except ServiceError as e:
        raise to_http_exception(e) from e

    return ManagedMosqueResponse(
        admin=AdminResponse.model_validate(admin),
        mosque=MosqueSummary.model_validate(mosque),
        description=mosque.description,
        contact_phone=mosque.contact_phone,
        contact_email=mosque.contact_email,
        verification_code_expires_at=mosque.verification_code_expires_at,
    )
