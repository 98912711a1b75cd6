"""
Authentication router.

Endpoints:
- POST /auth/admin/login - Mosque admin login (lifecycle-aware)
- POST /auth/super-admin/login - Super admin login
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import ROLE_SUPER_ADMIN
from app.core.config import settings
from app.core.database import get_db
from app.core.rate_limit import enforce_rate_limit
from app.core.security import create_access_token, dummy_password_hash, verify_password
from app.modules.auth.resolver import LoginOutcomeCode, resolve_admin_login
from app.modules.auth.schemas import (
    AdminLoginRequest,
    AdminLoginResponse,
    AdminSummary,
    LoginDeniedResponse,
    SuperAdminLoginRequest,
    SuperAdminLoginResponse,
    SuperAdminResponse,
)
from app.modules.super_admins.repository import SuperAdminRepository

logger = logging.getLogger(__name__)

router = APIRouter()

RATE_LIMIT_LOGIN = (10, 300)  # 10 attempts per 5 minutes per email


def _invalid_credentials() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={
            "error": "INVALID_CREDENTIALS",
            "message": "Invalid email or password.",
        },
    )


@router.post(
    "/admin/login",
    response_model=AdminLoginResponse,
    responses={
        401: {"description": "Invalid credentials"},
        403: {"model": LoginDeniedResponse, "description": "Login denied by account state"},
        429: {"description": "Too many attempts"},
    },
)
async def admin_login(
    credentials: AdminLoginRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Log in a mosque admin.

    Approved admins whose mosque binding is current receive a full-access
    token. Every other state is answered with 403, a machine-readable
    ``error`` code, the details of that state, and a limited status token.

    An approved admin whose mosque code was regenerated may send the new
    code as ``mosque_code`` to re-verify and log in in one step.
    """
    await enforce_rate_limit(f"login:admin:{credentials.email.lower()}", *RATE_LIMIT_LOGIN)

    outcome = await resolve_admin_login(
        db,
        email=credentials.email,
        password=credentials.password,
        mosque_code=credentials.mosque_code,
    )

    if outcome.code == LoginOutcomeCode.INVALID_CREDENTIALS:
        raise _invalid_credentials()

    admin = outcome.admin
    if outcome.succeeded:
        return AdminLoginResponse(
            access_token=outcome.token,
            expires_in=outcome.expires_in,
            admin=AdminSummary(
                id=admin.id,
                name=admin.name,
                email=admin.email,
                status=admin.status,
                mosque_id=admin.mosque_id,
            ),
            mosque_name=outcome.payload.get("mosque_name"),
        )

    denied = LoginDeniedResponse(
        error=outcome.code.value,
        message=outcome.message,
        status=admin.status,
        status_token=outcome.token,
        expires_in=outcome.expires_in,
        details=outcome.payload,
    )
    return JSONResponse(
        status_code=status.HTTP_403_FORBIDDEN,
        content=denied.model_dump(mode="json"),
    )


@router.post("/super-admin/login", response_model=SuperAdminLoginResponse)
async def super_admin_login(
    credentials: SuperAdminLoginRequest,
    db: AsyncSession = Depends(get_db),
) -> SuperAdminLoginResponse:
    """Authenticate a super admin and return an access token."""
    await enforce_rate_limit(f"login:super_admin:{credentials.email.lower()}", *RATE_LIMIT_LOGIN)

    super_admin = await SuperAdminRepository.get_by_email(db, credentials.email)
    password_hash = super_admin.password_hash if super_admin else dummy_password_hash()

    if not verify_password(credentials.password, password_hash) or super_admin is None:
        logger.warning("Super admin login failed: invalid credentials")
        raise _invalid_credentials()

    if not super_admin.is_active:
        logger.warning(f"Login attempt for inactive super admin: {super_admin.id}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "error": "ACCOUNT_INACTIVE",
                "message": "Your account has been deactivated.",
            },
        )

    access_token = create_access_token(
        subject=str(super_admin.id),
        additional_claims={
            "email": super_admin.email,
            "role": ROLE_SUPER_ADMIN,
            "name": super_admin.name,
        },
    )
    logger.info(f"Super admin logged in: {super_admin.id}")

    return SuperAdminLoginResponse(
        access_token=access_token,
        expires_in=settings.access_token_expire_minutes * 60,
        super_admin=SuperAdminResponse(
            id=super_admin.id,
            email=super_admin.email,
            name=super_admin.name,
        ),
    )
