"""Authentication schemas."""

from typing import Any
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field

from app.modules.admins.models import AdminStatus


class AdminLoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)
    mosque_code: str | None = Field(
        None,
        max_length=64,
        description="Current mosque verification code, to re-verify after a code change",
    )


class SuperAdminLoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)


class AdminSummary(BaseModel):
    id: UUID
    name: str
    email: str
    status: AdminStatus
    mosque_id: UUID | None = None


class AdminLoginResponse(BaseModel):
    """Successful login: full-access token."""

    access_token: str
    token_type: str = "bearer"
    expires_in: int
    admin: AdminSummary
    mosque_name: str | None = None


class LoginDeniedResponse(BaseModel):
    """
    Login refused because of the account's lifecycle state.

    ``status_token`` is a limited token accepted only by the self-service
    endpoints.
    """

    error: str
    message: str
    status: AdminStatus
    status_token: str
    token_type: str = "bearer"
    expires_in: int
    details: dict[str, Any]


class SuperAdminResponse(BaseModel):
    id: UUID
    email: str
    name: str


class SuperAdminLoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    super_admin: SuperAdminResponse
