"""
Mosque Admin Schemas

Input validation follows the rules admins are registered under:
- name: 2-50 letters and spaces
- phone: Pakistani mobile in international form (+923XXXXXXXXX)
- password: 8-50 chars with upper, lower, digit and special character
"""

import re
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from app.modules.admins.details import StatusDetails, dump_details
from app.modules.admins.models import AdminStatus, MosqueAdmin

PHONE_PATTERN = r"^\+923[0-9]{9}$"
NAME_PATTERN = r"^[A-Za-z\s]+$"
PASSWORD_SPECIAL_CHARS = "@$!%*?&"


def _check_password_strength(value: str) -> str:
    checks = [
        (r"[a-z]", "a lowercase letter"),
        (r"[A-Z]", "an uppercase letter"),
        (r"\d", "a number"),
        (
            f"[{re.escape(PASSWORD_SPECIAL_CHARS)}]",
            f"a special character ({PASSWORD_SPECIAL_CHARS})",
        ),
    ]
    missing = [label for pattern, label in checks if not re.search(pattern, value)]
    if missing:
        raise ValueError(f"Password must contain {', '.join(missing)}")
    return value


# ============================================
# Requests
# ============================================


class AdminRegistrationRequest(BaseModel):
    mosque_id: UUID
    verification_code: str = Field(..., min_length=1, max_length=64)
    name: str = Field(..., min_length=2, max_length=50, pattern=NAME_PATTERN)
    email: EmailStr
    phone: str = Field(..., pattern=PHONE_PATTERN, description="Format: +923XXXXXXXXX")
    password: str = Field(..., min_length=8, max_length=50)
    application_notes: str | None = Field(None, max_length=500)

    @field_validator("password")
    @classmethod
    def password_strength(cls, v: str) -> str:
        return _check_password_strength(v)


class ReapplyRequest(BaseModel):
    mosque_id: UUID
    verification_code: str = Field(..., min_length=1, max_length=64)
    reason_for_reapplication: str = Field(..., min_length=50, max_length=500)


class ReverifyRequest(BaseModel):
    verification_code: str = Field(..., min_length=1, max_length=64)


class ApproveRequest(BaseModel):
    notes: str | None = Field(None, max_length=500)


class RejectRequest(BaseModel):
    reason: str = Field(..., min_length=10, max_length=500)
    can_reapply: bool = True


class RemoveRequest(BaseModel):
    reason: str = Field(..., min_length=10, max_length=500)
    can_reapply: bool = True


class AllowReapplyRequest(BaseModel):
    notes: str | None = Field(None, max_length=500)


# ============================================
# Responses
# ============================================


class AdminResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    email: str
    phone: str
    status: AdminStatus
    mosque_id: UUID | None = None
    rejection_count: int
    created_at: datetime
    updated_at: datetime


class AdminDetailResponse(AdminResponse):
    """Admin with its status-specific metadata."""

    details: StatusDetails

    @classmethod
    def from_admin(cls, admin: MosqueAdmin) -> "AdminDetailResponse":
        base = AdminResponse.model_validate(admin).model_dump()
        return cls.model_validate({**base, "details": dump_details(admin.details)})


class RegistrationResponse(BaseModel):
    message: str
    admin: AdminResponse


class AdminListResponse(BaseModel):
    items: list[AdminDetailResponse]
    total: int
    page: int
    page_size: int
    total_pages: int


class MosqueSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    location: str


class AdminStatusResponse(BaseModel):
    """Self-service status view, available with a limited token."""

    admin: AdminDetailResponse
    mosque: MosqueSummary | None = None
    needs_new_code: bool
    can_reapply: bool
    message: str


class ManagedMosqueResponse(BaseModel):
    admin: AdminResponse
    mosque: MosqueSummary
    description: str | None = None
    contact_phone: str | None = None
    contact_email: str | None = None
    verification_code_expires_at: datetime
