"""
Mosque Schemas

Request/response models for mosque administration, plus the result types
returned by the deletion and code regeneration cascades.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from app.modules.admins.models import AdminStatus

# ============================================
# Requests
# ============================================


class MosqueCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=200)
    location: str = Field(..., min_length=2, max_length=500)
    description: str | None = Field(None, max_length=2000)
    contact_phone: str | None = Field(None, max_length=20)
    contact_email: EmailStr | None = None
    admin_instructions: str | None = Field(None, max_length=2000)
    code_expiry_days: int | None = Field(None, ge=1, le=365)


class DeleteMosqueRequest(BaseModel):
    reason: str = Field("Mosque removed by super admin", min_length=3, max_length=500)
    can_reapply: bool = True


class BulkDeleteRequest(DeleteMosqueRequest):
    mosque_ids: list[UUID] = Field(..., min_length=1, max_length=100)


class RegenerateCodeRequest(BaseModel):
    expiry_days: int | None = Field(None, ge=1, le=365)


class BulkRegenerateRequest(RegenerateCodeRequest):
    mosque_ids: list[UUID] = Field(..., min_length=1, max_length=100)


# ============================================
# Responses
# ============================================


class MosqueResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    location: str
    description: str | None = None
    contact_phone: str | None = None
    contact_email: str | None = None
    admin_instructions: str | None = None
    created_at: datetime
    updated_at: datetime


class MosqueCreatedResponse(BaseModel):
    """A new mosque and its first verification code, for handing to its admin."""

    mosque: MosqueResponse
    verification_code: str
    verification_code_expires_at: datetime


class BoundAdmin(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    email: str
    status: AdminStatus


class MosqueVerificationInfo(BaseModel):
    """Super admin view of a mosque's code and the admins bound to it."""

    mosque: MosqueResponse
    verification_code: str
    verification_code_expires_at: datetime
    is_expired: bool
    admins: list[BoundAdmin]


class AdminFailure(BaseModel):
    admin_id: UUID
    error_code: str
    error: str


class MosqueDeletionResult(BaseModel):
    mosque_id: UUID
    mosque_name: str | None = None
    mosque_deleted: bool = False
    cascaded_admin_ids: list[UUID] = Field(default_factory=list)
    failed_admins: list[AdminFailure] = Field(default_factory=list)
    error_code: str | None = None
    error: str | None = None


class BulkMosqueDeletionResult(BaseModel):
    requested: int
    deleted: int
    failed: int
    results: list[MosqueDeletionResult]


class AffectedAdmin(BaseModel):
    """Approved admin whose binding went stale because the code changed."""

    id: UUID
    name: str
    email: str
    status: AdminStatus
    requires_reverification: bool = True


class CodeRegenerationResult(BaseModel):
    mosque_id: UUID
    mosque_name: str | None = None
    success: bool = True
    old_code: str | None = None
    new_code: str | None = None
    new_expiry: datetime | None = None
    affected_admin: AffectedAdmin | None = None
    error_code: str | None = None
    error: str | None = None


class BulkCodeRegenerationResult(BaseModel):
    requested: int
    regenerated: int
    failed: int
    results: list[CodeRegenerationResult]


class ExpiringCodeItem(BaseModel):
    mosque_id: UUID
    name: str
    location: str
    expires_at: datetime
    days_left: int


class ExpiringCodesReport(BaseModel):
    days_ahead: int
    checked_at: datetime
    expired: list[ExpiringCodeItem]
    expiring_soon: list[ExpiringCodeItem]
