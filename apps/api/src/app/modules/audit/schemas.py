"""Audit log response schemas."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from app.modules.audit.models import ActorType, AuditActionType, AuditStatus, AuditTargetType


class AuditEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    action_type: AuditActionType
    actor_id: UUID | None = None
    actor_type: ActorType
    actor_email: str | None = None
    actor_name: str | None = None
    target_type: AuditTargetType
    target_id: UUID | None = None
    target_name: str | None = None
    status: AuditStatus
    detail: dict[str, Any]
    error_message: str | None = None
    created_at: datetime


class AuditLogResponse(BaseModel):
    items: list[AuditEntryResponse]
    count: int
