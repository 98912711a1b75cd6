"""
Audit Models

Append-only log of every lifecycle transition, successful or not.
Rows are never updated or deleted through the ORM.
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import JSON, DateTime, Enum, Index, String, Text, Uuid, event, func
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base
from app.modules.shared import utcnow


def _enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    return [member.value for member in enum_cls]


class AuditActionType(str, enum.Enum):
    """Closed vocabulary of audited actions."""

    MOSQUE_CREATED = "mosque_created"
    MOSQUE_DELETED = "mosque_deleted"
    BULK_MOSQUE_DELETION = "bulk_mosque_deletion"
    ADMIN_REGISTERED = "admin_registered"
    ADMIN_APPROVED = "admin_approved"
    ADMIN_REJECTED = "admin_rejected"
    ADMIN_REAPPLY_ALLOWED = "admin_reapply_allowed"
    ADMIN_REAPPLICATION = "admin_reapplication"
    ADMIN_REMOVED = "admin_removed"
    ADMIN_MOSQUE_DELETED = "admin_mosque_deleted"
    ADMIN_STATUS_CHANGED = "admin_status_changed"
    ADMIN_CODE_VALIDATED = "admin_code_validated"
    CODE_REGENERATED = "code_regenerated"
    BULK_CODE_REGENERATION = "bulk_code_regeneration"


class AuditTargetType(str, enum.Enum):
    MOSQUE = "mosque"
    ADMIN = "admin"
    VERIFICATION_CODE = "verification_code"
    SYSTEM = "system"


class AuditStatus(str, enum.Enum):
    SUCCESS = "success"
    FAILED = "failed"


class ActorType(str, enum.Enum):
    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    SYSTEM = "system"


class AuditEntry(Base):
    """A single immutable audit record."""

    __tablename__ = "audit_entries"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    action_type: Mapped[AuditActionType] = mapped_column(
        Enum(AuditActionType, name="audit_action_type", values_callable=_enum_values),
        nullable=False,
    )

    # Actor snapshot (actors may later be deleted or renamed)
    actor_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    actor_type: Mapped[ActorType] = mapped_column(
        Enum(ActorType, name="audit_actor_type", values_callable=_enum_values),
        nullable=False,
    )
    actor_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    actor_name: Mapped[str | None] = mapped_column(String(200), nullable=True)

    # Target snapshot
    target_type: Mapped[AuditTargetType] = mapped_column(
        Enum(AuditTargetType, name="audit_target_type", values_callable=_enum_values),
        nullable=False,
    )
    target_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    target_name: Mapped[str | None] = mapped_column(String(200), nullable=True)

    status: Mapped[AuditStatus] = mapped_column(
        Enum(AuditStatus, name="audit_status", values_callable=_enum_values),
        nullable=False,
    )
    detail: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        Index("ix_audit_entries_target", "target_type", "target_id"),
        Index("ix_audit_entries_action_type", "action_type"),
        Index("ix_audit_entries_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<AuditEntry {self.action_type.value} {self.status.value} "
            f"{self.target_type.value}:{self.target_id}>"
        )


class ImmutableAuditEntryError(Exception):
    """Raised when code attempts to modify an existing audit entry."""


@event.listens_for(AuditEntry, "before_update")
def _reject_update(mapper, connection, target: AuditEntry) -> None:
    raise ImmutableAuditEntryError(f"Audit entry {target.id} is immutable")


@event.listens_for(AuditEntry, "before_delete")
def _reject_delete(mapper, connection, target: AuditEntry) -> None:
    raise ImmutableAuditEntryError(f"Audit entry {target.id} cannot be deleted")
