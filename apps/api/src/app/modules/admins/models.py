"""
Mosque Admin Models

Admin records are never deleted. When the mosque binding goes away
(rejection, removal, mosque deletion) the record is kept and moved to a
terminal-but-reapplicable status.

Database-level guarantees:
- ``mosque_id`` is set exactly when status is pending or approved
- at most one approved admin per mosque (partial unique index)
- optimistic concurrency through ``version_id``
"""

import enum
import uuid

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.modules.admins.details import StatusDetails, dump_details, parse_details
from app.modules.shared import BaseModel


class AdminStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    MOSQUE_DELETED = "mosque_deleted"
    REMOVED = "removed"


BOUND_STATUSES = frozenset({AdminStatus.PENDING, AdminStatus.APPROVED})
REAPPLICABLE_STATUSES = frozenset(
    {AdminStatus.REJECTED, AdminStatus.MOSQUE_DELETED, AdminStatus.REMOVED}
)


class MosqueAdmin(BaseModel):
    __tablename__ = "mosque_admins"

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    phone: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(Text, nullable=False)

    status: Mapped[AdminStatus] = mapped_column(
        Enum(
            AdminStatus,
            name="admin_status",
            values_callable=lambda e: [member.value for member in e],
        ),
        nullable=False,
    )
    # ON DELETE SET NULL is a backstop only; mosque deletion cascades admins first
    mosque_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("mosques.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    status_details: Mapped[dict] = mapped_column(JSON, nullable=False)
    rejection_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    version_id: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version_id}

    __table_args__ = (
        CheckConstraint(
            "(status IN ('pending', 'approved') AND mosque_id IS NOT NULL) "
            "OR (status NOT IN ('pending', 'approved') AND mosque_id IS NULL)",
            name="ck_mosque_admins_binding_matches_status",
        ),
        CheckConstraint("rejection_count >= 0", name="ck_mosque_admins_rejection_count"),
        Index(
            "uq_mosque_admins_one_approved_per_mosque",
            "mosque_id",
            unique=True,
            postgresql_where=text("status = 'approved'"),
            sqlite_where=text("status = 'approved'"),
        ),
        Index("ix_mosque_admins_status", "status"),
    )

    @property
    def details(self) -> StatusDetails:
        return parse_details(self.status_details)

    def apply_details(self, details: StatusDetails, mosque_id: uuid.UUID | None) -> None:
        """
        Set status, binding and metadata together.

        Only the state machine calls this, so status and details always agree.
        """
        self.status = AdminStatus(details.status)
        self.mosque_id = mosque_id
        self.status_details = dump_details(details)

    @property
    def is_bound(self) -> bool:
        return self.status in BOUND_STATUSES

    def __repr__(self) -> str:
        return f"<MosqueAdmin {self.email} {self.status.value}>"
