"""create mosque admin lifecycle tables

Revision ID: a7c3e91f5b20
Revises:
Create Date: 2026-10-18 09:00:00.000000

This migration creates:
1. super_admins - platform operators
2. mosques - mosques with their current verification code
3. mosque_admins - admin accounts with lifecycle status and a version counter
4. audit_entries - append-only audit log

mosque_admins carries two integrity guarantees at the database level:
- mosque_id is set exactly when status is pending or approved
- at most one approved admin per mosque (partial unique index)
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "a7c3e91f5b20"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

ADMIN_STATUSES = ("pending", "approved", "rejected", "mosque_deleted", "removed")
AUDIT_ACTIONS = (
    "mosque_created",
    "mosque_deleted",
    "bulk_mosque_deletion",
    "admin_registered",
    "admin_approved",
    "admin_rejected",
    "admin_reapply_allowed",
    "admin_reapplication",
    "admin_removed",
    "admin_mosque_deleted",
    "admin_status_changed",
    "admin_code_validated",
    "code_regenerated",
    "bulk_code_regeneration",
)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    """Create lifecycle tables."""
    op.create_table(
        "super_admins",
        sa.Column("id", sa.Uuid(), nullable=False),
        *_timestamps(),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("password_hash", sa.Text(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_super_admins_email", "super_admins", ["email"], unique=True)

    op.create_table(
        "mosques",
        sa.Column("id", sa.Uuid(), nullable=False),
        *_timestamps(),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("location", sa.String(length=500), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("contact_phone", sa.String(length=20), nullable=True),
        sa.Column("contact_email", sa.String(length=255), nullable=True),
        sa.Column("admin_instructions", sa.Text(), nullable=True),
        sa.Column("verification_code", sa.String(length=32), nullable=False),
        sa.Column("verification_code_expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("verification_code", name="uq_mosques_verification_code"),
    )
    op.create_index(
        "ix_mosques_verification_code_expires_at",
        "mosques",
        ["verification_code_expires_at"],
    )

    op.create_table(
        "mosque_admins",
        sa.Column("id", sa.Uuid(), nullable=False),
        *_timestamps(),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("phone", sa.String(length=20), nullable=False),
        sa.Column("password_hash", sa.Text(), nullable=False),
        sa.Column("status", sa.Enum(*ADMIN_STATUSES, name="admin_status"), nullable=False),
        sa.Column("mosque_id", sa.Uuid(), nullable=True),
        sa.Column("status_details", sa.JSON(), nullable=False),
        sa.Column("rejection_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("version_id", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(
            ["mosque_id"],
            ["mosques.id"],
            name="fk_mosque_admins_mosque_id",
            ondelete="SET NULL",
        ),
        sa.UniqueConstraint("phone", name="uq_mosque_admins_phone"),
        sa.CheckConstraint(
            "(status IN ('pending', 'approved') AND mosque_id IS NOT NULL) "
            "OR (status NOT IN ('pending', 'approved') AND mosque_id IS NULL)",
            name="ck_mosque_admins_binding_matches_status",
        ),
        sa.CheckConstraint("rejection_count >= 0", name="ck_mosque_admins_rejection_count"),
    )
    op.create_index("ix_mosque_admins_email", "mosque_admins", ["email"], unique=True)
    op.create_index("ix_mosque_admins_mosque_id", "mosque_admins", ["mosque_id"])
    op.create_index("ix_mosque_admins_status", "mosque_admins", ["status"])
    op.create_index(
        "uq_mosque_admins_one_approved_per_mosque",
        "mosque_admins",
        ["mosque_id"],
        unique=True,
        postgresql_where=sa.text("status = 'approved'"),
    )

    op.create_table(
        "audit_entries",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("action_type", sa.Enum(*AUDIT_ACTIONS, name="audit_action_type"), nullable=False),
        sa.Column("actor_id", sa.Uuid(), nullable=True),
        sa.Column(
            "actor_type",
            sa.Enum("super_admin", "admin", "system", name="audit_actor_type"),
            nullable=False,
        ),
        sa.Column("actor_email", sa.String(length=255), nullable=True),
        sa.Column("actor_name", sa.String(length=200), nullable=True),
        sa.Column(
            "target_type",
            sa.Enum("mosque", "admin", "verification_code", "system", name="audit_target_type"),
            nullable=False,
        ),
        sa.Column("target_id", sa.Uuid(), nullable=True),
        sa.Column("target_name", sa.String(length=200), nullable=True),
        sa.Column("status", sa.Enum("success", "failed", name="audit_status"), nullable=False),
        sa.Column("detail", sa.JSON(), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_audit_entries_target", "audit_entries", ["target_type", "target_id"])
    op.create_index("ix_audit_entries_action_type", "audit_entries", ["action_type"])
    op.create_index("ix_audit_entries_created_at", "audit_entries", ["created_at"])


def downgrade() -> None:
    """Drop lifecycle tables and their enum types."""
    op.drop_index("ix_audit_entries_created_at", table_name="audit_entries")
    op.drop_index("ix_audit_entries_action_type", table_name="audit_entries")
    op.drop_index("ix_audit_entries_target", table_name="audit_entries")
    op.drop_table("audit_entries")

    op.drop_index("uq_mosque_admins_one_approved_per_mosque", table_name="mosque_admins")
    op.drop_index("ix_mosque_admins_status", table_name="mosque_admins")
    op.drop_index("ix_mosque_admins_mosque_id", table_name="mosque_admins")
    op.drop_index("ix_mosque_admins_email", table_name="mosque_admins")
    op.drop_table("mosque_admins")

    op.drop_index("ix_mosques_verification_code_expires_at", table_name="mosques")
    op.drop_table("mosques")

    op.drop_index("ix_super_admins_email", table_name="super_admins")
    op.drop_table("super_admins")

    for enum_name in (
        "audit_status",
        "audit_target_type",
        "audit_actor_type",
        "audit_action_type",
        "admin_status",
    ):
        sa.Enum(name=enum_name).drop(op.get_bind(), checkfirst=True)
