"""
Audit Trail

Appends entries to the audit log and reads them back.

``record`` only adds the entry to the session: the caller commits it
together with the state change it describes, so a transition and its
audit entry land atomically.
"""

import logging
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import ROLE_SUPER_ADMIN, Principal
from app.modules.audit.models import (
    ActorType,
    AuditActionType,
    AuditEntry,
    AuditStatus,
    AuditTargetType,
)

logger = logging.getLogger(__name__)

MAX_QUERY_LIMIT = 200


@dataclass(frozen=True)
class Actor:
    """Who performed an audited action."""

    actor_type: ActorType
    id: UUID | None = None
    email: str | None = None
    name: str | None = None

    @classmethod
    def super_admin(cls, id: UUID, email: str | None = None, name: str | None = None) -> "Actor":
        return cls(ActorType.SUPER_ADMIN, id, email, name)

    @classmethod
    def admin(cls, id: UUID, email: str | None = None, name: str | None = None) -> "Actor":
        return cls(ActorType.ADMIN, id, email, name)

    @classmethod
    def from_principal(cls, principal: Principal) -> "Actor":
        actor_type = (
            ActorType.SUPER_ADMIN if principal.role == ROLE_SUPER_ADMIN else ActorType.ADMIN
        )
        return cls(actor_type, principal.id, principal.email or None, principal.name)


def record(
    db: AsyncSession,
    *,
    action_type: AuditActionType,
    actor: Actor,
    target_type: AuditTargetType,
    target_id: UUID | None,
    target_name: str | None = None,
    status: AuditStatus = AuditStatus.SUCCESS,
    detail: dict[str, Any] | None = None,
    error_message: str | None = None,
) -> AuditEntry:
    """
    Add an audit entry to the session. Caller must commit.

    Args:
        db: Database session
        action_type: What happened
        actor: Who did it
        target_type: Kind of record affected
        target_id: Affected record id
        target_name: Human-readable snapshot of the target
        status: success or failed
        detail: JSON-serialisable extra data
        error_message: Why the action failed (failed entries only)

    Returns:
        The pending AuditEntry
    """
    entry = AuditEntry(
        action_type=action_type,
        actor_id=actor.id,
        actor_type=actor.actor_type,
        actor_email=actor.email,
        actor_name=actor.name,
        target_type=target_type,
        target_id=target_id,
        target_name=target_name,
        status=status,
        detail=detail or {},
        error_message=error_message,
    )
    db.add(entry)

    if status == AuditStatus.FAILED:
        logger.info(
            f"Audit: {action_type.value} FAILED on {target_type.value}:{target_id} "
            f"by {actor.actor_type.value}:{actor.id} - {error_message}"
        )
    else:
        logger.info(
            f"Audit: {action_type.value} on {target_type.value}:{target_id} "
            f"by {actor.actor_type.value}:{actor.id}"
        )
    return entry


async def list_for_target(
    db: AsyncSession,
    target_type: AuditTargetType,
    target_id: UUID,
    limit: int = 50,
) -> list[AuditEntry]:
    """Entries for one record, newest first."""
    query = (
        select(AuditEntry)
        .where(AuditEntry.target_type == target_type, AuditEntry.target_id == target_id)
        .order_by(AuditEntry.created_at.desc())
        .limit(min(limit, MAX_QUERY_LIMIT))
    )
    result = await db.execute(query)
    return list(result.scalars().all())


async def list_recent(
    db: AsyncSession,
    *,
    action_type: AuditActionType | None = None,
    limit: int = 50,
) -> list[AuditEntry]:
    """Most recent entries across all targets."""
    query = select(AuditEntry)
    if action_type is not None:
        query = query.where(AuditEntry.action_type == action_type)
    query = query.order_by(AuditEntry.created_at.desc()).limit(min(limit, MAX_QUERY_LIMIT))
    result = await db.execute(query)
    return list(result.scalars().all())
