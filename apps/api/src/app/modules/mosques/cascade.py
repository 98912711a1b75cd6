"""
Cascade Coordinator

Mosque-level operations that fan out to the admins bound to the mosque.

Deletion:
    Every bound admin is moved to mosque_deleted (each in its own
    transaction, with its own audit entry), then the mosque row is deleted.
    If any admin fails, the mosque is kept and the failures are reported;
    calling delete again only processes admins that are still bound.

Code regeneration:
    A new code is issued; an approved admin keeps its status but its
    binding goes stale until it re-verifies with the new code.

Bulk variants process each mosque independently and never abort the batch.
"""

import logging
from datetime import timedelta
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.email import send_code_regenerated_notice, send_mosque_deleted_notice
from app.core.logging import mask_code
from app.modules.admins import service as admin_service
from app.modules.admins.repository import AdminRepository
from app.modules.audit import trail
from app.modules.audit.models import AuditActionType, AuditStatus, AuditTargetType
from app.modules.audit.trail import Actor
from app.modules.mosques import codes
from app.modules.mosques.codes import IssuedCode
from app.modules.mosques.repository import MosqueRepository
from app.modules.mosques.schemas import (
    AdminFailure,
    AffectedAdmin,
    BulkCodeRegenerationResult,
    BulkMosqueDeletionResult,
    CodeRegenerationResult,
    ExpiringCodeItem,
    ExpiringCodesReport,
    MosqueDeletionResult,
)
from app.modules.shared import as_utc, utcnow
from app.modules.shared.errors import MosqueNotFoundError, ServiceError

logger = logging.getLogger(__name__)

DEFAULT_DELETION_REASON = "Mosque removed by super admin"
MAX_CASCADE_PASSES = 3


# ============================================
# Deletion
# ============================================


async def _cascade_admins(
    db: AsyncSession,
    result: MosqueDeletionResult,
    *,
    mosque_name: str,
    mosque_location: str,
    reason: str,
    actor: Actor,
    can_reapply: bool,
) -> None:
    """Move every admin still bound to the mosque to mosque_deleted."""
    for _ in range(MAX_CASCADE_PASSES):
        admin_ids = await AdminRepository.list_bound_ids(db, result.mosque_id)
        if not admin_ids:
            return

        for admin_id in admin_ids:
            try:
                transition = await admin_service.mark_mosque_deleted(
                    db,
                    admin_id,
                    mosque_id=result.mosque_id,
                    mosque_name=mosque_name,
                    mosque_location=mosque_location,
                    reason=reason,
                    actor=actor,
                    can_reapply=can_reapply,
                )
            except ServiceError as e:
                result.failed_admins.append(
                    AdminFailure(admin_id=admin_id, error_code=e.error_code, error=e.message)
                )
                continue
            except Exception as e:
                await db.rollback()
                logger.error(
                    f"Cascade failed for admin {admin_id} of mosque {result.mosque_id}: {e}",
                    exc_info=True,
                )
                result.failed_admins.append(
                    AdminFailure(admin_id=admin_id, error_code="INTERNAL_ERROR", error=str(e))
                )
                continue

            if not transition.changed:
                continue

            result.cascaded_admin_ids.append(admin_id)
            admin = transition.admin
            try:
                await send_mosque_deleted_notice(
                    to_email=admin.email,
                    admin_name=admin.name,
                    mosque_name=mosque_name,
                    reason=reason,
                    can_reapply=can_reapply,
                )
            except Exception as e:
                logger.error(f"Failed to send mosque deletion email to {admin.id}: {e}")

        if result.failed_admins:
            return


async def delete_mosque(
    db: AsyncSession,
    mosque_id: UUID,
    actor: Actor,
    reason: str = DEFAULT_DELETION_REASON,
    can_reapply: bool = True,
) -> MosqueDeletionResult:
    """
    Delete a mosque, first moving its admins to mosque_deleted.

    The mosque's name and location are snapshotted onto each admin before
    the row disappears.

    Raises:
        MosqueNotFoundError: Mosque does not exist
    """
    mosque = await MosqueRepository.get_by_id(db, mosque_id, fresh=True)
    if mosque is None:
        raise MosqueNotFoundError(mosque_id)

    mosque_name = mosque.name
    mosque_location = mosque.location
    result = MosqueDeletionResult(mosque_id=mosque_id, mosque_name=mosque_name)

    logger.info(
        f"Deleting mosque {mosque_id} ({mosque_name}) by {actor.actor_type.value}:{actor.id}"
    )

    await _cascade_admins(
        db,
        result,
        mosque_name=mosque_name,
        mosque_location=mosque_location,
        reason=reason,
        actor=actor,
        can_reapply=can_reapply,
    )
    if result.failed_admins:
        logger.warning(
            f"Mosque {mosque_id} kept: {len(result.failed_admins)} admin(s) could not be moved"
        )
        result.error_code = "PARTIAL_CASCADE"
        result.error = "Some admins could not be updated; retry to finish deleting the mosque."
        return result

    # Final step under a row lock: nobody may have bound themselves since the cascade
    mosque = await MosqueRepository.get_by_id(db, mosque_id, for_update=True)
    if mosque is None:
        await db.rollback()
        result.error_code = "MOSQUE_NOT_FOUND"
        result.error = "Mosque was deleted concurrently."
        return result

    if await AdminRepository.list_bound_ids(db, mosque_id):
        await db.rollback()
        result.error_code = "ADMINS_STILL_BOUND"
        result.error = "New admins were bound during deletion; retry to finish deleting."
        return result

    await MosqueRepository.delete(db, mosque_id)
    trail.record(
        db,
        action_type=AuditActionType.MOSQUE_DELETED,
        actor=actor,
        target_type=AuditTargetType.MOSQUE,
        target_id=mosque_id,
        target_name=mosque_name,
        detail={
            "location": mosque_location,
            "reason": reason,
            "can_reapply": can_reapply,
            "cascaded_admin_ids": [str(i) for i in result.cascaded_admin_ids],
        },
    )
    await db.commit()

    result.mosque_deleted = True
    logger.info(
        f"Mosque {mosque_id} deleted; {len(result.cascaded_admin_ids)} admin(s) moved to "
        "mosque_deleted"
    )
    return result


async def bulk_delete_mosques(
    db: AsyncSession,
    mosque_ids: list[UUID],
    actor: Actor,
    reason: str = DEFAULT_DELETION_REASON,
    can_reapply: bool = True,
) -> BulkMosqueDeletionResult:
    """Delete several mosques independently and report per-mosque results."""
    results: list[MosqueDeletionResult] = []

    for mosque_id in dict.fromkeys(mosque_ids):
        try:
            results.append(await delete_mosque(db, mosque_id, actor, reason, can_reapply))
        except ServiceError as e:
            results.append(
                MosqueDeletionResult(mosque_id=mosque_id, error_code=e.error_code, error=e.message)
            )

    deleted = sum(1 for r in results if r.mosque_deleted)
    trail.record(
        db,
        action_type=AuditActionType.BULK_MOSQUE_DELETION,
        actor=actor,
        target_type=AuditTargetType.SYSTEM,
        target_id=None,
        target_name="bulk mosque deletion",
        status=AuditStatus.SUCCESS if deleted == len(results) else AuditStatus.FAILED,
        detail={
            "requested": len(results),
            "deleted": deleted,
            "failed_mosque_ids": [str(r.mosque_id) for r in results if not r.mosque_deleted],
            "reason": reason,
        },
    )
    await db.commit()

    return BulkMosqueDeletionResult(
        requested=len(results),
        deleted=deleted,
        failed=len(results) - deleted,
        results=results,
    )


# ============================================
# Code regeneration
# ============================================


async def _record_regeneration(
    db: AsyncSession,
    issued: IssuedCode,
    actor: Actor,
) -> CodeRegenerationResult:
    """Audit a reissued code and flag the approved admin. Runs before commit."""
    mosque = await MosqueRepository.get_by_id(db, issued.mosque_id)
    mosque_name = mosque.name if mosque else None
    approved = await AdminRepository.get_approved_for_mosque(db, issued.mosque_id)

    affected = None
    if approved is not None:
        affected = AffectedAdmin(
            id=approved.id,
            name=approved.name,
            email=approved.email,
            status=approved.status,
        )

    trail.record(
        db,
        action_type=AuditActionType.CODE_REGENERATED,
        actor=actor,
        target_type=AuditTargetType.VERIFICATION_CODE,
        target_id=issued.mosque_id,
        target_name=mosque_name,
        detail={
            "old_code": mask_code(issued.old_code),
            "new_code": mask_code(issued.new_code),
            "expires_at": issued.expires_at.isoformat(),
            "affected_admin_id": str(affected.id) if affected else None,
        },
    )
    if affected is not None:
        trail.record(
            db,
            action_type=AuditActionType.ADMIN_STATUS_CHANGED,
            actor=actor,
            target_type=AuditTargetType.ADMIN,
            target_id=affected.id,
            target_name=affected.name,
            detail={
                "reason": "code_regenerated",
                "mosque_id": str(issued.mosque_id),
                "status": affected.status.value,
                "requires_reverification": True,
            },
        )

    return CodeRegenerationResult(
        mosque_id=issued.mosque_id,
        mosque_name=mosque_name,
        old_code=issued.old_code,
        new_code=issued.new_code,
        new_expiry=issued.expires_at,
        affected_admin=affected,
    )


async def _notify_affected(result: CodeRegenerationResult) -> None:
    affected = result.affected_admin
    if affected is None:
        return
    try:
        await send_code_regenerated_notice(
            to_email=affected.email,
            admin_name=affected.name,
            mosque_name=result.mosque_name or "your mosque",
        )
    except Exception as e:
        logger.error(f"Failed to send code change email to admin {affected.id}: {e}")


async def regenerate_code(
    db: AsyncSession,
    mosque_id: UUID,
    actor: Actor,
    expiry_days: int | None = None,
) -> CodeRegenerationResult:
    """
    Issue a new code for a mosque.

    The old code stops working immediately. An approved admin stays
    approved but must re-verify with the new code before full access returns.

    Raises:
        MosqueNotFoundError: Mosque does not exist
    """
    try:
        issued = await codes.issue(db, mosque_id, expiry_days)
        result = await _record_regeneration(db, issued, actor)
        await db.commit()
    except ServiceError as e:
        await db.rollback()
        trail.record(
            db,
            action_type=AuditActionType.CODE_REGENERATED,
            actor=actor,
            target_type=AuditTargetType.VERIFICATION_CODE,
            target_id=mosque_id,
            status=AuditStatus.FAILED,
            detail={"error_code": e.error_code},
            error_message=e.message,
        )
        await db.commit()
        raise

    logger.info(f"Regenerated code for mosque {mosque_id}")
    await _notify_affected(result)
    return result


async def bulk_regenerate_codes(
    db: AsyncSession,
    mosque_ids: list[UUID],
    actor: Actor,
    expiry_days: int | None = None,
) -> BulkCodeRegenerationResult:
    """Regenerate codes for several mosques; one failure never blocks the rest."""
    recorded: dict[UUID, CodeRegenerationResult] = {}

    async def on_issued(session: AsyncSession, issued: IssuedCode) -> None:
        recorded[issued.mosque_id] = await _record_regeneration(session, issued, actor)

    outcomes = await codes.issue_many(db, mosque_ids, expiry_days, on_issued=on_issued)

    results: list[CodeRegenerationResult] = []
    for outcome in outcomes:
        if outcome.succeeded:
            result = recorded[outcome.mosque_id]
            results.append(result)
            await _notify_affected(result)
        else:
            results.append(
                CodeRegenerationResult(
                    mosque_id=outcome.mosque_id,
                    success=False,
                    error_code=outcome.error_code,
                    error=outcome.error,
                )
            )

    regenerated = sum(1 for r in results if r.success)
    trail.record(
        db,
        action_type=AuditActionType.BULK_CODE_REGENERATION,
        actor=actor,
        target_type=AuditTargetType.SYSTEM,
        target_id=None,
        target_name="bulk code regeneration",
        status=AuditStatus.SUCCESS if regenerated == len(results) else AuditStatus.FAILED,
        detail={
            "requested": len(results),
            "regenerated": regenerated,
            "failed_mosque_ids": [str(r.mosque_id) for r in results if not r.success],
            "affected_admin_ids": [
                str(r.affected_admin.id) for r in results if r.affected_admin is not None
            ],
        },
    )
    await db.commit()

    logger.info(f"Bulk code regeneration: {regenerated}/{len(results)} succeeded")
    return BulkCodeRegenerationResult(
        requested=len(results),
        regenerated=regenerated,
        failed=len(results) - regenerated,
        results=results,
    )


async def regenerate_expired_codes(
    db: AsyncSession,
    actor: Actor,
    expiry_days: int | None = None,
) -> BulkCodeRegenerationResult:
    """Regenerate every code that has already expired."""
    expired_ids = await MosqueRepository.list_expired_ids(db, utcnow())
    logger.info(f"Found {len(expired_ids)} mosque(s) with expired codes")
    return await bulk_regenerate_codes(db, expired_ids, actor, expiry_days)


async def list_expiring_codes(
    db: AsyncSession, days_ahead: int | None = None
) -> ExpiringCodesReport:
    """Codes that have expired or will expire within ``days_ahead`` days."""
    days_ahead = days_ahead or settings.code_expiry_warning_days
    now = utcnow()
    mosques = await MosqueRepository.list_expiring(db, now + timedelta(days=days_ahead))

    expired: list[ExpiringCodeItem] = []
    expiring_soon: list[ExpiringCodeItem] = []
    for mosque in mosques:
        expires_at = as_utc(mosque.verification_code_expires_at)
        item = ExpiringCodeItem(
            mosque_id=mosque.id,
            name=mosque.name,
            location=mosque.location,
            expires_at=expires_at,
            days_left=max((expires_at - now).days, 0),
        )
        (expired if expires_at < now else expiring_soon).append(item)

    return ExpiringCodesReport(
        days_ahead=days_ahead,
        checked_at=now,
        expired=expired,
        expiring_soon=expiring_soon,
    )
