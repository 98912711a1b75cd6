"""
Mosque Admin Service Layer

Drives the admin lifecycle: registration, super admin decisions,
reapplication, removal, re-verification after a code change, and the
per-admin step of a mosque deletion cascade.

Every transition follows the same pattern (see ``_run_transition``):
1. Re-read the admin from the database
2. Check preconditions; on failure write a ``failed`` audit entry and raise
3. Mutate through the state machine and add a ``success`` audit entry
4. Commit both together

Admin rows carry a version counter. If another request committed a change
first, the commit raises StaleDataError; we roll back, re-read and
re-evaluate the preconditions against the fresh state.
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from app.core.email import send_admin_approved, send_admin_rejected, send_admin_removed
from app.core.security import hash_password
from app.modules.admins import state_machine
from app.modules.admins.models import REAPPLICABLE_STATUSES, AdminStatus, MosqueAdmin
from app.modules.admins.repository import AdminRepository
from app.modules.audit import trail
from app.modules.audit.models import ActorType, AuditActionType, AuditStatus, AuditTargetType
from app.modules.audit.trail import Actor
from app.modules.mosques.codes import validate_against
from app.modules.mosques.models import Mosque
from app.modules.mosques.repository import MosqueRepository
from app.modules.shared import utcnow
from app.modules.shared.errors import (
    AdminNotFoundError,
    ConcurrentModificationError,
    ExpiredCodeError,
    InvalidCodeError,
    ServiceError,
)

logger = logging.getLogger(__name__)

MAX_TRANSITION_ATTEMPTS = 3
REAPPLICATION_PREFIX = "REAPPLICATION: "


# ============================================
# Errors
# ============================================


class AlreadyApprovedForMosqueError(ServiceError):
    def __init__(self, mosque_name: str | None = None):
        target = f"'{mosque_name}'" if mosque_name else "this mosque"
        super().__init__(
            message=f"{target} already has an approved admin.",
            error_code="ALREADY_APPROVED_FOR_MOSQUE",
            status_code=409,
        )


class NotPendingError(ServiceError):
    def __init__(self, current_status: AdminStatus):
        super().__init__(
            message=f"Admin is not pending approval (current status: {current_status.value}).",
            error_code="NOT_PENDING",
            status_code=409,
        )


class NotApprovedError(ServiceError):
    def __init__(self, current_status: AdminStatus):
        super().__init__(
            message=f"Admin is not approved (current status: {current_status.value}).",
            error_code="NOT_APPROVED",
            status_code=409,
        )


class CannotReapplyError(ServiceError):
    def __init__(self, current_status: AdminStatus):
        super().__init__(
            message=(
                f"Reapplication is not allowed for this account (status: {current_status.value}). "
                "Please contact the super admin."
            ),
            error_code="CANNOT_REAPPLY",
            status_code=403,
        )


class InvalidStatusError(ServiceError):
    def __init__(self, current_status: AdminStatus, action: str):
        super().__init__(
            message=f"Cannot {action} an admin with status {current_status.value}.",
            error_code="INVALID_STATUS",
            status_code=409,
        )


class AccountExistsError(ServiceError):
    def __init__(self):
        super().__init__(
            message=(
                "An account with this email or phone already exists. "
                "Log in to check its status or reapply."
            ),
            error_code="ACCOUNT_EXISTS",
            status_code=409,
        )


class FullAccessRevokedError(ServiceError):
    """The caller holds a full-access token but no longer qualifies for it."""

    def __init__(self, reason: str):
        super().__init__(
            message=f"Full access is no longer available: {reason}. Please log in again.",
            error_code="ACCESS_REVOKED",
            status_code=403,
        )


# ============================================
# Transition machinery
# ============================================

Mutation = Callable[[MosqueAdmin], Awaitable[dict[str, Any] | None]]


@dataclass
class TransitionResult:
    admin: MosqueAdmin
    detail: dict[str, Any] | None

    @property
    def changed(self) -> bool:
        return self.detail is not None


async def _record_failure(
    db: AsyncSession,
    *,
    action_type: AuditActionType,
    actor: Actor,
    target_type: AuditTargetType,
    target_id: UUID | None,
    target_name: str | None,
    error: ServiceError,
    detail: dict[str, Any] | None = None,
) -> None:
    """Write a failed audit entry in its own commit."""
    trail.record(
        db,
        action_type=action_type,
        actor=actor,
        target_type=target_type,
        target_id=target_id,
        target_name=target_name,
        status=AuditStatus.FAILED,
        detail={**(detail or {}), "error_code": error.error_code},
        error_message=error.message,
    )
    await db.commit()


async def _run_transition(
    db: AsyncSession,
    admin_id: UUID,
    *,
    action_type: AuditActionType,
    actor: Actor,
    mutate: Mutation,
    on_integrity_error: Callable[[], ServiceError] | None = None,
) -> TransitionResult:
    """
    Apply ``mutate`` to a fresh copy of the admin and commit it with its audit entry.

    ``mutate`` must raise a ServiceError before touching the record when a
    precondition fails. It returns the audit detail, or None when there is
    nothing to do (no audit entry, no commit).
    """
    for attempt in range(1, MAX_TRANSITION_ATTEMPTS + 1):
        admin = await AdminRepository.get_by_id(db, admin_id, fresh=True)
        if admin is None:
            error = AdminNotFoundError(admin_id)
            await _record_failure(
                db,
                action_type=action_type,
                actor=actor,
                target_type=AuditTargetType.ADMIN,
                target_id=admin_id,
                target_name=None,
                error=error,
            )
            raise error

        admin_name = admin.name
        try:
            detail = await mutate(admin)
        except ServiceError as e:
            logger.warning(f"{action_type.value} denied for admin {admin_id}: {e.error_code}")
            await _record_failure(
                db,
                action_type=action_type,
                actor=actor,
                target_type=AuditTargetType.ADMIN,
                target_id=admin_id,
                target_name=admin_name,
                error=e,
            )
            raise

        if detail is None:
            return TransitionResult(admin=admin, detail=None)

        trail.record(
            db,
            action_type=action_type,
            actor=actor,
            target_type=AuditTargetType.ADMIN,
            target_id=admin_id,
            target_name=admin_name,
            detail=detail,
        )

        try:
            await db.commit()
        except StaleDataError:
            await db.rollback()
            logger.warning(
                f"Concurrent update on admin {admin_id} during {action_type.value} "
                f"(attempt {attempt}/{MAX_TRANSITION_ATTEMPTS}), re-reading"
            )
            continue
        except IntegrityError:
            await db.rollback()
            if on_integrity_error is None:
                raise
            error = on_integrity_error()
            logger.warning(f"{action_type.value} conflict for admin {admin_id}: {error.error_code}")
            await _record_failure(
                db,
                action_type=action_type,
                actor=actor,
                target_type=AuditTargetType.ADMIN,
                target_id=admin_id,
                target_name=admin_name,
                error=error,
                detail=detail,
            )
            raise error from None

        await db.refresh(admin)
        return TransitionResult(admin=admin, detail=detail)

    raise ConcurrentModificationError(f"Admin {admin_id}")


async def _load_code_mosque(db: AsyncSession, mosque_id: UUID, code: str) -> Mosque:
    """Lock the mosque and check ``code`` against it."""
    mosque = await MosqueRepository.get_by_id(db, mosque_id, for_update=True)
    if mosque is None:
        raise InvalidCodeError()

    validation = validate_against(mosque, code)
    if validation.expired:
        raise ExpiredCodeError()
    if not validation.valid:
        raise InvalidCodeError()
    return mosque


# ============================================
# Registration
# ============================================


async def register(
    db: AsyncSession,
    *,
    mosque_id: UUID,
    verification_code: str,
    name: str,
    email: str,
    phone: str,
    password: str,
    application_notes: str | None = None,
) -> MosqueAdmin:
    """
    Register a new admin for a mosque.

    The code must be the mosque's current, unexpired code. Denied attempts
    are audited against the mosque; no admin record is created.

    Raises:
        InvalidCodeError: Unknown mosque or wrong code
        ExpiredCodeError: Code matches but has expired
        AccountExistsError: Email or phone already registered
    """
    email = email.strip().lower()
    applicant = Actor(ActorType.ADMIN, email=email, name=name)

    async def deny(error: ServiceError) -> None:
        await _record_failure(
            db,
            action_type=AuditActionType.ADMIN_REGISTERED,
            actor=applicant,
            target_type=AuditTargetType.MOSQUE,
            target_id=mosque_id,
            target_name=None,
            error=error,
        )

    if await AdminRepository.find_by_email_or_phone(db, email, phone) is not None:
        error = AccountExistsError()
        await deny(error)
        raise error

    try:
        mosque = await _load_code_mosque(db, mosque_id, verification_code)
    except ServiceError as e:
        logger.warning(f"Registration denied for mosque {mosque_id}: {e.error_code}")
        await deny(e)
        raise

    admin = MosqueAdmin(
        name=name.strip(),
        email=email,
        phone=phone,
        password_hash=hash_password(password),
    )
    state_machine.start_registration(
        admin,
        mosque_id=mosque.id,
        verification_code=mosque.verification_code,
        application_notes=application_notes,
        now=utcnow(),
    )
    await AdminRepository.add(db, admin)

    trail.record(
        db,
        action_type=AuditActionType.ADMIN_REGISTERED,
        actor=Actor.admin(admin.id, email=email, name=admin.name),
        target_type=AuditTargetType.ADMIN,
        target_id=admin.id,
        target_name=admin.name,
        detail={"mosque_id": str(mosque.id), "mosque_name": mosque.name},
    )

    try:
        await db.commit()
    except IntegrityError:
        # Lost a race against a concurrent registration with the same email/phone
        await db.rollback()
        error = AccountExistsError()
        await deny(error)
        raise error from None

    await db.refresh(admin)
    logger.info(f"Admin {admin.id} registered for mosque {mosque.id} (pending approval)")
    return admin


# ============================================
# Super admin decisions
# ============================================


async def approve(
    db: AsyncSession,
    admin_id: UUID,
    actor: Actor,
    notes: str | None = None,
) -> MosqueAdmin:
    """
    Approve a pending admin.

    Raises:
        NotPendingError: Admin is not pending
        AlreadyApprovedForMosqueError: The mosque already has an approved admin
    """
    mosque_name: str | None = None

    async def mutate(admin: MosqueAdmin) -> dict[str, Any]:
        nonlocal mosque_name
        if admin.status != AdminStatus.PENDING:
            raise NotPendingError(admin.status)

        mosque = await MosqueRepository.get_by_id(db, admin.mosque_id, for_update=True)
        mosque_name = mosque.name if mosque else None
        existing = await AdminRepository.get_approved_for_mosque(
            db, admin.mosque_id, exclude_admin_id=admin.id
        )
        if existing is not None:
            raise AlreadyApprovedForMosqueError(mosque_name)

        state_machine.approve(admin, approved_by=actor.id, now=utcnow(), notes=notes)
        return {"mosque_id": str(admin.mosque_id), "mosque_name": mosque_name}

    result = await _run_transition(
        db,
        admin_id,
        action_type=AuditActionType.ADMIN_APPROVED,
        actor=actor,
        mutate=mutate,
        on_integrity_error=lambda: AlreadyApprovedForMosqueError(mosque_name),
    )
    admin = result.admin
    logger.info(f"Admin {admin_id} approved for mosque {admin.mosque_id} by {actor.id}")

    await _notify(
        "approval",
        admin.id,
        send_admin_approved(
            to_email=admin.email,
            admin_name=admin.name,
            mosque_name=mosque_name or "your mosque",
        ),
    )
    return admin


async def reject(
    db: AsyncSession,
    admin_id: UUID,
    actor: Actor,
    reason: str,
    can_reapply: bool = True,
) -> MosqueAdmin:
    """
    Reject a pending admin. The binding is dropped and rejection_count grows.

    Raises:
        NotPendingError: Admin is not pending
    """
    mosque_name: str | None = None

    async def mutate(admin: MosqueAdmin) -> dict[str, Any]:
        nonlocal mosque_name
        if admin.status != AdminStatus.PENDING:
            raise NotPendingError(admin.status)

        mosque = await MosqueRepository.get_by_id(db, admin.mosque_id)
        mosque_name = mosque.name if mosque else None
        mosque_id = admin.mosque_id

        state_machine.reject(
            admin,
            reason=reason,
            rejected_by=actor.id,
            now=utcnow(),
            can_reapply=can_reapply,
        )
        return {
            "mosque_id": str(mosque_id),
            "mosque_name": mosque_name,
            "reason": reason,
            "rejection_count": admin.rejection_count,
            "can_reapply": can_reapply,
        }

    result = await _run_transition(
        db,
        admin_id,
        action_type=AuditActionType.ADMIN_REJECTED,
        actor=actor,
        mutate=mutate,
    )
    admin = result.admin
    logger.info(
        f"Admin {admin_id} rejected by {actor.id} (rejection #{admin.rejection_count})"
    )

    await _notify(
        "rejection",
        admin.id,
        send_admin_rejected(
            to_email=admin.email,
            admin_name=admin.name,
            mosque_name=mosque_name or "the mosque",
            reason=reason,
            can_reapply=can_reapply,
        ),
    )
    return admin


async def allow_reapply(
    db: AsyncSession,
    admin_id: UUID,
    actor: Actor,
    notes: str | None = None,
) -> MosqueAdmin:
    """
    Let a rejected, removed or mosque-deleted admin reapply. Status is unchanged.

    Raises:
        InvalidStatusError: Admin is pending or approved
    """

    async def mutate(admin: MosqueAdmin) -> dict[str, Any]:
        if admin.status not in REAPPLICABLE_STATUSES:
            raise InvalidStatusError(admin.status, "allow reapplication for")
        state_machine.allow_reapply(admin)
        return {"status": admin.status.value, "notes": notes}

    result = await _run_transition(
        db,
        admin_id,
        action_type=AuditActionType.ADMIN_REAPPLY_ALLOWED,
        actor=actor,
        mutate=mutate,
    )
    logger.info(f"Admin {admin_id} allowed to reapply by {actor.id}")
    return result.admin


async def remove(
    db: AsyncSession,
    admin_id: UUID,
    actor: Actor,
    reason: str,
    can_reapply: bool = True,
) -> MosqueAdmin:
    """
    Remove an approved admin from their mosque.

    Raises:
        NotApprovedError: Admin is not approved
    """
    mosque_name: str | None = None

    async def mutate(admin: MosqueAdmin) -> dict[str, Any]:
        nonlocal mosque_name
        if admin.status != AdminStatus.APPROVED:
            raise NotApprovedError(admin.status)

        mosque = await MosqueRepository.get_by_id(db, admin.mosque_id)
        mosque_name = mosque.name if mosque else None
        mosque_id = admin.mosque_id

        state_machine.remove(
            admin,
            reason=reason,
            removed_by=actor.id,
            now=utcnow(),
            mosque_name=mosque_name,
            mosque_location=mosque.location if mosque else None,
            can_reapply=can_reapply,
        )
        return {
            "mosque_id": str(mosque_id),
            "mosque_name": mosque_name,
            "reason": reason,
            "can_reapply": can_reapply,
        }

    result = await _run_transition(
        db,
        admin_id,
        action_type=AuditActionType.ADMIN_REMOVED,
        actor=actor,
        mutate=mutate,
    )
    admin = result.admin
    logger.info(f"Admin {admin_id} removed by {actor.id}")

    await _notify(
        "removal",
        admin.id,
        send_admin_removed(
            to_email=admin.email,
            admin_name=admin.name,
            mosque_name=mosque_name or "the mosque",
            reason=reason,
            can_reapply=can_reapply,
        ),
    )
    return admin


# ============================================
# Self-service
# ============================================


async def reapply(
    db: AsyncSession,
    admin_id: UUID,
    *,
    mosque_id: UUID,
    verification_code: str,
    reason: str,
) -> MosqueAdmin:
    """
    Reapply for a mosque (the same one or another) after rejection, removal
    or mosque deletion.

    Raises:
        CannotReapplyError: Status does not allow it or can_reapply is false
        InvalidCodeError / ExpiredCodeError: Code check failed
    """
    actor = Actor.admin(admin_id)

    async def mutate(admin: MosqueAdmin) -> dict[str, Any]:
        if not state_machine.can_reapply(admin):
            raise CannotReapplyError(admin.status)

        mosque = await _load_code_mosque(db, mosque_id, verification_code)
        previous_status = admin.status

        try:
            state_machine.reapply(
                admin,
                mosque_id=mosque.id,
                verification_code=mosque.verification_code,
                application_notes=f"{REAPPLICATION_PREFIX}{reason}",
                now=utcnow(),
            )
        except (
            state_machine.InvalidStatusTransitionError,
            state_machine.ReapplicationBlockedError,
        ) as e:
            raise CannotReapplyError(admin.status) from e

        return {
            "previous_status": previous_status.value,
            "mosque_id": str(mosque.id),
            "mosque_name": mosque.name,
            "rejection_count": admin.rejection_count,
        }

    result = await _run_transition(
        db,
        admin_id,
        action_type=AuditActionType.ADMIN_REAPPLICATION,
        actor=actor,
        mutate=mutate,
    )
    logger.info(f"Admin {admin_id} reapplied for mosque {mosque_id}")
    return result.admin


async def reverify(db: AsyncSession, admin_id: UUID, verification_code: str) -> MosqueAdmin:
    """
    Re-verify an approved admin after their mosque's code was regenerated.

    Presenting the mosque's current, unexpired code rebinds the admin to it
    and restores full access. Already-current bindings are left alone.

    Raises:
        NotApprovedError: Admin is not approved
        InvalidCodeError / ExpiredCodeError: Code check failed
    """
    actor = Actor.admin(admin_id)

    async def mutate(admin: MosqueAdmin) -> dict[str, Any] | None:
        if admin.status != AdminStatus.APPROVED:
            raise NotApprovedError(admin.status)

        mosque = await MosqueRepository.get_by_id(db, admin.mosque_id, fresh=True)
        if mosque is None:
            raise InvalidCodeError()

        validation = validate_against(mosque, verification_code)
        if validation.expired:
            raise ExpiredCodeError()
        if not validation.valid:
            raise InvalidCodeError()

        if state_machine.binding_is_current(admin, mosque.verification_code):
            return None

        state_machine.rebind_code(admin, verification_code=mosque.verification_code)
        return {"mosque_id": str(mosque.id), "mosque_name": mosque.name}

    result = await _run_transition(
        db,
        admin_id,
        action_type=AuditActionType.ADMIN_CODE_VALIDATED,
        actor=actor,
        mutate=mutate,
    )
    if result.changed:
        logger.info(f"Admin {admin_id} re-verified with the current mosque code")
    return result.admin


@dataclass
class AdminStatusView:
    admin: MosqueAdmin
    mosque: Mosque | None
    needs_new_code: bool
    can_reapply: bool
    message: str


STATUS_MESSAGES: dict[AdminStatus, str] = {
    AdminStatus.PENDING: "Your application is awaiting super admin approval.",
    AdminStatus.APPROVED: "Your account is approved.",
    AdminStatus.REJECTED: "Your application was rejected.",
    AdminStatus.MOSQUE_DELETED: "The mosque you managed has been deleted.",
    AdminStatus.REMOVED: "You have been removed as admin of your mosque.",
}


async def get_own_status(db: AsyncSession, admin_id: UUID) -> AdminStatusView:
    """Everything an admin may see about their own account, in any status."""
    admin = await AdminRepository.get_by_id(db, admin_id, fresh=True)
    if admin is None:
        raise AdminNotFoundError(admin_id)

    mosque = await MosqueRepository.get_by_id(db, admin.mosque_id) if admin.mosque_id else None

    needs_new_code = admin.status == AdminStatus.APPROVED and not state_machine.binding_is_current(
        admin, mosque.verification_code if mosque else None
    )
    message = STATUS_MESSAGES[admin.status]
    if needs_new_code:
        message = (
            "Your mosque's verification code was changed. "
            "Enter the new code from the super admin to restore access."
        )
    elif state_machine.can_reapply(admin):
        message = f"{message} You may reapply with a valid mosque verification code."

    return AdminStatusView(
        admin=admin,
        mosque=mosque,
        needs_new_code=needs_new_code,
        can_reapply=state_machine.can_reapply(admin),
        message=message,
    )


async def get_managed_mosque(db: AsyncSession, admin_id: UUID) -> tuple[MosqueAdmin, Mosque]:
    """
    Resolve the mosque an approved admin manages, re-checking live state.

    A full-access token outlives the state it was issued for, so every
    approved-only request confirms the admin is still approved and still
    verified under the mosque's current code.

    Raises:
        FullAccessRevokedError: Admin no longer qualifies for full access
    """
    admin = await AdminRepository.get_by_id(db, admin_id, fresh=True)
    if admin is None:
        raise AdminNotFoundError(admin_id)
    if admin.status != AdminStatus.APPROVED:
        raise FullAccessRevokedError(f"account status is {admin.status.value}")

    mosque = await MosqueRepository.get_by_id(db, admin.mosque_id)
    if mosque is None or not state_machine.binding_is_current(admin, mosque.verification_code):
        raise FullAccessRevokedError("the mosque verification code has changed")
    return admin, mosque


# ============================================
# Mosque deletion cascade step
# ============================================


async def mark_mosque_deleted(
    db: AsyncSession,
    admin_id: UUID,
    *,
    mosque_id: UUID,
    mosque_name: str,
    mosque_location: str,
    reason: str,
    actor: Actor,
    can_reapply: bool = True,
) -> TransitionResult:
    """
    Move one admin bound to ``mosque_id`` to mosque_deleted.

    An admin that is no longer bound to that mosque (it was rejected or
    removed in the meantime) is left untouched and ``changed`` is False.
    """

    async def mutate(admin: MosqueAdmin) -> dict[str, Any] | None:
        if admin.mosque_id != mosque_id or not admin.is_bound:
            return None

        previous_status = admin.status
        state_machine.mark_mosque_deleted(
            admin,
            mosque_name=mosque_name,
            mosque_location=mosque_location,
            reason=reason,
            now=utcnow(),
            can_reapply=can_reapply,
        )
        return {
            "previous_status": previous_status.value,
            "mosque_id": str(mosque_id),
            "mosque_name": mosque_name,
            "reason": reason,
        }

    return await _run_transition(
        db,
        admin_id,
        action_type=AuditActionType.ADMIN_MOSQUE_DELETED,
        actor=actor,
        mutate=mutate,
    )


# ============================================
# Queries
# ============================================


async def list_admins(
    db: AsyncSession,
    status: AdminStatus | None = None,
    page: int = 1,
    page_size: int = 20,
) -> tuple[list[MosqueAdmin], int]:
    return await AdminRepository.list_by_status(db, status, page=page, page_size=page_size)


# ============================================
# Notifications
# ============================================


async def _notify(kind: str, admin_id: UUID, notification: Awaitable[bool]) -> None:
    """Await a notification email. Email is non-critical: failures are logged only."""
    try:
        await notification
    except Exception as e:
        logger.error(f"Failed to send {kind} email to admin {admin_id}: {e}", exc_info=True)
