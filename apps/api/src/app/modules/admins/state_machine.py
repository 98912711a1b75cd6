"""
Admin Lifecycle State Machine

Pure transition functions over a loaded MosqueAdmin. They check their
preconditions first and only then mutate, so a raised error always leaves
the record untouched. No I/O happens here: the service layer loads records,
validates codes, writes audit entries and commits.

    (register) -> pending
    pending    -> approved | rejected | mosque_deleted
    approved   -> removed | mosque_deleted
    rejected | mosque_deleted | removed -> pending   (reapply, if can_reapply)

``allow_reapply`` and ``rebind_code`` change metadata without changing status.
"""

from datetime import datetime
from uuid import UUID

from app.modules.admins.details import (
    ApprovedDetails,
    MosqueDeletedDetails,
    PendingDetails,
    ReapplicableDetails,
    RejectedDetails,
    RemovedDetails,
)
from app.modules.admins.models import REAPPLICABLE_STATUSES, AdminStatus, MosqueAdmin

VALID_STATUS_TRANSITIONS: dict[AdminStatus, set[AdminStatus]] = {
    AdminStatus.PENDING: {
        AdminStatus.APPROVED,
        AdminStatus.REJECTED,
        AdminStatus.MOSQUE_DELETED,
    },
    AdminStatus.APPROVED: {
        AdminStatus.REMOVED,
        AdminStatus.MOSQUE_DELETED,
    },
    AdminStatus.REJECTED: {AdminStatus.PENDING},
    AdminStatus.MOSQUE_DELETED: {AdminStatus.PENDING},
    AdminStatus.REMOVED: {AdminStatus.PENDING},
}


class InvalidStatusTransitionError(ValueError):
    """Raised when a transition is not allowed from the current status."""

    def __init__(self, current_status: AdminStatus, new_status: AdminStatus):
        self.current_status = current_status
        self.new_status = new_status
        valid_transitions = VALID_STATUS_TRANSITIONS.get(current_status, set())
        super().__init__(
            f"Invalid status transition: {current_status.value} -> {new_status.value}. "
            f"Valid transitions: {sorted(s.value for s in valid_transitions)}"
        )


class ReapplicationBlockedError(ValueError):
    """The admin is in a reapplicable status but can_reapply is false."""

    def __init__(self, current_status: AdminStatus):
        self.current_status = current_status
        super().__init__(f"Reapplication is not allowed for this {current_status.value} admin")


def _check_transition(admin: MosqueAdmin, new_status: AdminStatus) -> None:
    if new_status not in VALID_STATUS_TRANSITIONS.get(admin.status, set()):
        raise InvalidStatusTransitionError(admin.status, new_status)


def _require_status(admin: MosqueAdmin, *allowed: AdminStatus, target: AdminStatus) -> None:
    if admin.status not in allowed:
        raise InvalidStatusTransitionError(admin.status, target)


def start_registration(
    admin: MosqueAdmin,
    *,
    mosque_id: UUID,
    verification_code: str,
    application_notes: str | None,
    now: datetime,
) -> None:
    """Initialise a brand-new admin record as pending."""
    admin.rejection_count = 0
    admin.apply_details(
        PendingDetails(
            verification_code_used=verification_code,
            application_notes=application_notes,
            submitted_at=now,
        ),
        mosque_id,
    )


def can_reapply(admin: MosqueAdmin) -> bool:
    if admin.status not in REAPPLICABLE_STATUSES:
        return False
    details = admin.details
    return isinstance(details, ReapplicableDetails) and details.can_reapply


def reapply(
    admin: MosqueAdmin,
    *,
    mosque_id: UUID,
    verification_code: str,
    application_notes: str | None,
    now: datetime,
) -> None:
    """Move a rejected/mosque_deleted/removed admin back to pending for a (new) mosque."""
    _check_transition(admin, AdminStatus.PENDING)
    if not can_reapply(admin):
        raise ReapplicationBlockedError(admin.status)

    admin.apply_details(
        PendingDetails(
            verification_code_used=verification_code,
            application_notes=application_notes,
            submitted_at=now,
            is_reapplication=True,
        ),
        mosque_id,
    )


def approve(
    admin: MosqueAdmin,
    *,
    approved_by: UUID,
    now: datetime,
    notes: str | None = None,
) -> None:
    """
    pending -> approved.

    The binding is verified under the code the admin registered with.
    The one-approved-admin-per-mosque rule is checked by the caller.
    """
    _require_status(admin, AdminStatus.PENDING, target=AdminStatus.APPROVED)
    pending = admin.details

    admin.apply_details(
        ApprovedDetails(
            approved_at=now,
            approved_by=approved_by,
            notes=notes,
            verification_code_used=pending.verification_code_used,
        ),
        admin.mosque_id,
    )


def reject(
    admin: MosqueAdmin,
    *,
    reason: str,
    rejected_by: UUID,
    now: datetime,
    can_reapply: bool = True,
) -> None:
    """pending -> rejected. Increments rejection_count and drops the binding."""
    _require_status(admin, AdminStatus.PENDING, target=AdminStatus.REJECTED)

    admin.rejection_count = (admin.rejection_count or 0) + 1
    admin.apply_details(
        RejectedDetails(
            rejection_reason=reason,
            rejection_date=now,
            rejected_by=rejected_by,
            can_reapply=can_reapply,
        ),
        None,
    )


def remove(
    admin: MosqueAdmin,
    *,
    reason: str,
    removed_by: UUID,
    now: datetime,
    mosque_name: str | None = None,
    mosque_location: str | None = None,
    can_reapply: bool = True,
) -> None:
    """approved -> removed."""
    _require_status(admin, AdminStatus.APPROVED, target=AdminStatus.REMOVED)

    admin.apply_details(
        RemovedDetails(
            removal_reason=reason,
            removal_date=now,
            removed_by=removed_by,
            removed_from_mosque_name=mosque_name,
            removed_from_mosque_location=mosque_location,
            can_reapply=can_reapply,
        ),
        None,
    )


def mark_mosque_deleted(
    admin: MosqueAdmin,
    *,
    mosque_name: str,
    mosque_location: str,
    reason: str,
    now: datetime,
    can_reapply: bool = True,
) -> None:
    """pending | approved -> mosque_deleted. Only the deletion cascade calls this."""
    _check_transition(admin, AdminStatus.MOSQUE_DELETED)

    admin.apply_details(
        MosqueDeletedDetails(
            mosque_deletion_reason=reason,
            mosque_deletion_date=now,
            deleted_mosque_name=mosque_name,
            deleted_mosque_location=mosque_location,
            can_reapply=can_reapply,
        ),
        None,
    )


def allow_reapply(admin: MosqueAdmin) -> None:
    """Set can_reapply on a rejected/mosque_deleted/removed admin. Status is unchanged."""
    if admin.status not in REAPPLICABLE_STATUSES:
        raise InvalidStatusTransitionError(admin.status, admin.status)

    details = admin.details
    admin.apply_details(details.model_copy(update={"can_reapply": True}), None)


def binding_is_current(admin: MosqueAdmin, mosque_code: str | None) -> bool:
    """True if an approved admin's verified code is still the mosque's code."""
    if admin.status != AdminStatus.APPROVED or mosque_code is None:
        return False
    details = admin.details
    return isinstance(details, ApprovedDetails) and details.verification_code_used == mosque_code


def rebind_code(admin: MosqueAdmin, *, verification_code: str) -> None:
    """Re-verify an approved admin under the mosque's new code. Status is unchanged."""
    _require_status(admin, AdminStatus.APPROVED, target=AdminStatus.APPROVED)

    details = admin.details
    admin.apply_details(
        details.model_copy(update={"verification_code_used": verification_code}),
        admin.mosque_id,
    )
