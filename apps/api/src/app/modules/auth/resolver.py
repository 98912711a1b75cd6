"""
Login Resolver

Classifies a mosque admin login into exactly one outcome.

Credentials are checked first and failures are undifferentiated: an unknown
email and a wrong password produce the same INVALID_CREDENTIALS result (and
take comparable time, since a dummy hash is verified for unknown emails).

Only after the password is correct does the admin's lifecycle state decide
the outcome. Denied admins get a limited status token so they can view
their status and reapply or re-verify, but never reach approved-only
endpoints.
"""

import enum
import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import ROLE_MOSQUE_ADMIN
from app.core.config import settings
from app.core.security import (
    create_access_token,
    create_status_token,
    dummy_password_hash,
    verify_password,
)
from app.modules.admins import service as admin_service
from app.modules.admins import state_machine
from app.modules.admins.details import (
    MosqueDeletedDetails,
    PendingDetails,
    RejectedDetails,
    RemovedDetails,
)
from app.modules.admins.models import AdminStatus, MosqueAdmin
from app.modules.admins.repository import AdminRepository
from app.modules.mosques.models import Mosque
from app.modules.mosques.repository import MosqueRepository
from app.modules.shared.errors import ServiceError

logger = logging.getLogger(__name__)


class LoginOutcomeCode(str, enum.Enum):
    SUCCESS = "SUCCESS"
    CODE_REGENERATED_NEEDS_CODE = "CODE_REGENERATED_NEEDS_CODE"
    PENDING_APPROVAL = "PENDING_APPROVAL"
    ACCOUNT_REJECTED = "ACCOUNT_REJECTED"
    MOSQUE_DELETED = "MOSQUE_DELETED"
    ADMIN_REMOVED = "ADMIN_REMOVED"
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"


OUTCOME_MESSAGES: dict[LoginOutcomeCode, str] = {
    LoginOutcomeCode.SUCCESS: "Login successful.",
    LoginOutcomeCode.CODE_REGENERATED_NEEDS_CODE: (
        "Your mosque's verification code was changed. "
        "Enter the new code from the super admin to continue."
    ),
    LoginOutcomeCode.PENDING_APPROVAL: "Your application is pending super admin approval.",
    LoginOutcomeCode.ACCOUNT_REJECTED: "Your application was rejected.",
    LoginOutcomeCode.MOSQUE_DELETED: "The mosque you managed has been deleted.",
    LoginOutcomeCode.ADMIN_REMOVED: "You have been removed as admin of your mosque.",
    LoginOutcomeCode.INVALID_CREDENTIALS: "Invalid email or password.",
}


@dataclass
class LoginOutcome:
    code: LoginOutcomeCode
    admin: MosqueAdmin | None = None
    token: str | None = None
    expires_in: int | None = None
    payload: dict[str, Any] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return self.code == LoginOutcomeCode.SUCCESS

    @property
    def message(self) -> str:
        return OUTCOME_MESSAGES[self.code]


def _status_token_lifetime(admin_status: AdminStatus) -> timedelta:
    if admin_status == AdminStatus.PENDING:
        return timedelta(days=settings.pending_status_token_days)
    if admin_status == AdminStatus.REJECTED:
        return timedelta(days=settings.rejected_status_token_days)
    return timedelta(days=settings.inactive_status_token_days)


def _claims(admin: MosqueAdmin) -> dict[str, Any]:
    return {"email": admin.email, "role": ROLE_MOSQUE_ADMIN, "name": admin.name}


def _denied(code: LoginOutcomeCode, admin: MosqueAdmin, payload: dict[str, Any]) -> LoginOutcome:
    lifetime = _status_token_lifetime(admin.status)
    token = create_status_token(
        subject=str(admin.id),
        admin_status=admin.status.value,
        expires_delta=lifetime,
        additional_claims=_claims(admin),
    )
    logger.info(f"Login for admin {admin.id} resolved to {code.value}")
    return LoginOutcome(
        code=code,
        admin=admin,
        token=token,
        expires_in=int(lifetime.total_seconds()),
        payload=payload,
    )


def _success(admin: MosqueAdmin, mosque: Mosque) -> LoginOutcome:
    token = create_access_token(
        subject=str(admin.id),
        additional_claims={**_claims(admin), "mosque_id": str(mosque.id)},
    )
    logger.info(f"Admin {admin.id} logged in for mosque {mosque.id}")
    return LoginOutcome(
        code=LoginOutcomeCode.SUCCESS,
        admin=admin,
        token=token,
        expires_in=settings.access_token_expire_minutes * 60,
        payload={"mosque_id": str(mosque.id), "mosque_name": mosque.name},
    )


def _iso(value) -> str:
    return value.isoformat()


async def _resolve_approved(
    db: AsyncSession,
    admin: MosqueAdmin,
    mosque_code: str | None,
) -> LoginOutcome:
    mosque = await MosqueRepository.get_by_id(db, admin.mosque_id, fresh=True)
    current_code = mosque.verification_code if mosque else None

    if mosque is not None and state_machine.binding_is_current(admin, current_code):
        return _success(admin, mosque)

    payload: dict[str, Any] = {
        "mosque_id": str(admin.mosque_id),
        "mosque_name": mosque.name if mosque else None,
        "mosque_location": mosque.location if mosque else None,
        "instruction": "Contact the super admin for the new mosque verification code.",
    }

    if mosque_code:
        try:
            admin = await admin_service.reverify(db, admin.id, mosque_code)
        except ServiceError as e:
            payload["code_error"] = e.error_code
        else:
            return _success(admin, mosque)

    return _denied(LoginOutcomeCode.CODE_REGENERATED_NEEDS_CODE, admin, payload)


async def resolve_admin_login(
    db: AsyncSession,
    email: str,
    password: str,
    mosque_code: str | None = None,
) -> LoginOutcome:
    """
    Resolve a mosque admin login.

    Args:
        db: Database session
        email: Login email
        password: Plaintext password
        mosque_code: Optional current mosque code; lets an approved admin
            whose code was regenerated re-verify in the same request

    Returns:
        LoginOutcome with exactly one outcome code
    """
    admin = await AdminRepository.get_by_email(db, email)
    password_hash = admin.password_hash if admin else dummy_password_hash()

    if not verify_password(password, password_hash) or admin is None:
        logger.warning("Admin login failed: invalid credentials")
        return LoginOutcome(code=LoginOutcomeCode.INVALID_CREDENTIALS)

    details = admin.details

    if admin.status == AdminStatus.APPROVED:
        return await _resolve_approved(db, admin, mosque_code)

    if isinstance(details, PendingDetails):
        return _denied(
            LoginOutcomeCode.PENDING_APPROVAL,
            admin,
            {"submitted_at": _iso(details.submitted_at), "mosque_id": str(admin.mosque_id)},
        )

    if isinstance(details, RejectedDetails):
        return _denied(
            LoginOutcomeCode.ACCOUNT_REJECTED,
            admin,
            {
                "rejection_reason": details.rejection_reason,
                "rejection_date": _iso(details.rejection_date),
                "rejection_count": admin.rejection_count,
                "can_reapply": details.can_reapply,
            },
        )

    if isinstance(details, MosqueDeletedDetails):
        return _denied(
            LoginOutcomeCode.MOSQUE_DELETED,
            admin,
            {
                "deletion_reason": details.mosque_deletion_reason,
                "deletion_date": _iso(details.mosque_deletion_date),
                "deleted_mosque_name": details.deleted_mosque_name,
                "deleted_mosque_location": details.deleted_mosque_location,
                "can_reapply": details.can_reapply,
            },
        )

    if isinstance(details, RemovedDetails):
        return _denied(
            LoginOutcomeCode.ADMIN_REMOVED,
            admin,
            {
                "removal_reason": details.removal_reason,
                "removal_date": _iso(details.removal_date),
                "removed_from_mosque_name": details.removed_from_mosque_name,
                "can_reapply": details.can_reapply,
            },
        )

    raise ValueError(f"Unhandled admin status: {admin.status}")
