"""
Mosque Service Layer

Creating a mosque (which issues its first verification code) and the
super admin view of a mosque's verification state. Deletion and code
regeneration live in ``cascade`` because they fan out to admins.
"""

import logging
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.admins.repository import AdminRepository
from app.modules.audit import trail
from app.modules.audit.models import AuditActionType, AuditTargetType
from app.modules.audit.trail import Actor
from app.modules.mosques import codes
from app.modules.mosques.models import Mosque
from app.modules.mosques.repository import MosqueRepository
from app.modules.mosques.schemas import (
    BoundAdmin,
    MosqueCreate,
    MosqueResponse,
    MosqueVerificationInfo,
)
from app.modules.shared import as_utc, utcnow
from app.modules.shared.errors import MosqueNotFoundError

logger = logging.getLogger(__name__)


async def create_mosque(db: AsyncSession, data: MosqueCreate, actor: Actor) -> Mosque:
    """Create a mosque with a freshly issued verification code."""
    code = await codes.new_unique_code(db)
    expires_at = codes.expiry_from_now(data.code_expiry_days)

    mosque = await MosqueRepository.create(
        db,
        name=data.name.strip(),
        location=data.location.strip(),
        description=data.description,
        contact_phone=data.contact_phone,
        contact_email=data.contact_email,
        admin_instructions=data.admin_instructions,
        verification_code=code,
        verification_code_expires_at=expires_at,
    )
    trail.record(
        db,
        action_type=AuditActionType.MOSQUE_CREATED,
        actor=actor,
        target_type=AuditTargetType.MOSQUE,
        target_id=mosque.id,
        target_name=mosque.name,
        detail={"location": mosque.location, "code_expires_at": expires_at.isoformat()},
    )
    await db.commit()
    await db.refresh(mosque)

    logger.info(f"Created mosque {mosque.id} ({mosque.name})")
    return mosque


async def get_verification_info(db: AsyncSession, mosque_id: UUID) -> MosqueVerificationInfo:
    mosque = await MosqueRepository.get_by_id(db, mosque_id)
    if mosque is None:
        raise MosqueNotFoundError(mosque_id)

    admins = await AdminRepository.list_bound_to_mosque(db, mosque_id)
    expires_at = as_utc(mosque.verification_code_expires_at)

    return MosqueVerificationInfo(
        mosque=MosqueResponse.model_validate(mosque),
        verification_code=mosque.verification_code,
        verification_code_expires_at=expires_at,
        is_expired=utcnow() > expires_at,
        admins=[BoundAdmin.model_validate(a) for a in admins],
    )
