"""
Super Admin Repository
"""

import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.super_admins.models import SuperAdmin

logger = logging.getLogger(__name__)


class SuperAdminRepository:
    """Repository for super admin database operations."""

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        email: str,
        name: str,
        password_hash: str,
        is_active: bool = True,
    ) -> SuperAdmin:
        """Create a super admin. Caller must commit."""
        super_admin = SuperAdmin(
            email=email.lower(),
            name=name,
            password_hash=password_hash,
            is_active=is_active,
        )
        db.add(super_admin)
        await db.flush()
        logger.info(f"Created super admin: {super_admin.email}")
        return super_admin

    @staticmethod
    async def get_by_id(db: AsyncSession, super_admin_id: UUID) -> SuperAdmin | None:
        return await db.get(SuperAdmin, super_admin_id)

    @staticmethod
    async def get_by_email(db: AsyncSession, email: str) -> SuperAdmin | None:
        result = await db.execute(select(SuperAdmin).where(SuperAdmin.email == email.lower()))
        return result.scalar_one_or_none()

    @staticmethod
    async def email_exists(db: AsyncSession, email: str) -> bool:
        result = await db.execute(select(SuperAdmin.id).where(SuperAdmin.email == email.lower()))
        return result.scalar_one_or_none() is not None

    @staticmethod
    async def list_active_emails(db: AsyncSession) -> list[str]:
        result = await db.execute(
            select(SuperAdmin.email)
            .where(SuperAdmin.is_active.is_(True))
            .order_by(SuperAdmin.email)
        )
        return list(result.scalars().all())
