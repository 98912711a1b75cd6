"""
Mosque Admin Repository

Database operations for admin records. Nothing here commits, and admins
are never deleted.
"""

from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.admins.models import BOUND_STATUSES, AdminStatus, MosqueAdmin


class AdminRepository:
    """Repository for mosque admin database operations."""

    @staticmethod
    async def add(db: AsyncSession, admin: MosqueAdmin) -> MosqueAdmin:
        db.add(admin)
        await db.flush()
        return admin

    @staticmethod
    async def get_by_id(
        db: AsyncSession,
        admin_id: UUID,
        *,
        fresh: bool = False,
    ) -> MosqueAdmin | None:
        """
        Fetch an admin.

        Args:
            fresh: Reload from the database even if the session already holds it
        """
        return await db.get(MosqueAdmin, admin_id, populate_existing=fresh)

    @staticmethod
    async def get_by_email(db: AsyncSession, email: str) -> MosqueAdmin | None:
        result = await db.execute(
            select(MosqueAdmin).where(MosqueAdmin.email == email.strip().lower())
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def find_by_email_or_phone(
        db: AsyncSession, email: str, phone: str
    ) -> MosqueAdmin | None:
        result = await db.execute(
            select(MosqueAdmin)
            .where(or_(MosqueAdmin.email == email.strip().lower(), MosqueAdmin.phone == phone))
            .limit(1)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def get_approved_for_mosque(
        db: AsyncSession,
        mosque_id: UUID,
        *,
        exclude_admin_id: UUID | None = None,
    ) -> MosqueAdmin | None:
        query = select(MosqueAdmin).where(
            MosqueAdmin.mosque_id == mosque_id,
            MosqueAdmin.status == AdminStatus.APPROVED,
        )
        if exclude_admin_id is not None:
            query = query.where(MosqueAdmin.id != exclude_admin_id)
        result = await db.execute(query.limit(1))
        return result.scalar_one_or_none()

    @staticmethod
    async def list_bound_ids(db: AsyncSession, mosque_id: UUID) -> list[UUID]:
        """Ids of admins currently bound to the mosque (pending or approved)."""
        result = await db.execute(
            select(MosqueAdmin.id)
            .where(
                MosqueAdmin.mosque_id == mosque_id,
                MosqueAdmin.status.in_(BOUND_STATUSES),
            )
            .order_by(MosqueAdmin.created_at)
        )
        return list(result.scalars().all())

    @staticmethod
    async def list_bound_to_mosque(db: AsyncSession, mosque_id: UUID) -> list[MosqueAdmin]:
        result = await db.execute(
            select(MosqueAdmin)
            .where(
                MosqueAdmin.mosque_id == mosque_id,
                MosqueAdmin.status.in_(BOUND_STATUSES),
            )
            .order_by(MosqueAdmin.created_at)
        )
        return list(result.scalars().all())

    @staticmethod
    async def list_by_status(
        db: AsyncSession,
        status: AdminStatus | None = None,
        *,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[list[MosqueAdmin], int]:
        """Paginated admins, newest first, optionally filtered by status."""
        query = select(MosqueAdmin)
        count_query = select(func.count()).select_from(MosqueAdmin)
        if status is not None:
            query = query.where(MosqueAdmin.status == status)
            count_query = count_query.where(MosqueAdmin.status == status)

        total = (await db.execute(count_query)).scalar_one()
        result = await db.execute(
            query.order_by(MosqueAdmin.created_at.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        return list(result.scalars().all()), total
