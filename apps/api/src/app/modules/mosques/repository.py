"""
Mosque Repository

Database operations for mosques. No business rules live here and nothing
commits: callers own the transaction.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.mosques.models import Mosque


class MosqueRepository:
    """Repository for mosque database operations."""

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        name: str,
        location: str,
        verification_code: str,
        verification_code_expires_at: datetime,
        description: str | None = None,
        contact_phone: str | None = None,
        contact_email: str | None = None,
        admin_instructions: str | None = None,
    ) -> Mosque:
        mosque = Mosque(
            name=name,
            location=location,
            description=description,
            contact_phone=contact_phone,
            contact_email=contact_email,
            admin_instructions=admin_instructions,
            verification_code=verification_code,
            verification_code_expires_at=verification_code_expires_at,
        )
        db.add(mosque)
        await db.flush()
        return mosque

    @staticmethod
    async def get_by_id(
        db: AsyncSession,
        mosque_id: UUID,
        *,
        for_update: bool = False,
        fresh: bool = False,
    ) -> Mosque | None:
        """
        Fetch a mosque.

        Args:
            for_update: Take a row lock (ignored by SQLite)
            fresh: Overwrite any copy already in the session with database state
        """
        query = select(Mosque).where(Mosque.id == mosque_id)
        if for_update:
            query = query.with_for_update()
        if fresh or for_update:
            query = query.execution_options(populate_existing=True)
        result = await db.execute(query)
        return result.scalar_one_or_none()

    @staticmethod
    async def swap_verification_code(
        db: AsyncSession,
        mosque_id: UUID,
        *,
        expected_code: str,
        new_code: str,
        expires_at: datetime,
    ) -> bool:
        """
        Compare-and-set the mosque's code.

        Only succeeds if the stored code still equals ``expected_code``.

        Returns:
            True if exactly one row was updated
        """
        result = await db.execute(
            update(Mosque)
            .where(Mosque.id == mosque_id, Mosque.verification_code == expected_code)
            .values(verification_code=new_code, verification_code_expires_at=expires_at)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount == 1

    @staticmethod
    async def delete(db: AsyncSession, mosque_id: UUID) -> bool:
        result = await db.execute(
            delete(Mosque).where(Mosque.id == mosque_id).execution_options(
                synchronize_session="fetch"
            )
        )
        return result.rowcount == 1

    @staticmethod
    async def list_expiring(db: AsyncSession, before: datetime) -> list[Mosque]:
        """Mosques whose code expires before ``before`` (already expired included)."""
        result = await db.execute(
            select(Mosque)
            .where(Mosque.verification_code_expires_at <= before)
            .order_by(Mosque.verification_code_expires_at)
        )
        return list(result.scalars().all())

    @staticmethod
    async def list_expired_ids(db: AsyncSession, now: datetime) -> list[UUID]:
        result = await db.execute(
            select(Mosque.id).where(Mosque.verification_code_expires_at < now)
        )
        return list(result.scalars().all())
