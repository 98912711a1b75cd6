"""
Concurrency tests for admin transitions.

A second session stands in for a competing request: it commits a change
to the same admin row between our read and our commit.
"""

from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import select, update

from app.modules.admins import service
from app.modules.admins.models import AdminStatus, MosqueAdmin
from app.modules.admins.repository import AdminRepository
from app.modules.admins.service import AlreadyApprovedForMosqueError
from app.modules.audit.models import AuditActionType, AuditEntry, AuditStatus
from app.modules.shared.errors import ConcurrentModificationError

original_get_approved = AdminRepository.get_approved_for_mosque


@pytest.fixture(autouse=True)
def mock_emails():
    with patch("app.modules.admins.service.send_admin_approved", new=AsyncMock()):
        yield


async def _bump_version(session_maker, admin_id) -> None:
    """Commit an unrelated change to the admin row from another session."""
    async with session_maker() as other:
        await other.execute(
            update(MosqueAdmin.__table__)
            .where(MosqueAdmin.__table__.c.id == admin_id)
            .values(version_id=MosqueAdmin.__table__.c.version_id + 1)
        )
        await other.commit()


async def _approval_audits(db) -> list[AuditEntry]:
    result = await db.execute(
        select(AuditEntry).where(AuditEntry.action_type == AuditActionType.ADMIN_APPROVED)
    )
    return list(result.scalars().all())


class TestOptimisticLocking:
    @pytest.mark.asyncio
    async def test_stale_write_is_retried_once(
        self, db, session_maker, make_mosque, make_admin, super_admin_actor
    ):
        mosque = await make_mosque()
        admin = await make_admin(mosque)
        admin_id = admin.id
        calls = {"n": 0}

        async def racing(session, mosque_id, **kwargs):
            calls["n"] += 1
            if calls["n"] == 1:
                await _bump_version(session_maker, admin_id)
            return await original_get_approved(session, mosque_id, **kwargs)

        with patch.object(AdminRepository, "get_approved_for_mosque", new=racing):
            approved = await service.approve(db, admin_id, super_admin_actor)

        assert calls["n"] == 2
        assert approved.status == AdminStatus.APPROVED
        audits = await _approval_audits(db)
        assert [a.status for a in audits] == [AuditStatus.SUCCESS]

    @pytest.mark.asyncio
    async def test_retries_exhausted(
        self, db, session_maker, make_mosque, make_admin, super_admin_actor
    ):
        mosque = await make_mosque()
        admin = await make_admin(mosque)
        admin_id = admin.id

        async def always_racing(session, mosque_id, **kwargs):
            await _bump_version(session_maker, admin_id)
            return await original_get_approved(session, mosque_id, **kwargs)

        with patch.object(AdminRepository, "get_approved_for_mosque", new=always_racing):
            with pytest.raises(ConcurrentModificationError) as exc_info:
                await service.approve(db, admin_id, super_admin_actor)

        assert exc_info.value.status_code == 409
        view = await service.get_own_status(db, admin_id)
        assert view.admin.status == AdminStatus.PENDING
        assert await _approval_audits(db) == []


class TestOneApprovedAdminPerMosque:
    @pytest.mark.asyncio
    async def test_unique_index_catches_missed_precheck(
        self, db, make_mosque, make_admin, super_admin_actor
    ):
        mosque = await make_mosque()
        first = await make_admin(mosque)
        second = await make_admin(mosque)
        second_id = second.id
        await service.approve(db, first.id, super_admin_actor)

        # Simulate a competing approval that the pre-check could not see
        with patch.object(
            AdminRepository, "get_approved_for_mosque", new=AsyncMock(return_value=None)
        ):
            with pytest.raises(AlreadyApprovedForMosqueError):
                await service.approve(db, second_id, super_admin_actor)

        view = await service.get_own_status(db, second_id)
        assert view.admin.status == AdminStatus.PENDING
        audits = await _approval_audits(db)
        assert sorted(a.status.value for a in audits) == ["failed", "success"]
