"""
Tests for mosque deletion and code regeneration cascades.
"""

from datetime import timedelta
from unittest.mock import AsyncMock, patch
from uuid import uuid4

import pytest
from sqlalchemy import select

from app.modules.admins import service as admin_service
from app.modules.admins.details import MosqueDeletedDetails
from app.modules.admins.models import AdminStatus
from app.modules.audit.models import AuditActionType, AuditEntry, AuditStatus
from app.modules.mosques import cascade, codes
from app.modules.mosques.repository import MosqueRepository
from app.modules.mosques.schemas import MosqueCreate
from app.modules.mosques.service import create_mosque, get_verification_info
from app.modules.shared.errors import ConcurrentModificationError, MosqueNotFoundError


@pytest.fixture(autouse=True)
def mock_emails():
    with (
        patch("app.modules.admins.service.send_admin_approved", new=AsyncMock()),
        patch("app.modules.admins.service.send_admin_rejected", new=AsyncMock()),
        patch(
            "app.modules.mosques.cascade.send_mosque_deleted_notice", new=AsyncMock()
        ) as deleted_notice,
        patch(
            "app.modules.mosques.cascade.send_code_regenerated_notice", new=AsyncMock()
        ) as code_notice,
    ):
        yield {"deleted": deleted_notice, "code": code_notice}


async def _audits(db, action_type: AuditActionType) -> list[AuditEntry]:
    result = await db.execute(select(AuditEntry).where(AuditEntry.action_type == action_type))
    return list(result.scalars().all())


# ============================================
# Creation
# ============================================


class TestCreateMosque:
    @pytest.mark.asyncio
    async def test_create_issues_code_and_audits(self, db, super_admin_actor):
        mosque = await create_mosque(
            db,
            MosqueCreate(name="  Masjid Noor ", location="Karachi", code_expiry_days=7),
            super_admin_actor,
        )

        assert mosque.name == "Masjid Noor"
        assert len(mosque.verification_code) == 16
        assert (await codes.validate(db, mosque.id, mosque.verification_code)).valid

        entries = await _audits(db, AuditActionType.MOSQUE_CREATED)
        assert len(entries) == 1
        assert entries[0].target_id == mosque.id

    @pytest.mark.asyncio
    async def test_verification_info_lists_bound_admins(
        self, db, make_mosque, make_admin, super_admin_actor
    ):
        mosque = await make_mosque()
        first = await make_admin(mosque)
        second = await make_admin(mosque)
        await admin_service.reject(db, second.id, super_admin_actor, "No documents attached")

        info = await get_verification_info(db, mosque.id)

        assert info.verification_code == mosque.verification_code
        assert info.is_expired is False
        assert [a.id for a in info.admins] == [first.id]

    @pytest.mark.asyncio
    async def test_verification_info_unknown_mosque(self, db):
        with pytest.raises(MosqueNotFoundError):
            await get_verification_info(db, uuid4())


# ============================================
# Deletion
# ============================================


class TestDeleteMosque:
    @pytest.mark.asyncio
    async def test_delete_moves_bound_admins_and_snapshots_mosque(
        self, db, make_mosque, make_admin, super_admin_actor, mock_emails
    ):
        mosque = await make_mosque(name="Masjid Noor", location="Karachi")
        approved = await make_admin(mosque)
        pending = await make_admin(mosque)
        await admin_service.approve(db, approved.id, super_admin_actor)

        result = await cascade.delete_mosque(db, mosque.id, super_admin_actor, reason="Closed")

        assert result.mosque_deleted is True
        assert set(result.cascaded_admin_ids) == {approved.id, pending.id}
        assert result.failed_admins == []
        assert await MosqueRepository.get_by_id(db, mosque.id, fresh=True) is None

        for admin_id in (approved.id, pending.id):
            view = await admin_service.get_own_status(db, admin_id)
            assert view.admin.status == AdminStatus.MOSQUE_DELETED
            assert view.admin.mosque_id is None
            details = view.admin.details
            assert isinstance(details, MosqueDeletedDetails)
            assert details.deleted_mosque_name == "Masjid Noor"
            assert details.deleted_mosque_location == "Karachi"
            assert view.can_reapply is True

        assert len(await _audits(db, AuditActionType.ADMIN_MOSQUE_DELETED)) == 2
        assert len(await _audits(db, AuditActionType.MOSQUE_DELETED)) == 1
        assert mock_emails["deleted"].await_count == 2

    @pytest.mark.asyncio
    async def test_rejected_admin_is_not_touched(
        self, db, make_mosque, make_admin, super_admin_actor
    ):
        mosque = await make_mosque()
        admin = await make_admin(mosque)
        await admin_service.reject(db, admin.id, super_admin_actor, "No documents attached")

        result = await cascade.delete_mosque(db, mosque.id, super_admin_actor)

        assert result.mosque_deleted is True
        assert result.cascaded_admin_ids == []
        view = await admin_service.get_own_status(db, admin.id)
        assert view.admin.status == AdminStatus.REJECTED

    @pytest.mark.asyncio
    async def test_partial_cascade_keeps_mosque(
        self, db, make_mosque, make_admin, super_admin_actor
    ):
        mosque = await make_mosque()
        stuck = await make_admin(mosque)
        moved = await make_admin(mosque)
        real_mark = admin_service.mark_mosque_deleted

        async def flaky_mark(session, admin_id, **kwargs):
            if admin_id == stuck.id:
                raise ConcurrentModificationError(f"Admin {admin_id}")
            return await real_mark(session, admin_id, **kwargs)

        with patch("app.modules.admins.service.mark_mosque_deleted", new=flaky_mark):
            result = await cascade.delete_mosque(db, mosque.id, super_admin_actor)

        assert result.mosque_deleted is False
        assert result.error_code == "PARTIAL_CASCADE"
        assert [f.admin_id for f in result.failed_admins] == [stuck.id]
        assert result.cascaded_admin_ids == [moved.id]
        assert await MosqueRepository.get_by_id(db, mosque.id, fresh=True) is not None

        # A retry finishes the job with only the remaining admin
        retry = await cascade.delete_mosque(db, mosque.id, super_admin_actor)

        assert retry.mosque_deleted is True
        assert retry.cascaded_admin_ids == [stuck.id]

    @pytest.mark.asyncio
    async def test_delete_unknown_mosque(self, db, super_admin_actor):
        with pytest.raises(MosqueNotFoundError):
            await cascade.delete_mosque(db, uuid4(), super_admin_actor)


class TestBulkDelete:
    @pytest.mark.asyncio
    async def test_bulk_delete_reports_each_mosque(self, db, make_mosque, super_admin_actor):
        first = await make_mosque()
        second = await make_mosque()
        missing = uuid4()

        result = await cascade.bulk_delete_mosques(
            db, [first.id, missing, second.id, first.id], super_admin_actor
        )

        assert result.requested == 3
        assert result.deleted == 2
        assert result.failed == 1
        failed = [r for r in result.results if not r.mosque_deleted]
        assert failed[0].mosque_id == missing
        assert failed[0].error_code == "MOSQUE_NOT_FOUND"

        bulk_entries = await _audits(db, AuditActionType.BULK_MOSQUE_DELETION)
        assert len(bulk_entries) == 1
        assert bulk_entries[0].status == AuditStatus.FAILED
        assert bulk_entries[0].detail["failed_mosque_ids"] == [str(missing)]


# ============================================
# Code regeneration
# ============================================


class TestRegenerateCode:
    @pytest.mark.asyncio
    async def test_regenerate_flags_approved_admin(
        self, db, make_mosque, make_admin, super_admin_actor, mock_emails
    ):
        mosque = await make_mosque()
        old_code = mosque.verification_code
        admin = await make_admin(mosque)
        await admin_service.approve(db, admin.id, super_admin_actor)

        result = await cascade.regenerate_code(db, mosque.id, super_admin_actor, expiry_days=14)

        assert result.success is True
        assert result.old_code == old_code
        assert result.new_code != old_code
        assert result.affected_admin.id == admin.id
        assert result.affected_admin.status == AdminStatus.APPROVED
        mock_emails["code"].assert_awaited_once()

        view = await admin_service.get_own_status(db, admin.id)
        assert view.admin.status == AdminStatus.APPROVED
        assert view.needs_new_code is True

        regenerated = await _audits(db, AuditActionType.CODE_REGENERATED)
        assert len(regenerated) == 1
        # Codes are never written to the audit log in clear
        assert result.new_code not in str(regenerated[0].detail)
        changed = await _audits(db, AuditActionType.ADMIN_STATUS_CHANGED)
        assert [e.target_id for e in changed] == [admin.id]

    @pytest.mark.asyncio
    async def test_regenerate_without_approved_admin(self, db, make_mosque, super_admin_actor):
        mosque = await make_mosque()

        result = await cascade.regenerate_code(db, mosque.id, super_admin_actor)

        assert result.affected_admin is None
        assert await _audits(db, AuditActionType.ADMIN_STATUS_CHANGED) == []

    @pytest.mark.asyncio
    async def test_regenerate_unknown_mosque_is_audited(self, db, super_admin_actor):
        with pytest.raises(MosqueNotFoundError):
            await cascade.regenerate_code(db, uuid4(), super_admin_actor)

        entries = await _audits(db, AuditActionType.CODE_REGENERATED)
        assert [e.status for e in entries] == [AuditStatus.FAILED]


class TestBulkRegenerate:
    @pytest.mark.asyncio
    async def test_bulk_regenerate_continues_past_failures(
        self, db, make_mosque, super_admin_actor
    ):
        first = await make_mosque()
        second = await make_mosque()
        first_id, first_code = first.id, first.verification_code
        second_id = second.id
        missing = uuid4()

        result = await cascade.bulk_regenerate_codes(
            db, [first_id, missing, second_id], super_admin_actor
        )

        assert result.requested == 3
        assert result.regenerated == 2
        assert result.failed == 1
        assert [r.success for r in result.results] == [True, False, True]
        assert (await codes.validate(db, first_id, first_code)).valid is False
        assert (await codes.validate(db, first_id, result.results[0].new_code)).valid is True
        assert len(await _audits(db, AuditActionType.CODE_REGENERATED)) == 2
        assert len(await _audits(db, AuditActionType.BULK_CODE_REGENERATION)) == 1

    @pytest.mark.asyncio
    async def test_regenerate_expired_only(self, db, make_mosque, super_admin_actor):
        expired = await make_mosque(expires_in=timedelta(days=-1))
        expired_code = expired.verification_code
        fresh = await make_mosque()
        fresh_code = fresh.verification_code

        result = await cascade.regenerate_expired_codes(db, super_admin_actor)

        assert [r.mosque_id for r in result.results] == [expired.id]
        assert (await codes.validate(db, expired.id, expired_code)).valid is False
        assert (await codes.validate(db, fresh.id, fresh_code)).valid is True


class TestListExpiringCodes:
    @pytest.mark.asyncio
    async def test_groups_expired_and_expiring(self, db, make_mosque):
        expired = await make_mosque(expires_in=timedelta(days=-2))
        soon = await make_mosque(expires_in=timedelta(days=3))
        await make_mosque(expires_in=timedelta(days=60))

        report = await cascade.list_expiring_codes(db, days_ahead=7)

        assert report.days_ahead == 7
        assert [i.mosque_id for i in report.expired] == [expired.id]
        assert [i.mosque_id for i in report.expiring_soon] == [soon.id]
        assert report.expired[0].days_left == 0
        assert report.expiring_soon[0].days_left == 2
