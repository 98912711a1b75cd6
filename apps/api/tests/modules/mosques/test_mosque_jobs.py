"""
Tests for the expiring-codes report job.
"""

from datetime import timedelta
from unittest.mock import AsyncMock, patch

import pytest

from app.core import scheduler
from app.core.config import settings
from app.modules.mosques import jobs
from app.modules.super_admins.models import SuperAdmin


@pytest.fixture
def job_db(session_maker):
    with patch("app.modules.mosques.jobs.async_session_maker", new=session_maker):
        yield


@pytest.fixture
def digest():
    with patch(
        "app.modules.mosques.jobs.send_expiring_codes_digest", new=AsyncMock(return_value=True)
    ) as mock:
        yield mock


async def _add_super_admin(db, email, is_active=True):
    db.add(SuperAdmin(email=email, name="Root Admin", password_hash="x", is_active=is_active))
    await db.commit()


class TestReportExpiringCodes:
    @pytest.mark.asyncio
    async def test_nothing_to_report(self, db, job_db, digest, make_mosque):
        await make_mosque(expires_in=timedelta(days=90))
        await _add_super_admin(db, "root@example.com")

        result = await jobs.report_expiring_codes()

        assert result["expired"] == 0
        assert result["expiring_soon"] == 0
        assert result["emails_sent"] == 0
        digest.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_digest_sent_to_active_super_admins(
        self, db, job_db, digest, make_mosque, monkeypatch
    ):
        monkeypatch.setattr(settings, "super_admin_notification_email", None)
        await make_mosque(name="Masjid Noor", expires_in=timedelta(days=-1))
        await make_mosque(expires_in=timedelta(days=2))
        await _add_super_admin(db, "root@example.com")
        await _add_super_admin(db, "old@example.com", is_active=False)

        result = await jobs.report_expiring_codes()

        assert result["expired"] == 1
        assert result["expiring_soon"] == 1
        assert result["emails_sent"] == 1
        digest.assert_awaited_once()
        kwargs = digest.await_args.kwargs
        assert kwargs["to_email"] == "root@example.com"
        assert kwargs["expired"][0]["name"] == "Masjid Noor"

    @pytest.mark.asyncio
    async def test_configured_address_overrides_super_admins(
        self, db, job_db, digest, make_mosque, monkeypatch
    ):
        monkeypatch.setattr(settings, "super_admin_notification_email", "ops@example.com")
        await make_mosque(expires_in=timedelta(days=-1))
        await _add_super_admin(db, "root@example.com")

        await jobs.report_expiring_codes()

        assert digest.await_args.kwargs["to_email"] == "ops@example.com"

    @pytest.mark.asyncio
    async def test_failed_send_is_counted(self, db, job_db, digest, make_mosque, monkeypatch):
        monkeypatch.setattr(settings, "super_admin_notification_email", None)
        digest.side_effect = RuntimeError("provider down")
        await make_mosque(expires_in=timedelta(days=-1))
        await _add_super_admin(db, "root@example.com")

        result = await jobs.report_expiring_codes()

        assert result["emails_sent"] == 0
        assert result["emails_failed"] == 1


class TestRegistration:
    def test_register_mosque_jobs(self, monkeypatch):
        monkeypatch.setattr(scheduler, "_job_registry", {})

        jobs.register_mosque_jobs()

        assert jobs.JOB_ID_REPORT_EXPIRING_CODES in scheduler._job_registry
        func, trigger = scheduler._job_registry[jobs.JOB_ID_REPORT_EXPIRING_CODES]
        assert func is jobs.report_expiring_codes
        assert trigger.interval == timedelta(hours=jobs.REPORT_INTERVAL_HOURS)
