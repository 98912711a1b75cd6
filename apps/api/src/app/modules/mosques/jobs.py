"""
Mosque Background Jobs

Daily report of verification codes that have expired or will expire soon,
emailed to super admins so they can regenerate them before admins are
locked out of registration and re-verification.

The job only reads and notifies; it never regenerates codes itself.
"""

import logging
from typing import Any

from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.database import async_session_maker
from app.core.email import send_expiring_codes_digest
from app.core.scheduler import register_job
from app.modules.mosques.cascade import list_expiring_codes
from app.modules.mosques.schemas import ExpiringCodeItem
from app.modules.super_admins.repository import SuperAdminRepository

logger = logging.getLogger(__name__)

JOB_ID_REPORT_EXPIRING_CODES = "mosques_report_expiring_codes"
REPORT_INTERVAL_HOURS = 24


def _digest_items(items: list[ExpiringCodeItem]) -> list[dict]:
    return [
        {
            "name": item.name,
            "location": item.location,
            "expires_at": item.expires_at.isoformat(),
        }
        for item in items
    ]


async def _recipients(db: AsyncSession) -> list[str]:
    if settings.super_admin_notification_email:
        return [settings.super_admin_notification_email]
    return await SuperAdminRepository.list_active_emails(db)


async def report_expiring_codes() -> dict[str, Any]:
    """
    Email super admins a digest of expired and soon-expiring codes.

    Returns:
        Dict with job execution summary including:
        - executed_at: When the job ran
        - expired / expiring_soon: Number of mosques in each group
        - emails_sent / emails_failed: Delivery results per recipient
    """
    async with async_session_maker() as db:
        report = await list_expiring_codes(db)
        recipients = await _recipients(db)

    results: dict[str, Any] = {
        "executed_at": report.checked_at.isoformat(),
        "days_ahead": report.days_ahead,
        "expired": len(report.expired),
        "expiring_soon": len(report.expiring_soon),
        "emails_sent": 0,
        "emails_failed": 0,
    }

    logger.info(
        f"Expiring codes report: {results['expired']} expired, "
        f"{results['expiring_soon']} expiring within {report.days_ahead} days"
    )

    if not report.expired and not report.expiring_soon:
        return results

    if not recipients:
        logger.warning("No super admin email configured; expiring codes digest not sent")
        return results

    expired = _digest_items(report.expired)
    expiring_soon = _digest_items(report.expiring_soon)

    for email in recipients:
        try:
            sent = await send_expiring_codes_digest(
                to_email=email,
                expired=expired,
                expiring_soon=expiring_soon,
                days_ahead=report.days_ahead,
            )
        except Exception as e:
            logger.error(f"Error sending expiring codes digest: {e}", exc_info=True)
            sent = False
        results["emails_sent" if sent else "emails_failed"] += 1

    logger.info(
        f"Expiring codes report completed. "
        f"Sent: {results['emails_sent']}, Failed: {results['emails_failed']}"
    )
    return results


def register_mosque_jobs() -> None:
    """Register mosque background jobs. Call before starting the scheduler."""
    register_job(
        job_id=JOB_ID_REPORT_EXPIRING_CODES,
        func=report_expiring_codes,
        trigger=IntervalTrigger(hours=REPORT_INTERVAL_HOURS),
    )
    logger.info(
        f"Registered job: {JOB_ID_REPORT_EXPIRING_CODES} (interval: {REPORT_INTERVAL_HOURS} hours)"
    )
