"""
Email Service using Resend

Notifications sent to mosque admins as their account moves through its
lifecycle, plus the super admin digest of expiring verification codes.

Email is never critical to an operation: callers log failures and carry on.
"""

import asyncio
import logging
from html import escape

import resend

from app.core.config import settings

logger = logging.getLogger(__name__)

resend.api_key = settings.resend_api_key


async def send_email(
    to_email: str,
    subject: str,
    html_content: str,
) -> bool:
    """
    Send an email using Resend.

    Without an API key the email is logged instead of sent.

    Args:
        to_email: Recipient email address
        subject: Email subject line
        html_content: HTML content of the email

    Returns:
        True if email was sent (or logged) successfully
    """
    if not resend.api_key:
        logger.warning("RESEND_API_KEY not set - logging email instead of sending")
        logger.info(f"EMAIL TO: {to_email} | SUBJECT: {subject}")
        return True

    try:
        params: resend.Emails.SendParams = {
            "from": settings.email_from,
            "to": [to_email],
            "subject": subject,
            "html": html_content,
        }

        # Resend's client is synchronous
        email = await asyncio.to_thread(resend.Emails.send, params)
        logger.info(f"Email sent successfully to {to_email}, id: {email['id']}")
        return True
    except Exception as e:
        logger.error(f"Failed to send email to {to_email}: {e}")
        return False


def _render(title: str, body_html: str) -> str:
    """Wrap body HTML in the shared email layout."""
    return f"""
    <!DOCTYPE html>
    <html>
    <head>
        <style>
            body {{ font-family: system-ui, -apple-system, sans-serif; line-height: 1.6; color: #1f2937; }}
            .container {{ max-width: 600px; margin: 0 auto; padding: 40px 20px; }}
            .header {{ color: #14532d; margin-bottom: 24px; }}
            .box {{ background-color: #f3f4f6; border-radius: 8px; padding: 16px 20px; margin: 20px 0; }}
            .button {{ display: inline-block; background-color: #14532d; color: white; padding: 14px 28px; text-decoration: none; border-radius: 8px; margin: 24px 0; }}
            .footer {{ margin-top: 40px; padding-top: 20px; border-top: 1px solid #e5e7eb; color: #6b7280; font-size: 14px; }}
            table {{ border-collapse: collapse; width: 100%; }}
            td, th {{ text-align: left; padding: 6px 8px; border-bottom: 1px solid #e5e7eb; }}
        </style>
    </head>
    <body>
        <div class="container">
            <h1 class="header">{title}</h1>
            {body_html}
            <div class="footer">
                <p>Mosque Finder - Mosque Administration</p>
            </div>
        </div>
    </body>
    </html>
    """


def _reapply_paragraph(can_reapply: bool) -> str:
    if can_reapply:
        return (
            "<p>You may reapply at any time by logging in with your existing account "
            "and entering a valid mosque verification code.</p>"
        )
    return "<p>Reapplication is currently not available for your account.</p>"


async def send_admin_approved(to_email: str, admin_name: str, mosque_name: str) -> bool:
    """Tell an admin their application was approved."""
    safe_name = escape(admin_name)
    safe_mosque = escape(mosque_name)
    login_url = f"{settings.frontend_url}/admin/login"

    body = f"""
            <p>Assalamu Alaikum {safe_name},</p>
            <p>Your application to manage <strong>{safe_mosque}</strong> has been approved.</p>
            <a href="{login_url}" class="button">Log In</a>
    """
    return await send_email(
        to_email=to_email,
        subject=f"You are now the admin of {safe_mosque}",
        html_content=_render("Application Approved", body),
    )


async def send_admin_rejected(
    to_email: str,
    admin_name: str,
    mosque_name: str,
    reason: str,
    can_reapply: bool,
) -> bool:
    """Tell an applicant their application was rejected and whether they can reapply."""
    safe_name = escape(admin_name)
    safe_mosque = escape(mosque_name)
    safe_reason = escape(reason)

    body = f"""
            <p>Assalamu Alaikum {safe_name},</p>
            <p>Your application to manage <strong>{safe_mosque}</strong> was not approved.</p>
            <div class="box"><strong>Reason:</strong> {safe_reason}</div>
            {_reapply_paragraph(can_reapply)}
    """
    return await send_email(
        to_email=to_email,
        subject=f"Update on your application for {safe_mosque}",
        html_content=_render("Application Not Approved", body),
    )


async def send_admin_removed(
    to_email: str,
    admin_name: str,
    mosque_name: str,
    reason: str,
    can_reapply: bool,
) -> bool:
    safe_name = escape(admin_name)
    safe_mosque = escape(mosque_name)
    safe_reason = escape(reason)

    body = f"""
            <p>Assalamu Alaikum {safe_name},</p>
            <p>You have been removed as the admin of <strong>{safe_mosque}</strong>.</p>
            <div class="box"><strong>Reason:</strong> {safe_reason}</div>
            {_reapply_paragraph(can_reapply)}
    """
    return await send_email(
        to_email=to_email,
        subject=f"You have been removed as admin of {safe_mosque}",
        html_content=_render("Admin Access Removed", body),
    )


async def send_mosque_deleted_notice(
    to_email: str,
    admin_name: str,
    mosque_name: str,
    reason: str,
    can_reapply: bool,
) -> bool:
    safe_name = escape(admin_name)
    safe_mosque = escape(mosque_name)
    safe_reason = escape(reason)

    body = f"""
            <p>Assalamu Alaikum {safe_name},</p>
            <p><strong>{safe_mosque}</strong> has been removed from Mosque Finder.
            Your account has been kept, but it is no longer linked to a mosque.</p>
            <div class="box"><strong>Reason:</strong> {safe_reason}</div>
            {_reapply_paragraph(can_reapply)}
    """
    return await send_email(
        to_email=to_email,
        subject=f"{safe_mosque} has been removed",
        html_content=_render("Mosque Removed", body),
    )


async def send_code_regenerated_notice(to_email: str, admin_name: str, mosque_name: str) -> bool:
    """Ask an approved admin to re-verify with their mosque's new code."""
    safe_name = escape(admin_name)
    safe_mosque = escape(mosque_name)
    login_url = f"{settings.frontend_url}/admin/login"

    body = f"""
            <p>Assalamu Alaikum {safe_name},</p>
            <p>The verification code for <strong>{safe_mosque}</strong> has been changed.</p>
            <p>To keep managing the mosque, log in and enter the new code. Please contact the
            super admin to receive it.</p>
            <a href="{login_url}" class="button">Log In</a>
    """
    return await send_email(
        to_email=to_email,
        subject=f"Action required: new verification code for {safe_mosque}",
        html_content=_render("Verification Code Changed", body),
    )


async def send_expiring_codes_digest(
    to_email: str,
    expired: list[dict],
    expiring_soon: list[dict],
    days_ahead: int,
) -> bool:
    """
    Digest of verification codes that have expired or will expire soon.

    Each item needs ``name``, ``location`` and ``expires_at`` (ISO string).
    """

    def rows(items: list[dict]) -> str:
        if not items:
            return "<p>None.</p>"
        lines = "".join(
            f"<tr><td>{escape(i['name'])}</td><td>{escape(i['location'])}</td>"
            f"<td>{escape(i['expires_at'])}</td></tr>"
            for i in items
        )
        return f"<table><tr><th>Mosque</th><th>Location</th><th>Expires</th></tr>{lines}</table>"

    body = f"""
            <p>{len(expired)} mosque verification code(s) have expired and
            {len(expiring_soon)} will expire within {days_ahead} days.</p>
            <h3>Expired</h3>
            {rows(expired)}
            <h3>Expiring soon</h3>
            {rows(expiring_soon)}
            <a href="{settings.frontend_url}/super-admin/mosques" class="button">Manage Mosques</a>
    """
    return await send_email(
        to_email=to_email,
        subject=f"{len(expired)} expired, {len(expiring_soon)} expiring mosque codes",
        html_content=_render("Verification Code Report", body),
    )
