"""
Email Service using Resend
Sync notifications rendered from MJML templates
"""

import logging
from typing import Optional, Union

import resend
from mjml import mjml_to_html

from .config import EMAIL_FROM_ADDRESS, FRONTEND_URL, RESEND_API_KEY
from .email_templates import sync_completed_template, sync_report_template

logger = logging.getLogger(__name__)

resend.api_key = RESEND_API_KEY


class EmailNotConfiguredError(Exception):
    """RESEND_API_KEY is missing"""


class EmailSendError(Exception):
    pass


def compile_mjml_to_html(mjml_content: str) -> str:
    """Compile MJML template to production-ready HTML"""
    result = mjml_to_html(mjml_content)
    # Newer releases return an object with .html/.errors, older ones a dict
    if isinstance(result, dict):
        if result.get("errors"):
            logger.warning(f"MJML compilation warnings: {result['errors']}")
        return result.get("html", "")
    if getattr(result, "errors", None):
        logger.warning(f"MJML compilation warnings: {result.errors}")
    return getattr(result, "html", str(result))


async def send_email(
    to: Union[str, list[str]],
    subject: str,
    mjml_content: str,
    from_address: Optional[str] = None,
) -> dict:
    """
    Send an email through Resend

    Args:
        to: Recipient email(s)
        subject: Email subject line
        mjml_content: MJML template content (will be compiled to HTML)
        from_address: Optional custom from address

    Returns:
        Send response dict
    """
    if not RESEND_API_KEY:
        logger.error("❌ No email service configured - RESEND_API_KEY missing")
        raise EmailNotConfiguredError("Email service not configured")

    recipients = [to] if isinstance(to, str) else to
    html_content = compile_mjml_to_html(mjml_content)

    try:
        logger.info(f"📧 Sending email via Resend to: {recipients}")
        response = resend.Emails.send(
            {
                "from": from_address or EMAIL_FROM_ADDRESS,
                "to": recipients,
                "subject": subject,
                "html": html_content,
            }
        )
        logger.info("✅ Email sent successfully via Resend")
        return response
    except Exception as e:
        logger.error(f"❌ Email send error to {recipients}: {e}")
        raise EmailSendError(f"Failed to send email: {e}") from e


async def send_sync_completed_email(
    to: str, platform: str, new_bookings: int, updated_bookings: int, error_count: int
) -> dict:
    """Tell a villa owner that an integration brought in new or changed bookings"""
    mjml_content = sync_completed_template(
        platform=platform,
        new_bookings=new_bookings,
        updated_bookings=updated_bookings,
        error_count=error_count,
        dashboard_url=f"{FRONTEND_URL}/bookings" if FRONTEND_URL else None,
    )
    return await send_email(
        to=to,
        subject=f"{platform} sync: {new_bookings} new, {updated_bookings} updated bookings",
        mjml_content=mjml_content,
    )


async def send_sync_report_email(
    to: str,
    total_integrations: int,
    successful: int,
    failed: int,
    new_bookings: int,
    updated_bookings: int,
    errors: list[str],
) -> dict:
    mjml_content = sync_report_template(
        total_integrations=total_integrations,
        successful=successful,
        failed=failed,
        new_bookings=new_bookings,
        updated_bookings=updated_bookings,
        errors=errors,
    )
    return await send_email(
        to=to,
        subject=f"Full sync report: {new_bookings} new bookings, {failed} failed integrations",
        mjml_content=mjml_content,
    )
