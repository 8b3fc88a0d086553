"""
Email Service using Resend

Handles sending join-workflow notifications. Sending never raises: callers
get a boolean and log failures without failing the request.
"""

import asyncio
import logging
from html import escape

import resend

from app.core.config import settings

logger = logging.getLogger(__name__)

resend.api_key = settings.resend_api_key

EMAIL_FROM = settings.email_from
FRONTEND_URL = settings.frontend_url

_BASE_STYLE = """
            body {{ font-family: system-ui, -apple-system, sans-serif; line-height: 1.6; color: #1f2937; }}
            .container {{ max-width: 600px; margin: 0 auto; padding: 40px 20px; }}
            .header {{ color: #1a365d; margin-bottom: 24px; }}
            .button {{ display: inline-block; background-color: #1a365d; color: white; padding: 14px 28px; text-decoration: none; border-radius: 8px; margin: 24px 0; }}
            .footer {{ margin-top: 40px; padding-top: 20px; border-top: 1px solid #e5e7eb; color: #6b7280; font-size: 14px; }}
"""


async def send_email(
    to_email: str,
    subject: str,
    html_content: str,
) -> bool:
    """
    Send an email using Resend.

    Args:
        to_email: Recipient email address
        subject: Email subject line
        html_content: HTML content of the email

    Returns:
        True if email was sent (or logged when no API key is configured)
    """
    if not resend.api_key:
        logger.warning("RESEND_API_KEY not set - logging email instead of sending")
        logger.info(f"EMAIL TO: {to_email} | SUBJECT: {subject}")
        return True

    try:
        params: resend.Emails.SendParams = {
            "from": EMAIL_FROM,
            "to": [to_email],
            "subject": subject,
            "html": html_content,
        }

        # Run sync Resend call in thread pool to avoid blocking event loop
        email = await asyncio.to_thread(resend.Emails.send, params)
        logger.info(f"Email sent successfully to {to_email}, id: {email['id']}")
        return True
    except Exception as e:
        logger.error(f"Failed to send email to {to_email}: {e}")
        return False


async def send_join_invitation(
    to_email: str,
    contact_name: str,
    school_name: str,
    role: str,
) -> bool:
    """Invite an administration contact to accept their seeded join request."""
    # Escape user inputs to prevent XSS
    safe_contact_name = escape(contact_name)
    safe_school_name = escape(school_name)
    safe_role = escape(role)

    requests_url = f"{FRONTEND_URL}/join-requests"
    html_content = f"""
    <!DOCTYPE html>
    <html>
    <head>
        <style>{_BASE_STYLE.format()}</style>
    </head>
    <body>
        <div class="container">
            <h1 class="header">You're Invited to Join {safe_school_name}</h1>

            <p>Hello {safe_contact_name},</p>

            <p><strong>{safe_school_name}</strong> has listed you as <strong>{safe_role}</strong>.</p>

            <p>Sign in (or create an account with this email address) and accept the pending request to take up your role:</p>

            <a href="{requests_url}" class="button">View Join Request</a>

            <div class="footer">
                <p>If you don't recognise this school, you can safely ignore this email.</p>
            </div>
        </div>
    </body>
    </html>
    """
    return await send_email(
        to_email=to_email,
        subject=f"Join {safe_school_name} as {safe_role}",
        html_content=html_content,
    )


async def send_join_request_rejected(
    to_email: str,
    contact_name: str,
    school_name: str,
    role: str,
) -> bool:
    """Tell a candidate their join request was rejected."""
    safe_contact_name = escape(contact_name)
    safe_school_name = escape(school_name)
    safe_role = escape(role)

    html_content = f"""
    <!DOCTYPE html>
    <html>
    <head>
        <style>{_BASE_STYLE.format()}</style>
    </head>
    <body>
        <div class="container">
            <h1 class="header">Update on Your Join Request</h1>

            <p>Hello {safe_contact_name},</p>

            <p>Your request to join <strong>{safe_school_name}</strong> as <strong>{safe_role}</strong> was not accepted.</p>

            <p>If you think this is a mistake, please contact the school directly.</p>

            <div class="footer">
                <p>Best regards,</p>
            </div>
        </div>
    </body>
    </html>
    """
    return await send_email(
        to_email=to_email,
        subject=f"Your request to join {safe_school_name}",
        html_content=html_content,
    )
