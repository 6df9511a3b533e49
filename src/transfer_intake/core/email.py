"""
Email Service using Resend

Handles sending emails for the transfer intake flow:
- Staff notification when a new submission is created
- Applicant invitation to complete the full transfer form
"""

import asyncio
import logging
from dataclasses import dataclass
from html import escape

import resend

from transfer_intake.core.config import settings

logger = logging.getLogger(__name__)

# Initialize Resend with API key
resend.api_key = settings.resend_api_key


@dataclass(frozen=True)
class SubmissionSummary:
    """Minimal view of a submission handed to notification senders."""

    id: str
    full_name: str | None
    email: str | None
    form_mode: str


async def send_email(
    to_email: str,
    subject: str,
    html_content: str,
    text_content: str | None = None,
) -> bool:
    """
    Send an email using Resend.

    Args:
        to_email: Recipient email address
        subject: Email subject line
        html_content: HTML content of the email
        text_content: Optional plain-text alternative

    Returns:
        True if email was sent successfully (or logged when no API key is set)
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
        if text_content:
            params["text"] = text_content

        # Run sync Resend call in thread pool to avoid blocking event loop
        email = await asyncio.to_thread(resend.Emails.send, params)
        logger.info(f"Email sent successfully, id: {email['id']}")
        return True
    except Exception as e:
        logger.error(f"Failed to send email '{subject}': {e}")
        return False


async def send_admin_notification(summary: SubmissionSummary) -> bool:
    """Tell staff that a new submission has been created."""
    safe_name = escape(summary.full_name or "Not provided")
    safe_email = escape(summary.email or "Not provided")
    safe_mode = escape(summary.form_mode)
    admin_url = f"{settings.app_url.rstrip('/')}/admin/submissions/{summary.id}"

    html_content = f"""
    <h2>New Transfer Advising Form Submission</h2>
    <p>A new {safe_mode} form has been submitted.</p>
    <ul>
        <li><strong>Submission ID:</strong> {summary.id}</li>
        <li><strong>Name:</strong> {safe_name}</li>
        <li><strong>Email:</strong> {safe_email}</li>
        <li><strong>Form Mode:</strong> {safe_mode}</li>
    </ul>
    <p><a href="{admin_url}">View in Admin Panel</a></p>
    """
    text_content = (
        f"New {summary.form_mode} form submission from "
        f"{summary.full_name or 'unknown'} ({summary.email or 'no email'})"
    )

    return await send_email(
        to_email=settings.admin_notification_email,
        subject="New Transfer Advising Form Submission",
        html_content=html_content,
        text_content=text_content,
    )


async def send_transfer_invitation(
    to_email: str,
    student_name: str | None,
    form_url: str | None = None,
) -> bool:
    """Invite an initial-form applicant to complete the full transfer form."""
    safe_name = escape(student_name or "there")
    form_url = form_url or settings.effective_transfer_form_url

    html_content = f"""
    <!DOCTYPE html>
    <html>
    <body>
        <h1>Hi, {safe_name}</h1>
        <p>Thank you for your interest in transferring.</p>
        <p>To move forward, please complete the detailed transfer form using the link below:</p>
        <p><a href="{form_url}">Complete Full Transfer Form</a></p>
        <p>This form helps us review your credits, major, and eligibility so we can guide you properly.</p>
        <p>If you need help at any point, just reply to this email.</p>
        <p><strong>Transfer Advising Team</strong></p>
    </body>
    </html>
    """

    return await send_email(
        to_email=to_email,
        subject="Complete your transfer form",
        html_content=html_content,
        text_content=f"Complete your transfer form: {form_url}",
    )
