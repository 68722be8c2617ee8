"""Transactional email through Resend."""

from dataclasses import dataclass
from html import escape

import resend
import structlog
from starlette.concurrency import run_in_threadpool

from app.config import settings
from app.core.exceptions import DeliveryException

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class EmailMessage:
    """Rendered email ready to send."""

    subject: str
    html: str
    text: str


class EmailService:
    """Send email via the Resend API; a missing API key turns sending into a no-op."""

    def __init__(self, api_key: str | None = None, from_address: str | None = None):
        """Initialize with explicit credentials or fall back to settings."""
        self.api_key = api_key if api_key is not None else settings.resend_api_key
        self.from_address = from_address or settings.email_from_address

    @property
    def enabled(self) -> bool:
        """Whether an API key is configured."""
        return bool(self.api_key)

    async def send(
        self,
        to: str | list[str],
        message: EmailMessage,
        from_address: str | None = None,
    ) -> str | None:
        """
        Send one email.

        Args:
            to: Recipient address or addresses
            message: Rendered subject and bodies
            from_address: Override the default sender

        Returns:
            Provider message id, or None when sending is disabled

        Raises:
            DeliveryException: If Resend rejects the message
        """
        if not self.enabled:
            logger.info("email_skipped_no_api_key", subject=message.subject)
            return None

        recipients = [to] if isinstance(to, str) else to
        params = {
            "from": from_address or self.from_address,
            "to": recipients,
            "subject": message.subject,
            "html": message.html,
            "text": message.text,
        }

        resend.api_key = self.api_key
        try:
            result = await run_in_threadpool(resend.Emails.send, params)
        except Exception as e:
            logger.error("email_send_failed", subject=message.subject, error=str(e))
            raise DeliveryException(f"Email delivery failed: {e!s}") from e

        message_id = result.get("id") if isinstance(result, dict) else getattr(result, "id", None)
        logger.info("email_sent", subject=message.subject, message_id=message_id)
        return message_id

    async def send_quietly(
        self,
        to: str | None,
        message: EmailMessage,
        from_address: str | None = None,
    ) -> bool:
        """
        Send without raising; for emails that must never fail the caller.

        Returns:
            True only when the provider accepted the message
        """
        if not to:
            logger.warning("email_skipped_no_recipient", subject=message.subject)
            return False
        try:
            return await self.send(to, message, from_address) is not None
        except DeliveryException:
            return False


def booking_confirmation_email(
    patient_name: str | None,
    date_label: str,
    time_label: str,
    clinic_name: str | None = None,
    clinic_address: str | None = None,
    manage_url: str | None = None,
) -> EmailMessage:
    """Confirmation sent to a patient right after booking."""
    name = (patient_name or "").strip() or "there"
    subject = "Your appointment is booked" + (f" - {clinic_name}" if clinic_name else "")

    details = [f"<p><strong>Date:</strong> {escape(date_label)}</p>"]
    details.append(f"<p><strong>Time:</strong> {escape(time_label)} (clinic local time)</p>")
    if clinic_name:
        details.append(f"<p><strong>Clinic:</strong> {escape(clinic_name)}</p>")
    if clinic_address:
        details.append(f"<p><strong>Address:</strong> {escape(clinic_address)}</p>")
    manage_html = (
        f'<p>Need to reschedule or cancel? <a href="{escape(manage_url)}">Manage my appointment</a></p>'
        if manage_url
        else ""
    )
    html = (
        f"<h2>Hi {escape(name)},</h2>"
        "<p>Your appointment has been <strong>booked successfully</strong>.</p>"
        f"{''.join(details)}{manage_html}"
        "<p>If you didn't make this booking, please contact the clinic.</p>"
    )

    lines = [f"Hi {name},", "", "Your appointment has been booked successfully.", ""]
    lines.append(f"Date: {date_label}")
    lines.append(f"Time: {time_label}")
    if clinic_name:
        lines.append(f"Clinic: {clinic_name}")
    if clinic_address:
        lines.append(f"Address: {clinic_address}")
    if manage_url:
        lines.extend(["", f"Manage your booking: {manage_url}"])
    lines.extend(["", "If you didn't make this booking, please contact the clinic."])

    return EmailMessage(subject=subject, html=html, text="\n".join(lines))


def appointment_reminder_email(
    patient_name: str | None,
    title: str,
    when_label: str,
    clinic_name: str,
) -> EmailMessage:
    """One-off reminder triggered from the dashboard."""
    name = (patient_name or "").strip()
    html = (
        f"<p>Hi {escape(name)},</p>"
        f"<p>This is a friendly reminder of your appointment <b>{escape(title)}</b> "
        f"at <b>{escape(when_label)}</b>.</p>"
        f"<p>Clinic: {escape(clinic_name)}</p>"
        "<p>If you need to reschedule, reply to this email.</p>"
    )
    text = (
        f"Hi {name},\n\n"
        f"This is a friendly reminder of your appointment {title} at {when_label}.\n"
        f"Clinic: {clinic_name}\n\n"
        "If you need to reschedule, reply to this email."
    )
    return EmailMessage(subject=f"Reminder: {title}", html=html, text=text)


def plain_email(subject: str, body: str) -> EmailMessage:
    """Wrap a plain-text body (recall payloads are stored as text)."""
    html = "".join(f"<p>{escape(line)}</p>" for line in body.splitlines() if line.strip())
    return EmailMessage(subject=subject, html=html, text=body)


def lead_notification_email(lead: dict) -> EmailMessage:
    """Heads-up to the sales inbox about a new lead."""
    fields = [
        ("Clinic", lead.get("clinic_name")),
        ("Contact", lead.get("contact_name")),
        ("Email", lead.get("email")),
        ("Phone", lead.get("phone")),
        ("Type", lead.get("clinic_type")),
        ("Practitioners", lead.get("practitioners")),
        ("Notes", lead.get("message")),
    ]
    rows = "".join(
        f"<p><b>{label}:</b> {escape(str(value if value is not None else ''))}</p>"
        for label, value in fields
    )
    text = "\n".join(f"{label}: {value if value is not None else ''}" for label, value in fields)
    return EmailMessage(subject="New lead", html=f"<h2>New Lead</h2>{rows}", text=text)
