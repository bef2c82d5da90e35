import logging
import smtplib
from datetime import date, time
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape

from clinic_scheduler.core.config import settings

logger = logging.getLogger(__name__)


def _send_email_sync(to_email: str, subject: str, html_body: str) -> None:
    """Send email via SMTP (blocking). Use from background task."""
    if not settings.email_enabled:
        logger.debug("Email disabled (SMTP not configured), skipping send")
        return
    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = f"{settings.from_name} <{settings.from_email}>"
    msg["To"] = to_email
    msg.attach(MIMEText(html_body, "html", "utf-8"))
    try:
        with smtplib.SMTP(settings.smtp_host, settings.smtp_port) as server:
            server.starttls()
            server.login(settings.smtp_user, settings.smtp_password)
            server.sendmail(settings.from_email, [to_email], msg.as_string())
        logger.info("Email sent to %s", to_email)
    except Exception as e:
        logger.exception("Failed to send email to %s: %s", to_email, e)


def build_appointment_confirmation_html(
    recipient_name: str,
    service_name: str,
    resource_name: str | None,
    appointment_date: date,
    start_time: time,
    end_time: time,
) -> str:
    date_str = appointment_date.strftime("%A, %B %d, %Y")
    slot_display = f"{start_time.strftime('%H:%M')} – {end_time.strftime('%H:%M')}"
    where = f"<p style=\"margin:0;color:#6b7280;\">{escape(resource_name)}</p>" if resource_name else ""
    contact = " &nbsp;·&nbsp; ".join(
        escape(c) for c in (settings.contact_email, settings.contact_phone) if c
    )
    return f"""
<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>Appointment Confirmation</title></head>
<body style="margin:0;padding:24px;font-family:-apple-system,BlinkMacSystemFont,'Segoe UI',Roboto,sans-serif;background-color:#f3f4f6;">
  <div style="max-width:560px;margin:0 auto;background:#ffffff;border-radius:12px;padding:32px;">
    <h1 style="margin:0 0 8px 0;font-size:22px;color:#111827;">Appointment Confirmed</h1>
    <p style="margin:0 0 24px 0;color:#6b7280;">Hi {escape(recipient_name or 'there')}, your {escape(service_name)} session is booked.</p>
    <p style="margin:0;font-weight:600;color:#111827;">{date_str}</p>
    <p style="margin:0 0 8px 0;font-weight:600;color:#111827;">{slot_display}</p>
    {where}
    <p style="margin:24px 0 0 0;font-size:14px;color:#374151;">If you need to reschedule or cancel, please contact us.</p>
    <p style="margin:16px 0 0 0;font-size:13px;color:#6b7280;">{escape(settings.site_name)}<br>{contact}</p>
  </div>
</body>
</html>
"""


def send_appointment_confirmation_email(
    to_email: str,
    recipient_name: str | None,
    service_name: str,
    resource_name: str | None,
    appointment_date: date,
    start_time: time,
    end_time: time,
) -> None:
    """Compose and send appointment confirmation (call from background task)."""
    subject = f"{settings.site_name} – Appointment Confirmed"
    html = build_appointment_confirmation_html(
        recipient_name=recipient_name or "",
        service_name=service_name,
        resource_name=resource_name,
        appointment_date=appointment_date,
        start_time=start_time,
        end_time=end_time,
    )
    _send_email_sync(to_email, subject, html)
