import logging
import smtplib
from datetime import datetime
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from detailbook.core.config import settings

logger = logging.getLogger(__name__)


def _send_email_sync(to_email: str, subject: str, html_body: str) -> None:
    """Send email via SMTP (blocking). Use from background task; never raises."""
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
        # The booking is already committed; a failed email must not undo it
        logger.exception("Failed to send email to %s: %s", to_email, e)


def _html_escape(s: str) -> str:
    return (
        s.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
    )


def build_booking_confirmation_html(
    booking_id: str,
    recipient_name: str,
    service_name: str,
    add_on_names: list[str],
    start_local: datetime,
    end_local: datetime,
    price_formatted: str,
    address: str,
    notes: str | None,
) -> str:
    """Build HTML body for booking confirmation. Times are in the business time zone."""
    date_str = start_local.strftime("%A, %B %d, %Y")
    time_str = f"{start_local.strftime('%I:%M %p')} – {end_local.strftime('%I:%M %p')} {start_local.strftime('%Z')}"
    logo_html = ""
    if settings.email_logo_url:
        logo_html = f'<img src="{settings.email_logo_url}" alt="{settings.site_name}" width="120" style="display:block;margin-bottom:24px;" />'
    add_ons_html = ""
    if add_on_names:
        items = "".join(f"<li>{_html_escape(n)}</li>" for n in add_on_names)
        add_ons_html = f'<ul style="margin:4px 0 0 16px;padding:0;color:#374151;font-size:14px;">{items}</ul>'
    notes_section = ""
    if notes:
        notes_section = f"""
        <p style="margin:0 0 16px 0;color:#374151;"><strong>Your notes:</strong></p>
        <p style="margin:0 0 24px 0;color:#6b7280;font-size:14px;">{_html_escape(notes)}</p>
        """
    return f"""
<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>Booking Confirmation</title>
</head>
<body style="margin:0;padding:0;font-family:-apple-system,BlinkMacSystemFont,'Segoe UI',Roboto,sans-serif;background-color:#f3f4f6;">
  <table role="presentation" width="100%" cellspacing="0" cellpadding="0" style="background-color:#f3f4f6;">
    <tr>
      <td align="center" style="padding:40px 16px;">
        <table role="presentation" width="100%" cellspacing="0" cellpadding="0" style="max-width:560px;background:#ffffff;border-radius:12px;overflow:hidden;">
          <tr>
            <td style="padding:32px 32px 24px 32px;">
              {logo_html}
              <h1 style="margin:0 0 8px 0;font-size:22px;font-weight:600;color:#111827;">Booking Confirmed</h1>
              <p style="margin:0 0 24px 0;font-size:15px;color:#6b7280;">Hi {_html_escape(recipient_name) or 'there'}, your detail is booked. Reference: {booking_id}</p>
              <table role="presentation" width="100%" cellspacing="0" cellpadding="0" style="background:#f9fafb;border-radius:8px;margin-bottom:24px;">
                <tr>
                  <td style="padding:20px 24px;">
                    <p style="margin:0 0 8px 0;font-size:12px;text-transform:uppercase;color:#6b7280;">Service</p>
                    <p style="margin:0;font-size:16px;font-weight:600;color:#111827;">{_html_escape(service_name)}</p>
                    {add_ons_html}
                    <p style="margin:12px 0 0 0;font-size:12px;text-transform:uppercase;color:#6b7280;">Date</p>
                    <p style="margin:0;font-size:16px;font-weight:600;color:#111827;">{date_str}</p>
                    <p style="margin:12px 0 0 0;font-size:12px;text-transform:uppercase;color:#6b7280;">Time</p>
                    <p style="margin:0;font-size:16px;font-weight:600;color:#111827;">{time_str}</p>
                    <p style="margin:12px 0 0 0;font-size:12px;text-transform:uppercase;color:#6b7280;">Location</p>
                    <p style="margin:0;font-size:16px;color:#111827;">{_html_escape(address)}</p>
                    <p style="margin:12px 0 0 0;font-size:12px;text-transform:uppercase;color:#6b7280;">Total (paid on site)</p>
                    <p style="margin:0;font-size:16px;font-weight:600;color:#111827;">{price_formatted}</p>
                  </td>
                </tr>
              </table>
              {notes_section}
              <p style="margin:0 0 8px 0;font-size:14px;color:#374151;">If you need to reschedule or cancel, please contact us.</p>
            </td>
          </tr>
          <tr>
            <td style="padding:24px 32px 32px 32px;background:#f9fafb;border-top:1px solid #e5e7eb;">
              <p style="margin:0 0 4px 0;font-size:13px;font-weight:600;color:#111827;">{settings.site_name}</p>
              <p style="margin:0;font-size:13px;color:#6b7280;">
                {settings.contact_email} &nbsp;·&nbsp; {settings.contact_phone}<br>
                {settings.contact_address}
              </p>
            </td>
          </tr>
        </table>
      </td>
    </tr>
  </table>
</body>
</html>
"""


def send_booking_confirmation_email(
    to_email: str,
    recipient_name: str | None,
    booking_id: str,
    service_name: str,
    add_on_names: list[str],
    start_local: datetime,
    end_local: datetime,
    price_formatted: str,
    address: str,
    notes: str | None = None,
) -> None:
    """Compose and send booking confirmation (call from background task)."""
    subject = f"{settings.site_name} – Booking Confirmed"
    html = build_booking_confirmation_html(
        booking_id=booking_id,
        recipient_name=recipient_name or "",
        service_name=service_name,
        add_on_names=add_on_names,
        start_local=start_local,
        end_local=end_local,
        price_formatted=price_formatted,
        address=address,
        notes=notes,
    )
    _send_email_sync(to_email, subject, html)
