import logging
import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from typing import Optional

from app.core.config import settings

logger = logging.getLogger(__name__)


def send_email(email_to: str, subject: str, html_content: str) -> bool:
    if not settings.SMTP_HOST:
        logger.info(f"SMTP_HOST not configured, skipping email to {email_to}: {subject}")
        return False

    message = MIMEMultipart("alternative")
    message["Subject"] = subject
    message["From"] = f"{settings.EMAILS_FROM_NAME or settings.SCHOOL_NAME_ABBR} <{settings.EMAILS_FROM_EMAIL}>"
    message["To"] = email_to
    message.attach(MIMEText(html_content, "html"))

    try:
        with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT or 587) as server:
            if settings.SMTP_TLS:
                server.starttls()
            if settings.SMTP_USER:
                server.login(settings.SMTP_USER, settings.SMTP_PASSWORD)
            server.sendmail(settings.EMAILS_FROM_EMAIL, email_to, message.as_string())
        return True
    except (smtplib.SMTPException, OSError) as e:
        logger.error(f"Failed to send email to {email_to}: {e}")
        return False


def send_demo_booking_email(
    name: str,
    email: str,
    phone: str,
    instrument: Optional[str] = None,
    source: Optional[str] = None,
) -> bool:
    """Tell the front desk that someone booked a demo class."""
    if not settings.ADMIN_NOTIFICATION_EMAIL:
        return False

    subject = f"{settings.SCHOOL_NAME_ABBR} - New demo class booking: {name}"
    html_content = f"""
    <html>
        <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
            <div style="max-width: 600px; margin: 0 auto; padding: 20px; border: 1px solid #eee;">
                <h2 style="color: #1e3a8a; text-align: center;">{settings.SCHOOL_NAME_ABBR}</h2>
                <p>A new demo class has been booked.</p>
                <table style="width: 100%; border-collapse: collapse;">
                    <tr><td><b>Name</b></td><td>{name}</td></tr>
                    <tr><td><b>Email</b></td><td>{email}</td></tr>
                    <tr><td><b>Phone</b></td><td>{phone}</td></tr>
                    <tr><td><b>Instrument</b></td><td>{instrument or "-"}</td></tr>
                    <tr><td><b>Source</b></td><td>{source or "-"}</td></tr>
                </table>
                <hr style="border: 0; border-top: 1px solid #eee; margin: 20px 0;" />
                <p style="font-size: 12px; color: #777; text-align: center;">
                    This is an automated message from the {settings.SCHOOL_NAME_ABBR} administration portal.
                </p>
            </div>
        </body>
    </html>
    """
    return send_email(settings.ADMIN_NOTIFICATION_EMAIL, subject, html_content)
