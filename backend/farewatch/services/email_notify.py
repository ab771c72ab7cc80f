"""
Send hold confirmations by email via SMTP (Gmail or other).
Set NOTIFY_EMAIL, SMTP_USER, SMTP_PASSWORD in .env. Use a Gmail App Password (not your normal password).
"""
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Any

from farewatch.config import settings

logger = logging.getLogger(__name__)


def _from_address() -> str:
    if (settings.notify_from or "").strip():
        return settings.notify_from.strip()
    if settings.smtp_user:
        return f"Fare Watch <{settings.smtp_user}>"
    return "Fare Watch <noreply@localhost>"


def build_hold_email_body(payload: dict[str, Any]) -> str:
    lines = ["Your watched fare was held automatically.", ""]
    lines.append(f"Reservation code: {payload.get('code') or '?'}")
    if payload.get("route"):
        lines.append(f"Route: {payload['route']}")
    if payload.get("dates"):
        lines.append(f"Dates: {payload['dates']}")
    if payload.get("price") is not None:
        lines.append(f"Price: {payload['price']:,}")
    if payload.get("expires_at"):
        lines.append(f"Pay before: {payload['expires_at']}")
    return "\n".join(lines)


def send_hold_email(to_email: str, payload: dict[str, Any]) -> bool:
    """
    Send one "ticket held" email. payload carries code, route, dates, price, expires_at.
    Returns True if sent, False if skipped or failed.
    """
    to_email = (to_email or "").strip()
    if not to_email:
        return False
    if not settings.smtp_user or not settings.smtp_password:
        logger.debug("SMTP_USER or SMTP_PASSWORD not set; skipping email notify")
        return False
    body = build_hold_email_body(payload)
    msg = MIMEMultipart("alternative")
    msg["Subject"] = f"Fare Watch: held {payload.get('route') or 'your fare'} ({payload.get('code') or '?'})"
    msg["From"] = _from_address()
    msg["To"] = to_email
    msg.attach(MIMEText(body, "plain"))
    msg.attach(MIMEText(f"<pre style='font-family:sans-serif'>{body}</pre>", "html"))
    try:
        with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=10) as server:
            server.starttls()
            server.login(settings.smtp_user, settings.smtp_password)
            server.sendmail(settings.smtp_user, [to_email], msg.as_string())
    except (smtplib.SMTPException, OSError) as e:
        logger.exception("Failed to send hold email: %s", e)
        return False
    logger.info("Hold email sent to %s for reservation %s", to_email, payload.get("code"))
    return True
