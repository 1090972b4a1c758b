"""Operator alerts for degraded project syncs."""

from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage
from html import escape

from jirasync.core.config import settings

logger = logging.getLogger(__name__)


def build_sync_degraded_alert(
    *,
    project_key: str,
    site_alias: str,
    error_code: str,
    message: str,
    backoff_level: int,
    cron_schedule: str,
) -> tuple[str, str, str]:
    subject = f"[Jira Sync] Sync degraded for {project_key}"
    body = "\n".join(
        [
            f"Jira sync for {project_key} ({site_alias}) is failing repeatedly.",
            f"Error code: {error_code}",
            f"Message: {message}",
            f"Backoff level: {backoff_level}",
            f"New schedule: {cron_schedule}",
            "Cadence will restore automatically after the next successful sync.",
        ]
    )
    html_body = (
        f"<p>Jira sync for <strong>{escape(project_key)}</strong> on site "
        f"<strong>{escape(site_alias)}</strong> is failing repeatedly.</p>"
        "<ul>"
        f"<li><strong>Error Code:</strong> {escape(error_code)}</li>"
        f"<li><strong>Message:</strong> {escape(message)}</li>"
        f"<li><strong>Backoff Level:</strong> {backoff_level}</li>"
        f"<li><strong>New Schedule:</strong> {escape(cron_schedule)}</li>"
        "</ul>"
        "<p>The sync cadence has been slowed automatically. The original schedule is restored "
        "after the next successful run.</p>"
    )
    return subject, body, html_body


def send_email(to: list[str], subject: str, body: str, *, html_body: str | None = None) -> bool:
    if not settings.smtp_ready:
        logger.info("SMTP not configured; skipping send to %s", ", ".join(to))
        return False

    message = EmailMessage()
    message["From"] = settings.SMTP_FROM
    message["To"] = ", ".join(to)
    message["Subject"] = subject
    message.set_content(body)
    if html_body:
        message.add_alternative(html_body, subtype="html")

    try:
        with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=30) as server:
            server.ehlo()
            if settings.SMTP_TLS:
                server.starttls()
                server.ehlo()
            if settings.SMTP_USER:
                server.login(settings.SMTP_USER, settings.SMTP_PASSWORD)
            server.send_message(message)
        logger.info("Alert email sent: %s", ", ".join(to))
        return True
    except Exception:
        logger.exception("Alert email send failed: %s", ", ".join(to))
        return False


def notify_ops(subject: str, body: str, *, html_body: str | None = None) -> bool:
    """E-mail the ops recipients, or fall back to a warning log line."""
    recipients = settings.ops_alert_recipients
    if recipients and settings.smtp_ready:
        return send_email(recipients, subject, body, html_body=html_body)
    logger.warning("Ops alert (no e-mail channel configured): %s\n%s", subject, body)
    return False
