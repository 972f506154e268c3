"""
Send found/error notifications by email via SMTP (Google Gmail or other).
Set SMTP_USER, SMTP_PASSWORD and NOTIFY_EMAIL in .env. Use a Gmail App Password (not your normal password).
"""
import html
import logging
import smtplib
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import make_msgid
from typing import Callable

from docwatch.config import Settings, settings as default_settings
from docwatch.core.errors import ConfigurationError, DeliveryError

logger = logging.getLogger(__name__)


@dataclass
class FoundEvent:
    search_number: str
    match_count: int
    document_url: str
    timestamp: datetime
    contexts: list[str] = field(default_factory=list)


@dataclass
class ErrorEvent:
    search_number: str
    error: str
    timestamp: datetime


@dataclass
class NotifyResult:
    success: bool
    message_id: str | None = None
    error: str | None = None


def _when(ts: datetime) -> str:
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.strftime("%Y-%m-%d %H:%M:%S %Z")


def render_found(event: FoundEvent) -> tuple[str, str, str]:
    """(subject, text, html) for a found notification."""
    subject = f"Number {event.search_number} found in the pickup list"
    lines = [
        "Good news: your number has been found.",
        "",
        f"Search number: {event.search_number}",
        f"Matches found: {event.match_count} occurrence(s)",
        f"Found at: {_when(event.timestamp)}",
        f"Document: {event.document_url}",
    ]
    if event.contexts:
        lines += ["", "Context around matches:", "\n---\n".join(event.contexts)]
    lines += [
        "",
        "Next steps: visit the embassy or follow the instructions in the document.",
        "",
        "Monitoring will continue to run as scheduled.",
    ]
    text = "\n".join(lines)

    contexts_html = "".join(
        f"<div style='background:#fff;padding:12px;margin:8px 0;border-left:4px solid #10B981'>"
        f"<code>{html.escape(c)}</code></div>"
        for c in event.contexts
    )
    body = (
        "<div style='font-family:Arial,sans-serif;max-width:600px;margin:0 auto;padding:20px'>"
        "<h1 style='color:#10B981'>Your number has been found!</h1>"
        "<table style='width:100%;border-collapse:collapse'>"
        f"<tr><td><b>Search number:</b></td><td>{html.escape(event.search_number)}</td></tr>"
        f"<tr><td><b>Matches found:</b></td><td>{event.match_count} occurrence(s)</td></tr>"
        f"<tr><td><b>Found at:</b></td><td>{_when(event.timestamp)}</td></tr>"
        f"<tr><td><b>Document:</b></td><td><a href='{html.escape(event.document_url, quote=True)}'>"
        "View PDF document</a></td></tr>"
        "</table>"
        + (f"<h3>Context around matches:</h3>{contexts_html}" if contexts_html else "")
        + "<p style='color:#6B7280;font-size:12px'>Monitoring will continue to run as scheduled.</p>"
        "</div>"
    )
    return subject, text, body


def render_error(event: ErrorEvent) -> tuple[str, str, str]:
    """(subject, text, html) for a failed check."""
    subject = f"Monitoring error for number {event.search_number}"
    text = "\n".join(
        [
            "Document monitoring error",
            "",
            f"Search number: {event.search_number}",
            f"Error time: {_when(event.timestamp)}",
            f"Error: {event.error or 'Unknown error occurred'}",
            "",
            "Monitoring will attempt to continue automatically.",
        ]
    )
    body = (
        "<div style='font-family:Arial,sans-serif;max-width:600px;margin:0 auto;padding:20px'>"
        "<h1 style='color:#EF4444'>Monitoring error</h1>"
        f"<p><b>Search number:</b> {html.escape(event.search_number)}</p>"
        f"<p><b>Error time:</b> {_when(event.timestamp)}</p>"
        f"<p><b>Error:</b> {html.escape(event.error or 'Unknown error occurred')}</p>"
        "<p style='color:#6B7280;font-size:12px'>Monitoring will attempt to continue automatically.</p>"
        "</div>"
    )
    return subject, text, body


class Notifier:
    """One outbound message per call. No retry or queueing."""

    def __init__(
        self,
        config: Settings | None = None,
        *,
        smtp_factory: Callable[..., smtplib.SMTP] = smtplib.SMTP,
    ) -> None:
        self._config = config or default_settings
        self._smtp_factory = smtp_factory

    def is_configured(self) -> bool:
        c = self._config
        return bool(c.smtp_user and c.smtp_password and c.notify_email)

    def _from_address(self) -> str:
        if self._config.notify_from:
            return self._config.notify_from
        return f"Document Watch <{self._config.smtp_user}>"

    def _require_config(self) -> None:
        missing = [
            name
            for name, value in (
                ("SMTP_USER", self._config.smtp_user),
                ("SMTP_PASSWORD", self._config.smtp_password),
                ("NOTIFY_EMAIL", self._config.notify_email),
            )
            if not value
        ]
        if missing:
            raise ConfigurationError(f"Email service not configured - missing {', '.join(missing)}")

    def _build(self, subject: str, text: str, body: str) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = self._from_address()
        msg["To"] = self._config.notify_email
        msg["Message-ID"] = make_msgid(domain="docwatch")
        msg.attach(MIMEText(text, "plain"))
        msg.attach(MIMEText(body, "html"))
        return msg

    def deliver(self, subject: str, text: str, body: str) -> str:
        """
        Verify the transport (connect, STARTTLS, login) then send. Verification failures are
        ConfigurationError; a rejected send is DeliveryError. Returns the Message-ID.
        """
        self._require_config()
        c = self._config
        msg = self._build(subject, text, body)
        try:
            server = self._smtp_factory(c.smtp_host, c.smtp_port, timeout=10)
        except (smtplib.SMTPException, OSError) as e:
            raise ConfigurationError(f"Email configuration invalid: {e}") from e
        try:
            try:
                server.starttls()
                server.login(c.smtp_user, c.smtp_password)
            except (smtplib.SMTPException, OSError) as e:
                raise ConfigurationError(f"Email configuration invalid: {e}") from e
            try:
                server.sendmail(c.smtp_user, [c.notify_email], msg.as_string())
            except (smtplib.SMTPException, OSError) as e:
                raise DeliveryError(f"Failed to send email notification: {e}") from e
        finally:
            try:
                server.quit()
            except (smtplib.SMTPException, OSError):
                logger.debug("SMTP quit failed", exc_info=True)
        logger.info("Email sent to %s: %s", c.notify_email, subject)
        return msg["Message-ID"]

    def send(self, event: FoundEvent | ErrorEvent) -> str:
        if isinstance(event, FoundEvent):
            return self.deliver(*render_found(event))
        return self.deliver(*render_error(event))

    def notify(self, event: FoundEvent | ErrorEvent) -> NotifyResult:
        """Like send, but failures come back as NotifyResult(success=False) instead of raising."""
        try:
            return NotifyResult(success=True, message_id=self.send(event))
        except (ConfigurationError, DeliveryError) as e:
            logger.warning("Notification not sent: %s", e.message)
            return NotifyResult(success=False, error=e.message)

    def send_test_email(self) -> NotifyResult:
        now = datetime.now(timezone.utc)
        subject = "Document monitoring test email"
        text = (
            "This is a test email from your document monitoring service. "
            "If you receive this, email notifications are working."
        )
        body = (
            "<div style='font-family:Arial,sans-serif;padding:20px'>"
            "<h2 style='color:#10B981'>Test email successful!</h2>"
            f"<p><b>Timestamp:</b> {_when(now)}</p>"
            f"<p><b>To:</b> {html.escape(self._config.notify_email)}</p>"
            "</div>"
        )
        return NotifyResult(success=True, message_id=self.deliver(subject, text, body))
