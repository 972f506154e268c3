import smtplib
from datetime import datetime, timezone

import pytest

from docwatch.config import Settings
from docwatch.core.errors import ConfigurationError, DeliveryError
from docwatch.services.email_notify import ErrorEvent, FoundEvent, Notifier, render_found

WHEN = datetime(2026, 3, 10, 13, 0, tzinfo=timezone.utc)


def mail_settings(**overrides):
    values = {
        "smtp_user": "watcher@example.com",
        "smtp_password": "app-password",
        "notify_email": "me@example.com",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


class FakeSMTP:
    def __init__(self, fail_login=False, fail_send=False):
        self.fail_login = fail_login
        self.fail_send = fail_send
        self.connected = []
        self.sent = []
        self.closed = False

    def __call__(self, host, port, timeout=None):
        self.connected.append((host, port))
        return self

    def starttls(self):
        pass

    def login(self, user, password):
        if self.fail_login:
            raise smtplib.SMTPAuthenticationError(535, b"Username and Password not accepted")

    def sendmail(self, sender, recipients, message):
        if self.fail_send:
            raise smtplib.SMTPRecipientsRefused({recipients[0]: (550, b"rejected")})
        self.sent.append((sender, recipients, message))

    def quit(self):
        self.closed = True


def found_event():
    return FoundEvent(
        search_number="590698",
        match_count=2,
        document_url="https://embassy.example/blob/list.pdf",
        timestamp=WHEN,
        contexts=["a ... 590698 <X> ... b"],
    )


def test_unconfigured_fails_before_connecting():
    smtp = FakeSMTP()
    notifier = Notifier(mail_settings(smtp_password=""), smtp_factory=smtp)
    with pytest.raises(ConfigurationError, match="SMTP_PASSWORD"):
        notifier.send(found_event())
    assert smtp.connected == []
    assert notifier.is_configured() is False


def test_send_found_returns_message_id():
    smtp = FakeSMTP()
    message_id = Notifier(mail_settings(), smtp_factory=smtp).send(found_event())
    assert message_id
    assert smtp.connected == [("smtp.gmail.com", 587)]
    sender, recipients, message = smtp.sent[0]
    assert recipients == ["me@example.com"]
    assert "590698" in message
    assert smtp.closed


def test_login_failure_is_configuration_error():
    smtp = FakeSMTP(fail_login=True)
    with pytest.raises(ConfigurationError, match="Email configuration invalid"):
        Notifier(mail_settings(), smtp_factory=smtp).send(found_event())
    assert smtp.sent == []
    assert smtp.closed


def test_rejected_send_is_delivery_error():
    smtp = FakeSMTP(fail_send=True)
    with pytest.raises(DeliveryError):
        Notifier(mail_settings(), smtp_factory=smtp).send(ErrorEvent("590698", "boom", WHEN))


def test_notify_reports_failure_instead_of_raising():
    result = Notifier(mail_settings(notify_email=""), smtp_factory=FakeSMTP()).notify(found_event())
    assert result.success is False
    assert "NOTIFY_EMAIL" in result.error


def test_found_html_escapes_contexts():
    subject, text, body = render_found(found_event())
    assert "590698" in subject
    assert "&lt;X&gt;" in body
    assert "<X>" in text
