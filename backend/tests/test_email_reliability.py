from __future__ import annotations

import smtplib
from types import SimpleNamespace

import pytest

from coverdesk.services.email import EmailDeliveryError
from coverdesk.services import email as email_service


def _settings(**overrides):
    defaults = dict(
        smtp_host="smtp.school.test",
        smtp_port=587,
        smtp_username="office",
        smtp_password="secret",
        smtp_from_email="office@school.example",
        smtp_from_name="School Office",
        smtp_use_tls=True,
        smtp_use_ssl=False,
        smtp_retry_attempts=2,
        smtp_retry_backoff_seconds=0.0,
        smtp_timeout_seconds=5,
    )
    defaults.update(overrides)
    return SimpleNamespace(**defaults)


def _fake_smtp(behaviour, sent):
    class FakeSMTP:
        def __init__(self, host, port, timeout=None):
            self.host = host
            self.port = port

        def __enter__(self):
            return self

        def __exit__(self, exc_type, exc, tb):
            return False

        def starttls(self, context=None):
            return None

        def login(self, username, password):
            return None

        def send_message(self, message):
            sent.append(message)
            behaviour(len(sent))
            return {}

    return FakeSMTP


def _install(monkeypatch, settings, behaviour):
    sent: list = []
    fake = _fake_smtp(behaviour, sent)
    monkeypatch.setattr(email_service, "get_settings", lambda: settings)
    monkeypatch.setattr(email_service.smtplib, "SMTP", fake)
    monkeypatch.setattr(email_service.smtplib, "SMTP_SSL", fake)
    return sent


def test_send_email_retries_connection_drop_and_succeeds(monkeypatch):
    def drop_first(attempt):
        if attempt == 1:
            raise smtplib.SMTPServerDisconnected("network drop")

    sent = _install(monkeypatch, _settings(), drop_first)

    email_service.send_email(
        to_email="uma@school.example",
        subject="Substitution: Mathematics, Monday 19.10.2026, Period 1",
        text_content="hello",
    )

    assert len(sent) == 2
    assert sent[-1]["From"] == "School Office <office@school.example>"
    assert sent[-1]["To"] == "uma@school.example"


def test_send_email_gives_up_after_configured_attempts(monkeypatch):
    def always_drop(attempt):
        raise smtplib.SMTPServerDisconnected("network drop")

    sent = _install(monkeypatch, _settings(smtp_retry_attempts=3), always_drop)

    with pytest.raises(EmailDeliveryError, match="SMTP connection failed"):
        email_service.send_email(to_email="uma@school.example", subject="s", text_content="t")

    assert len(sent) == 3


@pytest.mark.parametrize(
    ("smtp_error", "expected"),
    [
        (b"Daily user sending limit exceeded", "SMTP sender rate limited"),
        (b"Recipient address rejected", "SMTP recipient rejected"),
        (b"Message content rejected", "SMTP data rejected"),
    ],
)
def test_data_errors_are_classified_and_not_retried(monkeypatch, smtp_error, expected):
    def reject(attempt):
        raise smtplib.SMTPDataError(550, smtp_error)

    sent = _install(monkeypatch, _settings(), reject)

    with pytest.raises(EmailDeliveryError) as exc_info:
        email_service.send_email(to_email="uma@school.example", subject="s", text_content="t")

    assert str(exc_info.value) == expected
    assert len(sent) == 1


def test_send_email_requires_host_and_sender(monkeypatch):
    monkeypatch.setattr(email_service, "get_settings", lambda: _settings(smtp_host=None))

    with pytest.raises(EmailDeliveryError, match="SMTP is not configured"):
        email_service.send_email(to_email="uma@school.example", subject="s", text_content="t")


@pytest.mark.parametrize(
    ("to_email", "subject"),
    [
        ("uma@school.example\nBcc: someone@elsewhere.example", "s"),
        ("uma@school.example", "Substitution\r\nBcc: someone@elsewhere.example"),
    ],
)
def test_header_injection_is_a_delivery_error_and_never_sent(monkeypatch, to_email, subject):
    sent = _install(monkeypatch, _settings(), lambda attempt: None)

    with pytest.raises(EmailDeliveryError, match="Invalid email header"):
        email_service.send_email(to_email=to_email, subject=subject, text_content="t")

    assert sent == []
