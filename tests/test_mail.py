"""Tests for the outbound mail sinks."""
from __future__ import annotations

import smtplib
from unittest.mock import MagicMock, patch

from spa_booking.notifications import LoggingMailSink, MemoryMailSink, build_mail_sink
from spa_booking.notifications.mail import SmtpMailSink


def test_missing_credentials_fall_back_to_logging() -> None:
    sink = build_mail_sink({"SMTP_HOST": "smtp.example.com", "SMTP_USER": "", "SMTP_PASS": ""})

    assert isinstance(sink, LoggingMailSink)
    result = sink.send("ada@x.com", "Hello", "<p>Hi</p>")
    assert result.ok
    assert result.message_id.endswith("@preview>")


def test_credentials_select_smtp() -> None:
    sink = build_mail_sink(
        {
            "SMTP_HOST": "smtp.example.com",
            "SMTP_PORT": "2525",
            "SMTP_USER": "mailer",
            "SMTP_PASS": "secret",
            "SMTP_FROM": "Spa <spa@example.com>",
            "SMTP_USE_TLS": False,
        }
    )

    assert isinstance(sink, SmtpMailSink)
    assert sink.port == 2525
    assert sink.use_tls is False


@patch("spa_booking.notifications.mail.smtplib.SMTP")
def test_smtp_send(mock_smtp) -> None:
    server = MagicMock()
    mock_smtp.return_value.__enter__.return_value = server
    sink = SmtpMailSink("smtp.example.com", 587, "mailer", "secret", "spa@example.com")

    result = sink.send("ada@x.com", "Your Appointment Request", "<p>Hi</p>")

    assert result.ok
    mock_smtp.assert_called_once_with("smtp.example.com", 587, timeout=10.0)
    server.starttls.assert_called_once()
    server.login.assert_called_once_with("mailer", "secret")
    from_address, recipients, raw = server.sendmail.call_args.args
    assert from_address == "spa@example.com"
    assert recipients == ["ada@x.com"]
    assert "Subject: Your Appointment Request" in raw


@patch("spa_booking.notifications.mail.smtplib.SMTP")
def test_smtp_failure_is_reported_not_raised(mock_smtp) -> None:
    mock_smtp.side_effect = smtplib.SMTPConnectError(421, b"busy")
    sink = SmtpMailSink("smtp.example.com", 587, "mailer", "secret", "spa@example.com")

    result = sink.send("ada@x.com", "Hello", "<p>Hi</p>")

    assert not result.ok
    assert "busy" in result.error


def test_memory_sink_filters_by_recipient() -> None:
    sink = MemoryMailSink()
    sink.send("ada@x.com", "One", "")
    sink.send("bob@x.com", "Two", "")

    assert [m["subject"] for m in sink.sent_to("ada@x.com")] == ["One"]
