"""Outbound mail sinks.

A sink only knows how to hand a rendered message to a transport. Deciding
whether to send, and to whom, belongs to the dispatcher.
"""
from __future__ import annotations

import logging
import smtplib
import threading
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from email.mime.text import MIMEText
from email.utils import make_msgid
from typing import Any, Mapping

logger = logging.getLogger(__name__)


@dataclass
class MailResult:
    ok: bool
    message_id: str | None = None
    error: str | None = None


class MailSink(ABC):
    @abstractmethod
    def send(self, to: str, subject: str, body: str) -> MailResult:
        """Deliver an HTML message to ``to``."""


class SmtpMailSink(MailSink):
    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        password: str,
        from_address: str,
        use_tls: bool = True,
        timeout: float = 10.0,
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.from_address = from_address
        self.use_tls = use_tls
        self.timeout = timeout

    def send(self, to: str, subject: str, body: str) -> MailResult:
        msg = MIMEText(body, "html", "utf-8")
        msg["Subject"] = subject
        msg["From"] = self.from_address
        msg["To"] = to
        msg["Message-ID"] = make_msgid()

        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
                if self.use_tls:
                    server.starttls()
                server.login(self.username, self.password)
                server.sendmail(self.from_address, [to], msg.as_string())
        except (smtplib.SMTPException, OSError) as exc:
            logger.warning("[MAIL] SMTP delivery to %s failed: %s", to, exc)
            return MailResult(ok=False, error=str(exc))

        logger.info("[MAIL] Sent %s to %s", msg["Message-ID"], to)
        return MailResult(ok=True, message_id=msg["Message-ID"])


class LoggingMailSink(MailSink):
    """Used when no SMTP credentials are configured: prints instead of sending."""

    def __init__(self, from_address: str) -> None:
        self.from_address = from_address

    def send(self, to: str, subject: str, body: str) -> MailResult:
        message_id = f"<{uuid.uuid4().hex}@preview>"
        logger.info(
            "[MAIL] Preview:\nFrom: %s\nTo: %s\nSubject: %s\nMessage-ID: %s\n\n%s",
            self.from_address,
            to,
            subject,
            message_id,
            body,
        )
        return MailResult(ok=True, message_id=message_id)


class MemoryMailSink(MailSink):
    """Keeps every message in memory, for tests and local tooling."""

    def __init__(self) -> None:
        self.outbox: list[dict[str, str]] = []
        self._lock = threading.Lock()

    def send(self, to: str, subject: str, body: str) -> MailResult:
        with self._lock:
            self.outbox.append({"to": to, "subject": subject, "body": body})
        return MailResult(ok=True, message_id=f"<memory-{len(self.outbox)}>")

    def sent_to(self, address: str) -> list[dict[str, str]]:
        with self._lock:
            return [message for message in self.outbox if message["to"] == address]


def build_mail_sink(config: Mapping[str, Any]) -> MailSink:
    """Pick the SMTP transport when credentials are present, else log previews."""
    host = config.get("SMTP_HOST")
    user = config.get("SMTP_USER")
    password = config.get("SMTP_PASS")
    from_address = config.get("SMTP_FROM", "no-reply@localhost")

    if not host or not user or not password:
        logger.info("[MAIL] SMTP not configured, emails will be logged instead of sent")
        return LoggingMailSink(from_address)

    return SmtpMailSink(
        host=host,
        port=int(config.get("SMTP_PORT", 587)),
        username=user,
        password=password,
        from_address=from_address,
        use_tls=bool(config.get("SMTP_USE_TLS", True)),
    )
