"""Notification events, mail sinks and the dispatcher that fans events out."""
from .dispatcher import NotificationDispatcher
from .events import NotificationEvent
from .mail import LoggingMailSink, MailResult, MailSink, MemoryMailSink, SmtpMailSink, build_mail_sink

__all__ = [
    "LoggingMailSink",
    "MailResult",
    "MailSink",
    "MemoryMailSink",
    "NotificationDispatcher",
    "NotificationEvent",
    "SmtpMailSink",
    "build_mail_sink",
]
