"""Fan appointment events out to live dashboards and email.

Notification is advisory: a booking or status change is already committed by
the time an event reaches :meth:`NotificationDispatcher.dispatch`, and nothing
that happens here can undo it or fail the request. Every action is attempted
on its own, so a dead SMTP server does not stop the live broadcast and an
empty hub does not stop the client email.
"""
from __future__ import annotations

import logging
from concurrent.futures import Executor
from contextlib import nullcontext
from datetime import datetime
from typing import Any, Callable, ContextManager

from markupsafe import escape

from ..errors import NotificationFailure
from ..hub import LiveHub
from ..transitions import AppointmentStatus
from .events import CREATED, DELETED, STATUS_CHANGED, NotificationEvent
from .mail import MailSink

logger = logging.getLogger(__name__)

EVENT_NEW = "appointment:new"
EVENT_UPDATE = "appointment:update"
EVENT_DELETE = "appointment:delete"


def _display_time(value: str | None) -> str:
    if not value:
        return "an unscheduled time"
    try:
        return datetime.fromisoformat(value).strftime("%B %d, %Y at %I:%M %p")
    except ValueError:
        return value


class NotificationDispatcher:
    def __init__(
        self,
        hub: LiveHub,
        mail_sink: MailSink,
        *,
        recorder: Callable[..., Any] | None = None,
        executor: Executor | None = None,
        worker_context: Callable[[], ContextManager[Any]] | None = None,
        staff_email: str | None = None,
        notify_client_on_status_change: bool = True,
    ) -> None:
        self.hub = hub
        self.mail_sink = mail_sink
        self.recorder = recorder
        self.executor = executor
        # Pushed around work that runs on the executor, e.g. an app context
        self.worker_context = worker_context or nullcontext
        self.staff_email = staff_email
        self.notify_client_on_status_change = notify_client_on_status_change
        self._handlers = {
            CREATED: self._on_created,
            STATUS_CHANGED: self._on_status_changed,
            DELETED: self._on_deleted,
        }

    def dispatch(self, event: NotificationEvent) -> None:
        handler = self._handlers.get(event.kind)
        if handler is None:
            logger.warning("[Notify] Ignoring unknown event kind %r", event.kind)
            return
        try:
            handler(event)
        except Exception:
            logger.exception("[Notify] Dispatch of %s for appointment %s failed", event.kind, event.appointment_id)

    def _on_created(self, event: NotificationEvent) -> None:
        appointment = event.appointment
        delivered = self._broadcast(event, EVENT_NEW, appointment)

        service = appointment.get("serviceName") or "your service"
        when = _display_time(appointment.get("startTime"))
        self._email(
            event,
            appointment.get("clientEmail"),
            "Your Appointment Request",
            f"<p>Hi {escape(appointment.get('clientName'))}, we received your request for "
            f"{escape(service)} on {escape(when)}.</p>"
            f"<p>Status: {escape(appointment.get('status'))}</p>",
        )

        # Nobody is watching the dashboard, so tell staff directly.
        if delivered == 0:
            self._email(
                event,
                self._staff_address(appointment),
                f"New booking: {appointment.get('clientName')}",
                f"<p>{escape(appointment.get('clientName'))} ({escape(appointment.get('clientEmail'))}) "
                f"requested {escape(service)} on {escape(when)}.</p>"
                f"<p>Appointment #{escape(appointment.get('id'))} is awaiting confirmation.</p>",
            )

    def _on_status_changed(self, event: NotificationEvent) -> None:
        appointment = event.appointment
        self._broadcast(
            event,
            EVENT_UPDATE,
            {"appointment": appointment, "previousStatus": event.previous_status},
        )

        status = appointment.get("status")
        if not self.notify_client_on_status_change or status not in (
            AppointmentStatus.CONFIRMED,
            AppointmentStatus.CANCELLED,
        ):
            return

        service = appointment.get("serviceName") or "your service"
        when = _display_time(appointment.get("startTime"))
        verb = "confirmed" if status == AppointmentStatus.CONFIRMED else "cancelled"
        self._email(
            event,
            appointment.get("clientEmail"),
            f"Your Appointment Has Been {verb.title()}",
            f"<p>Hi {escape(appointment.get('clientName'))}, your appointment for {escape(service)} "
            f"on {escape(when)} has been {verb}.</p>",
        )

    def _on_deleted(self, event: NotificationEvent) -> None:
        self._broadcast(event, EVENT_DELETE, {"id": event.appointment_id})

    def _broadcast(self, event: NotificationEvent, name: str, payload: Any) -> int:
        try:
            delivered = self.hub.broadcast(name, payload)
        except Exception as exc:
            failure = NotificationFailure("live", str(exc))
            logger.warning("[Notify] %s", failure)
            return 0
        self._record(event, "live", None, name)
        return delivered

    def _email(self, event: NotificationEvent, to: str | None, subject: str, body: str) -> None:
        if not to:
            return
        try:
            if self.executor is not None:
                self.executor.submit(self._deliver_in_worker, event, to, subject, body)
            else:
                self._deliver_and_record(event, to, subject, body)
        except RuntimeError as exc:
            # Executor already shut down
            logger.warning("[Notify] Could not queue email to %s: %s", to, exc)

    def _deliver_in_worker(self, event: NotificationEvent, to: str, subject: str, body: str) -> bool:
        with self.worker_context():
            return self._deliver_and_record(event, to, subject, body)

    def _deliver_and_record(self, event: NotificationEvent, to: str, subject: str, body: str) -> bool:
        # Only emails that actually went out are recorded
        delivered = self._deliver(to, subject, body)
        if delivered:
            self._record(event, "email", to, subject)
        return delivered

    def _deliver(self, to: str, subject: str, body: str) -> bool:
        try:
            result = self.mail_sink.send(to, subject, body)
            if not result.ok:
                raise NotificationFailure("email", result.error or "transport refused message")
        except Exception as exc:
            logger.warning("[Notify] Email %r to %s failed: %s", subject, to, exc)
            return False
        logger.info("[Notify] Email %r sent to %s (%s)", subject, to, result.message_id)
        return True

    def _record(self, event: NotificationEvent, channel: str, recipient: str | None, subject: str) -> None:
        if self.recorder is None:
            return
        try:
            self.recorder(
                appointment_id=event.appointment_id,
                kind=event.kind,
                channel=channel,
                recipient=recipient,
                subject=subject,
            )
        except Exception as exc:
            logger.warning("[Notify] Could not record %s notification: %s", channel, exc)

    def _staff_address(self, appointment: dict[str, Any]) -> str | None:
        return self.staff_email or appointment.get("employeeEmail")
