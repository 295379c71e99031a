"""Booking intake: validate a public booking request, persist it, announce it."""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Mapping

from .errors import NotFound, ValidationError
from .models import Appointment
from .notifications import NotificationDispatcher, NotificationEvent
from .store import AppointmentStore


def _text(payload: Mapping[str, Any], key: str) -> str:
    value = payload.get(key)
    return value.strip() if isinstance(value, str) else ""


def _parse_id(value: Any, field: str) -> int:
    if isinstance(value, bool):
        raise ValidationError(field, f"{field} must be an integer id")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    raise ValidationError(field, f"{field} must be an integer id")


def parse_start_time(value: Any) -> datetime:
    """Parse an ISO 8601 timestamp. The offset, if any, is kept as given."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("startTime", "startTime is required")
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError as exc:
        raise ValidationError("startTime", "startTime must be a valid ISO 8601 datetime") from exc


class BookingIntake:
    def __init__(self, store: AppointmentStore, dispatcher: NotificationDispatcher) -> None:
        self.store = store
        self.dispatcher = dispatcher

    def submit_booking(self, payload: Mapping[str, Any]) -> Appointment:
        """Create a PENDING appointment from a public booking request.

        Validation stops at the first bad field. Once the store has committed
        the appointment the booking has succeeded, whatever happens to the
        notifications that follow.
        """
        client_name = _text(payload, "clientName")
        if not client_name:
            raise ValidationError("clientName", "clientName is required")

        client_email = _text(payload, "clientEmail")
        if not client_email:
            raise ValidationError("clientEmail", "clientEmail is required")

        if payload.get("serviceId") in (None, ""):
            raise ValidationError("serviceId", "serviceId is required")
        service_id = _parse_id(payload.get("serviceId"), "serviceId")
        service = self.store.get_service(service_id)
        if service is None:
            raise NotFound("Service", service_id)

        start_time = parse_start_time(payload.get("startTime"))

        employee_id = None
        if payload.get("employeeId") not in (None, ""):
            employee_id = _parse_id(payload.get("employeeId"), "employeeId")
            if self.store.get_employee(employee_id) is None:
                raise NotFound("Employee", employee_id)

        appointment = self.store.create(
            client_name=client_name,
            client_email=client_email,
            client_phone=_text(payload, "clientPhone") or None,
            service_id=service.service_id,
            employee_id=employee_id,
            start_time=start_time,
            end_time=start_time + timedelta(minutes=service.duration_minutes),
            notes=_text(payload, "notes") or None,
        )

        self.dispatcher.dispatch(NotificationEvent.created(appointment.to_dict()))
        return appointment
