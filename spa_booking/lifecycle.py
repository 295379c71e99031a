"""Staff-driven appointment changes: status transitions and deletion."""
from __future__ import annotations

from typing import Any

from .errors import NotFound, ValidationError
from .models import Appointment, Notification
from .notifications import NotificationDispatcher, NotificationEvent
from .store import AppointmentStore
from .transitions import is_known_status


class AppointmentLifecycle:
    def __init__(self, store: AppointmentStore, dispatcher: NotificationDispatcher) -> None:
        self.store = store
        self.dispatcher = dispatcher

    def get(self, appointment_id: int) -> Appointment:
        appointment = self.store.get(appointment_id)
        if appointment is None:
            raise NotFound("Appointment", appointment_id)
        return appointment

    def list_all(self) -> list[Appointment]:
        return self.store.list_all()

    def notifications(self, appointment_id: int) -> list[Notification]:
        # Records are kept after the appointment itself is deleted
        return self.store.notifications_for(appointment_id)

    def change_status(self, appointment_id: int, requested: Any) -> tuple[Appointment, str]:
        """Apply a status change and announce it once it is durable.

        Returns the updated appointment and the status it moved from.
        """
        if not isinstance(requested, str) or not requested.strip():
            raise ValidationError("status", "status is required")
        requested = requested.strip().upper()
        if not is_known_status(requested):
            raise ValidationError("status", "status must be one of CONFIRMED, CANCELLED")

        appointment, previous = self.store.update_status(appointment_id, requested)
        self.dispatcher.dispatch(NotificationEvent.status_changed(appointment.to_dict(), previous))
        return appointment, previous

    def delete(self, appointment_id: int) -> dict[str, Any]:
        """Remove an appointment regardless of its status."""
        snapshot = self.get(appointment_id).to_dict()
        if not self.store.delete(appointment_id):
            raise NotFound("Appointment", appointment_id)
        self.dispatcher.dispatch(NotificationEvent.deleted(snapshot))
        return snapshot
