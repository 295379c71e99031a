"""Appointment change events handed to the dispatcher."""
from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import Any

CREATED = "created"
STATUS_CHANGED = "status_changed"
DELETED = "deleted"


@dataclass(frozen=True)
class NotificationEvent:
    kind: str
    appointment: dict[str, Any]
    previous_status: str | None = None

    @property
    def appointment_id(self) -> int | None:
        return self.appointment.get("id")

    @classmethod
    def created(cls, appointment: dict[str, Any]) -> "NotificationEvent":
        return cls(kind=CREATED, appointment=copy.deepcopy(appointment))

    @classmethod
    def status_changed(cls, appointment: dict[str, Any], previous_status: str) -> "NotificationEvent":
        return cls(kind=STATUS_CHANGED, appointment=copy.deepcopy(appointment), previous_status=previous_status)

    @classmethod
    def deleted(cls, appointment: dict[str, Any]) -> "NotificationEvent":
        return cls(kind=DELETED, appointment=copy.deepcopy(appointment))
