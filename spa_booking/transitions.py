"""Appointment status transition rules."""
from __future__ import annotations


class AppointmentStatus:
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"

    ALL = (PENDING, CONFIRMED, CANCELLED)


LEGAL_TRANSITIONS = frozenset(
    {
        (AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED),
        (AppointmentStatus.PENDING, AppointmentStatus.CANCELLED),
        (AppointmentStatus.CONFIRMED, AppointmentStatus.CANCELLED),
    }
)


def can_transition(current: str, requested: str, caller_role: str | None = None) -> bool:
    """Return True if an appointment may move from ``current`` to ``requested``.

    The decision depends on the two statuses only. ``caller_role`` is accepted so
    callers can pass what they know, but authorization happens before this check.
    """
    return (current, requested) in LEGAL_TRANSITIONS


def is_known_status(value: str) -> bool:
    return value in AppointmentStatus.ALL
