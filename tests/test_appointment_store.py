"""Tests for the store's compare-and-set status update."""
from __future__ import annotations

from datetime import datetime, timedelta

import pytest
from sqlalchemy import update

from spa_booking.errors import InvalidTransition, NotFound, StorageFailure
from spa_booking.extensions import db
from spa_booking.models import Appointment
from spa_booking.store import MAX_UPDATE_ATTEMPTS, AppointmentStore
from spa_booking.transitions import can_transition


@pytest.fixture
def appointment_id(app, catalog) -> int:
    with app.app_context():
        start = datetime(2025, 6, 1, 10, 0)
        appointment = AppointmentStore().create(
            client_name="Ada",
            client_email="ada@x.com",
            client_phone=None,
            service_id=catalog["service_id"],
            employee_id=None,
            start_time=start,
            end_time=start + timedelta(hours=1),
            notes=None,
        )
        return appointment.appointment_id


def _overwrite_status(appointment_id: int, status: str) -> None:
    db.session.execute(
        update(Appointment).where(Appointment.appointment_id == appointment_id).values(status=status)
    )
    db.session.commit()


def test_create_always_starts_pending(app, appointment_id) -> None:
    with app.app_context():
        assert AppointmentStore().get(appointment_id).status == "PENDING"


def test_update_returns_previous_status(app, appointment_id) -> None:
    with app.app_context():
        appointment, previous = AppointmentStore().update_status(appointment_id, "CONFIRMED")

        assert previous == "PENDING"
        assert appointment.status == "CONFIRMED"


def test_guard_is_rechecked_after_a_concurrent_write(app, appointment_id) -> None:
    seen = []

    def racing_guard(current: str, requested: str) -> bool:
        seen.append(current)
        if len(seen) == 1:
            # Another request cancels between our read and our write.
            _overwrite_status(appointment_id, "CANCELLED")
        return can_transition(current, requested)

    with app.app_context():
        with pytest.raises(InvalidTransition):
            AppointmentStore().update_status(appointment_id, "CONFIRMED", guard=racing_guard)

        assert seen == ["PENDING", "CANCELLED"]
        assert db.session.get(Appointment, appointment_id).status == "CANCELLED"


def test_concurrent_write_to_a_still_legal_state(app, appointment_id) -> None:
    calls = []

    def racing_guard(current: str, requested: str) -> bool:
        calls.append(current)
        if len(calls) == 1:
            _overwrite_status(appointment_id, "CONFIRMED")
        return can_transition(current, requested)

    with app.app_context():
        appointment, previous = AppointmentStore().update_status(appointment_id, "CANCELLED", guard=racing_guard)

        assert previous == "CONFIRMED"
        assert appointment.status == "CANCELLED"


def test_gives_up_after_repeated_contention(app, appointment_id) -> None:
    calls = []

    def always_racing(current: str, requested: str) -> bool:
        calls.append(current)
        _overwrite_status(appointment_id, "CONFIRMED" if current == "PENDING" else "PENDING")
        return True

    with app.app_context():
        with pytest.raises(StorageFailure):
            AppointmentStore().update_status(appointment_id, "CANCELLED", guard=always_racing)

    assert len(calls) == MAX_UPDATE_ATTEMPTS


def test_missing_appointment(app) -> None:
    with app.app_context():
        with pytest.raises(NotFound):
            AppointmentStore().update_status(404, "CONFIRMED")
        assert AppointmentStore().delete(404) is False


def test_record_notification(app, appointment_id) -> None:
    with app.app_context():
        record = AppointmentStore().record_notification(
            appointment_id=appointment_id, kind="created", channel="email", recipient="ada@x.com", subject="Hi"
        )

        assert record.to_dict()["recipient"] == "ada@x.com"
