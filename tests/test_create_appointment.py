"""Tests for public booking intake."""
from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone

import pytest

from spa_booking.errors import StorageFailure
from spa_booking.extensions import db
from spa_booking.models import Appointment, Notification


def _post(client, **payload):
    return client.post("/api/appointments/public", json=payload)


def test_booking_is_pending_and_broadcast(client, catalog, hub, mail_sink) -> None:
    subscriber = hub.subscribe()

    response = _post(
        client,
        clientName="Ada",
        clientEmail="ada@x.com",
        serviceId=catalog["service_id"],
        startTime="2025-06-01T10:00:00Z",
    )

    assert response.status_code == 201
    appointment = response.get_json()["appointment"]
    assert appointment["status"] == "PENDING"
    assert isinstance(appointment["id"], int)
    assert appointment["serviceName"] == "Classic Facial"
    assert appointment["startTime"].startswith("2025-06-01T10:00:00")
    assert appointment["endTime"].startswith("2025-06-01T11:00:00")

    event, data = subscriber.next_event(timeout=0)
    assert event == "appointment:new"
    assert json.loads(data) == appointment
    assert subscriber.next_event(timeout=0) is None

    assert [m["to"] for m in mail_sink.outbox] == ["ada@x.com"]


def test_requested_status_is_ignored(client, catalog) -> None:
    response = _post(
        client,
        clientName="Ada",
        clientEmail="ada@x.com",
        serviceId=str(catalog["service_id"]),
        startTime="2025-06-01T10:00:00",
        status="CONFIRMED",
    )

    assert response.status_code == 201
    assert response.get_json()["appointment"]["status"] == "PENDING"


def test_optional_fields_are_stored(client, catalog) -> None:
    response = _post(
        client,
        clientName="  Ada  ",
        clientEmail="ada@x.com",
        clientPhone="555-0199",
        serviceId=catalog["service_id"],
        employeeId=catalog["employee_id"],
        startTime="2025-06-01T10:00:00",
        notes="Sensitive skin",
    )

    appointment = response.get_json()["appointment"]
    assert response.status_code == 201
    assert appointment["clientName"] == "Ada"
    assert appointment["clientPhone"] == "555-0199"
    assert appointment["employeeName"] == "Jane Doe"
    assert appointment["notes"] == "Sensitive skin"


@pytest.mark.parametrize(
    "overrides,field",
    [
        ({"clientName": ""}, "clientName"),
        ({"clientName": "   "}, "clientName"),
        ({"clientEmail": None}, "clientEmail"),
        ({"serviceId": None}, "serviceId"),
        ({"serviceId": "abc"}, "serviceId"),
        ({"startTime": "tomorrow at ten"}, "startTime"),
        ({"startTime": None}, "startTime"),
        ({"employeeId": "x"}, "employeeId"),
    ],
)
def test_validation_reports_first_bad_field(client, catalog, hub, overrides, field) -> None:
    subscriber = hub.subscribe()
    payload = {
        "clientName": "Ada",
        "clientEmail": "ada@x.com",
        "serviceId": catalog["service_id"],
        "startTime": "2025-06-01T10:00:00Z",
    }
    payload.update(overrides)

    response = _post(client, **payload)

    assert response.status_code == 400
    body = response.get_json()
    assert body["error"] == "invalid_payload"
    assert body["field"] == field
    assert subscriber.next_event(timeout=0) is None


def test_fail_fast_order(client) -> None:
    response = _post(client, serviceId="abc", startTime="nope")

    assert response.get_json()["field"] == "clientName"


def test_unknown_service_is_not_found_and_nothing_happens(app, client, catalog, hub, mail_sink) -> None:
    subscriber = hub.subscribe()

    response = _post(
        client,
        clientName="Ada",
        clientEmail="ada@x.com",
        serviceId=9999,
        startTime="2025-06-01T10:00:00Z",
    )

    assert response.status_code == 404
    assert response.get_json()["error"] == "not_found"
    assert subscriber.next_event(timeout=0) is None
    assert mail_sink.outbox == []
    with app.app_context():
        assert Appointment.query.count() == 0
        assert Notification.query.count() == 0


def test_unknown_employee_is_not_found(app, client, catalog) -> None:
    response = _post(
        client,
        clientName="Ada",
        clientEmail="ada@x.com",
        serviceId=catalog["service_id"],
        employeeId=777,
        startTime="2025-06-01T10:00:00Z",
    )

    assert response.status_code == 404
    assert "Employee" in response.get_json()["message"]
    with app.app_context():
        assert Appointment.query.count() == 0


def test_notifications_are_recorded(app, booked) -> None:
    with app.app_context():
        records = Notification.query.filter_by(appointment_id=booked["id"]).all()
        assert sorted((r.channel, r.recipient) for r in records) == [("email", "ada@x.com"), ("live", None)]
        assert {r.kind for r in records} == {"created"}


def test_mail_failure_does_not_fail_booking(app, client, catalog, monkeypatch) -> None:
    dispatcher = app.extensions["notification_dispatcher"]

    def explode(to, subject, body):
        raise OSError("smtp down")

    monkeypatch.setattr(dispatcher.mail_sink, "send", explode)

    response = _post(
        client,
        clientName="Ada",
        clientEmail="ada@x.com",
        serviceId=catalog["service_id"],
        startTime="2025-06-01T10:00:00Z",
    )

    assert response.status_code == 201
    with app.app_context():
        assert db.session.get(Appointment, response.get_json()["appointment"]["id"]) is not None


def test_storage_failure_is_generic_and_dispatches_nothing(app, client, catalog, hub, mail_sink, monkeypatch) -> None:
    subscriber = hub.subscribe()
    store = app.extensions["booking_intake"].store

    def unavailable(**kwargs):
        raise StorageFailure("connection reset by peer")

    monkeypatch.setattr(store, "create", unavailable)

    response = _post(
        client,
        clientName="Ada",
        clientEmail="ada@x.com",
        serviceId=catalog["service_id"],
        startTime="2025-06-01T10:00:00Z",
    )

    assert response.status_code == 503
    body = response.get_json()
    assert body["error"] == "database_error"
    assert "connection reset" not in body["message"]
    assert subscriber.next_event(timeout=0) is None
    assert mail_sink.outbox == []


def test_start_time_offset_keeps_the_same_instant(app, client, catalog) -> None:
    response = _post(
        client,
        clientName="Ada",
        clientEmail="ada@x.com",
        serviceId=catalog["service_id"],
        startTime="2025-06-01T10:00:00+02:00",
    )

    appointment = response.get_json()["appointment"]
    assert appointment["startTime"] == "2025-06-01T08:00:00+00:00"
    assert appointment["endTime"] == "2025-06-01T09:00:00+00:00"
    with app.app_context():
        stored = db.session.get(Appointment, appointment["id"])
        assert stored.start_time == datetime(2025, 6, 1, 10, 0, tzinfo=timezone(timedelta(hours=2)))
