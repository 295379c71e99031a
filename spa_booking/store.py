"""Appointment store backed by SQLAlchemy.

Every write commits before returning, so a caller holding a result knows the
change is durable. Database errors are rolled back and re-raised as
:class:`StorageFailure`.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import joinedload

from .errors import InvalidTransition, NotFound, StorageFailure
from .extensions import db
from .models import Appointment, Employee, Notification, Service, utc_now
from .transitions import AppointmentStatus, can_transition

logger = logging.getLogger(__name__)

# Compare-and-set attempts before giving up on a contended row
MAX_UPDATE_ATTEMPTS = 3


class AppointmentStore:
    def get_service(self, service_id: int) -> Service | None:
        try:
            return db.session.get(Service, service_id)
        except SQLAlchemyError as exc:
            self._fail("Failed to load service", exc)

    def get_employee(self, employee_id: int) -> Employee | None:
        try:
            return db.session.get(Employee, employee_id)
        except SQLAlchemyError as exc:
            self._fail("Failed to load employee", exc)

    def get(self, appointment_id: int) -> Appointment | None:
        try:
            return db.session.get(Appointment, appointment_id)
        except SQLAlchemyError as exc:
            self._fail("Failed to load appointment", exc)

    def list_all(self) -> list[Appointment]:
        try:
            return (
                Appointment.query.options(joinedload(Appointment.service), joinedload(Appointment.employee))
                .order_by(Appointment.start_time.desc())
                .all()
            )
        except SQLAlchemyError as exc:
            self._fail("Failed to list appointments", exc)

    def create(
        self,
        *,
        client_name: str,
        client_email: str,
        client_phone: str | None,
        service_id: int,
        employee_id: int | None,
        start_time: datetime,
        end_time: datetime,
        notes: str | None,
    ) -> Appointment:
        appointment = Appointment(
            client_name=client_name,
            client_email=client_email,
            client_phone=client_phone,
            service_id=service_id,
            employee_id=employee_id,
            start_time=start_time,
            end_time=end_time,
            status=AppointmentStatus.PENDING,
            notes=notes,
        )
        try:
            db.session.add(appointment)
            db.session.commit()
        except SQLAlchemyError as exc:
            self._fail("Failed to create appointment", exc)
        return appointment

    def update_status(
        self,
        appointment_id: int,
        requested: str,
        guard: Callable[[str, str], bool] = can_transition,
    ) -> tuple[Appointment, str]:
        """Move an appointment to ``requested`` and return it with its previous status.

        The guard always sees the status read from the database in the same
        attempt as the write, and the write only lands if that status is still
        current. A concurrent writer that got there first forces a re-read.
        """
        for attempt in range(1, MAX_UPDATE_ATTEMPTS + 1):
            try:
                current = db.session.execute(
                    select(Appointment.status).where(Appointment.appointment_id == appointment_id)
                ).scalar_one_or_none()
            except SQLAlchemyError as exc:
                self._fail("Failed to read appointment status", exc)

            if current is None:
                raise NotFound("Appointment", appointment_id)
            if not guard(current, requested):
                raise InvalidTransition(current, requested)

            try:
                result = db.session.execute(
                    update(Appointment)
                    .where(Appointment.appointment_id == appointment_id, Appointment.status == current)
                    .values(status=requested, updated_at=utc_now())
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount == 1:
                    db.session.commit()
                    db.session.expire_all()
                    return db.session.get(Appointment, appointment_id), current
                db.session.rollback()
            except SQLAlchemyError as exc:
                self._fail("Failed to update appointment status", exc)

            logger.info(
                "Appointment %s changed concurrently (attempt %d), re-checking transition",
                appointment_id,
                attempt,
            )

        raise StorageFailure(f"appointment {appointment_id} is being updated concurrently")

    def delete(self, appointment_id: int) -> bool:
        try:
            appointment = db.session.get(Appointment, appointment_id)
            if appointment is None:
                return False
            db.session.delete(appointment)
            db.session.commit()
        except SQLAlchemyError as exc:
            self._fail("Failed to delete appointment", exc)
        return True

    def record_notification(
        self,
        *,
        appointment_id: int | None,
        kind: str,
        channel: str,
        recipient: str | None = None,
        subject: str | None = None,
    ) -> Notification:
        record = Notification(
            appointment_id=appointment_id,
            kind=kind,
            channel=channel,
            recipient=recipient,
            subject=subject,
        )
        try:
            db.session.add(record)
            db.session.commit()
        except SQLAlchemyError as exc:
            self._fail("Failed to record notification", exc)
        return record

    def notifications_for(self, appointment_id: int) -> list[Notification]:
        try:
            return (
                Notification.query.filter_by(appointment_id=appointment_id)
                .order_by(Notification.notification_id.asc())
                .all()
            )
        except SQLAlchemyError as exc:
            self._fail("Failed to list notifications", exc)

    @staticmethod
    def _fail(message: str, exc: SQLAlchemyError) -> None:
        db.session.rollback()
        logger.exception(message, exc_info=exc)
        raise StorageFailure(message) from exc
