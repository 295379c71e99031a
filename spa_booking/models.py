"""Database models for the spa booking backend."""
from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy.types import TypeDecorator

from .extensions import db
from .transitions import AppointmentStatus


def utc_now() -> datetime:
    """Return a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


class UTCDateTime(TypeDecorator):
    """Stores an instant as naive UTC and loads it back as aware UTC.

    Aware values are converted, naive values are taken to already be UTC.
    """

    impl = db.DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None and value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value

    def process_result_value(self, value, dialect):
        if value is not None and value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value


# Services an employee is qualified to perform
employee_services = db.Table(
    "employee_services",
    db.Column("employee_id", db.Integer, db.ForeignKey("employees.employee_id"), primary_key=True),
    db.Column("service_id", db.Integer, db.ForeignKey("services.service_id"), primary_key=True),
)


class User(db.Model):
    __tablename__ = "users"

    user_id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False)
    role = db.Column(
        db.Enum(
            "client",
            "staff",
            "admin",
            name="user_role",
            native_enum=False,
            validate_strings=True,
        ),
        nullable=False,
        server_default="client",
    )
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        default=utc_now,
        onupdate=utc_now,
    )

    auth_account = db.relationship("AuthAccount", back_populates="user", uselist=False)

    def to_dict_basic(self) -> dict[str, object]:
        return {
            "id": self.user_id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
        }


class AuthAccount(db.Model):
    __tablename__ = "auth_accounts"

    user_id = db.Column(db.Integer, db.ForeignKey("users.user_id"), primary_key=True)
    password_hash = db.Column(db.String(255), nullable=False)
    last_login_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    user = db.relationship("User", back_populates="auth_account")


class Service(db.Model):
    """Treatments offered by the spa."""

    __tablename__ = "services"

    service_id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(150), nullable=False)
    description = db.Column(db.Text)
    duration_minutes = db.Column(db.Integer, nullable=False)
    price_cents = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        default=utc_now,
        onupdate=utc_now,
    )

    employees = db.relationship("Employee", secondary=employee_services, back_populates="services")

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.service_id,
            "name": self.name,
            "description": self.description,
            "durationMinutes": self.duration_minutes,
            "priceCents": self.price_cents,
        }


class Employee(db.Model):
    __tablename__ = "employees"

    employee_id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False)
    phone = db.Column(db.String(30))
    bio = db.Column(db.Text)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        default=utc_now,
        onupdate=utc_now,
    )

    services = db.relationship("Service", secondary=employee_services, lazy="selectin", back_populates="employees")

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.employee_id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "bio": self.bio,
            "services": [service.to_dict() for service in self.services],
        }


class Appointment(db.Model):
    """A client booking and its lifecycle status."""

    __tablename__ = "appointments"

    appointment_id = db.Column(db.Integer, primary_key=True)
    client_name = db.Column(db.String(100), nullable=False)
    client_email = db.Column(db.String(255), nullable=False)
    client_phone = db.Column(db.String(30))
    service_id = db.Column(db.Integer, db.ForeignKey("services.service_id"), nullable=False)
    employee_id = db.Column(db.Integer, db.ForeignKey("employees.employee_id"), nullable=True)
    start_time = db.Column(UTCDateTime, nullable=False)
    end_time = db.Column(UTCDateTime, nullable=False)
    status = db.Column(
        db.Enum(
            *AppointmentStatus.ALL,
            name="appointment_status",
            native_enum=False,
            validate_strings=True,
        ),
        nullable=False,
        default=AppointmentStatus.PENDING,
        server_default=AppointmentStatus.PENDING,
    )
    notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        default=utc_now,
        onupdate=utc_now,
    )

    service = db.relationship("Service")
    employee = db.relationship("Employee")

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.appointment_id,
            "clientName": self.client_name,
            "clientEmail": self.client_email,
            "clientPhone": self.client_phone,
            "serviceId": self.service_id,
            "serviceName": self.service.name if self.service else None,
            "employeeId": self.employee_id,
            "employeeName": self.employee.name if self.employee else None,
            "employeeEmail": self.employee.email if self.employee else None,
            "startTime": _iso(self.start_time),
            "endTime": _iso(self.end_time),
            "status": self.status,
            "notes": self.notes,
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }


class Notification(db.Model):
    """Record of a notification action taken for an appointment event."""

    __tablename__ = "notifications"

    notification_id = db.Column(db.Integer, primary_key=True)
    # Not a foreign key: records outlive deleted appointments.
    appointment_id = db.Column(db.Integer, nullable=True, index=True)
    kind = db.Column(
        db.Enum(
            "created",
            "status_changed",
            "deleted",
            name="notification_kind",
            native_enum=False,
            validate_strings=True,
        ),
        nullable=False,
    )
    channel = db.Column(
        db.Enum("live", "email", name="notification_channel", native_enum=False, validate_strings=True),
        nullable=False,
    )
    recipient = db.Column(db.String(255))
    subject = db.Column(db.String(200))
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.notification_id,
            "appointment_id": self.appointment_id,
            "kind": self.kind,
            "channel": self.channel,
            "recipient": self.recipient,
            "subject": self.subject,
            "created_at": _iso(self.created_at),
        }
