"""Error kinds raised by the booking core and their JSON rendering."""
from __future__ import annotations

from flask import Flask, current_app, jsonify
from sqlalchemy.exc import SQLAlchemyError

from .extensions import db


class BookingError(Exception):
    """Base class for errors surfaced to API callers."""

    code = "error"
    status_code = 500

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.code)
        self.message = message or self.code

    def to_dict(self) -> dict[str, object]:
        return {"error": self.code, "message": self.message}


class ValidationError(BookingError):
    code = "invalid_payload"
    status_code = 400

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field

    def to_dict(self) -> dict[str, object]:
        payload = super().to_dict()
        payload["field"] = self.field
        return payload


class NotFound(BookingError):
    code = "not_found"
    status_code = 404

    def __init__(self, resource: str, identifier: object = None) -> None:
        super().__init__(f"{resource} not found")
        self.resource = resource
        self.identifier = identifier


class InvalidTransition(BookingError):
    code = "invalid_transition"
    status_code = 400

    def __init__(self, current: str, requested: str) -> None:
        super().__init__(f"Cannot change status from {current} to {requested}")
        self.current = current
        self.requested = requested


class Unauthorized(BookingError):
    code = "unauthorized"
    status_code = 401

    def __init__(self, message: str = "authentication required", *, forbidden: bool = False) -> None:
        super().__init__(message)
        if forbidden:
            self.code = "forbidden"
            self.status_code = 403


class StorageFailure(BookingError):
    """The store could not complete a read or write. Safe to retry the request."""

    code = "database_error"
    status_code = 503

    def to_dict(self) -> dict[str, object]:
        # Driver details stay in the logs.
        return {"error": self.code, "message": "Storage is temporarily unavailable, please retry"}


class NotificationFailure(Exception):
    """An email or broadcast could not be delivered. Never leaves the dispatcher."""

    def __init__(self, channel: str, detail: str) -> None:
        super().__init__(f"{channel} notification failed: {detail}")
        self.channel = channel
        self.detail = detail


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(BookingError)
    def handle_booking_error(exc: BookingError):
        if isinstance(exc, StorageFailure):
            current_app.logger.error("Storage failure: %s", exc.message)
        return jsonify(exc.to_dict()), exc.status_code

    @app.errorhandler(SQLAlchemyError)
    def handle_database_error(exc: SQLAlchemyError):
        db.session.rollback()
        current_app.logger.exception("Unhandled database error", exc_info=exc)
        return jsonify(StorageFailure().to_dict()), StorageFailure.status_code
