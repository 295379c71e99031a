"""HTTP routes for authentication, appointments and the live event channel."""
from __future__ import annotations

from datetime import datetime, timezone

from flask import Blueprint, Response, current_app, g, jsonify, request
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.security import check_password_hash, generate_password_hash

from .auth import build_token, staff_required
from .booking import BookingIntake
from .errors import StorageFailure
from .extensions import db
from .hub import LiveHub
from .lifecycle import AppointmentLifecycle
from .models import AuthAccount, User

bp = Blueprint("api", __name__, url_prefix="/api")


def _intake() -> BookingIntake:
    return current_app.extensions["booking_intake"]


def _lifecycle() -> AppointmentLifecycle:
    return current_app.extensions["appointment_lifecycle"]


def _hub() -> LiveHub:
    return current_app.extensions["live_hub"]


@bp.get("/health")
def health_check() -> tuple[dict[str, str], int]:
    """
    Expose a simple uptime check endpoint.
    ---
    tags:
      - Health
    responses:
      200:
        description: Service is healthy and running.
    """
    return jsonify({"status": "ok"}), 200


def _account_fields(payload: dict) -> tuple[tuple[str, str, str] | None, tuple[dict[str, str], int] | None]:
    """Return (name, email, password) or an error response for a sign-up payload."""
    name = (payload.get("name") or "").strip()
    email = (payload.get("email") or "").strip().lower()
    password = payload.get("password") or ""

    if not name or not email or not password:
        return None, ({"error": "invalid_payload", "message": "name, email, and password are required"}, 400)
    if User.query.filter_by(email=email).first():
        return None, ({"error": "conflict", "message": "email address is already in use"}, 409)
    return (name, email, password), None


def _create_account(name: str, email: str, password: str, role: str) -> User:
    try:
        new_user = User(name=name, email=email, role=role)
        db.session.add(new_user)
        db.session.flush()

        db.session.add(AuthAccount(user_id=new_user.user_id, password_hash=generate_password_hash(password)))
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to register new user", exc_info=exc)
        raise StorageFailure("Failed to register new user") from exc
    return new_user


@bp.post("/auth/register")
def register_user() -> tuple[dict[str, object], int]:
    """Register a new client account.
    ---
    tags:
      - Authentication
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            name:
              type: string
            email:
              type: string
            password:
              type: string
          required:
            - name
            - email
            - password
    responses:
      201:
        description: User registered successfully
      400:
        description: Invalid payload
      409:
        description: Email already in use
    """
    fields, error = _account_fields(request.get_json(silent=True) or {})
    if error:
        body, status = error
        return jsonify(body), status

    # Self-registration never grants staff access, whatever role is sent
    new_user = _create_account(*fields, role="client")
    token = build_token({"user_id": new_user.user_id, "role": new_user.role})
    return jsonify({"token": token, "user": new_user.to_dict_basic()}), 201


@bp.post("/auth/staff")
@staff_required(admin_only=True)
def create_staff_user() -> tuple[dict[str, object], int]:
    """Create a staff login. Admin only.
    ---
    tags:
      - Authentication
    responses:
      201:
        description: Staff user created
      400:
        description: Invalid payload
      403:
        description: Caller is not an admin
      409:
        description: Email already in use
    """
    fields, error = _account_fields(request.get_json(silent=True) or {})
    if error:
        body, status = error
        return jsonify(body), status

    new_user = _create_account(*fields, role="staff")
    current_app.logger.info("Staff user %s created by admin %s", new_user.user_id, g.identity.get("user_id"))
    return jsonify({"user": new_user.to_dict_basic()}), 201


@bp.post("/auth/login")
def login() -> tuple[dict[str, object], int]:
    """Authenticate a user by email/password and return an access token.
    ---
    tags:
      - Authentication
    responses:
      200:
        description: Login successful, returns access token
      400:
        description: Missing email or password
      401:
        description: Invalid credentials
    """
    payload = request.get_json(silent=True) or {}

    email = (payload.get("email") or "").strip().lower()
    password = payload.get("password") or ""

    if not email or not password:
        return (
            jsonify({"error": "invalid_payload", "message": "email and password are required"}),
            400,
        )

    record = (
        db.session.query(User, AuthAccount)
        .join(AuthAccount, AuthAccount.user_id == User.user_id)
        .filter(User.email == email)
        .first()
    )
    if not record:
        return jsonify({"error": "unauthorized", "message": "invalid email or password"}), 401

    user, auth_account = record
    if not check_password_hash(auth_account.password_hash, password):
        return jsonify({"error": "unauthorized", "message": "invalid email or password"}), 401

    auth_account.last_login_at = datetime.now(timezone.utc)
    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to update last login timestamp", exc_info=exc)
        raise StorageFailure("Failed to update last login timestamp") from exc

    token = build_token({"user_id": user.user_id, "role": user.role})
    return jsonify({"token": token, "user": user.to_dict_basic()}), 200


@bp.post("/appointments/public")
def create_appointment() -> tuple[dict[str, object], int]:
    """Book an appointment. Open to anyone; the result is always PENDING.
    ---
    tags:
      - Appointments
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            clientName:
              type: string
            clientEmail:
              type: string
            clientPhone:
              type: string
            serviceId:
              type: integer
            employeeId:
              type: integer
            startTime:
              type: string
              format: date-time
            notes:
              type: string
          required:
            - clientName
            - clientEmail
            - serviceId
            - startTime
    responses:
      201:
        description: Appointment created
      400:
        description: Invalid payload
      404:
        description: Service or employee not found
      503:
        description: Storage unavailable, safe to retry
    """
    payload = request.get_json(silent=True) or {}
    appointment = _intake().submit_booking(payload)
    current_app.logger.info("Appointment %s booked for %s", appointment.appointment_id, appointment.client_email)
    return jsonify({"message": "Appointment requested successfully", "appointment": appointment.to_dict()}), 201


@bp.get("/appointments")
@staff_required
def list_appointments() -> tuple[dict[str, list[dict[str, object]]], int]:
    """List every appointment, newest start time first."""
    appointments = _lifecycle().list_all()
    return jsonify({"appointments": [appt.to_dict() for appt in appointments]}), 200


@bp.get("/appointments/<int:appointment_id>")
@staff_required
def get_appointment(appointment_id: int) -> tuple[dict[str, dict[str, object]], int]:
    appointment = _lifecycle().get(appointment_id)
    return jsonify({"appointment": appointment.to_dict()}), 200


@bp.get("/appointments/<int:appointment_id>/notifications")
@staff_required
def list_appointment_notifications(appointment_id: int) -> tuple[dict[str, list[dict[str, object]]], int]:
    records = _lifecycle().notifications(appointment_id)
    return jsonify({"notifications": [record.to_dict() for record in records]}), 200


@bp.put("/appointments/<int:appointment_id>/status")
@staff_required
def update_appointment_status(appointment_id: int) -> tuple[dict[str, object], int]:
    """Confirm or cancel an appointment.
    ---
    tags:
      - Appointments
    parameters:
      - in: path
        name: appointment_id
        required: true
        schema:
          type: integer
      - in: body
        name: body
        required: true
        schema:
          properties:
            status:
              type: string
              enum: [CONFIRMED, CANCELLED]
    responses:
      200:
        description: Status updated
      400:
        description: Invalid status or transition not allowed
      401:
        description: Missing or invalid token
      404:
        description: Appointment not found
    """
    payload = request.get_json(silent=True) or {}
    appointment, previous = _lifecycle().change_status(appointment_id, payload.get("status"))
    current_app.logger.info(
        "Appointment %s moved %s -> %s by user %s",
        appointment_id,
        previous,
        appointment.status,
        g.identity.get("user_id"),
    )
    return jsonify({"appointment": appointment.to_dict(), "previousStatus": previous}), 200


@bp.delete("/appointments/<int:appointment_id>")
@staff_required
def delete_appointment(appointment_id: int) -> tuple[dict[str, object], int]:
    """Remove an appointment whatever its status."""
    _lifecycle().delete(appointment_id)
    current_app.logger.info("Appointment %s deleted by user %s", appointment_id, g.identity.get("user_id"))
    return jsonify({"ok": True, "id": appointment_id}), 200


@bp.get("/events")
@staff_required(allow_query_token=True)
def live_events() -> Response:
    """Server-Sent-Event stream of appointment changes for dashboards.

    Only events broadcast after the connection opens are delivered.
    """
    hub = _hub()
    subscriber = hub.subscribe()
    response = Response(
        subscriber.stream(current_app.config["LIVE_KEEPALIVE_SECONDS"]),
        mimetype="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
    response.call_on_close(lambda: hub.unsubscribe(subscriber.handle))
    return response
