"""Service and employee management routes."""
from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from .auth import staff_required
from .errors import StorageFailure
from .extensions import db
from .models import Employee, Service

bp_catalog = Blueprint("catalog", __name__, url_prefix="/api")


def _service_fields(payload: dict) -> tuple[dict[str, object] | None, str | None]:
    """Validate service fields, returning (fields, error message)."""
    name = (payload.get("name") or "").strip()
    if not name:
        return None, "name is required"

    try:
        duration = int(payload.get("durationMinutes"))
        price = int(payload.get("priceCents", 0))
    except (TypeError, ValueError):
        return None, "durationMinutes and priceCents must be integers"

    if duration <= 0 or price < 0:
        return None, "durationMinutes must be positive and priceCents non-negative"

    return {
        "name": name,
        "description": (payload.get("description") or "").strip() or None,
        "duration_minutes": duration,
        "price_cents": price,
    }, None


def _services_by_id(service_ids) -> list[Service] | None:
    """Resolve ids to services; None if any id is unknown."""
    if not service_ids:
        return []
    try:
        wanted = {int(sid) for sid in service_ids}
    except (TypeError, ValueError):
        return None
    services = Service.query.filter(Service.service_id.in_(wanted)).all()
    if len(services) != len(wanted):
        return None
    return services


@bp_catalog.get("/services/public")
def list_public_services() -> tuple[dict[str, list[dict[str, object]]], int]:
    """Services shown on the booking page."""
    services = Service.query.order_by(Service.name.asc()).all()
    return jsonify({"services": [service.to_dict() for service in services]}), 200


@bp_catalog.get("/services")
@staff_required
def list_services() -> tuple[dict[str, list[dict[str, object]]], int]:
    services = Service.query.order_by(Service.name.asc()).all()
    return jsonify({"services": [service.to_dict() for service in services]}), 200


@bp_catalog.post("/services")
@staff_required
def create_service() -> tuple[dict[str, object], int]:
    """Create a service.
    ---
    tags:
      - Services
    responses:
      201:
        description: Service created
      400:
        description: Invalid payload
    """
    fields, error = _service_fields(request.get_json(silent=True) or {})
    if error:
        return jsonify({"error": "invalid_payload", "message": error}), 400

    try:
        service = Service(**fields)
        db.session.add(service)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to create service", exc_info=exc)
        raise StorageFailure("Failed to create service") from exc

    return jsonify({"service": service.to_dict()}), 201


@bp_catalog.put("/services/<int:service_id>")
@staff_required
def update_service(service_id: int) -> tuple[dict[str, object], int]:
    service = db.session.get(Service, service_id)
    if service is None:
        return jsonify({"error": "not_found", "message": "Service not found"}), 404

    fields, error = _service_fields(request.get_json(silent=True) or {})
    if error:
        return jsonify({"error": "invalid_payload", "message": error}), 400

    try:
        for key, value in fields.items():
            setattr(service, key, value)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to update service", exc_info=exc)
        raise StorageFailure("Failed to update service") from exc

    return jsonify({"service": service.to_dict()}), 200


@bp_catalog.delete("/services/<int:service_id>")
@staff_required
def delete_service(service_id: int) -> tuple[dict[str, object], int]:
    service = db.session.get(Service, service_id)
    if service is None:
        return jsonify({"error": "not_found", "message": "Service not found"}), 404

    try:
        db.session.delete(service)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return (
            jsonify({"error": "conflict", "message": "Service is referenced by existing appointments"}),
            409,
        )
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to delete service", exc_info=exc)
        raise StorageFailure("Failed to delete service") from exc

    return jsonify({"ok": True}), 200


@bp_catalog.get("/employees")
@staff_required
def list_employees() -> tuple[dict[str, list[dict[str, object]]], int]:
    employees = Employee.query.order_by(Employee.name.asc()).all()
    return jsonify({"employees": [employee.to_dict() for employee in employees]}), 200


@bp_catalog.post("/employees")
@staff_required
def create_employee() -> tuple[dict[str, object], int]:
    """Create an employee and link the services they perform.
    ---
    tags:
      - Employees
    responses:
      201:
        description: Employee created
      400:
        description: Invalid payload or unknown service id
      409:
        description: Email already in use
    """
    payload = request.get_json(silent=True) or {}
    name = (payload.get("name") or "").strip()
    email = (payload.get("email") or "").strip().lower()
    if not name or not email:
        return jsonify({"error": "invalid_payload", "message": "name and email are required"}), 400

    services = _services_by_id(payload.get("serviceIds"))
    if services is None:
        return jsonify({"error": "invalid_payload", "message": "serviceIds contains an unknown service"}), 400

    try:
        employee = Employee(
            name=name,
            email=email,
            phone=(payload.get("phone") or "").strip() or None,
            bio=(payload.get("bio") or "").strip() or None,
            services=services,
        )
        db.session.add(employee)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify({"error": "conflict", "message": "email address is already in use"}), 409
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to create employee", exc_info=exc)
        raise StorageFailure("Failed to create employee") from exc

    return jsonify({"employee": employee.to_dict()}), 201


@bp_catalog.put("/employees/<int:employee_id>")
@staff_required
def update_employee(employee_id: int) -> tuple[dict[str, object], int]:
    employee = db.session.get(Employee, employee_id)
    if employee is None:
        return jsonify({"error": "not_found", "message": "Employee not found"}), 404

    payload = request.get_json(silent=True) or {}
    if "serviceIds" in payload:
        services = _services_by_id(payload.get("serviceIds"))
        if services is None:
            return jsonify({"error": "invalid_payload", "message": "serviceIds contains an unknown service"}), 400
        employee.services = services

    for field in ("name", "phone", "bio"):
        if field in payload:
            value = (payload.get(field) or "").strip() or None
            if field == "name" and value is None:
                return jsonify({"error": "invalid_payload", "message": "name cannot be empty"}), 400
            setattr(employee, field, value)
    if payload.get("email"):
        employee.email = payload["email"].strip().lower()

    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify({"error": "conflict", "message": "email address is already in use"}), 409
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to update employee", exc_info=exc)
        raise StorageFailure("Failed to update employee") from exc

    return jsonify({"employee": employee.to_dict()}), 200


@bp_catalog.delete("/employees/<int:employee_id>")
@staff_required
def delete_employee(employee_id: int) -> tuple[dict[str, object], int]:
    employee = db.session.get(Employee, employee_id)
    if employee is None:
        return jsonify({"error": "not_found", "message": "Employee not found"}), 404

    try:
        db.session.delete(employee)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return (
            jsonify({"error": "conflict", "message": "Employee is referenced by existing appointments"}),
            409,
        )
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to delete employee", exc_info=exc)
        raise StorageFailure("Failed to delete employee") from exc

    return jsonify({"ok": True}), 200
