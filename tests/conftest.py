"""pytest configuration and shared fixtures."""
from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Ensure the project root is available on sys.path so tests can import the package.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from spa_booking import create_app  # noqa: E402
from spa_booking.auth import build_token  # noqa: E402
from spa_booking.config import TestingConfig  # noqa: E402
from spa_booking.extensions import db  # noqa: E402
from spa_booking.hub import LiveHub  # noqa: E402
from spa_booking.models import Employee, Service, User  # noqa: E402
from spa_booking.notifications import MemoryMailSink  # noqa: E402


@pytest.fixture
def mail_sink() -> MemoryMailSink:
    return MemoryMailSink()


@pytest.fixture
def hub() -> LiveHub:
    return LiveHub(queue_size=10)


@pytest.fixture
def app(mail_sink, hub):
    app = create_app(TestingConfig, mail_sink=mail_sink, hub=hub)
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()
    hub.close_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def catalog(app) -> dict[str, int]:
    """One service and one employee, returned as ids."""
    with app.app_context():
        service = Service(name="Classic Facial", description="Relaxing facial", duration_minutes=60, price_cents=8000)
        employee = Employee(name="Jane Doe", email="jane@spa.local", phone="555-0101", services=[service])
        db.session.add_all([service, employee])
        db.session.commit()
        return {"service_id": service.service_id, "employee_id": employee.employee_id}


def _token_for(app, *, name: str, email: str, role: str) -> str:
    with app.app_context():
        user = User(name=name, email=email, role=role)
        db.session.add(user)
        db.session.commit()
        return build_token({"user_id": user.user_id, "role": user.role})


@pytest.fixture
def staff_token(app) -> str:
    return _token_for(app, name="Sam Staff", email="staff@spa.local", role="staff")


@pytest.fixture
def client_token(app) -> str:
    return _token_for(app, name="Cara Client", email="cara@example.com", role="client")


@pytest.fixture
def admin_token(app) -> str:
    return _token_for(app, name="Ada Admin", email="admin@spa.local", role="admin")


@pytest.fixture
def staff_headers(staff_token) -> dict[str, str]:
    return {"Authorization": f"Bearer {staff_token}"}


@pytest.fixture
def booked(client, catalog) -> dict[str, object]:
    """A freshly booked PENDING appointment, as returned by the API."""
    response = client.post(
        "/api/appointments/public",
        json={
            "clientName": "Ada",
            "clientEmail": "ada@x.com",
            "serviceId": catalog["service_id"],
            "startTime": "2025-06-01T10:00:00Z",
        },
    )
    assert response.status_code == 201
    return response.get_json()["appointment"]
