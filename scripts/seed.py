#!/usr/bin/env python3
"""Seed an admin account, two services and two employees.

Safe to run repeatedly: existing rows (matched by email or name) are left alone.

Usage:
    python scripts/seed.py [--admin-password PASSWORD]
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from werkzeug.security import generate_password_hash

from spa_booking import create_app
from spa_booking.extensions import db
from spa_booking.models import AuthAccount, Employee, Service, User

SERVICES = [
    {"name": "Classic Facial", "description": "Relaxing facial treatment", "duration_minutes": 60, "price_cents": 8000},
    {"name": "Eyelash Extension", "description": "Beautiful lash extension", "duration_minutes": 90, "price_cents": 12000},
]

EMPLOYEES = [
    {"name": "Jane Doe", "email": "jane@spa.local", "phone": "555-0101", "bio": "Senior esthetician",
     "services": ["Classic Facial"]},
    {"name": "Amy Smith", "email": "amy@spa.local", "phone": "555-0102", "bio": "Lash specialist",
     "services": ["Classic Facial", "Eyelash Extension"]},
]


def seed(admin_password: str) -> None:
    app = create_app()
    with app.app_context():
        db.create_all()

        admin = User.query.filter_by(email="admin@spa.local").first()
        if admin is None:
            admin = User(name="Admin", email="admin@spa.local", role="admin")
            db.session.add(admin)
            db.session.flush()
            db.session.add(AuthAccount(user_id=admin.user_id, password_hash=generate_password_hash(admin_password)))
            print("Created admin@spa.local")

        services = {}
        for data in SERVICES:
            service = Service.query.filter_by(name=data["name"]).first()
            if service is None:
                service = Service(**data)
                db.session.add(service)
                print(f"Created service {data['name']}")
            services[data["name"]] = service

        for data in EMPLOYEES:
            if Employee.query.filter_by(email=data["email"]).first():
                continue
            fields = {key: value for key, value in data.items() if key != "services"}
            db.session.add(Employee(**fields, services=[services[name] for name in data["services"]]))
            print(f"Created employee {data['email']}")

        db.session.commit()


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--admin-password", default="password")
    args = parser.parse_args()
    seed(args.admin_password)


if __name__ == "__main__":
    main()
