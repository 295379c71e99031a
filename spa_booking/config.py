"""Configuration objects loaded by the application factory."""
from __future__ import annotations

import os


def _env_flag(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "change_me")
    SQLALCHEMY_DATABASE_URI = os.environ.get("SQLALCHEMY_DATABASE_URI", "sqlite:///spa_booking.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Frontend origin allowed by CORS
    CLIENT_URL = os.environ.get("CLIENT_URL", "http://localhost:5173")
    TOKEN_MAX_AGE = int(os.environ.get("TOKEN_MAX_AGE", 7 * 24 * 3600))

    SMTP_HOST = os.environ.get("SMTP_HOST", "")
    SMTP_PORT = int(os.environ.get("SMTP_PORT", 587))
    SMTP_USER = os.environ.get("SMTP_USER", "")
    SMTP_PASS = os.environ.get("SMTP_PASS", "")
    SMTP_FROM = os.environ.get("SMTP_FROM", "Spa Booking <no-reply@spabooking.local>")
    SMTP_USE_TLS = _env_flag("SMTP_USE_TLS", True)

    STAFF_NOTIFY_EMAIL = os.environ.get("STAFF_NOTIFY_EMAIL") or None
    NOTIFY_CLIENT_ON_STATUS_CHANGE = _env_flag("NOTIFY_CLIENT_ON_STATUS_CHANGE", True)
    MAIL_ASYNC = _env_flag("MAIL_ASYNC", True)
    MAIL_WORKERS = int(os.environ.get("MAIL_WORKERS", 2))

    LIVE_QUEUE_SIZE = int(os.environ.get("LIVE_QUEUE_SIZE", 100))
    LIVE_KEEPALIVE_SECONDS = float(os.environ.get("LIVE_KEEPALIVE_SECONDS", 15))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")


class TestingConfig(Config):
    TESTING = True
    SECRET_KEY = "test-secret"
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    STAFF_NOTIFY_EMAIL = None
    MAIL_ASYNC = False
    LIVE_KEEPALIVE_SECONDS = 0.05
    LOG_LEVEL = "DEBUG"
