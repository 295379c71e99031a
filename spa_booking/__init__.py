from __future__ import annotations

import logging
from collections.abc import Mapping
from concurrent.futures import ThreadPoolExecutor

from flask import Flask
from flask_cors import CORS

from .booking import BookingIntake
from .catalog import bp_catalog
from .config import Config
from .errors import register_error_handlers
from .extensions import db, enforce_sqlite_foreign_keys
from .hub import LiveHub
from .lifecycle import AppointmentLifecycle
from .notifications import MailSink, NotificationDispatcher, build_mail_sink
from .routes import bp
from .store import AppointmentStore


def _configure_logging(app: Flask) -> None:
    level = logging.getLevelName(str(app.config.get("LOG_LEVEL", "INFO")).upper())
    if not isinstance(level, int):
        level = logging.INFO
    if not logging.getLogger().handlers:
        logging.basicConfig(format="%(asctime)s %(levelname)s [%(name)s] %(message)s")
    logging.getLogger(__name__).setLevel(level)
    app.logger.setLevel(level)


def create_app(config_object=None, *, mail_sink: MailSink | None = None, hub: LiveHub | None = None):
    app = Flask(__name__, instance_relative_config=True)

    app.config.from_object(Config)
    if config_object is None:
        app.config.from_envvar("APP_SETTINGS", silent=True)
    elif isinstance(config_object, Mapping):
        app.config.from_mapping(config_object)
    else:
        app.config.from_object(config_object)

    _configure_logging(app)
    db.init_app(app)
    with app.app_context():
        enforce_sqlite_foreign_keys(db.engine)

    # Allow the dashboard frontend to talk to the backend
    CORS(app,
         origins=[app.config["CLIENT_URL"]],
         supports_credentials=True,
         allow_headers=["Content-Type", "Authorization"],
         methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"]
    )

    # One hub per process, owned by the app rather than a module global
    live_hub = hub or LiveHub(queue_size=app.config["LIVE_QUEUE_SIZE"])
    store = AppointmentStore()
    executor = None
    if app.config["MAIL_ASYNC"]:
        executor = ThreadPoolExecutor(max_workers=app.config["MAIL_WORKERS"], thread_name_prefix="mail")
    dispatcher = NotificationDispatcher(
        live_hub,
        mail_sink or build_mail_sink(app.config),
        recorder=store.record_notification,
        executor=executor,
        worker_context=app.app_context,
        staff_email=app.config["STAFF_NOTIFY_EMAIL"],
        notify_client_on_status_change=app.config["NOTIFY_CLIENT_ON_STATUS_CHANGE"],
    )

    app.extensions["live_hub"] = live_hub
    app.extensions["notification_dispatcher"] = dispatcher
    app.extensions["booking_intake"] = BookingIntake(store, dispatcher)
    app.extensions["appointment_lifecycle"] = AppointmentLifecycle(store, dispatcher)

    register_error_handlers(app)
    app.register_blueprint(bp)
    app.register_blueprint(bp_catalog)

    return app
