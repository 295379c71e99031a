"""Shared Flask extensions and engine hooks for the application."""
from __future__ import annotations

import logging

from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import event
from sqlalchemy.engine import Engine

logger = logging.getLogger(__name__)

# SQLAlchemy database instance shared across the app.
db = SQLAlchemy()


def enforce_sqlite_foreign_keys(engine: Engine) -> None:
    """Turn on foreign key checks for every new SQLite connection.

    SQLite ships with them off, which would let a service or employee be
    deleted out from under the appointments that reference it.
    """
    if engine.dialect.name != "sqlite":
        return

    @event.listens_for(engine, "connect")
    def on_connect(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()
        logger.debug("SQLite foreign key enforcement enabled")
