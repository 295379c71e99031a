#!/usr/bin/env python3
"""Create the booking tables, optionally dropping them first.

Usage:
    python scripts/init_db.py [--drop]
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from spa_booking import create_app
from spa_booking.extensions import db


def init_database(drop: bool = False) -> None:
    app = create_app()
    with app.app_context():
        if drop:
            db.drop_all()
            print("Dropped existing tables")
        db.create_all()
        tables = ", ".join(sorted(db.metadata.tables))
        print(f"Tables ready on {db.engine.url.render_as_string(hide_password=True)}: {tables}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--drop", action="store_true", help="drop every table before creating it again")
    init_database(parser.parse_args().drop)
