"""Startup helpers for database migrations."""

from __future__ import annotations

import logging
from pathlib import Path

from flask import Flask
from flask_migrate import upgrade as migrate_upgrade
from sqlalchemy.exc import SQLAlchemyError

from .models import db

logger = logging.getLogger(__name__)

_MIGRATIONS_DIRNAME = "migrations"


def migrations_directory(app: Flask) -> Path:
    return Path(app.root_path).parent / _MIGRATIONS_DIRNAME


def ensure_tables(app: Flask, log: logging.Logger | None = None) -> None:
    """Fallback that creates any mapped table that is still missing."""

    log = log or logger
    try:
        with app.app_context():
            db.create_all()
    except SQLAlchemyError as exc:  # pragma: no cover
        log.warning("[BOOT] create_all fallback failed: %s", exc)
    else:
        log.info("[BOOT] Mapped tables ensured via create_all")


def init_db(app: Flask) -> bool:
    """Run database migrations idempotently before the scheduler starts."""

    if app is None:  # pragma: no cover - sanity check
        raise ValueError("init_db requires a Flask application instance")

    log = app.logger if app.logger else logger  # type: ignore[assignment]
    log.info("[BOOT] Running database initialization (Flask-Migrate upgrade head)...")

    migrations_dir = migrations_directory(app)

    try:
        with app.app_context():
            migrate_upgrade(directory=str(migrations_dir))
    except (Exception, SystemExit) as exc:  # Flask-Migrate exits on CommandError
        log.exception("[BOOT] Database migration failed: %s", exc)
        log.warning("[BOOT] Falling back to create_all for dispatcher tables")
        ensure_tables(app, log)
        return False
    else:
        log.info("[BOOT] Alembic upgrade head OK")
        return True


__all__ = ["ensure_tables", "init_db", "migrations_directory"]
