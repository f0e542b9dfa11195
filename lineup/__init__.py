from flask import Flask
from flask_migrate import Migrate
import os
from urllib.parse import urlparse, urlunparse

from sqlalchemy.pool import QueuePool, StaticPool

from .cli import register_cli_commands
from .models import db, init_db
from .utils.logger import configure_logging
from config import Config, get_database_uri_from_env

migrate = Migrate()


def _mask_database_uri(uri: str) -> str:
    try:
        parsed = urlparse(uri)
        if parsed.password:
            netloc = parsed.netloc.replace(parsed.password, "***")
            parsed = parsed._replace(netloc=netloc)
        return urlunparse(parsed)
    except Exception:
        return "<unavailable>"


def _engine_options(app: Flask) -> dict:
    engine_defaults = {
        "pool_size": 5,
        "max_overflow": 5,
        "pool_pre_ping": True,
        "pool_recycle": 280,
    }
    engine_defaults.update(dict(app.config.get("SQLALCHEMY_ENGINE_OPTIONS", {})))

    database_uri = app.config.get("SQLALCHEMY_DATABASE_URI", "") or ""
    if database_uri.startswith("sqlite"):
        # SQLite (especially :memory:) does not accept pool sizing parameters.
        for key in ("pool_size", "max_overflow", "pool_recycle"):
            engine_defaults.pop(key, None)

    poolclass = engine_defaults.get("poolclass")
    if poolclass:
        try:
            is_static_pool = issubclass(poolclass, StaticPool)
            is_queue_pool = issubclass(poolclass, QueuePool)
        except TypeError:
            is_static_pool = False
            is_queue_pool = False

        if is_static_pool:
            for key in ("pool_size", "max_overflow", "pool_recycle"):
                engine_defaults.pop(key, None)
        elif not is_queue_pool:
            engine_defaults.pop("pool_size", None)
            engine_defaults.pop("max_overflow", None)

    return engine_defaults


def create_app(config_overrides: dict | None = None):
    app = Flask(__name__)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    log_path = configure_logging(app.config.get("LOG_DIR"), app.config.get("LOG_LEVEL"))
    app.logger.info("[BOOT] Logging configured. Writing to %s", log_path)

    if config_overrides and config_overrides.get("SQLALCHEMY_DATABASE_URI"):
        masked_url = _mask_database_uri(config_overrides["SQLALCHEMY_DATABASE_URI"])
        app.logger.info(f"[BOOT] SQLALCHEMY_DATABASE_URI configured via overrides: {masked_url}")
    else:
        database_url, database_source = get_database_uri_from_env()
        if database_url:
            app.config["SQLALCHEMY_DATABASE_URI"] = database_url
            app.logger.info(
                f"[BOOT] SQLALCHEMY_DATABASE_URI resolved from {database_source}: "
                f"{_mask_database_uri(database_url)}"
            )
        else:
            app.logger.warning(
                "[BOOT] DATABASE_URL not set. Falling back to default SQLALCHEMY_DATABASE_URI from Config."
            )

    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False
    app.config["SQLALCHEMY_ENGINE_OPTIONS"] = _engine_options(app)

    init_db(app)
    migrate.init_app(app, db)
    register_cli_commands(app)

    app.logger.info(
        "[BOOT] Dispatcher configured interval=%smin window=%smin timezone=%s pid=%s",
        app.config.get("DISPATCH_INTERVAL_MINUTES"),
        app.config.get("DISPATCH_WINDOW_MINUTES"),
        app.config.get("DISPATCH_TIMEZONE") or "local",
        os.getpid(),
    )
    return app
