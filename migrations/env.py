"""Alembic environment for Flask-Migrate and plain ``alembic`` runs."""

from __future__ import annotations

import logging
from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool

from lineup.models import db  # noqa: F401 - ensures models are imported

config = context.config

# Keep the worker's handlers when migrations run from init_db
if config.config_file_name is not None and not logging.getLogger().handlers:
    fileConfig(config.config_file_name, disable_existing_loggers=False)


def _get_database_url() -> str:
    try:
        from flask import current_app

        return current_app.config["SQLALCHEMY_DATABASE_URI"]
    except RuntimeError:
        pass

    from config import get_database_uri_from_env

    url, _ = get_database_uri_from_env()
    if not url:
        raise RuntimeError("DATABASE_URL environment variable is required for migrations")
    return url


database_url = _get_database_url()
config.set_main_option("sqlalchemy.url", database_url.replace("%", "%%"))

target_metadata = db.Model.metadata


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode."""

    context.configure(
        url=database_url,
        target_metadata=target_metadata,
        literal_binds=True,
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations in 'online' mode."""

    connectable = engine_from_config(
        config.get_section(config.config_ini_section),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            render_as_batch=True,
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
