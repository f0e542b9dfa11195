import pytest
from sqlalchemy import create_engine, inspect, text

from lineup import create_app
from lineup.bootstrap import init_db
from lineup.models import db

EXPECTED_TABLES = {
    "shows",
    "show_items",
    "interviewees",
    "email_settings",
    "email_recipients",
    "show_email_logs",
    "dispatch_locks",
}


@pytest.fixture()
def file_db(tmp_path):
    return f"sqlite:///{tmp_path / 'lineup.db'}"


def _make_app(uri, tmp_path):
    return create_app(
        {
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": uri,
            "LOG_DIR": str(tmp_path / "logs"),
            "DATA_DIR": str(tmp_path),
        }
    )


def _tables(uri):
    engine = create_engine(uri)
    try:
        return set(inspect(engine).get_table_names())
    finally:
        engine.dispose()


def test_upgrade_creates_all_tables_and_is_idempotent(file_db, tmp_path):
    app = _make_app(file_db, tmp_path)

    assert init_db(app) is True
    assert init_db(app) is True

    tables = _tables(file_db)
    assert EXPECTED_TABLES <= tables
    assert "alembic_version" in tables


def test_upgrade_keeps_existing_schedule_tables(file_db, tmp_path):
    engine = create_engine(file_db)
    with engine.begin() as conn:
        conn.execute(text("CREATE TABLE shows (id VARCHAR(36) PRIMARY KEY, name VARCHAR(255) NOT NULL)"))
        conn.execute(text("INSERT INTO shows (id, name) VALUES ('keep', 'Existing show')"))
    engine.dispose()

    app = _make_app(file_db, tmp_path)
    assert init_db(app) is True

    engine = create_engine(file_db)
    try:
        with engine.connect() as conn:
            names = conn.execute(text("SELECT name FROM shows")).scalars().all()
        assert names == ["Existing show"]
        assert EXPECTED_TABLES <= set(inspect(engine).get_table_names())
    finally:
        engine.dispose()


def test_failed_upgrade_falls_back_to_create_all(file_db, tmp_path, monkeypatch):
    from lineup import bootstrap

    def broken_upgrade(**_kwargs):
        raise SystemExit(1)

    monkeypatch.setattr(bootstrap, "migrate_upgrade", broken_upgrade)
    app = _make_app(file_db, tmp_path)

    assert init_db(app) is False
    assert EXPECTED_TABLES <= _tables(file_db)

    with app.app_context():
        db.engine.dispose()
