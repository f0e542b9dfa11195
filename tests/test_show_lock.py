from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
from sqlalchemy import select

from lineup.models import db
from lineup.models.dispatch_lock import DispatchLock
from lineup.services import show_lock as show_lock_module
from lineup.services.show_lock import lock_key_for_show, show_lock


def _lock_keys():
    return list(db.session.execute(select(DispatchLock.lock_key)).scalars())


def test_lock_key_is_derived_from_show_id():
    assert lock_key_for_show("abc") == "email_abc"


def test_lock_is_held_inside_block_and_released_after(app):
    with show_lock("s1") as acquired:
        assert acquired is True
        assert _lock_keys() == ["email_s1"]

    assert _lock_keys() == []


def test_second_acquire_fails_while_held(app):
    with show_lock("s1") as first:
        with show_lock("s1") as second:
            assert first is True
            assert second is False
        # the failed attempt must not release the holder's row
        assert _lock_keys() == ["email_s1"]

        with show_lock("s2") as other:
            assert other is True


def test_lock_is_released_when_block_raises(app):
    with pytest.raises(RuntimeError):
        with show_lock("s1") as acquired:
            assert acquired
            raise RuntimeError("send blew up")

    with show_lock("s1") as again:
        assert again is True


def test_expired_lock_row_is_reclaimed(app):
    past = datetime.now(timezone.utc) - timedelta(hours=1)
    db.session.add(
        DispatchLock(
            lock_key="email_s1",
            holder="crashed-host:1",
            acquired_at=past - timedelta(minutes=15),
            expires_at=past,
        )
    )
    db.session.commit()

    with show_lock("s1") as acquired:
        assert acquired is True

    assert _lock_keys() == []


def test_live_lock_row_from_another_holder_blocks(app):
    now = datetime.now(timezone.utc)
    db.session.add(
        DispatchLock(
            lock_key="email_s1",
            holder="other-host:42",
            acquired_at=now,
            expires_at=now + timedelta(minutes=15),
        )
    )
    db.session.commit()

    with show_lock("s1") as acquired:
        assert acquired is False

    assert _lock_keys() == ["email_s1"]


class FakeAdvisoryConnection:
    """Records the SQL sent on one connection and answers the try-lock."""

    def __init__(self, grant: bool):
        self.grant = grant
        self.calls = []
        self.closed = False

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.closed = True
        return False

    def execute(self, statement, params=None):
        sql = str(statement)
        self.calls.append((sql, dict(params or {})))
        return SimpleNamespace(scalar=lambda: self.grant if "pg_try_advisory_lock" in sql else True)

    def commit(self):
        pass

    def invalidate(self):  # pragma: no cover - only on unlock failure
        pass


@pytest.fixture()
def postgres_engine(monkeypatch):
    connections = []

    def use(grant: bool = True):
        def connect():
            conn = FakeAdvisoryConnection(grant)
            connections.append(conn)
            return conn

        engine = SimpleNamespace(dialect=SimpleNamespace(name="postgresql"), connect=connect)
        monkeypatch.setattr(show_lock_module, "db", SimpleNamespace(engine=engine))
        return connections

    return use


def _functions(conn):
    return [sql.split("(")[0].replace("SELECT ", "") for sql, _ in conn.calls]


def test_advisory_lock_is_taken_and_released_on_one_connection(postgres_engine):
    connections = postgres_engine(grant=True)

    with show_lock("s1") as acquired:
        assert acquired is True
        (conn,) = connections
        assert _functions(conn) == ["pg_try_advisory_lock"]

    (conn,) = connections
    assert _functions(conn) == ["pg_try_advisory_lock", "pg_advisory_unlock"]
    assert [params for _, params in conn.calls] == [{"key": "email_s1"}, {"key": "email_s1"}]
    assert conn.closed is True


def test_advisory_lock_is_released_when_block_raises(postgres_engine):
    connections = postgres_engine(grant=True)

    with pytest.raises(RuntimeError):
        with show_lock("s1"):
            raise RuntimeError("send blew up")

    (conn,) = connections
    assert _functions(conn) == ["pg_try_advisory_lock", "pg_advisory_unlock"]


def test_advisory_lock_held_elsewhere_yields_false_without_unlock(postgres_engine):
    connections = postgres_engine(grant=False)

    with show_lock("s1") as acquired:
        assert acquired is False

    (conn,) = connections
    assert _functions(conn) == ["pg_try_advisory_lock"]
    assert conn.closed is True
