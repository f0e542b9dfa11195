"""Cross-process lock serializing the lineup email of a show.

On PostgreSQL the lock is a session-level advisory lock, taken and released
on the same dedicated connection. Other databases fall back to a row in
``dispatch_locks`` whose primary key is the lock name; rows carry an expiry
so a crashed holder cannot block the show forever.

Acquisition never waits: when another process holds the lock the context
manager yields ``False``.
"""

from __future__ import annotations

import os
import socket
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Iterator

from sqlalchemy import delete, insert, text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from lineup.models import db
from lineup.models.dispatch_lock import DispatchLock
from lineup.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_LOCK_TTL = timedelta(minutes=15)


def lock_key_for_show(show_id: str) -> str:
    return f"email_{show_id}"


def _holder_id() -> str:
    return f"{socket.gethostname()}:{os.getpid()}"


@contextmanager
def _advisory_lock(key: str) -> Iterator[bool]:
    with db.engine.connect() as conn:
        acquired = bool(
            conn.execute(
                text("SELECT pg_try_advisory_lock(hashtext(:key)::bigint)"), {"key": key}
            ).scalar()
        )
        conn.commit()

        if not acquired:
            yield False
            return

        try:
            yield True
        finally:
            try:
                conn.execute(
                    text("SELECT pg_advisory_unlock(hashtext(:key)::bigint)"), {"key": key}
                )
                conn.commit()
            except SQLAlchemyError:
                # The lock dies with the session; drop the connection so it is not pooled
                logger.exception("[DISPATCH] Failed to release advisory lock %s", key)
                conn.invalidate()


def _try_insert_lock_row(key: str, holder: str, ttl: timedelta) -> bool:
    now = datetime.now(timezone.utc)
    try:
        db.session.execute(
            delete(DispatchLock)
            .where(DispatchLock.lock_key == key, DispatchLock.expires_at <= now)
            .execution_options(synchronize_session=False)
        )
        db.session.execute(
            insert(DispatchLock).values(
                lock_key=key, holder=holder, acquired_at=now, expires_at=now + ttl
            )
        )
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return False
    except SQLAlchemyError:
        db.session.rollback()
        raise
    return True


def _delete_lock_row(key: str, holder: str) -> None:
    try:
        db.session.execute(
            delete(DispatchLock)
            .where(DispatchLock.lock_key == key, DispatchLock.holder == holder)
            .execution_options(synchronize_session=False)
        )
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("[DISPATCH] Failed to release lock row %s", key)


@contextmanager
def _table_lock(key: str, ttl: timedelta) -> Iterator[bool]:
    holder = _holder_id()
    if not _try_insert_lock_row(key, holder, ttl):
        yield False
        return

    try:
        yield True
    finally:
        _delete_lock_row(key, holder)


@contextmanager
def show_lock(show_id: str, *, ttl: timedelta = DEFAULT_LOCK_TTL) -> Iterator[bool]:
    """Try to take the lock of ``show_id``; yields whether it was acquired."""

    key = lock_key_for_show(show_id)
    if db.engine.dialect.name == "postgresql":
        manager = _advisory_lock(key)
    else:
        manager = _table_lock(key, ttl)

    with manager as acquired:
        if acquired:
            logger.info("[DISPATCH] Lock %s acquired", key)
        yield acquired
    if acquired:
        logger.info("[DISPATCH] Lock %s released", key)


__all__ = ["DEFAULT_LOCK_TTL", "lock_key_for_show", "show_lock"]
