"""Persistence of lineup email outcomes (one row per show)."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from lineup.models import db
from lineup.models.show_email_log import ShowEmailLog
from lineup.utils.logger import get_logger

logger = get_logger(__name__)


def _upsert_statement(dialect: str, values: dict):
    # A success row is final; only a failed row may be overwritten
    replaceable = ShowEmailLog.success.is_(False)
    update_values = {
        "success": values["success"],
        "error_message": values["error_message"],
        "sent_at": values["sent_at"],
    }
    if dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert as pg_insert

        stmt = pg_insert(ShowEmailLog).values(**values)
        return stmt.on_conflict_do_update(
            index_elements=["show_id"], set_=update_values, where=replaceable
        )

    if dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert as sqlite_insert

        stmt = sqlite_insert(ShowEmailLog).values(**values)
        return stmt.on_conflict_do_update(
            index_elements=["show_id"], set_=update_values, where=replaceable
        )

    return None


def record_email_outcome(
    show_id: str,
    success: bool,
    error_message: str | None = None,
    *,
    sent_at: datetime | None = None,
) -> None:
    """Record the outcome of ``show_id`` and commit.

    A failed row is replaced by any later outcome. A successful row is never
    overwritten, so a later failed attempt cannot make the show due again.
    """

    values = {
        "show_id": show_id,
        "success": bool(success),
        "error_message": None if success else error_message,
        "sent_at": sent_at or datetime.now(timezone.utc),
    }

    stmt = _upsert_statement(db.engine.dialect.name, values)
    try:
        if stmt is not None:
            db.session.execute(stmt)
        else:
            existing = db.session.execute(
                select(ShowEmailLog).where(ShowEmailLog.show_id == show_id)
            ).scalar_one_or_none()
            if existing is None:
                db.session.add(ShowEmailLog(**values))
            elif not existing.success:
                existing.success = values["success"]
                existing.error_message = values["error_message"]
                existing.sent_at = values["sent_at"]
        db.session.commit()
    except IntegrityError:
        # Another instance inserted the row between our read and write
        db.session.rollback()
        db.session.execute(
            ShowEmailLog.__table__.update()
            .where(ShowEmailLog.show_id == show_id, ShowEmailLog.success.is_(False))
            .values(
                success=values["success"],
                error_message=values["error_message"],
                sent_at=values["sent_at"],
            )
        )
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info(
        "[DISPATCH] email outcome recorded",
        extra={"show_id": show_id, "success": values["success"], "error": values["error_message"]},
    )


def has_successful_email(show_id: str) -> bool:
    stmt = (
        select(ShowEmailLog.id)
        .where(ShowEmailLog.show_id == show_id, ShowEmailLog.success.is_(True))
        .limit(1)
    )
    return db.session.execute(stmt).first() is not None


def has_recent_successful_email(
    show_id: str,
    within: timedelta = timedelta(minutes=10),
    *,
    now: datetime | None = None,
) -> bool:
    cutoff = (now or datetime.now(timezone.utc)) - within
    stmt = (
        select(ShowEmailLog.id)
        .where(
            ShowEmailLog.show_id == show_id,
            ShowEmailLog.success.is_(True),
            ShowEmailLog.sent_at > cutoff,
        )
        .limit(1)
    )
    return db.session.execute(stmt).first() is not None


def get_email_outcome(show_id: str) -> ShowEmailLog | None:
    return db.session.execute(
        select(ShowEmailLog).where(ShowEmailLog.show_id == show_id)
    ).scalar_one_or_none()


def list_email_outcomes(*, failed_only: bool = False, limit: int = 50) -> list[ShowEmailLog]:
    stmt = select(ShowEmailLog).order_by(ShowEmailLog.sent_at.desc()).limit(limit)
    if failed_only:
        stmt = stmt.where(ShowEmailLog.success.is_(False))
    return list(db.session.execute(stmt).scalars())


__all__ = [
    "get_email_outcome",
    "has_recent_successful_email",
    "has_successful_email",
    "list_email_outcomes",
    "record_email_outcome",
]
