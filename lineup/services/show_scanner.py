from __future__ import annotations

from datetime import date

from sqlalchemy import exists, select

from lineup.models import db
from lineup.models.show import Show, ShowItem
from lineup.models.show_email_log import ShowEmailLog


def find_due_shows(target_date: date) -> list[Show]:
    """Shows airing on ``target_date`` that still need their lineup email.

    A show qualifies when it has a time, has at least one item and has no
    successful email outcome yet.
    """

    already_sent = exists().where(
        ShowEmailLog.show_id == Show.id,
        ShowEmailLog.success.is_(True),
    )
    has_items = exists().where(ShowItem.show_id == Show.id)

    stmt = select(Show).where(
        Show.date == target_date,
        Show.time.is_not(None),
        ~already_sent,
        has_items,
    )
    return list(db.session.execute(stmt).scalars())


__all__ = ["find_due_shows"]
