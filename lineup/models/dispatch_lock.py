"""Lock rows used where the database has no advisory locks."""
from __future__ import annotations

from datetime import datetime, timezone

from . import db


class DispatchLock(db.Model):
    __tablename__ = "dispatch_locks"

    lock_key = db.Column(db.String(128), primary_key=True)
    holder = db.Column(db.String(255), nullable=False)
    acquired_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)


__all__ = ["DispatchLock"]
